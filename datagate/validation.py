# datagate/validation.py
"""
DataGate: Input Validation

Checks run before any network call or wallet prompt. Every failure is a
ValidationError naming the offending field.

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import re
from typing import Any, Sequence, Union
from urllib.parse import urlparse

from web3 import Web3

from .errors import ValidationError

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def require_address(value: Any, field: str) -> str:
    """Validate an EVM address and return its checksummed form."""
    if not isinstance(value, str) or not ADDRESS_RE.match(value):
        raise ValidationError(f"{field} must be a 0x-prefixed 20-byte address, got {value!r}", field=field)
    return Web3.to_checksum_address(value)


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value


def require_http_url(value: Any, field: str) -> str:
    require_text(value, field)
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"{field} must be an http(s) URL, got {value!r}", field=field)
    return value


def require_uint(value: Any, field: str) -> int:
    """Accept non-negative ints, decimal strings and 0x-hex strings."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a non-negative integer", field=field)
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            raise ValidationError(f"{field} must be a non-negative integer, got {text!r}", field=field) from None
    if not isinstance(value, int) or not 0 <= value < 2 ** 256:
        raise ValidationError(f"{field} must be a non-negative integer, got {value!r}", field=field)
    return value


def require_same_length(
    name_a: str,
    items_a: Sequence[Any],
    name_b: str,
    items_b: Sequence[Any],
) -> None:
    if len(items_a) != len(items_b):
        raise ValidationError(
            f"{name_a} array length ({len(items_a)}) must match "
            f"{name_b} array length ({len(items_b)})",
            field=name_a,
        )


def normalize_permission_id(value: Union[int, str, bytes]) -> int:
    """
    Normalize a permission identifier to an int.

    Accepts ints, decimal strings, 0x-hex strings (including 32-byte
    grant ids) and raw big-endian bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    return require_uint(value, "permission_id")
