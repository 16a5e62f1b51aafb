# datagate/block/signing/grants.py
"""
DataGate Block Signing: Grant Documents

Off-chain JSON describing what a permission authorizes. The signed
message carries only the document's URI; integrity comes from the
content address the storage collaborator assigns.

Document Shape:
    {
        "grantee":    "0x...",            # grantee address
        "operation":  "llm_inference",
        "parameters": {...},              # operation specific
        "files":      [1, 2, 3],          # optional file ids
        "expires":    1767225600          # optional unix seconds
    }

Usage:
    doc = GrantDocument.create(grantee, "llm_inference", {"prompt": "..."})
    doc.validate()
    url = await store_grant_document(doc, storage)
    doc = await fetch_grant_document(url, fetcher)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from web3 import Web3

from ...errors import SerializationError, ValidationError
from ...validation import ADDRESS_RE
from ..transport.ipfs import ContentFetcher
from ..transport.storage import StorageProvider


@dataclass
class GrantDocument:
    grantee: str
    operation: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    files: List[int] = field(default_factory=list)
    expires: Optional[int] = None

    @classmethod
    def create(
        cls,
        grantee: str,
        operation: str,
        parameters: Optional[Dict[str, Any]] = None,
        files: Sequence[int] = (),
        expires: Optional[int] = None,
    ) -> GrantDocument:
        doc = cls(
            grantee=grantee,
            operation=operation,
            parameters=dict(parameters or {}),
            files=[int(f) for f in files],
            expires=expires,
        )
        doc.validate()
        return doc

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "grantee": self.grantee,
            "operation": self.operation,
            "parameters": self.parameters,
        }
        if self.files:
            data["files"] = list(self.files)
        if self.expires is not None:
            data["expires"] = self.expires
        return data

    def to_json(self) -> str:
        """Canonical JSON: sorted keys, no insignificant whitespace."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Any) -> GrantDocument:
        if not isinstance(data, dict):
            raise SerializationError("Grant document must be a JSON object")
        doc = cls(
            grantee=data.get("grantee"),
            operation=data.get("operation"),
            parameters=data.get("parameters") if "parameters" in data else {},
            files=list(data.get("files") or []),
            expires=data.get("expires"),
        )
        doc.validate()
        return doc

    @classmethod
    def from_json(cls, text: str) -> GrantDocument:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise SerializationError(f"Grant document is not valid JSON: {e}") from e
        return cls.from_dict(data)

    # =========================================================================
    # Integrity / Validity
    # =========================================================================

    def hash(self) -> str:
        """keccak256 of the canonical JSON, 0x-prefixed."""
        return "0x" + bytes(Web3.keccak(text=self.to_json())).hex()

    def validate(self) -> None:
        """
        Raises:
            ValidationError: On the first invalid field
        """
        if not isinstance(self.grantee, str) or not ADDRESS_RE.match(self.grantee):
            raise ValidationError("Grant grantee must be a valid address", field="grantee")
        if not isinstance(self.operation, str) or not self.operation.strip():
            raise ValidationError("Grant operation is required", field="operation")
        if not isinstance(self.parameters, dict):
            raise ValidationError("Grant parameters must be an object", field="parameters")
        if any(not isinstance(f, int) or isinstance(f, bool) or f < 0 for f in self.files):
            raise ValidationError("Grant files must be non-negative integers", field="files")
        if self.expires is not None and (
            not isinstance(self.expires, int) or isinstance(self.expires, bool) or self.expires < 0
        ):
            raise ValidationError("Grant expires must be a non-negative integer", field="expires")

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires is None:
            return False
        return (now if now is not None else time.time()) > self.expires


# =============================================================================
# Storage
# =============================================================================

async def store_grant_document(doc: GrantDocument, storage: StorageProvider) -> str:
    """Upload ``doc`` and return its URI."""
    doc.validate()
    result = await storage.upload(
        doc.to_json().encode("utf-8"),
        f"grant-{int(time.time() * 1000)}.json",
    )
    return result.url


async def fetch_grant_document(url: str, fetcher: ContentFetcher) -> GrantDocument:
    raw = await fetcher.fetch(url)
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SerializationError(f"Grant document at {url} is not UTF-8: {e}") from e
    return GrantDocument.from_json(text)
