# datagate/block/registry/resolver.py
"""
DataGate Block Registry: Dual-Mode State Resolver

Answers "which permissions / trusted servers does this user have" from
the indexed query service when it can, and from batched contract reads
when it cannot. The caller always gets a page plus a record of which
path produced it and what went wrong on the way.

State Machine:
    INDEXED ──ok──────────────────────────► RESOLVED (used_mode="indexed")
       │ error (warning recorded)
       ▼
    DIRECT ──ok───────────────────────────► RESOLVED (used_mode="rpc")
       │ error
       ▼
    EXHAUSTED ─► DualSourceExhaustedError (both causes)
                 BlockchainError            (indexed path never tried)

Direct Path:
    1. count      userPermissionIdsLength(user) / userServerIdsLength(user)
    2. ids        multicall ...IdsAt(user, i), i in [offset, min(offset+limit, total))
                  all-or-nothing
    3. details    multicall permissions(id) / servers(id), failure-isolated:
                  a failed entry becomes a placeholder plus a warning

Usage:
    resolver = DualModeStateResolver(chain, indexer)
    page = await resolver.get_user_permissions(user, offset=0, limit=20)
    page.items, page.total, page.has_more, page.used_mode, page.warnings

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from ...errors import (
    BlockchainError,
    DualSourceExhaustedError,
    ValidationError,
)
from ...validation import require_address
from .chain import ChainClient
from .indexer import IndexedQueryClient
from .models import (
    USED_MODE_INDEXED,
    USED_MODE_RPC,
    PagedResult,
    Permission,
    TrustedServer,
)
from .multicall import ContractCall, Failure, unwrap_all

logger = logging.getLogger(__name__)

PERMISSIONS = "DataPortabilityPermissions"
SERVERS = "DataPortabilityServers"

MODES = ("auto", "indexed", "rpc")
DEFAULT_PAGE_SIZE = 50


# =============================================================================
# State
# =============================================================================

class ResolverState(Enum):
    INDEXED = auto()
    DIRECT = auto()
    RESOLVED = auto()
    EXHAUSTED = auto()


@dataclass
class Resolution:
    """Trace of one resolve call."""
    operation: str
    state: Optional[ResolverState] = None
    transitions: List[ResolverState] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    indexed_error: Optional[Exception] = None
    direct_error: Optional[Exception] = None

    def enter(self, state: ResolverState) -> None:
        logger.debug("%s: %s -> %s", self.operation, self.state and self.state.name, state.name)
        self.state = state
        self.transitions.append(state)

    def warn(self, message: str) -> None:
        logger.warning("%s: %s", self.operation, message)
        self.warnings.append(message)


@dataclass
class _Source:
    """What differs between the permission and the server reads."""
    operation: str
    contract: str
    count_fn: str
    id_at_fn: str
    detail_fn: str
    from_tuple: Callable[[Any], Any]
    placeholder: Callable[[int], Any]
    indexed: Callable[[IndexedQueryClient, str], Awaitable[List[Any]]]
    label: str


_PERMISSION_SOURCE = _Source(
    operation="getUserPermissions",
    contract=PERMISSIONS,
    count_fn="userPermissionIdsLength",
    id_at_fn="userPermissionIdsAt",
    detail_fn="permissions",
    from_tuple=Permission.from_contract_tuple,
    placeholder=Permission.placeholder,
    indexed=lambda indexer, user: indexer.get_user_permissions(user),
    label="permissions",
)

_SERVER_SOURCE = _Source(
    operation="getTrustedServers",
    contract=SERVERS,
    count_fn="userServerIdsLength",
    id_at_fn="userServerIdsAt",
    detail_fn="servers",
    from_tuple=TrustedServer.from_contract_tuple,
    placeholder=TrustedServer.placeholder,
    indexed=lambda indexer, user: indexer.get_user_trusted_servers(user),
    label="trusted servers",
)


# =============================================================================
# Resolver
# =============================================================================

class DualModeStateResolver:
    """
    Indexed-first reads with transparent fallback to direct chain reads.

    Modes:
        auto:    indexed if configured, else direct; fall back on failure
        indexed: same as auto, but warn when no indexer is configured
        rpc:     direct only
    """

    def __init__(
        self,
        chain: ChainClient,
        indexer: Optional[IndexedQueryClient] = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._chain = chain
        self._indexer = indexer
        self.default_page_size = default_page_size
        self.last_resolution: Optional[Resolution] = None

    async def get_user_permissions(
        self,
        user: str,
        offset: int = 0,
        limit: Optional[int] = None,
        mode: str = "auto",
    ) -> PagedResult[Permission]:
        return await self._resolve(_PERMISSION_SOURCE, user, offset, limit, mode)

    async def get_trusted_servers(
        self,
        user: str,
        offset: int = 0,
        limit: Optional[int] = None,
        mode: str = "auto",
    ) -> PagedResult[TrustedServer]:
        return await self._resolve(_SERVER_SOURCE, user, offset, limit, mode)

    # =========================================================================
    # State Machine
    # =========================================================================

    async def _resolve(
        self,
        source: _Source,
        user: str,
        offset: int,
        limit: Optional[int],
        mode: str,
    ) -> PagedResult:
        user = require_address(user, "user")
        limit = self.default_page_size if limit is None else limit
        if mode not in MODES:
            raise ValidationError(f"mode must be one of {', '.join(MODES)}", field="mode")
        if offset < 0:
            raise ValidationError("offset must be >= 0", field="offset")
        if limit < 1:
            raise ValidationError("limit must be >= 1", field="limit")

        trace = Resolution(operation=source.operation)
        self.last_resolution = trace

        if mode != "rpc":
            if self._indexer is None:
                if mode == "indexed":
                    trace.warn("No indexed query endpoint configured")
            else:
                trace.enter(ResolverState.INDEXED)
                try:
                    items = await source.indexed(self._indexer, user)
                except Exception as e:
                    trace.indexed_error = e
                    trace.warn(f"Indexed query failed, falling back to RPC: {e}")
                else:
                    trace.enter(ResolverState.RESOLVED)
                    return PagedResult(
                        items=items[offset:offset + limit],
                        total=len(items),
                        offset=offset,
                        limit=limit,
                        used_mode=USED_MODE_INDEXED,
                        warnings=trace.warnings,
                    )

        trace.enter(ResolverState.DIRECT)
        try:
            items, total = await self._direct(source, user, offset, limit, trace)
        except Exception as e:
            trace.direct_error = e
            trace.enter(ResolverState.EXHAUSTED)
            if trace.indexed_error is not None:
                raise DualSourceExhaustedError(source.operation, trace.indexed_error, e) from e
            raise BlockchainError(f"Failed to read {source.label} via RPC: {e}") from e

        trace.enter(ResolverState.RESOLVED)
        logger.info(
            "%s for %s resolved via RPC (%d of %d)",
            source.operation, user, len(items), total,
        )
        return PagedResult(
            items=items,
            total=total,
            offset=offset,
            limit=limit,
            used_mode=USED_MODE_RPC,
            warnings=trace.warnings,
        )

    async def _direct(
        self,
        source: _Source,
        user: str,
        offset: int,
        limit: int,
        trace: Resolution,
    ) -> Tuple[List[Any], int]:
        total = int(await self._chain.read(source.contract, source.count_fn, user))
        end = min(offset + limit, total)
        if offset >= end:
            return [], total

        id_results = await self._chain.multicall(
            [ContractCall(source.contract, source.id_at_fn, (user, i)) for i in range(offset, end)],
            allow_failure=False,
        )
        ids = [int(v) for v in unwrap_all(id_results)]

        detail_results = await self._chain.multicall(
            [ContractCall(source.contract, source.detail_fn, (item_id,)) for item_id in ids],
            allow_failure=True,
        )

        items = []
        for item_id, result in zip(ids, detail_results):
            if isinstance(result, Failure):
                trace.warn(f"Failed to read {source.detail_fn}({item_id}): {result.cause}")
                items.append(source.placeholder(item_id))
                continue
            try:
                items.append(source.from_tuple(result.value))
            except (IndexError, TypeError, ValueError) as e:
                trace.warn(f"Malformed {source.detail_fn}({item_id}): {e}")
                items.append(source.placeholder(item_id))
        return items, total

    # =========================================================================
    # Single Reads
    # =========================================================================

    async def get_permission(self, permission_id: int) -> Permission:
        value = await self._chain.read(PERMISSIONS, "permissions", int(permission_id))
        return Permission.from_contract_tuple(value)

    async def get_server(self, server_id: int) -> TrustedServer:
        value = await self._chain.read(SERVERS, "servers", int(server_id))
        return TrustedServer.from_contract_tuple(value)

    async def get_user_nonce(self, user: str, contract: str = PERMISSIONS) -> int:
        return int(await self._chain.read(contract, "userNonce", require_address(user, "user")))
