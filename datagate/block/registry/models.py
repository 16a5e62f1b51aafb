# datagate/block/registry/models.py
"""
DataGate Block Registry: Data Model

Normalized records shared by the indexed and direct read paths, plus the
per-recipient file permission entry used by file registration.

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

USED_MODE_INDEXED = "indexed"
USED_MODE_RPC = "rpc"


# =============================================================================
# File Permissions
# =============================================================================

@dataclass
class FilePermissionEntry:
    """One recipient allowed to decrypt a file (key is recipient-wrapped)."""
    account: str
    key: str

    def to_dict(self) -> Dict[str, str]:
        return {"account": self.account, "key": self.key}

    def to_tuple(self) -> Tuple[str, str]:
        return (self.account, self.key)


# =============================================================================
# Permissions
# =============================================================================

@dataclass
class Permission:
    """
    A granted permission.

    Attributes:
        id: On-chain permission id
        grantor: Address that signed the grant
        grantee_id: Registry id of the grantee
        grant: URI of the off-chain grant document
        nonce: Grantor nonce the grant was signed with
        file_ids: Files covered by the grant
        start_block: Block the permission became active
        end_block: Block it was revoked (0 while active)
    """
    id: int
    grantor: str
    grantee_id: int
    grant: str
    nonce: int
    file_ids: List[int] = field(default_factory=list)
    start_block: int = 0
    end_block: int = 0
    operation: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    added_at_block: Optional[int] = None
    added_at_timestamp: Optional[int] = None
    transaction_hash: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.end_block == 0

    @classmethod
    def from_contract_tuple(cls, data: Sequence[Any]) -> Permission:
        """Create from ``permissions(id)`` return tuple."""
        return cls(
            id=int(data[0]),
            grantor=data[1],
            nonce=int(data[2]),
            grantee_id=int(data[3]),
            grant=data[4],
            start_block=int(data[5]),
            end_block=int(data[6]),
            file_ids=[int(f) for f in data[7]],
        )

    @classmethod
    def placeholder(cls, permission_id: int) -> Permission:
        """Stand-in for an entry whose detail read failed."""
        return cls(id=permission_id, grantor="", grantee_id=0, grant="", nonce=0)


# =============================================================================
# Servers
# =============================================================================

@dataclass
class TrustedServer:
    """A server in a user's trust set."""
    id: int
    server_id: str
    server_url: str
    owner: str = ""
    public_key: str = ""
    trusted_at: Optional[int] = None
    trusted_at_block: Optional[int] = None
    transaction_hash: Optional[str] = None

    @classmethod
    def from_contract_tuple(cls, data: Sequence[Any]) -> TrustedServer:
        """Create from ``servers(id)`` return tuple."""
        return cls(
            id=int(data[0]),
            owner=data[1],
            server_id=data[2],
            public_key=data[3],
            server_url=data[4],
        )

    @classmethod
    def placeholder(cls, server_id: int) -> TrustedServer:
        return cls(id=server_id, server_id="", server_url="")


# =============================================================================
# Schemas / Refiners
# =============================================================================

@dataclass
class SchemaRef:
    id: int
    name: str
    dialect: str
    definition_url: str


@dataclass
class RefinerRef:
    id: int
    dlp_id: int
    owner: str
    name: str
    schema_id: int
    instruction_url: str


# =============================================================================
# Paged Results
# =============================================================================

@dataclass
class PagedResult(Generic[T]):
    """
    One page of a dual-mode read.

    ``used_mode`` is the path that produced ``items``, whatever mode the
    caller asked for.
    """
    items: List[T]
    total: int
    offset: int
    limit: int
    used_mode: str
    warnings: List[str] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total
