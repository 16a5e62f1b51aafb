# datagate/block/registry/__init__.py
"""
DataGate Block Registry Layer

Reads and writes against the data-portability contracts, the indexed
query service, and the dual-mode resolver that combines them.

Components:
    ChainClient / Web3ChainClient: contract access by name (+ Multicall3)
    IndexedQueryClient: subgraph GraphQL reads
    DualModeStateResolver: indexed-first reads with RPC fallback
    SchemaRegistry: schemas and refiners

Usage:
    from datagate.block.registry import Web3ChainClient, DualModeStateResolver

    chain = Web3ChainClient(addresses, chain_id=14800, rpc_url=rpc_url)
    resolver = DualModeStateResolver(chain, IndexedQueryClient(subgraph_url, transport))
    page = await resolver.get_trusted_servers(user)
"""

from .models import (
    FilePermissionEntry,
    Permission,
    TrustedServer,
    SchemaRef,
    RefinerRef,
    PagedResult,
    USED_MODE_INDEXED,
    USED_MODE_RPC,
)

from .multicall import (
    ContractCall,
    Success,
    Failure,
    CallResult,
    MULTICALL3_ADDRESS,
    unwrap_all,
)

from .events import (
    DecodedEvent,
    find_event,
)

from .chain import (
    ChainClient,
    Web3ChainClient,
    load_abi,
)

from .indexer import IndexedQueryClient

from .resolver import (
    DualModeStateResolver,
    ResolverState,
    Resolution,
)

from .schemas import SchemaRegistry

__all__ = [
    # Models
    "FilePermissionEntry",
    "Permission",
    "TrustedServer",
    "SchemaRef",
    "RefinerRef",
    "PagedResult",
    "USED_MODE_INDEXED",
    "USED_MODE_RPC",
    # Multicall
    "ContractCall",
    "Success",
    "Failure",
    "CallResult",
    "MULTICALL3_ADDRESS",
    "unwrap_all",
    # Events
    "DecodedEvent",
    "find_event",
    # Chain
    "ChainClient",
    "Web3ChainClient",
    "load_abi",
    # Reads
    "IndexedQueryClient",
    "DualModeStateResolver",
    "ResolverState",
    "Resolution",
    "SchemaRegistry",
]

__version__ = "0.4.0"
