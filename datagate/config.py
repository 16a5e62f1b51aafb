# datagate/config.py
"""
DataGate: Configuration

Plain dataclasses, built by the caller and injected into the client.
Nothing is read from files or the environment.

Usage:
    config = ClientConfig(
        chain_id=14800,
        rpc_url="https://rpc.moksha.vana.org",
        addresses=ContractAddresses(
            permissions="0x...",
            servers="0x...",
            data_registry="0x...",
            refiners="0x...",
        ),
        subgraph_url="https://.../subgraphs/name/vana",
        relayer_url="https://app.example/api/relay",
    )

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import ValidationError
from .resilience import RetryPolicy
from .validation import require_address, require_http_url

MULTICALL3 = "0xcA11bde05977b3631167028862bE2a173976CA11"


@dataclass
class ContractAddresses:
    """Deployed contract addresses on one chain."""
    permissions: str
    servers: str
    data_registry: str
    refiners: Optional[str] = None
    multicall: str = MULTICALL3

    def validate(self) -> None:
        require_address(self.permissions, "permissions")
        require_address(self.servers, "servers")
        require_address(self.data_registry, "data_registry")
        if self.refiners is not None:
            require_address(self.refiners, "refiners")
        require_address(self.multicall, "multicall")

    def as_dict(self) -> Dict[str, str]:
        """Contract name -> address, as the chain client expects."""
        addresses = {
            "DataPortabilityPermissions": self.permissions,
            "DataPortabilityServers": self.servers,
            "DataRegistry": self.data_registry,
        }
        if self.refiners:
            addresses["DataRefinerRegistry"] = self.refiners
        return addresses


@dataclass
class ClientConfig:
    """
    Attributes:
        chain_id: Target chain
        addresses: Contract addresses on that chain
        rpc_url: JSON-RPC endpoint (required unless a chain client is injected)
        private_key: Local account for direct writes (optional)
        subgraph_url: Indexed query endpoint (optional; RPC-only without it)
        relayer_url: Unified-protocol relayer (optional; direct writes without it)
        ipfs_gateways: Application gateway list (defaults if empty)
        retry: Retry policy for relay calls and receipt polling
        domain_version: EIP-712 domain version
        max_calls_per_batch: Multicall batch size
        default_page_size: Page size when a read passes no limit
    """
    chain_id: int
    addresses: ContractAddresses
    rpc_url: Optional[str] = None
    private_key: Optional[str] = None
    subgraph_url: Optional[str] = None
    relayer_url: Optional[str] = None
    ipfs_gateways: List[str] = field(default_factory=list)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    domain_version: str = "1"
    max_calls_per_batch: int = 100
    default_page_size: int = 50
    http_timeout: float = 30.0

    def validate(self) -> None:
        """
        Raises:
            ValidationError: On the first invalid setting
        """
        if not isinstance(self.chain_id, int) or self.chain_id <= 0:
            raise ValidationError("chain_id must be a positive integer", field="chain_id")
        self.addresses.validate()
        if self.rpc_url is not None:
            require_http_url(self.rpc_url, "rpc_url")
        if self.subgraph_url is not None:
            require_http_url(self.subgraph_url, "subgraph_url")
        if self.relayer_url is not None:
            require_http_url(self.relayer_url, "relayer_url")
        for gateway in self.ipfs_gateways:
            require_http_url(gateway, "ipfs_gateways")
        if self.retry.max_attempts < 1:
            raise ValidationError("retry.max_attempts must be >= 1", field="retry")
        if self.max_calls_per_batch < 1:
            raise ValidationError("max_calls_per_batch must be >= 1", field="max_calls_per_batch")
        if self.default_page_size < 1:
            raise ValidationError("default_page_size must be >= 1", field="default_page_size")
