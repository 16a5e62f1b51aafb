# datagate/block/registry/schemas.py
"""
DataGate Block Registry: Schemas and Refiners

Data schemas describe the shape of uploaded files; refiners turn raw
files into a schema. Both live in the refiner registry contract and are
referenced from file registrations by numeric id (0 = no schema).

Usage:
    registry = SchemaRegistry(chain)
    schema_id = await registry.add_schema("chat", "json", "ipfs://...")
    schema = await registry.get_schema(schema_id)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from ...errors import BlockchainError
from ...resilience import RetryPolicy, is_transient, with_retry
from ...validation import require_text, require_uint
from .chain import ChainClient
from .events import DecodedEvent, event_arg, find_event, receipt_succeeded
from .models import RefinerRef, SchemaRef

logger = logging.getLogger(__name__)

REFINERS = "DataRefinerRegistry"


class SchemaRegistry:
    """Schema and refiner reads/writes against the refiner registry."""

    def __init__(self, chain: ChainClient, retry: Optional[RetryPolicy] = None):
        self._chain = chain
        self._retry = retry or RetryPolicy()

    # =========================================================================
    # Schemas
    # =========================================================================

    async def add_schema(self, name: str, dialect: str, definition_url: str) -> int:
        """
        Register a schema and return its id (from ``SchemaAdded``).

        Raises:
            ValidationError: Empty name, dialect or definition URL
            BlockchainError: Reverted or event missing
        """
        name = require_text(name, "name")
        dialect = require_text(dialect, "dialect")
        definition_url = require_text(definition_url, "definition_url")

        event, _ = await self._transact(
            "addSchema", (name, dialect, definition_url), "SchemaAdded",
        )
        schema_id = int(event_arg(event, "schemaId"))
        logger.info("Added schema %d (%s)", schema_id, name)
        return schema_id

    async def get_schema(self, schema_id: int) -> SchemaRef:
        schema_id = require_uint(schema_id, "schema_id")
        name, dialect, definition_url = await self._chain.read(REFINERS, "schemas", schema_id)
        return SchemaRef(id=schema_id, name=name, dialect=dialect, definition_url=definition_url)

    async def schemas_count(self) -> int:
        return int(await self._chain.read(REFINERS, "schemasCount"))

    async def is_valid_schema_id(self, schema_id: int) -> bool:
        return bool(await self._chain.read(
            REFINERS, "isValidSchemaId", require_uint(schema_id, "schema_id"),
        ))

    # =========================================================================
    # Refiners
    # =========================================================================

    async def add_refiner(
        self,
        dlp_id: int,
        name: str,
        schema_id: int,
        instruction_url: str,
    ) -> int:
        """Register a refiner bound to an existing schema; returns its id."""
        dlp_id = require_uint(dlp_id, "dlp_id")
        name = require_text(name, "name")
        schema_id = require_uint(schema_id, "schema_id")
        instruction_url = require_text(instruction_url, "instruction_url")

        event, _ = await self._transact(
            "addRefinerWithSchemaId",
            (dlp_id, name, schema_id, instruction_url),
            "RefinerAdded",
        )
        return int(event_arg(event, "refinerId"))

    async def get_refiner(self, refiner_id: int) -> RefinerRef:
        refiner_id = require_uint(refiner_id, "refiner_id")
        dlp_id, owner, name, schema_id, instruction = await self._chain.read(
            REFINERS, "refiners", refiner_id,
        )
        return RefinerRef(
            id=refiner_id,
            dlp_id=int(dlp_id),
            owner=owner,
            name=name,
            schema_id=int(schema_id),
            instruction_url=instruction,
        )

    async def update_schema_id(self, refiner_id: int, schema_id: int) -> str:
        """Point a refiner at another schema; returns the transaction hash."""
        _, tx_hash = await self._transact(
            "updateSchemaId",
            (require_uint(refiner_id, "refiner_id"), require_uint(schema_id, "schema_id")),
            "SchemaIdUpdated",
        )
        return tx_hash

    # =========================================================================
    # Internal
    # =========================================================================

    async def _transact(
        self,
        function: str,
        args: Tuple[Any, ...],
        event: str,
    ) -> Tuple[DecodedEvent, str]:
        tx_hash = await self._chain.write(REFINERS, function, *args)
        # Writes are never retried; receipt polling retries transient failures.
        receipt = await with_retry(
            lambda: self._chain.wait_for_receipt(tx_hash),
            max_attempts=self._retry.max_attempts,
            delay=self._retry.delay,
            should_retry=is_transient,
        )
        if not receipt_succeeded(receipt):
            raise BlockchainError(f"{REFINERS}.{function} reverted in {tx_hash}")
        found = find_event(self._chain.decode_events(REFINERS, receipt), event, tx_hash)
        return found, tx_hash
