"""
Relationship Store.

Typed data-access layer between the integrity engines and the catalog
graph. Each method runs one query from ``jinglegraph.graph.queries`` and
shapes the records into Python values.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from neo4j import AsyncManagedTransaction

from jinglegraph.graph import queries
from jinglegraph.graph.neo4j_client import CatalogGraphClient, get_catalog_client
from jinglegraph.graph.queries import CypherQuery
from jinglegraph.graph.schema import (
    NodeLabel,
    RelationshipDirection,
    RelationshipRecord,
    RelationType,
)

logger = structlog.get_logger(__name__)


class ReversalOutcome(str, Enum):
    """Outcome of reversing a wrong-direction relationship."""

    SWAPPED = "swapped"
    NOT_FOUND = "not_found"
    ENDPOINT_NOT_FOUND = "endpoint_not_found"


@dataclass
class ReversalProbe:
    """Read-only state relevant to a reversal."""

    relationships: int
    start_found: bool
    end_found: bool

    @property
    def outcome(self) -> ReversalOutcome:
        if self.relationships == 0:
            return ReversalOutcome.NOT_FOUND
        if not (self.start_found and self.end_found):
            return ReversalOutcome.ENDPOINT_NOT_FOUND
        return ReversalOutcome.SWAPPED


async def _run_in_tx(tx: AsyncManagedTransaction, query: CypherQuery) -> list[dict[str, Any]]:
    result = await tx.run(query.text, query.parameters)
    records: list[dict[str, Any]] = await result.data()
    return records


def _probe_from_records(records: list[dict[str, Any]]) -> ReversalProbe:
    if not records:
        return ReversalProbe(0, False, False)
    row = records[0]
    return ReversalProbe(
        relationships=int(row.get("relationships") or 0),
        start_found=bool(row.get("startFound")),
        end_found=bool(row.get("endFound")),
    )


class RelationshipStore:
    """
    Graph store collaborator used by the audit, fix and sync engines.

    Usage:
        ```python
        store = RelationshipStore(get_catalog_client())

        records = await store.fetch_relationships(RelationType.APPEARS_IN)
        outcome = await store.reverse_relationship(direction, "zG8k1Lm2Np0", "j3k7p9a2q")
        ```
    """

    def __init__(self, client: CatalogGraphClient | None = None) -> None:
        self._client = client or get_catalog_client()

    @property
    def client(self) -> CatalogGraphClient:
        return self._client

    async def _run(self, query: CypherQuery) -> list[dict[str, Any]]:
        if query.write:
            return await self._client.execute_write_cypher(query.text, query.parameters)
        return await self._client.execute_cypher(query.text, query.parameters)

    async def _first(self, query: CypherQuery, key: str, default: Any = None) -> Any:
        records = await self._run(query)
        if not records:
            return default
        return records[0].get(key, default)

    # =========================================================================
    # Audit / Fix
    # =========================================================================

    async def fetch_relationships(self, rel_type: RelationType) -> list[RelationshipRecord]:
        """Fetch every edge of one type in a single read."""
        records = await self._run(queries.relationships_of_type(rel_type))
        return [
            RelationshipRecord(
                rel_type=rel_type,
                start_id=r.get("startId"),
                start_labels=r.get("startLabels") or [],
                end_id=r.get("endId"),
                end_labels=r.get("endLabels") or [],
                properties=r.get("relProperties") or {},
            )
            for r in records
        ]

    async def relationship_exists(
        self,
        direction: RelationshipDirection,
        start_id: str,
        end_id: str,
    ) -> bool:
        return bool(
            await self._first(queries.relationship_exists(direction, start_id, end_id), "exists", False)
        )

    async def count_relationships(self, rel_type: RelationType, start_id: str, end_id: str) -> int:
        return int(
            await self._first(queries.count_relationships(rel_type, start_id, end_id), "count", 0) or 0
        )

    async def delete_relationships(self, rel_type: RelationType, start_id: str, end_id: str) -> int:
        return int(
            await self._first(queries.delete_relationships(rel_type, start_id, end_id), "deleted", 0) or 0
        )

    async def delete_extra_relationships(self, rel_type: RelationType, start_id: str, end_id: str) -> int:
        """Collapse repeated edges between the same pair into one; returns copies removed."""
        return int(
            await self._first(queries.delete_extra_relationships(rel_type, start_id, end_id), "deleted", 0) or 0
        )

    async def probe_reversal(
        self,
        direction: RelationshipDirection,
        wrong_start_id: str,
        wrong_end_id: str,
    ) -> ReversalProbe:
        """Predict the outcome of reverse_relationship without writing."""
        return _probe_from_records(
            await self._run(queries.probe_reversal(direction, wrong_start_id, wrong_end_id))
        )

    async def reverse_relationship(
        self,
        direction: RelationshipDirection,
        wrong_start_id: str,
        wrong_end_id: str,
    ) -> ReversalOutcome:
        """
        Atomically replace a wrong-direction edge with its canonical twin.

        The probe and the swap run in the same write transaction, so the
        edge is never absent in both directions at once.
        """
        probe_query = queries.probe_reversal(direction, wrong_start_id, wrong_end_id)
        swap_query = queries.reverse_relationship(direction, wrong_start_id, wrong_end_id)

        async def work(tx: AsyncManagedTransaction) -> ReversalOutcome:
            outcome = _probe_from_records(await _run_in_tx(tx, probe_query)).outcome
            if outcome != ReversalOutcome.SWAPPED:
                return outcome
            rows = await _run_in_tx(tx, swap_query)
            if not rows or not rows[0].get("created"):
                return ReversalOutcome.NOT_FOUND
            return ReversalOutcome.SWAPPED

        return await self._client.execute_in_transaction(work)

    # =========================================================================
    # Nodes and generic relationships
    # =========================================================================

    async def node_exists(self, label: NodeLabel, node_id: str) -> bool:
        return bool(await self._run(queries.node_exists(label, node_id)))

    async def existing_node_ids(self, label: NodeLabel, node_ids: list[str]) -> set[str]:
        if not node_ids:
            return set()
        return {r["id"] for r in await self._run(queries.existing_node_ids(label, node_ids))}

    async def set_node_fields(self, label: NodeLabel, node_id: str, fields: dict[str, Any]) -> bool:
        return bool(await self._run(queries.set_node_fields(label, node_id, fields)))

    async def create_relationship(
        self,
        direction: RelationshipDirection,
        start_id: str,
        end_id: str,
        properties: dict[str, Any] | None = None,
    ) -> bool:
        """Create a canonical edge; False if an endpoint does not exist."""
        created = await self._first(
            queries.create_relationship(direction, start_id, end_id, properties), "created", 0
        )
        return bool(created)

    # =========================================================================
    # Redundant properties
    # =========================================================================

    async def fabrica_date(self, fabrica_id: str) -> tuple[bool, Any]:
        """Return (found, date) for a Fabrica."""
        records = await self._run(queries.fabrica_date(fabrica_id))
        if not records:
            return False, None
        return True, records[0].get("date")

    async def jingle_fabricas_by_date(
        self,
        jingle_id: str,
        exclude_fabrica_id: str | None = None,
    ) -> list[dict[str, Any]]:
        return await self._run(queries.jingle_fabricas_by_date(jingle_id, exclude_fabrica_id))

    async def jingle_canciones(self, jingle_id: str, exclude_cancion_id: str | None = None) -> list[str]:
        records = await self._run(queries.jingle_canciones(jingle_id, exclude_cancion_id))
        return [r["id"] for r in records]

    async def cancion_autores(self, cancion_id: str, exclude_autor_id: str | None = None) -> list[str]:
        records = await self._run(queries.cancion_autores(cancion_id, exclude_autor_id))
        return [r["id"] for r in records]

    async def set_jingle_fabrica(self, jingle_id: str, fabrica_id: str | None, fabrica_date: Any) -> None:
        await self._run(queries.set_jingle_fabrica(jingle_id, fabrica_id, fabrica_date))

    async def set_jingle_cancion(self, jingle_id: str, cancion_id: str | None) -> None:
        await self._run(queries.set_jingle_cancion(jingle_id, cancion_id))

    async def set_cancion_autores(self, cancion_id: str, autor_ids: list[str]) -> None:
        await self._run(queries.set_cancion_autores(cancion_id, autor_ids))

    async def jingle_redundant_fields(self, jingle_ids: list[str] | None = None) -> list[dict[str, Any]]:
        return await self._run(queries.jingle_redundant_fields(jingle_ids))

    async def cancion_redundant_fields(self, cancion_ids: list[str] | None = None) -> list[dict[str, Any]]:
        return await self._run(queries.cancion_redundant_fields(cancion_ids))

    # =========================================================================
    # APPEARS_IN order
    # =========================================================================

    async def appears_in_children(self, fabrica_id: str) -> list[dict[str, Any]]:
        return await self._run(queries.appears_in_children(fabrica_id))

    async def set_relationship_orders(self, fabrica_id: str, updates: list[dict[str, Any]]) -> int:
        """Persist order values in one bulk statement; returns properties set."""
        query = queries.set_appears_in_orders(fabrica_id, updates)
        stats = await self._client.execute_write(query.text, query.parameters)
        return int(stats.get("properties_set", 0))

    async def set_appears_in_timestamp(self, jingle_id: str, fabrica_id: str, seconds: int) -> bool:
        updated = await self._first(
            queries.set_appears_in_timestamp(jingle_id, fabrica_id, seconds), "updated", 0
        )
        return bool(updated)

    async def fabricas_with_children(self) -> list[str]:
        return [r["fabricaId"] for r in await self._run(queries.fabricas_with_children())]

    # =========================================================================
    # Cleanup scans
    # =========================================================================

    async def fabrica_contents(self, fabrica_ids: list[str] | None = None) -> list[dict[str, Any]]:
        return await self._run(queries.fabrica_contents(fabrica_ids))

    async def appears_in_edges(self, jingle_ids: list[str] | None = None) -> list[dict[str, Any]]:
        return await self._run(queries.appears_in_edges(jingle_ids))

    async def nodes_without_relationship(
        self,
        direction: RelationshipDirection,
        anchor_is_start: bool,
    ) -> list[dict[str, Any]]:
        return await self._run(queries.nodes_without_relationship(direction, anchor_is_start))

    async def jingles_with_empty_flags(self, flags: tuple[str, ...]) -> list[dict[str, Any]]:
        return await self._run(queries.jingles_with_empty_flags(flags))
