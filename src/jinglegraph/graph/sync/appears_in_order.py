"""
APPEARS_IN Order Manager.

Keeps ``r.order`` on the APPEARS_IN edges into a Fabrica dense (1..N) and
sorted by the edge timestamp. Ties keep the order returned by the read.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from jinglegraph.graph.schema import RelationType
from jinglegraph.graph.store import RelationshipStore
from jinglegraph.graph.sync.events import RelationshipChanged, RelationshipOperation
from jinglegraph.graph.sync.timestamps import format_seconds, timestamp_to_seconds

logger = structlog.get_logger(__name__)


@dataclass
class OrderResult:
    """Result of recomputing one Fabrica's order."""

    fabrica_id: str
    children: int = 0
    updated: int = 0
    conflicts: list[list[str]] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "fabrica_id": self.fabrica_id,
            "children": self.children,
            "updated": self.updated,
            "conflicts": self.conflicts,
            "error": self.error,
        }


@dataclass
class BulkOrderResult:
    """Result of recomputing every Fabrica."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[OrderResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [r.to_dict() for r in self.results if not r.success],
        }


def compute_orders(children: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], list[list[str]]]:
    """
    Assign dense 1-based orders by ascending timestamp.

    Missing or unparseable timestamps sort as 0. The sort is stable, so
    tied children keep their input order.

    Returns:
        (updates, conflicts): one update per child, and the jingle ids of
        every group sharing a timestamp
    """
    keyed = [(timestamp_to_seconds(child.get("timestamp")), child) for child in children]
    keyed = [(seconds if seconds is not None else 0, child) for seconds, child in keyed]
    keyed.sort(key=lambda item: item[0])

    updates = [
        {
            "jingleId": child["jingleId"],
            "relationshipId": child.get("relationshipId"),
            "order": position,
        }
        for position, (_, child) in enumerate(keyed, start=1)
    ]

    groups: dict[int, list[str]] = {}
    for seconds, child in keyed:
        groups.setdefault(seconds, []).append(child["jingleId"])
    conflicts = [ids for ids in groups.values() if len(ids) > 1]

    return updates, conflicts


class AppearsInOrderManager:
    """
    Recomputes APPEARS_IN order within a Fabrica.

    Failures are logged and returned in the result; nothing is raised to
    the caller.

    Usage:
        ```python
        manager = AppearsInOrderManager()

        result = await manager.recompute_order("zG8k1Lm2Np0")
        bulk = await manager.recompute_all_orders()
        ```
    """

    def __init__(self, store: RelationshipStore | None = None) -> None:
        self._store = store or RelationshipStore()

    async def recompute_order(self, fabrica_id: str) -> OrderResult:
        result = OrderResult(fabrica_id=fabrica_id)

        try:
            children = await self._store.appears_in_children(fabrica_id)
            result.children = len(children)

            if not children:
                logger.debug("No APPEARS_IN relationships to order", fabrica_id=fabrica_id)
                return result

            updates, conflicts = compute_orders(children)
            result.conflicts = conflicts

            for ids in conflicts:
                seconds = timestamp_to_seconds(
                    next(c.get("timestamp") for c in children if c["jingleId"] == ids[0])
                )
                logger.warning(
                    f"Timestamp conflict in Fabrica {fabrica_id}: Jingles {', '.join(ids)} "
                    f"share timestamp {format_seconds(seconds or 0)}. Order assigned arbitrarily",
                    fabrica_id=fabrica_id,
                    jingle_ids=ids,
                )

            await self._store.set_relationship_orders(fabrica_id, updates)
            result.updated = len(updates)

            logger.info("APPEARS_IN order updated", fabrica_id=fabrica_id, children=len(updates))
        except Exception as e:
            result.error = str(e)
            logger.error("Failed to update APPEARS_IN order", fabrica_id=fabrica_id, error=str(e))

        return result

    async def recompute_all_orders(self) -> BulkOrderResult:
        """Recompute order for every Fabrica with at least one Jingle."""
        bulk = BulkOrderResult()

        try:
            fabrica_ids = await self._store.fabricas_with_children()
        except Exception as e:
            logger.error("Failed to list Fabricas", error=str(e))
            bulk.results.append(OrderResult(fabrica_id="*", error=str(e)))
            bulk.failed += 1
            return bulk

        bulk.total = len(fabrica_ids)
        logger.info("Recomputing APPEARS_IN order", fabricas=bulk.total)

        for fabrica_id in fabrica_ids:
            result = await self.recompute_order(fabrica_id)
            bulk.results.append(result)
            if result.success:
                bulk.succeeded += 1
            else:
                bulk.failed += 1

        logger.info("APPEARS_IN order recomputed", succeeded=bulk.succeeded, failed=bulk.failed)
        return bulk

    async def handle_relationship_changed(self, event: RelationshipChanged) -> OrderResult | None:
        """Recompute the Fabrica an APPEARS_IN change touched."""
        if event.rel_type != RelationType.APPEARS_IN:
            return None
        if event.operation == RelationshipOperation.UPDATE and not event.timestamp_changed:
            return None
        return await self.recompute_order(event.target_id)
