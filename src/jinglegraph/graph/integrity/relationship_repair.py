"""
Relationship Direction Repair.

Repairs the incorrect relationships found by the audit:
- Delete the wrong-direction edge when its canonical twin already exists
- Otherwise swap it into the canonical direction, keeping its properties
- Collapse repeated copies of a correctly directed edge into one

Dry-run mode uses read-only probes to predict exactly the outcome a real
run would have on the same data.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from jinglegraph.config.settings import get_settings
from jinglegraph.graph.integrity.relationship_audit import (
    AuditReport,
    DuplicateRelationship,
    IncorrectRelationship,
)
from jinglegraph.graph.schema import RelationshipSchema, RelationType, get_relationship_schema
from jinglegraph.graph.store import RelationshipStore, ReversalOutcome

logger = structlog.get_logger(__name__)

REASON_NOT_FOUND = "Relationship not found"
REASON_ENDPOINT_NOT_FOUND = "Endpoint not found"
REASON_NO_EXTRA_COPIES = "No duplicate copies found"


class FixAction(str, Enum):
    """Outcome of a single fix operation."""

    CREATED = "created"    # Swapped into the canonical direction
    DELETED = "deleted"    # Removed: canonical twin present, or extra copies
    SKIPPED = "skipped"    # Nothing done, see reason


@dataclass
class FixOperation:
    """One repaired (or skipped) relationship."""

    relationship_type: RelationType
    start_id: str
    end_id: str
    action: FixAction
    reason: str | None = None
    dry_run: bool = False
    copies_removed: int | None = None

    @property
    def classification(self) -> tuple[str, str, str, str, str | None]:
        """Outcome without the dry-run flag, for comparing runs."""
        return (self.relationship_type.value, self.start_id, self.end_id, self.action.value, self.reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "relationship_type": self.relationship_type.value,
            "start_id": self.start_id,
            "end_id": self.end_id,
            "action": self.action.value,
            "reason": self.reason,
            "dry_run": self.dry_run,
            "copies_removed": self.copies_removed,
        }


@dataclass
class FixSummary:
    """Aggregate counts of a fix pass."""

    total_fixed: int = 0
    total_deleted: int = 0
    total_skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_fixed": self.total_fixed,
            "total_deleted": self.total_deleted,
            "total_skipped": self.total_skipped,
            "errors": self.errors,
        }


@dataclass
class FixReport:
    """Result of a fix pass."""

    dry_run: bool = True
    operations: list[FixOperation] = field(default_factory=list)
    summary: FixSummary = field(default_factory=FixSummary)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(), compare=False
    )
    duration_seconds: float = field(default=0.0, compare=False)

    def classifications(self) -> list[tuple[str, str, str, str, str | None]]:
        return [op.classification for op in self.operations]

    def add(self, operation: FixOperation, error: bool = False) -> None:
        self.operations.append(operation)
        if operation.action == FixAction.CREATED:
            self.summary.total_fixed += 1
        elif operation.action == FixAction.DELETED:
            self.summary.total_deleted += 1
        elif error:
            self.summary.errors += 1
        else:
            self.summary.total_skipped += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "dry_run": self.dry_run,
            "duration_seconds": round(self.duration_seconds, 2),
            "summary": self.summary.to_dict(),
            "operations": [op.to_dict() for op in self.operations],
        }


class RelationshipRepair:
    """
    Repairs incorrect relationship directions from an AuditReport.

    Records for the same stored (type, start, end) triple are processed
    one after another; distinct triples run concurrently up to the
    configured limit. Wrong-direction repairs come first, in audit order,
    followed by the removal of duplicate copies.

    Usage:
        ```python
        auditor = RelationshipAuditor()
        repair = RelationshipRepair()

        report = await auditor.audit()

        # Preview
        preview = await repair.fix(report, dry_run=True)

        # Apply
        result = await repair.fix(report, dry_run=False)
        ```
    """

    def __init__(
        self,
        store: RelationshipStore | None = None,
        schema: RelationshipSchema | None = None,
        concurrency: int | None = None,
    ) -> None:
        self._store = store or RelationshipStore()
        self._schema = schema or get_relationship_schema()
        self._concurrency = concurrency or get_settings().quality.fix_concurrency

    async def fix(self, report: AuditReport, dry_run: bool = True) -> FixReport:
        """
        Repair every incorrect relationship in the report.

        Args:
            report: Audit findings to repair
            dry_run: Predict outcomes without writing

        Returns:
            FixReport with one operation per incorrect relationship and
            per duplicated pair
        """
        start_time = datetime.now(timezone.utc)
        result = FixReport(dry_run=dry_run)
        incorrect = report.incorrect_relationships

        logger.info(
            "Starting relationship fixes",
            mode="DRY-RUN" if dry_run else "EXECUTE",
            incorrect=len(incorrect),
            duplicated_pairs=len(report.duplicate_relationships),
        )

        groups: OrderedDict[tuple[str, str, str], list[int]] = OrderedDict()
        for index, record in enumerate(incorrect):
            groups.setdefault(record.pair_key, []).append(index)

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_group(indexes: list[int]) -> list[tuple[int, tuple[FixOperation, bool]]]:
            async with semaphore:
                done = []
                for position, index in enumerate(indexes):
                    done.append((index, await self._fix_one(incorrect[index], dry_run, position > 0)))
                return done

        async def run_dedupe(duplicate: DuplicateRelationship) -> tuple[FixOperation, bool]:
            async with semaphore:
                return await self._dedupe_one(duplicate, dry_run)

        grouped = await asyncio.gather(*(run_group(indexes) for indexes in groups.values()))
        for _, (operation, error) in sorted((pair for group in grouped for pair in group), key=lambda p: p[0]):
            result.add(operation, error=error)

        for operation, error in await asyncio.gather(*(run_dedupe(d) for d in report.duplicate_relationships)):
            result.add(operation, error=error)

        result.duration_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()

        logger.info(
            "Relationship fixes completed",
            dry_run=dry_run,
            **result.summary.to_dict(),
        )

        return result

    async def _fix_one(
        self,
        record: IncorrectRelationship,
        dry_run: bool,
        pair_handled: bool,
    ) -> tuple[FixOperation, bool]:
        try:
            has_duplicate = record.has_duplicate
            if not record.duplicate_checked:
                direction = self._schema.canonical_direction(record.relationship_type)
                has_duplicate = await self._store.relationship_exists(direction, record.end_id, record.start_id)
            if has_duplicate:
                return await self._delete_wrong(record, dry_run, pair_handled), False
            return await self._swap_direction(record, dry_run, pair_handled), False
        except Exception as e:
            logger.error(
                "Error fixing relationship",
                relationship_type=record.relationship_type.value,
                start_id=record.start_id,
                end_id=record.end_id,
                error=str(e),
            )
            operation = FixOperation(
                relationship_type=record.relationship_type,
                start_id=record.start_id,
                end_id=record.end_id,
                action=FixAction.SKIPPED,
                reason=f"Error: {e}",
                dry_run=dry_run,
            )
            return operation, True

    async def _delete_wrong(
        self,
        record: IncorrectRelationship,
        dry_run: bool,
        pair_handled: bool,
    ) -> FixOperation:
        """Delete a wrong-direction edge whose canonical twin exists."""
        rel_type = record.relationship_type
        operation = FixOperation(rel_type, record.start_id, record.end_id, FixAction.DELETED, dry_run=dry_run)

        # An earlier record for the same triple already removed every such edge
        if pair_handled:
            count = 0
        else:
            count = await self._store.count_relationships(rel_type, record.start_id, record.end_id)

        if count == 0:
            logger.warning(
                "No relationship found to delete",
                relationship_type=rel_type.value,
                start_id=record.start_id,
                end_id=record.end_id,
            )
            operation.action = FixAction.SKIPPED
            operation.reason = REASON_NOT_FOUND
            return operation

        if dry_run:
            logger.info(f"[DRY RUN] Would delete wrong {rel_type.value}: ({record.start_id}) -> ({record.end_id})")
            return operation

        deleted = await self._store.delete_relationships(rel_type, record.start_id, record.end_id)
        if deleted == 0:
            operation.action = FixAction.SKIPPED
            operation.reason = REASON_NOT_FOUND
            return operation

        logger.info(
            "Deleted wrong-direction relationship",
            relationship_type=rel_type.value,
            start_id=record.start_id,
            end_id=record.end_id,
            deleted=deleted,
        )
        return operation

    async def _swap_direction(
        self,
        record: IncorrectRelationship,
        dry_run: bool,
        pair_handled: bool,
    ) -> FixOperation:
        """Recreate a wrong-direction edge in the canonical direction."""
        rel_type = record.relationship_type
        direction = self._schema.canonical_direction(rel_type)
        correct_start_id, correct_end_id = record.end_id, record.start_id
        operation = FixOperation(rel_type, correct_start_id, correct_end_id, FixAction.CREATED, dry_run=dry_run)

        if pair_handled:
            outcome = ReversalOutcome.NOT_FOUND
        elif dry_run:
            probe = await self._store.probe_reversal(direction, record.start_id, record.end_id)
            outcome = probe.outcome
        else:
            outcome = await self._store.reverse_relationship(direction, record.start_id, record.end_id)

        if outcome == ReversalOutcome.NOT_FOUND:
            logger.warning(
                "No relationship found to swap",
                relationship_type=rel_type.value,
                start_id=record.start_id,
                end_id=record.end_id,
            )
            operation.action = FixAction.SKIPPED
            operation.reason = REASON_NOT_FOUND
        elif outcome == ReversalOutcome.ENDPOINT_NOT_FOUND:
            logger.warning(
                "Skipping fix: endpoint not found",
                relationship_type=rel_type.value,
                start_label=direction.start_label.value,
                start_id=correct_start_id,
                end_label=direction.end_label.value,
                end_id=correct_end_id,
            )
            operation.action = FixAction.SKIPPED
            operation.reason = REASON_ENDPOINT_NOT_FOUND
        elif dry_run:
            logger.info(
                f"[DRY RUN] Would fix {rel_type.value}: delete ({record.start_id}) -> ({record.end_id}),"
                f" create ({correct_start_id}) -> ({correct_end_id})",
                properties=record.properties,
            )
        else:
            logger.info(
                "Fixed relationship direction",
                relationship_type=rel_type.value,
                start_id=correct_start_id,
                end_id=correct_end_id,
            )

        return operation

    async def _dedupe_one(self, duplicate: DuplicateRelationship, dry_run: bool) -> tuple[FixOperation, bool]:
        """Keep one copy of a repeated canonical edge and delete the others."""
        rel_type = duplicate.relationship_type
        operation = FixOperation(rel_type, duplicate.start_id, duplicate.end_id, FixAction.DELETED, dry_run=dry_run)

        try:
            if dry_run:
                extra = await self._store.count_relationships(rel_type, duplicate.start_id, duplicate.end_id) - 1
            else:
                extra = await self._store.delete_extra_relationships(rel_type, duplicate.start_id, duplicate.end_id)
        except Exception as e:
            logger.error(
                "Error removing duplicate relationships",
                relationship_type=rel_type.value,
                start_id=duplicate.start_id,
                end_id=duplicate.end_id,
                error=str(e),
            )
            operation.action = FixAction.SKIPPED
            operation.reason = f"Error: {e}"
            return operation, True

        if extra <= 0:
            operation.action = FixAction.SKIPPED
            operation.reason = REASON_NO_EXTRA_COPIES
            return operation, False

        operation.copies_removed = extra
        if dry_run:
            logger.info(
                f"[DRY RUN] Would delete {extra} duplicate {rel_type.value}:"
                f" ({duplicate.start_id}) -> ({duplicate.end_id})"
            )
        else:
            logger.info(
                "Deleted duplicate relationships",
                relationship_type=rel_type.value,
                start_id=duplicate.start_id,
                end_id=duplicate.end_id,
                deleted=extra,
            )
        return operation, False


def format_fix_report(report: FixReport) -> str:
    """Render a fix report for the terminal."""
    s = report.summary
    lines = [
        "=" * 60,
        f"RELATIONSHIP FIX REPORT ({'DRY-RUN' if report.dry_run else 'EXECUTED'})",
        "=" * 60,
        f"Timestamp: {report.timestamp}",
        "",
        f"Fixed (swapped): {s.total_fixed}",
        f"Deleted:         {s.total_deleted}",
        f"Skipped:         {s.total_skipped}",
        f"Errors:          {s.errors}",
    ]

    if report.operations:
        lines += ["", "Operations:"]
        for op in report.operations:
            extra = f", {op.copies_removed} extra" if op.copies_removed else ""
            lines.append(f"  {op.relationship_type.value}: {op.start_id} -> {op.end_id} ({op.action.value}{extra})")
            if op.reason:
                lines.append(f"     Reason: {op.reason}")

    lines.append("=" * 60)
    return "\n".join(lines)


def create_relationship_repair(
    store: RelationshipStore | None = None,
    schema: RelationshipSchema | None = None,
) -> RelationshipRepair:
    """Factory function to create a RelationshipRepair."""
    return RelationshipRepair(store=store, schema=schema)
