"""
Relationship Direction Audit.

Read-only scan of catalog relationships:
- Endpoint ids that match no known id format
- Relationships stored against their canonical direction
- Whether a correctly directed twin already exists for each of those
- Extra copies of a correctly directed relationship between the same pair
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from jinglegraph.config.settings import get_settings
from jinglegraph.graph.entity_ids import validate_entity_id
from jinglegraph.graph.schema import (
    EntityType,
    RelationshipRecord,
    RelationshipSchema,
    RelationType,
    get_relationship_schema,
)
from jinglegraph.graph.store import RelationshipStore
from jinglegraph.observability.logging import LogContext

logger = structlog.get_logger(__name__)


class NodePosition(str, Enum):
    """Which endpoint of a relationship a finding refers to."""

    START = "start"
    END = "end"


@dataclass
class IncorrectRelationship:
    """A relationship stored against its canonical direction."""

    relationship_type: RelationType
    start_id: str
    start_type: EntityType
    end_id: str
    end_type: EntityType
    expected_start_type: EntityType
    expected_end_type: EntityType
    start_label: str | None = None
    end_label: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    has_duplicate: bool = False
    # False when the twin lookup failed; the fix pass looks again
    duplicate_checked: bool = True

    @property
    def pair_key(self) -> tuple[str, str, str]:
        """Identity of the stored (type, start, end) triple."""
        return (self.relationship_type.value, self.start_id, self.end_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "relationship_type": self.relationship_type.value,
            "start": {
                "id": self.start_id,
                "type": self.start_type.value,
                "label": self.start_label,
            },
            "end": {
                "id": self.end_id,
                "type": self.end_type.value,
                "label": self.end_label,
            },
            "expected_start_type": self.expected_start_type.value,
            "expected_end_type": self.expected_end_type.value,
            "properties": self.properties,
            "has_duplicate": self.has_duplicate,
            "duplicate_checked": self.duplicate_checked,
        }


@dataclass
class DuplicateRelationship:
    """Several correctly directed edges of one type between the same pair."""

    relationship_type: RelationType
    start_id: str
    end_id: str
    copies: int
    start_label: str | None = None
    end_label: str | None = None

    @property
    def extra_copies(self) -> int:
        return self.copies - 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "relationship_type": self.relationship_type.value,
            "start_id": self.start_id,
            "start_label": self.start_label,
            "end_id": self.end_id,
            "end_label": self.end_label,
            "copies": self.copies,
        }


@dataclass
class InvalidNodeId:
    """An endpoint id that matches no known id format."""

    node_id: Any
    relationship_type: RelationType
    position: NodePosition
    error: str
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "relationship_type": self.relationship_type.value,
            "position": self.position.value,
            "label": self.label,
            "error": self.error,
        }


@dataclass
class AuditSummary:
    """Aggregate counts of an audit pass."""

    total_relationships: int = 0
    correct: int = 0
    incorrect: int = 0
    duplicates: int = 0
    duplicate_edges: int = 0
    invalid_ids: int = 0

    def merge(self, other: "AuditSummary") -> None:
        self.total_relationships += other.total_relationships
        self.correct += other.correct
        self.incorrect += other.incorrect
        self.duplicates += other.duplicates
        self.duplicate_edges += other.duplicate_edges
        self.invalid_ids += other.invalid_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_relationships": self.total_relationships,
            "correct": self.correct,
            "incorrect": self.incorrect,
            "duplicates": self.duplicates,
            "duplicate_edges": self.duplicate_edges,
            "invalid_ids": self.invalid_ids,
        }


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditReport:
    """
    Result of an audit pass.

    ``timestamp`` and ``duration_seconds`` do not take part in equality, so
    two audits of an unchanged graph compare equal.
    """

    relationship_types: list[RelationType] = field(default_factory=list)
    summary: AuditSummary = field(default_factory=AuditSummary)
    incorrect_relationships: list[IncorrectRelationship] = field(default_factory=list)
    duplicate_relationships: list[DuplicateRelationship] = field(default_factory=list)
    invalid_node_ids: list[InvalidNodeId] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=_utc_now_iso, compare=False)
    duration_seconds: float = field(default=0.0, compare=False)

    @property
    def has_findings(self) -> bool:
        return bool(self.incorrect_relationships or self.duplicate_relationships or self.invalid_node_ids)

    @property
    def needs_repair(self) -> bool:
        """True if the fix pass has anything to do."""
        return bool(self.incorrect_relationships or self.duplicate_relationships)

    def merge(self, other: "AuditReport") -> None:
        self.summary.merge(other.summary)
        self.incorrect_relationships.extend(other.incorrect_relationships)
        self.duplicate_relationships.extend(other.duplicate_relationships)
        self.invalid_node_ids.extend(other.invalid_node_ids)
        self.errors.extend(other.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "duration_seconds": round(self.duration_seconds, 2),
            "relationship_types": [t.key for t in self.relationship_types],
            "summary": self.summary.to_dict(),
            "incorrect_relationships": [r.to_dict() for r in self.incorrect_relationships],
            "duplicate_relationships": [d.to_dict() for d in self.duplicate_relationships],
            "invalid_node_ids": [i.to_dict() for i in self.invalid_node_ids],
            "errors": self.errors,
        }


class RelationshipAuditor:
    """
    Audits relationship directions against the canonical schema.

    Each relationship type is read in one bulk query. Endpoint ids are
    classified locally; only incorrect relationships cost an extra
    existence query for their correctly directed twin.

    Usage:
        ```python
        auditor = RelationshipAuditor()

        report = await auditor.audit()
        print(report.summary.incorrect)

        # Restrict to some types
        report = await auditor.audit(["appears_in", "versiona"])
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
        self._concurrency = concurrency or get_settings().quality.audit_concurrency

    @property
    def schema(self) -> RelationshipSchema:
        return self._schema

    def resolve_types(self, relationship_types: list[str | RelationType] | None = None) -> list[RelationType]:
        """
        Resolve requested type names, defaulting to every registered type.

        Raises:
            UnknownRelationshipTypeError: If any name is not registered
        """
        if not relationship_types:
            return self._schema.all_types()

        resolved: list[RelationType] = []
        for name in relationship_types:
            rel_type = self._schema.resolve(name)
            if rel_type not in resolved:
                resolved.append(rel_type)
        return resolved

    async def audit(self, relationship_types: list[str | RelationType] | None = None) -> AuditReport:
        """
        Audit the given relationship types (all types by default).

        A failure reading one type is recorded in ``report.errors`` and the
        other types are still audited.

        Returns:
            AuditReport with counts and per-record findings
        """
        types = self.resolve_types(relationship_types)
        start_time = datetime.now(timezone.utc)
        report = AuditReport(relationship_types=types)

        logger.info("Starting relationship audit", relationship_types=[t.value for t in types])

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run(rel_type: RelationType) -> AuditReport:
            async with semaphore:
                return await self.audit_relationship_type(rel_type)

        partials = await asyncio.gather(*(run(t) for t in types))
        for partial in partials:
            report.merge(partial)

        report.duration_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()

        logger.info(
            "Relationship audit completed",
            total=report.summary.total_relationships,
            correct=report.summary.correct,
            incorrect=report.summary.incorrect,
            duplicates=report.summary.duplicates,
            invalid_ids=report.summary.invalid_ids,
            errors=len(report.errors),
            duration_s=round(report.duration_seconds, 2),
        )

        return report

    async def audit_relationship_type(self, rel_type: RelationType) -> AuditReport:
        """Audit a single relationship type."""
        partial = AuditReport(relationship_types=[rel_type])

        with LogContext(relationship_type=rel_type.value):
            try:
                records = await self._store.fetch_relationships(rel_type)
            except Exception as e:
                partial.errors.append(f"{rel_type.value}: {e}")
                logger.error("Failed to read relationships", error=str(e))
                return partial

            partial.summary.total_relationships = len(records)

            correct: OrderedDict[tuple[str, str], list[RelationshipRecord]] = OrderedDict()
            for record in records:
                if await self._check_record(record, partial):
                    correct.setdefault((record.start_id, record.end_id), []).append(record)

            for copies in correct.values():
                partial.summary.correct += 1
                if len(copies) > 1:
                    partial.duplicate_relationships.append(_duplicate_of(copies))
                    partial.summary.duplicate_edges += len(copies) - 1

            logger.debug(
                "Relationship type audited",
                total=partial.summary.total_relationships,
                incorrect=partial.summary.incorrect,
                duplicate_edges=partial.summary.duplicate_edges,
            )

        return partial

    async def _check_record(self, record: RelationshipRecord, partial: AuditReport) -> bool:
        """Record findings for one edge; True if it is correctly directed."""
        rel_type = record.rel_type
        start_label = record.start_labels[0] if record.start_labels else None
        end_label = record.end_labels[0] if record.end_labels else None

        start_check = validate_entity_id(record.start_id)
        end_check = validate_entity_id(record.end_id)

        if not start_check.valid:
            partial.invalid_node_ids.append(
                InvalidNodeId(record.start_id, rel_type, NodePosition.START, start_check.error or "", start_label)
            )
            partial.summary.invalid_ids += 1
        if not end_check.valid:
            partial.invalid_node_ids.append(
                InvalidNodeId(record.end_id, rel_type, NodePosition.END, end_check.error or "", end_label)
            )
            partial.summary.invalid_ids += 1
        if not (start_check.valid and end_check.valid):
            return False

        if self._schema.is_direction_correct(rel_type, start_check.type, end_check.type):
            return True

        direction = self._schema.canonical_direction(rel_type)
        finding = IncorrectRelationship(
            relationship_type=rel_type,
            start_id=record.start_id,
            start_type=start_check.type,
            end_id=record.end_id,
            end_type=end_check.type,
            expected_start_type=direction.start,
            expected_end_type=direction.end,
            start_label=start_label,
            end_label=end_label,
            properties=dict(record.properties),
        )

        # The canonical twin runs between the same nodes with endpoints swapped
        try:
            finding.has_duplicate = await self._store.relationship_exists(
                direction, record.end_id, record.start_id
            )
        except Exception as e:
            finding.duplicate_checked = False
            partial.errors.append(f"{rel_type.value} {record.start_id}->{record.end_id}: {e}")
            logger.error(
                "Duplicate check failed",
                start_id=record.start_id,
                end_id=record.end_id,
                error=str(e),
            )

        partial.incorrect_relationships.append(finding)
        partial.summary.incorrect += 1
        if finding.has_duplicate:
            partial.summary.duplicates += 1
        return False


def _duplicate_of(copies: list[RelationshipRecord]) -> DuplicateRelationship:
    first = copies[0]
    return DuplicateRelationship(
        relationship_type=first.rel_type,
        start_id=first.start_id,
        end_id=first.end_id,
        copies=len(copies),
        start_label=first.start_labels[0] if first.start_labels else None,
        end_label=first.end_labels[0] if first.end_labels else None,
    )


def format_audit_report(report: AuditReport) -> str:
    """Render an audit report for the terminal."""
    s = report.summary
    lines = [
        "=" * 60,
        "RELATIONSHIP AUDIT REPORT",
        "=" * 60,
        f"Timestamp: {report.timestamp}",
        f"Relationship types: {', '.join(t.key for t in report.relationship_types)}",
        "",
        f"Total relationships: {s.total_relationships}",
        f"Correct:             {s.correct}",
        f"Incorrect:           {s.incorrect}",
        f"  with duplicate:    {s.duplicates}",
        f"Duplicate copies:    {s.duplicate_edges}",
        f"Invalid ids:         {s.invalid_ids}",
    ]

    if report.incorrect_relationships:
        lines += ["", "Incorrect relationships:"]
        for r in report.incorrect_relationships:
            if r.has_duplicate:
                action = "delete (duplicate exists)"
            elif not r.duplicate_checked:
                action = "duplicate check failed, re-checked at fix time"
            else:
                action = "swap direction"
            lines.append(
                f"  [{r.relationship_type.value}] ({r.start_type.value} {r.start_id})"
                f" -> ({r.end_type.value} {r.end_id});"
                f" expected {r.expected_start_type.value} -> {r.expected_end_type.value}; {action}"
            )

    if report.duplicate_relationships:
        lines += ["", "Duplicate relationships:"]
        for d in report.duplicate_relationships:
            lines.append(
                f"  [{d.relationship_type.value}] ({d.start_id}) -> ({d.end_id});"
                f" {d.copies} copies, keep 1"
            )

    if report.invalid_node_ids:
        lines += ["", "Invalid node ids:"]
        for i in report.invalid_node_ids:
            lines.append(
                f"  [{i.relationship_type.value}] {i.position.value} {i.node_id!r}: {i.error}"
            )

    if report.errors:
        lines += ["", "Errors:"]
        lines += [f"  {e}" for e in report.errors]

    lines.append("=" * 60)
    return "\n".join(lines)


def create_relationship_auditor(
    store: RelationshipStore | None = None,
    schema: RelationshipSchema | None = None,
) -> RelationshipAuditor:
    """Factory function to create a RelationshipAuditor."""
    return RelationshipAuditor(store=store, schema=schema)
