"""
Cleanup script for relationship directions.
"""

from jinglegraph.cleanup.registry import (
    AutomationResult,
    CleanupContext,
    EntityIssue,
    Suggestion,
    SuggestionType,
)
from jinglegraph.graph.integrity.relationship_audit import AuditReport
from jinglegraph.graph.integrity.relationship_repair import FixAction
from jinglegraph.graph.sync.events import RelationshipChanged, RelationshipOperation

SCRIPT_ID = "audit-relationship-directions"


async def find_incorrect_relationship_directions(ctx: CleanupContext) -> list[EntityIssue]:
    """Wrong-direction relationships and invalid endpoint ids, keyed by start node."""
    report = await ctx.auditor.audit()
    entities: list[EntityIssue] = []

    for record in report.incorrect_relationships:
        action = "delete" if record.has_duplicate else "swap"
        entities.append(
            EntityIssue(
                entity_type=record.start_type.value,
                entity_id=record.start_id,
                issue=(
                    f"{record.relationship_type.value} stored as "
                    f"{record.start_type.value} -> {record.end_type.value}, expected "
                    f"{record.expected_start_type.value} -> {record.expected_end_type.value}"
                ),
                current_value=record.to_dict(),
                suggestion=Suggestion(
                    type=SuggestionType.DELETE if record.has_duplicate else SuggestionType.RELATIONSHIP,
                    field=record.relationship_type.value,
                    recommended_value={"action": action, "start_id": record.end_id, "end_id": record.start_id},
                    automatable=True,
                ),
            )
        )

    for invalid in report.invalid_node_ids:
        entities.append(
            EntityIssue(
                entity_type=invalid.label or "unknown",
                entity_id=str(invalid.node_id),
                issue=f"Invalid id at {invalid.position.value} of {invalid.relationship_type.value}: {invalid.error}",
                current_value=invalid.to_dict(),
                suggestion=Suggestion(type=SuggestionType.UPDATE, field="id", automatable=False),
            )
        )

    return entities


async def automate_incorrect_relationship_directions(
    ctx: CleanupContext,
    entity_ids: list[str],
    apply_low_confidence: bool = False,
) -> AutomationResult:
    """Repair wrong-direction relationships touching the given entities."""
    result = AutomationResult(script_id=SCRIPT_ID, total_requested=len(entity_ids))
    wanted = set(entity_ids)

    audit = await ctx.auditor.audit()
    selected = AuditReport(
        relationship_types=audit.relationship_types,
        incorrect_relationships=[
            r for r in audit.incorrect_relationships if r.start_id in wanted or r.end_id in wanted
        ],
    )

    fixed = await ctx.repair.fix(selected, dry_run=False)

    for record, operation in zip(selected.incorrect_relationships, fixed.operations):
        if operation.action == FixAction.SKIPPED:
            if operation.reason and operation.reason.startswith("Error:"):
                result.fail(record.start_id, operation.reason)
            else:
                result.skip(record.start_id, operation.reason or "skipped")
            continue

        result.succeed(record.start_id, operation.to_dict())
        if operation.action == FixAction.CREATED:
            await ctx.bus.publish(
                RelationshipChanged(
                    operation.relationship_type,
                    operation.start_id,
                    operation.end_id,
                    RelationshipOperation.CREATE,
                )
            )

    touched = {r.start_id for r in selected.incorrect_relationships}
    touched |= {r.end_id for r in selected.incorrect_relationships}
    for entity_id in sorted(wanted - touched):
        result.skip(entity_id, "No incorrect relationships found")

    return result
