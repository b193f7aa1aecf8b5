"""
Cleanup scripts for Jingles.
"""

from typing import Any

from jinglegraph.cleanup.registry import (
    AutomationResult,
    CleanupContext,
    EntityIssue,
    Suggestion,
    SuggestionType,
)
from jinglegraph.graph.schema import RelationType
from jinglegraph.graph.sync.events import RelationshipChanged, RelationshipOperation
from jinglegraph.graph.sync.timestamps import (
    format_seconds,
    parse_timestamp_from_text,
    timestamp_to_seconds,
)

ZERO_TIMESTAMP_ID = "find-jingles-zero-timestamp"
WITHOUT_CANCION_ID = "find-jingles-without-cancion"


def suggest_timestamp(edge: dict[str, Any]) -> tuple[str | None, str | None]:
    """Timestamp found in the Jingle comment, else its title, with its source."""
    from_comment = parse_timestamp_from_text(edge.get("jingleComment"))
    if from_comment:
        return from_comment, "comentario"
    from_title = parse_timestamp_from_text(edge.get("jingleTitle"))
    if from_title:
        return from_title, "titulo"
    return None, None


def _is_zero(edge: dict[str, Any]) -> bool:
    return not timestamp_to_seconds(edge.get("timestamp"))


async def find_jingles_zero_timestamp(ctx: CleanupContext) -> list[EntityIssue]:
    """APPEARS_IN edges with a missing or 00:00:00 timestamp."""
    entities: list[EntityIssue] = []

    for edge in await ctx.store.appears_in_edges():
        if not _is_zero(edge):
            continue

        suggested, source = suggest_timestamp(edge)
        seconds = timestamp_to_seconds(suggested) if suggested else None

        issue = f"Timestamp is 00:00:00 (or null) in Fabrica {edge['fabricaId']}"
        if suggested:
            issue += f". Found parseable timestamp {suggested} in {source}"

        entities.append(
            EntityIssue(
                entity_type="jingle",
                entity_id=edge["jingleId"],
                entity_title=edge.get("jingleTitle") or "Untitled Jingle",
                issue=issue,
                current_value=format_seconds(0),
                suggestion=Suggestion(
                    type=SuggestionType.UPDATE,
                    field="timestamp",
                    recommended_value=seconds,
                    automatable=bool(seconds),
                ),
            )
        )

    return entities


async def automate_jingles_zero_timestamp(
    ctx: CleanupContext,
    entity_ids: list[str],
    apply_low_confidence: bool = False,
) -> AutomationResult:
    """Apply the timestamp parsed from comment or title, then reorder the Fabrica."""
    result = AutomationResult(script_id=ZERO_TIMESTAMP_ID, total_requested=len(entity_ids))

    for edge in await ctx.store.appears_in_edges(entity_ids):
        if not _is_zero(edge):
            continue

        jingle_id = edge["jingleId"]
        fabrica_id = edge["fabricaId"]
        try:
            suggested, _ = suggest_timestamp(edge)
            seconds = timestamp_to_seconds(suggested) if suggested else None
            if not seconds:
                result.skip(jingle_id, "No parseable timestamp found in title or comment")
                continue

            if not await ctx.store.set_appears_in_timestamp(jingle_id, fabrica_id, seconds):
                result.fail(jingle_id, "Relationship not found or update failed")
                continue

            await ctx.bus.publish(
                RelationshipChanged(
                    RelationType.APPEARS_IN,
                    jingle_id,
                    fabrica_id,
                    RelationshipOperation.UPDATE,
                    timestamp_changed=True,
                )
            )
            result.succeed(jingle_id, {"timestamp": seconds, "timestamp_formatted": suggested})
        except Exception as e:
            result.fail(jingle_id, str(e))

    return result


async def find_jingles_without_cancion(ctx: CleanupContext) -> list[EntityIssue]:
    """Jingles with no VERSIONA edge to a Cancion."""
    direction = ctx.auditor.schema.canonical_direction(RelationType.VERSIONA)
    rows = await ctx.store.nodes_without_relationship(direction, anchor_is_start=True)
    return [
        EntityIssue(
            entity_type="jingle",
            entity_id=row["id"],
            entity_title=row.get("title") or "Untitled Jingle",
            issue="Missing VERSIONA relationship - no Cancion linked",
            suggestion=Suggestion(
                type=SuggestionType.RELATIONSHIP,
                field=RelationType.VERSIONA.value,
                automatable=False,
            ),
        )
        for row in rows
    ]
