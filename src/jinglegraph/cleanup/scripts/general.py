"""
General cleanup scripts.
"""

from jinglegraph.cleanup.registry import (
    AutomationResult,
    CleanupContext,
    EntityIssue,
    Suggestion,
    SuggestionType,
)
from jinglegraph.graph.sync.redundant_properties import JINGLE_FLAG_DEFAULTS

REFRESH_ID = "refresh-redundant-properties"

FLAGS_FIELD = "flags"


async def refresh_redundant_properties(ctx: CleanupContext) -> list[EntityIssue]:
    """Redundant-property mismatches and Jingles with empty boolean flags."""
    entities: list[EntityIssue] = []

    _, mismatches = await ctx.synchronizer.find_mismatches()
    for mismatch in mismatches:
        data = mismatch.to_dict()
        entities.append(
            EntityIssue(
                entity_type=mismatch.entity_type.value,
                entity_id=mismatch.entity_id,
                entity_title=mismatch.title,
                issue=f"Redundant properties mismatch: {', '.join(mismatch.fields)}",
                current_value=data["current"],
                suggestion=Suggestion(
                    type=SuggestionType.UPDATE,
                    field=",".join(mismatch.fields),
                    recommended_value=data["expected"],
                    automatable=True,
                ),
            )
        )

    for row in await ctx.store.jingles_with_empty_flags(tuple(JINGLE_FLAG_DEFAULTS)):
        empty = row.get("emptyFlags") or []
        entities.append(
            EntityIssue(
                entity_type="jingle",
                entity_id=row["id"],
                entity_title=row.get("title") or "Untitled Jingle",
                issue=f"Empty boolean fields: {', '.join(empty)}",
                current_value={flag: None for flag in empty},
                suggestion=Suggestion(
                    type=SuggestionType.UPDATE,
                    field=FLAGS_FIELD,
                    recommended_value={flag: JINGLE_FLAG_DEFAULTS[flag] for flag in empty},
                    automatable=True,
                ),
            )
        )

    return entities


async def automate_refresh_redundant_properties(
    ctx: CleanupContext,
    entity_ids: list[str],
    apply_low_confidence: bool = False,
) -> AutomationResult:
    """Reconcile redundant properties and fill empty flags for the given entities."""
    result = AutomationResult(script_id=REFRESH_ID, total_requested=len(entity_ids))
    changes: dict[str, dict] = {}

    try:
        _, mismatches = await ctx.synchronizer.find_mismatches(entity_ids=entity_ids)
        flag_rows = await ctx.store.jingles_with_empty_flags(tuple(JINGLE_FLAG_DEFAULTS))
    except Exception as e:
        for entity_id in entity_ids:
            result.fail(entity_id, str(e))
        return result

    failed: set[str] = set()
    for mismatch in mismatches:
        try:
            await ctx.synchronizer.apply_mismatch(mismatch)
            changes.setdefault(mismatch.entity_id, {}).update(mismatch.to_dict()["expected"])
        except Exception as e:
            failed.add(mismatch.entity_id)
            result.fail(mismatch.entity_id, str(e))

    wanted = set(entity_ids)
    for row in flag_rows:
        if row["id"] not in wanted:
            continue
        try:
            filled = await ctx.synchronizer.fill_empty_flags(row["id"], row.get("emptyFlags") or [])
            changes.setdefault(row["id"], {}).update(filled)
        except Exception as e:
            failed.add(row["id"])
            result.fail(row["id"], str(e))

    for entity_id in entity_ids:
        if entity_id in failed:
            continue
        if entity_id in changes:
            result.succeed(entity_id, changes[entity_id])
        else:
            result.skip(entity_id, "Not automatable or no recommended value")

    return result
