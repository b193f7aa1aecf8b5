"""
Cleanup scripts for Fabricas.
"""

import re
from typing import Any

import structlog

from jinglegraph.cleanup.registry import (
    AutomationResult,
    CleanupContext,
    EntityIssue,
    Suggestion,
    SuggestionType,
)
from jinglegraph.graph.schema import NodeLabel, RelationType
from jinglegraph.graph.sync.events import RelationshipChanged, RelationshipOperation
from jinglegraph.graph.sync.timestamps import format_seconds, timestamp_to_seconds

logger = structlog.get_logger(__name__)

MISSING_JINGLES_ID = "find-fabricas-missing-jingles"
DUPLICATE_TIMESTAMPS_ID = "find-fabricas-duplicate-timestamps"

JINGLE_ID_PATTERN = re.compile(r"\bj[a-z0-9]{8}\b")


def referenced_jingle_ids(contents: str | None) -> list[str]:
    """Jingle ids mentioned in a Fabrica's contents, deduplicated in order."""
    if not contents:
        return []
    return list(dict.fromkeys(JINGLE_ID_PATTERN.findall(contents)))


async def _missing_jingle_ids(ctx: CleanupContext, row: dict[str, Any]) -> list[str]:
    linked = set(row.get("linkedJingleIds") or [])
    missing = [j for j in referenced_jingle_ids(row.get("contents")) if j not in linked]
    if not missing:
        return []
    existing = await ctx.store.existing_node_ids(NodeLabel.JINGLE, missing)
    return [j for j in missing if j in existing]


async def find_fabricas_missing_jingles(ctx: CleanupContext) -> list[EntityIssue]:
    """Fabricas whose contents reference Jingles with no APPEARS_IN edge."""
    entities: list[EntityIssue] = []

    for row in await ctx.store.fabrica_contents():
        missing = await _missing_jingle_ids(ctx, row)
        if not missing:
            continue
        entities.append(
            EntityIssue(
                entity_type="fabrica",
                entity_id=row["id"],
                entity_title=row.get("title") or "Untitled Fabrica",
                issue=f"Missing APPEARS_IN relationships for {len(missing)} Jingle(s) referenced in contents",
                current_value={
                    "referenced_jingles": missing,
                    "existing_relationships": len(row.get("linkedJingleIds") or []),
                },
                suggestion=Suggestion(
                    type=SuggestionType.RELATIONSHIP,
                    field=RelationType.APPEARS_IN.value,
                    recommended_value=missing,
                    automatable=True,
                ),
            )
        )

    return entities


async def automate_fabricas_missing_jingles(
    ctx: CleanupContext,
    entity_ids: list[str],
    apply_low_confidence: bool = False,
) -> AutomationResult:
    """Create the missing APPEARS_IN edges with timestamp 0."""
    result = AutomationResult(script_id=MISSING_JINGLES_ID, total_requested=len(entity_ids))
    direction = ctx.auditor.schema.canonical_direction(RelationType.APPEARS_IN)

    rows = await ctx.store.fabrica_contents(entity_ids)
    returned = {row["id"] for row in rows}
    for fabrica_id in entity_ids:
        if fabrica_id not in returned:
            result.skip(fabrica_id, "Fabrica not found or has no contents")

    for row in rows:
        fabrica_id = row["id"]
        try:
            if not referenced_jingle_ids(row.get("contents")):
                result.skip(fabrica_id, "No Jingle IDs found in contents")
                continue

            missing = await _missing_jingle_ids(ctx, row)
            if not missing:
                result.skip(fabrica_id, "No missing relationships found")
                continue

            created: list[str] = []
            for jingle_id in missing:
                try:
                    if await ctx.store.create_relationship(direction, jingle_id, fabrica_id, {"timestamp": 0}):
                        created.append(jingle_id)
                except Exception as e:
                    logger.error(
                        "Failed to create APPEARS_IN",
                        jingle_id=jingle_id,
                        fabrica_id=fabrica_id,
                        error=str(e),
                    )

            if not created:
                result.fail(fabrica_id, "Failed to create any relationships")
                continue

            for jingle_id in created:
                await ctx.bus.publish(
                    RelationshipChanged(RelationType.APPEARS_IN, jingle_id, fabrica_id, RelationshipOperation.CREATE)
                )
            result.succeed(fabrica_id, {"created_relationships": len(created), "jingle_ids": created})
        except Exception as e:
            result.fail(fabrica_id, str(e))

    return result


async def find_fabricas_duplicate_timestamps(ctx: CleanupContext) -> list[EntityIssue]:
    """Fabricas where two or more Jingles share a timestamp."""
    fabricas: dict[str, dict[str, Any]] = {}

    for edge in await ctx.store.appears_in_edges():
        fabrica = fabricas.setdefault(
            edge["fabricaId"], {"title": edge.get("fabricaTitle"), "by_seconds": {}}
        )
        seconds = timestamp_to_seconds(edge.get("timestamp"))
        fabrica["by_seconds"].setdefault(seconds or 0, []).append(edge)

    entities: list[EntityIssue] = []
    for fabrica_id, fabrica in fabricas.items():
        duplicates = [
            {
                "timestamp": seconds,
                "timestamp_formatted": format_seconds(seconds),
                "jingle_ids": [e["jingleId"] for e in edges],
                "jingle_titles": [e.get("jingleTitle") for e in edges],
            }
            for seconds, edges in sorted(fabrica["by_seconds"].items())
            if len(edges) > 1
        ]
        if not duplicates:
            continue
        entities.append(
            EntityIssue(
                entity_type="fabrica",
                entity_id=fabrica_id,
                entity_title=fabrica["title"] or "Untitled Fabrica",
                issue=f"Found {len(duplicates)} timestamp(s) with duplicate Jingles",
                current_value={
                    "duplicates": duplicates,
                    "total_duplicate_jingles": sum(len(d["jingle_ids"]) for d in duplicates),
                },
                suggestion=Suggestion(type=SuggestionType.UPDATE, field="timestamp", automatable=False),
            )
        )

    return entities
