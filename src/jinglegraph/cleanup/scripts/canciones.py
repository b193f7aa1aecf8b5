"""
Cleanup scripts for Canciones.
"""

from jinglegraph.cleanup.registry import CleanupContext, EntityIssue, Suggestion, SuggestionType
from jinglegraph.graph.schema import RelationType

WITHOUT_AUTOR_ID = "find-cancion-without-autor"


async def find_cancion_without_autor(ctx: CleanupContext) -> list[EntityIssue]:
    """Canciones no Artista is linked to through AUTOR_DE."""
    direction = ctx.auditor.schema.canonical_direction(RelationType.AUTOR_DE)
    rows = await ctx.store.nodes_without_relationship(direction, anchor_is_start=False)
    return [
        EntityIssue(
            entity_type="cancion",
            entity_id=row["id"],
            entity_title=row.get("title"),
            issue="Missing AUTOR_DE relationship - no Artista linked",
            suggestion=Suggestion(
                type=SuggestionType.RELATIONSHIP,
                field=RelationType.AUTOR_DE.value,
                automatable=False,
            ),
        )
        for row in rows
    ]
