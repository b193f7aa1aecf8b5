"""
Built-in cleanup scripts.
"""

from jinglegraph.cleanup.registry import (
    CleanupContext,
    CleanupScriptRegistry,
    ScriptCategory,
    ScriptMetadata,
)
from jinglegraph.cleanup.scripts import canciones, fabricas, general, jingles, relationships


def register_default_scripts(registry: CleanupScriptRegistry) -> None:
    """Register every built-in script."""
    registry.register(
        ScriptMetadata(
            id=relationships.SCRIPT_ID,
            name="Audit relationship directions",
            description="Finds relationships stored against their canonical direction and endpoint ids "
            "with an unknown format. Automation deletes or swaps the wrong-direction relationships",
            entity_type="general",
            category=ScriptCategory.RELATIONSHIPS,
            automatable=True,
            estimated_duration="5-60s",
        ),
        relationships.find_incorrect_relationship_directions,
        relationships.automate_incorrect_relationship_directions,
    )
    registry.register(
        ScriptMetadata(
            id=fabricas.MISSING_JINGLES_ID,
            name="Find Fabricas where not all Jingles are listed",
            description="Identifies Fabricas where the contents property contains Jingle references "
            "that are not present in the APPEARS_IN relationships",
            entity_type="fabricas",
            category=ScriptCategory.FABRICAS,
            automatable=True,
            estimated_duration="5-30s",
        ),
        fabricas.find_fabricas_missing_jingles,
        fabricas.automate_fabricas_missing_jingles,
    )
    registry.register(
        ScriptMetadata(
            id=fabricas.DUPLICATE_TIMESTAMPS_ID,
            name="Find Fabricas with duplicate timestamps",
            description="Identifies Fabricas where two or more Jingles have the same timestamp, "
            "which may indicate duplicate entries or data entry errors",
            entity_type="fabricas",
            category=ScriptCategory.FABRICAS,
            automatable=False,
            estimated_duration="2-10s",
        ),
        fabricas.find_fabricas_duplicate_timestamps,
    )
    registry.register(
        ScriptMetadata(
            id=jingles.ZERO_TIMESTAMP_ID,
            name="Find Jingles with time-stamp 00:00:00",
            description="Identifies Jingles with zero timestamp, which likely indicates missing "
            "or invalid timestamp data",
            entity_type="jingles",
            category=ScriptCategory.JINGLES,
            automatable=True,
            estimated_duration="2-10s",
        ),
        jingles.find_jingles_zero_timestamp,
        jingles.automate_jingles_zero_timestamp,
    )
    registry.register(
        ScriptMetadata(
            id=jingles.WITHOUT_CANCION_ID,
            name="Find Jingles without Cancion relationship",
            description="Identifies Jingles not linked to any Cancion via VERSIONA relationship",
            entity_type="jingles",
            category=ScriptCategory.JINGLES,
            automatable=False,
            estimated_duration="2-10s",
        ),
        jingles.find_jingles_without_cancion,
    )
    registry.register(
        ScriptMetadata(
            id=canciones.WITHOUT_AUTOR_ID,
            name="Find Cancion without Autor asociado",
            description="Identifies Canciones not linked to any Artista via AUTOR_DE relationship",
            entity_type="canciones",
            category=ScriptCategory.CANCIONES,
            automatable=False,
            estimated_duration="2-10s",
        ),
        canciones.find_cancion_without_autor,
    )
    registry.register(
        ScriptMetadata(
            id=general.REFRESH_ID,
            name="Refresh all redundant properties and empty booleans",
            description="Recalculates redundant properties based on current relationships and sets "
            "default values for empty boolean fields",
            entity_type="general",
            category=ScriptCategory.GENERAL,
            automatable=True,
            estimated_duration="5-30s",
        ),
        general.refresh_redundant_properties,
        general.automate_refresh_redundant_properties,
    )


def create_default_registry(context: CleanupContext | None = None) -> CleanupScriptRegistry:
    """Factory function to create a registry with the built-in scripts."""
    registry = CleanupScriptRegistry(context)
    register_default_scripts(registry)
    return registry
