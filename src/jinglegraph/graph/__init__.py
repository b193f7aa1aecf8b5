"""
Catalog Graph Module.

Neo4j access, relationship schema and entity id validation for the
jingle catalog graph.
"""

from jinglegraph.graph.entity_ids import (
    EntityIdValidation,
    get_entity_type_from_id,
    get_valid_prefixes,
    matches_entity_type,
    validate_entity_id,
)
from jinglegraph.graph.exceptions import (
    CatalogGraphError,
    GraphConnectionError,
    UnknownRelationshipTypeError,
)
from jinglegraph.graph.neo4j_client import (
    CatalogGraphClient,
    get_catalog_client,
)
from jinglegraph.graph.schema import (
    EntityType,
    NodeLabel,
    RelationshipDirection,
    RelationshipRecord,
    RelationshipSchema,
    RelationType,
    get_relationship_schema,
)
from jinglegraph.graph.store import RelationshipStore, ReversalOutcome

__all__ = [
    # Schema
    "EntityType",
    "NodeLabel",
    "RelationType",
    "RelationshipDirection",
    "RelationshipRecord",
    "RelationshipSchema",
    "get_relationship_schema",
    # Entity ids
    "EntityIdValidation",
    "validate_entity_id",
    "get_entity_type_from_id",
    "matches_entity_type",
    "get_valid_prefixes",
    # Client
    "CatalogGraphClient",
    "get_catalog_client",
    "RelationshipStore",
    "ReversalOutcome",
    # Errors
    "CatalogGraphError",
    "GraphConnectionError",
    "UnknownRelationshipTypeError",
]
