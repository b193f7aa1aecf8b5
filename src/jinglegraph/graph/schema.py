"""
Graph Schema Models.

Defines node labels, entity types, relationship types and the canonical
direction of every relationship type in the catalog graph.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field

from jinglegraph.graph.exceptions import UnknownRelationshipTypeError


class NodeLabel(str, Enum):
    """Node labels in the catalog graph."""

    JINGLE = "Jingle"
    CANCION = "Cancion"
    ARTISTA = "Artista"
    TEMATICA = "Tematica"
    USUARIO = "Usuario"
    FABRICA = "Fabrica"


class EntityType(str, Enum):
    """Entity types as detected from an entity id (singular, lowercase)."""

    JINGLE = "jingle"
    CANCION = "cancion"
    ARTISTA = "artista"
    TEMATICA = "tematica"
    USUARIO = "usuario"
    FABRICA = "fabrica"

    @property
    def label(self) -> NodeLabel:
        return NodeLabel[self.name]

    @property
    def plural(self) -> str:
        return _PLURALS[self]

    @classmethod
    def normalize(cls, value: "str | EntityType | NodeLabel | None") -> "EntityType | None":
        """
        Normalize an entity type spelling.

        Accepts singular ('jingle'), plural ('jingles') and label ('Jingle')
        spellings. Returns None for anything unrecognized.
        """
        if value is None:
            return None
        if isinstance(value, EntityType):
            return value
        if isinstance(value, NodeLabel):
            return cls[value.name]
        return _SPELLINGS.get(str(value).strip().lower())


_PLURALS: dict[EntityType, str] = {
    EntityType.JINGLE: "jingles",
    EntityType.CANCION: "canciones",
    EntityType.ARTISTA: "artistas",
    EntityType.TEMATICA: "tematicas",
    EntityType.USUARIO: "usuarios",
    EntityType.FABRICA: "fabricas",
}

_SPELLINGS: dict[str, EntityType] = {
    **{t.value: t for t in EntityType},
    **{plural: t for t, plural in _PLURALS.items()},
}


class RelationType(str, Enum):
    """Relationship types in the catalog graph (storage spelling)."""

    APPEARS_IN = "APPEARS_IN"    # Jingle appears in a Fabrica
    JINGLERO_DE = "JINGLERO_DE"  # Artista performs a Jingle
    AUTOR_DE = "AUTOR_DE"        # Artista authored a Cancion
    VERSIONA = "VERSIONA"        # Jingle is a version of a Cancion
    TAGGED_WITH = "TAGGED_WITH"  # Jingle tagged with a Tematica
    SOY_YO = "SOY_YO"            # Usuario claims to be an Artista
    REACCIONA_A = "REACCIONA_A"  # Usuario reacts to a Jingle

    @property
    def key(self) -> str:
        """Canonical snake_case key used by the CLI and the admin API."""
        return self.value.lower()


@dataclass(frozen=True)
class RelationshipDirection:
    """Canonical (start, end) direction of a relationship type."""

    relation_type: RelationType
    start: EntityType
    end: EntityType

    @property
    def start_label(self) -> NodeLabel:
        return self.start.label

    @property
    def end_label(self) -> NodeLabel:
        return self.end.label

    def to_dict(self) -> dict[str, Any]:
        return {
            "relationship_type": self.relation_type.value,
            "start": self.start.plural,
            "end": self.end.plural,
            "start_label": self.start_label.value,
            "end_label": self.end_label.value,
        }


class RelationshipSchema:
    """
    Immutable registry of relationship types and their canonical directions.

    Built once at startup and handed to the audit and fix engines.

    Usage:
        ```python
        schema = get_relationship_schema()

        direction = schema.canonical_direction("appears_in")
        schema.is_direction_correct("APPEARS_IN", "jingles", "fabrica")  # True
        ```
    """

    def __init__(self, directions: list[RelationshipDirection]) -> None:
        self._directions: Mapping[RelationType, RelationshipDirection] = MappingProxyType(
            {d.relation_type: d for d in directions}
        )

    def resolve(self, relationship_type: "str | RelationType") -> RelationType:
        """
        Resolve a canonical key ('appears_in') or storage type ('APPEARS_IN').

        Raises:
            UnknownRelationshipTypeError: If the name is not a registered type
        """
        if isinstance(relationship_type, RelationType):
            rel_type = relationship_type
        else:
            try:
                rel_type = RelationType(str(relationship_type).strip().upper())
            except ValueError:
                raise UnknownRelationshipTypeError(str(relationship_type), self.keys()) from None

        if rel_type not in self._directions:
            raise UnknownRelationshipTypeError(rel_type.value, self.keys())
        return rel_type

    def canonical_direction(self, relationship_type: "str | RelationType") -> RelationshipDirection:
        return self._directions[self.resolve(relationship_type)]

    def all_types(self) -> list[RelationType]:
        return list(self._directions)

    def keys(self) -> list[str]:
        return [t.key for t in self._directions]

    def is_direction_correct(
        self,
        relationship_type: "str | RelationType",
        start_type: "str | EntityType | NodeLabel | None",
        end_type: "str | EntityType | NodeLabel | None",
    ) -> bool:
        """
        Check a (start, end) pair against the canonical direction.

        Entity types may be spelled singular, plural or as labels.
        Unrecognized spellings are never correct.
        """
        direction = self.canonical_direction(relationship_type)
        start = EntityType.normalize(start_type)
        end = EntityType.normalize(end_type)

        if start is None or end is None:
            return False

        return direction.start == start and direction.end == end

    def to_dict(self) -> dict[str, Any]:
        return {t.key: d.to_dict() for t, d in self._directions.items()}


CANONICAL_DIRECTIONS: tuple[RelationshipDirection, ...] = (
    RelationshipDirection(RelationType.APPEARS_IN, EntityType.JINGLE, EntityType.FABRICA),
    RelationshipDirection(RelationType.JINGLERO_DE, EntityType.ARTISTA, EntityType.JINGLE),
    RelationshipDirection(RelationType.AUTOR_DE, EntityType.ARTISTA, EntityType.CANCION),
    RelationshipDirection(RelationType.VERSIONA, EntityType.JINGLE, EntityType.CANCION),
    RelationshipDirection(RelationType.TAGGED_WITH, EntityType.JINGLE, EntityType.TEMATICA),
    RelationshipDirection(RelationType.SOY_YO, EntityType.USUARIO, EntityType.ARTISTA),
    RelationshipDirection(RelationType.REACCIONA_A, EntityType.USUARIO, EntityType.JINGLE),
)

_schema: RelationshipSchema | None = None


def get_relationship_schema() -> RelationshipSchema:
    """Get the singleton RelationshipSchema instance."""
    global _schema
    if _schema is None:
        _schema = RelationshipSchema(list(CANONICAL_DIRECTIONS))
    return _schema


class RelationshipRecord(BaseModel):
    """A persisted relationship with its endpoints, as read from the graph."""

    rel_type: RelationType = Field(..., description="Relationship type")
    start_id: Any = Field(default=None, description="Start node id")
    start_labels: list[str] = Field(default_factory=list, description="Start node labels")
    end_id: Any = Field(default=None, description="End node id")
    end_labels: list[str] = Field(default_factory=list, description="End node labels")
    properties: dict[str, Any] = Field(default_factory=dict, description="Relationship properties")
