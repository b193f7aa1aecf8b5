"""
Entity ID Validation.

Classifies an opaque entity id into an entity type without touching the
database. Two id generations coexist in the catalog:

- legacy: three-letter uppercase prefix and a dash (``JIN-...``)
- current: nine characters, a one-letter type prefix plus eight lowercase
  base36 characters (``j3k7p9a2q``)

Fabrica ids are eleven characters with no prefix (video platform ids).
"""

import re
from dataclasses import dataclass
from typing import Any

from jinglegraph.graph.schema import EntityType

LEGACY_ID_PREFIXES: dict[str, EntityType] = {
    "JIN-": EntityType.JINGLE,
    "CAN-": EntityType.CANCION,
    "ART-": EntityType.ARTISTA,
    "TEM-": EntityType.TEMATICA,
    "USU-": EntityType.USUARIO,
}

ID_PREFIXES: dict[str, EntityType] = {
    "j": EntityType.JINGLE,
    "c": EntityType.CANCION,
    "a": EntityType.ARTISTA,
    "t": EntityType.TEMATICA,
    "u": EntityType.USUARIO,
}

PREFIXED_ID_LENGTH = 9
FABRICA_ID_LENGTH = 11

_BASE36_SUFFIX = re.compile(r"^[0-9a-z]{8}$")


@dataclass(frozen=True)
class EntityIdValidation:
    """Result of classifying an entity id."""

    valid: bool
    type: EntityType | None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "type": self.type.value if self.type else None,
            "error": self.error,
        }


def validate_entity_id(entity_id: Any) -> EntityIdValidation:
    """
    Validate an entity id and detect its entity type.

    Args:
        entity_id: The id to classify

    Returns:
        EntityIdValidation with the detected type, or an error message
    """
    if not entity_id or not isinstance(entity_id, str):
        return EntityIdValidation(False, None, "Entity ID is empty or not a string")

    for prefix, entity_type in LEGACY_ID_PREFIXES.items():
        if entity_id.startswith(prefix):
            return EntityIdValidation(True, entity_type)

    if len(entity_id) == PREFIXED_ID_LENGTH:
        first_char = entity_id[0]
        entity_type = ID_PREFIXES.get(first_char)
        if entity_type is None:
            return EntityIdValidation(
                False,
                None,
                f"Unknown prefix '{first_char}' for 9-character ID. "
                f"Expected: {', '.join(sorted(ID_PREFIXES))}",
            )
        if not _BASE36_SUFFIX.match(entity_id[1:]):
            return EntityIdValidation(
                False,
                None,
                f"Invalid format: 9-character ID must have 8 lowercase base36 "
                f"characters after prefix '{first_char}'",
            )
        return EntityIdValidation(True, entity_type)

    if len(entity_id) == FABRICA_ID_LENGTH:
        return EntityIdValidation(True, EntityType.FABRICA)

    return EntityIdValidation(
        False,
        None,
        f"Invalid ID length: {len(entity_id)} characters. "
        f"Expected: 9 (with prefix a/c/j/t/u) or 11 (Fabrica)",
    )


def get_entity_type_from_id(entity_id: Any) -> EntityType | None:
    """Return the entity type of a valid id, None otherwise."""
    return validate_entity_id(entity_id).type


def matches_entity_type(entity_id: Any, expected: EntityType) -> bool:
    """Check whether an id has the format of the expected entity type."""
    return get_entity_type_from_id(entity_id) == expected


def get_valid_prefixes() -> list[str]:
    """Single-letter prefixes of current-format ids."""
    return list(ID_PREFIXES)
