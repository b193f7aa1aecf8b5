"""
Catalog Graph Exceptions.
"""


class CatalogGraphError(Exception):
    """Base exception for catalog graph operations."""


class GraphConnectionError(CatalogGraphError):
    """Raised when the graph database cannot be reached."""


class UnknownRelationshipTypeError(CatalogGraphError, ValueError):
    """Raised when a relationship type name is not in the schema registry."""

    def __init__(self, name: str, valid_types: list[str]) -> None:
        self.name = name
        self.valid_types = valid_types
        super().__init__(
            f"Unknown relationship type '{name}'. Valid types: {', '.join(valid_types)}"
        )
