"""
Pytest Configuration and Shared Fixtures.

This module provides shared fixtures for testing the catalog graph
integrity subsystem.
"""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fakes import (
    ARTISTA_1,
    ARTISTA_2,
    CANCION_1,
    FABRICA_1,
    FABRICA_2,
    JINGLE_1,
    JINGLE_2,
    JINGLE_3,
    TEMATICA_1,
    USUARIO_1,
    InMemoryRelationshipStore,
)
from jinglegraph.config.settings import Settings, get_settings
from jinglegraph.graph.neo4j_client import CatalogGraphClient
from jinglegraph.graph.schema import NodeLabel, RelationshipSchema, RelationType, get_relationship_schema

# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Generator[Settings, None, None]:
    """Provide test settings with mock values."""
    with patch.dict(
        "os.environ",
        {
            "NEO4J_URI": "bolt://localhost:7687",
            "NEO4J_USERNAME": "neo4j",
            "NEO4J_PASSWORD": "password123",
            "QUALITY_AUDIT_CONCURRENCY": "2",
            "QUALITY_FIX_CONCURRENCY": "2",
        },
    ):
        # Clear cache and get fresh settings
        get_settings.cache_clear()
        yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def schema() -> RelationshipSchema:
    return get_relationship_schema()


# =============================================================================
# Neo4j Client Fixtures
# =============================================================================


@pytest.fixture
def mock_graph_client() -> MagicMock:
    """Create a mock catalog graph client."""
    client = MagicMock(spec=CatalogGraphClient)

    client.connect = AsyncMock()
    client.close = AsyncMock()
    client.verify_connectivity = AsyncMock(return_value=True)

    client.execute_cypher = AsyncMock(return_value=[])
    client.execute_write_cypher = AsyncMock(return_value=[])
    client.execute_write = AsyncMock(
        return_value={
            "nodes_created": 0,
            "nodes_deleted": 0,
            "relationships_created": 0,
            "relationships_deleted": 0,
            "properties_set": 0,
        }
    )
    client.execute_in_transaction = AsyncMock()

    return client


# =============================================================================
# In-memory Graph Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryRelationshipStore:
    """Empty in-memory store."""
    return InMemoryRelationshipStore()


@pytest.fixture
def catalog() -> InMemoryRelationshipStore:
    """
    Small catalog with one node of every kind and only canonical edges.

    Jingles are fully consistent: denormalized fields match relationships
    and boolean flags are set.
    """
    graph = InMemoryRelationshipStore()

    graph.add_node(NodeLabel.FABRICA, FABRICA_1, title="Programa 1", date="2024-03-01", contents="")
    graph.add_node(NodeLabel.FABRICA, FABRICA_2, title="Programa 2", date="2024-01-15", contents="")
    for jingle_id, title in ((JINGLE_1, "Jingle uno"), (JINGLE_2, "Jingle dos"), (JINGLE_3, "Jingle tres")):
        graph.add_node(
            NodeLabel.JINGLE,
            jingle_id,
            title=title,
            fabricaId=FABRICA_1,
            fabricaDate="2024-03-01",
            isJinglazo=False,
            isJinglazoDelDia=False,
            isPrecario=False,
        )
    graph.add_node(NodeLabel.CANCION, CANCION_1, title="Cancion", autorIds=[ARTISTA_1])
    graph.add_node(NodeLabel.ARTISTA, ARTISTA_1, name="Autor uno")
    graph.add_node(NodeLabel.ARTISTA, ARTISTA_2, name="Autor dos")
    graph.add_node(NodeLabel.TEMATICA, TEMATICA_1, name="Tema")
    graph.add_node(NodeLabel.USUARIO, USUARIO_1, name="Usuario")

    graph.add_edge(RelationType.APPEARS_IN, JINGLE_1, FABRICA_1, timestamp=300, order=1)
    graph.add_edge(RelationType.APPEARS_IN, JINGLE_2, FABRICA_1, timestamp=150, order=2)
    graph.add_edge(RelationType.APPEARS_IN, JINGLE_3, FABRICA_1, timestamp=615, order=3)
    graph.add_edge(RelationType.VERSIONA, JINGLE_1, CANCION_1)
    graph.props(JINGLE_1)["cancionId"] = CANCION_1
    graph.add_edge(RelationType.AUTOR_DE, ARTISTA_1, CANCION_1)
    graph.add_edge(RelationType.JINGLERO_DE, ARTISTA_2, JINGLE_1)
    graph.add_edge(RelationType.TAGGED_WITH, JINGLE_2, TEMATICA_1)
    graph.add_edge(RelationType.SOY_YO, USUARIO_1, ARTISTA_2)
    graph.add_edge(RelationType.REACCIONA_A, USUARIO_1, JINGLE_3)

    return graph
