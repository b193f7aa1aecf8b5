"""
Unit Tests for the built-in cleanup scripts.
"""

import pytest

from fakes import (
    CANCION_1,
    FABRICA_1,
    FABRICA_2,
    JINGLE_1,
    JINGLE_2,
    JINGLE_3,
    TEMATICA_1,
    InMemoryRelationshipStore,
)
from jinglegraph.cleanup import (
    AutomationStatus,
    CleanupScriptRegistry,
    SuggestionType,
    create_cleanup_context,
    create_default_registry,
)
from jinglegraph.cleanup.scripts.fabricas import referenced_jingle_ids
from jinglegraph.cleanup.scripts.jingles import suggest_timestamp
from jinglegraph.graph.schema import NodeLabel, RelationType


@pytest.fixture
def registry(catalog: InMemoryRelationshipStore) -> CleanupScriptRegistry:
    return create_default_registry(create_cleanup_context(catalog))


def _edge(store: InMemoryRelationshipStore, jingle_id: str, fabrica_id: str = FABRICA_1):
    [edge] = store.edges_of(RelationType.APPEARS_IN, jingle_id, fabrica_id)
    return edge


class TestRelationshipDirections:
    """Test cases for the relationship direction script."""

    @pytest.fixture
    def reversed_catalog(self, catalog: InMemoryRelationshipStore) -> InMemoryRelationshipStore:
        catalog.edges = [e for e in catalog.edges if e.start_id != JINGLE_2 or e.rel_type != RelationType.APPEARS_IN]
        catalog.add_edge(RelationType.APPEARS_IN, FABRICA_1, JINGLE_2, timestamp=150, order=2)
        return catalog

    @pytest.mark.asyncio
    async def test_find(self, reversed_catalog: InMemoryRelationshipStore, registry) -> None:
        result = await registry.execute("audit-relationship-directions")

        [entity] = result.entities
        assert (entity.entity_type, entity.entity_id) == ("fabrica", FABRICA_1)
        assert entity.suggestion.type == SuggestionType.RELATIONSHIP
        assert entity.suggestion.recommended_value == {"action": "swap", "start_id": JINGLE_2, "end_id": FABRICA_1}

    @pytest.mark.asyncio
    async def test_automate(self, reversed_catalog: InMemoryRelationshipStore, registry) -> None:
        result = await registry.automate("audit-relationship-directions", [JINGLE_2, TEMATICA_1])

        assert result.successful == 1
        assert [r.entity_id for r in result.results if r.status == AutomationStatus.SKIPPED] == [TEMATICA_1]
        assert _edge(reversed_catalog, JINGLE_2).properties["timestamp"] == 150
        assert reversed_catalog.edges_of(RelationType.APPEARS_IN, FABRICA_1, JINGLE_2) == []


class TestFabricaScripts:
    """Test cases for the Fabrica scripts."""

    def test_referenced_jingle_ids(self) -> None:
        text = f"00:05:00 {JINGLE_1} - {JINGLE_2}\n10:15 {JINGLE_1} xj0000000 j12"

        assert referenced_jingle_ids(text) == [JINGLE_1, JINGLE_2]
        assert referenced_jingle_ids(None) == []

    @pytest.mark.asyncio
    async def test_find_missing_jingles(self, catalog: InMemoryRelationshipStore, registry) -> None:
        catalog.props(FABRICA_2)["contents"] = f"{JINGLE_1} (00:01:00), {JINGLE_2}, jzzzzzzzz"
        catalog.props(FABRICA_1)["contents"] = f"{JINGLE_1} {JINGLE_2} {JINGLE_3}"

        result = await registry.execute("find-fabricas-missing-jingles")

        [entity] = result.entities
        assert entity.entity_id == FABRICA_2
        assert entity.current_value == {"referenced_jingles": [JINGLE_1, JINGLE_2], "existing_relationships": 0}
        assert entity.suggestion.automatable

    @pytest.mark.asyncio
    async def test_automate_missing_jingles(self, catalog: InMemoryRelationshipStore, registry) -> None:
        catalog.props(FABRICA_2)["contents"] = f"{JINGLE_1} {JINGLE_2}"
        catalog.props(FABRICA_1)["contents"] = f"{JINGLE_1}"

        result = await registry.automate("find-fabricas-missing-jingles", [FABRICA_2, FABRICA_1, "qQ0wW1eE2rR"])

        statuses = {r.entity_id: (r.status, r.error) for r in result.results}
        assert statuses[FABRICA_2][0] == AutomationStatus.SUCCESS
        assert statuses[FABRICA_1] == (AutomationStatus.SKIPPED, "No missing relationships found")
        assert statuses["qQ0wW1eE2rR"][0] == AutomationStatus.SKIPPED
        assert _edge(catalog, JINGLE_1, FABRICA_2).properties == {"timestamp": 0, "order": 1}
        assert _edge(catalog, JINGLE_2, FABRICA_2).properties == {"timestamp": 0, "order": 2}

    @pytest.mark.asyncio
    async def test_find_duplicate_timestamps(self, catalog: InMemoryRelationshipStore, registry) -> None:
        _edge(catalog, JINGLE_3).properties["timestamp"] = "00:05:00"

        result = await registry.execute("find-fabricas-duplicate-timestamps")

        [entity] = result.entities
        assert entity.entity_id == FABRICA_1
        assert entity.current_value["duplicates"] == [
            {
                "timestamp": 300,
                "timestamp_formatted": "00:05:00",
                "jingle_ids": [JINGLE_3, JINGLE_1],
                "jingle_titles": ["Jingle tres", "Jingle uno"],
            }
        ]
        assert not entity.suggestion.automatable


class TestJingleScripts:
    """Test cases for the Jingle scripts."""

    def test_suggest_timestamp_prefers_comment(self) -> None:
        assert suggest_timestamp({"jingleComment": "arranca en 2:45", "jingleTitle": "Tema 01:10:00"}) == (
            "00:02:45",
            "comentario",
        )
        assert suggest_timestamp({"jingleComment": None, "jingleTitle": "Tema 01:10:00"}) == ("01:10:00", "titulo")
        assert suggest_timestamp({}) == (None, None)

    @pytest.mark.asyncio
    async def test_find_zero_timestamp(self, catalog: InMemoryRelationshipStore, registry) -> None:
        _edge(catalog, JINGLE_2).properties["timestamp"] = 0
        catalog.props(JINGLE_2)["comment"] = "arranca en 2:45"
        _edge(catalog, JINGLE_3).properties.pop("timestamp")

        result = await registry.execute("find-jingles-zero-timestamp")

        by_id = {e.entity_id: e for e in result.entities}
        assert set(by_id) == {JINGLE_2, JINGLE_3}
        assert by_id[JINGLE_2].suggestion.recommended_value == 165
        assert by_id[JINGLE_2].suggestion.automatable
        assert by_id[JINGLE_3].suggestion.recommended_value is None
        assert not by_id[JINGLE_3].suggestion.automatable

    @pytest.mark.asyncio
    async def test_automate_zero_timestamp_reorders(self, catalog: InMemoryRelationshipStore, registry) -> None:
        _edge(catalog, JINGLE_2).properties["timestamp"] = 0
        catalog.props(JINGLE_2)["comment"] = "arranca en 2:45"
        _edge(catalog, JINGLE_3).properties["timestamp"] = 0

        result = await registry.automate("find-jingles-zero-timestamp", [JINGLE_2, JINGLE_3])

        statuses = {r.entity_id: r.status for r in result.results}
        assert statuses == {JINGLE_2: AutomationStatus.SUCCESS, JINGLE_3: AutomationStatus.SKIPPED}
        assert _edge(catalog, JINGLE_2).properties["timestamp"] == 165
        assert {j: _edge(catalog, j).properties["order"] for j in (JINGLE_1, JINGLE_2, JINGLE_3)} == {
            JINGLE_3: 1,
            JINGLE_2: 2,
            JINGLE_1: 3,
        }

    @pytest.mark.asyncio
    async def test_find_without_cancion(self, registry) -> None:
        result = await registry.execute("find-jingles-without-cancion")

        assert [e.entity_id for e in result.entities] == [JINGLE_3, JINGLE_2]
        assert all(not e.suggestion.automatable for e in result.entities)


class TestCancionScripts:
    """Test cases for the Cancion scripts."""

    @pytest.mark.asyncio
    async def test_find_without_autor(self, catalog: InMemoryRelationshipStore, registry) -> None:
        catalog.add_node(NodeLabel.CANCION, "c1c2c3c4c", title="Sin autor")

        result = await registry.execute("find-cancion-without-autor")

        assert [(e.entity_id, e.entity_title) for e in result.entities] == [("c1c2c3c4c", "Sin autor")]
        assert CANCION_1 not in {e.entity_id for e in result.entities}


class TestRefreshRedundantProperties:
    """Test cases for the redundant property refresh script."""

    @pytest.mark.asyncio
    async def test_find(self, catalog: InMemoryRelationshipStore, registry) -> None:
        catalog.props(JINGLE_2)["fabricaId"] = FABRICA_2
        catalog.props(JINGLE_3).pop("isPrecario")

        result = await registry.execute("refresh-redundant-properties")

        assert [(e.entity_id, e.suggestion.field) for e in result.entities] == [
            (JINGLE_2, "fabricaId"),
            (JINGLE_3, "flags"),
        ]
        assert result.entities[1].suggestion.recommended_value == {"isPrecario": False}

    @pytest.mark.asyncio
    async def test_automate(self, catalog: InMemoryRelationshipStore, registry) -> None:
        catalog.props(JINGLE_2)["fabricaId"] = FABRICA_2
        catalog.props(JINGLE_3).pop("isPrecario")

        result = await registry.automate("refresh-redundant-properties", [JINGLE_2, JINGLE_3, JINGLE_1])

        assert {r.entity_id: (r.status, r.changes) for r in result.results} == {
            JINGLE_2: (AutomationStatus.SUCCESS, {"fabricaId": FABRICA_1}),
            JINGLE_3: (AutomationStatus.SUCCESS, {"isPrecario": False}),
            JINGLE_1: (AutomationStatus.SKIPPED, None),
        }
        assert catalog.props(JINGLE_2)["fabricaId"] == FABRICA_1
        assert catalog.props(JINGLE_3)["isPrecario"] is False

    @pytest.mark.asyncio
    async def test_automate_read_failure(self, catalog: InMemoryRelationshipStore, registry) -> None:
        catalog.fail("jingle_redundant_fields", RuntimeError("timeout"))

        result = await registry.automate("refresh-redundant-properties", [JINGLE_1, JINGLE_2])

        assert result.failed == 2
        assert [e["error"] for e in result.errors] == ["timeout", "timeout"]
