"""
Unit Tests for the Cypher query builder.
"""

import pytest

from jinglegraph.graph import queries
from jinglegraph.graph.schema import NodeLabel, RelationshipSchema, RelationType


class TestQueryBuilder:
    """Labels and types come from enums; every value is a parameter."""

    def test_relationships_of_type(self) -> None:
        query = queries.relationships_of_type(RelationType.VERSIONA)

        assert "[r:VERSIONA]" in query.text
        assert "relProperties" in query.text
        assert query.parameters == {}
        assert not query.write

    def test_rejects_plain_strings(self) -> None:
        with pytest.raises(TypeError):
            queries.relationships_of_type("VERSIONA")  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            queries.node_exists("Jingle", "j3k7p9a2q")  # type: ignore[arg-type]

    def test_relationship_exists_uses_canonical_labels(self, schema: RelationshipSchema) -> None:
        direction = schema.canonical_direction(RelationType.APPEARS_IN)
        query = queries.relationship_exists(direction, "j3k7p9a2q", "zG8k1Lm2Np0")

        assert "(s:Jingle {id: $startId})" in query.text
        assert "(e:Fabrica {id: $endId})" in query.text
        assert query.parameters == {"startId": "j3k7p9a2q", "endId": "zG8k1Lm2Np0"}

    def test_ids_are_never_interpolated(self, schema: RelationshipSchema) -> None:
        hostile = "x'}) DETACH DELETE n //"
        direction = schema.canonical_direction(RelationType.AUTOR_DE)

        for query in (
            queries.relationship_exists(direction, hostile, hostile),
            queries.delete_relationships(RelationType.AUTOR_DE, hostile, hostile),
            queries.reverse_relationship(direction, hostile, hostile),
            queries.set_node_fields(NodeLabel.JINGLE, hostile, {"title": hostile}),
        ):
            assert hostile not in query.text

    def test_reversal_swaps_parameters(self, schema: RelationshipSchema) -> None:
        direction = schema.canonical_direction(RelationType.APPEARS_IN)
        query = queries.reverse_relationship(direction, "zG8k1Lm2Np0", "j3k7p9a2q")

        assert query.write
        assert query.parameters == {
            "wrongStartId": "zG8k1Lm2Np0",
            "wrongEndId": "j3k7p9a2q",
            "correctStartId": "j3k7p9a2q",
            "correctEndId": "zG8k1Lm2Np0",
        }
        assert "(cs:Jingle {id: $correctStartId})" in query.text
        assert "MERGE (cs)-[n:APPEARS_IN]->(ce)" in query.text
        assert "ON CREATE SET n = props" in query.text

    def test_probe_reversal_is_read_only(self, schema: RelationshipSchema) -> None:
        direction = schema.canonical_direction(RelationType.VERSIONA)
        query = queries.probe_reversal(direction, "c9z8y7x6w", "j3k7p9a2q")

        assert not query.write
        assert "DELETE" not in query.text
        assert query.parameters["correctStartId"] == "j3k7p9a2q"

    def test_write_flags(self, schema: RelationshipSchema) -> None:
        direction = schema.canonical_direction(RelationType.VERSIONA)

        assert queries.delete_relationships(RelationType.VERSIONA, "j3k7p9a2q", "c9z8y7x6w").write
        assert queries.create_relationship(direction, "j3k7p9a2q", "c9z8y7x6w").write
        assert queries.set_appears_in_orders("zG8k1Lm2Np0", []).write
        assert not queries.count_relationships(RelationType.VERSIONA, "j3k7p9a2q", "c9z8y7x6w").write

    def test_create_relationship_defaults_properties(self, schema: RelationshipSchema) -> None:
        direction = schema.canonical_direction(RelationType.AUTOR_DE)
        query = queries.create_relationship(direction, "a1b2c3d4e", "c9z8y7x6w")

        assert query.parameters["properties"] == {}
        assert "MERGE (s)-[r:AUTOR_DE]->(e)" in query.text

    def test_delete_extra_relationships_keeps_first_copy(self) -> None:
        query = queries.delete_extra_relationships(RelationType.APPEARS_IN, "j3k7p9a2q", "zG8k1Lm2Np0")

        assert query.write
        assert "[r:APPEARS_IN]" in query.text
        assert "FOREACH (extra IN tail(copies) | DELETE extra)" in query.text
        assert query.parameters == {"startId": "j3k7p9a2q", "endId": "zG8k1Lm2Np0"}

    def test_set_jingle_fabrica_clears_both_fields(self) -> None:
        query = queries.set_jingle_fabrica("j3k7p9a2q", None, None)

        assert "j.fabricaId = null" in query.text
        assert "j.fabricaDate = null" in query.text

    def test_jingle_fabricas_sorted_most_recent_first(self) -> None:
        query = queries.jingle_fabricas_by_date("j3k7p9a2q", exclude_fabrica_id="zG8k1Lm2Np0")

        assert "ORDER BY f.date IS NULL, f.date DESC" in query.text
        assert query.parameters["excludeId"] == "zG8k1Lm2Np0"

    def test_appears_in_order_update_targets_element_ids(self) -> None:
        updates = [{"jingleId": "j3k7p9a2q", "relationshipId": "5:rel:1", "order": 1}]
        query = queries.set_appears_in_orders("zG8k1Lm2Np0", updates)

        assert "UNWIND $updates AS update" in query.text
        assert "elementId(r) = update.relationshipId" in query.text
        assert query.parameters["updates"] == updates

    def test_jingles_with_empty_flags(self) -> None:
        query = queries.jingles_with_empty_flags(("isJinglazo", "isPrecario"))

        assert query.parameters == {"flags": ["isJinglazo", "isPrecario"]}
