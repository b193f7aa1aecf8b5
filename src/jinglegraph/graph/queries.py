"""
Catalog Cypher Query Builder.

Every query the integrity subsystem sends to Neo4j is built here. Labels
and relationship types only ever come from the NodeLabel / RelationType
enums; every value (ids, properties, orders) is passed as a parameter.
The set of possible queries is therefore finite and enumerable.
"""

from dataclasses import dataclass, field
from typing import Any

from jinglegraph.graph.schema import NodeLabel, RelationshipDirection, RelationType


@dataclass(frozen=True)
class CypherQuery:
    """A parameterized Cypher statement."""

    text: str
    parameters: dict[str, Any] = field(default_factory=dict)
    write: bool = False


def _label(label: NodeLabel) -> str:
    if not isinstance(label, NodeLabel):
        raise TypeError(f"Expected NodeLabel, got {type(label).__name__}")
    return label.value


def _rel(rel_type: RelationType) -> str:
    if not isinstance(rel_type, RelationType):
        raise TypeError(f"Expected RelationType, got {type(rel_type).__name__}")
    return rel_type.value


# =============================================================================
# Audit / Fix
# =============================================================================


def relationships_of_type(rel_type: RelationType) -> CypherQuery:
    """Bulk read of every edge of one type with endpoints and properties."""
    return CypherQuery(
        f"""
        MATCH (start)-[r:{_rel(rel_type)}]->(end)
        RETURN start.id AS startId,
               labels(start) AS startLabels,
               end.id AS endId,
               labels(end) AS endLabels,
               properties(r) AS relProperties
        """
    )


def relationship_exists(
    direction: RelationshipDirection,
    start_id: str,
    end_id: str,
) -> CypherQuery:
    """Existence check for an edge in the canonical direction."""
    return CypherQuery(
        f"""
        MATCH (s:{_label(direction.start_label)} {{id: $startId}})
              -[r:{_rel(direction.relation_type)}]->
              (e:{_label(direction.end_label)} {{id: $endId}})
        RETURN count(r) > 0 AS exists
        """,
        {"startId": start_id, "endId": end_id},
    )


def count_relationships(rel_type: RelationType, start_id: str, end_id: str) -> CypherQuery:
    """Count edges of a type between two ids, regardless of labels."""
    return CypherQuery(
        f"""
        MATCH (s {{id: $startId}})-[r:{_rel(rel_type)}]->(e {{id: $endId}})
        RETURN count(r) AS count
        """,
        {"startId": start_id, "endId": end_id},
    )


def delete_relationships(rel_type: RelationType, start_id: str, end_id: str) -> CypherQuery:
    """Delete every edge of a type from start_id to end_id."""
    return CypherQuery(
        f"""
        MATCH (s {{id: $startId}})-[r:{_rel(rel_type)}]->(e {{id: $endId}})
        DELETE r
        RETURN count(*) AS deleted
        """,
        {"startId": start_id, "endId": end_id},
        write=True,
    )


def delete_extra_relationships(rel_type: RelationType, start_id: str, end_id: str) -> CypherQuery:
    """Keep one edge of a type from start_id to end_id (with its properties), delete the rest."""
    return CypherQuery(
        f"""
        MATCH (s {{id: $startId}})-[r:{_rel(rel_type)}]->(e {{id: $endId}})
        WITH collect(r) AS copies
        FOREACH (extra IN tail(copies) | DELETE extra)
        RETURN size(tail(copies)) AS deleted
        """,
        {"startId": start_id, "endId": end_id},
        write=True,
    )


def probe_reversal(
    direction: RelationshipDirection,
    wrong_start_id: str,
    wrong_end_id: str,
) -> CypherQuery:
    """
    Read-only check run before reversing an edge.

    Reports how many wrong-direction edges exist and whether both
    endpoints can be found under their canonical labels.
    """
    return CypherQuery(
        f"""
        OPTIONAL MATCH (ws {{id: $wrongStartId}})-[r:{_rel(direction.relation_type)}]->(we {{id: $wrongEndId}})
        WITH count(r) AS relationships
        OPTIONAL MATCH (cs:{_label(direction.start_label)} {{id: $correctStartId}})
        WITH relationships, count(cs) > 0 AS startFound
        OPTIONAL MATCH (ce:{_label(direction.end_label)} {{id: $correctEndId}})
        RETURN relationships, startFound, count(ce) > 0 AS endFound
        """,
        {
            "wrongStartId": wrong_start_id,
            "wrongEndId": wrong_end_id,
            "correctStartId": wrong_end_id,
            "correctEndId": wrong_start_id,
        },
    )


def reverse_relationship(
    direction: RelationshipDirection,
    wrong_start_id: str,
    wrong_end_id: str,
) -> CypherQuery:
    """
    Replace wrong-direction edges with one canonical edge, keeping properties.

    Endpoints are matched before anything is deleted, so a missing
    endpoint leaves the graph untouched. MERGE keeps an already existing
    canonical edge instead of creating a duplicate.
    """
    rel = _rel(direction.relation_type)
    return CypherQuery(
        f"""
        MATCH (ws {{id: $wrongStartId}})-[r:{rel}]->(we {{id: $wrongEndId}})
        MATCH (cs:{_label(direction.start_label)} {{id: $correctStartId}})
        MATCH (ce:{_label(direction.end_label)} {{id: $correctEndId}})
        WITH cs, ce, collect(r) AS wrong, head(collect(properties(r))) AS props
        FOREACH (old IN wrong | DELETE old)
        MERGE (cs)-[n:{rel}]->(ce)
        ON CREATE SET n = props
        RETURN size(wrong) AS deleted, count(n) AS created
        """,
        {
            "wrongStartId": wrong_start_id,
            "wrongEndId": wrong_end_id,
            "correctStartId": wrong_end_id,
            "correctEndId": wrong_start_id,
        },
        write=True,
    )


# =============================================================================
# Generic node / relationship writes
# =============================================================================


def node_exists(label: NodeLabel, node_id: str) -> CypherQuery:
    return CypherQuery(
        f"MATCH (n:{_label(label)} {{id: $id}}) RETURN n.id AS id LIMIT 1",
        {"id": node_id},
    )


def existing_node_ids(label: NodeLabel, node_ids: list[str]) -> CypherQuery:
    return CypherQuery(
        f"MATCH (n:{_label(label)}) WHERE n.id IN $ids RETURN n.id AS id",
        {"ids": node_ids},
    )


def set_node_fields(label: NodeLabel, node_id: str, fields: dict[str, Any]) -> CypherQuery:
    """Set properties on one node; None values clear the property."""
    return CypherQuery(
        f"""
        MATCH (n:{_label(label)} {{id: $id}})
        SET n += $fields, n.updatedAt = datetime()
        RETURN n.id AS id
        """,
        {"id": node_id, "fields": fields},
        write=True,
    )


def create_relationship(
    direction: RelationshipDirection,
    start_id: str,
    end_id: str,
    properties: dict[str, Any] | None = None,
) -> CypherQuery:
    """Create a canonical edge unless one already exists."""
    return CypherQuery(
        f"""
        MATCH (s:{_label(direction.start_label)} {{id: $startId}})
        MATCH (e:{_label(direction.end_label)} {{id: $endId}})
        MERGE (s)-[r:{_rel(direction.relation_type)}]->(e)
        ON CREATE SET r += $properties, r.createdAt = datetime()
        RETURN count(r) AS created
        """,
        {"startId": start_id, "endId": end_id, "properties": properties or {}},
        write=True,
    )


# =============================================================================
# Redundant properties
# =============================================================================


def fabrica_date(fabrica_id: str) -> CypherQuery:
    return CypherQuery(
        f"MATCH (f:{_label(NodeLabel.FABRICA)} {{id: $fabricaId}}) RETURN f.id AS id, f.date AS date",
        {"fabricaId": fabrica_id},
    )


def jingle_fabricas_by_date(jingle_id: str, exclude_fabrica_id: str | None = None) -> CypherQuery:
    """Fabricas a Jingle appears in, most recent first."""
    return CypherQuery(
        f"""
        MATCH (j:{_label(NodeLabel.JINGLE)} {{id: $jingleId}})-[:{_rel(RelationType.APPEARS_IN)}]->(f:{_label(NodeLabel.FABRICA)})
        WHERE $excludeId IS NULL OR f.id <> $excludeId
        RETURN f.id AS id, f.date AS date
        ORDER BY f.date IS NULL, f.date DESC
        """,
        {"jingleId": jingle_id, "excludeId": exclude_fabrica_id},
    )


def jingle_canciones(jingle_id: str, exclude_cancion_id: str | None = None) -> CypherQuery:
    """Canciones a Jingle versions, in listing order."""
    return CypherQuery(
        f"""
        MATCH (j:{_label(NodeLabel.JINGLE)} {{id: $jingleId}})-[:{_rel(RelationType.VERSIONA)}]->(c:{_label(NodeLabel.CANCION)})
        WHERE $excludeId IS NULL OR c.id <> $excludeId
        RETURN c.id AS id
        """,
        {"jingleId": jingle_id, "excludeId": exclude_cancion_id},
    )


def cancion_autores(cancion_id: str, exclude_autor_id: str | None = None) -> CypherQuery:
    return CypherQuery(
        f"""
        MATCH (a:{_label(NodeLabel.ARTISTA)})-[:{_rel(RelationType.AUTOR_DE)}]->(c:{_label(NodeLabel.CANCION)} {{id: $cancionId}})
        WHERE $excludeId IS NULL OR a.id <> $excludeId
        RETURN a.id AS id
        """,
        {"cancionId": cancion_id, "excludeId": exclude_autor_id},
    )


def set_jingle_fabrica(jingle_id: str, fabrica_id: str | None, fabrica_date_value: Any) -> CypherQuery:
    if fabrica_id is None:
        text = f"""
        MATCH (j:{_label(NodeLabel.JINGLE)} {{id: $jingleId}})
        SET j.fabricaId = null, j.fabricaDate = null
        """
    else:
        text = f"""
        MATCH (j:{_label(NodeLabel.JINGLE)} {{id: $jingleId}})
        SET j.fabricaId = $fabricaId, j.fabricaDate = $fabricaDate
        """
    return CypherQuery(
        text,
        {"jingleId": jingle_id, "fabricaId": fabrica_id, "fabricaDate": fabrica_date_value},
        write=True,
    )


def set_jingle_cancion(jingle_id: str, cancion_id: str | None) -> CypherQuery:
    if cancion_id is None:
        text = f"MATCH (j:{_label(NodeLabel.JINGLE)} {{id: $jingleId}}) SET j.cancionId = null"
    else:
        text = f"MATCH (j:{_label(NodeLabel.JINGLE)} {{id: $jingleId}}) SET j.cancionId = $cancionId"
    return CypherQuery(text, {"jingleId": jingle_id, "cancionId": cancion_id}, write=True)


def set_cancion_autores(cancion_id: str, autor_ids: list[str]) -> CypherQuery:
    return CypherQuery(
        f"MATCH (c:{_label(NodeLabel.CANCION)} {{id: $cancionId}}) SET c.autorIds = $autorIds",
        {"cancionId": cancion_id, "autorIds": autor_ids},
        write=True,
    )


def jingle_redundant_fields(jingle_ids: list[str] | None = None) -> CypherQuery:
    """Stored vs. relationship-derived denormalized fields of Jingles."""
    return CypherQuery(
        f"""
        MATCH (j:{_label(NodeLabel.JINGLE)})
        WHERE $ids IS NULL OR j.id IN $ids
        OPTIONAL MATCH (j)-[:{_rel(RelationType.APPEARS_IN)}]->(f:{_label(NodeLabel.FABRICA)})
        WITH j, f ORDER BY f.date IS NULL, f.date DESC
        WITH j, collect(f)[0] AS fabrica
        OPTIONAL MATCH (j)-[:{_rel(RelationType.VERSIONA)}]->(c:{_label(NodeLabel.CANCION)})
        WITH j, fabrica, collect(c)[0] AS cancion
        RETURN j.id AS id,
               j.title AS title,
               j.fabricaId AS currentFabricaId,
               j.fabricaDate AS currentFabricaDate,
               j.cancionId AS currentCancionId,
               fabrica.id AS expectedFabricaId,
               fabrica.date AS expectedFabricaDate,
               cancion.id AS expectedCancionId
        ORDER BY j.id
        """,
        {"ids": jingle_ids},
    )


def cancion_redundant_fields(cancion_ids: list[str] | None = None) -> CypherQuery:
    return CypherQuery(
        f"""
        MATCH (c:{_label(NodeLabel.CANCION)})
        WHERE $ids IS NULL OR c.id IN $ids
        OPTIONAL MATCH (a:{_label(NodeLabel.ARTISTA)})-[:{_rel(RelationType.AUTOR_DE)}]->(c)
        WITH c, collect(DISTINCT a.id) AS expectedAutorIds
        RETURN c.id AS id,
               c.title AS title,
               c.autorIds AS currentAutorIds,
               expectedAutorIds
        ORDER BY c.id
        """,
        {"ids": cancion_ids},
    )


# =============================================================================
# APPEARS_IN order
# =============================================================================


def appears_in_children(fabrica_id: str) -> CypherQuery:
    """APPEARS_IN edges into one Fabrica, in storage order."""
    return CypherQuery(
        f"""
        MATCH (j:{_label(NodeLabel.JINGLE)})-[r:{_rel(RelationType.APPEARS_IN)}]->(f:{_label(NodeLabel.FABRICA)} {{id: $fabricaId}})
        RETURN j.id AS jingleId, r.timestamp AS timestamp, elementId(r) AS relationshipId
        """,
        {"fabricaId": fabrica_id},
    )


def set_appears_in_orders(fabrica_id: str, updates: list[dict[str, Any]]) -> CypherQuery:
    """Bulk update of r.order, one UNWIND for the whole Fabrica."""
    return CypherQuery(
        f"""
        UNWIND $updates AS update
        MATCH (j:{_label(NodeLabel.JINGLE)} {{id: update.jingleId}})-[r:{_rel(RelationType.APPEARS_IN)}]->(f:{_label(NodeLabel.FABRICA)} {{id: $fabricaId}})
        WHERE elementId(r) = update.relationshipId
        SET r.order = update.order
        RETURN count(r) AS updated
        """,
        {"fabricaId": fabrica_id, "updates": updates},
        write=True,
    )


def set_appears_in_timestamp(jingle_id: str, fabrica_id: str, seconds: int) -> CypherQuery:
    return CypherQuery(
        f"""
        MATCH (j:{_label(NodeLabel.JINGLE)} {{id: $jingleId}})-[r:{_rel(RelationType.APPEARS_IN)}]->(f:{_label(NodeLabel.FABRICA)} {{id: $fabricaId}})
        SET r.timestamp = $timestamp
        RETURN count(r) AS updated
        """,
        {"jingleId": jingle_id, "fabricaId": fabrica_id, "timestamp": seconds},
        write=True,
    )


def fabricas_with_children() -> CypherQuery:
    return CypherQuery(
        f"""
        MATCH (f:{_label(NodeLabel.FABRICA)})
        WHERE EXISTS {{ MATCH (:{_label(NodeLabel.JINGLE)})-[:{_rel(RelationType.APPEARS_IN)}]->(f) }}
        RETURN DISTINCT f.id AS fabricaId
        ORDER BY f.id ASC
        """
    )


# =============================================================================
# Cleanup scans
# =============================================================================


def fabrica_contents(fabrica_ids: list[str] | None = None) -> CypherQuery:
    """Fabricas with free-text contents and the Jingles already linked to them."""
    return CypherQuery(
        f"""
        MATCH (f:{_label(NodeLabel.FABRICA)})
        WHERE f.contents IS NOT NULL AND f.contents <> ''
          AND ($ids IS NULL OR f.id IN $ids)
        OPTIONAL MATCH (j:{_label(NodeLabel.JINGLE)})-[:{_rel(RelationType.APPEARS_IN)}]->(f)
        WITH f, collect(j.id) AS linkedJingleIds
        RETURN f.id AS id, f.title AS title, f.contents AS contents, linkedJingleIds
        ORDER BY f.id
        """,
        {"ids": fabrica_ids},
    )


def appears_in_edges(jingle_ids: list[str] | None = None) -> CypherQuery:
    """Every APPEARS_IN edge with the fields the timestamp checks need."""
    return CypherQuery(
        f"""
        MATCH (j:{_label(NodeLabel.JINGLE)})-[r:{_rel(RelationType.APPEARS_IN)}]->(f:{_label(NodeLabel.FABRICA)})
        WHERE $ids IS NULL OR j.id IN $ids
        RETURN f.id AS fabricaId,
               f.title AS fabricaTitle,
               j.id AS jingleId,
               j.title AS jingleTitle,
               j.comment AS jingleComment,
               r.timestamp AS timestamp
        ORDER BY f.id, j.id
        """,
        {"ids": jingle_ids},
    )


def nodes_without_relationship(direction: RelationshipDirection, anchor_is_start: bool) -> CypherQuery:
    """Nodes on one side of a relationship type that have no such edge."""
    rel = _rel(direction.relation_type)
    start_label = _label(direction.start_label)
    end_label = _label(direction.end_label)
    if anchor_is_start:
        text = f"""
        MATCH (n:{start_label})
        WHERE NOT EXISTS {{ MATCH (n)-[:{rel}]->(:{end_label}) }}
        RETURN n.id AS id, n.title AS title
        ORDER BY n.id
        """
    else:
        text = f"""
        MATCH (n:{end_label})
        WHERE NOT EXISTS {{ MATCH (:{start_label})-[:{rel}]->(n) }}
        RETURN n.id AS id, n.title AS title
        ORDER BY n.id
        """
    return CypherQuery(text)


def jingles_with_empty_flags(flags: tuple[str, ...]) -> CypherQuery:
    return CypherQuery(
        f"""
        MATCH (j:{_label(NodeLabel.JINGLE)})
        WHERE any(flag IN $flags WHERE j[flag] IS NULL)
        RETURN j.id AS id,
               j.title AS title,
               [flag IN $flags WHERE j[flag] IS NULL] AS emptyFlags
        ORDER BY j.id
        """,
        {"flags": list(flags)},
    )
