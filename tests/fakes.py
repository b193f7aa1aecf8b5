"""
In-memory stand-in for RelationshipStore.

Holds nodes and edges in plain Python structures and implements the
store methods with the same semantics as their Cypher counterparts, so
the engines can be exercised end to end without a database.
"""

from dataclasses import dataclass, field
from typing import Any

from jinglegraph.graph.schema import (
    NodeLabel,
    RelationshipDirection,
    RelationshipRecord,
    RelationType,
)
from jinglegraph.graph.store import ReversalOutcome, ReversalProbe

JINGLE_1 = "j3k7p9a2q"
JINGLE_2 = "j8m2n4p6r"
JINGLE_3 = "j1a2b3c4d"
FABRICA_1 = "zG8k1Lm2Np0"
FABRICA_2 = "aB3dE5gH7jK"
CANCION_1 = "c9z8y7x6w"
ARTISTA_1 = "a1b2c3d4e"
ARTISTA_2 = "a5f6g7h8i"
TEMATICA_1 = "t0p1c2d3e"
USUARIO_1 = "u5s6e7r8s"


@dataclass
class FakeEdge:
    element_id: str
    rel_type: RelationType
    start_id: str
    end_id: str
    properties: dict[str, Any] = field(default_factory=dict)


def _by_date_desc(fabricas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # Most recent first, undated last
    dated = sorted((f for f in fabricas if f["date"] is not None), key=lambda f: f["date"], reverse=True)
    return dated + [f for f in fabricas if f["date"] is None]


class InMemoryRelationshipStore:
    """RelationshipStore double backed by dicts."""

    def __init__(self) -> None:
        self.nodes: dict[str, tuple[NodeLabel, dict[str, Any]]] = {}
        self.edges: list[FakeEdge] = []
        self.writes: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.failing_types: set[RelationType] = set()
        self._next_id = 0

    # =========================================================================
    # Fixture helpers
    # =========================================================================

    def add_node(self, label: NodeLabel, node_id: str, **properties: Any) -> None:
        self.nodes[node_id] = (label, dict(properties))

    def add_edge(self, rel_type: RelationType, start_id: str, end_id: str, **properties: Any) -> FakeEdge:
        self._next_id += 1
        edge = FakeEdge(f"5:rel:{self._next_id}", rel_type, start_id, end_id, dict(properties))
        self.edges.append(edge)
        return edge

    def props(self, node_id: str) -> dict[str, Any]:
        return self.nodes[node_id][1]

    def edges_of(
        self,
        rel_type: RelationType,
        start_id: str | None = None,
        end_id: str | None = None,
    ) -> list[FakeEdge]:
        return [
            e
            for e in self.edges
            if e.rel_type == rel_type
            and (start_id is None or e.start_id == start_id)
            and (end_id is None or e.end_id == end_id)
        ]

    def fail(self, method: str, error: Exception) -> None:
        """Make every later call to ``method`` raise ``error``."""
        self.failures[method] = error

    def _check(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    def _has_label(self, node_id: str, label: NodeLabel) -> bool:
        node = self.nodes.get(node_id)
        return node is not None and node[0] == label

    def _canonical(self, direction: RelationshipDirection, start_id: str | None = None, end_id: str | None = None):
        return [
            e
            for e in self.edges_of(direction.relation_type, start_id, end_id)
            if self._has_label(e.start_id, direction.start_label) and self._has_label(e.end_id, direction.end_label)
        ]

    def _set(self, node_id: str, fields: dict[str, Any]) -> None:
        properties = self.props(node_id)
        for key, value in fields.items():
            if value is None:
                properties.pop(key, None)
            else:
                properties[key] = value

    # =========================================================================
    # Audit / Fix
    # =========================================================================

    async def fetch_relationships(self, rel_type: RelationType) -> list[RelationshipRecord]:
        self._check("fetch_relationships")
        if rel_type in self.failing_types:
            raise RuntimeError(f"read of {rel_type.value} timed out")
        records = []
        for e in self.edges_of(rel_type):
            start = self.nodes.get(e.start_id)
            end = self.nodes.get(e.end_id)
            records.append(
                RelationshipRecord(
                    rel_type=rel_type,
                    start_id=e.start_id,
                    start_labels=[start[0].value] if start else [],
                    end_id=e.end_id,
                    end_labels=[end[0].value] if end else [],
                    properties=dict(e.properties),
                )
            )
        return records

    async def relationship_exists(self, direction: RelationshipDirection, start_id: str, end_id: str) -> bool:
        self._check("relationship_exists")
        return bool(self._canonical(direction, start_id, end_id))

    async def count_relationships(self, rel_type: RelationType, start_id: str, end_id: str) -> int:
        self._check("count_relationships")
        return len(self.edges_of(rel_type, start_id, end_id))

    async def delete_relationships(self, rel_type: RelationType, start_id: str, end_id: str) -> int:
        self._check("delete_relationships")
        doomed = self.edges_of(rel_type, start_id, end_id)
        self.edges = [e for e in self.edges if e not in doomed]
        self.writes.append("delete_relationships")
        return len(doomed)

    async def delete_extra_relationships(self, rel_type: RelationType, start_id: str, end_id: str) -> int:
        self._check("delete_extra_relationships")
        extra = self.edges_of(rel_type, start_id, end_id)[1:]
        self.edges = [e for e in self.edges if e not in extra]
        self.writes.append("delete_extra_relationships")
        return len(extra)

    async def probe_reversal(
        self,
        direction: RelationshipDirection,
        wrong_start_id: str,
        wrong_end_id: str,
    ) -> ReversalProbe:
        self._check("probe_reversal")
        return ReversalProbe(
            relationships=len(self.edges_of(direction.relation_type, wrong_start_id, wrong_end_id)),
            start_found=self._has_label(wrong_end_id, direction.start_label),
            end_found=self._has_label(wrong_start_id, direction.end_label),
        )

    async def reverse_relationship(
        self,
        direction: RelationshipDirection,
        wrong_start_id: str,
        wrong_end_id: str,
    ) -> ReversalOutcome:
        self._check("reverse_relationship")
        outcome = (await self.probe_reversal(direction, wrong_start_id, wrong_end_id)).outcome
        if outcome != ReversalOutcome.SWAPPED:
            return outcome

        wrong = self.edges_of(direction.relation_type, wrong_start_id, wrong_end_id)
        properties = dict(wrong[0].properties)
        self.edges = [e for e in self.edges if e not in wrong]
        if not self.edges_of(direction.relation_type, wrong_end_id, wrong_start_id):
            self.add_edge(direction.relation_type, wrong_end_id, wrong_start_id, **properties)
        self.writes.append("reverse_relationship")
        return ReversalOutcome.SWAPPED

    # =========================================================================
    # Nodes and generic relationships
    # =========================================================================

    async def node_exists(self, label: NodeLabel, node_id: str) -> bool:
        self._check("node_exists")
        return self._has_label(node_id, label)

    async def existing_node_ids(self, label: NodeLabel, node_ids: list[str]) -> set[str]:
        return {node_id for node_id in node_ids if self._has_label(node_id, label)}

    async def set_node_fields(self, label: NodeLabel, node_id: str, fields: dict[str, Any]) -> bool:
        self._check("set_node_fields")
        if not self._has_label(node_id, label):
            return False
        self._set(node_id, fields)
        self.writes.append("set_node_fields")
        return True

    async def create_relationship(
        self,
        direction: RelationshipDirection,
        start_id: str,
        end_id: str,
        properties: dict[str, Any] | None = None,
    ) -> bool:
        self._check("create_relationship")
        if not (self._has_label(start_id, direction.start_label) and self._has_label(end_id, direction.end_label)):
            return False
        if not self.edges_of(direction.relation_type, start_id, end_id):
            self.add_edge(direction.relation_type, start_id, end_id, **(properties or {}))
            self.writes.append("create_relationship")
        return True

    # =========================================================================
    # Redundant properties
    # =========================================================================

    async def fabrica_date(self, fabrica_id: str) -> tuple[bool, Any]:
        self._check("fabrica_date")
        if not self._has_label(fabrica_id, NodeLabel.FABRICA):
            return False, None
        return True, self.props(fabrica_id).get("date")

    def _jingle_fabricas(self, jingle_id: str) -> list[dict[str, Any]]:
        return _by_date_desc(
            [
                {"id": e.end_id, "date": self.props(e.end_id).get("date")}
                for e in self.edges_of(RelationType.APPEARS_IN, start_id=jingle_id)
                if self._has_label(e.end_id, NodeLabel.FABRICA)
            ]
        )

    async def jingle_fabricas_by_date(
        self,
        jingle_id: str,
        exclude_fabrica_id: str | None = None,
    ) -> list[dict[str, Any]]:
        self._check("jingle_fabricas_by_date")
        return [f for f in self._jingle_fabricas(jingle_id) if f["id"] != exclude_fabrica_id]

    def _jingle_canciones(self, jingle_id: str) -> list[str]:
        return [
            e.end_id
            for e in self.edges_of(RelationType.VERSIONA, start_id=jingle_id)
            if self._has_label(e.end_id, NodeLabel.CANCION)
        ]

    async def jingle_canciones(self, jingle_id: str, exclude_cancion_id: str | None = None) -> list[str]:
        return [c for c in self._jingle_canciones(jingle_id) if c != exclude_cancion_id]

    def _cancion_autores(self, cancion_id: str) -> list[str]:
        return [
            e.start_id
            for e in self.edges_of(RelationType.AUTOR_DE, end_id=cancion_id)
            if self._has_label(e.start_id, NodeLabel.ARTISTA)
        ]

    async def cancion_autores(self, cancion_id: str, exclude_autor_id: str | None = None) -> list[str]:
        self._check("cancion_autores")
        return [a for a in self._cancion_autores(cancion_id) if a != exclude_autor_id]

    async def set_jingle_fabrica(self, jingle_id: str, fabrica_id: str | None, fabrica_date: Any) -> None:
        self._check("set_jingle_fabrica")
        if self._has_label(jingle_id, NodeLabel.JINGLE):
            self._set(jingle_id, {"fabricaId": fabrica_id, "fabricaDate": fabrica_date if fabrica_id else None})

    async def set_jingle_cancion(self, jingle_id: str, cancion_id: str | None) -> None:
        if self._has_label(jingle_id, NodeLabel.JINGLE):
            self._set(jingle_id, {"cancionId": cancion_id})

    async def set_cancion_autores(self, cancion_id: str, autor_ids: list[str]) -> None:
        if self._has_label(cancion_id, NodeLabel.CANCION):
            self.props(cancion_id)["autorIds"] = list(autor_ids)

    def _ids_of(self, label: NodeLabel, ids: list[str] | None) -> list[str]:
        return sorted(
            node_id
            for node_id, (node_label, _) in self.nodes.items()
            if node_label == label and (ids is None or node_id in ids)
        )

    async def jingle_redundant_fields(self, jingle_ids: list[str] | None = None) -> list[dict[str, Any]]:
        self._check("jingle_redundant_fields")
        rows = []
        for jingle_id in self._ids_of(NodeLabel.JINGLE, jingle_ids):
            props = self.props(jingle_id)
            fabricas = self._jingle_fabricas(jingle_id)
            canciones = self._jingle_canciones(jingle_id)
            rows.append(
                {
                    "id": jingle_id,
                    "title": props.get("title"),
                    "currentFabricaId": props.get("fabricaId"),
                    "currentFabricaDate": props.get("fabricaDate"),
                    "currentCancionId": props.get("cancionId"),
                    "expectedFabricaId": fabricas[0]["id"] if fabricas else None,
                    "expectedFabricaDate": fabricas[0]["date"] if fabricas else None,
                    "expectedCancionId": canciones[0] if canciones else None,
                }
            )
        return rows

    async def cancion_redundant_fields(self, cancion_ids: list[str] | None = None) -> list[dict[str, Any]]:
        return [
            {
                "id": cancion_id,
                "title": self.props(cancion_id).get("title"),
                "currentAutorIds": self.props(cancion_id).get("autorIds"),
                "expectedAutorIds": list(dict.fromkeys(self._cancion_autores(cancion_id))),
            }
            for cancion_id in self._ids_of(NodeLabel.CANCION, cancion_ids)
        ]

    # =========================================================================
    # APPEARS_IN order
    # =========================================================================

    def _appears_in(self, fabrica_id: str) -> list[FakeEdge]:
        return [
            e
            for e in self.edges_of(RelationType.APPEARS_IN, end_id=fabrica_id)
            if self._has_label(e.start_id, NodeLabel.JINGLE) and self._has_label(fabrica_id, NodeLabel.FABRICA)
        ]

    async def appears_in_children(self, fabrica_id: str) -> list[dict[str, Any]]:
        self._check("appears_in_children")
        return [
            {"jingleId": e.start_id, "timestamp": e.properties.get("timestamp"), "relationshipId": e.element_id}
            for e in self._appears_in(fabrica_id)
        ]

    async def set_relationship_orders(self, fabrica_id: str, updates: list[dict[str, Any]]) -> int:
        self._check("set_relationship_orders")
        by_id = {e.element_id: e for e in self._appears_in(fabrica_id)}
        updated = 0
        for update in updates:
            edge = by_id.get(update["relationshipId"])
            if edge is not None and edge.start_id == update["jingleId"]:
                edge.properties["order"] = update["order"]
                updated += 1
        self.writes.append("set_relationship_orders")
        return updated

    async def set_appears_in_timestamp(self, jingle_id: str, fabrica_id: str, seconds: int) -> bool:
        edges = [e for e in self._appears_in(fabrica_id) if e.start_id == jingle_id]
        for edge in edges:
            edge.properties["timestamp"] = seconds
        return bool(edges)

    async def fabricas_with_children(self) -> list[str]:
        self._check("fabricas_with_children")
        return sorted({e.end_id for e in self.edges_of(RelationType.APPEARS_IN) if self._appears_in(e.end_id)})

    # =========================================================================
    # Cleanup scans
    # =========================================================================

    async def fabrica_contents(self, fabrica_ids: list[str] | None = None) -> list[dict[str, Any]]:
        rows = []
        for fabrica_id in self._ids_of(NodeLabel.FABRICA, fabrica_ids):
            props = self.props(fabrica_id)
            if not props.get("contents"):
                continue
            rows.append(
                {
                    "id": fabrica_id,
                    "title": props.get("title"),
                    "contents": props["contents"],
                    "linkedJingleIds": [e.start_id for e in self._appears_in(fabrica_id)],
                }
            )
        return rows

    async def appears_in_edges(self, jingle_ids: list[str] | None = None) -> list[dict[str, Any]]:
        self._check("appears_in_edges")
        rows = []
        for e in self.edges_of(RelationType.APPEARS_IN):
            if not (self._has_label(e.start_id, NodeLabel.JINGLE) and self._has_label(e.end_id, NodeLabel.FABRICA)):
                continue
            if jingle_ids is not None and e.start_id not in jingle_ids:
                continue
            jingle = self.props(e.start_id)
            rows.append(
                {
                    "fabricaId": e.end_id,
                    "fabricaTitle": self.props(e.end_id).get("title"),
                    "jingleId": e.start_id,
                    "jingleTitle": jingle.get("title"),
                    "jingleComment": jingle.get("comment"),
                    "timestamp": e.properties.get("timestamp"),
                }
            )
        return sorted(rows, key=lambda r: (r["fabricaId"], r["jingleId"]))

    async def nodes_without_relationship(
        self,
        direction: RelationshipDirection,
        anchor_is_start: bool,
    ) -> list[dict[str, Any]]:
        label = direction.start_label if anchor_is_start else direction.end_label
        rows = []
        for node_id in self._ids_of(label, None):
            if anchor_is_start:
                linked = self._canonical(direction, start_id=node_id)
            else:
                linked = self._canonical(direction, end_id=node_id)
            if not linked:
                rows.append({"id": node_id, "title": self.props(node_id).get("title")})
        return rows

    async def jingles_with_empty_flags(self, flags: tuple[str, ...]) -> list[dict[str, Any]]:
        rows = []
        for jingle_id in self._ids_of(NodeLabel.JINGLE, None):
            props = self.props(jingle_id)
            empty = [flag for flag in flags if props.get(flag) is None]
            if empty:
                rows.append({"id": jingle_id, "title": props.get("title"), "emptyFlags": empty})
        return rows
