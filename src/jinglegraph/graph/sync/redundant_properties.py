"""
Redundant Property Synchronizer.

Several entity fields mirror relationship state:

- ``Jingle.fabricaId`` / ``Jingle.fabricaDate``: the Fabrica of its APPEARS_IN
  edge (most recent Fabrica date when there are several)
- ``Jingle.cancionId``: the Cancion of its VERSIONA edge (first listed when
  there are several)
- ``Cancion.autorIds``: sorted ids of every Artista with an AUTOR_DE edge to it

The synchronizer updates those fields after relationship changes, and
materializes the relationships implied by fields written through the CRUD
layer. Every public method is best-effort: errors are logged and returned
in the result, never raised.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from jinglegraph.graph.schema import (
    EntityType,
    NodeLabel,
    RelationshipSchema,
    RelationType,
    get_relationship_schema,
)
from jinglegraph.graph.store import RelationshipStore
from jinglegraph.graph.sync.events import (
    CatalogEventBus,
    EntityFieldsUpdated,
    RelationshipChanged,
    RelationshipOperation,
)

logger = structlog.get_logger(__name__)

JINGLE_FLAG_DEFAULTS: dict[str, bool] = {
    "isJinglazo": False,
    "isJinglazoDelDia": False,
    "isPrecario": False,
}


@dataclass
class SyncResult:
    """Outcome of one synchronization step."""

    entity_id: str | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    created_relationships: list[tuple[str, str, str]] = field(default_factory=list)
    deleted_relationships: list[tuple[str, str, str]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "changes": self.changes,
            "created_relationships": [list(r) for r in self.created_relationships],
            "deleted_relationships": [list(r) for r in self.deleted_relationships],
            "errors": self.errors,
        }


@dataclass
class FieldMismatch:
    """Stored redundant fields that disagree with relationship state."""

    entity_type: EntityType
    entity_id: str
    title: str | None
    current: dict[str, Any]
    expected: dict[str, Any]

    @property
    def fields(self) -> list[str]:
        return list(self.expected)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "title": self.title,
            "fields": self.fields,
            "current": {k: _plain(v) for k, v in self.current.items()},
            "expected": {k: _plain(v) for k, v in self.expected.items()},
        }


@dataclass
class RefreshResult:
    """Outcome of reconciling many entities."""

    checked: int = 0
    mismatches: list[FieldMismatch] = field(default_factory=list)
    fixed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "mismatches": [m.to_dict() for m in self.mismatches],
            "fixed": self.fixed,
            "errors": self.errors,
        }


def _plain(value: Any) -> Any:
    """Driver temporal values become ISO strings for reports."""
    if value is None or isinstance(value, (str, int, float, bool, list, dict)):
        return value
    iso = getattr(value, "iso_format", None)
    return iso() if callable(iso) else str(value)


def _same(a: Any, b: Any) -> bool:
    if a == b:
        return True
    if a is None or b is None:
        return False
    return _plain(a) == _plain(b)


def most_recent_first(fabricas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order Fabrica rows by date, newest first, undated last."""
    dated = [f for f in fabricas if f.get("date") is not None]
    dated.sort(key=lambda f: str(_plain(f["date"])), reverse=True)
    return dated + [f for f in fabricas if f.get("date") is None]


def jingle_mismatch(row: dict[str, Any]) -> FieldMismatch | None:
    """Compare stored and expected Jingle fields from a redundant-fields row."""
    current: dict[str, Any] = {}
    expected: dict[str, Any] = {}
    for name, current_key, expected_key in (
        ("fabricaId", "currentFabricaId", "expectedFabricaId"),
        ("fabricaDate", "currentFabricaDate", "expectedFabricaDate"),
        ("cancionId", "currentCancionId", "expectedCancionId"),
    ):
        if not _same(row.get(current_key), row.get(expected_key)):
            current[name] = row.get(current_key)
            expected[name] = row.get(expected_key)

    if not expected:
        return None
    return FieldMismatch(EntityType.JINGLE, row["id"], row.get("title"), current, expected)


def cancion_mismatch(row: dict[str, Any]) -> FieldMismatch | None:
    """Stored Cancion.autorIds must be exactly the sorted, repeat-free author ids."""
    current_ids = row.get("currentAutorIds") or []
    expected_ids = sorted(set(row.get("expectedAutorIds") or []))
    if list(current_ids) == expected_ids:
        return None
    return FieldMismatch(
        EntityType.CANCION,
        row["id"],
        row.get("title"),
        {"autorIds": list(current_ids)},
        {"autorIds": expected_ids},
    )


class RedundantPropertySynchronizer:
    """
    Keeps denormalized Jingle and Cancion fields in step with relationships.

    Usage:
        ```python
        sync = RedundantPropertySynchronizer()

        # After the CRUD layer deleted an AUTOR_DE edge
        await sync.on_relationship_change("autor_de", "a1b2c3d4e", "c9z8y7x6w", "delete")

        # After a Jingle was saved with a fabricaId
        await sync.sync_entity_fields("jingle", "j3k7p9a2q", {"fabricaId": "zG8k1Lm2Np0"})
        ```
    """

    def __init__(
        self,
        store: RelationshipStore | None = None,
        schema: RelationshipSchema | None = None,
        bus: CatalogEventBus | None = None,
    ) -> None:
        self._store = store or RelationshipStore()
        self._schema = schema or get_relationship_schema()
        self._bus = bus

    # =========================================================================
    # Relationship changes
    # =========================================================================

    async def on_relationship_change(
        self,
        rel_type: str | RelationType,
        source_id: str,
        target_id: str,
        operation: str | RelationshipOperation,
    ) -> SyncResult:
        """
        Update the fields backed by a relationship that was just created or deleted.

        ``source_id`` and ``target_id`` follow the canonical direction.
        """
        result = SyncResult()

        try:
            rel = self._schema.resolve(rel_type)
            op = RelationshipOperation(operation)
        except ValueError as e:
            result.errors.append(str(e))
            logger.error("Invalid relationship change", rel_type=str(rel_type), error=str(e))
            return result

        if op == RelationshipOperation.UPDATE:
            return result

        try:
            if rel == RelationType.APPEARS_IN:
                result.entity_id = source_id
                await self._sync_jingle_fabrica(source_id, target_id, op, result)
            elif rel == RelationType.VERSIONA:
                result.entity_id = source_id
                await self._sync_jingle_cancion(source_id, target_id, op, result)
            elif rel == RelationType.AUTOR_DE:
                result.entity_id = target_id
                await self._sync_cancion_autores(target_id, source_id, op, result)
        except Exception as e:
            result.errors.append(str(e))
            logger.error(
                "Failed to update redundant properties",
                rel_type=rel.value,
                source_id=source_id,
                target_id=target_id,
                operation=op.value,
                error=str(e),
            )

        return result

    async def _sync_jingle_fabrica(
        self,
        jingle_id: str,
        fabrica_id: str,
        op: RelationshipOperation,
        result: SyncResult,
    ) -> None:
        if op == RelationshipOperation.CREATE:
            linked = await self._store.jingle_fabricas_by_date(jingle_id)
            if all(f["id"] != fabrica_id for f in linked):
                # Edge not visible yet
                found, date = await self._store.fabrica_date(fabrica_id)
                if not found:
                    result.errors.append(f"Fabrica {fabrica_id} not found")
                    logger.error(f"Fabrica {fabrica_id} not found", jingle_id=jingle_id)
                    return
                linked = most_recent_first([*linked, {"id": fabrica_id, "date": date}])
        else:
            linked = await self._store.jingle_fabricas_by_date(jingle_id, exclude_fabrica_id=fabrica_id)

        if linked:
            new_id, new_date = linked[0]["id"], linked[0].get("date")
        else:
            new_id, new_date = None, None

        await self._store.set_jingle_fabrica(jingle_id, new_id, new_date)
        result.changes.update({"fabricaId": new_id, "fabricaDate": new_date})
        logger.debug("Jingle fabricaId updated", jingle_id=jingle_id, fabrica_id=new_id)

    async def _sync_jingle_cancion(
        self,
        jingle_id: str,
        cancion_id: str,
        op: RelationshipOperation,
        result: SyncResult,
    ) -> None:
        if op == RelationshipOperation.CREATE:
            new_id: str | None = cancion_id
        else:
            remaining = await self._store.jingle_canciones(jingle_id, exclude_cancion_id=cancion_id)
            new_id = remaining[0] if remaining else None

        await self._store.set_jingle_cancion(jingle_id, new_id)
        result.changes["cancionId"] = new_id
        logger.debug("Jingle cancionId updated", jingle_id=jingle_id, cancion_id=new_id)

    async def _sync_cancion_autores(
        self,
        cancion_id: str,
        autor_id: str,
        op: RelationshipOperation,
        result: SyncResult,
    ) -> None:
        if op == RelationshipOperation.CREATE:
            autores = set(await self._store.cancion_autores(cancion_id))
            autores.add(autor_id)
        else:
            autores = set(await self._store.cancion_autores(cancion_id, exclude_autor_id=autor_id))
            autores.discard(autor_id)

        autor_ids = sorted(autores)
        await self._store.set_cancion_autores(cancion_id, autor_ids)
        result.changes["autorIds"] = autor_ids
        logger.debug("Cancion autorIds updated", cancion_id=cancion_id, autor_ids=autor_ids)

    # =========================================================================
    # Field updates
    # =========================================================================

    async def sync_entity_fields(
        self,
        entity_type: str | EntityType,
        entity_id: str,
        fields: dict[str, Any],
    ) -> SyncResult:
        """
        Create the relationships implied by denormalized fields.

        A referenced entity that does not exist is logged as an error; the
        field itself is left as written.
        """
        result = SyncResult(entity_id=entity_id)
        kind = EntityType.normalize(entity_type)

        try:
            if kind == EntityType.JINGLE:
                await self._sync_jingle_fields(entity_id, fields, result)
            elif kind == EntityType.CANCION:
                await self._sync_cancion_fields(entity_id, fields, result)
        except Exception as e:
            result.errors.append(str(e))
            logger.error(
                "Failed to sync entity fields",
                entity_type=str(entity_type),
                entity_id=entity_id,
                error=str(e),
            )

        return result

    async def _ensure_relationship(
        self,
        rel_type: RelationType,
        start_id: str,
        end_id: str,
        result: SyncResult,
    ) -> None:
        direction = self._schema.canonical_direction(rel_type)

        if await self._store.relationship_exists(direction, start_id, end_id):
            return

        if rel_type == RelationType.AUTOR_DE:
            missing_label, missing_id = direction.start_label, start_id
        else:
            missing_label, missing_id = direction.end_label, end_id

        if not await self._store.node_exists(missing_label, missing_id):
            message = f"{missing_label.value} {missing_id} not found"
            result.errors.append(message)
            logger.error(message, rel_type=rel_type.value, start_id=start_id, end_id=end_id)
            return

        if await self._store.create_relationship(direction, start_id, end_id):
            result.created_relationships.append((rel_type.value, start_id, end_id))
            logger.info("Created implied relationship", rel_type=rel_type.value, start_id=start_id, end_id=end_id)
            await self._announce(rel_type, start_id, end_id, RelationshipOperation.CREATE)
        else:
            logger.warning(
                "Implied relationship not created",
                rel_type=rel_type.value,
                start_id=start_id,
                end_id=end_id,
            )

    async def _sync_jingle_fields(self, jingle_id: str, fields: dict[str, Any], result: SyncResult) -> None:
        fabrica_id = fields.get("fabricaId")
        if fabrica_id:
            await self._ensure_relationship(RelationType.APPEARS_IN, jingle_id, fabrica_id, result)

        cancion_id = fields.get("cancionId")
        if cancion_id:
            await self._ensure_relationship(RelationType.VERSIONA, jingle_id, cancion_id, result)

    async def _sync_cancion_fields(self, cancion_id: str, fields: dict[str, Any], result: SyncResult) -> None:
        autor_ids = fields.get("autorIds")
        if autor_ids is None:
            return

        wanted = list(dict.fromkeys(autor_ids))
        for autor_id in wanted:
            await self._ensure_relationship(RelationType.AUTOR_DE, autor_id, cancion_id, result)

        existing = await self._store.cancion_autores(cancion_id)
        for autor_id in existing:
            if autor_id in wanted:
                continue
            deleted = await self._store.delete_relationships(RelationType.AUTOR_DE, autor_id, cancion_id)
            if deleted:
                result.deleted_relationships.append((RelationType.AUTOR_DE.value, autor_id, cancion_id))
                logger.info("Deleted unlisted AUTOR_DE", autor_id=autor_id, cancion_id=cancion_id)
                await self._announce(RelationType.AUTOR_DE, autor_id, cancion_id, RelationshipOperation.DELETE)

    async def _announce(
        self,
        rel_type: RelationType,
        source_id: str,
        target_id: str,
        operation: RelationshipOperation,
    ) -> None:
        if self._bus is not None:
            await self._bus.publish(RelationshipChanged(rel_type, source_id, target_id, operation))

    # =========================================================================
    # Validation / refresh
    # =========================================================================

    async def find_mismatches(
        self,
        entity_type: EntityType | None = None,
        entity_ids: list[str] | None = None,
    ) -> tuple[int, list[FieldMismatch]]:
        """
        Compare stored fields with relationship state.

        Returns:
            (entities checked, mismatches)
        """
        checked = 0
        mismatches: list[FieldMismatch] = []

        if entity_type in (None, EntityType.JINGLE):
            rows = await self._store.jingle_redundant_fields(entity_ids)
            checked += len(rows)
            mismatches += [m for m in map(jingle_mismatch, rows) if m is not None]

        if entity_type in (None, EntityType.CANCION):
            rows = await self._store.cancion_redundant_fields(entity_ids)
            checked += len(rows)
            mismatches += [m for m in map(cancion_mismatch, rows) if m is not None]

        return checked, mismatches

    async def validate_entity(self, entity_type: str | EntityType, entity_id: str) -> FieldMismatch | None:
        """Mismatch of one Jingle or Cancion, None if consistent or unsupported."""
        kind = EntityType.normalize(entity_type)
        if kind not in (EntityType.JINGLE, EntityType.CANCION):
            return None
        _, mismatches = await self.find_mismatches(kind, [entity_id])
        return mismatches[0] if mismatches else None

    async def apply_mismatch(self, mismatch: FieldMismatch) -> None:
        if mismatch.entity_type == EntityType.CANCION:
            await self._store.set_cancion_autores(mismatch.entity_id, mismatch.expected["autorIds"])
        else:
            await self._store.set_node_fields(mismatch.entity_type.label, mismatch.entity_id, mismatch.expected)

    async def refresh_all(
        self,
        entity_ids: list[str] | None = None,
        dry_run: bool = False,
    ) -> RefreshResult:
        """Reconcile every Jingle and Cancion (or only the given ids)."""
        result = RefreshResult()

        try:
            result.checked, result.mismatches = await self.find_mismatches(entity_ids=entity_ids)
        except Exception as e:
            result.errors.append(str(e))
            logger.error("Failed to read redundant properties", error=str(e))
            return result

        if dry_run:
            logger.info(f"[DRY RUN] Would refresh {len(result.mismatches)} entities")
            return result

        for mismatch in result.mismatches:
            try:
                await self.apply_mismatch(mismatch)
                result.fixed += 1
            except Exception as e:
                result.errors.append(f"{mismatch.entity_id}: {e}")
                logger.error("Failed to refresh entity", entity_id=mismatch.entity_id, error=str(e))

        logger.info(
            "Redundant properties refreshed",
            checked=result.checked,
            mismatches=len(result.mismatches),
            fixed=result.fixed,
        )
        return result

    async def fill_empty_flags(self, jingle_id: str, flags: list[str]) -> dict[str, bool]:
        """Set missing Jingle boolean flags to their default."""
        changes = {flag: JINGLE_FLAG_DEFAULTS[flag] for flag in flags if flag in JINGLE_FLAG_DEFAULTS}
        if changes:
            await self._store.set_node_fields(NodeLabel.JINGLE, jingle_id, changes)
        return changes

    # =========================================================================
    # Event handlers
    # =========================================================================

    async def handle_relationship_changed(self, event: RelationshipChanged) -> SyncResult:
        return await self.on_relationship_change(
            event.rel_type, event.source_id, event.target_id, event.operation
        )

    async def handle_entity_fields_updated(self, event: EntityFieldsUpdated) -> SyncResult:
        return await self.sync_entity_fields(event.entity_type, event.entity_id, event.fields)
