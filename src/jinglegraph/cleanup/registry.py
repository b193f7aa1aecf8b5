"""
Cleanup Script Registry.

Named data-quality checks over the catalog graph. Each script reports the
entities it finds; scripts that can repair their findings also register an
automation executor.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from jinglegraph.graph.integrity.relationship_audit import RelationshipAuditor
from jinglegraph.graph.integrity.relationship_repair import RelationshipRepair
from jinglegraph.graph.store import RelationshipStore
from jinglegraph.graph.sync.appears_in_order import AppearsInOrderManager
from jinglegraph.graph.sync.events import CatalogEventBus
from jinglegraph.graph.sync.redundant_properties import RedundantPropertySynchronizer
from jinglegraph.graph.sync.subscribers import create_event_bus

logger = structlog.get_logger(__name__)


class ScriptNotFoundError(KeyError):
    """Raised when a script id is not registered."""

    def __init__(self, script_id: str) -> None:
        self.script_id = script_id
        super().__init__(f"Script not found: {script_id}")

    def __str__(self) -> str:
        return self.args[0]


class AutomationNotSupportedError(ValueError):
    """Raised when automating a script that has no automation executor."""

    def __init__(self, script_id: str) -> None:
        self.script_id = script_id
        super().__init__(f"Script does not support automation: {script_id}")


class ScriptCategory(str, Enum):
    """Grouping of cleanup scripts."""

    FABRICAS = "fabricas"
    JINGLES = "jingles"
    CANCIONES = "canciones"
    ARTISTAS = "artistas"
    RELATIONSHIPS = "relationships"
    GENERAL = "general"


class SuggestionType(str, Enum):
    """Kind of change a suggestion proposes."""

    UPDATE = "update"
    CREATE = "create"
    DELETE = "delete"
    RELATIONSHIP = "relationship"


class AutomationStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True)
class ScriptMetadata:
    """Static description of a cleanup script."""

    id: str
    name: str
    description: str
    entity_type: str
    category: ScriptCategory
    automatable: bool
    estimated_duration: str
    uses_music_brainz: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "entity_type": self.entity_type,
            "category": self.category.value,
            "automatable": self.automatable,
            "estimated_duration": self.estimated_duration,
            "uses_music_brainz": self.uses_music_brainz,
        }


@dataclass
class Suggestion:
    """Proposed change for one entity."""

    type: SuggestionType
    automatable: bool
    field: str | None = None
    recommended_value: Any = None

    @property
    def requires_manual_review(self) -> bool:
        return not self.automatable

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "field": self.field,
            "recommended_value": self.recommended_value,
            "automatable": self.automatable,
            "requires_manual_review": self.requires_manual_review,
        }


@dataclass
class EntityIssue:
    """One entity a script flagged."""

    entity_type: str
    entity_id: str
    issue: str
    current_value: Any = None
    entity_title: str | None = None
    suggestion: Suggestion | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "entity_title": self.entity_title,
            "issue": self.issue,
            "current_value": self.current_value,
            "suggestion": self.suggestion.to_dict() if self.suggestion else None,
        }


@dataclass
class SuggestionSummary:
    """Suggestions of one kind, aggregated."""

    type: SuggestionType
    field: str | None
    count: int
    automatable: int

    @property
    def requires_review(self) -> int:
        return self.count - self.automatable

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "field": self.field,
            "count": self.count,
            "automatable": self.automatable,
            "requires_review": self.requires_review,
        }


@dataclass
class ScriptExecutionResult:
    """Findings of one script run."""

    script_id: str
    script_name: str
    entities: list[EntityIssue] = field(default_factory=list)
    suggestions: list[SuggestionSummary] = field(default_factory=list)
    execution_time_ms: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def total_found(self) -> int:
        return len(self.entities)

    def to_dict(self) -> dict[str, Any]:
        return {
            "script_id": self.script_id,
            "script_name": self.script_name,
            "total_found": self.total_found,
            "execution_time_ms": self.execution_time_ms,
            "timestamp": self.timestamp,
            "entities": [e.to_dict() for e in self.entities],
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


@dataclass
class AutomationResultItem:
    entity_id: str
    status: AutomationStatus
    changes: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "status": self.status.value,
            "changes": self.changes,
            "error": self.error,
        }


@dataclass
class AutomationResult:
    """Outcome of applying a script's fixes to selected entities."""

    script_id: str
    total_requested: int = 0
    results: list[AutomationResultItem] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.status == AutomationStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == AutomationStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == AutomationStatus.SKIPPED)

    def succeed(self, entity_id: str, changes: dict[str, Any]) -> None:
        self.results.append(AutomationResultItem(entity_id, AutomationStatus.SUCCESS, changes=changes))

    def skip(self, entity_id: str, reason: str) -> None:
        self.results.append(AutomationResultItem(entity_id, AutomationStatus.SKIPPED, error=reason))

    def fail(self, entity_id: str, error: str, retryable: bool = True) -> None:
        self.results.append(AutomationResultItem(entity_id, AutomationStatus.FAILED, error=error))
        self.errors.append({"entity_id": entity_id, "error": error, "retryable": retryable})

    def to_dict(self) -> dict[str, Any]:
        return {
            "script_id": self.script_id,
            "total_requested": self.total_requested,
            "total_applied": self.successful,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "results": [r.to_dict() for r in self.results],
            "errors": self.errors,
        }


def summarize_suggestions(entities: list[EntityIssue]) -> list[SuggestionSummary]:
    """Aggregate entity suggestions by (type, field), in first-seen order."""
    summaries: dict[tuple[SuggestionType, str | None], SuggestionSummary] = {}
    for entity in entities:
        suggestion = entity.suggestion
        if suggestion is None:
            continue
        key = (suggestion.type, suggestion.field)
        summary = summaries.setdefault(key, SuggestionSummary(suggestion.type, suggestion.field, 0, 0))
        summary.count += 1
        if suggestion.automatable:
            summary.automatable += 1
    return list(summaries.values())


# =============================================================================
# Registry
# =============================================================================


@dataclass
class CleanupContext:
    """Collaborators available to cleanup scripts."""

    store: RelationshipStore
    auditor: RelationshipAuditor
    repair: RelationshipRepair
    synchronizer: RedundantPropertySynchronizer
    order_manager: AppearsInOrderManager
    bus: CatalogEventBus


def create_cleanup_context(store: RelationshipStore | None = None) -> CleanupContext:
    """Build a CleanupContext sharing one store and one event bus."""
    store = store or RelationshipStore()
    subscribers = create_event_bus(store)
    return CleanupContext(
        store=store,
        auditor=RelationshipAuditor(store=store),
        repair=RelationshipRepair(store=store),
        synchronizer=subscribers.synchronizer,
        order_manager=subscribers.order_manager,
        bus=subscribers.bus,
    )


ScriptExecutor = Callable[[CleanupContext], Awaitable[list[EntityIssue]]]
AutomationExecutor = Callable[[CleanupContext, list[str], bool], Awaitable[AutomationResult]]


@dataclass
class _RegisteredScript:
    metadata: ScriptMetadata
    execute: ScriptExecutor
    automate: AutomationExecutor | None = None


class CleanupScriptRegistry:
    """
    Registry of cleanup scripts.

    Executors return the flagged entities; the registry times the run and
    builds the ScriptExecutionResult.

    Usage:
        ```python
        registry = create_default_registry()

        for metadata in registry.list_scripts():
            print(metadata.id, metadata.automatable)

        result = await registry.execute("find-jingles-zero-timestamp")
        ids = [e.entity_id for e in result.entities if e.suggestion and e.suggestion.automatable]
        await registry.automate("find-jingles-zero-timestamp", ids)
        ```
    """

    def __init__(self, context: CleanupContext | None = None) -> None:
        self._context = context or create_cleanup_context()
        self._scripts: dict[str, _RegisteredScript] = {}

    @property
    def context(self) -> CleanupContext:
        return self._context

    def register(
        self,
        metadata: ScriptMetadata,
        execute: ScriptExecutor,
        automate: AutomationExecutor | None = None,
    ) -> None:
        if metadata.id in self._scripts:
            logger.warning("Replacing registered cleanup script", script_id=metadata.id)
        self._scripts[metadata.id] = _RegisteredScript(metadata, execute, automate)

    def list_scripts(self) -> list[ScriptMetadata]:
        return [s.metadata for s in self._scripts.values()]

    def get_metadata(self, script_id: str) -> ScriptMetadata | None:
        script = self._scripts.get(script_id)
        return script.metadata if script else None

    def is_automatable(self, script_id: str) -> bool:
        script = self._scripts.get(script_id)
        return script is not None and script.automate is not None

    def _get(self, script_id: str) -> _RegisteredScript:
        script = self._scripts.get(script_id)
        if script is None:
            raise ScriptNotFoundError(script_id)
        return script

    async def execute(self, script_id: str) -> ScriptExecutionResult:
        """
        Run a script and collect its findings.

        Raises:
            ScriptNotFoundError: If the script is not registered
        """
        script = self._get(script_id)
        started = time.perf_counter()

        logger.info("Running cleanup script", script_id=script_id)
        entities = await script.execute(self._context)

        result = ScriptExecutionResult(
            script_id=script.metadata.id,
            script_name=script.metadata.name,
            entities=entities,
            suggestions=summarize_suggestions(entities),
            execution_time_ms=int((time.perf_counter() - started) * 1000),
        )
        logger.info(
            "Cleanup script completed",
            script_id=script_id,
            total_found=result.total_found,
            execution_time_ms=result.execution_time_ms,
        )
        return result

    async def automate(
        self,
        script_id: str,
        entity_ids: list[str],
        apply_low_confidence: bool = False,
    ) -> AutomationResult:
        """
        Apply a script's automated fix to the given entities.

        Raises:
            ScriptNotFoundError: If the script is not registered
            AutomationNotSupportedError: If the script has no automation
        """
        script = self._get(script_id)
        if script.automate is None:
            raise AutomationNotSupportedError(script_id)

        logger.info("Automating cleanup script", script_id=script_id, entities=len(entity_ids))
        result = await script.automate(self._context, entity_ids, apply_low_confidence)
        logger.info(
            "Cleanup automation completed",
            script_id=script_id,
            successful=result.successful,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result
