"""
Catalog change events.

The CRUD layer publishes an event after each relationship mutation or
entity field update. Derived-state maintainers (redundant properties,
APPEARS_IN order) subscribe to them. A failing subscriber is logged and
never affects the publisher or the other subscribers.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from jinglegraph.graph.schema import EntityType, RelationType

logger = structlog.get_logger(__name__)


class RelationshipOperation(str, Enum):
    """Kind of relationship mutation."""

    CREATE = "create"
    DELETE = "delete"
    UPDATE = "update"   # Properties changed, endpoints unchanged


@dataclass(frozen=True)
class RelationshipChanged:
    """
    A relationship was created, deleted or updated.

    ``source_id`` and ``target_id`` follow the canonical direction of
    ``rel_type``.
    """

    rel_type: RelationType
    source_id: str
    target_id: str
    operation: RelationshipOperation
    timestamp_changed: bool = False


@dataclass(frozen=True)
class EntityFieldsUpdated:
    """An entity was created or updated with the given fields."""

    entity_type: EntityType
    entity_id: str
    fields: dict[str, Any] = field(default_factory=dict, hash=False)


CatalogEvent = RelationshipChanged | EntityFieldsUpdated
EventHandler = Callable[[Any], Awaitable[Any]]


@dataclass
class PublishResult:
    """Outcome of delivering one event."""

    delivered: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class CatalogEventBus:
    """
    In-process async event bus.

    Handlers run sequentially in subscription order, so a handler may
    rely on the effects of those subscribed before it.

    Usage:
        ```python
        bus = CatalogEventBus()
        bus.subscribe(RelationshipChanged, order_manager.handle_relationship_changed)

        await bus.publish(
            RelationshipChanged(RelationType.APPEARS_IN, "j3k7p9a2q", "zG8k1Lm2Np0", RelationshipOperation.CREATE)
        )
        ```
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = {}

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def handlers_for(self, event_type: type) -> list[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, event: CatalogEvent) -> PublishResult:
        """Deliver an event to every subscriber of its type. Never raises."""
        result = PublishResult()

        for handler in self.handlers_for(type(event)):
            try:
                await handler(event)
                result.delivered += 1
            except Exception as e:
                name = getattr(handler, "__qualname__", repr(handler))
                result.errors.append(f"{name}: {e}")
                logger.error(
                    "Event handler failed",
                    event_type=type(event).__name__,
                    handler=name,
                    error=str(e),
                )

        return result
