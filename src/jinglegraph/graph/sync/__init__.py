"""
Derived-state maintenance for the catalog graph.

Keeps denormalized entity fields and APPEARS_IN order consistent with
relationship state, driven by change events from the CRUD layer.
"""

from jinglegraph.graph.sync.appears_in_order import (
    AppearsInOrderManager,
    BulkOrderResult,
    OrderResult,
    compute_orders,
)
from jinglegraph.graph.sync.events import (
    CatalogEventBus,
    EntityFieldsUpdated,
    PublishResult,
    RelationshipChanged,
    RelationshipOperation,
)
from jinglegraph.graph.sync.redundant_properties import (
    FieldMismatch,
    RedundantPropertySynchronizer,
    RefreshResult,
    SyncResult,
)
from jinglegraph.graph.sync.subscribers import CatalogSubscribers, create_event_bus
from jinglegraph.graph.sync.timestamps import (
    format_seconds,
    parse_timestamp_from_text,
    timestamp_to_seconds,
)

__all__ = [
    # Events
    "CatalogEventBus",
    "EntityFieldsUpdated",
    "PublishResult",
    "RelationshipChanged",
    "RelationshipOperation",
    "CatalogSubscribers",
    "create_event_bus",
    # Redundant properties
    "FieldMismatch",
    "RedundantPropertySynchronizer",
    "RefreshResult",
    "SyncResult",
    # Order
    "AppearsInOrderManager",
    "BulkOrderResult",
    "OrderResult",
    "compute_orders",
    # Timestamps
    "format_seconds",
    "parse_timestamp_from_text",
    "timestamp_to_seconds",
]
