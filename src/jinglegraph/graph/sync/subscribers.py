"""
Event bus wiring for derived catalog state.
"""

from dataclasses import dataclass

from jinglegraph.graph.store import RelationshipStore
from jinglegraph.graph.sync.appears_in_order import AppearsInOrderManager
from jinglegraph.graph.sync.events import CatalogEventBus, EntityFieldsUpdated, RelationshipChanged
from jinglegraph.graph.sync.redundant_properties import RedundantPropertySynchronizer


@dataclass
class CatalogSubscribers:
    """An event bus together with the subscribers wired into it."""

    bus: CatalogEventBus
    synchronizer: RedundantPropertySynchronizer
    order_manager: AppearsInOrderManager


def create_event_bus(store: RelationshipStore | None = None) -> CatalogSubscribers:
    """
    Build an event bus with the synchronizer and the order manager subscribed.

    Relationships the synchronizer creates or deletes are published back on
    the same bus, so their APPEARS_IN order is recomputed as well.
    """
    store = store or RelationshipStore()
    bus = CatalogEventBus()
    synchronizer = RedundantPropertySynchronizer(store=store, bus=bus)
    order_manager = AppearsInOrderManager(store=store)

    bus.subscribe(RelationshipChanged, synchronizer.handle_relationship_changed)
    bus.subscribe(RelationshipChanged, order_manager.handle_relationship_changed)
    bus.subscribe(EntityFieldsUpdated, synchronizer.handle_entity_fields_updated)

    return CatalogSubscribers(bus=bus, synchronizer=synchronizer, order_manager=order_manager)
