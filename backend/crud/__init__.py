"""
CRUD operations module.

This module provides database operations organized by domain aggregate.
All CRUD functions are exported at the package level.
"""

# Field entity operations
# Feeding operations
from .feeding import (
    ensure_progress,
    get_history,
    get_progress,
    list_progress_for_user,
    record_feed,
    reset_progress,
)
from .field_entities import (
    DEADLINE_COLUMNS,
    ENTITY_MODELS,
    SCHEDULED_KINDS,
    advance_bouquet_slot,
    create_entity,
    delete_if_exists,
    get_by_field,
    get_entity,
    get_occupant,
    kind_of,
    list_due,
    list_for_user,
    list_occupancy,
    reschedule_bouquet,
)

# Helpers
from .helpers import write_transaction

# Inventory operations
from .inventory import (
    add_currency,
    add_item,
    get_item,
    get_wallet,
    is_effect_applied,
    list_items,
    mark_effect_applied,
    remove_item,
)

__all__ = [
    # Field entities
    "DEADLINE_COLUMNS",
    "ENTITY_MODELS",
    "SCHEDULED_KINDS",
    "advance_bouquet_slot",
    "create_entity",
    "delete_if_exists",
    "get_by_field",
    "get_entity",
    "get_occupant",
    "kind_of",
    "list_due",
    "list_for_user",
    "list_occupancy",
    "reschedule_bouquet",
    # Feeding
    "ensure_progress",
    "get_history",
    "get_progress",
    "list_progress_for_user",
    "record_feed",
    "reset_progress",
    # Inventory
    "add_currency",
    "add_item",
    "get_item",
    "get_wallet",
    "is_effect_applied",
    "list_items",
    "mark_effect_applied",
    "remove_item",
    # Helpers
    "write_transaction",
]
