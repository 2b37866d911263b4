"""
Domain layer for internal business logic data structures.

This package contains dataclasses, enums and pure rules used for clean
parameter passing between the store, the scheduler and the command surface.

Structure:
- entities/: Data structures passed between layers (FieldState, CommandResult, ...)
- value_objects/: Immutable types and enums (RarityTier, FieldKind, ...)
- services/: Pure domain logic (rarity, field layout, lifecycle timing)
"""

from .entities import (
    CommandResult,
    FeedingSnapshot,
    FieldState,
    OwnedItem,
    SeedReward,
    Species,
    SweepReport,
)
from .services import (
    FieldLayout,
    LifecycleTiming,
    average,
    inherit,
    seed_drop,
)
from .value_objects import (
    CommandOutcome,
    CurrencyKind,
    EntityKind,
    FeedSourceKind,
    FieldKind,
    ItemKind,
    RarityTier,
)

__all__ = [
    # Entities
    "CommandResult",
    "FeedingSnapshot",
    "FieldState",
    "OwnedItem",
    "SeedReward",
    "Species",
    "SweepReport",
    # Services
    "FieldLayout",
    "LifecycleTiming",
    "average",
    "inherit",
    "seed_drop",
    # Value objects
    "CommandOutcome",
    "CurrencyKind",
    "EntityKind",
    "FeedSourceKind",
    "FieldKind",
    "ItemKind",
    "RarityTier",
]
