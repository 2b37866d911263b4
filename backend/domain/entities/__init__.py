"""
Domain entities - core data models for business logic.
"""

from .field_models import (
    CommandResult,
    FeedingSnapshot,
    FieldState,
    OwnedItem,
    SeedReward,
    Species,
    SweepReport,
)

__all__ = [
    "CommandResult",
    "FeedingSnapshot",
    "FieldState",
    "OwnedItem",
    "SeedReward",
    "Species",
    "SweepReport",
]
