"""
Domain value objects - immutable types and enums.
"""

from .enums import (
    CommandOutcome,
    CurrencyKind,
    EntityKind,
    FeedSourceKind,
    FieldKind,
    ItemKind,
    RarityTier,
)

__all__ = [
    "CommandOutcome",
    "CurrencyKind",
    "EntityKind",
    "FeedSourceKind",
    "FieldKind",
    "ItemKind",
    "RarityTier",
]
