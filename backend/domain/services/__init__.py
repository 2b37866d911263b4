"""
Domain services - pure domain logic (stateless, no I/O).
"""

from .field_layout import FieldLayout, default_pond_fields, parse_field_ranges
from .lifecycle_rules import (
    FEEDS_PER_FISH,
    FLOWER_DWELL_SECONDS,
    LifecycleTiming,
    flower_dwell,
    flower_transition_at,
    remaining_seconds,
)
from .rarity import RandomSource, average, inherit, seed_drop

__all__ = [
    "FieldLayout",
    "default_pond_fields",
    "parse_field_ranges",
    "FEEDS_PER_FISH",
    "FLOWER_DWELL_SECONDS",
    "LifecycleTiming",
    "flower_dwell",
    "flower_transition_at",
    "remaining_seconds",
    "RandomSource",
    "average",
    "inherit",
    "seed_drop",
]
