"""
Timing rules for field entities.

Pure functions that turn a rarity or a timestamp into the next deadline.
Persisted deadlines are computed here and nowhere else.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from domain.value_objects.enums import RarityTier

from .rarity import RandomSource

FLOWER_DWELL_SECONDS: Dict[RarityTier, int] = {
    RarityTier.COMMON: 2,
    RarityTier.UNCOMMON: 3,
    RarityTier.RARE: 4,
    RarityTier.SUPER_RARE: 5,
    RarityTier.EPIC: 6,
    RarityTier.LEGENDARY: 8,
    RarityTier.MYTHICAL: 10,
}

FEEDS_PER_FISH = 3
SUN_AMOUNT_RANGE = (1, 3)


@dataclass(frozen=True)
class LifecycleTiming:
    """Tunable durations, normally built from Settings."""

    bouquet_lifetime: timedelta = timedelta(minutes=21)
    bouquet_spawn_slots: int = 4
    bouquet_spawn_min: timedelta = timedelta(minutes=1)
    bouquet_spawn_max: timedelta = timedelta(minutes=5)
    butterfly_dwell: timedelta = timedelta(seconds=15)
    sun_lifetime: timedelta = timedelta(seconds=30)

    @classmethod
    def from_settings(cls, settings) -> "LifecycleTiming":
        return cls(
            bouquet_lifetime=timedelta(minutes=settings.bouquet_lifetime_minutes),
            bouquet_spawn_slots=settings.bouquet_spawn_slots,
            bouquet_spawn_min=timedelta(minutes=settings.bouquet_spawn_min_minutes),
            bouquet_spawn_max=timedelta(minutes=settings.bouquet_spawn_max_minutes),
            butterfly_dwell=timedelta(seconds=settings.butterfly_dwell_seconds),
            sun_lifetime=timedelta(seconds=settings.sun_lifetime_seconds),
        )

    def bouquet_expiry(self, placed_at: datetime) -> datetime:
        return placed_at + self.bouquet_lifetime

    def next_spawn_after(self, moment: datetime, rng: Optional[RandomSource] = None) -> datetime:
        """A uniformly random point between spawn_min and spawn_max after `moment`."""
        rng = rng or random
        low = self.bouquet_spawn_min.total_seconds()
        high = self.bouquet_spawn_max.total_seconds()
        return moment + timedelta(seconds=rng.uniform(low, high))

    def butterfly_transition_at(self, spawned_at: datetime) -> datetime:
        return spawned_at + self.butterfly_dwell

    def sun_expiry(self, spawned_at: datetime) -> datetime:
        return spawned_at + self.sun_lifetime


def flower_dwell(rarity: RarityTier) -> timedelta:
    return timedelta(seconds=FLOWER_DWELL_SECONDS[RarityTier.from_value(rarity)])


def flower_transition_at(placed_at: datetime, rarity: RarityTier) -> datetime:
    return placed_at + flower_dwell(rarity)


def remaining_seconds(deadline: Optional[datetime], now: datetime) -> Optional[float]:
    """Seconds until `deadline`, floored at zero; None when there is no deadline."""
    if deadline is None:
        return None
    return max(0.0, (deadline - now).total_seconds())
