"""
Rarity rules shared by every field transition.

`inherit` is the only probabilistic rule and takes an injectable random source
so each branch can be forced in tests. `average` is pure.
"""

import random
from typing import Iterable, Optional, Protocol, Tuple

from domain.value_objects.enums import RarityTier

# Cumulative thresholds for the inherit roll: same / one lower / one higher
INHERIT_SAME_BELOW = 0.50
INHERIT_LOWER_BELOW = 0.80

# Seed drop when a bouquet withers: one higher / one lower / same
SEED_UPGRADE_BELOW = 0.15
SEED_DOWNGRADE_BELOW = 0.45
SEED_QUANTITY_RANGE = (1, 4)


class RandomSource(Protocol):
    """Subset of random.Random used by the rarity and lifecycle rules."""

    def random(self) -> float: ...

    def uniform(self, a: float, b: float) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def choice(self, seq): ...


def _clamp(index: int) -> RarityTier:
    return RarityTier(max(RarityTier.COMMON, min(RarityTier.MYTHICAL, index)))


def inherit(parent: RarityTier, rng: Optional[RandomSource] = None) -> RarityTier:
    """
    Roll a child rarity from a parent rarity.

    50% same tier, 30% one tier lower, 20% one tier higher, clamped at
    common and mythical.
    """
    rng = rng or random
    parent = RarityTier.from_value(parent)
    r = rng.random()
    if r < INHERIT_SAME_BELOW:
        return parent
    if r < INHERIT_LOWER_BELOW:
        return _clamp(parent - 1)
    return _clamp(parent + 1)


def average(tiers: Iterable[RarityTier]) -> RarityTier:
    """
    Average three tiers into one.

    The mean of the indices is rounded to the nearest integer with ties
    rounding up, then clamped to the tier range.
    """
    indices = [int(RarityTier.from_value(t)) for t in tiers]
    if len(indices) != 3:
        raise ValueError(f"average() expects exactly 3 tiers, got {len(indices)}")
    total = sum(indices)
    # floor(total / 3 + 1/2) in integer arithmetic
    return _clamp((2 * total + 3) // 6)


def seed_drop(rarity: RarityTier, rng: Optional[RandomSource] = None) -> Tuple[RarityTier, int]:
    """
    Seed reward for a withered bouquet.

    Returns (seed rarity, quantity). Quantity is 1-4. The rarity moves one
    tier up with 15% probability and one tier down with 30%, when possible.
    """
    rng = rng or random
    rarity = RarityTier.from_value(rarity)
    quantity = rng.randint(*SEED_QUANTITY_RANGE)
    roll = rng.random()

    if roll < SEED_UPGRADE_BELOW and rarity < RarityTier.MYTHICAL:
        return RarityTier(rarity + 1), quantity
    if SEED_UPGRADE_BELOW <= roll < SEED_DOWNGRADE_BELOW and rarity > RarityTier.COMMON:
        return RarityTier(rarity - 1), quantity
    return rarity, quantity
