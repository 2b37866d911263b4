"""
Domain data structures for the garden field lifecycle.

These are plain dataclasses passed between the store, the lifecycle
transitions and the command surface. ORM rows never leave the service layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from domain.value_objects.enums import (
    CommandOutcome,
    EntityKind,
    FieldKind,
    ItemKind,
    RarityTier,
)


@dataclass(frozen=True)
class Species:
    """A catalog entry: one butterfly, flower, caterpillar or fish species."""

    kind: str
    id: int
    name: str
    rarity: RarityTier
    image_url: str


@dataclass
class OwnedItem:
    """An inventory stack owned by a user."""

    user_id: str
    item_kind: ItemKind
    item_id: int
    rarity: RarityTier
    quantity: int
    name: str = ""
    image_url: Optional[str] = None


@dataclass(frozen=True)
class SeedReward:
    """Seeds credited when a bouquet withers."""

    rarity: RarityTier
    quantity: int


@dataclass
class FeedingSnapshot:
    """Pond feeding progress after a feed."""

    field_index: int
    feeding_count: int
    history: List[RarityTier] = field(default_factory=list)
    last_fed_at: Optional[datetime] = None
    fish: Optional[Dict[str, Any]] = None

    @property
    def spawned_fish(self) -> bool:
        return self.fish is not None


@dataclass
class FieldState:
    """Read model for one garden field."""

    field_index: int
    field_kind: FieldKind
    occupant: Optional[EntityKind] = None
    entity_id: Optional[int] = None
    rarity: Optional[RarityTier] = None
    name: Optional[str] = None
    image_url: Optional[str] = None
    remaining_seconds: Optional[float] = None
    spawn_slot: Optional[int] = None
    sun_amount: Optional[int] = None
    feeding_count: Optional[int] = None


@dataclass
class CommandResult:
    """Typed outcome of a garden command. `data` is only set on success."""

    outcome: CommandOutcome
    data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == CommandOutcome.OK

    @classmethod
    def success(cls, **data: Any) -> "CommandResult":
        return cls(outcome=CommandOutcome.OK, data=data)

    @classmethod
    def rejected(cls, outcome: CommandOutcome, message: Optional[str] = None) -> "CommandResult":
        return cls(outcome=outcome, message=message)


@dataclass
class SweepReport:
    """Counters for one scheduler tick."""

    butterflies_spawned: int = 0
    slots_deferred: int = 0
    bouquets_withered: int = 0
    butterflies_transformed: int = 0
    flowers_transformed: int = 0
    suns_expired: int = 0
    lost_races: int = 0
    failures: int = 0

    @property
    def transitions(self) -> int:
        return (
            self.butterflies_spawned
            + self.bouquets_withered
            + self.butterflies_transformed
            + self.flowers_transformed
            + self.suns_expired
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "butterflies_spawned": self.butterflies_spawned,
            "slots_deferred": self.slots_deferred,
            "bouquets_withered": self.bouquets_withered,
            "butterflies_transformed": self.butterflies_transformed,
            "flowers_transformed": self.flowers_transformed,
            "suns_expired": self.suns_expired,
            "lost_races": self.lost_races,
            "failures": self.failures,
        }
