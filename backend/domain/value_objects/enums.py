"""
Domain enums for type-safe constants.
"""

from enum import Enum, IntEnum


class RarityTier(IntEnum):
    """Ordered rarity tiers. The integer value is the tier index (0-6)."""

    COMMON = 0
    UNCOMMON = 1
    RARE = 2
    SUPER_RARE = 3
    EPIC = 4
    LEGENDARY = 5
    MYTHICAL = 6

    @property
    def slug(self) -> str:
        """Lowercase hyphenated name used in storage and the API ("super-rare")."""
        return self.name.lower().replace("_", "-")

    @property
    def display_name(self) -> str:
        return self.slug.capitalize()

    @classmethod
    def from_value(cls, value) -> "RarityTier":
        """
        Parse a tier from an index, a slug ("super-rare") or an enum name ("SUPER_RARE").

        Raises:
            ValueError: If the value does not name a tier
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_").replace(" ", "_")
            if key in cls.__members__:
                return cls[key]
            if key.isdigit():
                return cls(int(key))
        raise ValueError(f"Unknown rarity tier: {value!r}")

    def __str__(self) -> str:
        return self.slug


class FieldKind(str, Enum):
    """Garden field categories."""

    GRASS = "grass"
    POND = "pond"

    def __str__(self) -> str:
        return self.value


class EntityKind(str, Enum):
    """Kinds of ephemeral entities that can occupy a field."""

    BOUQUET = "bouquet"
    BUTTERFLY = "butterfly"
    FLOWER = "flower"
    CATERPILLAR = "caterpillar"
    FISH = "fish"
    SUN = "sun"

    def __str__(self) -> str:
        return self.value


class ItemKind(str, Enum):
    """Owned inventory item categories."""

    SEED = "seed"
    FLOWER = "flower"
    BOUQUET = "bouquet"
    BUTTERFLY = "butterfly"
    CATERPILLAR = "caterpillar"
    FISH = "fish"

    def __str__(self) -> str:
        return self.value


class CurrencyKind(str, Enum):
    """User balances."""

    CREDITS = "credits"
    SUNS = "suns"
    HEARTS = "hearts"

    def __str__(self) -> str:
        return self.value


class FeedSourceKind(str, Enum):
    """What may be fed into a pond field."""

    CATERPILLAR = "caterpillar"
    BUTTERFLY = "butterfly"

    def __str__(self) -> str:
        return self.value


class CommandOutcome(str, Enum):
    """Result of a command on the garden surface."""

    OK = "ok"
    FIELD_OCCUPIED = "field_occupied"  # Create on a non-empty field
    INVALID_FIELD_KIND = "invalid_field_kind"  # Wrong field category (e.g. feeding on grass)
    INSUFFICIENT_INVENTORY = "insufficient_inventory"  # Consuming more than owned
    NOT_FOUND = "not_found"  # No matching entity on the field
    ALREADY_TRANSITIONED = "already_transitioned"  # Lost a delete race, benign

    def __str__(self) -> str:
        return self.value
