from datetime import datetime, timezone

from domain.value_objects.enums import RarityTier
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, PrimaryKeyConstraint, String, UniqueConstraint

from .connection import Base


def _utcnow():
    return datetime.now(timezone.utc)


class RarityMixin:
    """Rows store the rarity as its tier index."""

    rarity = Column(Integer, nullable=False, default=int(RarityTier.COMMON))

    @property
    def tier(self) -> RarityTier:
        return RarityTier(self.rarity)


# =============================================================================
# Occupancy
# =============================================================================


class FieldOccupancy(Base):
    """One row per occupied field. The primary key is the occupancy invariant."""

    __tablename__ = "field_occupancy"
    __table_args__ = (
        PrimaryKeyConstraint("user_id", "field_index", name="pk_field_occupancy"),
        UniqueConstraint("entity_kind", "entity_id", name="ux_field_occupancy_entity"),
    )

    user_id = Column(String, nullable=False)
    field_index = Column(Integer, nullable=False)
    entity_kind = Column(String, nullable=False)  # EntityKind value
    entity_id = Column(Integer, nullable=False)
    occupied_at = Column(DateTime(timezone=True), default=_utcnow)


# =============================================================================
# Field entities
# =============================================================================

# Entity ids feed the credit idempotency keys, so SQLite must not hand out a
# deleted row's id again
NEVER_REUSE_IDS = {"sqlite_autoincrement": True}


class PlacedBouquet(Base):
    __tablename__ = "placed_bouquets"
    __table_args__ = (
        Index("ix_placed_bouquets_next_spawn_at", "next_spawn_at"),
        Index("ix_placed_bouquets_expires_at", "expires_at"),
        NEVER_REUSE_IDS,
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    field_index = Column(Integer, nullable=False)
    bouquet_id = Column(Integer, nullable=False)
    bouquet_name = Column(String, nullable=True)
    bouquet_rarity = Column(Integer, nullable=False, default=int(RarityTier.COMMON))
    placed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    next_spawn_at = Column(DateTime(timezone=True), nullable=False)
    current_spawn_slot = Column(Integer, nullable=False, default=1)

    @property
    def tier(self) -> RarityTier:
        return RarityTier(self.bouquet_rarity)


class FieldButterfly(RarityMixin, Base):
    __tablename__ = "field_butterflies"
    __table_args__ = (NEVER_REUSE_IDS,)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    field_index = Column(Integer, nullable=False)
    butterfly_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    bouquet_id = Column(Integer, nullable=True)  # Bouquet that emitted it
    spawned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    next_transition_at = Column(DateTime(timezone=True), nullable=False, index=True)


class FieldFlower(RarityMixin, Base):
    __tablename__ = "field_flowers"
    __table_args__ = (NEVER_REUSE_IDS,)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    field_index = Column(Integer, nullable=False)
    flower_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    placed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    next_transition_at = Column(DateTime(timezone=True), nullable=False, index=True)


class FieldCaterpillar(RarityMixin, Base):
    __tablename__ = "field_caterpillars"
    __table_args__ = (NEVER_REUSE_IDS,)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    field_index = Column(Integer, nullable=False)
    caterpillar_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    spawned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class FieldFish(RarityMixin, Base):
    __tablename__ = "field_fish"
    __table_args__ = (NEVER_REUSE_IDS,)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    field_index = Column(Integer, nullable=False)
    fish_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    spawned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SunSpawn(Base):
    __tablename__ = "sun_spawns"
    __table_args__ = (NEVER_REUSE_IDS,)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    field_index = Column(Integer, nullable=False)
    spawned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    sun_amount = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)


# =============================================================================
# Pond feeding
# =============================================================================


class PondFeedingProgress(Base):
    __tablename__ = "pond_feeding_progress"
    __table_args__ = (UniqueConstraint("user_id", "field_index", name="ux_pond_feeding_user_field"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    field_index = Column(Integer, nullable=False)
    feeding_count = Column(Integer, nullable=False, default=0)
    last_fed_at = Column(DateTime(timezone=True), nullable=True)


class FedCaterpillar(RarityMixin, Base):
    """History of creatures fed into a pond field in the current cycle."""

    __tablename__ = "fed_caterpillars"
    __table_args__ = (Index("ix_fed_caterpillars_user_field", "user_id", "field_index"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False)
    field_index = Column(Integer, nullable=False)
    source_kind = Column(String, nullable=False)  # FeedSourceKind value
    source_id = Column(Integer, nullable=False)
    fed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


# =============================================================================
# Inventory / currency (default adapter for the external collaborators)
# =============================================================================


class UserItem(RarityMixin, Base):
    __tablename__ = "user_items"
    __table_args__ = (UniqueConstraint("user_id", "item_kind", "item_id", name="ux_user_items_stack"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    item_kind = Column(String, nullable=False)  # ItemKind value
    item_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False, default="")
    image_url = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class UserWallet(Base):
    __tablename__ = "user_wallets"

    user_id = Column(String, primary_key=True)
    credits = Column(Integer, nullable=False, default=0)
    suns = Column(Integer, nullable=False, default=0)
    hearts = Column(Integer, nullable=False, default=0)


class AppliedEffect(Base):
    """Idempotency keys of inventory/currency credits that were already applied."""

    __tablename__ = "applied_effects"

    idempotency_key = Column(String, primary_key=True)
    applied_at = Column(DateTime(timezone=True), default=_utcnow)
