"""Garden field schemas."""

from datetime import datetime
from typing import List, Optional

from domain.value_objects.enums import EntityKind, FeedSourceKind, FieldKind, RarityTier
from pydantic import BaseModel, field_serializer
from utils.serializers import serialize_utc_datetime as _serialize_utc_datetime

# =============================================================================
# Requests
# =============================================================================


class BouquetPlacement(BaseModel):
    """Schema for placing an owned bouquet."""

    bouquet_id: int


class FlowerPlacement(BaseModel):
    """Schema for placing an owned flower."""

    flower_id: int


class FeedRequest(BaseModel):
    """Schema for feeding a pond field."""

    source_id: int
    source_kind: FeedSourceKind = FeedSourceKind.CATERPILLAR


# =============================================================================
# Field entities
# =============================================================================


class FieldEntity(BaseModel):
    """Any entity sitting on a field. Kind-specific fields are None for other kinds."""

    id: int
    kind: EntityKind
    field_index: int
    species_id: Optional[int] = None
    bouquet_id: Optional[int] = None
    name: Optional[str] = None
    rarity: Optional[RarityTier] = None
    image_url: Optional[str] = None
    spawn_slot: Optional[int] = None
    sun_amount: Optional[int] = None
    next_transition_at: Optional[datetime] = None
    next_spawn_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_serializer("rarity")
    def serialize_rarity(self, rarity: Optional[RarityTier], _info):
        return rarity.slug if rarity is not None else None

    @field_serializer("next_transition_at", "next_spawn_at", "expires_at")
    def serialize_deadline(self, dt: Optional[datetime], _info):
        return _serialize_utc_datetime(dt) if dt else None


class FieldStateResponse(BaseModel):
    """Schema for one field of the garden read model."""

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

    @field_serializer("rarity")
    def serialize_rarity(self, rarity: Optional[RarityTier], _info):
        return rarity.slug if rarity is not None else None

    class Config:
        from_attributes = True


class GardenFieldsResponse(BaseModel):
    user_id: str
    fields: List[FieldStateResponse]


# =============================================================================
# Command responses
# =============================================================================


class EntityCommandResponse(BaseModel):
    """Schema for place and collect commands."""

    outcome: str = "ok"
    entity: FieldEntity


class FeedResponse(BaseModel):
    """Schema for the pond progress after a feed."""

    outcome: str = "ok"
    field_index: int
    feeding_count: int
    history: List[RarityTier] = []
    fish: Optional[FieldEntity] = None

    @field_serializer("history")
    def serialize_history(self, history: List[RarityTier], _info):
        return [tier.slug for tier in history]

    class Config:
        from_attributes = True


class SunCollectResponse(BaseModel):
    outcome: str = "ok"
    amount: int


# =============================================================================
# Scheduler
# =============================================================================


class SweepReportResponse(BaseModel):
    butterflies_spawned: int = 0
    slots_deferred: int = 0
    bouquets_withered: int = 0
    butterflies_transformed: int = 0
    flowers_transformed: int = 0
    suns_expired: int = 0
    lost_races: int = 0
    failures: int = 0


class SchedulerStatusResponse(BaseModel):
    is_running: bool
    interval_seconds: float
    sweep_count: int
    last_sweep_at: Optional[datetime] = None
    last_report: Optional[SweepReportResponse] = None

    @field_serializer("last_sweep_at")
    def serialize_last_sweep_at(self, dt: Optional[datetime], _info):
        return _serialize_utc_datetime(dt) if dt else None
