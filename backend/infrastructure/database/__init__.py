"""
Database infrastructure package.

Re-exports commonly used database components for convenient imports.
"""

from .connection import (
    Base,
    async_session_maker,
    get_database_type,
    init_db,
    make_session_factory,
    retry_on_db_lock,
    serialized_write,
)
from .models import (
    AppliedEffect,
    FedCaterpillar,
    FieldButterfly,
    FieldCaterpillar,
    FieldFish,
    FieldFlower,
    FieldOccupancy,
    PlacedBouquet,
    PondFeedingProgress,
    SunSpawn,
    UserItem,
    UserWallet,
)

__all__ = [
    # Connection
    "Base",
    "async_session_maker",
    "get_database_type",
    "init_db",
    "make_session_factory",
    "retry_on_db_lock",
    "serialized_write",
    # Models
    "AppliedEffect",
    "FedCaterpillar",
    "FieldButterfly",
    "FieldCaterpillar",
    "FieldFish",
    "FieldFlower",
    "FieldOccupancy",
    "PlacedBouquet",
    "PondFeedingProgress",
    "SunSpawn",
    "UserItem",
    "UserWallet",
]
