"""
Pydantic schemas for API request/response models.

This package organizes schemas by resource type:
- garden.py: Garden field, command and scheduler schemas
"""

from schemas.garden import (
    BouquetPlacement,
    EntityCommandResponse,
    FeedRequest,
    FeedResponse,
    FieldEntity,
    FieldStateResponse,
    FlowerPlacement,
    GardenFieldsResponse,
    SchedulerStatusResponse,
    SunCollectResponse,
    SweepReportResponse,
)

__all__ = [
    # Requests
    "BouquetPlacement",
    "FlowerPlacement",
    "FeedRequest",
    # Field entities
    "FieldEntity",
    "FieldStateResponse",
    "GardenFieldsResponse",
    # Command responses
    "EntityCommandResponse",
    "FeedResponse",
    "SunCollectResponse",
    # Scheduler
    "SweepReportResponse",
    "SchedulerStatusResponse",
]
