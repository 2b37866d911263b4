"""Garden routes: field read model, placement, collection, feeding and scheduler control."""

import logging

import schemas
from core.dependencies import (
    RequestIdentity,
    get_background_scheduler,
    get_garden_service,
    get_request_identity,
)
from domain.entities.field_models import CommandResult
from domain.exceptions import CommandRejectedError
from domain.value_objects.enums import EntityKind
from fastapi import APIRouter, Depends, Request
from infrastructure.scheduler import BackgroundScheduler
from services.garden_service import GardenService
from slowapi import Limiter
from slowapi.util import get_remote_address

router = APIRouter()
logger = logging.getLogger("GardenRouter")

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)


def _unwrap(result: CommandResult) -> dict:
    """Return the payload of a successful command or raise the matching HTTP error."""
    if not result.ok:
        raise CommandRejectedError(result.outcome, result.message)
    return result.data


def _entity_response(result: CommandResult, kind: EntityKind) -> schemas.EntityCommandResponse:
    data = _unwrap(result)
    return schemas.EntityCommandResponse(entity=schemas.FieldEntity(**data[kind.value]))


@router.get("/fields", response_model=schemas.GardenFieldsResponse)
@limiter.limit("120/minute")  # The UI polls field state every few seconds
async def get_fields(
    request: Request,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """Get every field of the caller's garden with its current occupant."""
    states = await garden.get_field_states(identity.user_id)
    return schemas.GardenFieldsResponse(
        user_id=identity.user_id,
        fields=[schemas.FieldStateResponse.model_validate(state) for state in states],
    )


@router.post("/fields/{field_index}/bouquet", response_model=schemas.EntityCommandResponse, status_code=201)
@limiter.limit("60/minute")
async def place_bouquet(
    request: Request,
    field_index: int,
    placement: schemas.BouquetPlacement,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """Place an owned bouquet on a grass field."""
    result = await garden.place_bouquet(identity.user_id, field_index, placement.bouquet_id)
    return _entity_response(result, EntityKind.BOUQUET)


@router.post("/fields/{field_index}/flower", response_model=schemas.EntityCommandResponse, status_code=201)
@limiter.limit("60/minute")
async def place_flower(
    request: Request,
    field_index: int,
    placement: schemas.FlowerPlacement,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """Place an owned flower on a grass field."""
    result = await garden.place_flower(identity.user_id, field_index, placement.flower_id)
    return _entity_response(result, EntityKind.FLOWER)


@router.post("/fields/{field_index}/butterfly/collect", response_model=schemas.EntityCommandResponse)
@limiter.limit("120/minute")
async def collect_butterfly(
    request: Request,
    field_index: int,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """Catch the butterfly sitting on a field."""
    result = await garden.collect_field_butterfly(identity.user_id, field_index)
    return _entity_response(result, EntityKind.BUTTERFLY)


@router.post("/fields/{field_index}/caterpillar/collect", response_model=schemas.EntityCommandResponse)
@limiter.limit("120/minute")
async def collect_caterpillar(
    request: Request,
    field_index: int,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """Pick up the caterpillar sitting on a field."""
    result = await garden.collect_field_caterpillar(identity.user_id, field_index)
    return _entity_response(result, EntityKind.CATERPILLAR)


@router.post("/fields/{field_index}/fish/collect", response_model=schemas.EntityCommandResponse)
@limiter.limit("120/minute")
async def collect_fish(
    request: Request,
    field_index: int,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """Catch the fish in a pond field."""
    result = await garden.collect_field_fish(identity.user_id, field_index)
    return _entity_response(result, EntityKind.FISH)


@router.post("/fields/{field_index}/feed", response_model=schemas.FeedResponse)
@limiter.limit("60/minute")
async def feed_pond(
    request: Request,
    field_index: int,
    feed: schemas.FeedRequest,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """
    Feed an owned caterpillar or butterfly into a pond field.

    Every third feed spawns a fish whose rarity is the average of the three.
    """
    data = _unwrap(await garden.feed(identity.user_id, field_index, feed.source_id, feed.source_kind))
    progress = data["progress"]
    return schemas.FeedResponse(
        field_index=progress.field_index,
        feeding_count=progress.feeding_count,
        history=progress.history,
        fish=schemas.FieldEntity(**progress.fish) if progress.fish else None,
    )


@router.post("/fields/{field_index}/sun/collect", response_model=schemas.SunCollectResponse)
@limiter.limit("120/minute")
async def collect_sun(
    request: Request,
    field_index: int,
    identity: RequestIdentity = Depends(get_request_identity),
    garden: GardenService = Depends(get_garden_service),
):
    """Pick up a sun before it expires."""
    data = _unwrap(await garden.collect_sun(identity.user_id, field_index))
    return schemas.SunCollectResponse(amount=data["amount"])


@router.get("/scheduler", response_model=schemas.SchedulerStatusResponse)
async def get_scheduler_status(scheduler: BackgroundScheduler = Depends(get_background_scheduler)):
    """Get the lifecycle scheduler state and the report of its last sweep."""
    return scheduler.status()


@router.post("/scheduler/sweep", response_model=schemas.SweepReportResponse)
@limiter.limit("30/minute")
async def force_sweep(
    request: Request,
    identity: RequestIdentity = Depends(get_request_identity),
    scheduler: BackgroundScheduler = Depends(get_background_scheduler),
):
    """Run one lifecycle sweep immediately."""
    report = await scheduler.force_sweep()
    logger.info(f"Sweep forced by user {identity.user_id}: {report.to_dict()}")
    return report.to_dict()
