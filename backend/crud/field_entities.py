"""
CRUD operations for ephemeral field entities.

Every entity row is paired with a `field_occupancy` row. The occupancy primary
key on (user_id, field_index) is what keeps a field to a single occupant, so
two concurrent creators cannot both succeed. Deletes are conditional on the
row still existing; the affected row count decides which caller won.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from domain.exceptions import FieldOccupiedError
from domain.value_objects.enums import EntityKind
from infrastructure.database import models
from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .helpers import write_transaction

logger = logging.getLogger("FieldEntityCRUD")

ENTITY_MODELS: Dict[EntityKind, type] = {
    EntityKind.BOUQUET: models.PlacedBouquet,
    EntityKind.BUTTERFLY: models.FieldButterfly,
    EntityKind.FLOWER: models.FieldFlower,
    EntityKind.CATERPILLAR: models.FieldCaterpillar,
    EntityKind.FISH: models.FieldFish,
    EntityKind.SUN: models.SunSpawn,
}

# Kinds the scheduler sweeps, with the column holding their deadline
DEADLINE_COLUMNS = {
    EntityKind.BUTTERFLY: models.FieldButterfly.next_transition_at,
    EntityKind.FLOWER: models.FieldFlower.next_transition_at,
    EntityKind.SUN: models.SunSpawn.expires_at,
}

SCHEDULED_KINDS = (EntityKind.BOUQUET, *DEADLINE_COLUMNS)


def kind_of(entity) -> EntityKind:
    """Entity kind for an ORM instance."""
    for kind, model in ENTITY_MODELS.items():
        if isinstance(entity, model):
            return kind
    raise TypeError(f"Not a field entity: {type(entity).__name__}")


# =============================================================================
# Occupancy
# =============================================================================


async def get_occupant(db: AsyncSession, user_id: str, field_index: int) -> Optional[models.FieldOccupancy]:
    """Occupancy row for a field, or None if the field is empty."""
    result = await db.execute(
        select(models.FieldOccupancy).where(
            models.FieldOccupancy.user_id == user_id,
            models.FieldOccupancy.field_index == field_index,
        )
    )
    return result.scalar_one_or_none()


async def list_occupancy(db: AsyncSession, user_id: str) -> List[models.FieldOccupancy]:
    result = await db.execute(
        select(models.FieldOccupancy)
        .where(models.FieldOccupancy.user_id == user_id)
        .order_by(models.FieldOccupancy.field_index)
    )
    return list(result.scalars().all())


# =============================================================================
# Entities
# =============================================================================


async def create_entity(db: AsyncSession, entity, commit: bool = True):
    """
    Insert a field entity and claim its field.

    Args:
        db: Database session
        entity: Unsaved ORM instance of one of the field entity models
        commit: Commit under the write lock. Pass False to join a transaction
            the caller already holds the write lock for.

    Returns:
        The persisted entity (with id populated)

    Raises:
        FieldOccupiedError: If the field already holds an occupant. Pending
            changes in the session have been rolled back.
    """
    kind = kind_of(entity)

    async with write_transaction(db, commit):
        occupant = await get_occupant(db, entity.user_id, entity.field_index)
        if occupant is not None:
            raise FieldOccupiedError(entity.user_id, entity.field_index, EntityKind(occupant.entity_kind))

        db.add(entity)
        try:
            await db.flush()
            db.add(
                models.FieldOccupancy(
                    user_id=entity.user_id,
                    field_index=entity.field_index,
                    entity_kind=kind.value,
                    entity_id=entity.id,
                )
            )
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise FieldOccupiedError(entity.user_id, entity.field_index)

    logger.debug(f"Created {kind} {entity.id} on field {entity.field_index} for user {entity.user_id}")
    return entity


async def get_entity(db: AsyncSession, kind: EntityKind, entity_id: int):
    model = ENTITY_MODELS[kind]
    result = await db.execute(select(model).where(model.id == entity_id))
    return result.scalar_one_or_none()


async def get_by_field(db: AsyncSession, kind: EntityKind, user_id: str, field_index: int):
    """The entity of the given kind on a field, or None."""
    model = ENTITY_MODELS[kind]
    result = await db.execute(select(model).where(model.user_id == user_id, model.field_index == field_index))
    return result.scalars().first()


async def list_for_user(db: AsyncSession, kind: EntityKind, user_id: str) -> list:
    model = ENTITY_MODELS[kind]
    result = await db.execute(select(model).where(model.user_id == user_id).order_by(model.field_index))
    return list(result.scalars().all())


async def delete_if_exists(db: AsyncSession, kind: EntityKind, entity_id: int, commit: bool = True) -> bool:
    """
    Delete an entity and release its field.

    Returns:
        True if this call removed the row, False if it was already gone
    """
    model = ENTITY_MODELS[kind]

    async with write_transaction(db, commit):
        result = await db.execute(
            delete(model).where(model.id == entity_id).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        await db.execute(
            delete(models.FieldOccupancy)
            .where(
                models.FieldOccupancy.entity_kind == kind.value,
                models.FieldOccupancy.entity_id == entity_id,
            )
            .execution_options(synchronize_session=False)
        )

    return True


async def list_due(db: AsyncSession, kind: EntityKind, now: datetime, limit: Optional[int] = None) -> list:
    """
    Entities whose deadline is at or before `now`, oldest first.

    Bouquets are due when either the next spawn or the expiry has passed.

    Raises:
        ValueError: For kinds without a deadline
    """
    if kind == EntityKind.BOUQUET:
        model = models.PlacedBouquet
        query = (
            select(model)
            .where(or_(model.next_spawn_at <= now, model.expires_at <= now))
            .order_by(model.next_spawn_at)
        )
    elif kind in DEADLINE_COLUMNS:
        column = DEADLINE_COLUMNS[kind]
        query = select(ENTITY_MODELS[kind]).where(column <= now).order_by(column)
    else:
        raise ValueError(f"{kind} entities have no deadline")

    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


# =============================================================================
# Bouquet schedule
# =============================================================================


async def advance_bouquet_slot(
    db: AsyncSession,
    bouquet_id: int,
    expected_slot: int,
    next_spawn_at: datetime,
    commit: bool = True,
) -> bool:
    """
    Move a bouquet to its next spawn slot if it is still at `expected_slot`.

    Returns:
        False if the bouquet is gone or another sweep already advanced it
    """
    return await _update_bouquet_schedule(
        db, bouquet_id, expected_slot, expected_slot + 1, next_spawn_at, commit
    )


async def reschedule_bouquet(
    db: AsyncSession,
    bouquet_id: int,
    expected_slot: int,
    next_spawn_at: datetime,
    commit: bool = True,
) -> bool:
    """Push back the next spawn without consuming the slot."""
    return await _update_bouquet_schedule(db, bouquet_id, expected_slot, expected_slot, next_spawn_at, commit)


async def _update_bouquet_schedule(
    db: AsyncSession,
    bouquet_id: int,
    expected_slot: int,
    new_slot: int,
    next_spawn_at: datetime,
    commit: bool,
) -> bool:
    model = models.PlacedBouquet
    async with write_transaction(db, commit):
        result = await db.execute(
            update(model)
            .where(model.id == bouquet_id, model.current_spawn_slot == expected_slot)
            .values(current_spawn_slot=new_slot, next_spawn_at=next_spawn_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
