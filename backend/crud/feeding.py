"""
CRUD operations for pond feeding progress.

A pond field keeps a feed counter and the rarities fed during the current
cycle. The counter and the history are reset together when a fish spawns.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from domain.value_objects.enums import FeedSourceKind, RarityTier
from infrastructure.database import models
from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .helpers import write_transaction

logger = logging.getLogger("FeedingCRUD")


async def get_progress(db: AsyncSession, user_id: str, field_index: int) -> Optional[models.PondFeedingProgress]:
    result = await db.execute(
        select(models.PondFeedingProgress).where(
            models.PondFeedingProgress.user_id == user_id,
            models.PondFeedingProgress.field_index == field_index,
        )
    )
    return result.scalar_one_or_none()


async def list_progress_for_user(db: AsyncSession, user_id: str) -> List[models.PondFeedingProgress]:
    result = await db.execute(
        select(models.PondFeedingProgress)
        .where(models.PondFeedingProgress.user_id == user_id)
        .order_by(models.PondFeedingProgress.field_index)
    )
    return list(result.scalars().all())


async def get_history(db: AsyncSession, user_id: str, field_index: int) -> List[models.FedCaterpillar]:
    """Rarities fed into a pond field since the last fish, oldest first."""
    result = await db.execute(
        select(models.FedCaterpillar)
        .where(
            models.FedCaterpillar.user_id == user_id,
            models.FedCaterpillar.field_index == field_index,
        )
        .order_by(models.FedCaterpillar.fed_at, models.FedCaterpillar.id)
    )
    return list(result.scalars().all())


_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


async def ensure_progress(db: AsyncSession, user_id: str, field_index: int) -> None:
    """
    Create the progress row of a pond field unless it exists.

    Concurrent first feeds of the same field both reach this point; the insert
    ignores the conflict so the loser goes on to lock the winner's row.
    """
    insert = _INSERTS[db.get_bind().dialect.name]
    await db.execute(
        insert(models.PondFeedingProgress)
        .values(user_id=user_id, field_index=field_index, feeding_count=0)
        .on_conflict_do_nothing(index_elements=["user_id", "field_index"])
    )


async def record_feed(
    db: AsyncSession,
    user_id: str,
    field_index: int,
    rarity: RarityTier,
    source_kind: FeedSourceKind,
    source_id: int,
    fed_at: datetime,
    commit: bool = True,
) -> Tuple[models.PondFeedingProgress, List[RarityTier]]:
    """
    Append one fed creature to a pond field's history and bump its counter.

    The progress row is read with FOR UPDATE (a no-op on SQLite, where the
    write lock already serializes feeds).

    Returns:
        (progress row, rarities of the current cycle including this feed)
    """
    async with write_transaction(db, commit):
        await ensure_progress(db, user_id, field_index)
        result = await db.execute(
            select(models.PondFeedingProgress)
            .where(
                models.PondFeedingProgress.user_id == user_id,
                models.PondFeedingProgress.field_index == field_index,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        progress = result.scalar_one()

        progress.feeding_count = (progress.feeding_count or 0) + 1
        progress.last_fed_at = fed_at
        db.add(
            models.FedCaterpillar(
                user_id=user_id,
                field_index=field_index,
                rarity=int(rarity),
                source_kind=FeedSourceKind(source_kind).value,
                source_id=source_id,
                fed_at=fed_at,
            )
        )
        await db.flush()

        history = [row.tier for row in await get_history(db, user_id, field_index)]

    logger.debug(f"Pond field {field_index} of user {user_id} fed ({progress.feeding_count})")
    return progress, history


async def reset_progress(db: AsyncSession, user_id: str, field_index: int, commit: bool = True) -> None:
    """Zero the counter and clear the history of a pond field."""
    async with write_transaction(db, commit):
        progress = await get_progress(db, user_id, field_index)
        if progress is not None:
            progress.feeding_count = 0
        await db.execute(
            delete(models.FedCaterpillar)
            .where(
                models.FedCaterpillar.user_id == user_id,
                models.FedCaterpillar.field_index == field_index,
            )
            .execution_options(synchronize_session=False)
        )
        await db.flush()
