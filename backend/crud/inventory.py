"""
CRUD operations for owned items, wallets and applied-effect keys.

These tables back the default inventory and currency adapter. Stacks are
keyed by (user_id, item_kind, item_id); debits are conditional updates so a
stack never goes below zero.
"""

import logging
from typing import List, Optional

from domain.value_objects.enums import CurrencyKind, ItemKind, RarityTier
from infrastructure.database import models
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .helpers import write_transaction

logger = logging.getLogger("InventoryCRUD")


async def get_item(db: AsyncSession, user_id: str, item_kind: ItemKind, item_id: int) -> Optional[models.UserItem]:
    result = await db.execute(
        select(models.UserItem).where(
            models.UserItem.user_id == user_id,
            models.UserItem.item_kind == ItemKind(item_kind).value,
            models.UserItem.item_id == item_id,
        )
    )
    return result.scalar_one_or_none()


async def list_items(db: AsyncSession, user_id: str, item_kind: Optional[ItemKind] = None) -> List[models.UserItem]:
    query = select(models.UserItem).where(models.UserItem.user_id == user_id, models.UserItem.quantity > 0)
    if item_kind is not None:
        query = query.where(models.UserItem.item_kind == ItemKind(item_kind).value)
    result = await db.execute(query.order_by(models.UserItem.item_kind, models.UserItem.item_id))
    return list(result.scalars().all())


async def add_item(
    db: AsyncSession,
    user_id: str,
    item_kind: ItemKind,
    item_id: int,
    rarity: RarityTier,
    quantity: int = 1,
    name: str = "",
    image_url: Optional[str] = None,
    commit: bool = True,
) -> models.UserItem:
    """Add to an item stack, creating it on first credit."""
    async with write_transaction(db, commit):
        item = await get_item(db, user_id, item_kind, item_id)
        if item is None:
            item = models.UserItem(
                user_id=user_id,
                item_kind=ItemKind(item_kind).value,
                item_id=item_id,
                rarity=int(rarity),
                name=name,
                image_url=image_url,
                quantity=quantity,
            )
            db.add(item)
        else:
            item.quantity += quantity
            if name and not item.name:
                item.name = name
        await db.flush()

    return item


async def remove_item(
    db: AsyncSession,
    user_id: str,
    item_kind: ItemKind,
    item_id: int,
    quantity: int = 1,
    commit: bool = True,
) -> Optional[models.UserItem]:
    """
    Take `quantity` units from a stack.

    Returns:
        The updated stack, or None if the user owns fewer than `quantity`
    """
    async with write_transaction(db, commit):
        result = await db.execute(
            update(models.UserItem)
            .where(
                models.UserItem.user_id == user_id,
                models.UserItem.item_kind == ItemKind(item_kind).value,
                models.UserItem.item_id == item_id,
                models.UserItem.quantity >= quantity,
            )
            .values(quantity=models.UserItem.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        item = await get_item(db, user_id, item_kind, item_id)
        await db.refresh(item)

    return item


async def get_wallet(db: AsyncSession, user_id: str) -> Optional[models.UserWallet]:
    result = await db.execute(select(models.UserWallet).where(models.UserWallet.user_id == user_id))
    return result.scalar_one_or_none()


async def add_currency(
    db: AsyncSession,
    user_id: str,
    currency: CurrencyKind,
    amount: int,
    commit: bool = True,
) -> models.UserWallet:
    column = CurrencyKind(currency).value
    async with write_transaction(db, commit):
        wallet = await get_wallet(db, user_id)
        if wallet is None:
            wallet = models.UserWallet(user_id=user_id, credits=0, suns=0, hearts=0)
            db.add(wallet)
        setattr(wallet, column, (getattr(wallet, column) or 0) + amount)
        await db.flush()

    return wallet


async def is_effect_applied(db: AsyncSession, idempotency_key: str) -> bool:
    result = await db.execute(
        select(models.AppliedEffect).where(models.AppliedEffect.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none() is not None


async def mark_effect_applied(db: AsyncSession, idempotency_key: str) -> None:
    """Record an idempotency key. Joins the caller's transaction."""
    db.add(models.AppliedEffect(idempotency_key=idempotency_key))
    await db.flush()
