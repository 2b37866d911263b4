"""
Inventory and currency collaborators.

The garden core only needs to credit and debit owned items and to credit
currencies. `InventoryGateway` and `CurrencyGateway` describe that contract;
`DatabaseInventoryGateway` is the bundled implementation on top of the
user_items / user_wallets tables.

Every credit takes an optional idempotency key. A key is applied at most once,
so a transition that is replayed after a crash never pays out twice.
"""

import logging
from typing import List, Optional, Protocol

import crud
from domain.entities.field_models import OwnedItem
from domain.value_objects.enums import CurrencyKind, ItemKind, RarityTier
from infrastructure.database.connection import retry_on_db_lock

logger = logging.getLogger("InventoryService")


class InventoryGateway(Protocol):
    async def get_item(self, user_id: str, item_kind: ItemKind, item_id: int) -> Optional[OwnedItem]: ...

    async def debit_item(
        self, user_id: str, item_kind: ItemKind, item_id: int, quantity: int = 1
    ) -> Optional[OwnedItem]: ...

    async def credit_item(
        self,
        user_id: str,
        item_kind: ItemKind,
        item_id: int,
        rarity: RarityTier,
        quantity: int = 1,
        name: str = "",
        image_url: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> bool: ...


class CurrencyGateway(Protocol):
    async def credit_currency(
        self,
        user_id: str,
        currency: CurrencyKind,
        amount: int,
        idempotency_key: Optional[str] = None,
    ) -> bool: ...


def _to_owned(row) -> OwnedItem:
    return OwnedItem(
        user_id=row.user_id,
        item_kind=ItemKind(row.item_kind),
        item_id=row.item_id,
        rarity=row.tier,
        quantity=row.quantity,
        name=row.name or "",
        image_url=row.image_url,
    )


class DatabaseInventoryGateway:
    """
    Inventory and currency adapter backed by the application database.

    Each call runs in its own session and commits on its own, so it is never
    part of a field-store transaction.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def get_item(self, user_id: str, item_kind: ItemKind, item_id: int) -> Optional[OwnedItem]:
        async with self.session_factory() as db:
            row = await crud.get_item(db, user_id, item_kind, item_id)
            return _to_owned(row) if row is not None else None

    async def list_items(self, user_id: str, item_kind: Optional[ItemKind] = None) -> List[OwnedItem]:
        async with self.session_factory() as db:
            return [_to_owned(row) for row in await crud.list_items(db, user_id, item_kind)]

    @retry_on_db_lock()
    async def debit_item(
        self, user_id: str, item_kind: ItemKind, item_id: int, quantity: int = 1
    ) -> Optional[OwnedItem]:
        """
        Take owned items.

        Returns:
            The stack after the debit, or None if the user owns too few
        """
        async with self.session_factory() as db:
            row = await crud.remove_item(db, user_id, item_kind, item_id, quantity)
            if row is None:
                logger.debug(f"Debit refused: user {user_id} lacks {quantity}x {item_kind} {item_id}")
                return None
            return _to_owned(row)

    @retry_on_db_lock()
    async def credit_item(
        self,
        user_id: str,
        item_kind: ItemKind,
        item_id: int,
        rarity: RarityTier,
        quantity: int = 1,
        name: str = "",
        image_url: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        """
        Give owned items.

        Returns:
            False if `idempotency_key` was already applied, True otherwise
        """
        async with self.session_factory() as db:
            async with crud.write_transaction(db):
                if idempotency_key is not None:
                    if await crud.is_effect_applied(db, idempotency_key):
                        logger.info(f"Skipping already applied credit {idempotency_key}")
                        return False
                    await crud.mark_effect_applied(db, idempotency_key)

                await crud.add_item(
                    db,
                    user_id,
                    item_kind,
                    item_id,
                    rarity,
                    quantity=quantity,
                    name=name,
                    image_url=image_url,
                    commit=False,
                )

        logger.debug(f"Credited {quantity}x {item_kind} {item_id} to user {user_id}")
        return True

    @retry_on_db_lock()
    async def credit_currency(
        self,
        user_id: str,
        currency: CurrencyKind,
        amount: int,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        async with self.session_factory() as db:
            async with crud.write_transaction(db):
                if idempotency_key is not None:
                    if await crud.is_effect_applied(db, idempotency_key):
                        logger.info(f"Skipping already applied credit {idempotency_key}")
                        return False
                    await crud.mark_effect_applied(db, idempotency_key)

                await crud.add_currency(db, user_id, currency, amount, commit=False)

        logger.debug(f"Credited {amount} {currency} to user {user_id}")
        return True

    async def get_balance(self, user_id: str, currency: CurrencyKind) -> int:
        async with self.session_factory() as db:
            wallet = await crud.get_wallet(db, user_id)
            if wallet is None:
                return 0
            return getattr(wallet, CurrencyKind(currency).value) or 0
