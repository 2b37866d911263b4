"""
Garden command surface.

User-triggered field transitions (place, collect, feed) plus the field read
model. Every command returns a CommandResult; rejections are outcomes, not
exceptions.

Effects are sequenced store first, collaborator second: the field row is
deleted (and the deletion committed) before the inventory or currency credit
is issued, and every credit carries an idempotency key derived from the
entity id. Items debited before a store write that then fails are refunded.
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import crud
from domain.entities.field_models import CommandResult, FeedingSnapshot, FieldState, OwnedItem
from domain.exceptions import FieldOccupiedError
from domain.services.field_layout import FieldLayout
from domain.services.lifecycle_rules import (
    FEEDS_PER_FISH,
    SUN_AMOUNT_RANGE,
    LifecycleTiming,
    flower_transition_at,
    remaining_seconds,
)
from domain.services.rarity import RandomSource, average
from domain.value_objects.enums import (
    CommandOutcome,
    CurrencyKind,
    EntityKind,
    FeedSourceKind,
    FieldKind,
    ItemKind,
)
from infrastructure.database import models
from utils.serializers import as_utc, utc_now

from services.catalog_service import CatalogService
from services.inventory_service import CurrencyGateway, InventoryGateway

logger = logging.getLogger("GardenService")

BOUQUET_IMAGE_URL = "/Blumen/bouquet.jpg"

# Entity kind -> (owned item kind, species id column)
COLLECTABLE = {
    EntityKind.BUTTERFLY: (ItemKind.BUTTERFLY, "butterfly_id"),
    EntityKind.CATERPILLAR: (ItemKind.CATERPILLAR, "caterpillar_id"),
    EntityKind.FISH: (ItemKind.FISH, "fish_id"),
}


def entity_payload(kind: EntityKind, row) -> Dict[str, Any]:
    """Plain dict view of a field entity row."""
    payload = {"id": row.id, "kind": kind, "field_index": row.field_index}
    if kind == EntityKind.BOUQUET:
        payload.update(
            bouquet_id=row.bouquet_id,
            name=row.bouquet_name,
            rarity=row.tier,
            image_url=BOUQUET_IMAGE_URL,
            expires_at=as_utc(row.expires_at),
            next_spawn_at=as_utc(row.next_spawn_at),
            spawn_slot=row.current_spawn_slot,
        )
    elif kind == EntityKind.SUN:
        payload.update(sun_amount=row.sun_amount, expires_at=as_utc(row.expires_at))
    else:
        species_column = {
            EntityKind.BUTTERFLY: "butterfly_id",
            EntityKind.FLOWER: "flower_id",
            EntityKind.CATERPILLAR: "caterpillar_id",
            EntityKind.FISH: "fish_id",
        }[kind]
        payload.update(
            species_id=getattr(row, species_column),
            name=row.name,
            rarity=row.tier,
            image_url=row.image_url,
        )
        if kind in (EntityKind.BUTTERFLY, EntityKind.FLOWER):
            payload["next_transition_at"] = as_utc(row.next_transition_at)
    return payload


class GardenService:
    """Commands and read models for one garden per user."""

    def __init__(
        self,
        session_factory,
        catalog: CatalogService,
        inventory: InventoryGateway,
        currency: CurrencyGateway,
        layout: FieldLayout,
        timing: Optional[LifecycleTiming] = None,
        rng: Optional[RandomSource] = None,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.inventory = inventory
        self.currency = currency
        self.layout = layout
        self.timing = timing or LifecycleTiming()
        self.rng = rng or random.Random()

    # =========================================================================
    # Placement
    # =========================================================================

    async def place_bouquet(
        self, user_id: str, field_index: int, bouquet_id: int, now: Optional[datetime] = None
    ) -> CommandResult:
        """Put an owned bouquet on a grass field and start its spawn cycle."""
        now = as_utc(now) if now is not None else utc_now()
        rejection = await self._check_placement(user_id, field_index)
        if rejection is not None:
            return rejection

        owned = await self.inventory.debit_item(user_id, ItemKind.BOUQUET, bouquet_id)
        if owned is None:
            return CommandResult.rejected(CommandOutcome.INSUFFICIENT_INVENTORY)

        bouquet = models.PlacedBouquet(
            user_id=user_id,
            field_index=field_index,
            bouquet_id=bouquet_id,
            bouquet_name=owned.name or None,
            bouquet_rarity=int(owned.rarity),
            placed_at=now,
            expires_at=self.timing.bouquet_expiry(now),
            next_spawn_at=self.timing.next_spawn_after(now, self.rng),
            current_spawn_slot=1,
        )
        created = await self._create_or_refund(bouquet, owned, ItemKind.BOUQUET)
        if created is None:
            return CommandResult.rejected(CommandOutcome.FIELD_OCCUPIED)

        logger.info(f"User {user_id} placed {owned.rarity} bouquet {bouquet_id} on field {field_index}")
        return CommandResult.success(bouquet=entity_payload(EntityKind.BOUQUET, created))

    async def place_flower(
        self, user_id: str, field_index: int, flower_id: int, now: Optional[datetime] = None
    ) -> CommandResult:
        """Put an owned flower on a grass field; it dissolves into a caterpillar later."""
        now = as_utc(now) if now is not None else utc_now()
        rejection = await self._check_placement(user_id, field_index)
        if rejection is not None:
            return rejection

        owned = await self.inventory.debit_item(user_id, ItemKind.FLOWER, flower_id)
        if owned is None:
            return CommandResult.rejected(CommandOutcome.INSUFFICIENT_INVENTORY)

        flower = models.FieldFlower(
            user_id=user_id,
            field_index=field_index,
            flower_id=flower_id,
            name=owned.name or self.catalog.name_for("flower", flower_id),
            rarity=int(owned.rarity),
            image_url=owned.image_url or self.catalog.image_for("flower", flower_id),
            placed_at=now,
            next_transition_at=flower_transition_at(now, owned.rarity),
        )
        created = await self._create_or_refund(flower, owned, ItemKind.FLOWER)
        if created is None:
            return CommandResult.rejected(CommandOutcome.FIELD_OCCUPIED)

        logger.info(f"User {user_id} placed {owned.rarity} flower {flower_id} on field {field_index}")
        return CommandResult.success(flower=entity_payload(EntityKind.FLOWER, created))

    async def _check_placement(self, user_id: str, field_index: int) -> Optional[CommandResult]:
        """Rejection for placing on a non-grass or occupied field, else None."""
        if not self.layout.is_grass(field_index):
            return CommandResult.rejected(
                CommandOutcome.INVALID_FIELD_KIND, f"Field {field_index} is not a grass field"
            )
        async with self.session_factory() as db:
            occupant = await crud.get_occupant(db, user_id, field_index)
        if occupant is not None:
            return CommandResult.rejected(
                CommandOutcome.FIELD_OCCUPIED, f"Field {field_index} holds a {occupant.entity_kind}"
            )
        return None

    async def _create_or_refund(self, entity, owned: OwnedItem, item_kind: ItemKind):
        """Create a field entity from a debited item; give the item back if the write fails."""
        try:
            async with self.session_factory() as db:
                return await crud.create_entity(db, entity)
        except FieldOccupiedError:
            logger.info(f"Field {entity.field_index} taken concurrently, refunding {item_kind} {owned.item_id}")
            await self._refund(owned, item_kind)
            return None
        except Exception:
            await self._refund(owned, item_kind)
            raise

    async def _refund(self, owned: OwnedItem, item_kind: ItemKind) -> None:
        await self.inventory.credit_item(
            owned.user_id,
            item_kind,
            owned.item_id,
            owned.rarity,
            name=owned.name,
            image_url=owned.image_url,
        )

    # =========================================================================
    # Collection
    # =========================================================================

    async def collect_field_butterfly(self, user_id: str, field_index: int) -> CommandResult:
        return await self._collect(user_id, field_index, EntityKind.BUTTERFLY)

    async def collect_field_caterpillar(self, user_id: str, field_index: int) -> CommandResult:
        return await self._collect(user_id, field_index, EntityKind.CATERPILLAR)

    async def collect_field_fish(self, user_id: str, field_index: int) -> CommandResult:
        return await self._collect(user_id, field_index, EntityKind.FISH)

    async def _collect(self, user_id: str, field_index: int, kind: EntityKind) -> CommandResult:
        """
        Move a field creature into the user's inventory.

        The guarded delete decides the race against the scheduler: only the
        caller that removed the row issues the credit.
        """
        item_kind, species_column = COLLECTABLE[kind]

        async with self.session_factory() as db:
            row = await crud.get_by_field(db, kind, user_id, field_index)
            if row is None:
                return CommandResult.rejected(CommandOutcome.NOT_FOUND, f"No {kind} on field {field_index}")
            if not await crud.delete_if_exists(db, kind, row.id):
                return CommandResult.rejected(CommandOutcome.ALREADY_TRANSITIONED)

        await self.inventory.credit_item(
            user_id,
            item_kind,
            getattr(row, species_column),
            row.tier,
            name=row.name,
            image_url=row.image_url,
            idempotency_key=f"{kind}:{row.id}:collect",
        )
        logger.info(f"User {user_id} collected {row.tier} {kind} from field {field_index}")
        return CommandResult.success(**{kind.value: entity_payload(kind, row)})

    # =========================================================================
    # Pond feeding
    # =========================================================================

    async def feed(
        self,
        user_id: str,
        field_index: int,
        source_id: int,
        source_kind: FeedSourceKind,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        """
        Feed an owned caterpillar (or butterfly) into a pond field.

        The third feed averages the fed rarities into a fish on that field
        and starts a new cycle.
        """
        now = as_utc(now) if now is not None else utc_now()
        source_kind = FeedSourceKind(source_kind)

        if not self.layout.is_pond(field_index):
            return CommandResult.rejected(CommandOutcome.INVALID_FIELD_KIND, f"Field {field_index} is not a pond")

        async with self.session_factory() as db:
            occupant = await crud.get_occupant(db, user_id, field_index)
        if occupant is not None:
            return CommandResult.rejected(
                CommandOutcome.FIELD_OCCUPIED, f"Pond field {field_index} holds a {occupant.entity_kind}"
            )

        owned = await self.inventory.debit_item(user_id, ItemKind(source_kind.value), source_id)
        if owned is None:
            return CommandResult.rejected(CommandOutcome.INSUFFICIENT_INVENTORY)

        # A fed butterfly counts as a caterpillar of the same rarity
        rarity = owned.rarity
        fish = None

        try:
            async with self.session_factory() as db:
                async with crud.write_transaction(db):
                    progress, history = await crud.record_feed(
                        db, user_id, field_index, rarity, source_kind, source_id, now, commit=False
                    )
                    if progress.feeding_count >= FEEDS_PER_FISH:
                        fish_rarity = average(history[-FEEDS_PER_FISH:])
                        species = self.catalog.pick_species("fish", fish_rarity, self.rng)
                        fish = await crud.create_entity(
                            db,
                            models.FieldFish(
                                user_id=user_id,
                                field_index=field_index,
                                fish_id=species.id,
                                name=species.name,
                                rarity=int(fish_rarity),
                                image_url=species.image_url,
                                spawned_at=now,
                            ),
                            commit=False,
                        )
                        await crud.reset_progress(db, user_id, field_index, commit=False)
        except FieldOccupiedError:
            logger.info(f"Pond field {field_index} taken concurrently, refunding {source_kind} {source_id}")
            await self._refund(owned, ItemKind(source_kind.value))
            return CommandResult.rejected(CommandOutcome.FIELD_OCCUPIED)
        except Exception:
            await self._refund(owned, ItemKind(source_kind.value))
            raise

        snapshot = FeedingSnapshot(
            field_index=field_index,
            feeding_count=0 if fish is not None else progress.feeding_count,
            history=[] if fish is not None else history,
            last_fed_at=now,
            fish=entity_payload(EntityKind.FISH, fish) if fish is not None else None,
        )
        if fish is not None:
            logger.info(f"User {user_id} spawned a {fish.tier} fish on pond field {field_index}")
        else:
            logger.info(f"User {user_id} fed pond field {field_index} ({snapshot.feeding_count}/{FEEDS_PER_FISH})")
        return CommandResult.success(progress=snapshot)

    # =========================================================================
    # Suns
    # =========================================================================

    async def spawn_sun(
        self,
        user_id: str,
        field_index: int,
        amount: Optional[int] = None,
        lifetime: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> CommandResult:
        """
        Place a sun pickup on a field. Entry point for the external spawning process.

        `amount` defaults to a random 1-3 and `lifetime` to the configured sun lifetime.

        Raises:
            ValueError: If `amount` is outside the allowed sun amounts
        """
        now = as_utc(now) if now is not None else utc_now()
        low, high = SUN_AMOUNT_RANGE
        if amount is None:
            amount = self.rng.randint(low, high)
        elif not low <= amount <= high:
            raise ValueError(f"Sun amount must be between {low} and {high}, got {amount}")

        if not self.layout.contains(field_index):
            return CommandResult.rejected(CommandOutcome.INVALID_FIELD_KIND, f"Field {field_index} is outside the garden")

        sun = models.SunSpawn(
            user_id=user_id,
            field_index=field_index,
            spawned_at=now,
            expires_at=now + lifetime if lifetime is not None else self.timing.sun_expiry(now),
            sun_amount=amount,
            is_active=True,
        )
        try:
            async with self.session_factory() as db:
                await crud.create_entity(db, sun)
        except FieldOccupiedError:
            return CommandResult.rejected(CommandOutcome.FIELD_OCCUPIED)

        logger.debug(f"Sun ({amount}) spawned on field {field_index} for user {user_id}")
        return CommandResult.success(sun=entity_payload(EntityKind.SUN, sun))

    async def collect_sun(self, user_id: str, field_index: int, now: Optional[datetime] = None) -> CommandResult:
        """Pick up a sun. A sun past its expiry is removed without a reward."""
        now = as_utc(now) if now is not None else utc_now()

        async with self.session_factory() as db:
            sun = await crud.get_by_field(db, EntityKind.SUN, user_id, field_index)
            if sun is None:
                return CommandResult.rejected(CommandOutcome.NOT_FOUND, f"No sun on field {field_index}")
            if not await crud.delete_if_exists(db, EntityKind.SUN, sun.id):
                return CommandResult.rejected(CommandOutcome.ALREADY_TRANSITIONED)

        if as_utc(sun.expires_at) <= now:
            return CommandResult.rejected(CommandOutcome.ALREADY_TRANSITIONED, "Sun has expired")

        await self.currency.credit_currency(
            user_id, CurrencyKind.SUNS, sun.sun_amount, idempotency_key=f"sun:{sun.id}:collect"
        )
        logger.info(f"User {user_id} collected {sun.sun_amount} sun(s) from field {field_index}")
        return CommandResult.success(amount=sun.sun_amount)

    # =========================================================================
    # Read model
    # =========================================================================

    async def get_field_states(self, user_id: str, now: Optional[datetime] = None) -> List[FieldState]:
        """Contents of every field of the user's garden, in field order."""
        now = as_utc(now) if now is not None else utc_now()

        async with self.session_factory() as db:
            rows_by_field: Dict[int, tuple] = {}
            for kind in crud.ENTITY_MODELS:
                for row in await crud.list_for_user(db, kind, user_id):
                    rows_by_field[row.field_index] = (kind, row)
            progress = {p.field_index: p.feeding_count for p in await crud.list_progress_for_user(db, user_id)}

        states = []
        for field_index in self.layout.all_fields():
            field_kind = self.layout.kind_of(field_index)
            state = FieldState(field_index=field_index, field_kind=field_kind)
            if field_kind == FieldKind.POND:
                state.feeding_count = progress.get(field_index, 0)

            if field_index in rows_by_field:
                kind, row = rows_by_field[field_index]
                payload = entity_payload(kind, row)
                state.occupant = kind
                state.entity_id = row.id
                state.rarity = payload.get("rarity")
                state.name = payload.get("name")
                state.image_url = payload.get("image_url")
                state.spawn_slot = payload.get("spawn_slot")
                state.sun_amount = payload.get("sun_amount")
                deadline = payload.get("next_transition_at") or payload.get("expires_at")
                state.remaining_seconds = remaining_seconds(deadline, now)

            states.append(state)
        return states
