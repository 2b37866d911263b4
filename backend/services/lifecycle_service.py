"""
Time-triggered field transitions.

One sweep looks up every entity whose persisted deadline has passed and
applies its transition:

- bouquet: spawn a butterfly next to it, or wither into a seed reward
- butterfly: becomes a caterpillar with an inherited rarity
- flower: becomes a caterpillar of the same rarity
- sun: disappears without a reward

Every transition starts with a guarded delete or slot update, so a sweep that
races a user command (or another sweep) simply loses and moves on. Each
candidate runs in its own session; a failure is logged and the candidate is
retried on the next sweep because its deadline is still in the past.
"""

import logging
import random
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import crud
from domain.entities.field_models import SeedReward, SweepReport
from domain.exceptions import FieldOccupiedError
from domain.services.field_layout import FieldLayout
from domain.services.lifecycle_rules import LifecycleTiming
from domain.services.rarity import RandomSource, inherit, seed_drop
from domain.value_objects.enums import EntityKind, ItemKind, RarityTier
from infrastructure.database import models
from utils.serializers import as_utc, utc_now

from services.catalog_service import CatalogService
from services.inventory_service import InventoryGateway

logger = logging.getLogger("LifecycleService")


def seed_item_id(rarity: RarityTier) -> int:
    """Seeds are one item per tier, numbered from 1."""
    return int(rarity) + 1


def seed_idempotency_key(bouquet_id: int) -> str:
    return f"bouquet:{bouquet_id}:seed"


class LifecycleService:
    """Applies due transitions for all users."""

    def __init__(
        self,
        session_factory,
        catalog: CatalogService,
        inventory: InventoryGateway,
        layout: FieldLayout,
        timing: Optional[LifecycleTiming] = None,
        rng: Optional[RandomSource] = None,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.inventory = inventory
        self.layout = layout
        self.timing = timing or LifecycleTiming()
        self.rng = rng or random.Random()

    @asynccontextmanager
    async def _session_scope(self):
        """
        Provides a database session for one candidate.

        - Rolls back on any exception
        - Always closes the session properly
        """
        session = self.session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Apply every transition due at `now` (defaults to the current time).

        Returns:
            Counters for what happened during this sweep
        """
        now = as_utc(now) if now is not None else utc_now()
        report = SweepReport()

        handlers = (
            (EntityKind.BOUQUET, self._process_bouquet),
            (EntityKind.BUTTERFLY, self._transform_butterfly),
            (EntityKind.FLOWER, self._transform_flower),
            (EntityKind.SUN, self._expire_sun),
        )

        for kind, handler in handlers:
            async with self._session_scope() as db:
                candidates = await crud.list_due(db, kind, now)

            for candidate in candidates:
                try:
                    async with self._session_scope() as db:
                        await handler(db, candidate, now, report)
                except Exception as e:
                    report.failures += 1
                    logger.error(f"Error processing {kind} {candidate.id}: {e}", exc_info=True)

        if report.transitions or report.failures:
            logger.info(f"Sweep done: {report.to_dict()}")
        return report

    # =========================================================================
    # Bouquets
    # =========================================================================

    async def _process_bouquet(self, db, bouquet: models.PlacedBouquet, now: datetime, report: SweepReport):
        if as_utc(bouquet.expires_at) <= now:
            await self.wither_bouquet(db, bouquet, report)
            return
        await self._spawn_butterfly(db, bouquet, now, report)

    async def _spawn_butterfly(self, db, bouquet: models.PlacedBouquet, now: datetime, report: SweepReport):
        """Fire the current spawn slot of a bouquet."""
        slot = bouquet.current_spawn_slot
        fires_last_slot = slot >= self.timing.bouquet_spawn_slots
        next_spawn_at = self.timing.next_spawn_after(as_utc(bouquet.next_spawn_at), self.rng)
        species = self.catalog.pick_species("butterfly", bouquet.tier, self.rng)

        won = False
        deferred = False
        try:
            async with crud.write_transaction(db):
                target = await self._pick_butterfly_field(db, bouquet)
                if target is None:
                    deferred = True
                    won = await crud.reschedule_bouquet(db, bouquet.id, slot, next_spawn_at, commit=False)
                else:
                    if fires_last_slot:
                        won = await crud.delete_if_exists(db, EntityKind.BOUQUET, bouquet.id, commit=False)
                    else:
                        won = await crud.advance_bouquet_slot(db, bouquet.id, slot, next_spawn_at, commit=False)
                    if won:
                        await crud.create_entity(
                            db,
                            models.FieldButterfly(
                                user_id=bouquet.user_id,
                                field_index=target,
                                butterfly_id=species.id,
                                name=species.name,
                                rarity=int(species.rarity),
                                image_url=species.image_url,
                                bouquet_id=bouquet.id,
                                spawned_at=now,
                                next_transition_at=self.timing.butterfly_transition_at(now),
                            ),
                            commit=False,
                        )
        except FieldOccupiedError:
            # Field taken between the pick and the insert; the slot is retried next sweep
            report.slots_deferred += 1
            return

        if not won:
            report.lost_races += 1
            return
        if deferred:
            report.slots_deferred += 1
            logger.debug(f"Bouquet {bouquet.id} has no free neighbour, spawn deferred")
            return

        report.butterflies_spawned += 1
        logger.info(
            f"Bouquet {bouquet.id} spawned {species.rarity} butterfly on field {target} "
            f"(slot {slot}/{self.timing.bouquet_spawn_slots})"
        )

        if fires_last_slot:
            report.bouquets_withered += 1
            await self.credit_seed_reward(bouquet)

    async def _pick_butterfly_field(self, db, bouquet: models.PlacedBouquet) -> Optional[int]:
        """Random free grass field around the bouquet, or None."""
        occupied = {row.field_index for row in await crud.list_occupancy(db, bouquet.user_id)}
        free = [i for i in self.layout.grass_neighbors(bouquet.field_index) if i not in occupied]
        if not free:
            return None
        return self.rng.choice(free)

    async def wither_bouquet(self, db, bouquet: models.PlacedBouquet, report: SweepReport) -> Optional[SeedReward]:
        """Remove an expired bouquet and pay out its seeds."""
        if not await crud.delete_if_exists(db, EntityKind.BOUQUET, bouquet.id):
            report.lost_races += 1
            return None

        report.bouquets_withered += 1
        return await self.credit_seed_reward(bouquet)

    async def credit_seed_reward(self, bouquet: models.PlacedBouquet) -> SeedReward:
        rarity, quantity = seed_drop(bouquet.tier, self.rng)
        applied = await self.inventory.credit_item(
            bouquet.user_id,
            ItemKind.SEED,
            seed_item_id(rarity),
            rarity,
            quantity=quantity,
            name=f"{rarity.display_name} seed",
            idempotency_key=seed_idempotency_key(bouquet.id),
        )
        if applied:
            logger.info(f"Bouquet {bouquet.id} withered: {quantity}x {rarity} seed for user {bouquet.user_id}")
        return SeedReward(rarity=rarity, quantity=quantity)

    # =========================================================================
    # Butterflies, flowers, suns
    # =========================================================================

    async def _transform_butterfly(self, db, butterfly: models.FieldButterfly, now: datetime, report: SweepReport):
        rarity = inherit(butterfly.tier, self.rng)
        if await self._replace_with_caterpillar(db, EntityKind.BUTTERFLY, butterfly, rarity, now):
            report.butterflies_transformed += 1
            logger.debug(f"Butterfly {butterfly.id} on field {butterfly.field_index} became a {rarity} caterpillar")
        else:
            report.lost_races += 1

    async def _transform_flower(self, db, flower: models.FieldFlower, now: datetime, report: SweepReport):
        if await self._replace_with_caterpillar(db, EntityKind.FLOWER, flower, flower.tier, now):
            report.flowers_transformed += 1
            logger.debug(f"Flower {flower.id} on field {flower.field_index} became a {flower.tier} caterpillar")
        else:
            report.lost_races += 1

    async def _replace_with_caterpillar(self, db, kind: EntityKind, entity, rarity: RarityTier, now: datetime) -> bool:
        """Delete `entity` and put a caterpillar on its field in one transaction."""
        species = self.catalog.pick_species("caterpillar", rarity, self.rng)
        async with crud.write_transaction(db):
            if not await crud.delete_if_exists(db, kind, entity.id, commit=False):
                return False
            await crud.create_entity(
                db,
                models.FieldCaterpillar(
                    user_id=entity.user_id,
                    field_index=entity.field_index,
                    caterpillar_id=species.id,
                    name=species.name,
                    rarity=int(rarity),
                    image_url=species.image_url,
                    spawned_at=now,
                ),
                commit=False,
            )
        return True

    async def _expire_sun(self, db, sun: models.SunSpawn, now: datetime, report: SweepReport):
        if await crud.delete_if_exists(db, EntityKind.SUN, sun.id):
            report.suns_expired += 1
        else:
            report.lost_races += 1
