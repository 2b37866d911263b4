"""
Unit tests for GardenService.

Tests the user-triggered commands (place, collect, feed, suns) and the field
read model against a temporary database.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import crud
import pytest
from domain.value_objects.enums import (
    CommandOutcome,
    CurrencyKind,
    EntityKind,
    FeedSourceKind,
    FieldKind,
    ItemKind,
    RarityTier,
)
from infrastructure.database import models
from tests.fixtures import T0

POND = 25


async def owned_quantity(inventory, item_kind, item_id, user_id="alice"):
    item = await inventory.get_item(user_id, item_kind, item_id)
    return item.quantity if item is not None else 0


@pytest.fixture
def put(test_session_factory):
    async def _put(entity):
        async with test_session_factory() as db:
            return await crud.create_entity(db, entity)

    return _put


class TestPlacement:
    """Tests for placing bouquets and flowers."""

    @pytest.mark.unit
    async def test_place_bouquet(self, garden_service, give_item, inventory):
        """Test placing an owned bouquet on a grass field."""
        await give_item("alice", ItemKind.BOUQUET, 4, RarityTier.LEGENDARY, name="Royal bouquet")

        result = await garden_service.place_bouquet("alice", 10, 4, now=T0)

        assert result.ok
        bouquet = result.data["bouquet"]
        assert bouquet["kind"] == EntityKind.BOUQUET
        assert bouquet["field_index"] == 10
        assert bouquet["rarity"] == RarityTier.LEGENDARY
        assert bouquet["name"] == "Royal bouquet"
        assert bouquet["spawn_slot"] == 1
        assert bouquet["expires_at"] == T0 + timedelta(minutes=21)
        assert await owned_quantity(inventory, ItemKind.BOUQUET, 4) == 0

    @pytest.mark.unit
    async def test_place_flower_sets_dwell(self, garden_service, give_item):
        await give_item("alice", ItemKind.FLOWER, 170, RarityTier.EPIC)

        result = await garden_service.place_flower("alice", 5, 170, now=T0)

        flower = result.data["flower"]
        assert flower["next_transition_at"] == T0 + timedelta(seconds=6)
        assert flower["name"] == garden_service.catalog.name_for("flower", 170)
        assert flower["image_url"] == "/Blumen/170.jpg"

    @pytest.mark.unit
    @pytest.mark.parametrize("field_index", [POND, 0, 51])
    async def test_place_on_non_grass(self, garden_service, give_item, inventory, field_index):
        """Test that pond fields and fields outside the grid are rejected without a debit."""
        await give_item("alice", ItemKind.BOUQUET, 4)

        result = await garden_service.place_bouquet("alice", field_index, 4, now=T0)

        assert result.outcome == CommandOutcome.INVALID_FIELD_KIND
        assert await owned_quantity(inventory, ItemKind.BOUQUET, 4) == 1

    @pytest.mark.unit
    async def test_place_on_occupied_field(self, garden_service, give_item, inventory):
        await give_item("alice", ItemKind.FLOWER, 170, RarityTier.EPIC, quantity=2)
        await garden_service.place_flower("alice", 5, 170, now=T0)

        result = await garden_service.place_flower("alice", 5, 170, now=T0)

        assert result.outcome == CommandOutcome.FIELD_OCCUPIED
        assert await owned_quantity(inventory, ItemKind.FLOWER, 170) == 1

    @pytest.mark.unit
    async def test_place_without_item(self, garden_service):
        result = await garden_service.place_bouquet("alice", 10, 4, now=T0)

        assert result.outcome == CommandOutcome.INSUFFICIENT_INVENTORY
        assert result.data is None

    @pytest.mark.unit
    async def test_field_taken_after_check_refunds(self, garden_service, give_item, inventory):
        """Test that losing the field between the check and the insert gives the item back."""
        await give_item("alice", ItemKind.BOUQUET, 4, RarityTier.RARE)
        await garden_service.spawn_sun("alice", 10, amount=1, now=T0)

        with patch.object(garden_service, "_check_placement", AsyncMock(return_value=None)):
            result = await garden_service.place_bouquet("alice", 10, 4, now=T0)

        assert result.outcome == CommandOutcome.FIELD_OCCUPIED
        refunded = await inventory.get_item("alice", ItemKind.BOUQUET, 4)
        assert refunded.quantity == 1
        assert refunded.rarity == RarityTier.RARE

    @pytest.mark.unit
    async def test_store_failure_refunds_and_raises(self, garden_service, give_item, inventory):
        await give_item("alice", ItemKind.FLOWER, 170, RarityTier.EPIC)

        with patch.object(crud, "create_entity", AsyncMock(side_effect=RuntimeError("disk I/O error"))):
            with pytest.raises(RuntimeError):
                await garden_service.place_flower("alice", 5, 170, now=T0)

        assert await owned_quantity(inventory, ItemKind.FLOWER, 170) == 1


class TestCollection:
    """Tests for collecting field creatures."""

    @pytest.mark.unit
    async def test_collect_butterfly(self, garden_service, inventory, put):
        await put(
            models.FieldButterfly(
                user_id="alice",
                field_index=9,
                butterfly_id=812,
                name="Papilio rarus",
                rarity=int(RarityTier.RARE),
                spawned_at=T0,
                next_transition_at=T0 + timedelta(seconds=15),
            )
        )

        result = await garden_service.collect_field_butterfly("alice", 9)

        assert result.ok
        assert result.data["butterfly"]["species_id"] == 812
        item = await inventory.get_item("alice", ItemKind.BUTTERFLY, 812)
        assert item.quantity == 1
        assert item.rarity == RarityTier.RARE

        again = await garden_service.collect_field_butterfly("alice", 9)
        assert again.outcome == CommandOutcome.NOT_FOUND
        assert await owned_quantity(inventory, ItemKind.BUTTERFLY, 812) == 1

    @pytest.mark.unit
    async def test_collect_caterpillar(self, garden_service, inventory, put):
        await put(
            models.FieldCaterpillar(
                user_id="alice", field_index=5, caterpillar_id=39, name="Bombyx aurea", rarity=4, spawned_at=T0
            )
        )

        result = await garden_service.collect_field_caterpillar("alice", 5)

        assert result.ok
        assert await owned_quantity(inventory, ItemKind.CATERPILLAR, 39) == 1

    @pytest.mark.unit
    async def test_collect_same_field_twice(self, garden_service, inventory, put):
        """Test that a creature landing where a collected one stood is credited too."""
        for _ in range(2):
            await put(
                models.FieldCaterpillar(
                    user_id="alice", field_index=5, caterpillar_id=39, name="Bombyx aurea", rarity=4, spawned_at=T0
                )
            )
            assert (await garden_service.collect_field_caterpillar("alice", 5)).ok

        assert await owned_quantity(inventory, ItemKind.CATERPILLAR, 39) == 2

    @pytest.mark.unit
    async def test_collect_wrong_kind(self, garden_service, put):
        """Test that collecting a fish from a field holding a caterpillar finds nothing."""
        await put(
            models.FieldCaterpillar(
                user_id="alice", field_index=5, caterpillar_id=1, name="Larva viridis", rarity=0, spawned_at=T0
            )
        )

        result = await garden_service.collect_field_fish("alice", 5)

        assert result.outcome == CommandOutcome.NOT_FOUND

    @pytest.mark.unit
    async def test_other_users_field(self, garden_service, put):
        await put(
            models.FieldCaterpillar(
                user_id="bob", field_index=5, caterpillar_id=1, name="Larva viridis", rarity=0, spawned_at=T0
            )
        )

        assert (await garden_service.collect_field_caterpillar("alice", 5)).outcome == CommandOutcome.NOT_FOUND


class TestFeeding:
    """Tests for pond feeding."""

    @pytest.mark.unit
    async def test_three_feeds_spawn_averaged_fish(self, garden_service, give_item, inventory):
        """Test that feeding rare, rare and epic yields a super-rare fish."""
        await give_item("alice", ItemKind.CATERPILLAR, 33, RarityTier.RARE, quantity=2)
        await give_item("alice", ItemKind.CATERPILLAR, 39, RarityTier.EPIC)

        first = await garden_service.feed("alice", POND, 33, FeedSourceKind.CATERPILLAR, now=T0)
        second = await garden_service.feed("alice", POND, 33, FeedSourceKind.CATERPILLAR, now=T0 + timedelta(seconds=1))

        assert first.data["progress"].feeding_count == 1
        assert second.data["progress"].feeding_count == 2
        assert second.data["progress"].history == [RarityTier.RARE, RarityTier.RARE]
        assert not second.data["progress"].spawned_fish

        third = await garden_service.feed("alice", POND, 39, FeedSourceKind.CATERPILLAR, now=T0 + timedelta(seconds=2))

        progress = third.data["progress"]
        assert progress.spawned_fish
        assert progress.fish["rarity"] == RarityTier.SUPER_RARE
        assert progress.fish["field_index"] == POND
        assert 27 <= progress.fish["species_id"] <= 28
        assert progress.feeding_count == 0
        assert progress.history == []
        assert await owned_quantity(inventory, ItemKind.CATERPILLAR, 33) == 0
        assert await owned_quantity(inventory, ItemKind.CATERPILLAR, 39) == 0

    @pytest.mark.unit
    async def test_fewer_than_three_feeds_no_fish(self, garden_service, give_item, test_session_factory):
        await give_item("alice", ItemKind.CATERPILLAR, 33, RarityTier.RARE, quantity=2)

        for _ in range(2):
            await garden_service.feed("alice", POND, 33, FeedSourceKind.CATERPILLAR, now=T0)

        async with test_session_factory() as db:
            assert await crud.get_by_field(db, EntityKind.FISH, "alice", POND) is None
            assert (await crud.get_progress(db, "alice", POND)).feeding_count == 2

    @pytest.mark.unit
    async def test_fish_blocks_further_feeding(self, garden_service, give_item, inventory):
        """Test that a pond field holding a fish must be emptied before the next cycle."""
        await give_item("alice", ItemKind.CATERPILLAR, 1, RarityTier.COMMON, quantity=4)
        for _ in range(3):
            await garden_service.feed("alice", POND, 1, FeedSourceKind.CATERPILLAR, now=T0)

        blocked = await garden_service.feed("alice", POND, 1, FeedSourceKind.CATERPILLAR, now=T0)

        assert blocked.outcome == CommandOutcome.FIELD_OCCUPIED
        assert await owned_quantity(inventory, ItemKind.CATERPILLAR, 1) == 1

        assert (await garden_service.collect_field_fish("alice", POND)).ok
        assert (await garden_service.feed("alice", POND, 1, FeedSourceKind.CATERPILLAR, now=T0)).ok

    @pytest.mark.unit
    async def test_feed_butterfly(self, garden_service, give_item):
        await give_item("alice", ItemKind.BUTTERFLY, 930, RarityTier.EPIC)

        result = await garden_service.feed("alice", POND, 930, FeedSourceKind.BUTTERFLY, now=T0)

        assert result.data["progress"].history == [RarityTier.EPIC]

    @pytest.mark.unit
    async def test_feed_grass_field(self, garden_service, give_item, inventory):
        await give_item("alice", ItemKind.CATERPILLAR, 33, RarityTier.RARE)

        result = await garden_service.feed("alice", 5, 33, FeedSourceKind.CATERPILLAR, now=T0)

        assert result.outcome == CommandOutcome.INVALID_FIELD_KIND
        assert await owned_quantity(inventory, ItemKind.CATERPILLAR, 33) == 1

    @pytest.mark.unit
    async def test_feed_without_item(self, garden_service):
        result = await garden_service.feed("alice", POND, 33, FeedSourceKind.CATERPILLAR, now=T0)

        assert result.outcome == CommandOutcome.INSUFFICIENT_INVENTORY


class TestSuns:
    """Tests for sun spawning and collection."""

    @pytest.mark.unit
    async def test_spawn_and_collect(self, garden_service, inventory):
        spawned = await garden_service.spawn_sun("alice", 3, amount=2, now=T0)
        assert spawned.data["sun"]["expires_at"] == T0 + timedelta(seconds=30)

        result = await garden_service.collect_sun("alice", 3, now=T0 + timedelta(seconds=10))

        assert result.ok
        assert result.data["amount"] == 2
        assert await inventory.get_balance("alice", CurrencyKind.SUNS) == 2

    @pytest.mark.unit
    async def test_respawned_sun_pays_again(self, garden_service, inventory):
        """Test that a sun replacing a collected one gets a fresh id and its own credit."""
        first = await garden_service.spawn_sun("alice", 5, amount=2, now=T0)
        assert (await garden_service.collect_sun("alice", 5, now=T0 + timedelta(seconds=1))).ok

        second = await garden_service.spawn_sun("alice", 5, amount=3, now=T0 + timedelta(seconds=2))
        assert (await garden_service.collect_sun("alice", 5, now=T0 + timedelta(seconds=3))).ok

        assert second.data["sun"]["id"] != first.data["sun"]["id"]
        assert await inventory.get_balance("alice", CurrencyKind.SUNS) == 5

    @pytest.mark.unit
    async def test_custom_lifetime(self, garden_service):
        result = await garden_service.spawn_sun("alice", 3, amount=1, lifetime=timedelta(seconds=5), now=T0)

        assert result.data["sun"]["expires_at"] == T0 + timedelta(seconds=5)

    @pytest.mark.unit
    async def test_sun_on_pond(self, garden_service):
        """Test that suns may land on any field of the grid."""
        assert (await garden_service.spawn_sun("alice", POND, amount=1, now=T0)).ok

    @pytest.mark.unit
    async def test_random_amount(self, garden_service):
        result = await garden_service.spawn_sun("alice", 3, now=T0)

        assert 1 <= result.data["sun"]["sun_amount"] <= 3

    @pytest.mark.unit
    @pytest.mark.parametrize("amount", [0, 4])
    async def test_invalid_amount(self, garden_service, amount):
        with pytest.raises(ValueError):
            await garden_service.spawn_sun("alice", 3, amount=amount, now=T0)

    @pytest.mark.unit
    async def test_spawn_outside_grid(self, garden_service):
        result = await garden_service.spawn_sun("alice", 51, amount=1, now=T0)

        assert result.outcome == CommandOutcome.INVALID_FIELD_KIND

    @pytest.mark.unit
    async def test_spawn_on_occupied_field(self, garden_service):
        await garden_service.spawn_sun("alice", 3, amount=1, now=T0)

        result = await garden_service.spawn_sun("alice", 3, amount=1, now=T0)

        assert result.outcome == CommandOutcome.FIELD_OCCUPIED

    @pytest.mark.unit
    async def test_collect_expired_sun(self, garden_service, inventory, test_session_factory):
        """Test that a sun past its expiry is removed without paying out."""
        await garden_service.spawn_sun("alice", 3, amount=3, now=T0)

        result = await garden_service.collect_sun("alice", 3, now=T0 + timedelta(seconds=30))

        assert result.outcome == CommandOutcome.ALREADY_TRANSITIONED
        assert await inventory.get_balance("alice", CurrencyKind.SUNS) == 0
        async with test_session_factory() as db:
            assert await crud.get_occupant(db, "alice", 3) is None

    @pytest.mark.unit
    async def test_collect_missing_sun(self, garden_service):
        result = await garden_service.collect_sun("alice", 3, now=T0)

        assert result.outcome == CommandOutcome.NOT_FOUND


class TestFieldStates:
    """Tests for the field read model."""

    @pytest.mark.unit
    async def test_empty_garden(self, garden_service):
        states = await garden_service.get_field_states("alice", now=T0)

        assert [s.field_index for s in states] == list(range(1, 51))
        assert states[0].field_kind == FieldKind.GRASS
        assert states[POND - 1].field_kind == FieldKind.POND
        assert states[POND - 1].feeding_count == 0
        assert states[0].feeding_count is None
        assert all(s.occupant is None for s in states)

    @pytest.mark.unit
    async def test_occupants_and_timers(self, garden_service, give_item):
        await give_item("alice", ItemKind.FLOWER, 170, RarityTier.EPIC)
        await give_item("alice", ItemKind.CATERPILLAR, 33, RarityTier.RARE)
        await garden_service.place_flower("alice", 5, 170, now=T0)
        await garden_service.spawn_sun("alice", 7, amount=2, now=T0)
        await garden_service.feed("alice", POND, 33, FeedSourceKind.CATERPILLAR, now=T0)

        states = await garden_service.get_field_states("alice", now=T0 + timedelta(seconds=2))

        flower = states[4]
        assert flower.occupant == EntityKind.FLOWER
        assert flower.rarity == RarityTier.EPIC
        assert flower.remaining_seconds == 4.0
        sun = states[6]
        assert sun.occupant == EntityKind.SUN
        assert sun.sun_amount == 2
        assert sun.remaining_seconds == 28.0
        assert states[POND - 1].feeding_count == 1
        assert states[POND - 1].occupant is None

    @pytest.mark.unit
    async def test_other_users_not_visible(self, garden_service):
        await garden_service.spawn_sun("bob", 7, amount=2, now=T0)

        states = await garden_service.get_field_states("alice", now=T0)

        assert states[6].occupant is None
