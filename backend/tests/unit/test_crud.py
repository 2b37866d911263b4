"""
Unit tests for CRUD operations.

Tests pond feeding progress, inventory stacks, wallets and applied-effect keys.
"""

import asyncio
from datetime import timedelta

import crud
import pytest
from domain.value_objects.enums import CurrencyKind, FeedSourceKind, ItemKind, RarityTier
from tests.fixtures import T0


class TestFeedingCRUD:
    """Tests for pond feeding CRUD operations."""

    @pytest.mark.crud
    async def test_first_feed_creates_progress(self, test_db):
        """Test that the first feed of a pond field starts a cycle."""
        progress, history = await crud.record_feed(
            test_db, "alice", 25, RarityTier.RARE, FeedSourceKind.CATERPILLAR, 33, T0
        )

        assert progress.feeding_count == 1
        assert history == [RarityTier.RARE]

        stored = await crud.get_progress(test_db, "alice", 25)
        assert stored.feeding_count == 1
        assert stored.last_fed_at is not None

    @pytest.mark.crud
    async def test_ensure_progress_keeps_existing_row(self, test_db):
        await crud.record_feed(test_db, "alice", 25, RarityTier.RARE, FeedSourceKind.CATERPILLAR, 33, T0)

        await crud.ensure_progress(test_db, "alice", 25)
        await test_db.commit()

        progress = await crud.list_progress_for_user(test_db, "alice")
        assert [(p.field_index, p.feeding_count) for p in progress] == [(25, 1)]

    @pytest.mark.crud
    async def test_concurrent_first_feeds(self, test_session_factory):
        """Test that two first feeds of the same pond field share one progress row."""

        async def feed(source_id):
            async with test_session_factory() as db:
                progress, _ = await crud.record_feed(
                    db, "alice", 25, RarityTier.RARE, FeedSourceKind.CATERPILLAR, source_id, T0
                )
                return progress.feeding_count

        counts = await asyncio.gather(feed(1), feed(2))

        assert sorted(counts) == [1, 2]
        async with test_session_factory() as db:
            progress = await crud.list_progress_for_user(db, "alice")
            assert [(p.field_index, p.feeding_count) for p in progress] == [(25, 2)]
            assert len(await crud.get_history(db, "alice", 25)) == 2

    @pytest.mark.crud
    async def test_history_in_feed_order(self, test_db):
        """Test that the history lists rarities oldest first."""
        for offset, rarity in enumerate([RarityTier.EPIC, RarityTier.COMMON, RarityTier.RARE]):
            progress, history = await crud.record_feed(
                test_db,
                "alice",
                25,
                rarity,
                FeedSourceKind.CATERPILLAR,
                offset + 1,
                T0 + timedelta(seconds=offset),
            )

        assert progress.feeding_count == 3
        assert history == [RarityTier.EPIC, RarityTier.COMMON, RarityTier.RARE]

    @pytest.mark.crud
    async def test_butterfly_source_recorded(self, test_db):
        await crud.record_feed(test_db, "alice", 25, RarityTier.EPIC, FeedSourceKind.BUTTERFLY, 930, T0)

        history = await crud.get_history(test_db, "alice", 25)
        assert history[0].source_kind == FeedSourceKind.BUTTERFLY.value
        assert history[0].source_id == 930

    @pytest.mark.crud
    async def test_fields_tracked_separately(self, test_db):
        await crud.record_feed(test_db, "alice", 25, RarityTier.RARE, FeedSourceKind.CATERPILLAR, 33, T0)
        await crud.record_feed(test_db, "alice", 26, RarityTier.RARE, FeedSourceKind.CATERPILLAR, 33, T0)
        await crud.record_feed(test_db, "bob", 25, RarityTier.RARE, FeedSourceKind.CATERPILLAR, 33, T0)

        progress = await crud.list_progress_for_user(test_db, "alice")
        assert [(p.field_index, p.feeding_count) for p in progress] == [(25, 1), (26, 1)]

    @pytest.mark.crud
    async def test_reset_progress(self, test_db):
        """Test that a reset clears both the counter and the history."""
        for source_id in (1, 2):
            await crud.record_feed(test_db, "alice", 25, RarityTier.RARE, FeedSourceKind.CATERPILLAR, source_id, T0)

        await crud.reset_progress(test_db, "alice", 25)

        progress = await crud.get_progress(test_db, "alice", 25)
        assert progress.feeding_count == 0
        assert await crud.get_history(test_db, "alice", 25) == []

    @pytest.mark.crud
    async def test_reset_unknown_field(self, test_db):
        await crud.reset_progress(test_db, "alice", 25)
        assert await crud.get_progress(test_db, "alice", 25) is None


class TestInventoryCRUD:
    """Tests for inventory and wallet CRUD operations."""

    @pytest.mark.crud
    async def test_add_item_stacks(self, test_db):
        """Test that credits of the same item grow one stack."""
        await crud.add_item(test_db, "alice", ItemKind.SEED, 3, RarityTier.RARE, quantity=2, name="Rare seed")
        item = await crud.add_item(test_db, "alice", ItemKind.SEED, 3, RarityTier.RARE, quantity=3)

        assert item.quantity == 5
        assert item.name == "Rare seed"
        assert len(await crud.list_items(test_db, "alice")) == 1

    @pytest.mark.crud
    async def test_remove_item(self, test_db):
        await crud.add_item(test_db, "alice", ItemKind.FLOWER, 170, RarityTier.EPIC, quantity=2)

        item = await crud.remove_item(test_db, "alice", ItemKind.FLOWER, 170)

        assert item.quantity == 1

    @pytest.mark.crud
    async def test_remove_more_than_owned(self, test_db):
        """Test that a stack never goes below zero."""
        await crud.add_item(test_db, "alice", ItemKind.FLOWER, 170, RarityTier.EPIC, quantity=1)

        assert await crud.remove_item(test_db, "alice", ItemKind.FLOWER, 170, quantity=2) is None
        item = await crud.get_item(test_db, "alice", ItemKind.FLOWER, 170)
        assert item.quantity == 1

    @pytest.mark.crud
    async def test_remove_missing_item(self, test_db):
        assert await crud.remove_item(test_db, "alice", ItemKind.BOUQUET, 1) is None

    @pytest.mark.crud
    async def test_list_items_hides_empty_stacks(self, test_db):
        await crud.add_item(test_db, "alice", ItemKind.FLOWER, 170, RarityTier.EPIC, quantity=1)
        await crud.add_item(test_db, "alice", ItemKind.SEED, 1, RarityTier.COMMON, quantity=1)
        await crud.remove_item(test_db, "alice", ItemKind.FLOWER, 170)

        items = await crud.list_items(test_db, "alice")
        assert [(i.item_kind, i.item_id) for i in items] == [(ItemKind.SEED.value, 1)]
        assert await crud.list_items(test_db, "alice", ItemKind.FLOWER) == []

    @pytest.mark.crud
    async def test_add_currency(self, test_db):
        await crud.add_currency(test_db, "alice", CurrencyKind.SUNS, 2)
        wallet = await crud.add_currency(test_db, "alice", CurrencyKind.SUNS, 3)

        assert wallet.suns == 5
        assert wallet.credits == 0

    @pytest.mark.crud
    async def test_applied_effects(self, test_db):
        assert await crud.is_effect_applied(test_db, "sun:1:collect") is False

        async with crud.write_transaction(test_db):
            await crud.mark_effect_applied(test_db, "sun:1:collect")

        assert await crud.is_effect_applied(test_db, "sun:1:collect") is True
