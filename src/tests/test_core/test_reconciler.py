"""
Tests for HistoryReconciler
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.reconciler import HistoryReconciler, history_sort_key
from models import GameRecord


@pytest.fixture
def fake_gateway():
    """Gateway whose reads are AsyncMocks; block n has timestamp 1000 + n"""
    gateway = MagicMock()
    gateway.get_player_events = AsyncMock(return_value=[])
    gateway.get_block_timestamp = AsyncMock(side_effect=lambda block: 1000 + block)
    return gateway


class TestOrdering:
    """Tests for canonical history order"""

    @pytest.mark.asyncio
    async def test_same_timestamp_orders_by_game_id(self, fake_gateway, log_entry, player):
        """Game 12 before game 7 when both share a timestamp"""
        fake_gateway.get_player_events.return_value = [
            log_entry(7, timestamp=1_700_000_000),
            log_entry(12, timestamp=1_700_000_000),
        ]
        reconciler = HistoryReconciler(fake_gateway)

        records = await reconciler.reconcile(player)

        assert [r.game_id for r in records] == [12, 7]

    @pytest.mark.asyncio
    async def test_newest_first(self, fake_gateway, log_entry, player):
        """Unordered input comes back timestamp descending"""
        fake_gateway.get_player_events.return_value = [
            log_entry(1, block_number=10),
            log_entry(3, block_number=30),
            log_entry(2, block_number=20),
        ]
        reconciler = HistoryReconciler(fake_gateway)

        records = await reconciler.reconcile(player)

        assert [r.game_id for r in records] == [3, 2, 1]
        assert [r.timestamp for r in records] == [1030, 1020, 1010]

    def test_sort_key_puts_unknown_timestamps_last(self, log_entry):
        """None timestamps sort after every known one"""
        known = GameRecord.from_log(log_entry(1, timestamp=5))
        unknown = GameRecord.from_log(log_entry(99))

        assert sorted([unknown, known], key=history_sort_key) == [known, unknown]


class TestTimestampResolution:
    """Tests for block timestamp lookups"""

    @pytest.mark.asyncio
    async def test_one_failed_block(self, fake_gateway, log_entry, player):
        """Five events, one block fails: four timestamped, the failed one last"""
        fake_gateway.get_player_events.return_value = [log_entry(i, block_number=100 + i) for i in range(1, 6)]

        async def lookup(block):
            if block == 103:
                raise ConnectionError("timeout")
            return 1000 + block

        fake_gateway.get_block_timestamp.side_effect = lookup
        reconciler = HistoryReconciler(fake_gateway)

        result = await reconciler.refresh(player)

        assert len(result.records) == 5
        assert [r.timestamp is not None for r in result.records] == [True, True, True, True, False]
        assert result.records[-1].game_id == 3
        assert len(result.errors) == 1
        assert result.errors[0].block_number == 103

    @pytest.mark.asyncio
    async def test_one_lookup_per_block(self, fake_gateway, log_entry, player):
        """Games sharing a block share one lookup"""
        fake_gateway.get_player_events.return_value = [
            log_entry(1, block_number=50),
            log_entry(2, block_number=50),
            log_entry(3, block_number=51),
        ]
        reconciler = HistoryReconciler(fake_gateway)

        records = await reconciler.reconcile(player)

        assert fake_gateway.get_block_timestamp.await_count == 2
        assert {r.timestamp for r in records} == {1050, 1051}

    @pytest.mark.asyncio
    async def test_existing_timestamps_not_looked_up(self, fake_gateway, log_entry, player):
        """Entries carrying a timestamp skip the block lookup"""
        fake_gateway.get_player_events.return_value = [log_entry(1, timestamp=42)]
        reconciler = HistoryReconciler(fake_gateway)

        records = await reconciler.reconcile(player)

        fake_gateway.get_block_timestamp.assert_not_awaited()
        assert records[0].timestamp == 42

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, fake_gateway, log_entry, player):
        """Cancelled lookups are not swallowed"""
        fake_gateway.get_player_events.return_value = [log_entry(1)]
        fake_gateway.get_block_timestamp.side_effect = asyncio.CancelledError()
        reconciler = HistoryReconciler(fake_gateway)

        with pytest.raises(asyncio.CancelledError):
            await reconciler.reconcile(player)


class TestCleanup:
    """Tests for dedupe, filtering and quarantine"""

    @pytest.mark.asyncio
    async def test_duplicates_collapse(self, fake_gateway, log_entry, player):
        """Repeated game ids appear once"""
        entry = log_entry(4)
        fake_gateway.get_player_events.return_value = [entry, dict(entry), dict(entry)]
        reconciler = HistoryReconciler(fake_gateway)

        records = await reconciler.reconcile(player)

        assert [r.game_id for r in records] == [4]

    @pytest.mark.asyncio
    async def test_duplicate_prefers_timestamped_copy(self, fake_gateway, log_entry, player):
        """A copy with a timestamp wins over one without"""
        fake_gateway.get_player_events.return_value = [log_entry(4), log_entry(4, timestamp=77)]
        reconciler = HistoryReconciler(fake_gateway)

        records = await reconciler.reconcile(player)

        assert records[0].timestamp == 77
        fake_gateway.get_block_timestamp.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_players_dropped(self, fake_gateway, log_entry, player, other_player):
        """Entries for other addresses are ignored, address case-insensitive"""
        fake_gateway.get_player_events.return_value = [
            log_entry(1, player=player.lower()),
            log_entry(2, player=other_player),
        ]
        reconciler = HistoryReconciler(fake_gateway)

        records = await reconciler.reconcile(player.upper().replace("0X", "0x"))

        assert [r.game_id for r in records] == [1]

    @pytest.mark.asyncio
    async def test_malformed_entries_quarantined(self, fake_gateway, log_entry, player):
        """Bad entries are skipped and reported, good ones survive"""
        broken = log_entry(2)
        del broken["resultNumber"]
        inconsistent = log_entry(3, payout_wei=10**16)
        inconsistent["won"] = False
        fake_gateway.get_player_events.return_value = [log_entry(1), broken, inconsistent, "garbage"]
        reconciler = HistoryReconciler(fake_gateway)

        result = await reconciler.refresh(player)

        assert [r.game_id for r in result.records] == [1]
        assert len(result.errors) == 3
        assert reconciler.last_errors == result.errors

    @pytest.mark.asyncio
    async def test_fetch_failure_yields_empty_history(self, fake_gateway, player):
        """A failing event query never raises"""
        fake_gateway.get_player_events.side_effect = ConnectionError("node down")
        reconciler = HistoryReconciler(fake_gateway)

        result = await reconciler.refresh(player)

        assert result.records == ()
        assert "event fetch failed" in str(result.errors[0])

    @pytest.mark.asyncio
    async def test_max_games(self, fake_gateway, log_entry, player):
        """Only the newest max_games records are kept"""
        fake_gateway.get_player_events.return_value = [log_entry(i) for i in range(1, 11)]
        reconciler = HistoryReconciler(fake_gateway, max_games=3)

        records = await reconciler.reconcile(player)

        assert [r.game_id for r in records] == [10, 9, 8]

    @pytest.mark.asyncio
    async def test_rebuilt_every_call(self, fake_gateway, log_entry, player):
        """Nothing is cached between refreshes"""
        fake_gateway.get_player_events.return_value = [log_entry(1)]
        reconciler = HistoryReconciler(fake_gateway)
        await reconciler.reconcile(player)

        fake_gateway.get_player_events.return_value = [log_entry(1), log_entry(2)]
        records = await reconciler.reconcile(player)

        assert len(records) == 2


class TestStaleRefresh:
    """Tests for the ignore-if-stale refresh policy"""

    @pytest.mark.asyncio
    async def test_tokens_increase(self, fake_gateway, player):
        """Each refresh gets a newer token"""
        reconciler = HistoryReconciler(fake_gateway)

        first = await reconciler.refresh(player)
        second = await reconciler.refresh(player)

        assert second.token > first.token
        assert reconciler.latest_token == second.token

    @pytest.mark.asyncio
    async def test_slow_older_refresh_is_discarded(self, fake_gateway, log_entry, player):
        """An older refresh finishing after a newer one returns None"""
        release_first = asyncio.Event()
        calls = 0

        async def events(address):
            nonlocal calls
            calls += 1
            if calls == 1:
                await release_first.wait()
                return [log_entry(1)]
            return [log_entry(1), log_entry(2)]

        fake_gateway.get_player_events.side_effect = events
        reconciler = HistoryReconciler(fake_gateway)

        slow = asyncio.create_task(reconciler.refresh(player))
        await asyncio.sleep(0)
        fast = await reconciler.refresh(player)
        release_first.set()
        stale = await slow

        assert stale is None
        assert len(fast.records) == 2
        assert reconciler.is_stale(fast.token - 1)
        assert not reconciler.is_stale(reconciler.next_token())
