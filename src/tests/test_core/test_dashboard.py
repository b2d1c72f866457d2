"""
Tests for PlayerDashboard
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.bet_round import BetRoundController
from core.dashboard import PlayerDashboard
from ledger import SimulatedLedgerGateway
from models import OutcomeFilter, SortKey, SortOrder
from services import Events


def _ts(year, month, day, hour=12):
    return int(datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp())


@pytest.fixture
def ledger(session, player, other_player):
    """Simulated ledger with four games for the player and one for someone else"""
    gateway = SimulatedLedgerGateway(session, result_source=lambda number: 3)
    gateway.fund(player, Decimal("1"))
    session.set_balance_source(gateway.get_balance)
    gateway.add_history(player, 3, 3, Decimal("0.01"), timestamp=_ts(2024, 5, 1))
    gateway.add_history(player, 2, 5, Decimal("0.02"), timestamp=_ts(2024, 5, 2))
    gateway.add_history(other_player, 1, 1, Decimal("0.5"), timestamp=_ts(2024, 5, 2))
    gateway.add_history(player, 4, 6, Decimal("0.03"), timestamp=_ts(2024, 5, 3))
    gateway.add_history(player, 6, 6, Decimal("0.01"), timestamp=_ts(2024, 5, 4))
    return gateway


@pytest.fixture
def dashboard(ledger, session, bus):
    board = PlayerDashboard(ledger, session, bus=bus, page_size=2, page_increment=2, refresh_delay=0)
    yield board


@pytest.fixture
def published(bus):
    received = []

    def collect(event):
        received.append(event)

    for event in (Events.HISTORY_REFRESHED, Events.STATS_UPDATED):
        bus.subscribe(event, collect, weak=False)
    return received


class TestRefresh:
    """Tests for refresh()"""

    @pytest.mark.asyncio
    async def test_refresh_loads_history_and_stats(self, dashboard, published):
        """Records are the player's games, newest first, with overall stats"""
        applied = await dashboard.refresh()

        assert applied
        assert [r.bet_amount for r in dashboard.records] == [
            Decimal("0.01"),
            Decimal("0.03"),
            Decimal("0.02"),
            Decimal("0.01"),
        ]
        assert dashboard.stats.total_games == 4
        assert dashboard.stats.wins == 2
        assert dashboard.stats.win_rate_percent == Decimal("50")
        assert [e["name"] for e in published] == [
            Events.HISTORY_REFRESHED.value,
            Events.STATS_UPDATED.value,
        ]
        assert published[0]["data"]["count"] == 4

    @pytest.mark.asyncio
    async def test_disconnected_shows_empty_history(self, dashboard, session):
        """No wallet means an empty snapshot"""
        await dashboard.refresh()
        session.disconnect()
        await dashboard.wait_idle()

        assert await dashboard.refresh()
        assert dashboard.records == ()
        assert dashboard.stats.total_games == 0

    @pytest.mark.asyncio
    async def test_result_for_previous_wallet_is_dropped(self, session, bus, player, other_player, log_entry):
        """A refresh that finishes after an account switch is not applied"""
        gateway = MagicMock()
        gateway.get_block_timestamp = AsyncMock(return_value=1)

        async def events(address):
            if address == player:
                session.switch_account(other_player)
                return [log_entry(1, player=player)]
            return []

        gateway.get_player_events = AsyncMock(side_effect=events)
        board = PlayerDashboard(gateway, session, bus=bus, refresh_delay=0)

        assert not await board.refresh()
        assert board.records == ()
        await board.close()

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_dashboard_usable(self, dashboard, ledger):
        """Errors surface through last_errors, not exceptions"""
        ledger.fail_event_query(ConnectionError("node down"))

        assert await dashboard.refresh()

        assert dashboard.records == ()
        assert dashboard.last_errors
        assert not dashboard.is_loading

    @pytest.mark.asyncio
    async def test_seeds_controller_recent_results(self, ledger, session, bus):
        """Reconciled history fills the recent strip"""
        controller = BetRoundController(ledger, session, bus=bus, rolling_duration=0, auto_reset=False)
        board = PlayerDashboard(ledger, session, controller=controller, bus=bus, refresh_delay=0)

        await board.refresh()

        assert [r.bet_number for r in controller.recent_results] == [6, 4, 2, 3]
        await board.close()


class TestAutomaticRefresh:
    """Tests for event-driven refreshes"""

    @pytest.mark.asyncio
    async def test_settled_round_triggers_refresh(self, ledger, session, bus, dashboard):
        """The new game shows up after a round settles"""
        await dashboard.refresh()
        controller = BetRoundController(ledger, session, bus=bus, rolling_duration=0, auto_reset=False)

        await controller.place_bet(3, "0.05")
        await dashboard.wait_idle()

        assert dashboard.stats.total_games == 5
        assert dashboard.records[0].bet_amount == Decimal("0.05")

    @pytest.mark.asyncio
    async def test_refresh_request_triggers_refresh(self, dashboard, bus):
        """REFRESH_REQUESTED schedules a reload"""
        bus.publish(Events.REFRESH_REQUESTED, {"reason": "test"})
        await dashboard.wait_idle()

        assert dashboard.stats.total_games == 4

    @pytest.mark.asyncio
    async def test_account_switch_reloads_for_new_address(self, dashboard, session, other_player):
        """Switching accounts replaces the snapshot"""
        await dashboard.refresh()

        session.switch_account(other_player)
        assert dashboard.records == ()
        await dashboard.wait_idle()

        assert dashboard.stats.total_games == 1
        assert dashboard.records[0].bet_amount == Decimal("0.5")

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, dashboard, bus):
        """A closed dashboard ignores events"""
        await dashboard.close()

        bus.publish(Events.REFRESH_REQUESTED, {})

        assert not dashboard._pending

    def test_no_loop_skips_scheduling(self, dashboard, bus):
        """Events published outside a loop do not crash"""
        bus.publish(Events.REFRESH_REQUESTED, {})

        assert not dashboard._pending


class TestQuery:
    """Tests for query operations"""

    @pytest.mark.asyncio
    async def test_outcome_filter_scopes_stats(self, dashboard):
        """Filtered stats cover the filter, overall stats do not change"""
        await dashboard.refresh()

        dashboard.set_outcome_filter("wins")
        page = dashboard.page()

        assert page.stats.total_games == 2
        assert page.stats.win_rate_percent == Decimal("100")
        assert dashboard.stats.total_games == 4
        assert dashboard.has_active_filters

    @pytest.mark.asyncio
    async def test_search(self, dashboard):
        """Search by tx hash fragment"""
        await dashboard.refresh()
        target = dashboard.records[2].tx_hash

        dashboard.set_search(target[10:20].upper())

        assert [r.tx_hash for r in dashboard.page().records] == [target]

    @pytest.mark.asyncio
    async def test_date_range(self, dashboard):
        """Inclusive day range"""
        await dashboard.refresh()

        dashboard.set_date_range(date(2024, 5, 2), date(2024, 5, 3))

        assert dashboard.page().filtered_count == 2

    def test_reversed_date_range_rejected(self, dashboard):
        """Start after end is an error"""
        with pytest.raises(ValueError):
            dashboard.set_date_range(date(2024, 5, 3), date(2024, 5, 1))

    @pytest.mark.asyncio
    async def test_sort_and_toggle(self, dashboard):
        """Sort key and direction changes"""
        await dashboard.refresh()

        dashboard.set_sort("amount")
        assert dashboard.page().records[0].bet_amount == Decimal("0.03")

        dashboard.toggle_sort_order()
        assert dashboard.query.sort_order == SortOrder.ASC
        assert dashboard.page().records[0].bet_amount == Decimal("0.01")

        dashboard.set_sort(SortKey.DATE, SortOrder.DESC)
        assert dashboard.query.sort_key == SortKey.DATE

    @pytest.mark.asyncio
    async def test_paging_and_clear(self, dashboard):
        """load_more grows the page; clearing filters resets it"""
        await dashboard.refresh()
        assert dashboard.page().has_more

        dashboard.load_more()
        assert len(dashboard.page().records) == 4
        assert not dashboard.page().has_more

        dashboard.set_outcome_filter(OutcomeFilter.LOSSES)
        dashboard.clear_filters()

        assert not dashboard.has_active_filters
        assert dashboard.query.page_size == 2


@pytest.mark.asyncio
async def test_loading_flag_during_refresh(session, bus, player):
    """is_loading is set while history is being fetched"""
    release = asyncio.Event()
    gateway = MagicMock()

    async def events(address):
        await release.wait()
        return []

    gateway.get_player_events = AsyncMock(side_effect=events)
    board = PlayerDashboard(gateway, session, bus=bus, refresh_delay=0)

    task = asyncio.create_task(board.refresh())
    await asyncio.sleep(0)
    assert board.is_loading
    release.set()
    await task

    assert not board.is_loading
    await board.close()


@pytest.mark.asyncio
async def test_loading_flag_with_overlapping_refreshes(session, bus, player):
    """is_loading stays set until the last in-flight refresh finishes"""
    first_release = asyncio.Event()
    second_release = asyncio.Event()
    releases = [first_release, second_release]
    gateway = MagicMock()

    async def events(address):
        await releases.pop(0).wait()
        return []

    gateway.get_player_events = AsyncMock(side_effect=events)
    board = PlayerDashboard(gateway, session, bus=bus, refresh_delay=0)

    first = asyncio.create_task(board.refresh())
    second = asyncio.create_task(board.refresh())
    await asyncio.sleep(0)
    assert board.is_loading

    first_release.set()
    await first
    assert board.is_loading

    second_release.set()
    await second
    assert not board.is_loading
    await board.close()
