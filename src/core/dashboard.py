"""
Player dashboard - history, stats and query state for one wallet

Composition root handed to a UI collaborator. Every refresh replaces the
whole snapshot; nothing is updated incrementally.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from config import config
from ledger.gateway import LedgerGateway
from models import (
    DateRange,
    GameRecord,
    HistoryQuery,
    OutcomeFilter,
    PlayerStats,
    SortKey,
    SortOrder,
)
from services import EventBus, Events, event_bus
from services.session import WalletSession

from .bet_round import BetRoundController
from .history_view import HistoryPage, HistoryView
from .reconciler import HistoryReconciler
from .stats import aggregate

logger = logging.getLogger(__name__)


class PlayerDashboard:
    """
    Reconciled history, overall stats and the history view for the session's wallet.

    Refreshes after every settled round (delayed by refresh_delay) and
    whenever the session changes. Stale refresh results are dropped.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        session: WalletSession,
        controller: BetRoundController | None = None,
        bus: EventBus | None = None,
        page_size: int | None = None,
        page_increment: int | None = None,
        refresh_delay: float | None = None,
        max_games: int | None = None,
    ):
        self._session = session
        self._controller = controller
        self._bus = bus or event_bus
        self._refresh_delay = (
            config.get("timing", "refresh_delay") if refresh_delay is None else refresh_delay
        )
        if max_games is None:
            max_games = config.get("history", "max_games")
        self._reconciler = HistoryReconciler(gateway, max_games=max_games)
        self._view = HistoryView(
            page_size=page_size or config.get("history", "page_size"),
            page_increment=page_increment or config.get("history", "page_increment"),
        )
        self._stats = PlayerStats()
        self._in_flight = 0
        self._pending: set[asyncio.Task] = set()

        self._bus.subscribe(Events.ROUND_SETTLED, self._on_round_settled)
        self._bus.subscribe(Events.REFRESH_REQUESTED, self._on_refresh_requested)
        self._bus.subscribe(Events.SESSION_CHANGED, self._on_session_changed)

    # ========================================================================
    # SNAPSHOT
    # ========================================================================

    @property
    def records(self) -> tuple[GameRecord, ...]:
        return self._view.records

    @property
    def stats(self) -> PlayerStats:
        """Stats over the whole reconciled history"""
        return self._stats

    @property
    def query(self) -> HistoryQuery:
        return self._view.query

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def has_active_filters(self) -> bool:
        return self._view.query.has_active_filters

    @property
    def last_errors(self):
        return self._reconciler.last_errors

    def page(self) -> HistoryPage:
        return self._view.page()

    async def refresh(self) -> bool:
        """
        Re-pull history for the connected wallet.

        Returns:
            True if this refresh's result was applied, False if it was stale
        """
        address = self._session.address
        if address is None:
            self._apply((), token=None)
            return True

        self._in_flight += 1
        try:
            result = await self._reconciler.refresh(address)
        finally:
            self._in_flight -= 1

        if result is None or address != self._session.address:
            return False

        self._apply(result.records, token=result.token, errors=len(result.errors))
        if self._controller is not None:
            self._controller.seed_recent_results(result.records)
        return True

    def _apply(self, records, token: int | None, errors: int = 0):
        self._view.set_records(records)
        self._stats = aggregate(records)
        self._bus.publish(
            Events.HISTORY_REFRESHED,
            {"address": self._session.address, "count": len(records), "token": token, "errors": errors},
        )
        self._bus.publish(Events.STATS_UPDATED, {"stats": self._stats})

    # ========================================================================
    # QUERY
    # ========================================================================

    def set_outcome_filter(self, outcome_filter: OutcomeFilter | str):
        self._view.apply(outcome_filter=OutcomeFilter(outcome_filter))

    def set_search(self, text: str):
        self._view.apply(tx_hash_substring=text or "")

    def set_date_range(self, start: date | None = None, end: date | None = None):
        if start is not None and end is not None and start > end:
            raise ValueError(f"Start date {start} is after end date {end}")
        tz = self._view.query.date_range.tz
        self._view.apply(date_range=DateRange(start=start, end=end, tz=tz))

    def set_sort(self, key: SortKey | str, order: SortOrder | str | None = None):
        changes = {"sort_key": SortKey(key)}
        if order is not None:
            changes["sort_order"] = SortOrder(order)
        self._view.apply(**changes)

    def toggle_sort_order(self):
        current = self._view.query.sort_order
        self._view.apply(
            sort_order=SortOrder.ASC if current == SortOrder.DESC else SortOrder.DESC
        )

    def clear_filters(self):
        self._view.clear_filters()

    def load_more(self):
        self._view.load_more()

    # ========================================================================
    # EVENTS
    # ========================================================================

    def _on_round_settled(self, event):
        self._schedule_refresh(self._refresh_delay)

    def _on_refresh_requested(self, event):
        self._schedule_refresh(self._refresh_delay)

    def _on_session_changed(self, event):
        # Drop the previous wallet's snapshot before the new one loads
        self._view.set_records(())
        self._stats = PlayerStats()
        self._schedule_refresh(0)

    def _schedule_refresh(self, delay: float):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; refresh not scheduled")
            return

        task = loop.create_task(self._delayed_refresh(delay))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _delayed_refresh(self, delay: float):
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await self.refresh()
        except Exception as e:
            logger.error(f"History refresh failed: {e}", exc_info=True)

    async def wait_idle(self):
        """Wait for scheduled refreshes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self):
        self._bus.unsubscribe(Events.ROUND_SETTLED, self._on_round_settled)
        self._bus.unsubscribe(Events.REFRESH_REQUESTED, self._on_refresh_requested)
        self._bus.unsubscribe(Events.SESSION_CHANGED, self._on_session_changed)
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
