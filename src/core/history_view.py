"""
History view - filter, sort and paginate a reconciled record sequence
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from functools import cmp_to_key

from models import (
    GameRecord,
    HistoryQuery,
    OutcomeFilter,
    PlayerStats,
    SortKey,
    SortOrder,
)

from .stats import aggregate


@dataclass(frozen=True)
class HistoryPage:
    """
    One rendering of the history view.

    Attributes:
        records: Visible records (first page_size of the filtered set)
        filtered_count: Size of the filtered, unpaginated set
        total_count: Size of the reconciled set before filtering
        stats: Stats over the filtered, unpaginated set
        query: Query the page was produced from
    """

    records: tuple[GameRecord, ...]
    filtered_count: int
    total_count: int
    stats: PlayerStats
    query: HistoryQuery

    @property
    def has_more(self) -> bool:
        return self.filtered_count > self.query.page_size

    @property
    def is_empty(self) -> bool:
        return self.filtered_count == 0


def _matches(record: GameRecord, query: HistoryQuery) -> bool:
    if query.outcome_filter == OutcomeFilter.WINS and not record.won:
        return False
    if query.outcome_filter == OutcomeFilter.LOSSES and record.won:
        return False

    search = query.search
    if search and search not in record.tx_hash.lower():
        return False

    return query.date_range.contains(record.timestamp)


def filter_records(records: Sequence[GameRecord], query: HistoryQuery) -> tuple[GameRecord, ...]:
    """Apply outcome, tx hash and date filters; input order is kept."""
    return tuple(r for r in records if _matches(r, query))


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _cmp_timestamp(a: GameRecord, b: GameRecord) -> int:
    # Unknown timestamps rank as oldest
    if a.timestamp is None or b.timestamp is None:
        return _cmp(a.timestamp is not None, b.timestamp is not None)
    return _cmp(a.timestamp, b.timestamp)


def _cmp_outcome(a: GameRecord, b: GameRecord) -> int:
    # Wins rank above losses; wins by payout, losses by stake
    if a.won != b.won:
        return _cmp(a.won, b.won)
    if a.won:
        return _cmp(a.payout, b.payout)
    return _cmp(a.bet_amount, b.bet_amount)


_PRIMARY = {
    SortKey.DATE: _cmp_timestamp,
    SortKey.AMOUNT: lambda a, b: _cmp(a.bet_amount, b.bet_amount),
    SortKey.OUTCOME: _cmp_outcome,
}


def compare_records(a: GameRecord, b: GameRecord, key: SortKey) -> int:
    """
    Descending-order comparison for a sort key.

    Returns negative when a sorts before b in descending order. Ties fall
    back to timestamp then game id so the order is total.
    """
    for cmp in (_PRIMARY[key], _cmp_timestamp):
        result = cmp(a, b)
        if result:
            return -result
    return -_cmp(a.game_id, b.game_id)


def sort_records(
    records: Sequence[GameRecord], key: SortKey, order: SortOrder
) -> tuple[GameRecord, ...]:
    """Sort records; ascending order negates the comparison."""
    sign = 1 if order == SortOrder.DESC else -1
    return tuple(sorted(records, key=cmp_to_key(lambda a, b: sign * compare_records(a, b, key))))


def render(records: Sequence[GameRecord], query: HistoryQuery) -> HistoryPage:
    """
    Produce the visible page and filtered stats for a query.

    Stats cover every filtered record, not just the visible page.
    """
    filtered = sort_records(filter_records(records, query), query.sort_key, query.sort_order)
    return HistoryPage(
        records=filtered[: query.page_size],
        filtered_count=len(filtered),
        total_count=len(records),
        stats=aggregate(filtered),
        query=query,
    )


class HistoryView:
    """
    Holds the current query over a reconciled snapshot.

    Replacing the snapshot resets paging; every query change except
    load_more() resets paging too.
    """

    def __init__(self, page_size: int = 20, page_increment: int = 20):
        self._page_increment = page_increment
        self._query = HistoryQuery(page_size=page_size, initial_page_size=page_size)
        self._records: tuple[GameRecord, ...] = ()

    @property
    def query(self) -> HistoryQuery:
        return self._query

    @property
    def records(self) -> tuple[GameRecord, ...]:
        return self._records

    def set_records(self, records: Sequence[GameRecord]):
        self._records = tuple(records)
        self._query = self._query.reset_paging()

    def apply(self, **changes):
        self._query = self._query.changed(**changes)

    def clear_filters(self):
        self._query = self._query.cleared()

    def load_more(self):
        self._query = self._query.load_more(self._page_increment)

    def page(self) -> HistoryPage:
        return render(self._records, self._query)
