"""
History query - local view state for filtering, sorting and paging
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from .enums import OutcomeFilter, SortKey, SortOrder

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive calendar-day range.

    Either bound may be open. The end bound covers the whole of its day.
    """

    start: date | None = None
    end: date | None = None
    tz: tzinfo = timezone.utc

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    @property
    def start_ts(self) -> int | None:
        if self.start is None:
            return None
        return int(datetime.combine(self.start, time.min, tzinfo=self.tz).timestamp())

    @property
    def end_ts_exclusive(self) -> int | None:
        """First second after the end day."""
        if self.end is None:
            return None
        next_day = self.end + timedelta(days=1)
        return int(datetime.combine(next_day, time.min, tzinfo=self.tz).timestamp())

    def contains(self, timestamp: int | None) -> bool:
        if self.is_open:
            return True
        if timestamp is None:
            return False
        start_ts = self.start_ts
        if start_ts is not None and timestamp < start_ts:
            return False
        end_ts = self.end_ts_exclusive
        if end_ts is not None and timestamp >= end_ts:
            return False
        return True


@dataclass(frozen=True)
class HistoryQuery:
    """
    Filter, sort and page settings for the history view.

    Every change other than load_more() resets page_size to initial_page_size.
    """

    outcome_filter: OutcomeFilter = OutcomeFilter.ALL
    tx_hash_substring: str = ""
    date_range: DateRange = DateRange()
    sort_key: SortKey = SortKey.DATE
    sort_order: SortOrder = SortOrder.DESC
    page_size: int = DEFAULT_PAGE_SIZE
    initial_page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        if self.page_size < 1 or self.initial_page_size < 1:
            raise ValueError("page size must be at least 1")

    @property
    def search(self) -> str:
        """Normalized search string (trimmed, lower-case)."""
        return self.tx_hash_substring.strip().lower()

    @property
    def has_active_filters(self) -> bool:
        return (
            self.outcome_filter != OutcomeFilter.ALL
            or self.search != ""
            or not self.date_range.is_open
        )

    def changed(self, **changes) -> HistoryQuery:
        """Return a new query with changes applied and paging reset."""
        changes.setdefault("page_size", self.initial_page_size)
        return replace(self, **changes)

    def load_more(self, increment: int) -> HistoryQuery:
        if increment < 1:
            raise ValueError("increment must be at least 1")
        return replace(self, page_size=self.page_size + increment)

    def reset_paging(self) -> HistoryQuery:
        if self.page_size == self.initial_page_size:
            return self
        return replace(self, page_size=self.initial_page_size)

    def cleared(self) -> HistoryQuery:
        """Drop filters but keep the sort settings."""
        return self.changed(
            outcome_filter=OutcomeFilter.ALL,
            tx_hash_substring="",
            date_range=DateRange(tz=self.date_range.tz),
        )
