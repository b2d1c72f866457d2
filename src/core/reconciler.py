"""
History reconciliation

Rebuilds a player's history from the ledger's raw GamePlayed log on every
call:

1. Fetch raw entries (unordered, possibly duplicated)
2. Parse into GameRecord, quarantining malformed entries
3. Deduplicate by game id
4. Resolve missing timestamps, one concurrent lookup per block, joined
5. Sort by timestamp desc, then game id desc; unresolved timestamps last

Failures never propagate: a failed timestamp lookup leaves that record's
timestamp as None, and a failed fetch yields an empty history.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ledger.gateway import LedgerGateway
from models import GameRecord, MalformedLogEntry
from services.logger import PerformanceLogger

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Non-fatal failure while rebuilding history (logged, never raised to callers)"""

    def __init__(self, message: str, game_id: int | None = None, block_number: int | None = None):
        super().__init__(message)
        self.game_id = game_id
        self.block_number = block_number


def history_sort_key(record: GameRecord) -> tuple:
    """Timestamp desc, game id desc; unknown timestamps after all known ones."""
    if record.timestamp is None:
        return (1, 0, -record.game_id)
    return (0, -record.timestamp, -record.game_id)


@dataclass(frozen=True)
class ReconciledHistory:
    """
    Result of one refresh.

    Attributes:
        token: Refresh token the result was produced for
        records: Canonical, sorted records
        errors: Non-fatal problems hit while reconciling
    """

    token: int
    records: tuple[GameRecord, ...]
    errors: tuple[ReconciliationError, ...] = field(default=())


class HistoryReconciler:
    """
    Turns raw ledger log entries into canonical game records.

    refresh() tags each result with a monotonically increasing token;
    results older than the newest one already delivered are discarded.
    """

    def __init__(self, gateway: LedgerGateway, max_games: int | None = None):
        self._gateway = gateway
        self._max_games = max_games
        self._latest_token = 0
        self._applied_token = 0
        self._last_errors: tuple[ReconciliationError, ...] = ()

    @property
    def latest_token(self) -> int:
        return self._latest_token

    @property
    def last_errors(self) -> tuple[ReconciliationError, ...]:
        """Errors from the most recently applied refresh"""
        return self._last_errors

    def next_token(self) -> int:
        self._latest_token += 1
        return self._latest_token

    def is_stale(self, token: int) -> bool:
        """A result is stale once a newer one has been applied."""
        return token <= self._applied_token

    async def refresh(self, address: str) -> ReconciledHistory | None:
        """
        Reconcile history for an address under the ignore-if-stale policy.

        Returns:
            ReconciledHistory, or None if a newer refresh completed first
        """
        token = self.next_token()
        with PerformanceLogger(logger, "reconcile_history", {"address": address, "token": token}):
            records, errors = await self._reconcile(address)

        if self.is_stale(token):
            logger.debug(f"Discarding stale history refresh {token} (applied {self._applied_token})")
            return None

        self._applied_token = token
        self._last_errors = errors
        return ReconciledHistory(token=token, records=records, errors=errors)

    async def reconcile(self, address: str) -> tuple[GameRecord, ...]:
        """Reconcile history for an address, ignoring refresh tokens."""
        records, _ = await self._reconcile(address)
        return records

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _reconcile(
        self, address: str
    ) -> tuple[tuple[GameRecord, ...], tuple[ReconciliationError, ...]]:
        errors: list[ReconciliationError] = []

        try:
            raw_entries = await self._gateway.get_player_events(address)
        except Exception as e:
            logger.warning(f"Failed to fetch game events for {address}: {e}")
            return (), (ReconciliationError(f"event fetch failed: {e}"),)

        records = self._parse(raw_entries, address, errors)
        records = await self._resolve_timestamps(records, errors)
        records.sort(key=history_sort_key)

        if self._max_games is not None:
            records = records[: self._max_games]

        if errors:
            logger.warning(f"Reconciled {len(records)} games for {address} with {len(errors)} errors")
        else:
            logger.info(f"Reconciled {len(records)} games for {address}")

        return tuple(records), tuple(errors)

    def _parse(
        self, raw_entries: list, address: str, errors: list[ReconciliationError]
    ) -> list[GameRecord]:
        by_game_id: dict[int, GameRecord] = {}
        player = address.lower()

        for entry in raw_entries:
            try:
                record = GameRecord.from_log(entry)
            except MalformedLogEntry as e:
                logger.warning(f"Quarantined malformed log entry: {e}")
                errors.append(ReconciliationError(str(e)))
                continue

            if record.player.lower() != player:
                continue

            existing = by_game_id.get(record.game_id)
            # Prefer the copy that already carries a timestamp
            if existing is None or (existing.timestamp is None and record.timestamp is not None):
                by_game_id[record.game_id] = record

        return list(by_game_id.values())

    async def _resolve_timestamps(
        self, records: list[GameRecord], errors: list[ReconciliationError]
    ) -> list[GameRecord]:
        blocks = sorted({r.block_number for r in records if r.timestamp is None})
        if not blocks:
            return records

        results = await asyncio.gather(
            *(self._gateway.get_block_timestamp(block) for block in blocks),
            return_exceptions=True,
        )

        timestamps: dict[int, int] = {}
        for block, result in zip(blocks, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"Timestamp lookup failed for block {block}: {result}")
                errors.append(
                    ReconciliationError(f"timestamp lookup failed: {result}", block_number=block)
                )
                continue
            timestamps[block] = int(result)

        return [
            r.with_timestamp(timestamps.get(r.block_number)) if r.timestamp is None else r
            for r in records
        ]
