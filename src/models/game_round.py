"""
Bet round data models
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from decimal import Decimal

from .enums import RoundStatus
from .game_record import GameRecord


@dataclass(frozen=True)
class RoundOutcome:
    """
    Settled result of one round, as reported by the ledger.

    Attributes:
        rolled: Number drawn by the contract
        won: Whether the prediction matched
        payout: Amount paid out by the contract (0 on a loss)
        bet_number: Number the player predicted
        bet_amount: Amount wagered
        game_id: Contract game id
        tx_hash: Transaction hash of the bet
    """

    rolled: int
    won: bool
    payout: Decimal
    bet_number: int
    bet_amount: Decimal
    game_id: int
    tx_hash: str

    def to_dict(self, preserve_precision: bool = False) -> dict:
        def convert(value):
            if isinstance(value, Decimal):
                return str(value) if preserve_precision else float(value)
            return value

        return {
            "rolled": self.rolled,
            "won": self.won,
            "payout": convert(self.payout),
            "bet_number": self.bet_number,
            "bet_amount": convert(self.bet_amount),
            "game_id": self.game_id,
            "tx_hash": self.tx_hash,
        }


@dataclass(frozen=True)
class GameRound:
    """
    Snapshot of the round owned by BetRoundController.

    The controller replaces the snapshot on every transition; consumers
    never see a partially updated round.
    """

    status: RoundStatus = RoundStatus.IDLE
    selected_number: int | None = None
    bet_amount: str = ""
    dice_result: int | None = None
    tx_hash: str | None = None
    outcome: RoundOutcome | None = None
    error: Exception | None = None

    @property
    def is_active(self) -> bool:
        """True while a round is between admission and a terminal state."""
        return not RoundStatus.accepts_new_bet(self.status)

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error is not None else None

    def evolve(self, **changes) -> GameRound:
        return replace(self, **changes)


@dataclass(frozen=True)
class RecentResult:
    """Entry in the recent-results strip (newest first, bounded)."""

    game_id: int
    bet_number: int
    rolled: int
    won: bool
    amount: Decimal
    payout: Decimal
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_outcome(cls, outcome: RoundOutcome) -> RecentResult:
        return cls(
            game_id=outcome.game_id,
            bet_number=outcome.bet_number,
            rolled=outcome.rolled,
            won=outcome.won,
            amount=outcome.bet_amount,
            payout=outcome.payout,
        )

    @classmethod
    def from_record(cls, record: GameRecord) -> RecentResult:
        return cls(
            game_id=record.game_id,
            bet_number=record.bet_number,
            rolled=record.result_number,
            won=record.won,
            amount=record.bet_amount,
            payout=record.payout,
            timestamp=record.timestamp if record.timestamp is not None else 0,
        )
