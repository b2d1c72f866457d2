"""
Bet round controller

State machine:
    IDLE → VALIDATING → SUBMITTING → AWAITING_CONFIRMATION → RESOLVING → SETTLED
                │             │                │
                └─────────────┴────────────────┴──→ FAILED

SETTLED and FAILED revert to IDLE after the display window. Only one round
may be in flight: place_bet() while a round is active is ignored.

RESOLVING is presentation only. The ledger result is already confirmed when
it starts; the rolling delay just keeps the result hidden for a minimum time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from decimal import Decimal

from config import config
from ledger.errors import SubmissionError, Unknown, classify_failure
from ledger.gateway import BetReceipt, LedgerGateway
from models import GameRecord, GameRound, RecentResult, RoundOutcome, RoundStatus
from services import EventBus, Events, event_bus
from services.session import SessionContext, WalletSession

from .validators import ValidationError, check_amount, validate_bet

logger = logging.getLogger(__name__)

RoundListener = Callable[[GameRound, GameRound], None]


class BetRoundController:
    """
    Drives one bet at a time through the ledger.

    Usage:
        controller = BetRoundController(gateway, session)
        controller.on_state_change = lambda old, new: print(old.status, "->", new.status)
        controller.select_number(3)
        controller.set_bet_amount("0.01")
        final = await controller.place_bet()
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        session: WalletSession,
        bus: EventBus | None = None,
        rolling_duration: float | None = None,
        display_window: float | None = None,
        min_bet: Decimal | None = None,
        default_bet: str | None = None,
        recent_limit: int | None = None,
        auto_reset: bool = True,
    ):
        """
        Initialize BetRoundController.

        Args:
            gateway: Ledger transport
            session: Wallet session (address, chain, balance)
            bus: Event bus for round events (defaults to the global bus)
            rolling_duration: Minimum RESOLVING time in seconds
            display_window: Seconds a terminal round stays visible before reset
            min_bet: Absolute minimum bet
            default_bet: Amount restored on reset
            recent_limit: Size of the recent-results strip
            auto_reset: Revert terminal rounds to IDLE after the display window
        """
        self._gateway = gateway
        self._session = session
        self._bus = bus or event_bus
        self._rolling_duration = (
            config.get("timing", "rolling_duration") if rolling_duration is None else rolling_duration
        )
        self._display_window = (
            config.get("timing", "display_window") if display_window is None else display_window
        )
        self._auto_reset = auto_reset
        self._min_bet = min_bet if min_bet is not None else Decimal(str(config.get("financial", "min_bet")))
        self._default_bet = (
            default_bet if default_bet is not None else str(config.get("financial", "default_bet"))
        )
        self._recent_limit = recent_limit or config.get("game_rules", "recent_results_limit")
        self._min_number = config.get("game_rules", "min_number")
        self._max_number = config.get("game_rules", "max_number")

        self._round = GameRound(bet_amount=self._default_bet)
        self._recent: tuple[RecentResult, ...] = ()
        self._reset_task: asyncio.Task | None = None

        self.on_state_change: RoundListener | None = None

        self._session.subscribe(self._on_session_changed)
        logger.info(f"BetRoundController initialized ({gateway.get_mode_name()} ledger)")

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def round(self) -> GameRound:
        return self._round

    @property
    def status(self) -> RoundStatus:
        return self._round.status

    @property
    def is_active(self) -> bool:
        return self._round.is_active

    @property
    def recent_results(self) -> tuple[RecentResult, ...]:
        """Newest first, at most recent_limit entries"""
        return self._recent

    def _transition_to(self, status: RoundStatus, **changes):
        """Replace the round snapshot and notify listeners."""
        old_round = self._round
        new_round = old_round.evolve(status=status, **changes)
        self._round = new_round

        if old_round.status != status:
            logger.info(f"Round state: {old_round.status.value} -> {status.value}")

        if self.on_state_change:
            try:
                self.on_state_change(old_round, new_round)
            except Exception as e:
                logger.error(f"Round state listener failed: {e}", exc_info=True)

        self._bus.publish(
            Events.ROUND_STATE_CHANGED,
            {"old": old_round.status, "new": status, "round": new_round},
        )

    # ========================================================================
    # INPUT
    # ========================================================================

    def select_number(self, number: int | None):
        if self._round.is_active:
            logger.debug("Number selection ignored while a round is active")
            return
        self._transition_to(self._round.status, selected_number=number)

    def set_bet_amount(self, amount: str):
        if self._round.is_active:
            logger.debug("Amount change ignored while a round is active")
            return
        self._transition_to(self._round.status, bet_amount=amount)

    async def check_amount(self, amount: str | None = None) -> ValidationError | None:
        """
        Live check of an amount input against minimum and balance.

        Does not change round state.
        """
        if amount is None:
            amount = self._round.bet_amount
        balance = await self._session.get_balance() if self._session.is_connected else None
        return check_amount(amount, balance, self._min_bet)

    def seed_recent_results(self, records: Iterable[GameRecord]):
        """Replace the recent-results strip from reconciled history (newest first)."""
        recent = []
        for record in records:
            if len(recent) >= self._recent_limit:
                break
            recent.append(RecentResult.from_record(record))
        self._recent = tuple(recent)

    # ========================================================================
    # ROUND
    # ========================================================================

    async def place_bet(
        self, number: int | None = None, amount: str | None = None
    ) -> GameRound | None:
        """
        Run one bet round to a terminal state.

        Args:
            number: Predicted number (defaults to the selected number)
            amount: Amount input (defaults to the current amount input)

        Returns:
            Terminal GameRound (SETTLED or FAILED), or None if a round was
            already in flight
        """
        if self._round.is_active:
            logger.info(f"Bet ignored: round already {self._round.status.value}")
            return None

        self._cancel_reset()

        if number is None:
            number = self._round.selected_number
        if amount is None:
            amount = self._round.bet_amount

        # Admission: leaving the accepting states happens before the first await
        self._transition_to(
            RoundStatus.VALIDATING,
            selected_number=number,
            bet_amount=amount,
            dice_result=None,
            tx_hash=None,
            outcome=None,
            error=None,
        )

        try:
            value = await self._validate(number, amount)
        except ValidationError as e:
            logger.info(f"Bet validation failed: {e}")
            return self._fail(e)
        except asyncio.CancelledError:
            self._fail(Unknown("Bet cancelled before submission"))
            raise
        except Exception as e:
            return self._fail(classify_failure(e))

        self._transition_to(RoundStatus.SUBMITTING)

        try:
            receipt = await self._gateway.submit_bet(number, value, self._on_submitted)
            if self._round.status == RoundStatus.SUBMITTING:
                self._transition_to(RoundStatus.AWAITING_CONFIRMATION, tx_hash=receipt.tx_hash)
            outcome = await self._resolve_outcome(receipt, number, value)
        except SubmissionError as e:
            logger.warning(f"Bet failed ({e.code}): {e}")
            return self._fail(e)
        except asyncio.CancelledError:
            # The transaction may still land; history picks it up on refresh
            logger.warning(f"Bet cancelled while {self._round.status.value}")
            self._bus.publish(Events.REFRESH_REQUESTED, {"reason": "cancelled_round"})
            self._fail(Unknown("Bet cancelled before confirmation"))
            raise
        except Exception as e:
            error = classify_failure(e)
            logger.warning(f"Bet failed ({error.code}): {e}")
            return self._fail(error)

        self._transition_to(RoundStatus.RESOLVING, tx_hash=outcome.tx_hash)
        try:
            if self._rolling_duration > 0:
                await asyncio.sleep(self._rolling_duration)
        finally:
            # Confirmed on the ledger: settle even if the delay was cancelled
            self._settle(outcome)

        return self._round

    def _settle(self, outcome: RoundOutcome):
        self._transition_to(RoundStatus.SETTLED, dice_result=outcome.rolled, outcome=outcome)
        self._recent = (RecentResult.from_outcome(outcome),) + self._recent[: self._recent_limit - 1]

        logger.info(
            f"Round settled: game {outcome.game_id}, bet {outcome.bet_number}, "
            f"rolled {outcome.rolled}, {'won ' + str(outcome.payout) if outcome.won else 'lost'}"
        )
        self._bus.publish(
            Events.ROUND_SETTLED,
            {"outcome": outcome, "address": self._session.address},
        )

        self._schedule_reset()
        return self._round

    def reset(self):
        """Return to IDLE with a fresh input state (no-op while a round is in flight)."""
        if self._round.is_active:
            return
        self._cancel_reset()
        self._transition_to(
            RoundStatus.IDLE,
            selected_number=None,
            bet_amount=self._default_bet,
            dice_result=None,
            tx_hash=None,
            outcome=None,
            error=None,
        )

    async def close(self):
        """Cancel the pending reset and detach from the session."""
        self._session.unsubscribe(self._on_session_changed)
        task = self._reset_task
        self._cancel_reset()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _validate(self, number: int | None, amount: str | None) -> Decimal:
        connected = self._session.is_connected
        balance = await self._session.get_balance() if connected else None
        return validate_bet(
            connected,
            number,
            amount,
            balance,
            min_bet=self._min_bet,
            min_number=self._min_number,
            max_number=self._max_number,
        )

    def _on_submitted(self, tx_hash: str):
        if self._round.status == RoundStatus.SUBMITTING:
            self._transition_to(RoundStatus.AWAITING_CONFIRMATION, tx_hash=tx_hash)

    async def _resolve_outcome(
        self, receipt: BetReceipt, number: int, amount: Decimal
    ) -> RoundOutcome:
        """Build the outcome, reading the game back if the receipt had no result."""
        if receipt.is_resolved:
            return RoundOutcome(
                rolled=receipt.result_number,
                won=receipt.won,
                payout=receipt.payout,
                bet_number=receipt.bet_number if receipt.bet_number is not None else number,
                bet_amount=receipt.bet_amount,
                game_id=receipt.game_id,
                tx_hash=receipt.tx_hash,
            )

        if receipt.game_id is None:
            # Confirmed but unreadable; history will pick it up on refresh
            self._bus.publish(Events.REFRESH_REQUESTED, {"reason": "unresolved_receipt"})
            raise Unknown(f"Transaction {receipt.tx_hash} confirmed without a game result")

        game = await self._gateway.get_game(receipt.game_id)
        return RoundOutcome(
            rolled=game.result_number,
            won=game.won,
            payout=game.payout,
            bet_number=game.bet_number,
            bet_amount=game.bet_amount,
            game_id=game.game_id,
            tx_hash=receipt.tx_hash,
        )

    def _fail(self, error: Exception) -> GameRound:
        self._transition_to(RoundStatus.FAILED, error=error)
        self._bus.publish(
            Events.ROUND_FAILED,
            {"error": error, "code": getattr(error, "code", "unknown"), "message": str(error)},
        )
        self._schedule_reset()
        return self._round

    def _schedule_reset(self):
        self._cancel_reset()
        if not self._auto_reset:
            return
        self._reset_task = asyncio.get_running_loop().create_task(
            self._reset_after(self._display_window)
        )

    async def _reset_after(self, delay: float):
        await asyncio.sleep(delay)
        self._reset_task = None
        self.reset()

    def _cancel_reset(self):
        task, self._reset_task = self._reset_task, None
        if task is not None and not task.done():
            task.cancel()

    def _on_session_changed(self, old: SessionContext | None, new: SessionContext | None):
        if self._round.is_active:
            # Submitted transactions cannot be cancelled; the round runs to completion
            logger.warning("Session changed while a round is in flight")
            return

        old_address = old.address.lower() if old else None
        new_address = new.address.lower() if new else None
        if old_address != new_address:
            self._recent = ()
        self.reset()
