"""
SimulatedLedgerGateway - in-process number prediction contract.

No network access. Mirrors the deployed contract closely enough for demos
and tests: sequential game ids, one block per bet, GamePlayed log entries
without wall-clock time, and a payout rule owned by the contract side.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import random
import time
from collections.abc import Callable
from decimal import Decimal

from models.game_record import GameRecord, ether_to_wei
from services.session import WalletSession

from .errors import InsufficientFunds, NetworkMismatch, Unknown, classify_failure
from .gateway import BetReceipt, LedgerGateway, SubmittedCallback

logger = logging.getLogger(__name__)


class SimulatedLedgerGateway(LedgerGateway):
    """
    Execute bets against an in-memory contract.

    Failure injection hooks (fail_next_submit, fail_block_timestamps,
    fail_event_query) let tests drive every error path.
    """

    def __init__(
        self,
        session: WalletSession,
        chain_id: int = 1337,
        payout_multiplier: Decimal = Decimal("5"),
        min_number: int = 1,
        max_number: int = 6,
        network_fee: Decimal = Decimal("0.0001"),
        result_source: Callable[[int], int] | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], int] | None = None,
        simulated_latency_ms: int = 0,
    ):
        """
        Initialize SimulatedLedgerGateway.

        Args:
            session: Wallet session supplying the signer address and chain id
            chain_id: Chain the simulated contract lives on
            payout_multiplier: Contract payout rule (payout = bet * multiplier on a win)
            min_number: Lowest playable number
            max_number: Highest playable number
            network_fee: Fee charged per transaction
            result_source: Optional draw override, called with the predicted number
            rng: Random generator for draws (seeded in tests)
            clock: Returns unix time for newly mined blocks
            simulated_latency_ms: Delay between broadcast and confirmation
        """
        self._session = session
        self._chain_id = chain_id
        self._payout_multiplier = payout_multiplier
        self._min_number = min_number
        self._max_number = max_number
        self._network_fee = network_fee
        self._result_source = result_source
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: int(time.time()))
        self._simulated_latency_ms = simulated_latency_ms

        self._balances: dict[str, Decimal] = {}
        self._games: dict[int, GameRecord] = {}
        self._logs: list[dict] = []
        self._block_timestamps: dict[int, int] = {}
        self._block_number = 0
        self._next_game_id = 1
        self._tx_counter = 0

        self._pending_failure: BaseException | str | None = None
        self._failing_blocks: set[int] = set()
        self._event_query_failure: BaseException | None = None
        self.duplicate_events = False
        self.submit_calls = 0

    # ------------------------------------------------------------------
    # Test / demo hooks
    # ------------------------------------------------------------------

    def fund(self, address: str, amount: Decimal):
        key = address.lower()
        self._balances[key] = self._balances.get(key, Decimal("0")) + Decimal(amount)

    def fail_next_submit(self, failure: BaseException | str):
        """Make the next submit_bet fail with the given raw failure."""
        self._pending_failure = failure

    def fail_block_timestamps(self, *block_numbers: int):
        self._failing_blocks.update(block_numbers)

    def fail_event_query(self, error: BaseException | None):
        self._event_query_failure = error

    def add_history(
        self,
        player: str,
        bet_number: int,
        result_number: int,
        bet_amount: Decimal,
        timestamp: int | None = None,
        payout: Decimal | None = None,
    ) -> GameRecord:
        """Append a settled game without going through submit_bet."""
        won = bet_number == result_number
        if payout is None:
            payout = bet_amount * self._payout_multiplier if won else Decimal("0")
        tx_hash = self._next_tx_hash(player)
        block_number = self._mine_block(timestamp)
        return self._record_game(player, bet_number, result_number, bet_amount, payout, block_number, tx_hash)

    @property
    def games_played(self) -> int:
        return len(self._games)

    # ------------------------------------------------------------------
    # LedgerGateway
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        return self._session.is_connected

    def get_mode_name(self) -> str:
        return "simulated"

    async def submit_bet(
        self,
        number: int,
        amount: Decimal,
        on_submitted: SubmittedCallback | None = None,
    ) -> BetReceipt:
        self.submit_calls += 1
        context = self._session.context
        if context is None:
            raise Unknown("Wallet not connected")
        if context.chain_id != self._chain_id:
            raise NetworkMismatch(
                f"Connected to chain {context.chain_id}, contract is on chain {self._chain_id}"
            )

        if self._pending_failure is not None:
            failure, self._pending_failure = self._pending_failure, None
            raise classify_failure(failure)

        if not self._min_number <= number <= self._max_number:
            raise Unknown(f"execution reverted: number must be {self._min_number}-{self._max_number}")

        try:
            ether_to_wei(amount)
        except ValueError as e:
            raise Unknown(str(e)) from e

        player = context.address
        balance = self._balances.get(player.lower(), Decimal("0"))
        if balance < amount + self._network_fee:
            raise InsufficientFunds(raw="insufficient funds for gas * price + value")

        tx_hash = self._next_tx_hash(player)
        self._balances[player.lower()] = balance - amount - self._network_fee
        if on_submitted:
            on_submitted(tx_hash)

        if self._simulated_latency_ms:
            await asyncio.sleep(self._simulated_latency_ms / 1000)

        result = self._draw(number)
        won = result == number
        payout = amount * self._payout_multiplier if won else Decimal("0")
        self._balances[player.lower()] += payout

        block_number = self._mine_block()
        record = self._record_game(player, number, result, amount, payout, block_number, tx_hash)
        logger.debug(f"Simulated game {record.game_id}: bet {number}, rolled {result}, won={won}")

        return BetReceipt(
            tx_hash=tx_hash,
            game_id=record.game_id,
            result_number=result,
            won=won,
            payout=payout,
            bet_amount=amount,
            bet_number=number,
            block_number=block_number,
        )

    async def get_player_events(self, address: str) -> list[dict]:
        if self._event_query_failure is not None:
            raise self._event_query_failure
        entries = [dict(entry) for entry in self._logs if entry["player"].lower() == address.lower()]
        if self.duplicate_events:
            entries += [dict(entry) for entry in entries]
        return entries

    async def get_game(self, game_id: int) -> GameRecord:
        try:
            return self._games[game_id]
        except KeyError:
            raise LookupError(f"Game {game_id} does not exist") from None

    async def get_block_timestamp(self, block_number: int) -> int:
        if block_number in self._failing_blocks:
            raise ConnectionError(f"RPC timeout fetching block {block_number}")
        try:
            return self._block_timestamps[block_number]
        except KeyError:
            raise LookupError(f"Block {block_number} not found") from None

    async def get_balance(self, address: str) -> Decimal:
        return self._balances.get(address.lower(), Decimal("0"))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _draw(self, number: int) -> int:
        if self._result_source is not None:
            return self._result_source(number)
        return self._rng.randint(self._min_number, self._max_number)

    def _next_tx_hash(self, player: str) -> str:
        self._tx_counter += 1
        digest = hashlib.sha256(f"{player}:{self._tx_counter}".encode()).hexdigest()
        return "0x" + digest

    def _mine_block(self, timestamp: int | None = None) -> int:
        self._block_number += 1
        self._block_timestamps[self._block_number] = (
            timestamp if timestamp is not None else self._clock()
        )
        return self._block_number

    def _record_game(
        self,
        player: str,
        bet_number: int,
        result_number: int,
        bet_amount: Decimal,
        payout: Decimal,
        block_number: int,
        tx_hash: str,
    ) -> GameRecord:
        game_id = self._next_game_id
        self._next_game_id += 1

        entry = {
            "gameId": game_id,
            "player": player,
            "betAmount": ether_to_wei(bet_amount),
            "predictedNumber": bet_number,
            "resultNumber": result_number,
            "won": payout > 0,
            "payout": ether_to_wei(payout),
            "blockNumber": block_number,
            "transactionHash": tx_hash,
        }
        self._logs.append(entry)

        record = GameRecord.from_log(entry).with_timestamp(self._block_timestamps[block_number])
        self._games[game_id] = record
        return record


