"""
LedgerGateway abstract base class.

Defines the boundary between the core and the external ledger contract.
Implementations carry no business logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.game_record import GameRecord

SubmittedCallback = Callable[[str], None]


@dataclass(frozen=True)
class BetReceipt:
    """
    Confirmed bet as reported by the ledger.

    game_id/result_number are None when the confirmation carried no
    settlement event; the caller resolves them with get_game().
    """

    tx_hash: str
    game_id: int | None
    result_number: int | None
    won: bool
    payout: Decimal
    bet_amount: Decimal
    bet_number: int | None = None
    block_number: int | None = None

    @property
    def is_resolved(self) -> bool:
        return self.game_id is not None and self.result_number is not None


class LedgerGateway(ABC):
    """
    Abstract ledger transport.

    Implementations:
    - Web3LedgerGateway: JSON-RPC contract calls via web3.py
    - SimulatedLedgerGateway: in-process contract for demos and tests
    """

    @abstractmethod
    async def submit_bet(
        self,
        number: int,
        amount: Decimal,
        on_submitted: SubmittedCallback | None = None,
    ) -> BetReceipt:
        """
        Place a bet and wait for confirmation.

        Args:
            number: Predicted number
            amount: Wager in ether
            on_submitted: Called with the tx hash once the transaction is broadcast

        Returns:
            BetReceipt for the confirmed transaction

        Raises:
            SubmissionError: Rejected, InsufficientFunds, NetworkMismatch,
                NonceConflict or Unknown
        """
        pass

    @abstractmethod
    async def get_player_events(self, address: str) -> list[dict]:
        """
        Fetch raw GamePlayed log entries for a player.

        Entries are unordered and may repeat across calls; previously
        seen entries are never omitted.
        """
        pass

    @abstractmethod
    async def get_game(self, game_id: int) -> GameRecord:
        """Authoritative read of a single game."""
        pass

    @abstractmethod
    async def get_block_timestamp(self, block_number: int) -> int:
        """Unix time of a block."""
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> Decimal:
        """Native currency balance in ether."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the gateway can submit bets."""
        pass

    @abstractmethod
    def get_mode_name(self) -> str:
        """Return human-readable mode name."""
        pass
