"""
Game record model - one settled game as observed on the ledger.

Records are parsed from raw `GamePlayed` log entries at the reconciliation
boundary. Raw entries are loosely typed dicts; anything that does not fit the
strict model raises MalformedLogEntry and is quarantined by the caller.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

WEI_PER_ETHER_EXPONENT = 18


class MalformedLogEntry(ValueError):
    """Raised when a raw log entry cannot be parsed into a GameRecord"""

    def __init__(self, message: str, entry: Any = None):
        super().__init__(message)
        self.entry = entry


def wei_to_ether(value: int) -> Decimal:
    """Convert an integer wei quantity to an exact ether Decimal."""
    ether = Decimal(value).scaleb(-WEI_PER_ETHER_EXPONENT).normalize()
    # normalize() turns whole amounts into 1E+1 style exponents
    if ether.as_tuple().exponent > 0:
        ether = ether.quantize(Decimal(1))
    return ether


def ether_to_wei(value: Decimal) -> int:
    """Convert an ether Decimal to integer wei (must be exact)."""
    wei = Decimal(value).scaleb(WEI_PER_ETHER_EXPONENT)
    if wei != wei.to_integral_value():
        raise ValueError(f"{value} has more than {WEI_PER_ETHER_EXPONENT} decimal places")
    return int(wei)


def _coerce_amount(value: Any) -> Decimal:
    """Ints are wei; strings and Decimals are ether quantities."""
    if isinstance(value, bool):
        raise ValueError("boolean is not an amount")
    if isinstance(value, int):
        return wei_to_ether(value)
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"invalid amount: {value!r}") from e


class GameRecord(BaseModel):
    """Immutable game fact owned by the ledger contract."""

    game_id: int = Field(ge=0)
    player: str = Field(min_length=1)
    bet_number: int = Field(ge=0, le=255)
    result_number: int = Field(ge=0, le=255)
    bet_amount: Decimal = Field(gt=0)
    payout: Decimal = Field(ge=0)
    won: bool
    block_number: int = Field(ge=0)
    timestamp: int | None = None
    tx_hash: str = ""

    @field_validator("bet_amount", "payout", mode="before")
    @classmethod
    def _coerce_decimal(cls, v):
        return _coerce_amount(v)

    @model_validator(mode="after")
    def _payout_matches_outcome(self) -> GameRecord:
        if (self.payout > 0) != self.won:
            raise ValueError(f"payout {self.payout} inconsistent with won={self.won}")
        return self

    class Config:
        """Pydantic model configuration."""

        frozen = True
        extra = "forbid"

    @property
    def has_timestamp(self) -> bool:
        return self.timestamp is not None

    @property
    def net_result(self) -> Decimal:
        """Payout for a win, negative stake for a loss."""
        return self.payout if self.won else -self.bet_amount

    def with_timestamp(self, timestamp: int | None) -> GameRecord:
        """Return a copy with the block timestamp filled in."""
        return self.model_copy(update={"timestamp": timestamp})

    @classmethod
    def from_log(cls, entry: dict) -> GameRecord:
        """
        Parse a raw GamePlayed log entry.

        Args:
            entry: dict with camelCase contract field names
                (gameId, player, betAmount, predictedNumber, resultNumber,
                won, payout, blockNumber, transactionHash, optional timestamp)

        Raises:
            MalformedLogEntry: if the entry is missing fields or violates invariants
        """
        if not isinstance(entry, dict):
            raise MalformedLogEntry(f"log entry must be a dict, got {type(entry).__name__}", entry)

        try:
            return cls(
                game_id=int(entry["gameId"]),
                player=entry["player"],
                bet_number=int(entry["predictedNumber"]),
                result_number=int(entry["resultNumber"]),
                bet_amount=entry["betAmount"],
                payout=entry["payout"],
                won=entry["won"],
                block_number=int(entry["blockNumber"]),
                timestamp=entry.get("timestamp"),
                tx_hash=str(entry.get("transactionHash") or ""),
            )
        except KeyError as e:
            raise MalformedLogEntry(f"log entry missing field {e}", entry) from e
        except (TypeError, ValueError, ValidationError) as e:
            raise MalformedLogEntry(f"invalid log entry: {e}", entry) from e

    def to_dict(self, preserve_precision: bool = False) -> dict:
        """Convert to dictionary

        Args:
            preserve_precision: If True, keep Decimals as strings
        """

        def convert(value):
            if isinstance(value, Decimal):
                return str(value) if preserve_precision else float(value)
            return value

        return {
            "game_id": self.game_id,
            "player": self.player,
            "bet_number": self.bet_number,
            "result_number": self.result_number,
            "bet_amount": convert(self.bet_amount),
            "payout": convert(self.payout),
            "won": self.won,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "tx_hash": self.tx_hash,
        }
