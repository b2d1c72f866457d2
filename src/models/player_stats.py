"""
Player statistics model - derived, never mutated
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class PlayerStats(BaseModel):
    """Summary statistics over a set of game records."""

    total_games: int = Field(default=0, ge=0)
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    total_wagered: Decimal = Decimal("0")
    total_won: Decimal = Decimal("0")
    total_lost: Decimal = Decimal("0")
    net_profit: Decimal = Decimal("0")
    win_rate_percent: Decimal = Decimal("0")

    class Config:
        """Pydantic model configuration."""

        frozen = True

    def to_dict(self, precision: int = 4) -> dict:
        """Display-ready dict with fixed precision amounts."""
        quantum = Decimal(1).scaleb(-precision)
        return {
            "total_games": self.total_games,
            "wins": self.wins,
            "losses": self.losses,
            "total_wagered": str(self.total_wagered.quantize(quantum)),
            "total_won": str(self.total_won.quantize(quantum)),
            "total_lost": str(self.total_lost.quantize(quantum)),
            "net_profit": str(self.net_profit.quantize(quantum)),
            "win_rate_percent": str(self.win_rate_percent.quantize(Decimal("0.01"))),
        }
