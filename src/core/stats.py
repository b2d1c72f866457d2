"""
Player statistics aggregation

Stats are a pure reduction over a record sequence. Nothing is cached or
accumulated between calls.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from models import GameRecord, PlayerStats

ZERO = Decimal("0")


def aggregate(records: Iterable[GameRecord]) -> PlayerStats:
    """
    Reduce records into PlayerStats

    Args:
        records: Any iterable of GameRecord (consumed once)

    Returns:
        Fresh PlayerStats snapshot
    """
    total_games = 0
    wins = 0
    total_wagered = ZERO
    total_won = ZERO
    total_lost = ZERO

    for record in records:
        total_games += 1
        total_wagered += record.bet_amount
        if record.won:
            wins += 1
            total_won += record.payout
        else:
            total_lost += record.bet_amount

    if total_games:
        win_rate = Decimal(wins) * 100 / Decimal(total_games)
    else:
        win_rate = ZERO

    return PlayerStats(
        total_games=total_games,
        wins=wins,
        losses=total_games - wins,
        total_wagered=total_wagered,
        total_won=total_won,
        total_lost=total_lost,
        net_profit=total_won - total_lost,
        win_rate_percent=win_rate,
    )

