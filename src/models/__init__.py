"""
Data models for the prediction dice client
"""

from .enums import OutcomeFilter, RoundStatus, SortKey, SortOrder
from .game_record import (
    GameRecord,
    MalformedLogEntry,
    ether_to_wei,
    wei_to_ether,
)
from .game_round import GameRound, RecentResult, RoundOutcome
from .history_query import DateRange, HistoryQuery
from .player_stats import PlayerStats

__all__ = [
    "RoundStatus",
    "OutcomeFilter",
    "SortKey",
    "SortOrder",
    # Ledger facts
    "GameRecord",
    "MalformedLogEntry",
    "ether_to_wei",
    "wei_to_ether",
    # Round state
    "GameRound",
    "RoundOutcome",
    "RecentResult",
    # History view state
    "DateRange",
    "HistoryQuery",
    # Derived
    "PlayerStats",
]
