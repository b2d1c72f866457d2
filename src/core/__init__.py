"""Core module - bet rounds, history reconciliation and derived views"""

from . import validators
from .bet_round import BetRoundController
from .dashboard import PlayerDashboard
from .history_view import HistoryPage, HistoryView, filter_records, render, sort_records
from .reconciler import HistoryReconciler, ReconciledHistory, ReconciliationError
from .stats import aggregate
from .validators import (
    BelowMinimumBet,
    InsufficientBalance,
    InvalidAmount,
    NoNumberSelected,
    NoWalletConnected,
    NumberOutOfRange,
    ValidationError,
    validate_bet,
)

__all__ = [
    "BetRoundController",
    "PlayerDashboard",
    "HistoryPage",
    "HistoryView",
    "HistoryReconciler",
    "ReconciledHistory",
    "ReconciliationError",
    "aggregate",
    "filter_records",
    "render",
    "sort_records",
    "ValidationError",
    "BelowMinimumBet",
    "InsufficientBalance",
    "InvalidAmount",
    "NoNumberSelected",
    "NoWalletConnected",
    "NumberOutOfRange",
    "validate_bet",
    "validators",
]
