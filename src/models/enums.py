"""
Enumerations for round states and history query options
"""

from enum import Enum


class RoundStatus(str, Enum):
    """Bet round lifecycle states"""

    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RESOLVING = "resolving"
    SETTLED = "settled"
    FAILED = "failed"

    @classmethod
    def accepts_new_bet(cls, status: str) -> bool:
        """Check if a new place-bet request may start a round.

        Accepting states:
        - IDLE: nothing in flight
        - SETTLED / FAILED: previous round finished, display window still open
        """
        return status in (cls.IDLE, cls.SETTLED, cls.FAILED)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in (cls.SETTLED, cls.FAILED)


class OutcomeFilter(str, Enum):
    """History outcome filter"""

    ALL = "all"
    WINS = "wins"
    LOSSES = "losses"


class SortKey(str, Enum):
    """History sort key"""

    DATE = "date"
    AMOUNT = "amount"
    OUTCOME = "outcome"


class SortOrder(str, Enum):
    """History sort direction"""

    ASC = "asc"
    DESC = "desc"
