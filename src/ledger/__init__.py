"""
Ledger gateways - boundary to the NumberPredictionGame contract.
"""

from .errors import (
    InsufficientFunds,
    NetworkMismatch,
    NonceConflict,
    Rejected,
    SubmissionError,
    Unknown,
    classify_failure,
)
from .gateway import BetReceipt, LedgerGateway, SubmittedCallback
from .simulated import SimulatedLedgerGateway


def __getattr__(name):
    # web3 is only imported when the live gateway is requested
    if name == "Web3LedgerGateway":
        from .web3_gateway import Web3LedgerGateway

        return Web3LedgerGateway
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "BetReceipt",
    "InsufficientFunds",
    "LedgerGateway",
    "NetworkMismatch",
    "NonceConflict",
    "Rejected",
    "SimulatedLedgerGateway",
    "SubmissionError",
    "SubmittedCallback",
    "Unknown",
    "Web3LedgerGateway",
    "classify_failure",
]
