"""
Submission error taxonomy.

Gateways raise SubmissionError subclasses; anything else that escapes a
gateway call is classified from its message with classify_failure().
"""

from __future__ import annotations


class SubmissionError(Exception):
    """Base class for gateway-reported bet submission failures"""

    code = "unknown"
    default_message = "Transaction failed"

    def __init__(self, message: str | None = None, raw: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.raw = raw


class Rejected(SubmissionError):
    """Signer declined the transaction"""

    code = "rejected"
    default_message = "Transaction rejected"


class InsufficientFunds(SubmissionError):
    """Balance cannot cover the bet plus network fee"""

    code = "insufficient_funds"
    default_message = "Insufficient funds for gas + bet amount"


class NetworkMismatch(SubmissionError):
    """Wallet is connected to the wrong chain"""

    code = "network_mismatch"
    default_message = "Wrong network. Please switch networks."


class NonceConflict(SubmissionError):
    """Transaction nonce clashed with a pending or mined transaction"""

    code = "nonce_conflict"
    default_message = "Transaction error. Please try again."


class Unknown(SubmissionError):
    """Any other failure; message carries the raw text"""

    code = "unknown"


# Checked in order; first match wins
_FAILURE_PATTERNS: tuple[tuple[tuple[str, ...], type[SubmissionError]], ...] = (
    (("user rejected", "user denied", "rejected by user", "request rejected"), Rejected),
    (("insufficient funds",), InsufficientFunds),
    (("nonce",), NonceConflict),
    (("chain id", "chainid", "wrong network", "network mismatch", "unsupported chain"), NetworkMismatch),
)


def classify_failure(failure: BaseException | str) -> SubmissionError:
    """
    Map a raw gateway failure into the submission taxonomy.

    Args:
        failure: Exception raised by the transport, or its message

    Returns:
        SubmissionError instance (the input itself if already classified)
    """
    if isinstance(failure, SubmissionError):
        return failure

    if isinstance(failure, str):
        raw = failure.strip()
    else:
        raw = str(failure).strip() or type(failure).__name__
    lowered = raw.lower()

    for needles, error_cls in _FAILURE_PATTERNS:
        if any(needle in lowered for needle in needles):
            return error_cls(raw=raw)

    return Unknown(raw or None, raw=raw)
