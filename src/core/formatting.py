"""
Display helpers for history rows and stats
"""

from __future__ import annotations

import time
from decimal import ROUND_HALF_UP, Decimal

from config import config


def relative_time(timestamp: int | None, now: float | None = None) -> str:
    """'Just now', '5m ago', '3h ago', '2d ago'; '-' when unknown"""
    if timestamp is None:
        return "-"
    if now is None:
        now = time.time()

    seconds = max(0, int(now - timestamp))
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def short_hash(tx_hash: str, length: int = 6) -> str:
    if not tx_hash:
        return ""
    if len(tx_hash) <= length:
        return tx_hash
    return f"{tx_hash[:length]}..."


def explorer_url(tx_hash: str, base_url: str | None = None) -> str:
    if base_url is None:
        base_url = config.get("ledger", "explorer_url")
    return f"{base_url.rstrip('/')}/tx/{tx_hash}"


def format_amount(amount: Decimal, precision: int | None = None) -> str:
    """Fixed-precision amount string, rounded half up"""
    if precision is None:
        precision = config.get("financial", "display_precision")
    quantum = Decimal(1).scaleb(-precision)
    return str(Decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP))


def format_signed(amount: Decimal, precision: int | None = None) -> str:
    text = format_amount(amount, precision)
    return f"+{text}" if amount > 0 else text


def format_percent(value: Decimal, precision: int = 1) -> str:
    return f"{format_amount(value, precision)}%"
