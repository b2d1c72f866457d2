"""
Bet input validation

Rules run in a fixed order and the first failure wins. Nothing here
contacts the ledger.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from config import config


class ValidationError(Exception):
    """Raised when local bet validation fails"""

    code = "invalid"
    default_message = "Invalid bet"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NoWalletConnected(ValidationError):
    code = "no_wallet"
    default_message = "Please connect your wallet first"


class NoNumberSelected(ValidationError):
    code = "no_number"
    default_message = "Please select a number first"


class NumberOutOfRange(ValidationError):
    code = "number_out_of_range"
    default_message = "Selected number is out of range"


class InvalidAmount(ValidationError):
    code = "invalid_amount"
    default_message = "Please enter a valid bet amount"


class BelowMinimumBet(ValidationError):
    code = "below_minimum"
    default_message = "Bet is below the minimum"


class InsufficientBalance(ValidationError):
    code = "insufficient_balance"
    default_message = "Insufficient balance"


def parse_amount(amount: str | Decimal | None) -> Decimal:
    """
    Parse user amount input as a positive, finite decimal

    Raises:
        InvalidAmount: empty, non-numeric, NaN/Infinity, zero or negative input
    """
    if amount is None:
        raise InvalidAmount()
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidAmount() from None
    if not value.is_finite() or value <= 0:
        raise InvalidAmount()
    return value


def validate_amount(
    amount: str | Decimal | None,
    balance: Decimal | None,
    min_bet: Decimal | None = None,
) -> Decimal:
    """
    Validate the amount rules (parse, minimum, balance)

    Args:
        amount: Amount input as typed by the player
        balance: Live wallet balance; None skips the balance rule
        min_bet: Absolute minimum (defaults to config)

    Returns:
        Parsed amount
    """
    if min_bet is None:
        min_bet = Decimal(str(config.get("financial", "min_bet")))

    value = parse_amount(amount)

    if value < min_bet:
        raise BelowMinimumBet(f"Minimum bet is {min_bet} ETH")

    if balance is not None and value > balance:
        raise InsufficientBalance()

    return value


def validate_bet(
    connected: bool,
    number: int | None,
    amount: str | Decimal | None,
    balance: Decimal | None,
    min_bet: Decimal | None = None,
    min_number: int | None = None,
    max_number: int | None = None,
) -> Decimal:
    """
    Validate a place-bet request

    Order: wallet connected, number selected (and in range), amount parses,
    amount meets minimum, amount within balance.

    Returns:
        Parsed bet amount

    Raises:
        ValidationError: first failing rule
    """
    if min_number is None:
        min_number = config.get("game_rules", "min_number")
    if max_number is None:
        max_number = config.get("game_rules", "max_number")

    if not connected:
        raise NoWalletConnected()

    if number is None:
        raise NoNumberSelected()

    if not min_number <= number <= max_number:
        raise NumberOutOfRange(f"Number must be between {min_number} and {max_number}")

    return validate_amount(amount, balance, min_bet)


def check_amount(
    amount: str | None,
    balance: Decimal | None,
    min_bet: Decimal | None = None,
) -> ValidationError | None:
    """
    Live check of an in-progress amount input

    Empty input is not an error yet.

    Returns:
        First failing ValidationError, or None if the amount is acceptable
    """
    if amount is None or not str(amount).strip():
        return None
    try:
        validate_amount(amount, balance, min_bet)
    except ValidationError as e:
        return e
    return None
