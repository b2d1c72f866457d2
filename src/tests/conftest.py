"""
Shared test fixtures for pytest
"""

from decimal import Decimal

import pytest

from ledger import SimulatedLedgerGateway
from services import EventBus, setup_logging
from services.session import SessionContext, WalletSession

PLAYER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
OTHER_PLAYER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
CHAIN_ID = 1337


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Setup logging for all tests"""
    setup_logging()


@pytest.fixture
def bus():
    """Private EventBus so tests never see each other's subscribers"""
    return EventBus()


@pytest.fixture
def session(bus):
    """Connected wallet session with no balance source yet"""
    return WalletSession(context=SessionContext(PLAYER, CHAIN_ID), bus=bus)


@pytest.fixture
def gateway(session):
    """Simulated ledger funded with 1 ETH; balance feeds the session"""
    ledger = SimulatedLedgerGateway(session, chain_id=CHAIN_ID)
    ledger.fund(PLAYER, Decimal("1"))
    session.set_balance_source(ledger.get_balance)
    return ledger


def make_log_entry(
    game_id: int,
    player: str = PLAYER,
    bet_number: int = 3,
    result_number: int = 5,
    bet_amount_wei: int = 10**16,
    payout_wei: int = 0,
    block_number: int | None = None,
    tx_hash: str | None = None,
    timestamp: int | None = None,
) -> dict:
    """Raw GamePlayed log entry as a gateway returns it"""
    entry = {
        "gameId": game_id,
        "player": player,
        "betAmount": bet_amount_wei,
        "predictedNumber": bet_number,
        "resultNumber": result_number,
        "won": payout_wei > 0,
        "payout": payout_wei,
        "blockNumber": block_number if block_number is not None else game_id,
        "transactionHash": tx_hash or f"0x{game_id:064x}",
    }
    if timestamp is not None:
        entry["timestamp"] = timestamp
    return entry


@pytest.fixture
def player():
    return PLAYER


@pytest.fixture
def other_player():
    return OTHER_PLAYER


@pytest.fixture
def log_entry():
    """Factory for raw log entries"""
    return make_log_entry
