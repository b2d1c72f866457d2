"""
Web3LedgerGateway - NumberPredictionGame contract over JSON-RPC.

Uses web3.py's AsyncWeb3 so every call suspends the caller instead of
blocking the event loop. Transactions are sent either through the node's
managed account or signed locally when the session carries a private key.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.logs import DISCARD

from models.game_record import GameRecord, ether_to_wei, wei_to_ether
from services.session import WalletSession

from .abi import GAME_CONTRACT_ABI, GAME_FIELDS
from .errors import NetworkMismatch, SubmissionError, Unknown, classify_failure
from .gateway import BetReceipt, LedgerGateway, SubmittedCallback

logger = logging.getLogger(__name__)


def _to_hex(value: Any) -> str:
    """HexBytes / bytes / str -> 0x-prefixed hex string"""
    if hasattr(value, "to_0x_hex"):
        return value.to_0x_hex()
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


def flatten_event_log(log: Any) -> dict:
    """
    Flatten a decoded GamePlayed log into the raw entry shape the
    reconciler parses (camelCase contract names, amounts in wei).
    """
    args = log["args"]
    return {
        "gameId": int(args["gameId"]),
        "player": str(args["player"]),
        "betAmount": int(args["betAmount"]),
        "predictedNumber": int(args["predictedNumber"]),
        "resultNumber": int(args["resultNumber"]),
        "won": bool(args["won"]),
        "payout": int(args["payout"]),
        "blockNumber": int(log["blockNumber"]),
        "transactionHash": _to_hex(log["transactionHash"]),
    }


class Web3LedgerGateway(LedgerGateway):
    """Talk to the deployed contract through an AsyncWeb3 provider."""

    def __init__(
        self,
        session: WalletSession,
        rpc_url: str,
        contract_address: str,
        expected_chain_id: int,
        from_block: int = 0,
        receipt_timeout: int = 120,
        w3: AsyncWeb3 | None = None,
    ):
        """
        Initialize Web3LedgerGateway.

        Args:
            session: Wallet session supplying address, chain id and signer
            rpc_url: JSON-RPC endpoint
            contract_address: Deployed contract address
            expected_chain_id: Chain the contract is deployed on
            from_block: First block scanned for GamePlayed logs
            receipt_timeout: Seconds to wait for a transaction receipt
            w3: Pre-built AsyncWeb3 instance (tests inject a mock)
        """
        self._session = session
        self._expected_chain_id = expected_chain_id
        self._from_block = from_block
        self._receipt_timeout = receipt_timeout
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address), abi=GAME_CONTRACT_ABI
        )

    def is_available(self) -> bool:
        return self._session.is_connected

    def get_mode_name(self) -> str:
        return "web3"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit_bet(
        self,
        number: int,
        amount: Decimal,
        on_submitted: SubmittedCallback | None = None,
    ) -> BetReceipt:
        context = self._session.context
        if context is None:
            raise Unknown("Wallet not connected")
        if context.chain_id != self._expected_chain_id:
            raise NetworkMismatch(
                f"Connected to chain {context.chain_id}, expected {self._expected_chain_id}"
            )

        try:
            node_chain_id = await self._w3.eth.chain_id
            if node_chain_id != self._expected_chain_id:
                raise NetworkMismatch(
                    f"Node is on chain {node_chain_id}, expected {self._expected_chain_id}"
                )

            value = ether_to_wei(amount)
            sender = AsyncWeb3.to_checksum_address(context.address)
            call = self._contract.functions.play(number)

            if context.can_sign_locally:
                tx = await call.build_transaction(
                    {
                        "from": sender,
                        "value": value,
                        "chainId": context.chain_id,
                        "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
                    }
                )
                signed = self._w3.eth.account.sign_transaction(tx, context.private_key)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = await call.transact({"from": sender, "value": value})
        except SubmissionError:
            raise
        except Exception as e:
            error = classify_failure(e)
            logger.warning(f"Bet submission failed ({error.code}): {e}")
            raise error from e

        tx_hex = _to_hex(tx_hash)
        logger.info(f"Bet broadcast: {tx_hex}")
        if on_submitted:
            on_submitted(tx_hex)

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except Exception as e:
            error = classify_failure(e)
            logger.warning(f"Waiting for {tx_hex} failed ({error.code}): {e}")
            raise error from e

        if receipt.get("status", 1) == 0:
            raise Unknown(f"Transaction {tx_hex} reverted")

        return self._receipt_to_bet(receipt, tx_hex, amount)

    def _receipt_to_bet(self, receipt: Any, tx_hex: str, amount: Decimal) -> BetReceipt:
        events = self._contract.events.GamePlayed().process_receipt(receipt, errors=DISCARD)
        if not events:
            logger.warning(f"No GamePlayed event in receipt {tx_hex}")
            return BetReceipt(
                tx_hash=tx_hex,
                game_id=None,
                result_number=None,
                won=False,
                payout=Decimal("0"),
                bet_amount=amount,
                block_number=receipt.get("blockNumber"),
            )

        entry = flatten_event_log(events[0])
        return BetReceipt(
            tx_hash=tx_hex,
            game_id=entry["gameId"],
            result_number=entry["resultNumber"],
            won=entry["won"],
            payout=wei_to_ether(entry["payout"]),
            bet_amount=wei_to_ether(entry["betAmount"]),
            bet_number=entry["predictedNumber"],
            block_number=entry["blockNumber"],
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_player_events(self, address: str) -> list[dict]:
        logs = await self._contract.events.GamePlayed().get_logs(
            argument_filters={"player": AsyncWeb3.to_checksum_address(address)},
            from_block=self._from_block,
        )
        return [flatten_event_log(log) for log in logs]

    async def get_game(self, game_id: int) -> GameRecord:
        raw = await self._contract.functions.getGame(game_id).call()
        game = dict(zip(GAME_FIELDS, raw))
        # The struct carries its own timestamp but no block or tx reference
        return GameRecord(
            game_id=int(game["gameId"]),
            player=str(game["player"]),
            bet_number=int(game["predictedNumber"]),
            result_number=int(game["resultNumber"]),
            bet_amount=int(game["betAmount"]),
            payout=int(game["payout"]),
            won=bool(game["won"]),
            block_number=0,
            timestamp=int(game["timestamp"]) or None,
        )

    async def get_block_timestamp(self, block_number: int) -> int:
        block = await self._w3.eth.get_block(block_number)
        return int(block["timestamp"])

    async def get_balance(self, address: str) -> Decimal:
        wei = await self._w3.eth.get_balance(AsyncWeb3.to_checksum_address(address))
        return wei_to_ether(int(wei))
