"""
Wallet session collaborator.

Owns the connected account, network and balance source. The core reads the
session explicitly (no ambient wallet state) and reacts to SESSION_CHANGED
signals; account/network switching is driven from outside.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from decimal import Decimal

from services.event_bus import EventBus, Events, event_bus

logger = logging.getLogger(__name__)

BalanceSource = Callable[[str], Awaitable[Decimal]]
SessionListener = Callable[["SessionContext | None", "SessionContext | None"], None]


@dataclass(frozen=True)
class SessionContext:
    """
    Connected wallet identity.

    Attributes:
        address: Player account address
        chain_id: Network the wallet is connected to
        private_key: Local signing key; None when the node manages the account
    """

    address: str
    chain_id: int
    private_key: str | None = field(default=None, repr=False)

    @property
    def can_sign_locally(self) -> bool:
        return self.private_key is not None


class WalletSession:
    """
    Current wallet connection plus explicit change notifications.

    Usage:
        session = WalletSession(balance_source=gateway.get_balance)
        session.subscribe(lambda old, new: print(old, "->", new))
        session.connect(SessionContext(address="0xabc", chain_id=1337))
        balance = await session.get_balance()
    """

    def __init__(
        self,
        balance_source: BalanceSource | None = None,
        context: SessionContext | None = None,
        bus: EventBus | None = None,
    ):
        self._balance_source = balance_source
        self._context = context
        self._bus = bus or event_bus
        self._listeners: list[SessionListener] = []

    @property
    def context(self) -> SessionContext | None:
        return self._context

    @property
    def is_connected(self) -> bool:
        return self._context is not None

    @property
    def address(self) -> str | None:
        return self._context.address if self._context else None

    @property
    def chain_id(self) -> int | None:
        return self._context.chain_id if self._context else None

    def set_balance_source(self, balance_source: BalanceSource):
        self._balance_source = balance_source

    async def get_balance(self) -> Decimal:
        """
        Live balance of the connected account.

        Returns 0 when disconnected or when no balance source is configured.
        """
        if self._context is None or self._balance_source is None:
            return Decimal("0")
        return await self._balance_source(self._context.address)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: SessionListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SessionListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Session changes
    # ------------------------------------------------------------------

    def connect(self, context: SessionContext):
        self._change(context)

    def switch_account(self, address: str, private_key: str | None = None):
        if self._context is None:
            raise RuntimeError("Cannot switch account: no wallet connected")
        self._change(SessionContext(address, self._context.chain_id, private_key))

    def switch_network(self, chain_id: int):
        if self._context is None:
            raise RuntimeError("Cannot switch network: no wallet connected")
        self._change(
            SessionContext(self._context.address, chain_id, self._context.private_key)
        )

    def disconnect(self):
        self._change(None)

    def _change(self, new_context: SessionContext | None):
        old_context = self._context
        if old_context == new_context:
            return

        self._context = new_context
        logger.info(
            f"Session changed: {old_context.address if old_context else None} "
            f"-> {new_context.address if new_context else None} "
            f"(chain {new_context.chain_id if new_context else None})"
        )

        for listener in list(self._listeners):
            try:
                listener(old_context, new_context)
            except Exception as e:
                logger.error(f"Session listener failed: {e}", exc_info=True)

        self._bus.publish(Events.SESSION_CHANGED, {"old": old_context, "new": new_context})
