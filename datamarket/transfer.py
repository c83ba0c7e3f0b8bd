"""
Value-transfer collaborator.

``TransferPrimitive`` is the contract the engine consumes; ``InMemoryBank``
implements it for tests, seeding and the demo service. ``PaymentBatch`` groups
several legs into one all-or-nothing unit by reversing applied legs when a
later one is declined.
"""

import logging
from typing import Protocol

from datamarket.errors import InsufficientFunds
from datamarket.models import Principal

logger = logging.getLogger(__name__)


class TransferPrimitive(Protocol):
    def transfer(self, amount: int, sender: Principal, recipient: Principal) -> None:
        """Move ``amount`` atomically; raise ``InsufficientFunds`` if the sender is short."""
        ...


class InMemoryBank:
    def __init__(self) -> None:
        self.balances: dict[Principal, int] = {}

    def deposit(self, account: Principal, amount: int) -> None:
        if amount < 0:
            raise ValueError("deposit amount must not be negative")
        self.balances[account] = self.balances.get(account, 0) + amount

    def balance_of(self, account: Principal) -> int:
        return self.balances.get(account, 0)

    def transfer(self, amount: int, sender: Principal, recipient: Principal) -> None:
        if amount <= 0:
            raise ValueError(f"transfer amount must be positive, got {amount}")
        available = self.balance_of(sender)
        if available < amount:
            raise InsufficientFunds(
                f"{sender} holds {available}, needs {amount}"
            )
        self.balances[sender] = available - amount
        self.balances[recipient] = self.balance_of(recipient) + amount

    def clear(self) -> None:
        self.balances.clear()


class PaymentBatch:
    """Context manager collecting transfer legs that must land together.

    Zero-amount legs are skipped. If any leg or the enclosing block raises,
    legs already applied are reversed newest-first and the error propagates.
    """

    def __init__(self, primitive: TransferPrimitive) -> None:
        self._primitive = primitive
        self._applied: list[tuple[int, Principal, Principal]] = []

    def pay(self, amount: int, sender: Principal, recipient: Principal) -> None:
        if amount == 0:
            return
        self._primitive.transfer(amount, sender, recipient)
        self._applied.append((amount, sender, recipient))

    def _compensate(self) -> None:
        for amount, sender, recipient in reversed(self._applied):
            self._primitive.transfer(amount, recipient, sender)
        self._applied.clear()

    def __enter__(self) -> "PaymentBatch":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None and self._applied:
            logger.warning("Reversing %d applied payment leg(s) after %s",
                           len(self._applied), exc_type.__name__)
            self._compensate()
        return False
