from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

# Abstract interface for wallet clients so the flow can run against a real
# chain node or an in-memory double.


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class TransactionHandle:
    """Reference to a submitted payment."""

    tx_hash: str
    recipient: str
    amount: Decimal


class WalletClient(ABC):
    """Abstract interface for the wallet paying for generations.

    Implementations submit a payment and report its status on request;
    confirmation is observed by polling :meth:`get_status`.
    """

    @property
    @abstractmethod
    def address(self) -> Optional[str]:  # pragma: no cover - interface
        """Connected account, or None when no wallet is connected."""

    @abstractmethod
    async def send_payment(self, recipient: str, amount: Decimal) -> TransactionHandle:
        """Submit a payment of ``amount`` to ``recipient``."""

    @abstractmethod
    async def get_status(self, handle: TransactionHandle) -> TransactionStatus:
        """Return the current status of a submitted payment."""
