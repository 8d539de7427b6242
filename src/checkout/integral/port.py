"""Integral (loyalty points) service port.

Points live in the member context. Checkout deducts the points an order
requires and refunds them when the order is rolled back. Every change carries
a ``source_id`` that makes it idempotent on the ledger side.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class IntegralAccount:
    user_id: str
    balance: int = 0
    frozen: int = 0

    @property
    def available(self) -> int:
        return max(self.balance - self.frozen, 0)


@dataclass(frozen=True)
class IntegralChange:
    user_id: str
    amount: int
    source_id: str
    source_type: str
    remark: str = ""


class IntegralService(ABC):
    @abstractmethod
    def get_account(self, user_id: str) -> IntegralAccount | None: ...

    @abstractmethod
    def decrease(self, change: IntegralChange) -> None: ...

    @abstractmethod
    def increase(self, change: IntegralChange) -> None: ...

    def available(self, user_id: str) -> int:
        account = self.get_account(user_id)
        return account.available if account else 0
