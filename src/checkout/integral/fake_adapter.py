"""Integral service adapters.

``InMemoryIntegralService`` keeps balances in a dict and ignores a change
whose ``source_id`` it has already applied. ``UnavailableIntegralService`` is
used when the deployment has no points ledger: every call is a logged no-op.
"""

import structlog

from checkout.integral.port import IntegralAccount, IntegralChange, IntegralService

logger = structlog.get_logger(__name__)


class InMemoryIntegralService(IntegralService):
    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        self.applied: dict[str, IntegralChange] = {}
        self.calls: list[dict] = []
        self.failing: set[str] = set()

    def set_balance(self, user_id: str, balance: int) -> None:
        self.balances[str(user_id)] = balance

    def configure(self, failing: set[str] | None = None) -> None:
        """Make ``decrease`` and/or ``increase`` raise."""
        self.failing = set(failing or ())

    def get_account(self, user_id: str) -> IntegralAccount | None:
        if str(user_id) not in self.balances:
            return None
        return IntegralAccount(user_id=str(user_id), balance=self.balances[str(user_id)])

    def decrease(self, change: IntegralChange) -> None:
        self._apply("decrease", change, -change.amount)

    def increase(self, change: IntegralChange) -> None:
        self._apply("increase", change, change.amount)

    def _apply(self, method: str, change: IntegralChange, delta: int) -> None:
        self.calls.append(
            {"method": method, "user_id": change.user_id, "amount": change.amount, "source_id": change.source_id}
        )
        if method in self.failing:
            raise RuntimeError(f"Points ledger unavailable ({method})")
        if change.source_id in self.applied:
            return
        self.balances[change.user_id] = self.balances.get(change.user_id, 0) + delta
        self.applied[change.source_id] = change


class UnavailableIntegralService(IntegralService):
    def get_account(self, user_id: str) -> IntegralAccount | None:
        logger.warning("Integral service unavailable", operation="get_account", user_id=user_id)
        return None

    def decrease(self, change: IntegralChange) -> None:
        logger.warning(
            "Integral service unavailable", operation="decrease", user_id=change.user_id, amount=change.amount
        )

    def increase(self, change: IntegralChange) -> None:
        logger.warning(
            "Integral service unavailable", operation="increase", user_id=change.user_id, amount=change.amount
        )
