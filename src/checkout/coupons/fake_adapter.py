"""In-memory coupon provider for development and testing.

Keeps coupons, their owners and a per-code reservation state
(available → locked → redeemed). Individual operations can be configured to
fail so the commit saga's compensation paths can be exercised.
"""

from typing import Any

from checkout.coupons.port import Coupon, CouponProvider

AVAILABLE = "available"
LOCKED = "locked"
REDEEMED = "redeemed"


class InMemoryCouponProvider(CouponProvider):
    name = "local"

    def __init__(self) -> None:
        self.coupons: dict[str, Coupon] = {}
        self.owners: dict[str, str] = {}
        self.states: dict[str, str] = {}
        self.holders: dict[str, str] = {}
        self.redemptions: dict[str, dict[str, Any]] = {}
        self.calls: list[dict] = []
        self.failing: set[str] = set()

    def add_coupon(self, coupon: Coupon, user_id: str | None = None) -> Coupon:
        self.coupons[coupon.code] = coupon
        self.states[coupon.code] = AVAILABLE
        if user_id is not None:
            self.owners[coupon.code] = str(user_id)
        return coupon

    def configure(self, failing: set[str] | None = None) -> None:
        """Make the named operations (``lock``, ``redeem``, ``unlock``, ``find``, ``list``) raise."""
        self.failing = set(failing or ())

    def state_of(self, code: str) -> str | None:
        return self.states.get(code)

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise RuntimeError(f"Coupon service unavailable ({operation})")

    def _owned_by(self, code: str, user_id: str) -> bool:
        owner = self.owners.get(code)
        return owner is None or owner == str(user_id)

    def supports(self, code: str) -> bool:
        return code in self.coupons

    def find_by_code(self, code: str, user_id: str) -> Coupon | None:
        self.calls.append({"method": "find_by_code", "code": code, "user_id": user_id})
        self._check("find")
        if code not in self.coupons or not self._owned_by(code, user_id):
            return None
        if self.states.get(code) == REDEEMED:
            return None
        return self.coupons[code]

    def get_all_coupons_for_user(self, user_id: str) -> list[Coupon]:
        self.calls.append({"method": "get_all_coupons_for_user", "user_id": user_id})
        self._check("list")
        return [
            coupon
            for code, coupon in self.coupons.items()
            if self.owners.get(code) == str(user_id) and self.states.get(code) == AVAILABLE
        ]

    def lock(self, code: str, user_id: str) -> bool:
        self.calls.append({"method": "lock", "code": code, "user_id": user_id})
        self._check("lock")
        if code not in self.coupons or not self._owned_by(code, user_id):
            return False
        # A held reservation is exclusive, even against its own holder
        if self.states.get(code) != AVAILABLE:
            return False
        self.states[code] = LOCKED
        self.holders[code] = str(user_id)
        return True

    def unlock(self, code: str, user_id: str) -> bool:
        self.calls.append({"method": "unlock", "code": code, "user_id": user_id})
        self._check("unlock")
        if self.states.get(code) == LOCKED and self.holders.get(code) == str(user_id):
            self.states[code] = AVAILABLE
            self.holders.pop(code, None)
        return True

    def redeem(self, code: str, user_id: str, metadata: dict[str, Any]) -> bool:
        self.calls.append({"method": "redeem", "code": code, "user_id": user_id, "metadata": metadata})
        self._check("redeem")
        if self.states.get(code) != LOCKED or self.holders.get(code) != str(user_id):
            return False
        self.states[code] = REDEEMED
        self.redemptions[code] = dict(metadata)
        return True
