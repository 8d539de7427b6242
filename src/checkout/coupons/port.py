"""Coupon ports (abstract interfaces) and payloads.

Three collaborators sit behind these ports:

- CouponProvider: a source of coupons (local store, partner systems...).
  Providers are aggregated by CouponProviderChain.
- CouponEvaluator: computes what a coupon is worth for a given cart.
- CouponLedger: pessimistic reservation of coupon codes during commit:
  lock, then either redeem or unlock.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from checkout import money


class CouponType(Enum):
    CASH = "cash"
    DISCOUNT = "discount"
    FULL_GIFT = "full_gift"
    BUY_GIFT = "buy_gift"
    REDEEM = "redeem"


# Coupon types whose benefit is granted items rather than money off
GRANTING_TYPES = {CouponType.FULL_GIFT.value, CouponType.BUY_GIFT.value, CouponType.REDEEM.value}


@dataclass(frozen=True)
class GrantedItem:
    """A gift or redeemable item granted by a coupon."""

    sku_id: str
    quantity: int = 1
    name: str | None = None
    reference_unit_price: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku_id": self.sku_id,
            "quantity": self.quantity,
            "name": self.name,
            "reference_unit_price": self.reference_unit_price,
        }


@dataclass(frozen=True)
class Coupon:
    """A coupon as offered by a provider.

    ``value`` is a fixed amount for ``cash`` coupons and a percentage for
    ``discount`` coupons. A ``threshold`` of None means no minimum spend.
    Empty scope tuples mean the coupon applies to every item.
    """

    code: str
    name: str
    type: str = CouponType.CASH.value
    value: str = "0.00"
    threshold: str | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    applicable_sku_ids: tuple[str, ...] = ()
    applicable_category_ids: tuple[str, ...] = ()
    max_discount: str | None = None
    gift_items: tuple[GrantedItem, ...] = ()
    redeem_items: tuple[GrantedItem, ...] = ()
    should_mark_paid: bool = False
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def has_threshold(self) -> bool:
        return self.threshold is not None and money.greater_than(self.threshold, 0)

    def is_valid_at(self, moment: datetime) -> bool:
        if self.valid_from is not None and moment < self.valid_from:
            return False
        if self.valid_to is not None and moment > self.valid_to:
            return False
        return True

    def applies_to(self, sku) -> bool:
        if not self.applicable_sku_ids and not self.applicable_category_ids:
            return True
        if str(sku.id) in self.applicable_sku_ids:
            return True
        return sku.category_id is not None and str(sku.category_id) in self.applicable_category_ids

    @property
    def conditions(self) -> dict[str, Any]:
        return {
            "threshold": self.threshold,
            "applicable_sku_ids": list(self.applicable_sku_ids),
            "applicable_category_ids": list(self.applicable_category_ids),
            "max_discount": self.max_discount,
        }


@dataclass(frozen=True)
class CouponAllocation:
    sku_id: str
    amount: str
    line_index: int | None = None  # Position among the selected cart items


@dataclass(frozen=True)
class CouponEvaluation:
    """What a coupon is worth for one cart."""

    code: str
    discount_amount: str = "0.00"
    allocations: tuple[CouponAllocation, ...] = ()
    gift_items: tuple[GrantedItem, ...] = ()
    redeem_items: tuple[GrantedItem, ...] = ()
    should_mark_paid: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    message: str | None = None

    @property
    def grants_items(self) -> bool:
        return bool(self.gift_items or self.redeem_items)


class CouponProvider(ABC):
    name: str = "provider"

    @abstractmethod
    def supports(self, code: str) -> bool:
        """Whether this provider is responsible for ``code``."""
        ...

    @abstractmethod
    def find_by_code(self, code: str, user_id: str) -> Coupon | None: ...

    @abstractmethod
    def get_all_coupons_for_user(self, user_id: str) -> list[Coupon]: ...

    @abstractmethod
    def lock(self, code: str, user_id: str) -> bool:
        """Reserve ``code`` for this user. False when unavailable."""
        ...

    @abstractmethod
    def unlock(self, code: str, user_id: str) -> bool:
        """Release a reservation. Releasing a code that is not held is a no-op."""
        ...

    @abstractmethod
    def redeem(self, code: str, user_id: str, metadata: dict[str, Any]) -> bool:
        """Consume a locked code for the order described by ``metadata``."""
        ...


class CouponEvaluator(ABC):
    @abstractmethod
    def evaluate(self, coupon: Coupon, context) -> CouponEvaluation: ...


class CouponLedger(ABC):
    @abstractmethod
    def lock(self, user_id: str, codes: list[str]) -> list[str]:
        """Lock codes for the user; return the codes actually locked."""
        ...

    @abstractmethod
    def redeem(self, codes: list[str], user_id: str, order_id: str, order_number: str) -> list[str]:
        """Redeem locked codes against an order; return the codes actually redeemed."""
        ...

    @abstractmethod
    def unlock(self, codes: list[str], user_id: str) -> None:
        """Release locks. Idempotent and never raises."""
        ...
