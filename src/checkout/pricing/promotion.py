"""Promotion calculator and matchers.

Store-wide promotions (as opposed to user coupons) are expressed as matchers.
The calculator runs every configured matcher in priority order and turns the
summed discount into a negative contribution to the final price.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import structlog

from checkout import money
from checkout.catalog import get_catalog
from checkout.pricing.engine import PriceCalculator
from checkout.pricing.items import CalculationContext, CheckoutItem, resolve_sku
from checkout.pricing.result import PriceResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PromotionResult:
    promotion_type: str
    discount: str = "0.00"
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def applies(self) -> bool:
        return money.greater_than(self.discount, 0)


class PromotionMatcher(ABC):
    priority: int = 0
    promotion_type: str = ""

    @abstractmethod
    def match(self, items: list[CheckoutItem], context: CalculationContext) -> PromotionResult:
        """Evaluate the promotion against selected items (SKUs already loaded)."""
        ...


class FullReductionMatcher(PromotionMatcher):
    """Spend at least ``threshold`` and get ``reduction`` off."""

    priority = 100
    promotion_type = "full_reduction"

    def __init__(self, threshold: str = "100.00", reduction: str = "10.00") -> None:
        self.threshold = money.round_money(threshold)
        self.reduction = money.round_money(reduction)

    def match(self, items, context):
        subtotal = money.total(money.multiply(item.sku.price, item.quantity) for item in items)
        if money.less_than(subtotal, self.threshold):
            return PromotionResult(promotion_type=self.promotion_type)

        discount = money.minimum(self.reduction, subtotal)
        return PromotionResult(
            promotion_type=self.promotion_type,
            discount=discount,
            details={
                "threshold": self.threshold,
                "reduction": self.reduction,
                "subtotal": subtotal,
                "description": f"Spend {self.threshold}, save {self.reduction}",
            },
        )


class PromotionCalculator(PriceCalculator):
    priority = 800
    calculator_type = "promotion"

    def __init__(self, matchers=(), catalog=None) -> None:
        self.matchers = sorted(matchers, key=lambda m: m.priority, reverse=True)
        self._catalog = catalog

    @property
    def catalog(self):
        return self._catalog if self._catalog is not None else get_catalog()

    def supports(self, context: CalculationContext) -> bool:
        return bool(self.matchers) and bool(context.selected_items)

    def calculate(self, context: CalculationContext) -> PriceResult:
        items = [resolve_sku(item, self.catalog) for item in context.selected_items]

        applied = []
        discounts = []
        for matcher in self.matchers:
            result = matcher.match(items, context)
            if not result.applies:
                continue
            applied.append(result)
            discounts.append(result.discount)

        discount = money.total(discounts)
        if applied:
            logger.info(
                "Promotions applied",
                user_id=context.user_id,
                promotions=[r.promotion_type for r in applied],
                discount=discount,
            )

        return PriceResult(
            original_price="0.00",
            final_price=money.negate(discount),
            discount=discount,
            details={
                "promotions": [r.promotion_type for r in applied],
                "promotion_details": {r.promotion_type: {"discount": r.discount, **r.details} for r in applied},
            },
        )
