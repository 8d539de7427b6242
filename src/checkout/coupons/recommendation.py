"""Coupon recommendations: which of the user's coupons are worth applying.

Candidates from every provider go through two passes. A cheap quick filter
drops coupons outside their validity window or whose minimum spend exceeds
the cart total. The survivors are fully evaluated (scope eligibility plus the
evaluator) until either the evaluation budget or the recommendation budget
runs out. Results are ranked by expected discount, highest first.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from checkout import money
from checkout.catalog import get_catalog
from checkout.coupons import get_coupon_chain, get_coupon_evaluator
from checkout.coupons.port import GRANTING_TYPES, Coupon, CouponEvaluation
from checkout.pricing.items import CalculationContext, resolve_sku

logger = structlog.get_logger(__name__)

DEFAULT_MAX_RECOMMENDATIONS = 100


@dataclass(frozen=True)
class RecommendedCoupon:
    code: str
    name: str
    type: str
    expected_discount: str
    description: str = ""
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    conditions: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    gift_items: list[dict[str, Any]] = field(default_factory=list)
    redeem_items: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "expected_discount": self.expected_discount,
            "description": self.description,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
            "conditions": self.conditions,
            "metadata": self.metadata,
            "gift_items": self.gift_items,
            "redeem_items": self.redeem_items,
        }


@dataclass(frozen=True)
class _OrderLine:
    sku_id: str
    quantity: int
    unit_price: str
    subtotal: str
    sku: Any


class CouponRecommendationService:
    def __init__(
        self,
        chain=None,
        evaluator=None,
        catalog=None,
        max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS,
        max_evaluations: int | None = None,
    ) -> None:
        self._chain = chain
        self._evaluator = evaluator
        self._catalog = catalog
        self.max_recommendations = max_recommendations
        self.max_evaluations = max_evaluations if max_evaluations is not None else max_recommendations * 2

    @property
    def chain(self):
        return self._chain if self._chain is not None else get_coupon_chain()

    @property
    def evaluator(self):
        return self._evaluator if self._evaluator is not None else get_coupon_evaluator()

    @property
    def catalog(self):
        return self._catalog if self._catalog is not None else get_catalog()

    def recommend(self, context: CalculationContext) -> list[RecommendedCoupon]:
        candidates = self.chain.get_all_coupons_for_user(context.user_id)
        if not candidates:
            return []

        lines = self._order_lines(context)
        cart_total = money.total(line.subtotal for line in lines)
        now = context.calculate_time

        recommendations: list[RecommendedCoupon] = []
        evaluated = 0
        for coupon in candidates:
            if evaluated >= self.max_evaluations or len(recommendations) >= self.max_recommendations:
                break
            if not self._passes_quick_filter(coupon, cart_total, now):
                continue

            evaluated += 1
            try:
                recommendation = self._evaluate(coupon, lines, context)
            except Exception as exc:
                logger.warning(
                    "Coupon evaluation failed",
                    code=coupon.code,
                    user_id=context.user_id,
                    error=str(exc),
                )
                continue
            if recommendation is not None:
                recommendations.append(recommendation)

        logger.info(
            "Coupons recommended",
            user_id=context.user_id,
            candidates=len(candidates),
            evaluated=evaluated,
            recommended=len(recommendations),
        )
        # Stable sort keeps provider order for equal discounts
        return sorted(recommendations, key=lambda r: money.to_decimal(r.expected_discount), reverse=True)

    def _order_lines(self, context: CalculationContext) -> list[_OrderLine]:
        lines = []
        for item in context.selected_items:
            item = resolve_sku(item, self.catalog)
            unit_price = money.round_money(item.sku.price)
            lines.append(
                _OrderLine(
                    sku_id=item.sku_id,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    subtotal=money.multiply(unit_price, item.quantity),
                    sku=item.sku,
                )
            )
        return lines

    @staticmethod
    def _passes_quick_filter(coupon: Coupon, cart_total: str, now: datetime) -> bool:
        if not coupon.is_valid_at(now):
            return False
        if coupon.has_threshold and money.greater_than(coupon.threshold, cart_total):
            return False
        return True

    def _evaluate(
        self, coupon: Coupon, lines: list[_OrderLine], context: CalculationContext
    ) -> RecommendedCoupon | None:
        if not coupon.is_valid_at(context.calculate_time):
            return None

        applicable = [line for line in lines if coupon.applies_to(line.sku)]
        if not applicable:
            return None
        applicable_total = money.total(line.subtotal for line in applicable)
        if coupon.has_threshold and money.less_than(applicable_total, coupon.threshold):
            return None

        evaluation = self.evaluator.evaluate(coupon, context)
        if not self._has_benefit(coupon, evaluation):
            return None

        return RecommendedCoupon(
            code=coupon.code,
            name=coupon.name,
            type=coupon.type,
            expected_discount=money.round_money(evaluation.discount_amount),
            description=coupon.description,
            valid_from=coupon.valid_from,
            valid_to=coupon.valid_to,
            conditions=coupon.conditions,
            metadata={**coupon.metadata, **evaluation.metadata},
            gift_items=[item.to_dict() for item in evaluation.gift_items],
            redeem_items=[item.to_dict() for item in evaluation.redeem_items],
        )

    @staticmethod
    def _has_benefit(coupon: Coupon, evaluation: CouponEvaluation) -> bool:
        if money.greater_than(evaluation.discount_amount, 0):
            return True
        return coupon.type in GRANTING_TYPES and evaluation.grants_items
