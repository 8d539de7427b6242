"""Local coupon evaluator.

Works out the discount (or granted items) a coupon is worth for a cart and
spreads money-off discounts across the eligible lines in proportion to their
subtotals. The last eligible line absorbs the rounding remainder so the
allocations always add up to the discount exactly.
"""

import structlog

from checkout import money
from checkout.catalog import get_catalog
from checkout.coupons.port import Coupon, CouponAllocation, CouponEvaluation, CouponEvaluator, CouponType
from checkout.pricing.items import resolve_sku

logger = structlog.get_logger(__name__)


def allocate_discount(discount: str, lines: list[tuple]) -> tuple[CouponAllocation, ...]:
    """Split ``discount`` across ``(sku_id, subtotal[, line_index])`` lines proportionally."""
    if money.is_zero(discount) or not lines:
        return ()

    base = money.total(line[1] for line in lines)
    if money.is_zero(base):
        return ()

    allocations = []
    allocated = []
    for index, (sku_id, subtotal, *position) in enumerate(lines):
        if index == len(lines) - 1:
            share = money.subtract(discount, money.total(allocated))
        else:
            share = money.divide(money.multiply(discount, subtotal, 6), base)
        allocated.append(share)
        allocations.append(CouponAllocation(sku_id=sku_id, amount=share, line_index=position[0] if position else None))
    return tuple(allocations)


class LocalCouponEvaluator(CouponEvaluator):
    def __init__(self, catalog=None) -> None:
        self._catalog = catalog

    @property
    def catalog(self):
        return self._catalog if self._catalog is not None else get_catalog()

    def evaluate(self, coupon: Coupon, context) -> CouponEvaluation:
        items = [resolve_sku(item, self.catalog) for item in context.selected_items]
        lines = [
            (item.sku_id, money.multiply(item.sku.price, item.quantity), position)
            for position, item in enumerate(items)
            if coupon.applies_to(item.sku)
        ]
        eligible_total = money.total(line[1] for line in lines)

        if coupon.has_threshold and money.less_than(eligible_total, coupon.threshold):
            return CouponEvaluation(code=coupon.code, message=f"Spend {coupon.threshold} to use coupon {coupon.code}")

        if coupon.type == CouponType.CASH.value:
            discount = money.minimum(coupon.value, eligible_total)
        elif coupon.type == CouponType.DISCOUNT.value:
            discount = money.percentage(eligible_total, coupon.value)
            if coupon.max_discount is not None:
                discount = money.minimum(discount, coupon.max_discount)
        elif coupon.type in (CouponType.FULL_GIFT.value, CouponType.BUY_GIFT.value):
            return CouponEvaluation(
                code=coupon.code,
                gift_items=coupon.gift_items,
                metadata={"coupon_type": coupon.type},
            )
        elif coupon.type == CouponType.REDEEM.value:
            return CouponEvaluation(
                code=coupon.code,
                redeem_items=coupon.redeem_items,
                should_mark_paid=coupon.should_mark_paid,
                metadata={"coupon_type": coupon.type},
            )
        else:
            logger.warning("Unsupported coupon type", code=coupon.code, coupon_type=coupon.type)
            return CouponEvaluation(code=coupon.code, message=f"Unsupported coupon type {coupon.type}")

        return CouponEvaluation(
            code=coupon.code,
            discount_amount=discount,
            allocations=allocate_discount(discount, lines),
            metadata={"coupon_type": coupon.type, "allocation_rule": "proportional"},
        )
