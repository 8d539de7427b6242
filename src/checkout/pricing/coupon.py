"""Coupon calculator.

Looks up every coupon code the caller applied, asks the evaluator what each
one is worth and folds the outcomes into a single contribution. A problem
with one code (unknown, expired, evaluator failure) is recorded as a message
and never aborts the chain.
"""

from typing import Any

import structlog

from checkout import money
from checkout.catalog import get_catalog
from checkout.coupons import get_coupon_chain, get_coupon_evaluator
from checkout.coupons.port import Coupon, CouponEvaluation, GrantedItem
from checkout.pricing.engine import PriceCalculator
from checkout.pricing.items import CalculationContext
from checkout.pricing.result import PriceResult

logger = structlog.get_logger(__name__)


class CouponCalculationAggregate:
    """Accumulates the evaluations of several coupons."""

    def __init__(self, catalog) -> None:
        self.catalog = catalog
        self.total_discount = "0.00"
        self.breakdown: dict[str, dict[str, Any]] = {}
        self.allocation_summary: dict[str, str] = {}
        self.gift_items: list[dict[str, Any]] = []
        self.redeem_items: list[dict[str, Any]] = []
        self.applied_codes: list[str] = []
        self.messages: list[str] = []
        self.should_mark_paid = False
        self.products: list[dict[str, Any]] = []

    def record_message(self, message: str) -> None:
        self.messages.append(message)

    def apply(self, coupon: Coupon, evaluation: CouponEvaluation) -> None:
        discount = money.round_money(evaluation.discount_amount)
        self.total_discount = money.add(self.total_discount, discount)
        self.applied_codes.append(coupon.code)
        self.should_mark_paid = self.should_mark_paid or evaluation.should_mark_paid

        allocations = [
            {"sku_id": a.sku_id, "amount": money.round_money(a.amount), "line_index": a.line_index}
            for a in evaluation.allocations
        ]
        for allocation in allocations:
            current = self.allocation_summary.get(allocation["sku_id"], "0.00")
            self.allocation_summary[allocation["sku_id"]] = money.add(current, allocation["amount"])

        gifts = [self._granted(item, coupon.code) for item in evaluation.gift_items]
        redeems = [self._granted(item, coupon.code) for item in evaluation.redeem_items]
        self.gift_items.extend(gifts)
        self.redeem_items.extend(redeems)
        self.products.extend(self._product(item, coupon.code, is_gift=True) for item in evaluation.gift_items)
        self.products.extend(self._product(item, coupon.code, is_gift=False) for item in evaluation.redeem_items)

        self.breakdown[coupon.code] = {
            "code": coupon.code,
            "type": coupon.type,
            "discount": discount,
            "allocations": allocations,
            "gifts": gifts,
            "redeem_items": redeems,
            "metadata": dict(evaluation.metadata),
        }

    def has_effective_result(self) -> bool:
        return not money.is_zero(self.total_discount) or bool(self.gift_items) or bool(self.redeem_items)

    def detail_payload(self) -> dict[str, Any]:
        return {
            "coupon_discount": self.total_discount,
            "coupon_breakdown": self.breakdown,
            "coupon_allocations": [
                {"sku_id": sku_id, "amount": amount} for sku_id, amount in self.allocation_summary.items()
            ],
            "coupon_gift_items": self.gift_items,
            "coupon_redeem_items": self.redeem_items,
            "coupon_applied_codes": self.applied_codes,
            "coupon_should_mark_paid": self.should_mark_paid,
            "coupon_messages": self.messages,
        }

    @staticmethod
    def _granted(item: GrantedItem, code: str) -> dict[str, Any]:
        return {**item.to_dict(), "coupon_code": code}

    def _product(self, item: GrantedItem, code: str, is_gift: bool) -> dict[str, Any]:
        sku = self._load_sku(item.sku_id)
        name = item.name or (sku.full_name if sku else item.sku_id)
        return {
            "sku_id": item.sku_id,
            "spu_id": sku.spu_id if sku else None,
            "quantity": item.quantity,
            "payable_price": "0.00",
            "unit_price": "0.00",
            "reference_unit_price": item.reference_unit_price,
            "product_name": name,
            "label": "Gift" if is_gift else "Redeem",
            "is_gift": is_gift,
            "is_redeem": not is_gift,
            "coupon_code": code,
        }

    def _load_sku(self, sku_id: str):
        try:
            return self.catalog.get_sku(sku_id)
        except Exception as exc:
            logger.warning("Could not load granted SKU", sku_id=sku_id, error=str(exc))
            return None


class CouponCalculator(PriceCalculator):
    priority = 600
    calculator_type = "coupon"

    def __init__(self, chain=None, evaluator=None, catalog=None) -> None:
        self._chain = chain
        self._evaluator = evaluator
        self._catalog = catalog

    @property
    def chain(self):
        return self._chain if self._chain is not None else get_coupon_chain()

    @property
    def evaluator(self):
        return self._evaluator if self._evaluator is not None else get_coupon_evaluator()

    @property
    def catalog(self):
        return self._catalog if self._catalog is not None else get_catalog()

    def supports(self, context: CalculationContext) -> bool:
        return len(context.applied_coupons) > 0

    def calculate(self, context: CalculationContext) -> PriceResult:
        aggregate = CouponCalculationAggregate(self.catalog)

        for code in context.applied_coupons:
            coupon = self.chain.find_by_code(code, context.user_id)
            if coupon is None:
                aggregate.record_message(f"Coupon {code} not found")
                continue
            if not coupon.is_valid_at(context.calculate_time):
                aggregate.record_message(f"Coupon {code} is not valid at this time")
                continue

            try:
                evaluation = self.evaluator.evaluate(coupon, context)
            except Exception as exc:
                logger.warning("Coupon evaluation failed", code=code, user_id=context.user_id, error=str(exc))
                aggregate.record_message(f"Coupon {code} could not be applied: {exc}")
                continue

            if evaluation.message:
                aggregate.record_message(evaluation.message)
            if money.is_zero(evaluation.discount_amount) and not evaluation.grants_items:
                continue
            aggregate.apply(coupon, evaluation)

        discount = aggregate.total_discount
        final_price = money.negate(discount)
        if context.order_type == "redeem" and money.less_than(final_price, 0):
            final_price = "0.00"

        logger.info(
            "Coupons evaluated",
            user_id=context.user_id,
            applied=aggregate.applied_codes,
            discount=discount,
            messages=aggregate.messages,
        )

        return PriceResult(
            original_price="0.00",
            final_price=final_price,
            discount=discount,
            details=aggregate.detail_payload(),
            products=aggregate.products,
        )
