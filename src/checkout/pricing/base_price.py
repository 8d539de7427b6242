"""Base price calculator: the first link of the chain.

Sums the unit price of every selected item. The payment mode decides how
each item is paid:

    cash      The SKU cash price (default).
    integral  Paid entirely with loyalty points; cash price is zero.
    mixed     Points cover part of the item, up to ``use_integral_amount``
              points across the whole cart; the cash price shrinks in
              proportion.
"""

from decimal import ROUND_FLOOR, Decimal
from enum import Enum

import structlog

from checkout import money
from checkout.catalog import get_catalog
from checkout.pricing.engine import PriceCalculator
from checkout.pricing.items import CalculationContext, resolve_sku
from checkout.pricing.result import PriceResult

logger = structlog.get_logger(__name__)


class PaymentMode(Enum):
    CASH = "cash"
    INTEGRAL = "integral"
    MIXED = "mixed"


class BasePriceCalculator(PriceCalculator):
    priority = 1000
    calculator_type = "base_price"

    def __init__(self, catalog=None) -> None:
        self._catalog = catalog

    @property
    def catalog(self):
        return self._catalog if self._catalog is not None else get_catalog()

    def supports(self, context: CalculationContext) -> bool:
        return len(context.items) > 0

    def calculate(self, context: CalculationContext) -> PriceResult:
        mode = PaymentMode(context.get("payment_mode") or PaymentMode.CASH.value)
        integral_budget = int(context.get("use_integral_amount") or 0)

        line_totals = []
        total_integral = 0
        details = []
        products = []

        for item in context.selected_items:
            item = resolve_sku(item, self.catalog)
            sku = item.sku

            if mode == PaymentMode.INTEGRAL:
                unit_price, unit_integral = "0.00", sku.integral_price
            elif mode == PaymentMode.MIXED:
                unit_price, unit_integral = self._mixed_unit_price(sku, item.quantity, integral_budget)
                integral_budget -= unit_integral * item.quantity
            else:
                unit_price, unit_integral = money.round_money(sku.price), 0

            item_total = money.multiply(unit_price, item.quantity)
            item_integral = unit_integral * item.quantity
            line_totals.append(item_total)
            total_integral += item_integral

            details.append(
                {
                    "type": self.calculator_type,
                    "sku_id": item.sku_id,
                    "sku_code": sku.code,
                    "unit_price": unit_price,
                    "quantity": item.quantity,
                    "total_price": item_total,
                    "integral_required": unit_integral,
                    "total_integral": item_integral,
                    "payment_mode": mode.value,
                }
            )
            products.append(
                {
                    "sku_id": item.sku_id,
                    "spu_id": sku.spu_id,
                    "quantity": item.quantity,
                    "payable_price": item_total,
                    "unit_price": unit_price,
                    "product_name": sku.full_name,
                    "thumbnail": sku.thumbnail,
                    "specifications": sku.specifications,
                    "integral_price": unit_integral,
                    "total_integral": item_integral,
                }
            )

        base_total = money.total(line_totals)
        logger.debug(
            "Base price calculated",
            user_id=context.user_id,
            payment_mode=mode.value,
            base_total=base_total,
            total_integral=total_integral,
        )

        return PriceResult(
            original_price=base_total,
            final_price=base_total,
            discount="0.00",
            details={
                "base_price": details,
                "base_total": base_total,
                "total_integral_required": total_integral,
            },
            products=products,
        )

    @staticmethod
    def _mixed_unit_price(sku, quantity: int, budget: int) -> tuple[str, int]:
        """Return (cash unit price, points per unit) for a partially point-paid item."""
        if sku.integral_price <= 0 or budget <= 0:
            return money.round_money(sku.price), 0

        full_cost = sku.integral_price * quantity
        covered = min(full_cost, budget)
        ratio = Decimal(covered) / Decimal(full_cost)

        unit_price = money.multiply(sku.price, 1 - ratio)
        unit_integral = int((sku.integral_price * ratio).to_integral_value(rounding=ROUND_FLOOR))
        return unit_price, unit_integral
