"""CheckoutResult: what a quote or a committed checkout returns."""

from dataclasses import dataclass, field
from typing import Any

from checkout import money
from checkout.pricing.result import PriceResult
from checkout.shipping.calculator import ShippingCalculationResult
from checkout.stock.validator import StockValidationResult


@dataclass(frozen=True)
class CheckoutResult:
    items: list = field(default_factory=list)
    extra_items: list = field(default_factory=list)
    price_result: PriceResult = field(default_factory=PriceResult.empty)
    shipping_result: ShippingCalculationResult | None = None
    stock_validation: StockValidationResult | None = None
    applied_coupons: list[str] = field(default_factory=list)
    order_id: str | None = None
    order_number: str | None = None
    order_state: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "CheckoutResult":
        return cls()

    @property
    def shipping_fee(self) -> str:
        return self.shipping_result.fee if self.shipping_result is not None else "0.00"

    @property
    def final_total(self) -> str:
        return money.add(self.price_result.final_price, self.shipping_fee)

    @property
    def has_stock_issues(self) -> bool:
        return self.stock_validation is not None and (
            self.stock_validation.has_errors or self.stock_validation.has_warnings
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [_item_dict(item) for item in self.items],
            "extra_items": [_extra_item_dict(item) for item in self.extra_items],
            "price": self.price_result.to_dict(),
            "shipping": self.shipping_result.to_dict() if self.shipping_result is not None else None,
            "stock": self.stock_validation.to_dict() if self.stock_validation is not None else None,
            "applied_coupons": list(self.applied_coupons),
            "shipping_fee": self.shipping_fee,
            "final_total": self.final_total,
            "has_stock_issues": self.has_stock_issues,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "order_state": self.order_state,
            "warnings": list(self.warnings),
        }


def _item_dict(item) -> dict[str, Any]:
    return {
        "id": item.id,
        "sku_id": item.sku_id,
        "quantity": item.quantity,
        "selected": item.selected,
    }


def _extra_item_dict(item) -> dict[str, Any]:
    return {
        "sku_id": item.sku_id,
        "quantity": item.quantity,
        "type": item.type,
        "coupon_code": item.coupon_code,
        "unit_price": item.unit_price,
        "total_price": item.total_price,
        "reference_unit_price": item.reference_unit_price,
        "source_item_id": item.source_item_id,
    }
