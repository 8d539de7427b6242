"""Shipping fee calculator.

Items are grouped by shipping template. Each group is priced on its own
(template or area-specific rates) and the group fees are summed. The lowest
free-shipping threshold across groups decides whether the whole order ships
free. Any group without a template, or whose template does not deliver to the
destination, makes the whole order undeliverable.
"""

from dataclasses import dataclass, field, replace
from decimal import ROUND_CEILING, Decimal
from typing import Any

import structlog
from protean.utils.globals import current_domain

from checkout import money
from checkout.addresses import get_address_resolver
from checkout.shipping.template import ChargeType, ShippingTemplate

logger = structlog.get_logger(__name__)

DEFAULT_GROUP = "default"
FREE_SHIPPING_MET = "free shipping threshold met"


@dataclass(frozen=True)
class ShippingItem:
    sku_id: str
    quantity: int
    weight: str = "0.000"  # Unit weight in kg
    price: str = "0.00"  # Unit price
    shipping_template_id: str | None = None

    @property
    def subtotal(self) -> str:
        return money.multiply(self.price, self.quantity)


@dataclass(frozen=True)
class ShippingCalculationInput:
    address_id: str
    items: tuple[ShippingItem, ...] = ()
    user_id: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def total_value(self) -> str:
        return money.total(item.subtotal for item in self.items)

    @property
    def total_weight(self) -> str:
        return money.total((money.multiply(item.weight, item.quantity, 3) for item in self.items), 3)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass(frozen=True)
class ShippingCalculationDetail:
    template_id: str
    template_name: str
    charge_type: str
    unit_value: str
    fee: str
    is_free_shipping: bool = False
    area_name: str | None = None
    calculation: str = ""

    @property
    def unit_label(self) -> str:
        return ChargeType(self.charge_type).unit_label

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "template_name": self.template_name,
            "charge_type": self.charge_type,
            "unit_value": self.unit_value,
            "unit_label": self.unit_label,
            "fee": self.fee,
            "is_free_shipping": self.is_free_shipping,
            "area_name": self.area_name,
            "calculation": self.calculation,
        }


@dataclass(frozen=True)
class ShippingCalculationResult:
    fee: str = "0.00"
    free_shipping_threshold: str | None = None
    is_free_shipping: bool = False
    is_deliverable: bool = True
    details: list[ShippingCalculationDetail] = field(default_factory=list)
    error_message: str | None = None

    @classmethod
    def undeliverable(cls, message: str) -> "ShippingCalculationResult":
        return cls(fee="0.00", is_deliverable=False, error_message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fee": self.fee,
            "free_shipping_threshold": self.free_shipping_threshold,
            "is_free_shipping": self.is_free_shipping,
            "is_deliverable": self.is_deliverable,
            "details": [detail.to_dict() for detail in self.details],
            "error_message": self.error_message,
        }


def calculate_fee(unit_value, first_unit, first_fee, additional_unit, additional_fee) -> str:
    """Fee for ``unit_value`` units under a first/additional unit tariff."""
    if first_unit is None or first_fee is None:
        return "0.00"

    units = Decimal(unit_value)
    first = Decimal(first_unit)
    fee = money.round_money(first_fee)
    if units <= first or additional_unit is None or additional_fee is None:
        return fee

    step = Decimal(additional_unit)
    if step <= 0:
        return fee

    steps = ((units - first) / step).to_integral_value(rounding=ROUND_CEILING)
    return money.add(fee, money.multiply(additional_fee, steps))


class ShippingFeeCalculator:
    def __init__(self, address_resolver=None) -> None:
        self._address_resolver = address_resolver

    @property
    def address_resolver(self):
        return self._address_resolver if self._address_resolver is not None else get_address_resolver()

    def calculate(self, data: ShippingCalculationInput) -> ShippingCalculationResult:
        if not data.items:
            return ShippingCalculationResult.undeliverable("Empty items")

        address = self.address_resolver.resolve_address(data.address_id, data.user_id)
        if address is None:
            return ShippingCalculationResult.undeliverable("Delivery address not found")

        repo = current_domain.repository_for(ShippingTemplate)
        groups: dict[str, list[ShippingItem]] = {}
        for item in data.items:
            groups.setdefault(item.shipping_template_id or DEFAULT_GROUP, []).append(item)

        fees = []
        details = []
        min_threshold = None
        for group_key, items in groups.items():
            template = repo.find_default() if group_key == DEFAULT_GROUP else repo.find(group_key)
            if template is None:
                logger.warning("Shipping template not found", template_id=group_key)
                return ShippingCalculationResult.undeliverable(f"Shipping template {group_key} not found")

            if not template.is_deliverable(address.province, address.city, address.district):
                logger.info(
                    "Destination not deliverable",
                    template_id=str(template.id),
                    province=address.province,
                    city=address.city,
                    district=address.district,
                )
                return ShippingCalculationResult.undeliverable(
                    f"{template.name} does not deliver to {address.province} {address.city}"
                )

            detail, threshold = self._price_group(template, items, address)
            fees.append(detail.fee)
            details.append(detail)
            if threshold is not None and (min_threshold is None or money.less_than(threshold, min_threshold)):
                min_threshold = threshold

        order_value = data.total_value
        if min_threshold is not None and not money.less_than(order_value, min_threshold):
            details = [
                replace(detail, fee="0.00", is_free_shipping=True, calculation=FREE_SHIPPING_MET) for detail in details
            ]
            return ShippingCalculationResult(
                fee="0.00",
                free_shipping_threshold=min_threshold,
                is_free_shipping=True,
                details=details,
            )

        return ShippingCalculationResult(
            fee=money.total(fees),
            free_shipping_threshold=min_threshold,
            details=details,
        )

    def _price_group(self, template, items, address) -> tuple[ShippingCalculationDetail, str | None]:
        charge_type = ChargeType(template.charge_type)
        if charge_type == ChargeType.QUANTITY:
            unit_value = str(sum(item.quantity for item in items))
        else:
            # Volume is approximated by weight
            unit_value = money.total((money.multiply(item.weight, item.quantity, 3) for item in items), 3)

        area = template.find_best_match(address.province, address.city, address.district)
        rates = area if area is not None and area.has_custom_rates else template
        fee = calculate_fee(
            unit_value,
            rates.first_unit,
            rates.first_unit_fee,
            rates.additional_unit if rates.additional_unit is not None else template.additional_unit,
            rates.additional_unit_fee if rates.additional_unit_fee is not None else template.additional_unit_fee,
        )

        threshold = template.free_shipping_threshold
        if area is not None and area.free_shipping_threshold is not None:
            threshold = area.free_shipping_threshold

        area_name = None
        if area is not None:
            area_name = area.area_name or area.city_name or area.province_name

        detail = ShippingCalculationDetail(
            template_id=str(template.id),
            template_name=template.name,
            charge_type=charge_type.value,
            unit_value=unit_value,
            fee=fee,
            area_name=area_name,
            calculation=f"{unit_value}{charge_type.unit_label} -> {fee}",
        )
        return detail, (money.round_money(threshold) if threshold is not None else None)
