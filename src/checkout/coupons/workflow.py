"""Coupon workflow helpers used by the checkout orchestrator.

Turns the coupon part of a PriceResult into things the rest of the pipeline
understands: extra (gift / redeemed) items that must pass stock and shipping
checks and become order lines, and the list of coupon codes to lock.
"""

from dataclasses import dataclass
from enum import Enum

from checkout.catalog import get_catalog
from checkout.catalog.port import Sku
from checkout.errors import SkuNotFound
from checkout.pricing.result import PriceResult


class ExtraItemType(Enum):
    COUPON_GIFT = "coupon_gift"
    COUPON_REDEEM = "coupon_redeem"


@dataclass(frozen=True)
class ExtraItem:
    """An item granted by a coupon. Always free; redeemed items keep a reference price."""

    sku_id: str
    quantity: int
    type: str
    coupon_code: str
    sku: Sku
    unit_price: str = "0.00"
    total_price: str = "0.00"
    reference_unit_price: str | None = None
    source_item_id: str | None = None  # Coupon that produced it
    selected: bool = True
    id: str | None = None

    @property
    def is_gift(self) -> bool:
        return self.type == ExtraItemType.COUPON_GIFT.value


def extract_extra_items(price_result: PriceResult, catalog=None) -> list[ExtraItem]:
    """Build ExtraItems from the coupon gift/redeem entries of ``price_result``."""
    catalog = catalog if catalog is not None else get_catalog()
    details = price_result.details

    extra = []
    for entries, item_type in (
        (details.get("coupon_gift_items", []), ExtraItemType.COUPON_GIFT),
        (details.get("coupon_redeem_items", []), ExtraItemType.COUPON_REDEEM),
    ):
        for entry in entries:
            sku = catalog.get_sku(entry["sku_id"])
            if sku is None:
                raise SkuNotFound(str(entry["sku_id"]))

            reference = entry.get("reference_unit_price")
            if item_type == ExtraItemType.COUPON_REDEEM and reference is None:
                reference = sku.price

            extra.append(
                ExtraItem(
                    sku_id=str(entry["sku_id"]),
                    quantity=int(entry.get("quantity", 1)),
                    type=item_type.value,
                    coupon_code=entry["coupon_code"],
                    sku=sku,
                    reference_unit_price=reference if item_type == ExtraItemType.COUPON_REDEEM else None,
                    source_item_id=f"coupon:{entry['coupon_code']}",
                )
            )
    return extra


def merge_checkout_items(items, extra_items) -> list:
    """Regular items followed by coupon-granted items."""
    return [*items, *extra_items]


def extract_coupon_codes(price_result: PriceResult) -> list[str]:
    """Unique, non-empty coupon codes that contributed to ``price_result``."""
    codes = []
    for code in price_result.coupon_codes:
        code = (code or "").strip()
        if code and code not in codes:
            codes.append(code)
    return codes
