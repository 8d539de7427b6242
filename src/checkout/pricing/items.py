"""Typed checkout inputs: CheckoutItem and CalculationContext.

Raw cart input arrives either as mappings (API payloads) or as cart-line
objects. Both are normalised into immutable CheckoutItems before any
calculation runs.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from protean.exceptions import ValidationError

from checkout.catalog.port import Sku
from checkout.errors import SkuNotFound


def _parse_quantity(value: Any) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError({"quantity": ["Quantity must be a positive integer"]})
    return value


_FALSE_FLAGS = {"false", "0", "no", "off", ""}
_TRUE_FLAGS = {"true", "1", "yes", "on"}


def _parse_flag(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        flag = value.strip().lower()
        if flag in _TRUE_FLAGS:
            return True
        if flag in _FALSE_FLAGS:
            return False
    raise ValidationError({"selected": [f"Invalid selection flag: {value!r}"]})


@dataclass(frozen=True)
class CheckoutItem:
    sku_id: str
    quantity: int = 1
    selected: bool = True
    sku: Sku | None = None
    id: str | None = None  # Originating cart line, if any

    @classmethod
    def from_mapping(cls, data: Mapping) -> "CheckoutItem":
        sku_id = data.get("sku_id", data.get("skuId"))
        if sku_id is None or str(sku_id).strip() == "":
            raise ValidationError({"sku_id": ["This field is required"]})

        line_id = data.get("id", data.get("cart_item_id"))
        return cls(
            sku_id=str(sku_id),
            quantity=_parse_quantity(data.get("quantity", 1)),
            selected=_parse_flag(data.get("selected", True)),
            id=str(line_id) if line_id is not None else None,
        )

    @classmethod
    def from_cart_line(cls, line: Any) -> "CheckoutItem":
        sku_id = getattr(line, "sku_id", None)
        quantity = getattr(line, "quantity", None)
        if sku_id is None or quantity is None:
            raise ValidationError({"item": ["Cart line must provide sku_id and quantity"]})

        line_id = getattr(line, "id", None)
        return cls(
            sku_id=str(sku_id),
            quantity=_parse_quantity(quantity),
            selected=_parse_flag(getattr(line, "selected", True)),
            sku=getattr(line, "sku", None),
            id=str(line_id) if line_id is not None else None,
        )

    @classmethod
    def normalize(cls, raw_items: Iterable[Any] | None) -> list["CheckoutItem"]:
        """Convert raw cart input of mixed shapes into CheckoutItems."""
        items = []
        for raw in raw_items or []:
            if isinstance(raw, CheckoutItem):
                items.append(raw)
            elif isinstance(raw, Mapping):
                items.append(cls.from_mapping(raw))
            elif hasattr(raw, "sku_id"):
                items.append(cls.from_cart_line(raw))
            else:
                raise ValidationError({"items": [f"Unsupported item type: {type(raw).__name__}"]})
        return items

    def with_sku(self, sku: Sku) -> "CheckoutItem":
        return replace(self, sku=sku)


@dataclass(frozen=True)
class CalculationContext:
    """Everything a price calculator may look at.

    ``metadata`` always carries ``calculate_time``; common optional keys are
    ``region``, ``address_id``, ``payment_mode``, ``use_integral_amount``,
    ``order_type`` and ``order_remark``.
    """

    user_id: str
    items: tuple[CheckoutItem, ...] = ()
    applied_coupons: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "applied_coupons", tuple(self.applied_coupons))
        metadata = dict(self.metadata or {})
        metadata.setdefault("calculate_time", datetime.now(UTC))
        object.__setattr__(self, "metadata", metadata)

    @property
    def calculate_time(self) -> datetime:
        return self.metadata["calculate_time"]

    @property
    def region(self) -> str | None:
        return self.metadata.get("region")

    @property
    def order_type(self) -> str:
        return self.metadata.get("order_type") or "normal"

    @property
    def selected_items(self) -> list[CheckoutItem]:
        return [item for item in self.items if item.selected]

    def get(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def with_metadata(self, **overrides) -> "CalculationContext":
        return replace(self, metadata={**self.metadata, **overrides})

    def with_coupons(self, codes: Iterable[str]) -> "CalculationContext":
        merged = list(self.applied_coupons)
        for code in codes:
            if code and code not in merged:
                merged.append(code)
        return replace(self, applied_coupons=tuple(merged))

    def with_items(self, items: Iterable[CheckoutItem]) -> "CalculationContext":
        return replace(self, items=tuple(items))


def resolve_sku(item: CheckoutItem, catalog) -> CheckoutItem:
    """Return ``item`` with its SKU loaded from ``catalog``.

    Raises SkuNotFound when the catalog does not know the SKU.
    """
    if item.sku is not None:
        return item
    sku = catalog.get_sku(item.sku_id)
    if sku is None:
        raise SkuNotFound(item.sku_id)
    return item.with_sku(sku)
