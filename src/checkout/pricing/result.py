"""PriceResult: the merged output of the calculator chain."""

from dataclasses import dataclass, field
from typing import Any

from checkout import money


@dataclass(frozen=True)
class PriceResult:
    original_price: str = "0.00"
    final_price: str = "0.00"
    discount: str = "0.00"
    details: dict[str, Any] = field(default_factory=dict)
    products: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "PriceResult":
        return cls()

    def merge(self, other: "PriceResult") -> "PriceResult":
        """Combine two results; ``other``'s detail keys win on collision."""
        return PriceResult(
            original_price=money.add(self.original_price, other.original_price),
            final_price=money.add(self.final_price, other.final_price),
            discount=money.add(self.discount, other.discount),
            details={**self.details, **other.details},
            products=[*self.products, *other.products],
        )

    @property
    def coupon_codes(self) -> list[str]:
        """Coupon codes that actually contributed to this price."""
        return list(self.details.get("coupon_applied_codes", []))

    @property
    def total_integral_required(self) -> int:
        return int(self.details.get("total_integral_required", 0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_price": self.original_price,
            "final_price": self.final_price,
            "discount": self.discount,
            "details": self.details,
            "products": self.products,
        }
