"""Coupon allocation ledger.

Persists, per order, how much of each coupon's discount landed on which order
line. When an allocation could not be tied to a line it is keyed by SKU
instead (``sku_<id>``). Lookups prefer the exact line and fall back to the
SKU aggregate.
"""

from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from checkout import money
from checkout.domain import checkout


@checkout.aggregate
class CouponAllocationDetail:
    coupon_code = String(required=True, max_length=100)
    order_id = Identifier(required=True)
    order_line_id = Identifier()  # Null when the line is unknown
    sku_id = String(required=True, max_length=100)
    allocated_amount = String(required=True, max_length=32)
    allocation_rule = String(max_length=50, default="proportional")
    created_at = DateTime()

    @property
    def ledger_key(self) -> str:
        if self.order_line_id:
            return str(self.order_line_id)
        return f"sku_{self.sku_id}"


class CouponAllocationLedger:
    def record(
        self,
        order_id,
        coupon_code: str,
        sku_id: str,
        amount: str,
        order_line_id=None,
        allocation_rule: str = "proportional",
        created_at=None,
    ) -> CouponAllocationDetail:
        detail = CouponAllocationDetail(
            coupon_code=coupon_code,
            order_id=order_id,
            order_line_id=order_line_id,
            sku_id=str(sku_id),
            allocated_amount=money.round_money(amount),
            allocation_rule=allocation_rule,
            created_at=created_at,
        )
        current_domain.repository_for(CouponAllocationDetail).add(detail)
        return detail

    def allocations_for(self, order_id) -> list[CouponAllocationDetail]:
        repo = current_domain.repository_for(CouponAllocationDetail)
        return repo._dao.query.filter(order_id=str(order_id)).all().items

    def discount_map(self, order_id) -> dict[str, str]:
        grouped: dict[str, list[str]] = {}
        for detail in self.allocations_for(order_id):
            grouped.setdefault(detail.ledger_key, []).append(detail.allocated_amount)
        return {key: money.total(amounts) for key, amounts in grouped.items()}

    def order_discount(self, order_id) -> str:
        return money.total(detail.allocated_amount for detail in self.allocations_for(order_id))

    def line_discount(self, order_id, order_line_id, sku_id: str | None = None) -> str:
        discounts = self.discount_map(order_id)
        if order_line_id is not None and str(order_line_id) in discounts:
            return discounts[str(order_line_id)]
        if sku_id is not None and f"sku_{sku_id}" in discounts:
            return discounts[f"sku_{sku_id}"]
        return "0.00"
