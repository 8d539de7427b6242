"""Coupon usage audit trail.

After coupons are redeemed against an order, one CouponUsageLog row is
written per coupon and its per-line allocations are handed to the
allocation ledger.
"""

import json
from datetime import UTC, datetime

import structlog
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from checkout.coupons.allocation import CouponAllocationLedger
from checkout.domain import checkout

logger = structlog.get_logger(__name__)


@checkout.aggregate
class CouponUsageLog:
    coupon_code = String(required=True, max_length=100)
    coupon_type = String(max_length=50)
    user_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String(max_length=50)
    discount_amount = String(max_length=32, default="0.00")
    details = Text()  # JSON object
    usage_time = DateTime()


class CouponUsageRecorder:
    def __init__(self, ledger: CouponAllocationLedger | None = None) -> None:
        self.ledger = ledger or CouponAllocationLedger()

    def record(self, contract, price_result, user_id: str) -> list[CouponUsageLog]:
        """Write usage rows and allocations for every coupon in the price breakdown."""
        breakdown = price_result.details.get("coupon_breakdown", {})
        if not breakdown:
            return []

        now = datetime.now(UTC)
        repo = current_domain.repository_for(CouponUsageLog)

        logs = []
        for code, entry in breakdown.items():
            log = CouponUsageLog(
                coupon_code=code,
                coupon_type=entry.get("type"),
                user_id=user_id,
                order_id=str(contract.id),
                order_number=contract.sn,
                discount_amount=entry.get("discount", "0.00"),
                details=json.dumps(entry.get("metadata", {}), default=str),
                usage_time=now,
            )
            repo.add(log)
            logs.append(log)

            rule = entry.get("metadata", {}).get("allocation_rule", "proportional")
            for allocation in entry.get("allocations", []):
                self.ledger.record(
                    order_id=str(contract.id),
                    coupon_code=code,
                    sku_id=allocation["sku_id"],
                    amount=allocation["amount"],
                    order_line_id=contract.line_id_for(allocation["sku_id"], allocation.get("line_index")),
                    allocation_rule=rule,
                    created_at=now,
                )

        logger.info(
            "Coupon usage recorded",
            order_number=contract.sn,
            user_id=user_id,
            coupons=list(breakdown.keys()),
        )
        return logs
