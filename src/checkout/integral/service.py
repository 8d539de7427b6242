"""Points deduction for orders and its per-line audit rows."""

import structlog
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.errors import ExternalServiceError, InsufficientIntegral
from checkout.integral import get_integral_service
from checkout.integral.port import IntegralChange

logger = structlog.get_logger(__name__)

DEDUCT_SOURCE_TYPE = "order"
REFUND_SOURCE_TYPE = "order_refund"


@checkout.aggregate
class OrderIntegralInfo:
    """Points paid for one order line."""

    order_id = Identifier(required=True)
    order_line_id = Identifier()
    sku_id = String(required=True, max_length=100)
    quantity = Integer(default=1)
    integral_price = Integer(default=0)
    total_integral = Integer(default=0)
    payment_mode = String(max_length=20)


class IntegralDeductionService:
    def __init__(self, integral_service=None) -> None:
        self._integral_service = integral_service

    @property
    def integral_service(self):
        return self._integral_service if self._integral_service is not None else get_integral_service()

    def deduct(self, user_id: str, amount: int, sn: str) -> IntegralChange | None:
        """Take ``amount`` points from the user for order ``sn``."""
        if amount <= 0:
            return None

        service = self.integral_service
        account = service.get_account(user_id)
        # Without an account the ledger is unavailable; the no-op variant decides
        if account is not None and account.available < amount:
            raise InsufficientIntegral(required=amount, available=account.available)

        change = IntegralChange(
            user_id=str(user_id),
            amount=amount,
            source_id=f"{sn}-deduct",
            source_type=DEDUCT_SOURCE_TYPE,
            remark=f"Order {sn}",
        )
        try:
            service.decrease(change)
        except Exception as exc:
            logger.error("Integral deduction failed", sn=sn, user_id=user_id, amount=amount, error=str(exc))
            raise ExternalServiceError(f"Integral deduction failed for {sn}", sn=sn, user_id=user_id) from exc

        logger.info("Integral deducted", sn=sn, user_id=user_id, amount=amount)
        return change

    def refund(self, user_id: str, amount: int, sn: str) -> IntegralChange | None:
        """Give back points deducted for order ``sn``."""
        if amount <= 0:
            return None

        change = IntegralChange(
            user_id=str(user_id),
            amount=amount,
            source_id=f"{sn}-refund",
            source_type=REFUND_SOURCE_TYPE,
            remark=f"Refund for order {sn}",
        )
        try:
            self.integral_service.increase(change)
        except Exception as exc:
            logger.error("Integral refund failed", sn=sn, user_id=user_id, amount=amount, error=str(exc))
            raise ExternalServiceError(f"Integral refund failed for {sn}", sn=sn, user_id=user_id) from exc

        logger.info("Integral refunded", sn=sn, user_id=user_id, amount=amount)
        return change


def record_integral_infos(contract, products, payment_mode: str | None = None) -> list[OrderIntegralInfo]:
    """Add one OrderIntegralInfo per priced product that paid points."""
    repo = current_domain.repository_for(OrderIntegralInfo)
    priced = [p for p in products if not p.get("is_gift") and not p.get("is_redeem")]

    infos = []
    for position, product in enumerate(priced):
        total = int(product.get("total_integral") or 0)
        if total <= 0:
            continue
        info = OrderIntegralInfo(
            order_id=str(contract.id),
            order_line_id=contract.line_id_for(product["sku_id"], position),
            sku_id=str(product["sku_id"]),
            quantity=int(product.get("quantity", 1)),
            integral_price=int(product.get("integral_price") or 0),
            total_integral=total,
            payment_mode=payment_mode,
        )
        repo.add(info)
        infos.append(info)
    return infos
