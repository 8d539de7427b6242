"""Points react to order events.

When an order that paid with points is cancelled, the points go back to the
buyer. The refund is keyed by ``{sn}-refund`` at the points ledger, so a
cancellation that the checkout rollback already refunded is not paid twice.
"""

import structlog
from protean.utils.mixins import handle

from checkout.contract.contract import Contract
from checkout.contract.events import OrderCancelled
from checkout.domain import checkout
from checkout.integral.service import IntegralDeductionService

logger = structlog.get_logger(__name__)


@checkout.event_handler(part_of=Contract)
class IntegralRefundHandler:
    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        if not event.total_integral:
            return

        logger.info(
            "Refunding integral for cancelled order",
            order_id=str(event.order_id),
            sn=event.sn,
            amount=event.total_integral,
        )
        IntegralDeductionService().refund(str(event.user_id), event.total_integral, event.sn)
