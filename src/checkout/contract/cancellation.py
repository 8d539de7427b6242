"""Order cancellation after checkout: command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from checkout.contract.contract import Contract
from checkout.domain import checkout


@checkout.command(part_of="Contract")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=255)


@checkout.command_handler(part_of=Contract)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Contract)
        contract = repo.get(command.order_id)
        contract.cancel(reason=command.reason)
        repo.add(contract)
