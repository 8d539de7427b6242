"""Domain events for the Contract aggregate."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from checkout.domain import checkout


@checkout.event(part_of="Contract")
class OrderPlaced:
    """An order was committed at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    sn = String(required=True)
    user_id = Identifier(required=True)
    order_type = String(required=True)
    total_amount = String(required=True)
    goods_amount = String(required=True)
    shipping_fee = String(required=True)
    total_integral = Integer(default=0)
    lines = Text(required=True)  # JSON: list of line dicts
    auto_cancel_time = DateTime(required=True)
    created_at = DateTime(required=True)


@checkout.event(part_of="Contract")
class OrderCancelled:
    """An order was cancelled before payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    sn = String(required=True)
    user_id = Identifier()
    total_integral = Integer(default=0)
    reason = String()
    cancelled_at = DateTime(required=True)


@checkout.event(part_of="Contract")
class OrderMarkedPaid:
    """An order needs no payment, or its payment was confirmed."""

    __version__ = 1

    order_id = Identifier(required=True)
    sn = String(required=True)
    paid_at = DateTime(required=True)
