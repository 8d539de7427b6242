"""Contract aggregate: the order committed at checkout.

A Contract is written exactly once, by the checkout commit, together with its
lines, its price records and the delivery contact. After that only state
transitions change it:

    INIT → PAID
    INIT → CANCELLED

Unpaid orders carry an auto-cancel deadline. Money fields are decimal strings.
"""

import json
import random
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from checkout import money
from checkout.contract.events import OrderCancelled, OrderMarkedPaid, OrderPlaced
from checkout.domain import checkout

AUTO_CANCEL_MINUTES = 30


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ContractState(Enum):
    INIT = "init"
    PAID = "paid"
    CANCELLED = "cancelled"


class OrderType(Enum):
    NORMAL = "normal"
    REDEEM = "redeem"


class LineSource(Enum):
    NORMAL = "normal"
    COUPON_GIFT = "coupon_gift"
    COUPON_REDEEM = "coupon_redeem"


class PriceType(Enum):
    SALE = "sale"
    COUPON = "coupon"
    FREIGHT = "freight"


_VALID_TRANSITIONS = {
    ContractState.INIT: {ContractState.PAID, ContractState.CANCELLED},
    ContractState.PAID: set(),
    ContractState.CANCELLED: set(),
}


def generate_sn(now: datetime | None = None) -> str:
    """Order serial number: ``ORD`` + timestamp to the second + 4 random digits."""
    now = now or datetime.now(UTC)
    return f"ORD{now:%Y%m%d%H%M%S}{random.randint(0, 9999):04d}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@checkout.value_object(part_of="Contract")
class OrderContact:
    """Delivery contact copied from the address book at checkout time."""

    address_id = Identifier()
    consignee = String(max_length=100)
    mobile = String(max_length=30)
    province = String(max_length=50)
    city = String(max_length=50)
    district = String(max_length=50)
    detail = String(max_length=255)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@checkout.entity(part_of="Contract")
class OrderLine:
    sku_id = String(required=True, max_length=100)
    spu_id = String(max_length=100)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = String(max_length=32, default="0.00")
    total_price = String(max_length=32, default="0.00")
    source = String(choices=LineSource, default=LineSource.NORMAL.value)
    is_gift = Boolean(default=False)
    cart_item_id = String(max_length=100)
    coupon_code = String(max_length=100)
    integral_price = Integer(default=0)
    reference_unit_price = String(max_length=32)


@checkout.entity(part_of="Contract")
class OrderPrice:
    """One price component of the order: a line sale price, a coupon deduction or freight."""

    order_line_id = Identifier()
    sku_id = String(max_length=100)
    name = String(max_length=255)
    price_type = String(choices=PriceType, default=PriceType.SALE.value)
    amount = String(max_length=32, default="0.00")
    currency = String(max_length=3, default="CNY")


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@checkout.aggregate
class Contract:
    sn = String(required=True, max_length=32)
    user_id = Identifier(required=True)
    state = String(choices=ContractState, default=ContractState.INIT.value)
    order_type = String(choices=OrderType, default=OrderType.NORMAL.value)
    total_amount = String(max_length=32, default="0.00")
    goods_amount = String(max_length=32, default="0.00")
    shipping_fee = String(max_length=32, default="0.00")
    discount_amount = String(max_length=32, default="0.00")
    total_integral = Integer(default=0)
    lines = HasMany(OrderLine)
    prices = HasMany(OrderPrice)
    contact = ValueObject(OrderContact)
    cancel_reason = String(max_length=255)
    auto_cancel_time = DateTime()
    paid_at = DateTime()
    created_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id,
        lines_data,
        goods_amount,
        shipping_fee="0.00",
        discount_amount="0.00",
        total_integral=0,
        order_type=OrderType.NORMAL.value,
        contact=None,
        coupon_discounts=None,
        auto_cancel_minutes=AUTO_CANCEL_MINUTES,
        sn=None,
    ):
        """Build a new order with its lines and price records.

        Args:
            user_id: The buyer.
            lines_data: List of dicts with the OrderLine fields.
            goods_amount: Payable amount for the goods, after discounts.
            shipping_fee: Freight charged on top of the goods.
            coupon_discounts: Optional list of coupon allocations
                (``sku_id``, ``amount`` and an optional ``line_index``, the
                position of the cart line). Each is recorded as a coupon
                price record against its line.
            contact: Optional dict with the OrderContact fields.
            sn: Serial number reserved by the caller; generated when omitted.
        """
        if not lines_data:
            raise ValidationError({"lines": ["An order needs at least one line"]})

        now = datetime.now(UTC)
        contract = cls(
            sn=sn or generate_sn(now),
            user_id=str(user_id),
            state=ContractState.INIT.value,
            order_type=order_type,
            goods_amount=money.round_money(goods_amount),
            shipping_fee=money.round_money(shipping_fee),
            discount_amount=money.round_money(discount_amount),
            total_amount=money.add(goods_amount, shipping_fee),
            total_integral=total_integral,
            contact=OrderContact(**contact) if contact else None,
            auto_cancel_time=now + timedelta(minutes=auto_cancel_minutes),
            created_at=now,
        )

        for data in lines_data:
            line = OrderLine(**data)
            contract.add_lines(line)
            contract.add_prices(
                OrderPrice(
                    order_line_id=str(line.id),
                    sku_id=line.sku_id,
                    name=line.name,
                    price_type=PriceType.SALE.value,
                    amount=line.total_price,
                )
            )

        per_line: dict[tuple, str] = {}
        for allocation in coupon_discounts or ():
            sku_id = str(allocation["sku_id"])
            key = (contract.line_id_for(sku_id, allocation.get("line_index")), sku_id)
            per_line[key] = money.add(per_line.get(key, "0.00"), allocation["amount"])

        for (line_id, sku_id), amount in per_line.items():
            if money.is_zero(amount):
                continue
            contract.add_prices(
                OrderPrice(
                    order_line_id=line_id,
                    sku_id=sku_id,
                    name="Coupon",
                    price_type=PriceType.COUPON.value,
                    amount=money.negate(amount),
                )
            )

        if money.greater_than(shipping_fee, 0):
            contract.add_prices(
                OrderPrice(name="Freight", price_type=PriceType.FREIGHT.value, amount=contract.shipping_fee)
            )

        contract.raise_(
            OrderPlaced(
                order_id=str(contract.id),
                sn=contract.sn,
                user_id=str(user_id),
                order_type=contract.order_type,
                total_amount=contract.total_amount,
                goods_amount=contract.goods_amount,
                shipping_fee=contract.shipping_fee,
                total_integral=contract.total_integral,
                lines=json.dumps(lines_data, default=str),
                auto_cancel_time=contract.auto_cancel_time,
                created_at=now,
            )
        )
        return contract

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line_ids_by_sku(self) -> dict[str, str]:
        """Line id of the first regular line for each SKU."""
        mapping = {}
        for line in self.lines:
            if line.source == LineSource.NORMAL.value and line.sku_id not in mapping:
                mapping[line.sku_id] = str(line.id)
        return mapping

    def line_id_for(self, sku_id, line_index=None) -> str | None:
        """The regular line at cart position ``line_index``, else the first line of the SKU."""
        regular = [line for line in self.lines if line.source == LineSource.NORMAL.value]
        if line_index is not None and 0 <= line_index < len(regular) and regular[line_index].sku_id == str(sku_id):
            return str(regular[line_index].id)
        return self.line_ids_by_sku().get(str(sku_id))

    @property
    def is_cancelled(self) -> bool:
        return self.state == ContractState.CANCELLED.value

    @property
    def is_paid(self) -> bool:
        return self.state == ContractState.PAID.value

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target):
        current = ContractState(self.state)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"state": [f"Cannot transition from {current.value} to {target.value}"]})

    def cancel(self, reason=None):
        self._assert_can_transition(ContractState.CANCELLED)
        now = datetime.now(UTC)
        self.state = ContractState.CANCELLED.value
        self.cancel_reason = reason

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                sn=self.sn,
                user_id=str(self.user_id),
                total_integral=self.total_integral or 0,
                reason=reason,
                cancelled_at=now,
            )
        )

    def mark_paid(self):
        self._assert_can_transition(ContractState.PAID)
        now = datetime.now(UTC)
        self.state = ContractState.PAID.value
        self.paid_at = now

        self.raise_(OrderMarkedPaid(order_id=str(self.id), sn=self.sn, paid_at=now))
