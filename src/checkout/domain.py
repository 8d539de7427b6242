"""Checkout bounded context: pricing, coupons, stock and shipping checks, order commit.

Computes the cost of a cart through an ordered chain of price calculators and
commits it as a Contract (order aggregate), coordinating the coupon ledger,
loyalty points and stock with compensating rollback when a step fails.
"""

from protean.domain import Domain

from checkout.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
checkout = Domain(name="checkout")
