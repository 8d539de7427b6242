"""Coupon collaborators factory.

Provides get_coupon_chain() / get_coupon_evaluator() and their set_/reset_
counterparts. The default chain holds a single InMemoryCouponProvider,
reachable through get_local_provider() for seeding coupons.
"""

from checkout.coupons.chain import CouponProviderChain
from checkout.coupons.evaluator import LocalCouponEvaluator
from checkout.coupons.fake_adapter import InMemoryCouponProvider
from checkout.coupons.port import CouponEvaluator

_current_chain: CouponProviderChain | None = None
_current_evaluator: CouponEvaluator | None = None


def get_coupon_chain() -> CouponProviderChain:
    """Return the current provider chain. Defaults to one in-memory provider."""
    global _current_chain
    if _current_chain is None:
        _current_chain = CouponProviderChain([InMemoryCouponProvider()])
    return _current_chain


def get_local_provider() -> InMemoryCouponProvider | None:
    """Return the first in-memory provider of the current chain, if any."""
    return next((p for p in get_coupon_chain().providers if isinstance(p, InMemoryCouponProvider)), None)


def set_coupon_chain(chain: CouponProviderChain) -> None:
    """Override the active provider chain (useful for tests)."""
    global _current_chain
    _current_chain = chain


def get_coupon_evaluator() -> CouponEvaluator:
    """Return the current coupon evaluator. Defaults to LocalCouponEvaluator."""
    global _current_evaluator
    if _current_evaluator is None:
        _current_evaluator = LocalCouponEvaluator()
    return _current_evaluator


def set_coupon_evaluator(evaluator: CouponEvaluator) -> None:
    """Override the active coupon evaluator (useful for tests)."""
    global _current_evaluator
    _current_evaluator = evaluator


def reset_coupons() -> None:
    """Reset chain and evaluator to defaults."""
    global _current_chain, _current_evaluator
    _current_chain = None
    _current_evaluator = None
