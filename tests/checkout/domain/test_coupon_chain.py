"""Tests for the coupon provider chain and the in-memory provider."""

from checkout.coupons.chain import CouponProviderChain
from checkout.coupons.fake_adapter import AVAILABLE, LOCKED, REDEEMED, InMemoryCouponProvider
from checkout.coupons.port import Coupon


def _provider(*codes, user_id="user-001"):
    provider = InMemoryCouponProvider()
    for code in codes:
        provider.add_coupon(Coupon(code=code, name=code, value="5.00"), user_id=user_id)
    return provider


class TestInMemoryProvider:
    def test_second_lock_by_the_holder_is_rejected(self):
        provider = _provider("A")
        assert provider.lock("A", "user-001")
        assert not provider.lock("A", "user-001")
        assert provider.state_of("A") == LOCKED
        assert provider.holders["A"] == "user-001"

    def test_failed_second_lock_leaves_reservation_in_place(self):
        provider = _provider("A")
        chain = CouponProviderChain([provider])
        assert chain.lock("user-001", ["A"]) == ["A"]
        assert chain.lock("user-001", ["A"]) == []
        assert provider.state_of("A") == LOCKED

    def test_lock_rejects_other_users(self):
        provider = _provider("A")
        assert not provider.lock("A", "user-002")

    def test_redeem_requires_lock(self):
        provider = _provider("A")
        assert not provider.redeem("A", "user-001", {})
        provider.lock("A", "user-001")
        assert provider.redeem("A", "user-001", {"order_id": "o-1"})
        assert provider.state_of("A") == REDEEMED

    def test_unlock_of_unheld_code_is_noop(self):
        provider = _provider("A")
        assert provider.unlock("A", "user-001")
        assert provider.state_of("A") == AVAILABLE


class TestChainLookup:
    def test_finds_coupon_in_owning_provider(self):
        chain = CouponProviderChain([_provider("A"), _provider("B")])
        assert chain.find_by_code("B", "user-001").code == "B"

    def test_external_resolver_fallback(self):
        external = Coupon(code="EXT", name="External")
        chain = CouponProviderChain([_provider("A")], external_resolver=lambda code, user_id: external)
        assert chain.find_by_code("EXT", "user-001") is external

    def test_failing_provider_does_not_hide_others(self):
        broken = _provider("A")
        broken.configure(failing={"list"})
        chain = CouponProviderChain([broken, _provider("B")])
        assert [c.code for c in chain.get_all_coupons_for_user("user-001")] == ["B"]


class TestChainLedger:
    def test_lock_returns_locked_codes(self):
        chain = CouponProviderChain([_provider("A", "B")])
        assert chain.lock("user-001", ["A", "B", "MISSING"]) == ["A", "B"]

    def test_lock_failure_is_isolated(self):
        broken = _provider("A")
        broken.configure(failing={"lock"})
        chain = CouponProviderChain([broken, _provider("B")])
        assert chain.lock("user-001", ["A", "B"]) == ["B"]

    def test_redeem_and_unlock(self):
        provider = _provider("A", "B")
        chain = CouponProviderChain([provider])
        chain.lock("user-001", ["A", "B"])
        assert chain.redeem(["A"], "user-001", "order-1", "ORD1") == ["A"]
        chain.unlock(["A", "B"], "user-001")
        assert provider.state_of("A") == REDEEMED
        assert provider.state_of("B") == AVAILABLE

    def test_unlock_never_raises(self):
        provider = _provider("A")
        provider.lock("A", "user-001")
        provider.configure(failing={"unlock"})
        CouponProviderChain([provider]).unlock(["A"], "user-001")
