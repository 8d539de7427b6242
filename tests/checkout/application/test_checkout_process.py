"""Application tests for committing a checkout as an order."""

import importlib

import pytest
from checkout.contract.contract import Contract, ContractState, LineSource, PriceType
from checkout.coupons.allocation import CouponAllocationLedger
from checkout.coupons.port import Coupon, CouponType, GrantedItem
from checkout.coupons.usage import CouponUsageLog
from checkout.errors import (
    AddressNotFound,
    CouponUnavailable,
    ExternalServiceError,
    InsufficientIntegral,
    InsufficientStock,
)
from checkout.integral.service import OrderIntegralInfo
from checkout.orchestration.service import CheckoutService
from checkout.pricing.items import CalculationContext, CheckoutItem
from checkout.remarks import set_remark_moderator
from checkout.remarks.port import RemarkModerator
from checkout.remarks.remark import OrderRemarkService
from protean import current_domain
from protean.exceptions import ValidationError

USER_ID = "user-001"
ADDRESS_ID = "addr-001"


def _context(*items, coupons=(), **metadata):
    metadata.setdefault("address_id", ADDRESS_ID)
    return CalculationContext(
        user_id=USER_ID,
        items=items or (CheckoutItem(sku_id="sku-a", quantity=2, id="line-1"),),
        applied_coupons=coupons,
        metadata=metadata,
    )


def _contracts():
    return current_domain.repository_for(Contract)._dao.query.filter(user_id=USER_ID).all().items


def _gift_coupon(code="GIFT"):
    return Coupon(
        code=code,
        name="Free coaster",
        type=CouponType.FULL_GIFT.value,
        gift_items=(GrantedItem(sku_id="sku-gift"),),
    )


@pytest.fixture(autouse=True)
def _collaborators(catalog, address_book, cart_manager, integral_service, coupon_provider, default_template):
    cart_manager.add_line(USER_ID, "line-1")
    return catalog


class TestSuccessfulCommit:
    @pytest.fixture
    def result(self, coupon_provider):
        coupon_provider.add_coupon(Coupon(code="SAVE10", name="Save 10", value="10.00"), user_id=USER_ID)
        return CheckoutService().process(_context(coupons=["SAVE10"], order_remark="Leave at the door"))

    def test_order_is_persisted(self, result):
        contract = current_domain.repository_for(Contract).get(result.order_id)

        assert contract.sn == result.order_number
        assert contract.sn.startswith("ORD")
        assert contract.state == ContractState.INIT.value
        assert contract.goods_amount == "90.00"
        assert contract.shipping_fee == "8.00"
        assert contract.total_amount == "98.00"
        assert contract.discount_amount == "10.00"
        assert contract.contact.consignee == "Li Lei"
        assert contract.auto_cancel_time is not None

    def test_order_lines_and_prices(self, result):
        contract = current_domain.repository_for(Contract).get(result.order_id)

        assert len(contract.lines) == 1
        line = contract.lines[0]
        assert line.sku_id == "sku-a"
        assert line.quantity == 2
        assert line.unit_price == "50.00"
        assert line.cart_item_id == "line-1"
        assert line.source == LineSource.NORMAL.value

        by_type = {price.price_type: price for price in contract.prices}
        assert by_type[PriceType.COUPON.value].amount == "-10.00"
        assert by_type[PriceType.COUPON.value].order_line_id == str(line.id)
        assert by_type[PriceType.FREIGHT.value].amount == "8.00"

    def test_result_describes_the_order(self, result):
        assert result.order_state == ContractState.INIT.value
        assert result.applied_coupons == ["SAVE10"]
        assert result.final_total == "98.00"
        assert result.warnings == []

    def test_coupon_is_redeemed(self, result, coupon_provider):
        assert coupon_provider.state_of("SAVE10") == "redeemed"
        assert coupon_provider.redemptions["SAVE10"] == {
            "order_id": result.order_id,
            "order_number": result.order_number,
        }

    def test_stock_is_locked(self, result, catalog):
        assert catalog.locked == {"sku-a": 2}
        assert catalog.stock["sku-a"] == 98
        assert catalog.calls[0]["reference"] == result.order_number

    def test_cart_line_is_removed(self, result, cart_manager):
        assert "line-1" not in cart_manager.lines[USER_ID]

    def test_remark_is_saved(self, result):
        remark = OrderRemarkService().latest_remark(result.order_id)
        assert remark.info_value == "Leave at the door"
        assert remark.created_by == USER_ID

    def test_coupon_usage_is_recorded(self, result):
        logs = current_domain.repository_for(CouponUsageLog)._dao.query.filter(order_id=result.order_id).all().items
        assert len(logs) == 1
        assert logs[0].coupon_code == "SAVE10"
        assert logs[0].discount_amount == "10.00"
        assert logs[0].order_number == result.order_number

    def test_coupon_allocations_are_tied_to_lines(self, result):
        contract = current_domain.repository_for(Contract).get(result.order_id)
        line_id = str(contract.lines[0].id)

        ledger = CouponAllocationLedger()
        assert ledger.discount_map(result.order_id) == {line_id: "10.00"}
        assert ledger.line_discount(result.order_id, line_id) == "10.00"


class TestGiftCoupon:
    def test_gift_becomes_a_free_order_line(self, coupon_provider, catalog):
        coupon_provider.add_coupon(_gift_coupon(), user_id=USER_ID)
        result = CheckoutService().process(_context(coupons=["GIFT"]))

        contract = current_domain.repository_for(Contract).get(result.order_id)
        gift = next(line for line in contract.lines if line.is_gift)
        assert gift.sku_id == "sku-gift"
        assert gift.total_price == "0.00"
        assert gift.source == LineSource.COUPON_GIFT.value
        assert gift.coupon_code == "GIFT"
        assert catalog.locked["sku-gift"] == 1


class TestIntegralPayment:
    def test_points_are_deducted_and_recorded(self, integral_service):
        integral_service.set_balance(USER_ID, 5000)
        result = CheckoutService().process(_context(payment_mode="integral"))

        assert integral_service.balances[USER_ID] == 4000
        assert integral_service.calls[0]["source_id"] == f"{result.order_number}-deduct"

        contract = current_domain.repository_for(Contract).get(result.order_id)
        assert contract.total_integral == 1000
        assert contract.goods_amount == "0.00"

        infos = current_domain.repository_for(OrderIntegralInfo)._dao.query.filter(order_id=result.order_id).all().items
        assert len(infos) == 1
        assert infos[0].total_integral == 1000
        assert infos[0].order_line_id == str(contract.lines[0].id)
        assert infos[0].payment_mode == "integral"

    def test_insufficient_points(self, integral_service):
        integral_service.set_balance(USER_ID, 100)
        with pytest.raises(InsufficientIntegral):
            CheckoutService().process(_context(payment_mode="integral"))
        assert _contracts() == []


class TestRejectedBeforeCommit:
    def test_empty_selection(self):
        with pytest.raises(ValidationError):
            CheckoutService().process(_context(CheckoutItem(sku_id="sku-a", selected=False)))

    def test_coupon_held_elsewhere(self, coupon_provider):
        coupon_provider.add_coupon(Coupon(code="SAVE10", name="Save 10", value="10.00"))
        coupon_provider.lock("SAVE10", "user-999")

        with pytest.raises(CouponUnavailable) as exc:
            CheckoutService().process(_context(coupons=["SAVE10"]))
        assert exc.value.codes == ["SAVE10"]
        assert _contracts() == []

    def test_partial_lock_releases_locked_codes(self, coupon_provider):
        coupon_provider.add_coupon(Coupon(code="SAVE10", name="Save 10", value="10.00"), user_id=USER_ID)
        coupon_provider.add_coupon(Coupon(code="SAVE5", name="Save 5", value="5.00"))
        coupon_provider.lock("SAVE5", "user-999")

        with pytest.raises(CouponUnavailable) as exc:
            CheckoutService().process(_context(coupons=["SAVE10", "SAVE5"]))
        assert exc.value.codes == ["SAVE5"]
        assert coupon_provider.state_of("SAVE10") == "available"
        assert coupon_provider.state_of("SAVE5") == "locked"

    def test_coupon_held_by_a_concurrent_checkout_of_the_same_user(self, catalog, coupon_provider):
        coupon_provider.add_coupon(Coupon(code="SAVE10", name="Save 10", value="10.00"), user_id=USER_ID)
        # Another checkout of this user is between lock and redeem
        assert coupon_provider.lock("SAVE10", USER_ID)
        catalog.set_stock("sku-a", 1)

        with pytest.raises(CouponUnavailable):
            CheckoutService().process(_context(coupons=["SAVE10"]))
        assert coupon_provider.state_of("SAVE10") == "locked"
        assert coupon_provider.holders["SAVE10"] == USER_ID
        assert not [call for call in coupon_provider.calls if call["method"] == "unlock"]

    def test_stock_failure_unlocks_coupons(self, catalog, coupon_provider):
        catalog.set_stock("sku-a", 1)
        coupon_provider.add_coupon(Coupon(code="SAVE10", name="Save 10", value="10.00"), user_id=USER_ID)

        with pytest.raises(InsufficientStock):
            CheckoutService().process(_context(coupons=["SAVE10"]))
        assert coupon_provider.state_of("SAVE10") == "available"
        assert _contracts() == []

    def test_address_is_required(self):
        with pytest.raises(ValidationError) as exc:
            CheckoutService().process(_context(address_id=None))
        assert "address_id" in exc.value.messages
        assert _contracts() == []

    def test_unknown_address(self, integral_service):
        integral_service.set_balance(USER_ID, 5000)
        with pytest.raises(AddressNotFound):
            CheckoutService().process(_context(address_id="addr-missing", payment_mode="integral"))
        # Points taken before the order step are given back
        assert integral_service.balances[USER_ID] == 5000
        assert _contracts() == []


class TestRedemptionFailure:
    @pytest.fixture
    def failing_redeem(self, coupon_provider, integral_service):
        integral_service.set_balance(USER_ID, 5000)
        coupon_provider.add_coupon(_gift_coupon(), user_id=USER_ID)
        coupon_provider.configure(failing={"redeem"})

        with pytest.raises(ExternalServiceError):
            CheckoutService().process(_context(coupons=["GIFT"], payment_mode="integral"))

    def test_order_is_cancelled(self, failing_redeem):
        contracts = _contracts()
        assert len(contracts) == 1
        assert contracts[0].state == ContractState.CANCELLED.value
        assert contracts[0].cancel_reason == "Checkout rolled back"

    def test_points_are_refunded(self, failing_redeem, integral_service):
        sn = _contracts()[0].sn
        assert integral_service.balances[USER_ID] == 5000
        assert integral_service.calls[0]["method"] == "decrease"
        refunds = {call["source_id"] for call in integral_service.calls if call["method"] == "increase"}
        assert refunds == {f"{sn}-refund"}

    def test_coupon_is_unlocked(self, failing_redeem, coupon_provider):
        assert coupon_provider.state_of("GIFT") == "available"

    def test_no_post_commit_effects(self, failing_redeem, catalog, cart_manager):
        assert catalog.locked == {}
        assert cart_manager.calls == []


def _redeem_coupon(code="REDEEM"):
    return Coupon(
        code=code,
        name="Redeem a coaster",
        type=CouponType.REDEEM.value,
        redeem_items=(GrantedItem(sku_id="sku-gift", reference_unit_price="15.00"),),
        should_mark_paid=True,
    )


def _redeem_only_context():
    return CalculationContext(
        user_id=USER_ID,
        applied_coupons=["REDEEM"],
        metadata={"order_type": "redeem"},
    )


class TestRedeemOrder:
    @pytest.fixture
    def result(self, coupon_provider):
        coupon_provider.add_coupon(_redeem_coupon(), user_id=USER_ID)
        return CheckoutService().process(_redeem_only_context())

    def test_redeem_only_order_is_paid(self, result):
        contract = current_domain.repository_for(Contract).get(result.order_id)
        assert contract.order_type == "redeem"
        assert contract.total_amount == "0.00"
        assert contract.shipping_fee == "0.00"
        assert contract.contact is None
        assert contract.state == ContractState.PAID.value
        assert contract.paid_at is not None
        assert result.order_state == ContractState.PAID.value
        assert result.final_total == "0.00"

    def test_redeemed_item_becomes_the_order_line(self, result, catalog):
        contract = current_domain.repository_for(Contract).get(result.order_id)
        assert len(contract.lines) == 1
        line = contract.lines[0]
        assert line.source == LineSource.COUPON_REDEEM.value
        assert line.sku_id == "sku-gift"
        assert line.total_price == "0.00"
        assert line.reference_unit_price == "15.00"
        assert catalog.locked == {"sku-gift": 1}

    def test_coupon_is_redeemed(self, result, coupon_provider):
        assert coupon_provider.state_of("REDEEM") == "redeemed"

    def test_redeem_order_without_coupons_is_empty(self):
        with pytest.raises(ValidationError) as exc:
            CheckoutService().process(
                CalculationContext(user_id=USER_ID, metadata={"order_type": "redeem"})
            )
        assert exc.value.messages == {"items": ["Cart is empty"]}

    def test_normal_order_needs_items_even_with_coupons(self, coupon_provider):
        coupon_provider.add_coupon(_redeem_coupon(), user_id=USER_ID)
        with pytest.raises(ValidationError):
            CheckoutService().process(CalculationContext(user_id=USER_ID, applied_coupons=["REDEEM"]))
        assert coupon_provider.state_of("REDEEM") == "available"

    def test_mark_paid_failure_keeps_the_redeemed_order(self, coupon_provider, monkeypatch):
        coupon_provider.add_coupon(_redeem_coupon(), user_id=USER_ID)

        def _refuse(self):
            raise RuntimeError("payment state locked")

        monkeypatch.setattr(Contract, "mark_paid", _refuse)
        result = CheckoutService().process(_redeem_only_context())

        contract = current_domain.repository_for(Contract).get(result.order_id)
        assert contract.state == ContractState.INIT.value
        assert coupon_provider.state_of("REDEEM") == "redeemed"
        assert result.warnings == [f"Order {result.order_number} could not be marked paid"]


class TestPostCommitFailures:
    def test_stock_lock_failure_is_a_warning(self, catalog):
        catalog.configure(fail_locks=True)
        result = CheckoutService().process(_context())

        assert result.order_id is not None
        assert result.warnings == ["Stock lock failed for SKU sku-a"]

    def test_cart_failure_is_a_warning(self, cart_manager):
        cart_manager.configure(should_succeed=False)
        result = CheckoutService().process(_context())

        assert result.order_state == ContractState.INIT.value
        assert result.warnings == ["Could not remove cart line line-1"]


class TestPersistenceFailure:
    @pytest.fixture
    def failed(self, coupon_provider, integral_service, monkeypatch):
        integral_service.set_balance(USER_ID, 5000)
        coupon_provider.add_coupon(_gift_coupon(), user_id=USER_ID)

        def _broken(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(
            importlib.import_module("checkout.orchestration.service"), "record_integral_infos", _broken
        )
        with pytest.raises(ExternalServiceError) as exc:
            CheckoutService().process(_context(coupons=["GIFT"], payment_mode="integral"))
        return exc.value

    def test_no_order_is_persisted(self, failed):
        assert _contracts() == []
        assert isinstance(failed.__cause__, RuntimeError)

    def test_points_are_refunded(self, failed, integral_service):
        assert integral_service.balances[USER_ID] == 5000
        assert [call["method"] for call in integral_service.calls] == ["decrease", "increase"]

    def test_coupon_is_available_again(self, failed, coupon_provider):
        assert coupon_provider.state_of("GIFT") == "available"
        assert not [call for call in coupon_provider.calls if call["method"] == "redeem"]


class FailingModerator(RemarkModerator):
    def moderate(self, text):
        raise RuntimeError("moderation service down")


class FailingRemarkService:
    def save_remark(self, order_id, remark, user_id=None):
        raise RuntimeError("remark store unavailable")


class TestRemarkFailure:
    def test_moderation_failure_keeps_the_order(self):
        set_remark_moderator(FailingModerator())
        result = CheckoutService().process(_context(order_remark="Leave at the door"))

        contract = current_domain.repository_for(Contract).get(result.order_id)
        assert contract.state == ContractState.INIT.value
        assert result.warnings == []
        assert OrderRemarkService().remark_history(result.order_id) == []

    def test_save_failure_keeps_the_order(self, cart_manager):
        result = CheckoutService(remark_service=FailingRemarkService()).process(
            _context(order_remark="Leave at the door")
        )

        assert current_domain.repository_for(Contract).get(result.order_id).sn == result.order_number
        assert result.order_state == ContractState.INIT.value
        # Effects after the remark still ran
        assert "line-1" not in cart_manager.lines[USER_ID]


class TestRepeatedSku:
    def test_coupon_records_attach_to_each_line(self, coupon_provider):
        coupon_provider.add_coupon(Coupon(code="SAVE10", name="Save 10", value="10.00"), user_id=USER_ID)
        result = CheckoutService().process(
            _context(
                CheckoutItem(sku_id="sku-a", quantity=1, id="line-1"),
                CheckoutItem(sku_id="sku-a", quantity=3, id="line-2"),
                coupons=["SAVE10"],
            )
        )

        contract = current_domain.repository_for(Contract).get(result.order_id)
        line_ids = {line.cart_item_id: str(line.id) for line in contract.lines}
        coupons = {p.order_line_id: p.amount for p in contract.prices if p.price_type == PriceType.COUPON.value}
        assert coupons == {line_ids["line-1"]: "-2.50", line_ids["line-2"]: "-7.50"}

        assert CouponAllocationLedger().discount_map(result.order_id) == {
            line_ids["line-1"]: "2.50",
            line_ids["line-2"]: "7.50",
        }

    def test_integral_records_attach_to_each_line(self, integral_service):
        integral_service.set_balance(USER_ID, 5000)
        result = CheckoutService().process(
            _context(
                CheckoutItem(sku_id="sku-a", quantity=1, id="line-1"),
                CheckoutItem(sku_id="sku-a", quantity=2, id="line-2"),
                payment_mode="integral",
            )
        )

        contract = current_domain.repository_for(Contract).get(result.order_id)
        line_ids = {line.cart_item_id: str(line.id) for line in contract.lines}
        infos = current_domain.repository_for(OrderIntegralInfo)._dao.query.filter(order_id=result.order_id).all().items
        assert {info.order_line_id: info.total_integral for info in infos} == {
            line_ids["line-1"]: 500,
            line_ids["line-2"]: 1000,
        }
