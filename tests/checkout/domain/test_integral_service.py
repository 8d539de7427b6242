"""Tests for points deduction and refund."""

import pytest
from checkout.errors import ExternalServiceError, InsufficientIntegral
from checkout.integral.fake_adapter import InMemoryIntegralService, UnavailableIntegralService
from checkout.integral.service import IntegralDeductionService


@pytest.fixture
def ledger():
    ledger = InMemoryIntegralService()
    ledger.set_balance("user-001", 1000)
    return ledger


class TestDeduct:
    def test_deducts_with_order_source(self, ledger):
        change = IntegralDeductionService(ledger).deduct("user-001", 300, "ORD1")
        assert change.source_id == "ORD1-deduct"
        assert change.source_type == "order"
        assert ledger.balances["user-001"] == 700

    def test_zero_amount_is_a_noop(self, ledger):
        assert IntegralDeductionService(ledger).deduct("user-001", 0, "ORD1") is None
        assert ledger.calls == []

    def test_insufficient_balance(self, ledger):
        with pytest.raises(InsufficientIntegral):
            IntegralDeductionService(ledger).deduct("user-001", 5000, "ORD1")

    def test_same_order_is_deducted_once(self, ledger):
        service = IntegralDeductionService(ledger)
        service.deduct("user-001", 300, "ORD1")
        service.deduct("user-001", 300, "ORD1")
        assert ledger.balances["user-001"] == 700

    def test_ledger_failure_is_an_external_error(self, ledger):
        ledger.configure(failing={"decrease"})
        with pytest.raises(ExternalServiceError):
            IntegralDeductionService(ledger).deduct("user-001", 300, "ORD1")


class TestRefund:
    def test_refund_uses_refund_source(self, ledger):
        service = IntegralDeductionService(ledger)
        service.deduct("user-001", 300, "ORD1")
        change = service.refund("user-001", 300, "ORD1")
        assert change.source_id == "ORD1-refund"
        assert change.source_type == "order_refund"
        assert ledger.balances["user-001"] == 1000


class TestUnavailableService:
    def test_everything_is_a_noop(self):
        service = IntegralDeductionService(UnavailableIntegralService())
        change = service.deduct("user-001", 300, "ORD1")
        assert change.amount == 300
        assert service.integral_service.available("user-001") == 0
