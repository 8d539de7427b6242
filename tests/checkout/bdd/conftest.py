"""Shared BDD fixtures and step definitions for the Checkout domain."""

import pytest
from checkout.catalog.port import Sku
from checkout.contract.contract import Contract
from checkout.coupons.port import Coupon
from protean import current_domain
from pytest_bdd import given, parsers, then

USER_ID = "user-001"


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def user_id():
    return USER_ID


@pytest.fixture()
def error():
    """Container to capture exceptions from When steps."""
    return {"exc": None}


def _contracts():
    return current_domain.repository_for(Contract)._dao.query.filter(user_id=USER_ID).all().items


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the catalog offers "{sku_id}" at {price} or {points:d} points with {stock:d} units in stock'))
def _(catalog, sku_id, price, points, stock):
    catalog.add_sku(
        Sku(id=sku_id, spu_id=f"spu-{sku_id}", name=sku_id, price=price, integral_price=points, weight="0.500"),
        stock=stock,
    )


@given(parsers.cfparse('only {stock:d} unit of "{sku_id}" is in stock'))
def _(catalog, sku_id, stock):
    catalog.set_stock(sku_id, stock)


@given("the user has a delivery address")
def _(address_book):
    return address_book


@given("a default shipping template charging 8.00 for the first kg")
def _(default_template):
    return default_template


@given(parsers.cfparse('the user owns a cash coupon "{code}" worth {value}'))
def _(coupon_provider, code, value):
    coupon_provider.add_coupon(Coupon(code=code, name=code, value=value), user_id=USER_ID)


@given(parsers.cfparse('a cash coupon "{code}" worth {value} is locked by another user'))
def _(coupon_provider, code, value):
    coupon_provider.add_coupon(Coupon(code=code, name=code, value=value))
    coupon_provider.lock(code, "user-999")


@given("the coupon service fails to redeem")
def _(coupon_provider):
    coupon_provider.configure(failing={"redeem"})


@given(parsers.cfparse("the user has {points:d} points"))
def _(integral_service, points):
    integral_service.set_balance(USER_ID, points)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the checkout is rejected as "{error_type}"'))
def _(error, error_type):
    assert error["exc"] is not None
    assert type(error["exc"]).__name__ == error_type


@then(parsers.cfparse('coupon "{code}" is "{state}"'))
def _(coupon_provider, code, state):
    assert coupon_provider.state_of(code) == state


@then("no order exists")
def _():
    assert _contracts() == []


@then(parsers.cfparse('the order is "{state}"'))
def _(state):
    contracts = _contracts()
    assert len(contracts) == 1
    assert contracts[0].state == state


@then(parsers.cfparse("the user has {points:d} points"))
def _(integral_service, points):
    assert integral_service.balances[USER_ID] == points
