"""Tests for CheckoutItem normalisation and CalculationContext."""

from dataclasses import dataclass
from datetime import UTC, datetime

import pytest
from checkout.errors import SkuNotFound
from checkout.pricing.items import CalculationContext, CheckoutItem, resolve_sku
from protean.exceptions import ValidationError


@dataclass
class CartLine:
    id: str
    sku_id: str
    quantity: int
    selected: bool = True


class TestCheckoutItemFromMapping:
    def test_defaults(self):
        item = CheckoutItem.from_mapping({"sku_id": "sku-a"})
        assert item.quantity == 1
        assert item.selected is True
        assert item.id is None

    def test_camel_case_sku_id(self):
        item = CheckoutItem.from_mapping({"skuId": "sku-a", "quantity": 2})
        assert item.sku_id == "sku-a"
        assert item.quantity == 2

    def test_numeric_string_quantity(self):
        assert CheckoutItem.from_mapping({"sku_id": "sku-a", "quantity": "3"}).quantity == 3

    def test_cart_line_id_is_kept(self):
        item = CheckoutItem.from_mapping({"sku_id": "sku-a", "id": 42})
        assert item.id == "42"

    def test_missing_sku_id(self):
        with pytest.raises(ValidationError) as exc:
            CheckoutItem.from_mapping({"quantity": 1})
        assert "sku_id" in exc.value.messages

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5, True])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(ValidationError) as exc:
            CheckoutItem.from_mapping({"sku_id": "sku-a", "quantity": quantity})
        assert "quantity" in exc.value.messages

    @pytest.mark.parametrize("flag", ["false", "0", "False", " no ", 0, False])
    def test_unselected_flags(self, flag):
        assert CheckoutItem.from_mapping({"sku_id": "sku-a", "selected": flag}).selected is False

    @pytest.mark.parametrize("flag", ["true", "1", "yes", 1, True, None])
    def test_selected_flags(self, flag):
        assert CheckoutItem.from_mapping({"sku_id": "sku-a", "selected": flag}).selected is True

    def test_unknown_flag(self):
        with pytest.raises(ValidationError) as exc:
            CheckoutItem.from_mapping({"sku_id": "sku-a", "selected": "maybe"})
        assert "selected" in exc.value.messages


class TestNormalize:
    def test_mixed_inputs(self):
        existing = CheckoutItem(sku_id="sku-c")
        items = CheckoutItem.normalize(
            [{"sku_id": "sku-a"}, CartLine(id="line-1", sku_id="sku-b", quantity=2), existing]
        )
        assert [item.sku_id for item in items] == ["sku-a", "sku-b", "sku-c"]
        assert items[1].id == "line-1"
        assert items[2] is existing

    def test_none_is_empty(self):
        assert CheckoutItem.normalize(None) == []

    def test_unsupported_type(self):
        with pytest.raises(ValidationError) as exc:
            CheckoutItem.normalize(["sku-a"])
        assert "Unsupported item type" in exc.value.messages["items"][0]


class TestCalculationContext:
    def test_calculate_time_defaults_to_now(self):
        context = CalculationContext(user_id="user-001")
        assert context.calculate_time.tzinfo is not None
        assert context.calculate_time <= datetime.now(UTC)

    def test_explicit_calculate_time_is_kept(self):
        moment = datetime(2024, 1, 1, tzinfo=UTC)
        context = CalculationContext(user_id="user-001", metadata={"calculate_time": moment})
        assert context.calculate_time == moment

    def test_with_metadata_merges(self):
        context = CalculationContext(user_id="user-001", metadata={"region": "east"})
        updated = context.with_metadata(payment_mode="cash")
        assert updated.region == "east"
        assert updated.get("payment_mode") == "cash"
        assert context.get("payment_mode") is None

    def test_with_coupons_is_an_ordered_unique_union(self):
        context = CalculationContext(user_id="user-001", applied_coupons=["A", "B"])
        assert context.with_coupons(["B", "C", "A", ""]).applied_coupons == ("A", "B", "C")

    def test_selected_items(self):
        context = CalculationContext(
            user_id="user-001",
            items=[CheckoutItem(sku_id="sku-a"), CheckoutItem(sku_id="sku-b", selected=False)],
        )
        assert [item.sku_id for item in context.selected_items] == ["sku-a"]

    def test_order_type_defaults_to_normal(self):
        assert CalculationContext(user_id="user-001").order_type == "normal"


class TestResolveSku:
    def test_loads_sku(self, catalog):
        item = resolve_sku(CheckoutItem(sku_id="sku-a"), catalog)
        assert item.sku.price == "50.00"

    def test_unknown_sku(self, catalog):
        with pytest.raises(SkuNotFound):
            resolve_sku(CheckoutItem(sku_id="nope"), catalog)
