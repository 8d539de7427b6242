"""CheckoutService: quotes a cart and commits it as an order.

Quotes (``calculate_checkout``, ``quick_calculate``) only read: they price the
cart, expand coupon gifts and check stock and shipping. Nothing is locked or
written.

``process`` commits a checkout as a saga:

    price → lock coupons → validate stock → deduct integral →
    persist order → redeem coupons → post-commit effects

A failing step compensates the completed ones in reverse (refund integral,
cancel the order). Locked coupons that were never redeemed are unlocked by a
finalizer on every exit path. Post-commit effects never roll the order back.

Stock validation is advisory: the stock lock happens after the order is
persisted, so two concurrent checkouts can both pass validation for the last
units of a SKU.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from protean import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from checkout import money
from checkout.addresses import get_address_resolver
from checkout.cart import get_cart_manager
from checkout.catalog import get_catalog
from checkout.contract.contract import (
    AUTO_CANCEL_MINUTES,
    Contract,
    LineSource,
    OrderType,
    generate_sn,
)
from checkout.coupons import get_coupon_chain
from checkout.coupons.usage import CouponUsageRecorder
from checkout.coupons.workflow import extract_coupon_codes, extract_extra_items, merge_checkout_items
from checkout.errors import (
    AddressNotFound,
    CouponUnavailable,
    ExternalServiceError,
    InsufficientStock,
    ShippingUnavailable,
)
from checkout.integral.service import IntegralDeductionService, record_integral_infos
from checkout.orchestration.result import CheckoutResult
from checkout.orchestration.saga import CouponLockState, Saga, SagaStep
from checkout.pricing.base_price import BasePriceCalculator
from checkout.pricing.coupon import CouponCalculator
from checkout.pricing.engine import PriceCalculationEngine
from checkout.pricing.items import CalculationContext, CheckoutItem, resolve_sku
from checkout.pricing.promotion import PromotionCalculator
from checkout.pricing.result import PriceResult
from checkout.remarks.remark import OrderRemarkService
from checkout.shipping.calculator import ShippingCalculationInput, ShippingFeeCalculator, ShippingItem
from checkout.stock.validator import StockValidator
from checkout.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)


def default_engine() -> PriceCalculationEngine:
    return PriceCalculationEngine([BasePriceCalculator(), PromotionCalculator(), CouponCalculator()])


@dataclass
class CheckoutState:
    """Mutable state threaded through the commit saga."""

    context: CalculationContext
    sn: str
    price_result: PriceResult | None = None
    coupon_codes: list[str] = field(default_factory=list)
    locked_codes: list[str] = field(default_factory=list)
    coupon_state: CouponLockState = CouponLockState.NONE
    extra_items: list = field(default_factory=list)
    stock_validation: Any = None
    integral_deducted: int = 0
    shipping_result: Any = None
    contract: Contract | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def user_id(self) -> str:
        return self.context.user_id


class CheckoutService:
    def __init__(
        self,
        engine: PriceCalculationEngine | None = None,
        stock_validator: StockValidator | None = None,
        shipping_calculator: ShippingFeeCalculator | None = None,
        integral_deduction: IntegralDeductionService | None = None,
        usage_recorder: CouponUsageRecorder | None = None,
        remark_service: OrderRemarkService | None = None,
        coupon_ledger=None,
        cart_manager=None,
        address_resolver=None,
        catalog=None,
        auto_cancel_minutes: int = AUTO_CANCEL_MINUTES,
    ) -> None:
        self.engine = engine or default_engine()
        self.stock_validator = stock_validator or StockValidator(catalog=catalog)
        self.shipping_calculator = shipping_calculator or ShippingFeeCalculator(address_resolver=address_resolver)
        self.integral_deduction = integral_deduction or IntegralDeductionService()
        self.usage_recorder = usage_recorder or CouponUsageRecorder()
        self.remark_service = remark_service or OrderRemarkService()
        self.auto_cancel_minutes = auto_cancel_minutes
        self._coupon_ledger = coupon_ledger
        self._cart_manager = cart_manager
        self._address_resolver = address_resolver
        self._catalog = catalog

    @property
    def coupon_ledger(self):
        return self._coupon_ledger if self._coupon_ledger is not None else get_coupon_chain()

    @property
    def cart_manager(self):
        return self._cart_manager if self._cart_manager is not None else get_cart_manager()

    @property
    def address_resolver(self):
        return self._address_resolver if self._address_resolver is not None else get_address_resolver()

    @property
    def catalog(self):
        return self._catalog if self._catalog is not None else get_catalog()

    # -------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------
    def calculate_checkout(self, user_id, raw_items, coupons=None, options=None) -> CheckoutResult:
        """Price the cart and check stock and shipping. Raises InsufficientStock."""
        items = CheckoutItem.normalize(raw_items)
        if not items:
            raise ValidationError({"items": ["Cart is empty"]})
        return self._quote(user_id, items, coupons, options, validate_stock=True)

    def quick_calculate(self, user_id, raw_items, coupons=None, options=None) -> CheckoutResult:
        """Like calculate_checkout, without stock validation."""
        items = CheckoutItem.normalize(raw_items)
        if not items:
            return CheckoutResult.empty()
        return self._quote(user_id, items, coupons, options, validate_stock=False)

    def _quote(self, user_id, items, coupons, options, validate_stock: bool) -> CheckoutResult:
        context = CalculationContext(
            user_id=str(user_id),
            items=items,
            applied_coupons=coupons or (),
            metadata=dict(options or {}),
        )
        price_result = self.engine.calculate(context)
        extra_items = extract_extra_items(price_result, self.catalog)

        validation = None
        if validate_stock:
            validation = self.stock_validator.validate(merge_checkout_items(context.items, extra_items))
            if not validation.is_valid:
                raise InsufficientStock(validation)

        shipping_result = None
        if context.get("address_id"):
            shipping_result = self.shipping_calculator.calculate(
                self._shipping_input(context, extra_items, context.get("address_id"))
            )

        return CheckoutResult(
            items=list(context.items),
            extra_items=extra_items,
            price_result=price_result,
            shipping_result=shipping_result,
            stock_validation=validation,
            applied_coupons=extract_coupon_codes(price_result),
        )

    # -------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------
    def process(self, context: CalculationContext) -> CheckoutResult:
        """Commit the checkout described by ``context`` as a new order."""
        redeem_only = context.order_type == OrderType.REDEEM.value and context.applied_coupons
        if not context.selected_items and not redeem_only:
            raise ValidationError({"items": ["Cart is empty"]})

        state = CheckoutState(context=context, sn=generate_sn())
        saga = Saga(
            "checkout",
            steps=[
                SagaStep("price", self._price),
                SagaStep("lock_coupons", self._lock_coupons),
                SagaStep("validate_stock", self._validate_stock),
                SagaStep("deduct_integral", self._deduct_integral, self._refund_integral),
                SagaStep("persist_order", self._persist_order, self._cancel_order),
                SagaStep("redeem_coupons", self._redeem_coupons),
                SagaStep("post_commit", self._post_commit),
            ],
            finalizers=[self._release_coupons],
        )

        add_context(user_id=context.user_id, sn=state.sn)
        try:
            saga.run(state)
        finally:
            clear_context()

        contract = state.contract
        logger.info(
            "Checkout committed",
            order_id=str(contract.id),
            sn=contract.sn,
            user_id=context.user_id,
            total_amount=contract.total_amount,
            coupons=state.locked_codes,
        )
        return CheckoutResult(
            items=list(context.items),
            extra_items=state.extra_items,
            price_result=state.price_result,
            shipping_result=state.shipping_result,
            stock_validation=state.stock_validation,
            applied_coupons=state.coupon_codes,
            order_id=str(contract.id),
            order_number=contract.sn,
            order_state=contract.state,
            warnings=state.warnings,
        )

    def _price(self, state: CheckoutState) -> None:
        state.price_result = self.engine.calculate(state.context)
        state.coupon_codes = extract_coupon_codes(state.price_result)

    def _lock_coupons(self, state: CheckoutState) -> None:
        if not state.coupon_codes:
            return

        locked = self.coupon_ledger.lock(state.user_id, state.coupon_codes)
        if locked:
            state.locked_codes = list(locked)
            state.coupon_state = CouponLockState.LOCKED

        missing = [code for code in state.coupon_codes if code not in locked]
        if missing:
            logger.warning("Coupon lock shortfall", user_id=state.user_id, requested=state.coupon_codes, locked=locked)
            raise CouponUnavailable(missing)

    def _validate_stock(self, state: CheckoutState) -> None:
        state.extra_items = extract_extra_items(state.price_result, self.catalog)
        items = merge_checkout_items(state.context.items, state.extra_items)
        state.stock_validation = self.stock_validator.validate(items)
        if not state.stock_validation.is_valid:
            raise InsufficientStock(state.stock_validation)

    def _deduct_integral(self, state: CheckoutState) -> None:
        required = state.price_result.total_integral_required
        if required <= 0:
            return
        self.integral_deduction.deduct(state.user_id, required, state.sn)
        state.integral_deducted = required

    def _refund_integral(self, state: CheckoutState) -> None:
        if state.integral_deducted > 0:
            self.integral_deduction.refund(state.user_id, state.integral_deducted, state.sn)

    def _persist_order(self, state: CheckoutState) -> None:
        context = state.context
        is_redeem = context.order_type == OrderType.REDEEM.value
        address_id = context.get("address_id")
        if not address_id and not is_redeem:
            raise ValidationError({"address_id": ["This field is required"]})

        contact = None
        if address_id:
            address = self.address_resolver.resolve_address(address_id, context.user_id)
            if address is None:
                raise AddressNotFound(address_id)
            contact = {
                "address_id": address.id,
                "consignee": address.consignee,
                "mobile": address.mobile,
                "province": address.province,
                "city": address.city,
                "district": address.district,
                "detail": address.detail,
            }

        shipping_fee = "0.00"
        if not is_redeem:
            state.shipping_result = self.shipping_calculator.calculate(
                self._shipping_input(context, state.extra_items, address_id)
            )
            if not state.shipping_result.is_deliverable:
                raise ShippingUnavailable(state.shipping_result.error_message or "Not deliverable")
            shipping_fee = state.shipping_result.fee

        price_result = state.price_result
        breakdown = price_result.details.get("coupon_breakdown", {})
        contract = Contract.place(
            user_id=context.user_id,
            lines_data=self._order_lines(context, price_result, state.extra_items),
            goods_amount=price_result.final_price,
            shipping_fee=shipping_fee,
            discount_amount=price_result.discount,
            total_integral=price_result.total_integral_required,
            order_type=context.order_type,
            contact=contact,
            coupon_discounts=[a for entry in breakdown.values() for a in entry.get("allocations", [])],
            auto_cancel_minutes=self.auto_cancel_minutes,
            sn=state.sn,
        )

        try:
            with UnitOfWork():
                current_domain.repository_for(Contract).add(contract)
                record_integral_infos(contract, price_result.products, context.get("payment_mode"))
        except Exception as exc:
            logger.error(
                "Order persistence failed",
                sn=state.sn,
                user_id=context.user_id,
                total_amount=contract.total_amount,
                error=str(exc),
            )
            raise ExternalServiceError(f"Could not persist order {state.sn}", sn=state.sn) from exc

        state.contract = contract
        logger.info("Order persisted", order_id=str(contract.id), sn=contract.sn, total_amount=contract.total_amount)

    def _cancel_order(self, state: CheckoutState) -> None:
        if state.contract is None:
            return
        with UnitOfWork():
            repo = current_domain.repository_for(Contract)
            contract = repo.get(state.contract.id)
            contract.cancel(reason="Checkout rolled back")
            repo.add(contract)
        state.contract = contract

    def _redeem_coupons(self, state: CheckoutState) -> None:
        if not state.locked_codes:
            return

        contract = state.contract
        redeemed = self.coupon_ledger.redeem(state.locked_codes, state.user_id, str(contract.id), contract.sn)
        if len(redeemed) < len(state.locked_codes):
            logger.error(
                "Coupon redemption shortfall",
                sn=contract.sn,
                user_id=state.user_id,
                locked=state.locked_codes,
                redeemed=redeemed,
            )
            raise ExternalServiceError(
                f"Coupon redemption failed for order {contract.sn}",
                sn=contract.sn,
                codes=[code for code in state.locked_codes if code not in redeemed],
            )
        state.coupon_state = CouponLockState.REDEEMED

    def _post_commit(self, state: CheckoutState) -> None:
        contract = state.contract
        context = state.context

        # Fully covered by a redeem coupon: nothing left to pay
        if state.price_result.details.get("coupon_should_mark_paid") and money.is_zero(contract.total_amount):
            try:
                with UnitOfWork():
                    repo = current_domain.repository_for(Contract)
                    paid = repo.get(contract.id)
                    paid.mark_paid()
                    repo.add(paid)
                state.contract = paid
            except Exception as exc:
                logger.error("Marking order paid failed", sn=contract.sn, user_id=context.user_id, error=str(exc))
                state.warnings.append(f"Order {contract.sn} could not be marked paid")

        try:
            self.usage_recorder.record(contract, state.price_result, context.user_id)
        except Exception as exc:
            logger.error("Coupon usage recording failed", sn=contract.sn, user_id=context.user_id, error=str(exc))

        for line in contract.lines:
            if not line.sku_id or line.quantity <= 0:
                continue
            try:
                sku = self.catalog.get_sku(line.sku_id)
                self.catalog.lock_stock(sku, line.quantity, contract.sn)
            except Exception as exc:
                logger.error("Stock lock failed", sn=contract.sn, sku_id=line.sku_id, error=str(exc))
                state.warnings.append(f"Stock lock failed for SKU {line.sku_id}")

        for item in context.selected_items:
            if not item.id:
                continue
            try:
                self.cart_manager.remove_item(context.user_id, item.id)
            except Exception as exc:
                logger.error("Cart line removal failed", sn=contract.sn, line_id=item.id, error=str(exc))
                state.warnings.append(f"Could not remove cart line {item.id}")

        remark = context.get("order_remark")
        if remark:
            try:
                self.remark_service.save_remark(contract.id, remark, context.user_id)
            except Exception as exc:
                logger.error("Order remark not saved", sn=contract.sn, error=str(exc))

    def _release_coupons(self, state: CheckoutState) -> None:
        if state.coupon_state != CouponLockState.LOCKED or not state.locked_codes:
            return
        self.coupon_ledger.unlock(state.locked_codes, state.user_id)
        state.coupon_state = CouponLockState.UNLOCKED
        logger.info("Coupons unlocked", user_id=state.user_id, codes=state.locked_codes)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _shipping_input(self, context, extra_items, address_id) -> ShippingCalculationInput:
        items = []
        for item in context.selected_items:
            sku = resolve_sku(item, self.catalog).sku
            items.append(
                ShippingItem(
                    sku_id=item.sku_id,
                    quantity=item.quantity,
                    weight=sku.weight,
                    price=sku.price,
                    shipping_template_id=sku.shipping_template_id,
                )
            )
        for extra in extra_items:
            items.append(
                ShippingItem(
                    sku_id=extra.sku_id,
                    quantity=extra.quantity,
                    weight=extra.sku.weight,
                    price=extra.unit_price,
                    shipping_template_id=extra.sku.shipping_template_id,
                )
            )
        return ShippingCalculationInput(address_id=address_id, items=items, user_id=context.user_id)

    @staticmethod
    def _order_lines(context, price_result, extra_items) -> list[dict[str, Any]]:
        priced = [p for p in price_result.products if not p.get("is_gift") and not p.get("is_redeem")]

        lines = []
        for item, product in zip(context.selected_items, priced):
            lines.append(
                {
                    "sku_id": str(product["sku_id"]),
                    "spu_id": str(product["spu_id"]) if product.get("spu_id") else None,
                    "name": product.get("product_name"),
                    "quantity": item.quantity,
                    "unit_price": product["unit_price"],
                    "total_price": product["payable_price"],
                    "source": LineSource.NORMAL.value,
                    "cart_item_id": item.id,
                    "integral_price": int(product.get("integral_price") or 0),
                }
            )

        for extra in extra_items:
            lines.append(
                {
                    "sku_id": extra.sku_id,
                    "spu_id": str(extra.sku.spu_id) if extra.sku.spu_id else None,
                    "name": extra.sku.full_name,
                    "quantity": extra.quantity,
                    "unit_price": extra.unit_price,
                    "total_price": extra.total_price,
                    "source": extra.type,
                    "is_gift": extra.is_gift,
                    "coupon_code": extra.coupon_code,
                    "reference_unit_price": extra.reference_unit_price,
                }
            )
        return lines
