"""Typed failures raised by the checkout pipeline.

Input problems (empty cart, malformed items, missing fields) are reported with
``protean.exceptions.ValidationError`` like everywhere else in the domain. The
classes here cover business-rule rejections, failures of external ledgers,
calculator failures and money arithmetic errors.
"""


class CheckoutError(Exception):
    """Base class for checkout failures carrying a readable message and context."""

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class DomainRuleViolation(CheckoutError):
    """A business rule rejected the checkout (inactive product, no stock, expired coupon...)."""


class ProductOffShelf(DomainRuleViolation):
    def __init__(self, product_name: str, sku_id: str) -> None:
        super().__init__(f"Product {product_name} is off shelf", sku_id=sku_id, product_name=product_name)
        self.sku_id = sku_id


class SkuNotFound(DomainRuleViolation):
    def __init__(self, sku_id: str) -> None:
        super().__init__(f"SKU {sku_id} not found", sku_id=sku_id)
        self.sku_id = sku_id


class InsufficientStock(DomainRuleViolation):
    """Stock validation failed; carries the full validation result."""

    def __init__(self, validation) -> None:
        errors = ", ".join(validation.errors.values())
        super().__init__(f"Stock validation failed: {errors}", errors=dict(validation.errors))
        self.validation = validation


class CouponUnavailable(DomainRuleViolation):
    def __init__(self, codes: list[str]) -> None:
        super().__init__(f"Coupon expired or unavailable: {', '.join(codes)}", codes=list(codes))
        self.codes = list(codes)


class AddressNotFound(DomainRuleViolation):
    def __init__(self, address_id: str) -> None:
        super().__init__("Delivery address not found", address_id=address_id)


class ShippingUnavailable(DomainRuleViolation):
    """Shipping could not be computed (missing template, non-deliverable region)."""


class InsufficientIntegral(DomainRuleViolation):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient points: {required} required, {available} available",
            required=required,
            available=available,
        )


class ExternalServiceError(CheckoutError):
    """A collaborator (coupon ledger, points ledger, persistence) failed."""


class PriceCalculationFailure(CheckoutError):
    """A price calculator raised; the whole computation is aborted."""

    def __init__(self, calculator_type: str, reason: str) -> None:
        super().__init__(f"Calculator {calculator_type} failed: {reason}", calculator_type=calculator_type)
        self.calculator_type = calculator_type


class DivisionByZero(ArithmeticError):
    """Raised when a monetary division has a zero-valued divisor."""
