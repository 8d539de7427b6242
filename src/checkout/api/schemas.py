"""Pydantic request schemas for the Checkout API.

These are external contracts, kept apart from the internal CheckoutItem and
CalculationContext types. Money travels as decimal strings.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CheckoutItemSchema(BaseModel):
    sku_id: str
    quantity: int = Field(default=1, ge=1)
    selected: bool = True
    id: str | None = None  # Cart line id


class ShippingItemSchema(BaseModel):
    sku_id: str
    quantity: int = Field(ge=1)
    weight: str = "0.000"
    price: str = "0.00"
    shipping_template_id: str | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CalculateCheckoutRequest(BaseModel):
    user_id: str
    items: list[CheckoutItemSchema]
    coupons: list[str] = []
    address_id: str | None = None
    region: str | None = None
    payment_mode: str | None = None
    use_integral_amount: int | None = Field(default=None, ge=0)
    order_type: str = "normal"

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "items": [{"sku_id": "sku-001", "quantity": 2}],
                    "coupons": ["SAVE10"],
                    "address_id": "addr-001",
                }
            ]
        }
    }

    def options(self) -> dict:
        options = {
            "address_id": self.address_id,
            "region": self.region,
            "payment_mode": self.payment_mode,
            "use_integral_amount": self.use_integral_amount,
            "order_type": self.order_type,
        }
        return {key: value for key, value in options.items() if value is not None}


class ProcessCheckoutRequest(CalculateCheckoutRequest):
    order_remark: str | None = Field(default=None, max_length=200)

    def options(self) -> dict:
        options = super().options()
        if self.order_remark:
            options["order_remark"] = self.order_remark
        return options


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------
class ShippingFeeRequest(BaseModel):
    address_id: str
    user_id: str | None = None
    items: list[ShippingItemSchema]


class StockValidationRequest(BaseModel):
    items: list[CheckoutItemSchema]


class CouponRecommendationRequest(BaseModel):
    user_id: str
    items: list[CheckoutItemSchema]


# ---------------------------------------------------------------------------
# Remarks
# ---------------------------------------------------------------------------
class SaveRemarkRequest(BaseModel):
    remark: str
    user_id: str | None = None


class RemarkIdResponse(BaseModel):
    remark_id: str
