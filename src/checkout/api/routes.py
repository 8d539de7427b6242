"""FastAPI routes for the Checkout domain."""

from contextlib import contextmanager

from fastapi import APIRouter, HTTPException
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from checkout.api.schemas import (
    CalculateCheckoutRequest,
    CouponRecommendationRequest,
    ProcessCheckoutRequest,
    RemarkIdResponse,
    SaveRemarkRequest,
    ShippingFeeRequest,
    StockValidationRequest,
)
from checkout.coupons.recommendation import CouponRecommendationService
from checkout.errors import (
    AddressNotFound,
    DomainRuleViolation,
    ExternalServiceError,
    InsufficientStock,
    PriceCalculationFailure,
    SkuNotFound,
)
from checkout.orchestration.service import CheckoutService
from checkout.pricing.items import CalculationContext, CheckoutItem
from checkout.remarks.remark import OrderRemarkService, SaveOrderRemark
from checkout.shipping.calculator import ShippingCalculationInput, ShippingFeeCalculator, ShippingItem
from checkout.stock.validator import StockValidator

checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@contextmanager
def _http_errors():
    """Translate checkout failures into HTTP errors."""
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.messages) from exc
    except (ObjectNotFoundError, SkuNotFound, AddressNotFound) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InsufficientStock as exc:
        detail = {"message": exc.message, "stock": exc.validation.to_dict()}
        raise HTTPException(status_code=409, detail=detail) from exc
    except DomainRuleViolation as exc:
        raise HTTPException(status_code=409, detail=exc.message) from exc
    except (ExternalServiceError, PriceCalculationFailure) as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc


def _raw_items(items) -> list[dict]:
    return [item.model_dump() for item in items]


# --- Checkout ---


@checkout_router.post("/calculate")
async def calculate_checkout(body: CalculateCheckoutRequest):
    with _http_errors():
        result = CheckoutService().calculate_checkout(
            body.user_id, _raw_items(body.items), coupons=body.coupons, options=body.options()
        )
    return result.to_dict()


@checkout_router.post("/quick")
async def quick_calculate(body: CalculateCheckoutRequest):
    with _http_errors():
        result = CheckoutService().quick_calculate(
            body.user_id, _raw_items(body.items), coupons=body.coupons, options=body.options()
        )
    return result.to_dict()


@checkout_router.post("/process", status_code=201)
async def process_checkout(body: ProcessCheckoutRequest):
    with _http_errors():
        context = CalculationContext(
            user_id=body.user_id,
            items=CheckoutItem.normalize(_raw_items(body.items)),
            applied_coupons=body.coupons,
            metadata=body.options(),
        )
        result = CheckoutService().process(context)
    return result.to_dict()


# --- Checks ---


@checkout_router.post("/shipping")
async def calculate_shipping(body: ShippingFeeRequest):
    data = ShippingCalculationInput(
        address_id=body.address_id,
        user_id=body.user_id,
        items=[ShippingItem(**item.model_dump()) for item in body.items],
    )
    with _http_errors():
        result = ShippingFeeCalculator().calculate(data)
    return result.to_dict()


@checkout_router.post("/stock")
async def validate_stock(body: StockValidationRequest):
    with _http_errors():
        result = StockValidator().validate(CheckoutItem.normalize(_raw_items(body.items)))
    return result.to_dict()


@checkout_router.post("/coupons/recommendations")
async def recommend_coupons(body: CouponRecommendationRequest):
    with _http_errors():
        context = CalculationContext(user_id=body.user_id, items=CheckoutItem.normalize(_raw_items(body.items)))
        recommendations = CouponRecommendationService().recommend(context)
    return {"coupons": [recommendation.to_dict() for recommendation in recommendations]}


# --- Remarks ---


@checkout_router.post("/orders/{order_id}/remarks", status_code=201, response_model=RemarkIdResponse)
async def save_order_remark(order_id: str, body: SaveRemarkRequest) -> RemarkIdResponse:
    with _http_errors():
        command = SaveOrderRemark(order_id=order_id, remark=body.remark, user_id=body.user_id)
        remark_id = current_domain.process(command, asynchronous=False)
    return RemarkIdResponse(remark_id=remark_id)


@checkout_router.get("/orders/{order_id}/remarks")
async def order_remark_history(order_id: str):
    history = OrderRemarkService().remark_history(order_id)
    return {
        "order_id": order_id,
        "remarks": [
            {
                "id": str(info.id),
                "remark": info.info_value,
                "is_filtered": info.is_filtered,
                "created_at": info.created_at.isoformat() if info.created_at else None,
            }
            for info in history
        ],
    }
