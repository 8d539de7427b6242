"""Stock validation: can the requested quantities be sold right now?

Validation is advisory: it reads available quantities without reserving
anything. Reservation happens later, after the order is persisted, through
the StockOperator port. Nothing closes the window between the two.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from checkout.catalog import get_catalog
from checkout.errors import ProductOffShelf

logger = structlog.get_logger(__name__)

LOW_STOCK_THRESHOLD = 10


@dataclass(frozen=True)
class StockValidationResult:
    is_valid: bool
    errors: dict[str, str] = field(default_factory=dict)
    warnings: dict[str, str] = field(default_factory=dict)
    details: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def success(cls, warnings=None, details=None) -> "StockValidationResult":
        return cls(is_valid=True, warnings=dict(warnings or {}), details=dict(details or {}))

    @classmethod
    def failure(cls, errors, warnings=None, details=None) -> "StockValidationResult":
        return cls(is_valid=False, errors=dict(errors), warnings=dict(warnings or {}), details=dict(details or {}))

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "details": self.details,
        }


class StockValidator:
    def __init__(self, catalog=None, stock_service=None, low_stock_threshold: int = LOW_STOCK_THRESHOLD) -> None:
        self._catalog = catalog
        self._stock_service = stock_service
        self.low_stock_threshold = low_stock_threshold

    @property
    def catalog(self):
        return self._catalog if self._catalog is not None else get_catalog()

    @property
    def stock_service(self):
        return self._stock_service if self._stock_service is not None else get_catalog()

    def validate(self, items) -> StockValidationResult:
        """Validate selected items (CheckoutItems or ExtraItems) against available stock.

        Raises ProductOffShelf as soon as an inactive SKU or product is met.
        """
        requested: dict[str, int] = {}
        skus = {}
        errors: dict[str, str] = {}
        for item in items:
            if not item.selected:
                continue
            sku = item.sku or self.catalog.get_sku(item.sku_id)
            if sku is None:
                errors[str(item.sku_id)] = f"SKU {item.sku_id} not found"
                continue
            if not sku.is_active or not sku.spu_active:
                logger.warning("Inactive product in checkout", sku_id=sku.id, spu_id=sku.spu_id)
                raise ProductOffShelf(sku.full_name, str(sku.id))

            skus[str(sku.id)] = sku
            requested[str(sku.id)] = requested.get(str(sku.id), 0) + item.quantity

        warnings: dict[str, str] = {}
        details: dict[str, dict[str, Any]] = {}
        for sku_id, quantity in requested.items():
            sku = skus[sku_id]
            available = self.stock_service.get_available_stock(sku)
            details[sku_id] = {
                "sku_code": sku.code,
                "sku_name": sku.full_name,
                "requested_quantity": quantity,
                "available_quantity": available,
            }

            if available <= 0 or quantity > available:
                errors[sku_id] = f"Insufficient stock for {sku.full_name}: requested {quantity}, available {available}"
            elif available < self.low_stock_threshold:
                warnings[sku_id] = f"Only {available} left for {sku.full_name}"

        if errors:
            logger.info("Stock validation failed", errors=errors)
            return StockValidationResult.failure(errors, warnings, details)
        return StockValidationResult.success(warnings, details)
