"""Price calculation engine: an ordered chain of pluggable calculators.

Calculators run by descending priority (ties keep their configured order).
Each supporting calculator contributes a partial PriceResult that is merged
into the running total. Any calculator failure aborts the whole computation;
a partial price is never returned.
"""

from abc import ABC, abstractmethod

import structlog

from checkout.errors import PriceCalculationFailure
from checkout.pricing.items import CalculationContext
from checkout.pricing.result import PriceResult

logger = structlog.get_logger(__name__)


class PriceCalculator(ABC):
    """A single step of the price chain."""

    priority: int = 0
    calculator_type: str = ""

    @abstractmethod
    def supports(self, context: CalculationContext) -> bool: ...

    @abstractmethod
    def calculate(self, context: CalculationContext) -> PriceResult: ...


class PriceCalculationEngine:
    def __init__(self, calculators=()) -> None:
        self._calculators: list[PriceCalculator] = []
        for calculator in calculators:
            self.add_calculator(calculator)

    def add_calculator(self, calculator: PriceCalculator) -> None:
        self._calculators.append(calculator)
        # sorted() is stable, so equal priorities keep insertion order
        self._calculators = sorted(self._calculators, key=lambda c: c.priority, reverse=True)

    @property
    def calculators(self) -> list[PriceCalculator]:
        return list(self._calculators)

    def calculator_for(self, calculator_type: str) -> PriceCalculator | None:
        return next((c for c in self._calculators if c.calculator_type == calculator_type), None)

    def calculate(self, context: CalculationContext) -> PriceResult:
        # A redeem-only order has coupons but no cart items
        if not context.items and not context.applied_coupons:
            return PriceResult.empty()

        result = PriceResult.empty()
        for calculator in self._calculators:
            try:
                if not calculator.supports(context):
                    continue
                partial = calculator.calculate(context)
            except Exception as exc:
                logger.error(
                    "Price calculator failed",
                    calculator=calculator.calculator_type,
                    user_id=context.user_id,
                    error=str(exc),
                )
                raise PriceCalculationFailure(calculator.calculator_type, str(exc)) from exc

            result = result.merge(partial)

        logger.debug(
            "Price calculated",
            user_id=context.user_id,
            original_price=result.original_price,
            final_price=result.final_price,
            discount=result.discount,
        )
        return result
