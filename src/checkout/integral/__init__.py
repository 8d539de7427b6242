"""Integral service factory.

Provides get_integral_service() / set_integral_service(). Defaults to the
in-memory ledger; deployments without a points ledger install
UnavailableIntegralService.
"""

from checkout.integral.fake_adapter import InMemoryIntegralService
from checkout.integral.port import IntegralService

_current_service: IntegralService | None = None


def get_integral_service() -> IntegralService:
    """Return the current integral service. Defaults to InMemoryIntegralService."""
    global _current_service
    if _current_service is None:
        _current_service = InMemoryIntegralService()
    return _current_service


def set_integral_service(service: IntegralService) -> None:
    """Override the active integral service (useful for tests)."""
    global _current_service
    _current_service = service


def reset_integral_service() -> None:
    """Reset to default integral service."""
    global _current_service
    _current_service = None
