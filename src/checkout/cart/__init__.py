"""Cart manager factory.

Provides get_cart_manager() / set_cart_manager() to swap implementations.
"""

from checkout.cart.fake_adapter import InMemoryCartManager
from checkout.cart.port import CartManager

_current_manager: CartManager | None = None


def get_cart_manager() -> CartManager:
    """Return the current cart manager. Defaults to InMemoryCartManager."""
    global _current_manager
    if _current_manager is None:
        _current_manager = InMemoryCartManager()
    return _current_manager


def set_cart_manager(manager: CartManager) -> None:
    """Override the active cart manager (useful for tests)."""
    global _current_manager
    _current_manager = manager


def reset_cart_manager() -> None:
    """Reset to default cart manager."""
    global _current_manager
    _current_manager = None
