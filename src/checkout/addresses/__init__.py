"""Address resolver factory.

Provides get_address_resolver() / set_address_resolver() to swap implementations.
"""

from checkout.addresses.fake_adapter import InMemoryAddressBook
from checkout.addresses.port import AddressResolver

_current_resolver: AddressResolver | None = None


def get_address_resolver() -> AddressResolver:
    """Return the current address resolver. Defaults to InMemoryAddressBook."""
    global _current_resolver
    if _current_resolver is None:
        _current_resolver = InMemoryAddressBook()
    return _current_resolver


def set_address_resolver(resolver: AddressResolver) -> None:
    """Override the active address resolver (useful for tests)."""
    global _current_resolver
    _current_resolver = resolver


def reset_address_resolver() -> None:
    """Reset to default address resolver."""
    global _current_resolver
    _current_resolver = None
