"""Product catalog factory.

Provides get_catalog() / set_catalog() to swap implementations. The default
InMemoryCatalog implements the catalog, stock and stock-operator ports.
"""

from checkout.catalog.fake_adapter import InMemoryCatalog

_current_catalog: InMemoryCatalog | None = None


def get_catalog():
    """Return the current catalog adapter. Defaults to InMemoryCatalog."""
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = InMemoryCatalog()
    return _current_catalog


def set_catalog(catalog) -> None:
    """Override the active catalog (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to default catalog."""
    global _current_catalog
    _current_catalog = None
