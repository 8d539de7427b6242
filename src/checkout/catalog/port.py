"""Product catalog and stock ports (abstract interfaces).

The checkout pipeline never owns product or inventory data. It reads SKUs and
available quantities through these ports and asks the stock operator to
reserve quantities once an order is committed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Sku:
    """A purchasable variant as seen by checkout.

    ``price`` is the cash unit price as a decimal string, ``weight`` is the
    unit weight in kg, ``integral_price`` is the unit cost in loyalty points.
    """

    id: str
    spu_id: str
    name: str
    price: str
    code: str = ""
    spu_name: str | None = None
    category_id: str | None = None
    integral_price: int = 0
    weight: str = "0.000"
    shipping_template_id: str | None = None
    thumbnail: str | None = None
    specifications: str | None = None
    is_active: bool = True
    spu_active: bool = True

    @property
    def full_name(self) -> str:
        if self.spu_name and self.spu_name != self.name:
            return f"{self.spu_name} {self.name}"
        return self.name


class ProductCatalog(ABC):
    @abstractmethod
    def get_sku(self, sku_id: str) -> Sku | None:
        """Load a SKU by id, or None when it does not exist."""
        ...


class StockService(ABC):
    @abstractmethod
    def get_available_stock(self, sku: Sku) -> int:
        """Return the quantity currently available for sale."""
        ...


class StockOperator(ABC):
    @abstractmethod
    def lock_stock(self, sku: Sku, quantity: int, reference: str) -> None:
        """Reserve ``quantity`` units for the order identified by ``reference``."""
        ...
