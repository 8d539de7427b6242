"""In-memory catalog and stock adapter for development and testing.

Implements all three catalog ports over plain dictionaries. Stock locks
decrement the available quantity and are recorded in ``calls``.
"""

from checkout.catalog.port import ProductCatalog, Sku, StockOperator, StockService


class InMemoryCatalog(ProductCatalog, StockService, StockOperator):
    def __init__(self) -> None:
        self.skus: dict[str, Sku] = {}
        self.stock: dict[str, int] = {}
        self.locked: dict[str, int] = {}
        self.calls: list[dict] = []
        self.fail_locks: bool = False

    def add_sku(self, sku: Sku, stock: int = 100) -> Sku:
        self.skus[str(sku.id)] = sku
        self.stock[str(sku.id)] = stock
        return sku

    def set_stock(self, sku_id: str, quantity: int) -> None:
        self.stock[str(sku_id)] = quantity

    def configure(self, fail_locks: bool) -> None:
        """Make subsequent ``lock_stock`` calls fail."""
        self.fail_locks = fail_locks

    def get_sku(self, sku_id: str) -> Sku | None:
        return self.skus.get(str(sku_id))

    def get_available_stock(self, sku: Sku) -> int:
        return self.stock.get(str(sku.id), 0)

    def lock_stock(self, sku: Sku, quantity: int, reference: str) -> None:
        self.calls.append({"method": "lock_stock", "sku_id": sku.id, "quantity": quantity, "reference": reference})
        if self.fail_locks:
            raise RuntimeError(f"Stock service unavailable for {sku.id}")
        self.stock[str(sku.id)] = self.stock.get(str(sku.id), 0) - quantity
        self.locked[str(sku.id)] = self.locked.get(str(sku.id), 0) + quantity
