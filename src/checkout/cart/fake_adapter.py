"""In-memory cart manager for development and testing."""

from checkout.cart.port import CartManager


class InMemoryCartManager(CartManager):
    def __init__(self) -> None:
        self.lines: dict[str, set[str]] = {}
        self.calls: list[dict] = []
        self.should_succeed: bool = True

    def configure(self, should_succeed: bool) -> None:
        self.should_succeed = should_succeed

    def add_line(self, user_id: str, line_id: str) -> None:
        self.lines.setdefault(str(user_id), set()).add(str(line_id))

    def remove_item(self, user_id: str, line_id: str) -> None:
        self.calls.append({"method": "remove_item", "user_id": user_id, "line_id": line_id})
        if not self.should_succeed:
            raise RuntimeError("Cart service unavailable")
        self.lines.get(str(user_id), set()).discard(str(line_id))
