"""Cart manager port: removes purchased lines from the user's cart."""

from abc import ABC, abstractmethod


class CartManager(ABC):
    @abstractmethod
    def remove_item(self, user_id: str, line_id: str) -> None:
        """Remove a cart line. Removing an unknown line is not an error."""
        ...
