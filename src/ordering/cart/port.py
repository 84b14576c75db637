"""Cart service port.

Carts belong to the user account, which lives outside the ordering core.
Order placement only needs to clear a user's cart once the order exists.
"""

from abc import ABC, abstractmethod


class CartService(ABC):
    """Abstract cart capability."""

    @abstractmethod
    def clear_cart(self, user_id: str) -> None:
        """Remove every item from the user's cart."""
        ...
