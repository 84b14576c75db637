"""In-memory cart service for development and testing."""

import threading

from ordering.cart.port import CartService


class InMemoryCartService(CartService):
    def __init__(self) -> None:
        self._carts: dict[str, list[dict]] = {}
        self._lock = threading.Lock()
        self.should_fail: bool = False

    def add_item(self, user_id: str, product_id: str, quantity: int, size: str | None = None) -> None:
        with self._lock:
            self._carts.setdefault(str(user_id), []).append(
                {"product": str(product_id), "quantity": quantity, "size": size}
            )

    def items_for(self, user_id: str) -> list[dict]:
        with self._lock:
            return list(self._carts.get(str(user_id), []))

    def clear_cart(self, user_id: str) -> None:
        if self.should_fail:
            raise ConnectionError(f"Simulated failure clearing cart of {user_id}")
        with self._lock:
            self._carts[str(user_id)] = []
