"""Cart service factory.

Provides get_cart_service() / set_cart_service() to swap implementations.
"""

from ordering.cart.memory_adapter import InMemoryCartService
from ordering.cart.port import CartService

_current_service: CartService | None = None


def get_cart_service() -> CartService:
    """Return the current cart service. Defaults to InMemoryCartService."""
    global _current_service
    if _current_service is None:
        _current_service = InMemoryCartService()
    return _current_service


def set_cart_service(service: CartService) -> None:
    global _current_service
    _current_service = service


def reset_cart_service() -> None:
    global _current_service
    _current_service = None
