"""Catalog store port (abstract interface).

The ordering core reads products and mutates stock only through this
contract, so the order lifecycle never imports catalogue internals and the
backing store can be swapped (in-memory for dev/test, a document store in
production).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProductRecord:
    """Snapshot of a catalogue product as seen by the ordering core."""

    id: str
    name: str
    price: float
    stock: int
    is_active: bool = True
    sku: str | None = None
    images: tuple[str, ...] = field(default_factory=tuple)

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""


class CatalogStore(ABC):
    """Abstract catalog store interface."""

    @abstractmethod
    def find_active_by_id(self, product_id: str) -> ProductRecord:
        """Return the active product or raise ``NotFound``."""
        ...

    @abstractmethod
    def find_many_active_by_ids(self, product_ids: list[str]) -> list[ProductRecord]:
        """Return the active products among ``product_ids``.

        Missing or inactive ids are silently absent from the result; callers
        compare sizes to detect them.
        """
        ...

    @abstractmethod
    def decrement_stock(self, product_id: str, amount: int) -> int:
        """Atomically decrement stock if at least ``amount`` is available.

        Returns the remaining stock. Raises ``InsufficientStock`` when the
        stock at decrement time is below ``amount``.
        """
        ...

    @abstractmethod
    def increment_stock(self, product_id: str, amount: int) -> int:
        """Unconditionally add ``amount`` to stock. Returns the new stock."""
        ...
