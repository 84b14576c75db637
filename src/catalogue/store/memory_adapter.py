"""In-memory catalog store for development and testing.

Check-and-decrement happens under a single lock, which gives the same
guarantee as a conditional update at the storage layer (``stock >= amount``
filter plus ``$inc``): concurrent reservations can never observe a stale
stock value.

Failures can be injected per product to exercise compensation paths.
"""

import threading
from dataclasses import replace

from shared.errors import DuplicateKey, InsufficientStock, NotFound

from catalogue.store.port import CatalogStore, ProductRecord


class InMemoryCatalogStore(CatalogStore):
    """Thread-safe in-memory catalog store."""

    def __init__(self) -> None:
        self._products: dict[str, ProductRecord] = {}
        self._lock = threading.Lock()
        self.fail_decrements_for: set[str] = set()
        self.fail_increments_for: set[str] = set()
        self.calls: list[dict] = []

    # -------------------------------------------------------------------
    # Seeding / admin helpers
    # -------------------------------------------------------------------
    def add_product(
        self,
        product_id: str,
        name: str,
        price: float,
        stock: int,
        is_active: bool = True,
        sku: str | None = None,
        images: tuple[str, ...] | list[str] = (),
    ) -> ProductRecord:
        if price < 0:
            raise ValueError("Price cannot be negative")
        if stock < 0:
            raise ValueError("Stock cannot be negative")

        with self._lock:
            if sku and any(p.sku == sku and p.id != product_id for p in self._products.values()):
                raise DuplicateKey("sku", sku)
            record = ProductRecord(
                id=str(product_id),
                name=name,
                price=price,
                stock=stock,
                is_active=is_active,
                sku=sku,
                images=tuple(images),
            )
            self._products[record.id] = record
            return record

    def set_price(self, product_id: str, price: float) -> None:
        with self._lock:
            self._products[product_id] = replace(self._require(product_id), price=price)

    def set_active(self, product_id: str, is_active: bool) -> None:
        with self._lock:
            self._products[product_id] = replace(self._require(product_id), is_active=is_active)

    def stock_of(self, product_id: str) -> int:
        with self._lock:
            return self._require(product_id).stock

    # -------------------------------------------------------------------
    # CatalogStore
    # -------------------------------------------------------------------
    def find_active_by_id(self, product_id: str) -> ProductRecord:
        with self._lock:
            record = self._products.get(str(product_id))
        if record is None or not record.is_active:
            raise NotFound(f"Product {product_id} does not exist or is inactive")
        return record

    def find_many_active_by_ids(self, product_ids: list[str]) -> list[ProductRecord]:
        wanted = {str(pid) for pid in product_ids}
        with self._lock:
            return [p for pid, p in self._products.items() if pid in wanted and p.is_active]

    def decrement_stock(self, product_id: str, amount: int) -> int:
        product_id = str(product_id)
        self.calls.append({"method": "decrement_stock", "product_id": product_id, "amount": amount})
        if product_id in self.fail_decrements_for:
            raise ConnectionError(f"Simulated store failure decrementing {product_id}")

        with self._lock:
            record = self._require(product_id)
            if record.stock < amount:
                raise InsufficientStock(product_id, requested=amount, available=record.stock, name=record.name)
            self._products[product_id] = replace(record, stock=record.stock - amount)
            return record.stock - amount

    def increment_stock(self, product_id: str, amount: int) -> int:
        product_id = str(product_id)
        self.calls.append({"method": "increment_stock", "product_id": product_id, "amount": amount})
        if product_id in self.fail_increments_for:
            raise ConnectionError(f"Simulated store failure incrementing {product_id}")

        with self._lock:
            record = self._require(product_id)
            self._products[product_id] = replace(record, stock=record.stock + amount)
            return record.stock + amount

    def _require(self, product_id: str) -> ProductRecord:
        record = self._products.get(product_id)
        if record is None:
            raise NotFound(f"Product {product_id} does not exist")
        return record
