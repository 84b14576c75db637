"""Stock reservation and restoration against the catalog store.

Reservation is all-or-nothing across a multi-item order:

1. Validate every product in one batch lookup. A missing or inactive product
   fails the whole order before any mutation.
2. Check every requested quantity against that fresh read.
3. Decrement each product with the store's conditional decrement. If one
   fails (a concurrent order took the stock, or the store errored), the
   decrements already applied are compensated with increments.

The returned ``StockReservation`` can also be released by the caller when a
later step of order placement fails.
"""

from collections import OrderedDict
from dataclasses import dataclass, field

import structlog

from catalogue.store import CatalogStore, ProductRecord
from shared.errors import InsufficientStock, NotFound

logger = structlog.get_logger(__name__)


@dataclass
class StockReservation:
    """Decrements applied for one order, in application order."""

    store: CatalogStore
    products: dict[str, ProductRecord]
    applied: list[tuple[str, int]] = field(default_factory=list)

    def release(self) -> None:
        """Give back every applied decrement, newest first.

        A failed increment is logged with enough context to repair stock by
        hand and does not stop the remaining increments.
        """
        while self.applied:
            product_id, quantity = self.applied.pop()
            try:
                self.store.increment_stock(product_id, quantity)
            except Exception:
                logger.exception("stock_release_failed", product_id=product_id, quantity=quantity)
            else:
                logger.info("stock_released", product_id=product_id, quantity=quantity)


def _quantities_by_product(lines) -> "OrderedDict[str, int]":
    wanted: OrderedDict[str, int] = OrderedDict()
    for product_id, quantity in lines:
        wanted[str(product_id)] = wanted.get(str(product_id), 0) + int(quantity)
    return wanted


def reserve_stock(store: CatalogStore, lines) -> StockReservation:
    """Reserve stock for ``(product_id, quantity)`` lines, or nothing at all.

    Lines for the same product (different sizes) are reserved together.

    Raises:
        NotFound: some product is missing or inactive.
        InsufficientStock: some product lacks the requested quantity.
    """
    wanted = _quantities_by_product(lines)

    products = {p.id: p for p in store.find_many_active_by_ids(list(wanted))}
    if len(products) != len(wanted):
        missing = [pid for pid in wanted if pid not in products]
        raise NotFound(f"Products not found or inactive: {', '.join(missing)}")

    for product_id, quantity in wanted.items():
        product = products[product_id]
        if product.stock < quantity:
            raise InsufficientStock(product_id, requested=quantity, available=product.stock, name=product.name)

    reservation = StockReservation(store=store, products=products)
    for product_id, quantity in wanted.items():
        try:
            store.decrement_stock(product_id, quantity)
        except Exception as exc:
            logger.warning(
                "stock_reservation_failed",
                product_id=product_id,
                quantity=quantity,
                error=str(exc),
                compensating=len(reservation.applied),
            )
            reservation.release()
            raise
        reservation.applied.append((product_id, quantity))

    logger.info("stock_reserved", products=len(wanted))
    return reservation


def restore_stock(store: CatalogStore, order) -> int:
    """Return each not-yet-restocked item's quantity to the catalogue.

    Items are marked ``restocked`` one at a time, so after a failure the
    order records exactly which quantities went back. Returns the number of
    items restored by this call.
    """
    restored = 0
    for item in order.items_awaiting_restock():
        store.increment_stock(str(item.product_id), item.quantity)
        order.mark_restocked(item.id)
        restored += 1
        logger.info(
            "stock_restored",
            order_id=str(order.id),
            product_id=str(item.product_id),
            quantity=item.quantity,
        )
    return restored
