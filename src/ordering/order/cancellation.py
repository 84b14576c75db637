"""Order cancellation, stock restoration and refunds: commands and handler.

Cancelling commits the new status and the refund owed first, and only then
returns each item's quantity to the catalogue, so of two concurrent cancels
the loser fails its transition check before touching stock. Items are
flagged as they are restocked, and the order is saved even if restoration
stops part-way, so ``RestoreCancelledStock`` can finish the job later
without restoring anything twice.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from catalogue.store import get_catalog_store
from ordering.domain import ordering
from ordering.order.locking import write_transaction
from ordering.order.order import Order
from ordering.order.queries import get_order
from ordering.order.stock import restore_stock

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requesting_user_id = Identifier(required=True)
    reason = String(max_length=500)
    is_admin = Boolean(default=False)


@ordering.command(part_of="Order")
class RestoreCancelledStock:
    """Resume a stock restoration that stopped part-way."""

    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class RecordRefund:
    """Mark the pending refund of a cancelled order as paid out."""

    order_id = Identifier(required=True)


def restock_and_save(order_id) -> int:
    """Restore stock for a cancelled order and persist it, whatever happens.

    Runs in its own transaction after the cancellation has been committed, so
    a concurrent cancel of the same order has already failed its transition
    check and never restocks. Returns how many items still await restoration.
    """
    with write_transaction():
        repo = current_domain.repository_for(Order)
        order = repo.get(order_id)
        try:
            restore_stock(get_catalog_store(), order)
        except Exception:
            logger.exception(
                "stock_restoration_incomplete",
                order_id=str(order.id),
                order_number=order.order_number,
                remaining=len(order.items_awaiting_restock()),
            )
        repo.add(order)
        return len(order.items_awaiting_restock())


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        with write_transaction():
            order = get_order(command.order_id, command.requesting_user_id, is_admin=command.is_admin)
            order.cancel(reason=command.reason)
            current_domain.repository_for(Order).add(order)
        remaining = restock_and_save(order.id)

        logger.info(
            "order_cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            refund_status=order.cancellation.refund_status,
            items_awaiting_restock=remaining,
        )
        return remaining

    @handle(RestoreCancelledStock)
    def restore_cancelled_stock(self, command):
        return restock_and_save(command.order_id)

    @handle(RecordRefund)
    def record_refund(self, command):
        with write_transaction():
            repo = current_domain.repository_for(Order)
            order = repo.get(command.order_id)
            order.record_refund()
            repo.add(order)
        logger.info("refund_processed", order_id=str(order.id), amount=order.cancellation.refund_amount)
