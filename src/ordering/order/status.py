"""Admin status updates: command and handler."""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.cancellation import restock_and_save
from ordering.order.locking import write_transaction
from ordering.order.order import Order, OrderStatus, parse_status

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    tracking_number = String(max_length=255)
    courier = String(max_length=100)
    estimated_delivery = DateTime()
    admin_notes = String(max_length=1000)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        target = parse_status(command.status)
        with write_transaction():
            repo = current_domain.repository_for(Order)
            order = repo.get(command.order_id)
            previous = order.status

            changed = order.update_status(target)
            order.record_tracking(
                tracking_number=command.tracking_number or None,
                courier=command.courier or None,
                estimated_delivery=command.estimated_delivery,
            )
            order.add_admin_note(command.admin_notes)
            repo.add(order)

        if changed and target == OrderStatus.CANCELLED:
            restock_and_save(order.id)

        logger.info(
            "order_status_updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous,
            new_status=order.status,
            changed=changed,
        )
        return changed
