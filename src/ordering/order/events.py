"""Domain events for the Order aggregate.

Events are versioned, immutable facts raised alongside state changes. They
are written to the event store when the unit of work commits and can feed
projections or notification handlers.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A new order was placed and its stock reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    status = String(required=True)
    payment_method = String(required=True)
    item_count = Integer(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    total = Float(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved from one lifecycle status to another."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled. Stock restoration follows."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String(required=True)
    refund_status = String(required=True)
    refund_amount = Float(required=True)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentCompleted:
    """The payment provider confirmed the payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    payment_id = String()
    provider_order_id = String()
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    """The payment provider reported a failed payment attempt."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    provider_order_id = String()
    reason = String()


@ordering.event(part_of="Order")
class RefundProcessed:
    """A pending refund on a cancelled order was paid out."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    processed_at = DateTime(required=True)
