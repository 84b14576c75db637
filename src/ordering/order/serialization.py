"""Order document mapping.

Clients read orders as camelCase documents (``orderNumber``, ``paymentInfo``,
``shippingCost`` ...). ``order_to_document`` renders an Order that way and
``order_from_document`` rebuilds an equal Order from such a document, with
items and timeline entries in their original order.
"""

from datetime import datetime

from ordering.order.order import (
    Address,
    Cancellation,
    Coupon,
    Notes,
    Order,
    OrderItem,
    PaymentInfo,
    Pricing,
    TimelineEntry,
    Tracking,
)

_ADDRESS_KEYS = {
    "first_name": "firstName",
    "last_name": "lastName",
    "address_line1": "addressLine1",
    "address_line2": "addressLine2",
    "city": "city",
    "state": "state",
    "pincode": "pincode",
    "country": "country",
    "phone": "phone",
    "same_as_shipping": "sameAsShipping",
}

_PAYMENT_KEYS = {
    "method": "method",
    "status": "status",
    "transaction_id": "transactionId",
    "payment_id": "paymentId",
    "provider_order_id": "orderId",
    "signature": "signature",
    "paid_at": "paidAt",
    "failure_reason": "failureReason",
}

_PRICING_KEYS = {
    "subtotal": "subtotal",
    "tax": "tax",
    "shipping_cost": "shippingCost",
    "discount": "discount",
    "total": "total",
}

_COUPON_KEYS = {"code": "code", "discount": "discount", "type": "type"}

_TRACKING_KEYS = {
    "tracking_number": "trackingNumber",
    "courier": "courier",
    "estimated_delivery": "estimatedDelivery",
}

_CANCELLATION_KEYS = {
    "reason": "reason",
    "cancelled_at": "cancelledAt",
    "refund_status": "refundStatus",
    "refund_amount": "refundAmount",
}

_NOTES_KEYS = {"customer": "customer", "admin": "admin"}

_DATETIME_ATTRS = {"paid_at", "estimated_delivery", "cancelled_at"}


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else value


def _parse_datetime(value):
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _dump(value_object, keys):
    if value_object is None:
        return None
    return {key: _iso(getattr(value_object, attr)) for attr, key in keys.items()}


def _load(document, keys, cls):
    if not document:
        return None
    values = {}
    for attr, key in keys.items():
        if key not in document:
            continue
        value = document[key]
        values[attr] = _parse_datetime(value) if attr in _DATETIME_ATTRS else value
    return cls(**values)


def address_to_document(address):
    return _dump(address, _ADDRESS_KEYS)


def address_from_document(document) -> dict:
    """camelCase address document to Address keyword arguments."""
    return {attr: document[key] for attr, key in _ADDRESS_KEYS.items() if document.get(key) is not None}


def order_to_document(order: Order) -> dict:
    return {
        "id": str(order.id),
        "orderNumber": order.order_number,
        "user": str(order.user_id),
        "items": [
            {
                "id": str(item.id),
                "product": str(item.product_id),
                "name": item.name,
                "price": item.price,
                "quantity": item.quantity,
                "size": item.size,
                "image": item.image,
                "sku": item.sku,
                "restocked": item.restocked,
            }
            for item in order.ordered_items
        ],
        "shippingAddress": _dump(order.shipping_address, _ADDRESS_KEYS),
        "billingAddress": _dump(order.billing_address, _ADDRESS_KEYS),
        "paymentInfo": _dump(order.payment_info, _PAYMENT_KEYS),
        "pricing": _dump(order.pricing, _PRICING_KEYS),
        "coupon": _dump(order.coupon, _COUPON_KEYS),
        "status": order.status,
        "tracking": _dump(order.tracking, _TRACKING_KEYS),
        "cancellation": _dump(order.cancellation, _CANCELLATION_KEYS),
        "notes": _dump(order.notes, _NOTES_KEYS),
        "timeline": [
            {"status": entry.status, "message": entry.message, "timestamp": _iso(entry.timestamp)}
            for entry in order.ordered_timeline
        ],
        "createdAt": _iso(order.created_at),
        "updatedAt": _iso(order.updated_at),
        "orderAge": order.age_in_days,
    }


def order_from_document(document: dict) -> Order:
    return Order(
        id=document["id"],
        order_number=document["orderNumber"],
        user_id=document["user"],
        items=[
            OrderItem(
                id=item["id"],
                product_id=item["product"],
                name=item["name"],
                price=item["price"],
                quantity=item["quantity"],
                size=item.get("size"),
                image=item.get("image"),
                sku=item.get("sku"),
                position=position,
                restocked=item.get("restocked", False),
            )
            for position, item in enumerate(document["items"])
        ],
        shipping_address=_load(document.get("shippingAddress"), _ADDRESS_KEYS, Address),
        billing_address=_load(document.get("billingAddress"), _ADDRESS_KEYS, Address),
        payment_info=_load(document.get("paymentInfo"), _PAYMENT_KEYS, PaymentInfo),
        pricing=_load(document.get("pricing"), _PRICING_KEYS, Pricing),
        coupon=_load(document.get("coupon"), _COUPON_KEYS, Coupon),
        status=document["status"],
        tracking=_load(document.get("tracking"), _TRACKING_KEYS, Tracking),
        cancellation=_load(document.get("cancellation"), _CANCELLATION_KEYS, Cancellation),
        notes=_load(document.get("notes"), _NOTES_KEYS, Notes),
        timeline=[
            TimelineEntry(
                status=entry["status"],
                message=entry["message"],
                timestamp=_parse_datetime(entry["timestamp"]),
                sequence=sequence,
            )
            for sequence, entry in enumerate(document.get("timeline", []), start=1)
        ],
        created_at=_parse_datetime(document.get("createdAt")),
        updated_at=_parse_datetime(document.get("updatedAt")),
    )
