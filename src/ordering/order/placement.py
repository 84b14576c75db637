"""Order placement: command and handler.

Placing an order reserves stock, prices the snapshot, draws an order number,
persists the order and clears the user's cart. If anything after the
reservation fails, the reservation is released before the error propagates,
so a rejected order never holds stock.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from catalogue.store import get_catalog_store
from ordering.cart import get_cart_service
from ordering.config import load_pricing_policy, order_number_prefix
from ordering.domain import ordering
from ordering.order.locking import write_transaction
from ordering.order.numbering import OrderNumberGenerator, get_sequence_counter
from ordering.order.order import Order, PaymentMethod
from ordering.order.pricing import calculate_pricing, make_coupon
from ordering.order.stock import reserve_stock
from shared.errors import ValidationError

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity, size}
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    payment_method = String(required=True, choices=PaymentMethod)
    coupon = Text()  # JSON: {code, type, discount}
    customer_notes = String(max_length=500)


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


def _validate_lines(items):
    if not items:
        raise ValidationError({"items": ["Order must contain at least one item"]})
    for index, item in enumerate(items):
        if not item.get("product_id"):
            raise ValidationError({f"items[{index}].product_id": ["Product is required"]})
        quantity = item.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({f"items[{index}].quantity": ["Quantity must be at least 1"]})


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items = _loads(command.items)
        _validate_lines(items)

        coupon_data = _loads(command.coupon) if command.coupon else None
        coupon = None
        if coupon_data and coupon_data.get("code"):
            coupon = make_coupon(coupon_data["code"], coupon_data.get("type"), coupon_data.get("discount"))

        store = get_catalog_store()
        reservation = reserve_stock(store, [(item["product_id"], item["quantity"]) for item in items])

        try:
            lines = []
            for item in items:
                product = reservation.products[str(item["product_id"])]
                lines.append(
                    {
                        "product_id": product.id,
                        "name": product.name,
                        "price": product.price,
                        "quantity": item["quantity"],
                        "size": item.get("size"),
                        "image": product.primary_image,
                        "sku": product.sku,
                    }
                )

            breakdown = calculate_pricing(
                [(line["price"], line["quantity"]) for line in lines],
                coupon=coupon,
                policy=load_pricing_policy(),
            )

            with write_transaction():
                repo = current_domain.repository_for(Order)
                generator = OrderNumberGenerator(
                    prefix=order_number_prefix(),
                    counter=get_sequence_counter(),
                    is_taken=repo.order_number_taken,
                )

                order = Order.place(
                    order_number=generator.next_number(),
                    user_id=command.user_id,
                    items_data=lines,
                    shipping_address=_loads(command.shipping_address),
                    billing_address=_loads(command.billing_address) if command.billing_address else None,
                    payment_method=command.payment_method,
                    pricing=breakdown.as_floats(),
                    coupon=(
                        {"code": coupon.code, "type": coupon.type, "discount": float(coupon.discount)}
                        if coupon
                        else None
                    ),
                    customer_notes=command.customer_notes,
                )
                repo.add(order)

                # A cart failure rolls the new order back
                get_cart_service().clear_cart(str(command.user_id))
        except Exception:
            logger.warning("order_placement_aborted", user_id=str(command.user_id), releasing=len(reservation.applied))
            reservation.release()
            raise

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(command.user_id),
            total=order.pricing.total,
        )
        return str(order.id)
