"""Order aggregate: the core of the ordering domain.

The Order is a state-stored aggregate. Line items carry a snapshot of the
product (name, price, sku, image) taken at placement time and are never
re-priced afterwards.

State Machine (7 states):
    pending → confirmed → processing → shipped → delivered
    pending | confirmed | processing → cancelled
    shipped | delivered → returned
    cancelled, returned: terminal

Every real status change appends exactly one entry to the timeline. Writing
the current status again is a no-op.

Payment status moves forward only:
    pending → completed | failed
    completed → refunded
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentCompleted,
    PaymentFailed,
    RefundProcessed,
)
from ordering.order.pricing import CouponType
from shared.errors import InvalidTransition

DEFAULT_CANCELLATION_REASON = "Cancelled by customer"
ADMIN_CANCELLATION_REASON = "Cancelled by admin"
DEFAULT_COUNTRY = "India"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentMethod(Enum):
    RAZORPAY = "razorpay"
    STRIPE = "stripe"
    COD = "cod"
    UPI = "upi"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundStatus(Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

# States from which cancellation is allowed
_CANCELLABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

_PINCODE_PATTERN = re.compile(r"^\d{6}$")
_PHONE_PATTERN = re.compile(r"^\d{10}$")


def parse_status(value) -> OrderStatus:
    """Coerce a raw status value, rejecting anything outside the enumeration."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Invalid status: {value}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured at checkout time.

    Immutable once recorded on an Order. ``same_as_shipping`` marks a billing
    address that was copied from the shipping address.
    """

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    pincode = String(required=True, max_length=6)
    country = String(max_length=100, default=DEFAULT_COUNTRY)
    phone = String(required=True, max_length=10)
    same_as_shipping = Boolean(default=False)

    @invariant.post
    def pincode_and_phone_are_well_formed(self):
        if self.pincode and not _PINCODE_PATTERN.match(self.pincode):
            raise ValidationError({"pincode": ["Pincode must be 6 digits"]})
        if self.phone and not _PHONE_PATTERN.match(self.phone):
            raise ValidationError({"phone": ["Phone number must be 10 digits"]})


@ordering.value_object(part_of="Order")
class PaymentInfo:
    """How the order is paid and where the payment stands.

    ``provider_order_id`` is the gateway's order reference (``orderId`` in
    the order document) and is how webhooks find their order.
    """

    method = String(required=True, choices=PaymentMethod)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=255)
    payment_id = String(max_length=255)
    provider_order_id = String(max_length=255)
    signature = String(max_length=255)
    paid_at = DateTime()
    failure_reason = String(max_length=500)


@ordering.value_object(part_of="Order")
class Pricing:
    """Price breakdown locked at placement: total = subtotal + tax + shipping - discount."""

    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    discount = Float(default=0.0)
    total = Float(default=0.0)


@ordering.value_object(part_of="Order")
class Coupon:
    code = String(max_length=50)
    discount = Float(default=0.0)
    type = String(choices=CouponType)


@ordering.value_object(part_of="Order")
class Tracking:
    tracking_number = String(max_length=255)
    courier = String(max_length=100)
    estimated_delivery = DateTime()


@ordering.value_object(part_of="Order")
class Cancellation:
    """Why and when the order was cancelled, and what is owed back."""

    reason = String(max_length=500)
    cancelled_at = DateTime()
    refund_status = String(choices=RefundStatus, default=RefundStatus.PENDING.value)
    refund_amount = Float(default=0.0)


@ordering.value_object(part_of="Order")
class Notes:
    customer = String(max_length=500)
    admin = String(max_length=1000)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line item with the product snapshot taken when the order was placed.

    ``position`` keeps cart order for display. ``restocked`` records that the
    item's quantity went back to the catalogue after cancellation, so an
    interrupted restoration can resume without double-counting.
    """

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    size = String(max_length=20)
    image = String(max_length=1000)
    sku = String(max_length=50)
    position = Integer(default=0)
    restocked = Boolean(default=False)


@ordering.entity(part_of="Order")
class TimelineEntry:
    """One append-only audit entry. ``sequence`` preserves insertion order."""

    status = String(required=True, max_length=20)
    message = String(required=True, max_length=255)
    timestamp = DateTime(required=True)
    sequence = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    user_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    payment_info = ValueObject(PaymentInfo)
    pricing = ValueObject(Pricing)
    coupon = ValueObject(Coupon)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    tracking = ValueObject(Tracking)
    cancellation = ValueObject(Cancellation)
    notes = ValueObject(Notes)
    timeline = HasMany(TimelineEntry)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_matches_breakdown(self):
        if self.pricing is None:
            return
        p = self.pricing
        if p.total < 0:
            raise ValidationError({"pricing": ["Total cannot be negative"]})
        if abs(p.subtotal + p.tax + p.shipping_cost - p.discount - p.total) > 0.005:
            raise ValidationError({"pricing": ["Total does not match the price breakdown"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        user_id,
        items_data,
        shipping_address,
        payment_method,
        pricing,
        billing_address=None,
        coupon=None,
        customer_notes=None,
    ):
        """Create a new order from checkout data.

        Args:
            order_number: Unique human-readable number.
            user_id: The owning user.
            items_data: Ordered list of dicts with product_id, name, price,
                quantity, and optionally size, image, sku.
            shipping_address: Dict of Address fields.
            payment_method: One of ``PaymentMethod`` values.
            pricing: Dict with subtotal, tax, shipping_cost, discount, total.
            billing_address: Dict of Address fields. Falls back to the
                shipping address, flagged ``same_as_shipping``.
            coupon: Optional dict with code, type, discount.
            customer_notes: Free text from the customer.
        """
        if not items_data:
            raise ValidationError({"items": ["Order must contain at least one item"]})

        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError({"payment_method": [f"Invalid payment method: {payment_method}"]}) from None

        now = datetime.now(UTC)
        initial_status = OrderStatus.CONFIRMED if method == PaymentMethod.COD else OrderStatus.PENDING

        if billing_address:
            billing = Address(**billing_address)
        else:
            billing = Address(**{**shipping_address, "same_as_shipping": True})

        order = cls(
            order_number=order_number,
            user_id=user_id,
            items=[
                OrderItem(
                    product_id=item["product_id"],
                    name=item["name"],
                    price=item["price"],
                    quantity=item["quantity"],
                    size=item.get("size"),
                    image=item.get("image"),
                    sku=item.get("sku"),
                    position=position,
                )
                for position, item in enumerate(items_data)
            ],
            shipping_address=Address(**shipping_address),
            billing_address=billing,
            payment_info=PaymentInfo(method=method.value),
            pricing=Pricing(**pricing),
            coupon=Coupon(**coupon) if coupon and coupon.get("code") else None,
            status=initial_status.value,
            notes=Notes(customer=customer_notes) if customer_notes else None,
            created_at=now,
            updated_at=now,
        )
        order._append_timeline(initial_status, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                status=initial_status.value,
                payment_method=method.value,
                item_count=len(items_data),
                items=json.dumps(
                    [{"product_id": str(item["product_id"]), "quantity": item["quantity"]} for item in items_data]
                ),
                total=order.pricing.total,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def ordered_items(self):
        return sorted(self.items, key=lambda item: item.position)

    @property
    def ordered_timeline(self):
        return sorted(self.timeline, key=lambda entry: entry.sequence)

    @property
    def payment_status(self) -> PaymentStatus:
        return PaymentStatus(self.payment_info.status)

    @property
    def age_in_days(self) -> int:
        """Whole days since placement, rounded up."""
        if self.created_at is None:
            return 0
        created = self.created_at if self.created_at.tzinfo else self.created_at.replace(tzinfo=UTC)
        elapsed = datetime.now(UTC) - created
        return -(-int(elapsed.total_seconds()) // 86400)

    def is_owned_by(self, user_id) -> bool:
        return str(self.user_id) == str(user_id)

    def items_awaiting_restock(self):
        if OrderStatus(self.status) != OrderStatus.CANCELLED:
            return []
        return [item for item in self.ordered_items if not item.restocked]

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(current.value, target_status.value)

    def _append_timeline(self, status, timestamp):
        self.add_timeline(
            TimelineEntry(
                status=status.value,
                message=f"Order {status.value}",
                timestamp=timestamp,
                sequence=len(self.timeline) + 1,
            )
        )

    def _change_status(self, target_status) -> bool:
        """Move to ``target_status``. Returns False for a no-op write."""
        current = OrderStatus(self.status)
        if current == target_status:
            return False

        self._assert_can_transition(target_status)

        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self._append_timeline(target_status, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                new_status=target_status.value,
                changed_at=now,
            )
        )
        return True

    def _payment_info_with(self, **changes):
        current = self.payment_info
        values = {
            "method": current.method,
            "status": current.status,
            "transaction_id": current.transaction_id,
            "payment_id": current.payment_id,
            "provider_order_id": current.provider_order_id,
            "signature": current.signature,
            "paid_at": current.paid_at,
            "failure_reason": current.failure_reason,
        }
        values.update({key: value for key, value in changes.items() if value is not None})
        return PaymentInfo(**values)

    def _change_payment_status(self, target, **details) -> bool:
        """Move payment forward. Returns False when already at ``target``."""
        current = self.payment_status
        if current == target:
            return False
        if target not in _PAYMENT_TRANSITIONS[current]:
            raise InvalidTransition(
                current.value,
                target.value,
                detail=f"Cannot move payment from {current.value} to {target.value}",
            )
        self.payment_info = self._payment_info_with(status=target.value, **details)
        self.updated_at = datetime.now(UTC)
        return True

    # -------------------------------------------------------------------
    # Status updates
    # -------------------------------------------------------------------
    def update_status(self, target_status) -> bool:
        """Apply an admin status change. Cancellation takes the full cancel path."""
        target = target_status if isinstance(target_status, OrderStatus) else parse_status(target_status)
        if OrderStatus(self.status) == target:
            return False
        if target == OrderStatus.CANCELLED:
            return self.cancel(ADMIN_CANCELLATION_REASON)

        changed = self._change_status(target)
        if (
            changed
            and target == OrderStatus.DELIVERED
            and PaymentMethod(self.payment_info.method) == PaymentMethod.COD
            and self.payment_status == PaymentStatus.PENDING
        ):
            # Cash is collected on delivery
            self._complete_payment()
        return changed

    def record_tracking(self, tracking_number=None, courier=None, estimated_delivery=None):
        if tracking_number is None and courier is None and estimated_delivery is None:
            return
        current = self.tracking
        self.tracking = Tracking(
            tracking_number=tracking_number if tracking_number is not None else getattr(current, "tracking_number", None),
            courier=courier if courier is not None else getattr(current, "courier", None),
            estimated_delivery=(
                estimated_delivery if estimated_delivery is not None else getattr(current, "estimated_delivery", None)
            ),
        )
        self.updated_at = datetime.now(UTC)

    def add_admin_note(self, note):
        if not note:
            return
        customer = self.notes.customer if self.notes else None
        self.notes = Notes(customer=customer, admin=note)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason=None) -> bool:
        """Cancel the order and record the refund owed.

        Stock restoration is driven by the caller, item by item, through
        ``mark_restocked`` so that a partial failure can be resumed.
        """
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise InvalidTransition(
                current.value,
                OrderStatus.CANCELLED.value,
                detail=f"Order cannot be cancelled in {current.value} status",
            )

        now = datetime.now(UTC)
        paid = self.payment_status == PaymentStatus.COMPLETED
        self.cancellation = Cancellation(
            reason=reason or DEFAULT_CANCELLATION_REASON,
            cancelled_at=now,
            refund_status=RefundStatus.PENDING.value if paid else RefundStatus.PROCESSED.value,
            refund_amount=self.pricing.total if paid else 0.0,
        )
        self._change_status(OrderStatus.CANCELLED)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=self.cancellation.reason,
                refund_status=self.cancellation.refund_status,
                refund_amount=self.cancellation.refund_amount,
                cancelled_at=now,
            )
        )
        return True

    def mark_restocked(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found"]})
        item.restocked = True
        self.updated_at = datetime.now(UTC)

    def record_refund(self):
        """Mark a pending refund as paid out."""
        if self.cancellation is None or self.cancellation.refund_status != RefundStatus.PENDING.value:
            raise ValidationError({"refund": ["No refund is pending for this order"]})

        now = datetime.now(UTC)
        self.cancellation = Cancellation(
            reason=self.cancellation.reason,
            cancelled_at=self.cancellation.cancelled_at,
            refund_status=RefundStatus.PROCESSED.value,
            refund_amount=self.cancellation.refund_amount,
        )
        if self.payment_status == PaymentStatus.COMPLETED:
            self._change_payment_status(PaymentStatus.REFUNDED)
        self.updated_at = now

        self.raise_(
            RefundProcessed(
                order_id=str(self.id),
                order_number=self.order_number,
                amount=self.cancellation.refund_amount,
                processed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def check_payable_online(self):
        """Raise unless a gateway payment can still be started for this order."""
        if PaymentMethod(self.payment_info.method) == PaymentMethod.COD:
            raise ValidationError({"payment_method": ["Cash-on-delivery orders are not paid online"]})
        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            raise InvalidTransition(self.status, OrderStatus.CONFIRMED.value, detail="Cannot pay for a cancelled order")
        if self.payment_status != PaymentStatus.PENDING:
            raise InvalidTransition(
                self.payment_status.value,
                PaymentStatus.PENDING.value,
                detail=f"Payment is already {self.payment_status.value}",
            )

    def attach_provider_order(self, provider_order_id):
        """Record the gateway order created for this order's online payment."""
        self.check_payable_online()
        self.payment_info = self._payment_info_with(provider_order_id=provider_order_id)
        self.updated_at = datetime.now(UTC)

    def confirm_cash_on_delivery(self):
        if PaymentMethod(self.payment_info.method) != PaymentMethod.COD:
            raise ValidationError({"payment_method": ["Order is not a cash-on-delivery order"]})
        if OrderStatus(self.status) == OrderStatus.PENDING:
            self._change_status(OrderStatus.CONFIRMED)

    def _complete_payment(self, **details) -> bool:
        now = datetime.now(UTC)
        if not self._change_payment_status(PaymentStatus.COMPLETED, paid_at=now, **details):
            return False

        self.raise_(
            PaymentCompleted(
                order_id=str(self.id),
                order_number=self.order_number,
                payment_id=self.payment_info.payment_id,
                provider_order_id=self.payment_info.provider_order_id,
                amount=self.pricing.total,
                paid_at=now,
            )
        )
        return True

    def record_payment_completed(self, provider_order_id=None, payment_id=None, signature=None, transaction_id=None):
        """Apply a confirmed payment from either the client callback or a webhook.

        Re-applying a completed payment is a no-op. A pending order becomes
        confirmed. A cancelled order now owes the customer its total.
        """
        changed = self._complete_payment(
            provider_order_id=provider_order_id,
            payment_id=payment_id,
            signature=signature,
            transaction_id=transaction_id,
        )
        if not changed:
            return False

        status = OrderStatus(self.status)
        if status == OrderStatus.PENDING:
            self._change_status(OrderStatus.CONFIRMED)
        elif status == OrderStatus.CANCELLED:
            self.cancellation = Cancellation(
                reason=self.cancellation.reason,
                cancelled_at=self.cancellation.cancelled_at,
                refund_status=RefundStatus.PENDING.value,
                refund_amount=self.pricing.total,
            )
        return True

    def record_payment_failed(self, reason=None, payment_id=None) -> bool:
        changed = self._change_payment_status(PaymentStatus.FAILED, failure_reason=reason, payment_id=payment_id)
        if changed:
            self.raise_(
                PaymentFailed(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    provider_order_id=self.payment_info.provider_order_id,
                    reason=reason,
                )
            )
        return changed
