"""Order payment and reconciliation: commands and handler.

Two independent channels can report the same payment: the client callback
(``VerifyPayment``) and the gateway webhook (``ProcessPaymentWebhook``).
Both funnel into ``Order.record_payment_completed`` /
``Order.record_payment_failed``, whose forward-only payment transitions make
reconciliation idempotent: a repeated confirmation is a no-op and a late
failure never downgrades a completed payment. Each channel loads, changes
and commits the order inside ``write_transaction``, so whichever arrives
second reads what the first one committed.

Signatures are checked before any order is changed, so a tampered request
never mutates state.
"""

import hashlib
import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.locking import write_transaction
from ordering.order.order import Order, PaymentStatus
from ordering.order.queries import get_order
from ordering.order.webhook import ProcessedWebhookEvent
from payments.gateway import get_gateway
from shared.errors import InvalidTransition, SignatureMismatch, ValidationError

logger = structlog.get_logger(__name__)

CURRENCY = "INR"
MAX_RECONCILIATION_ATTEMPTS = 3

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"


@ordering.command(part_of="Order")
class InitiatePayment:
    """Create the gateway order the client pays against."""

    order_id = Identifier(required=True)
    requesting_user_id = Identifier(required=True)
    is_admin = Boolean(default=False)


@ordering.command(part_of="Order")
class VerifyPayment:
    order_id = Identifier(required=True)
    requesting_user_id = Identifier(required=True)
    provider_order_id = String(required=True, max_length=255)
    payment_id = String(required=True, max_length=255)
    signature = String(required=True, max_length=255)
    is_admin = Boolean(default=False)


@ordering.command(part_of="Order")
class ProcessPaymentWebhook:
    raw_body = Text(required=True)
    signature = String(max_length=255)
    event_id = String(max_length=255)


@ordering.command(part_of="Order")
class ProcessCashOnDelivery:
    order_id = Identifier(required=True)
    requesting_user_id = Identifier(required=True)
    is_admin = Boolean(default=False)


def process_with_retry(command, attempts: int = MAX_RECONCILIATION_ATTEMPTS):
    """Process ``command``, retrying when the store reports a version conflict.

    Writers are serialized by ``write_transaction`` inside this process. A
    conflict can still come from a writer elsewhere, and the forward-only
    payment transitions turn the re-applied command into a no-op.
    """
    for attempt in range(1, attempts + 1):
        try:
            return current_domain.process(command, asynchronous=False)
        except ExpectedVersionError:
            if attempt == attempts:
                raise
            logger.warning("reconciliation_conflict", command=type(command).__name__, attempt=attempt)


def webhook_event_id(raw_body: bytes, header_value: str | None = None) -> str:
    """The gateway's event id, or a digest of the body when none was sent."""
    return header_value or hashlib.sha256(raw_body).hexdigest()


def _parse_webhook(raw_body: bytes) -> dict:
    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise ValidationError({"body": ["Webhook body is not valid JSON"]}) from None
    if not isinstance(payload, dict):
        raise ValidationError({"body": ["Webhook body must be a JSON object"]})
    return payload


def _payment_entity(payload: dict) -> dict | None:
    """``payload.payment.entity``, or None when any level is not an object."""
    entity = payload.get("payload")
    for key in ("payment", "entity"):
        if not isinstance(entity, dict):
            return None
        entity = entity.get(key)
    return entity if isinstance(entity, dict) else None


@ordering.command_handler(part_of=Order)
class PaymentHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        with write_transaction():
            order = get_order(command.order_id, command.requesting_user_id, is_admin=command.is_admin)
            order.check_payable_online()
            amount = int(round(order.pricing.total * 100))

            provider_order = get_gateway().create_order(amount=amount, currency=CURRENCY, receipt=order.order_number)
            order.attach_provider_order(provider_order.id)
            current_domain.repository_for(Order).add(order)

        logger.info(
            "payment_initiated",
            order_id=str(order.id),
            provider_order_id=provider_order.id,
            amount=amount,
        )
        return {
            "provider_order_id": provider_order.id,
            "amount": provider_order.amount,
            "currency": provider_order.currency,
            "key_id": get_gateway().key_id,
        }

    @handle(VerifyPayment)
    def verify_payment(self, command):
        with write_transaction():
            order = get_order(command.order_id, command.requesting_user_id, is_admin=command.is_admin)

            if not get_gateway().verify_payment_signature(
                command.provider_order_id, command.payment_id, command.signature
            ):
                logger.warning(
                    "payment_signature_mismatch",
                    order_id=str(order.id),
                    provider_order_id=command.provider_order_id,
                )
                raise SignatureMismatch("Invalid payment signature")

            recorded = order.payment_info.provider_order_id
            if recorded and recorded != command.provider_order_id:
                raise ValidationError({"provider_order_id": ["Payment does not belong to this order"]})

            changed = order.record_payment_completed(
                provider_order_id=command.provider_order_id,
                payment_id=command.payment_id,
                signature=command.signature,
            )
            current_domain.repository_for(Order).add(order)

        logger.info("payment_verified", order_id=str(order.id), payment_id=command.payment_id, changed=changed)
        return changed

    @handle(ProcessCashOnDelivery)
    def process_cash_on_delivery(self, command):
        with write_transaction():
            order = get_order(command.order_id, command.requesting_user_id, is_admin=command.is_admin)
            order.confirm_cash_on_delivery()
            current_domain.repository_for(Order).add(order)
        logger.info("cod_order_confirmed", order_id=str(order.id), status=order.status)

    @handle(ProcessPaymentWebhook)
    def process_webhook(self, command):
        raw_body = command.raw_body.encode("utf-8")
        if not get_gateway().verify_webhook_signature(raw_body, command.signature):
            logger.warning("webhook_signature_mismatch")
            raise SignatureMismatch("Invalid webhook signature")

        event_id = webhook_event_id(raw_body, command.event_id)
        payload = _parse_webhook(raw_body)
        event_type = payload.get("event")
        entity = _payment_entity(payload)
        provider_order_id = entity.get("order_id") if entity else None

        with write_transaction():
            log_repo = current_domain.repository_for(ProcessedWebhookEvent)
            if log_repo._dao.query.filter(event_id=event_id).all().items:
                logger.info("webhook_duplicate", event_id=event_id)
                return "duplicate"

            outcome = self._apply(event_type, entity, provider_order_id)

            log_repo.add(
                ProcessedWebhookEvent(
                    event_id=event_id,
                    event_type=event_type,
                    provider_order_id=provider_order_id,
                    outcome=outcome,
                    received_at=datetime.now(UTC),
                )
            )

        logger.info(
            "webhook_processed",
            event_id=event_id,
            event_type=event_type,
            provider_order_id=provider_order_id,
            outcome=outcome,
        )
        return outcome

    def _apply(self, event_type, entity, provider_order_id):
        if event_type not in (PAYMENT_CAPTURED, PAYMENT_FAILED) or entity is None:
            return "ignored"

        repo = current_domain.repository_for(Order)
        found = repo.find_by_provider_order_id(provider_order_id) if provider_order_id else None
        if found is None:
            logger.warning("webhook_order_not_found", provider_order_id=provider_order_id, event_type=event_type)
            return "unknown_order"

        order = repo.get(found.id)
        try:
            if event_type == PAYMENT_CAPTURED:
                changed = order.record_payment_completed(
                    provider_order_id=provider_order_id,
                    payment_id=entity.get("id"),
                )
            else:
                changed = order.record_payment_failed(
                    reason=entity.get("error_description"),
                    payment_id=entity.get("id"),
                )
        except InvalidTransition as exc:
            self._log_stale(order, event_type, entity, exc)
            return "stale"

        if not changed:
            return "unchanged"

        repo.add(order)
        return "captured" if event_type == PAYMENT_CAPTURED else "failed"

    def _log_stale(self, order, event_type, entity, exc):
        if event_type == PAYMENT_CAPTURED and order.payment_info.status == PaymentStatus.FAILED.value:
            # Money was taken against a payment already recorded as failed
            logger.error(
                "payment_captured_after_failure",
                order_id=str(order.id),
                order_number=order.order_number,
                provider_order_id=order.payment_info.provider_order_id,
                payment_id=entity.get("id"),
                amount=order.pricing.total,
                order_status=order.status,
            )
            return
        logger.info(
            "webhook_stale_event",
            order_id=str(order.id),
            event_type=event_type,
            payment_status=order.payment_info.status,
            detail=exc.messages,
        )
