"""Configurable fake payment gateway for development and testing.

This adapter simulates Razorpay without any external calls. Signatures are
real HMAC-SHA256 digests over test secrets, so tests can produce valid
callbacks with ``sign_payment`` / ``sign_webhook`` and tampered ones fail
exactly as they would in production.
"""

from uuid import uuid4

from payments.gateway.port import PaymentGateway, ProviderOrder
from payments.gateway.signatures import payment_message, sign, signature_matches


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(
        self,
        key_id: str = "rzp_test_fake",
        key_secret: str = "test_key_secret",
        webhook_secret: str = "test_webhook_secret",
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_order(self, amount: int, currency: str, receipt: str) -> ProviderOrder:
        self.calls.append({"method": "create_order", "amount": amount, "currency": currency, "receipt": receipt})

        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        return ProviderOrder(
            id=f"order_fake_{uuid4().hex[:14]}",
            amount=amount,
            currency=currency,
            receipt=receipt,
        )

    def verify_payment_signature(self, provider_order_id: str, payment_id: str, signature: str) -> bool:
        self.calls.append({"method": "verify_payment_signature", "provider_order_id": provider_order_id})
        return signature_matches(self.key_secret, payment_message(provider_order_id, payment_id), signature)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        self.calls.append({"method": "verify_webhook_signature"})
        return signature_matches(self.webhook_secret, payload, signature)

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def sign_payment(self, provider_order_id: str, payment_id: str) -> str:
        return sign(self.key_secret, payment_message(provider_order_id, payment_id))

    def sign_webhook(self, payload: bytes) -> str:
        return sign(self.webhook_secret, payload)
