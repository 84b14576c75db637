"""Razorpay payment gateway adapter.

Orders are created and signatures checked through the official ``razorpay``
client. Signature checks are local HMAC comparisons and need no network call.
"""

import razorpay
import structlog
from razorpay.errors import SignatureVerificationError

from payments.gateway.port import PaymentGateway, ProviderOrder

logger = structlog.get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    """Production Razorpay gateway adapter.

    ``client`` defaults to a ``razorpay.Client`` authenticated with the key
    pair; tests hand in one whose order resource is replaced.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        timeout: float = 10.0,
        client: razorpay.Client | None = None,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount: int, currency: str, receipt: str) -> ProviderOrder:
        data = self.client.order.create(
            data={"amount": amount, "currency": currency, "receipt": receipt},
            timeout=self.timeout,
        )

        logger.info("razorpay_order_created", provider_order_id=data["id"], amount=amount, receipt=receipt)
        return ProviderOrder(
            id=data["id"],
            amount=data.get("amount", amount),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
            status=data.get("status", "created"),
        )

    def verify_payment_signature(self, provider_order_id: str, payment_id: str, signature: str) -> bool:
        if not signature:
            return False
        try:
            return bool(
                self.client.utility.verify_payment_signature(
                    {
                        "razorpay_order_id": provider_order_id,
                        "razorpay_payment_id": payment_id,
                        "razorpay_signature": signature,
                    }
                )
            )
        except SignatureVerificationError:
            return False

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        if not signature or not self.webhook_secret:
            return False
        try:
            return bool(
                self.client.utility.verify_webhook_signature(
                    payload.decode("utf-8"), signature, self.webhook_secret
                )
            )
        except (SignatureVerificationError, UnicodeDecodeError):
            return False
