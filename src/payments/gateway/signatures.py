"""HMAC-SHA256 signing shared by the gateway adapters.

Razorpay signs ``"<order_id>|<payment_id>"`` with the key secret for client
callbacks, and the raw request body with the webhook secret for webhooks.
Both are hex digests, compared in constant time.
"""

import hashlib
import hmac


def sign(secret: str, message: bytes | str) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_message(provider_order_id: str, payment_id: str) -> str:
    return f"{provider_order_id}|{payment_id}"


def signature_matches(secret: str, message: bytes | str, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign(secret, message), signature)
