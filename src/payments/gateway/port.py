"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and RazorpayGateway
(production) without changing any domain or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderOrder:
    """An order created on the gateway side, to be paid by the client."""

    id: str
    amount: int  # smallest currency unit (paise)
    currency: str
    receipt: str | None = None
    status: str = "created"


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    key_id: str = ""

    @abstractmethod
    def create_order(self, amount: int, currency: str, receipt: str) -> ProviderOrder:
        """Create a gateway order for ``amount`` in the smallest currency unit."""
        ...

    @abstractmethod
    def verify_payment_signature(self, provider_order_id: str, payment_id: str, signature: str) -> bool:
        """Check the signature the client received after paying."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify that a raw webhook body is authentically from the gateway."""
        ...
