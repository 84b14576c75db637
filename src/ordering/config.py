"""Runtime settings for the ordering core.

Protean infrastructure (providers, brokers, event store) is configured in
``domain.toml`` next to ``domain.py``. Business constants and gateway secrets
come from environment variables so they can differ per deployment.
"""

import os
from decimal import Decimal

from ordering.order.pricing import PricingPolicy

DEFAULT_ORDER_PREFIX = "SS"


def get_environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def load_pricing_policy() -> PricingPolicy:
    """Build the pricing policy from ``STOREFRONT_*`` variables."""
    defaults = PricingPolicy()
    return PricingPolicy(
        tax_rate=Decimal(os.getenv("STOREFRONT_TAX_RATE", str(defaults.tax_rate))),
        free_shipping_threshold=Decimal(
            os.getenv("STOREFRONT_FREE_SHIPPING_THRESHOLD", str(defaults.free_shipping_threshold))
        ),
        flat_shipping_fee=Decimal(os.getenv("STOREFRONT_FLAT_SHIPPING_FEE", str(defaults.flat_shipping_fee))),
        currency_quantum=Decimal(os.getenv("STOREFRONT_CURRENCY_QUANTUM", str(defaults.currency_quantum))),
    )


def order_number_prefix() -> str:
    return os.getenv("STOREFRONT_ORDER_PREFIX", DEFAULT_ORDER_PREFIX)


def razorpay_credentials() -> dict:
    return {
        "key_id": os.getenv("RAZORPAY_KEY_ID", ""),
        "key_secret": os.getenv("RAZORPAY_KEY_SECRET", ""),
        "webhook_secret": os.getenv("RAZORPAY_WEBHOOK_SECRET", ""),
    }
