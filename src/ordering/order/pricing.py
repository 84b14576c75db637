"""Pricing engine: computes an order's financial breakdown.

Pure functions over ``Decimal``: no repository or store access, so the same
inputs always produce the same breakdown.

    subtotal = sum(unit_price * quantity)
    tax      = round_half_up(subtotal * tax_rate)
    shipping = 0 if subtotal > free_shipping_threshold else flat_shipping_fee
    discount = round_half_up(subtotal * pct / 100)   (percentage coupon)
             = amount                                (fixed coupon)
    total    = subtotal + tax + shipping - discount

The discount is capped at ``subtotal + tax + shipping`` so the total never
goes negative and the identity above always holds.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from protean.exceptions import ValidationError


class CouponType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = Decimal("0.18")
    free_shipping_threshold: Decimal = Decimal("1000")
    flat_shipping_fee: Decimal = Decimal("100")
    currency_quantum: Decimal = Decimal("1")


@dataclass(frozen=True)
class Coupon:
    code: str
    type: str
    discount: Decimal


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal

    def as_floats(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping_cost": float(self.shipping_cost),
            "discount": float(self.discount),
            "total": float(self.total),
        }


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise into the sum
    return Decimal(str(value))


def round_half_up(amount: Decimal, quantum: Decimal = Decimal("1")) -> Decimal:
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def make_coupon(code, coupon_type, discount) -> Coupon:
    """Validate raw coupon data and return a ``Coupon``."""
    try:
        kind = CouponType(coupon_type)
    except ValueError:
        raise ValidationError({"coupon.type": [f"Unsupported coupon type: {coupon_type}"]}) from None

    amount = to_decimal(discount if discount is not None else 0)
    if amount < 0:
        raise ValidationError({"coupon.discount": ["Discount cannot be negative"]})
    if kind == CouponType.PERCENTAGE and amount > 100:
        raise ValidationError({"coupon.discount": ["Percentage discount cannot exceed 100"]})

    return Coupon(code=code, type=kind.value, discount=amount)


def _discount_for(subtotal: Decimal, coupon: Coupon | None, quantum: Decimal) -> Decimal:
    if coupon is None or not coupon.code:
        return Decimal("0")
    if coupon.type == CouponType.PERCENTAGE.value:
        return round_half_up(subtotal * coupon.discount / Decimal("100"), quantum)
    if coupon.type == CouponType.FIXED.value:
        return coupon.discount
    return Decimal("0")


def calculate_pricing(
    lines: Iterable[tuple],
    coupon: Coupon | None = None,
    policy: PricingPolicy | None = None,
) -> PricingBreakdown:
    """Price a sequence of ``(unit_price, quantity)`` pairs.

    Args:
        lines: Ordered ``(unit_price, quantity)`` pairs. Prices may be
            ``Decimal``, ``int``, ``float`` or numeric strings.
        coupon: Optional validated coupon (see ``make_coupon``).
        policy: Tax/shipping/rounding constants; defaults to ``PricingPolicy()``.
    """
    policy = policy or PricingPolicy()

    subtotal = Decimal("0")
    for unit_price, quantity in lines:
        price = to_decimal(unit_price)
        if price < 0:
            raise ValidationError({"price": ["Unit price cannot be negative"]})
        if int(quantity) < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        subtotal += price * int(quantity)

    tax = round_half_up(subtotal * policy.tax_rate, policy.currency_quantum)
    shipping_cost = Decimal("0") if subtotal > policy.free_shipping_threshold else policy.flat_shipping_fee

    gross = subtotal + tax + shipping_cost
    discount = min(_discount_for(subtotal, coupon, policy.currency_quantum), gross)

    return PricingBreakdown(
        subtotal=subtotal,
        tax=tax,
        shipping_cost=shipping_cost,
        discount=discount,
        total=gross - discount,
    )
