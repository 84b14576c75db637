"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Field names are camelCase on the wire to stay
compatible with existing storefront clients.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    address_line1: str = Field(min_length=1)
    address_line2: str | None = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    pincode: str = Field(pattern=r"^\d{6}$")
    country: str = "India"
    phone: str = Field(pattern=r"^\d{10}$")


class OrderLineSchema(CamelModel):
    product: str
    quantity: int = Field(ge=1)
    size: str | None = None


class CouponSchema(CamelModel):
    code: str
    type: Literal["percentage", "fixed"]
    discount: float = Field(ge=0)


class PaymentMethodSchema(CamelModel):
    method: Literal["razorpay", "stripe", "cod", "upi"]


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(CamelModel):
    items: list[OrderLineSchema] = Field(min_length=1)
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_info: PaymentMethodSchema
    coupon: CouponSchema | None = None
    notes: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "items": [{"product": "prod-001", "quantity": 2, "size": "M"}],
                    "shippingAddress": {
                        "firstName": "Asha",
                        "lastName": "Rao",
                        "addressLine1": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "pincode": "560001",
                        "phone": "9876543210",
                    },
                    "paymentInfo": {"method": "razorpay"},
                    "coupon": {"code": "WELCOME10", "type": "percentage", "discount": 10},
                }
            ]
        },
    )


class CancelOrderRequest(CamelModel):
    reason: str | None = Field(default=None, max_length=500)


class UpdateOrderStatusRequest(CamelModel):
    status: Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "returned"]
    tracking_number: str | None = Field(default=None, min_length=1)
    courier: str | None = Field(default=None, min_length=1)
    estimated_delivery: datetime | None = None
    admin_notes: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class CreatePaymentOrderRequest(CamelModel):
    order_id: str


class VerifyPaymentRequest(BaseModel):
    """Razorpay checkout hands these fields back to the client verbatim."""

    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    order_id: str = Field(alias="orderId")

    model_config = ConfigDict(populate_by_name=True)


class CodPaymentRequest(CamelModel):
    order_id: str


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    success: bool = True
    message: str | None = None
    data: dict


class OrderListResponse(BaseModel):
    success: bool = True
    data: dict


class StatusResponse(BaseModel):
    success: bool = True
    message: str | None = None
