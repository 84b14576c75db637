"""FastAPI routes for the Ordering domain: orders and payments.

Authentication happens upstream; the gateway forwards the caller identity in
``X-User-Id`` and ``X-User-Role`` headers.
"""

import json
from dataclasses import dataclass
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    CancelOrderRequest,
    CodPaymentRequest,
    CreateOrderRequest,
    CreatePaymentOrderRequest,
    OrderListResponse,
    OrderResponse,
    StatusResponse,
    UpdateOrderStatusRequest,
    VerifyPaymentRequest,
)
from ordering.order.cancellation import CancelOrder, RecordRefund, RestoreCancelledStock
from ordering.order.payment import (
    InitiatePayment,
    ProcessCashOnDelivery,
    ProcessPaymentWebhook,
    VerifyPayment,
    process_with_retry,
)
from ordering.order.placement import PlaceOrder
from ordering.order.queries import OrderPage, get_order, list_all_orders, list_orders
from ordering.order.serialization import address_from_document, order_to_document
from ordering.order.status import UpdateOrderStatus
from shared.errors import Forbidden


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def current_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default="user"),
) -> Caller:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authorized, no user")
    return Caller(user_id=x_user_id, role=x_user_role.lower())


def admin_caller(caller: Caller = Depends(current_caller)) -> Caller:
    if not caller.is_admin:
        raise Forbidden("Admin access required")
    return caller


def _page_document(result: OrderPage) -> dict:
    return {
        "orders": [order_to_document(order) for order in result.orders],
        "pagination": {
            "currentPage": result.page,
            "totalPages": result.total_pages,
            "totalOrders": result.total,
            "hasNextPage": result.has_next,
            "hasPrevPage": result.has_prev,
            "limit": result.limit,
        },
    }


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(body: CreateOrderRequest, caller: Caller = Depends(current_caller)) -> OrderResponse:
    command = PlaceOrder(
        user_id=caller.user_id,
        items=json.dumps(
            [{"product_id": line.product, "quantity": line.quantity, "size": line.size} for line in body.items]
        ),
        shipping_address=json.dumps(address_from_document(body.shipping_address.model_dump(by_alias=True))),
        billing_address=(
            json.dumps(address_from_document(body.billing_address.model_dump(by_alias=True)))
            if body.billing_address
            else None
        ),
        payment_method=body.payment_info.method,
        coupon=body.coupon.model_dump_json() if body.coupon else None,
        customer_notes=body.notes,
    )
    order_id = current_domain.process(command, asynchronous=False)
    order = get_order(order_id, caller.user_id, is_admin=caller.is_admin)
    return OrderResponse(message="Order created successfully", data=order_to_document(order))


@order_router.get("", response_model=OrderListResponse)
async def list_my_orders(
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
    caller: Caller = Depends(current_caller),
) -> OrderListResponse:
    result = list_orders(caller.user_id, status=status, page=page, limit=limit)
    return OrderListResponse(data=_page_document(result))


@order_router.get("/admin/all", response_model=OrderListResponse)
async def list_every_order(
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    order_number: str | None = None,
    page: int = 1,
    limit: int = 20,
    caller: Caller = Depends(admin_caller),
) -> OrderListResponse:
    result = list_all_orders(
        status=status,
        start_date=start_date,
        end_date=end_date,
        order_number=order_number,
        page=page,
        limit=limit,
    )
    return OrderListResponse(data=_page_document(result))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def read_order(order_id: str, caller: Caller = Depends(current_caller)) -> OrderResponse:
    order = get_order(order_id, caller.user_id, is_admin=caller.is_admin)
    return OrderResponse(data=order_to_document(order))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    caller: Caller = Depends(current_caller),
) -> OrderResponse:
    command = CancelOrder(
        order_id=order_id,
        requesting_user_id=caller.user_id,
        reason=body.reason if body else None,
        is_admin=caller.is_admin,
    )
    current_domain.process(command, asynchronous=False)
    order = get_order(order_id, caller.user_id, is_admin=caller.is_admin)
    return OrderResponse(message="Order cancelled successfully", data=order_to_document(order))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    caller: Caller = Depends(admin_caller),
) -> OrderResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        tracking_number=body.tracking_number,
        courier=body.courier,
        estimated_delivery=body.estimated_delivery,
        admin_notes=body.admin_notes,
    )
    current_domain.process(command, asynchronous=False)
    order = get_order(order_id, caller.user_id, is_admin=True)
    return OrderResponse(message="Order status updated successfully", data=order_to_document(order))


@order_router.put("/{order_id}/restock", response_model=OrderResponse)
async def restock_cancelled_order(order_id: str, caller: Caller = Depends(admin_caller)) -> OrderResponse:
    remaining = current_domain.process(RestoreCancelledStock(order_id=order_id), asynchronous=False)
    order = get_order(order_id, caller.user_id, is_admin=True)
    message = "Stock restored" if remaining == 0 else f"{remaining} items still awaiting restock"
    return OrderResponse(message=message, data=order_to_document(order))


@order_router.put("/{order_id}/refund", response_model=OrderResponse)
async def record_refund(order_id: str, caller: Caller = Depends(admin_caller)) -> OrderResponse:
    current_domain.process(RecordRefund(order_id=order_id), asynchronous=False)
    order = get_order(order_id, caller.user_id, is_admin=True)
    return OrderResponse(message="Refund recorded", data=order_to_document(order))


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payment", tags=["payment"])


@payment_router.post("/razorpay/create-order")
async def create_payment_order(body: CreatePaymentOrderRequest, caller: Caller = Depends(current_caller)) -> dict:
    command = InitiatePayment(order_id=body.order_id, requesting_user_id=caller.user_id, is_admin=caller.is_admin)
    result = current_domain.process(command, asynchronous=False)
    return {
        "success": True,
        "data": {
            "orderId": result["provider_order_id"],
            "amount": result["amount"],
            "currency": result["currency"],
            "key": result["key_id"],
        },
    }


@payment_router.post("/razorpay/verify", response_model=OrderResponse)
async def verify_payment(body: VerifyPaymentRequest, caller: Caller = Depends(current_caller)) -> OrderResponse:
    command = VerifyPayment(
        order_id=body.order_id,
        requesting_user_id=caller.user_id,
        provider_order_id=body.razorpay_order_id,
        payment_id=body.razorpay_payment_id,
        signature=body.razorpay_signature,
        is_admin=caller.is_admin,
    )
    process_with_retry(command)
    order = get_order(body.order_id, caller.user_id, is_admin=caller.is_admin)
    return OrderResponse(message="Payment verified successfully", data=order_to_document(order))


@payment_router.post("/razorpay/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str = Header(default=""),
    x_razorpay_event_id: str | None = Header(default=None),
) -> dict:
    raw_body = await request.body()
    try:
        text = raw_body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Webhook body must be UTF-8") from None

    command = ProcessPaymentWebhook(
        raw_body=text,
        signature=x_razorpay_signature,
        event_id=x_razorpay_event_id,
    )
    outcome = process_with_retry(command)
    return {"success": True, "outcome": outcome}


@payment_router.post("/cod/process", response_model=StatusResponse)
async def process_cod(body: CodPaymentRequest, caller: Caller = Depends(current_caller)) -> StatusResponse:
    command = ProcessCashOnDelivery(order_id=body.order_id, requesting_user_id=caller.user_id, is_admin=caller.is_admin)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(message="COD order processed successfully")
