"""Shared BDD fixtures and step definitions for the Ordering domain."""

import json

import pytest
from catalogue.store import get_catalog_store
from ordering.order.order import Order
from ordering.order.payment import InitiatePayment, VerifyPayment
from ordering.order.placement import PlaceOrder
from ordering.order.status import UpdateOrderStatus
from payments.gateway import get_gateway
from protean import current_domain
from pytest_bdd import given, parsers, then, when
from shared.errors import Forbidden, InvalidTransition, SignatureMismatch

ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone": "9876543210",
}


def _parse_lines(lines):
    """``"2 x prod-lamp, 1 x prod-rug"`` to PlaceOrder item dicts."""
    items = []
    for line in lines.split(","):
        quantity, product_id = (part.strip() for part in line.split("x", 1))
        items.append({"product_id": product_id, "quantity": int(quantity)})
    return items


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for the domain error a When step captured."""
    return {"exc": None}


@pytest.fixture()
def webhook():
    """Outcome of the most recent webhook delivery."""
    return {"outcome": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the catalogue has product "{product_id}" priced {price:d} with {stock:d} in stock'))
def _(product_id, price, stock):
    get_catalog_store().add_product(product_id, product_id.removeprefix("prod-").title(), price=price, stock=stock)


@given(
    parsers.cfparse('"{user_id}" placed an order for "{lines}" paying by "{method}"'),
    target_fixture="order_id",
)
def _(user_id, lines, method):
    return current_domain.process(
        PlaceOrder(
            user_id=user_id,
            items=json.dumps(_parse_lines(lines)),
            shipping_address=json.dumps(ADDRESS),
            payment_method=method,
        ),
        asynchronous=False,
    )


@given("a gateway order was created for it", target_fixture="provider_order_id")
def _(order_id):
    order = _order(order_id)
    result = current_domain.process(
        InitiatePayment(order_id=order_id, requesting_user_id=order.user_id),
        asynchronous=False,
    )
    return result["provider_order_id"]


@given(parsers.cfparse('the order was moved to "{status}"'))
def _(order_id, status):
    current_domain.process(UpdateOrderStatus(order_id=order_id, status=status), asynchronous=False)


def _verify(order_id, provider_order_id, signature, error):
    order = _order(order_id)
    try:
        current_domain.process(
            VerifyPayment(
                order_id=order_id,
                requesting_user_id=order.user_id,
                provider_order_id=provider_order_id,
                payment_id="pay_bdd_1",
                signature=signature,
            ),
            asynchronous=False,
        )
    except SignatureMismatch as exc:
        error["exc"] = exc


@given("the customer returned with a valid payment signature")
@when("the customer returns with a valid payment signature")
def _(order_id, provider_order_id, error):
    _verify(order_id, provider_order_id, get_gateway().sign_payment(provider_order_id, "pay_bdd_1"), error)


@when("the customer returns with a forged payment signature")
def _(order_id, provider_order_id, error):
    _verify(order_id, provider_order_id, get_gateway().sign_payment(provider_order_id, "pay_forged"), error)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order_id, status):
    assert _order(order_id).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(order_id, status):
    assert _order(order_id).payment_info.status == status


@then(parsers.cfparse('the refund is "{refund_status}" for {amount:d}'))
def _(order_id, refund_status, amount):
    cancellation = _order(order_id).cancellation
    assert cancellation.refund_status == refund_status
    assert cancellation.refund_amount == amount


@then(parsers.cfparse('the catalogue holds {stock:d} of "{product_id}"'))
def _(product_id, stock):
    assert get_catalog_store().stock_of(product_id) == stock


@then(parsers.cfparse('the order timeline reads "{statuses}"'))
def _(order_id, statuses):
    expected = [status.strip() for status in statuses.split(",")]
    assert [entry.status for entry in _order(order_id).ordered_timeline] == expected


@then("the request is rejected as an invalid transition")
def _(error):
    assert isinstance(error["exc"], InvalidTransition)


@then("the request is rejected as a signature mismatch")
def _(error):
    assert isinstance(error["exc"], SignatureMismatch)


@then("the request is forbidden")
def _(error):
    assert isinstance(error["exc"], Forbidden)


@then(parsers.cfparse('the webhook outcome is "{outcome}"'))
def _(webhook, outcome):
    assert webhook["outcome"] == outcome
