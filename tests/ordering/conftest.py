import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Clear repositories and the event store after every test."""
    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()
    current_domain.event_store.store._data_reset()


SHIPPING_ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone": "9876543210",
}


@pytest.fixture()
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture()
def catalog():
    """The active in-memory catalog store, seeded with a few products."""
    from catalogue.store import get_catalog_store

    store = get_catalog_store()
    store.add_product("prod-shirt", "Linen Shirt", price=1000, stock=10, sku="SHIRT-1", images=["shirt.jpg"])
    store.add_product("prod-mug", "Clay Mug", price=500, stock=5, sku="MUG-1")
    store.add_product("prod-cap", "Cotton Cap", price=250, stock=1, sku="CAP-1")
    return store


@pytest.fixture()
def gateway():
    from payments.gateway import get_gateway

    return get_gateway()


@pytest.fixture()
def cart():
    from ordering.cart import get_cart_service

    return get_cart_service()


@pytest.fixture()
def order_command():
    """Build a PlaceOrder command; defaults to two shirts paid online."""
    from ordering.order.placement import PlaceOrder

    def _build(user_id="user-1", items=None, payment_method="razorpay", coupon=None, **overrides):
        return PlaceOrder(
            user_id=user_id,
            items=json.dumps(items if items is not None else [{"product_id": "prod-shirt", "quantity": 2}]),
            shipping_address=json.dumps(overrides.pop("shipping_address", SHIPPING_ADDRESS)),
            payment_method=payment_method,
            coupon=json.dumps(coupon) if coupon else None,
            **overrides,
        )

    return _build


@pytest.fixture()
def place_order(catalog, order_command):
    """Place an order through the domain and return the persisted Order."""
    from ordering.order.order import Order
    from protean import current_domain

    def _place(**kwargs):
        order_id = current_domain.process(order_command(**kwargs), asynchronous=False)
        return current_domain.repository_for(Order).get(order_id)

    return _place


@pytest.fixture()
def run_concurrently():
    """Run callables on worker threads, each inside its own domain context.

    Returns one entry per callable, in call order: its return value, or the
    exception it raised. With one worker per callable every worker waits at
    a barrier first so the calls start together.
    """
    from ordering.domain import ordering

    def _run(calls, max_workers=None):
        max_workers = max_workers or len(calls)
        start = threading.Barrier(max_workers) if max_workers == len(calls) else None

        def _call(call):
            with ordering.domain_context():
                if start is not None:
                    start.wait(timeout=10)
                try:
                    return call()
                except Exception as exc:
                    return exc

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(_call, call) for call in calls]
            return [future.result(timeout=120) for future in futures]

    return _run
