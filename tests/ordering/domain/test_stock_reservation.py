"""Tests for all-or-nothing stock reservation and restoration."""

import threading

import pytest
from catalogue.store import InMemoryCatalogStore
from ordering.order.order import Order
from ordering.order.stock import reserve_stock, restore_stock
from shared.errors import InsufficientStock, NotFound

ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone": "9876543210",
}


@pytest.fixture()
def store():
    store = InMemoryCatalogStore()
    store.add_product("a", "Linen Shirt", price=1000, stock=5)
    store.add_product("b", "Clay Mug", price=500, stock=2)
    store.add_product("c", "Cotton Cap", price=250, stock=1)
    store.add_product("gone", "Retired Hat", price=300, stock=9, is_active=False)
    return store


def _cancelled_order():
    order = Order.place(
        order_number="SS2610180001",
        user_id="user-1",
        items_data=[
            {"product_id": "a", "name": "Linen Shirt", "price": 1000.0, "quantity": 2},
            {"product_id": "b", "name": "Clay Mug", "price": 500.0, "quantity": 1},
            {"product_id": "c", "name": "Cotton Cap", "price": 250.0, "quantity": 1},
        ],
        shipping_address=ADDRESS,
        payment_method="razorpay",
        pricing={"subtotal": 2750.0, "tax": 495.0, "shipping_cost": 0.0, "discount": 0.0, "total": 3245.0},
    )
    order.cancel()
    return order


class TestReserve:
    def test_decrements_every_product(self, store):
        reservation = reserve_stock(store, [("a", 2), ("b", 1)])
        assert store.stock_of("a") == 3
        assert store.stock_of("b") == 1
        assert reservation.applied == [("a", 2), ("b", 1)]
        assert reservation.products["a"].name == "Linen Shirt"

    def test_lines_for_one_product_are_combined(self, store):
        reservation = reserve_stock(store, [("a", 2), ("a", 3)])
        assert reservation.applied == [("a", 5)]
        assert store.stock_of("a") == 0

    def test_combined_quantity_is_checked(self, store):
        with pytest.raises(InsufficientStock):
            reserve_stock(store, [("b", 1), ("b", 2)])
        assert store.stock_of("b") == 2

    def test_missing_product_fails_before_any_change(self, store):
        with pytest.raises(NotFound):
            reserve_stock(store, [("a", 1), ("nope", 1)])
        assert store.stock_of("a") == 5
        assert store.calls == []

    def test_inactive_product_fails(self, store):
        with pytest.raises(NotFound):
            reserve_stock(store, [("gone", 1)])

    def test_insufficient_stock_fails_before_any_change(self, store):
        with pytest.raises(InsufficientStock) as exc:
            reserve_stock(store, [("a", 1), ("b", 3)])
        assert exc.value.product_id == "b"
        assert exc.value.available == 2
        assert store.stock_of("a") == 5
        assert store.calls == []

    def test_failed_decrement_is_compensated(self, store):
        store.fail_decrements_for.add("c")
        with pytest.raises(ConnectionError):
            reserve_stock(store, [("a", 2), ("b", 1), ("c", 1)])

        assert (store.stock_of("a"), store.stock_of("b"), store.stock_of("c")) == (5, 2, 1)
        increments = [(c["product_id"], c["amount"]) for c in store.calls if c["method"] == "increment_stock"]
        assert increments == [("b", 1), ("a", 2)]

    def test_release_gives_everything_back(self, store):
        reservation = reserve_stock(store, [("a", 2), ("b", 2)])
        reservation.release()
        assert (store.stock_of("a"), store.stock_of("b")) == (5, 2)
        assert reservation.applied == []

    def test_release_continues_past_a_failed_increment(self, store):
        reservation = reserve_stock(store, [("a", 2), ("b", 2)])
        store.fail_increments_for.add("b")
        reservation.release()
        assert store.stock_of("a") == 5
        assert store.stock_of("b") == 0

    def test_concurrent_reservations_of_last_unit(self, store):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(2)

        def reserve():
            barrier.wait()
            try:
                reserve_stock(store, [("c", 1)])
                outcome = "reserved"
            except InsufficientStock:
                outcome = "insufficient"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=reserve) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == ["insufficient", "reserved"]
        assert store.stock_of("c") == 0


class TestRestore:
    def test_restores_every_item(self, store):
        order = _cancelled_order()
        assert restore_stock(store, order) == 3
        assert (store.stock_of("a"), store.stock_of("b"), store.stock_of("c")) == (7, 3, 2)
        assert order.items_awaiting_restock() == []

    def test_second_run_restores_nothing(self, store):
        order = _cancelled_order()
        restore_stock(store, order)
        assert restore_stock(store, order) == 0
        assert store.stock_of("a") == 7

    def test_partial_failure_can_resume(self, store):
        order = _cancelled_order()
        store.fail_increments_for.add("b")

        with pytest.raises(ConnectionError):
            restore_stock(store, order)
        assert store.stock_of("a") == 7
        assert [i.product_id for i in order.items_awaiting_restock()] == ["b", "c"]

        store.fail_increments_for.clear()
        assert restore_stock(store, order) == 2
        assert (store.stock_of("a"), store.stock_of("b"), store.stock_of("c")) == (7, 3, 2)
