"""Concurrent placeOrder calls never oversell, under either strategy.

Each worker gets its own session on a shared file-backed SQLite database.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import add_customer, add_product
from crm.core.exceptions import ConcurrencyConflictError, InsufficientStockError
from crm.core.locks import ProductLockRegistry, product_locks
from crm.models import Order, Product
from crm.services.order_service import OPTIMISTIC, PESSIMISTIC, OrderService


@pytest.fixture(params=[PESSIMISTIC, OPTIMISTIC])
def strategy(request):
    return request.param


def run_concurrently(session_factory, strategy, customer_id, requests):
    """Place every request at once; return the list of outcomes (Order id or exception)."""
    locks = ProductLockRegistry()
    start = threading.Barrier(len(requests))

    def place(items):
        session = session_factory()
        try:
            service = OrderService(
                session, strategy=strategy, locks=locks, lock_timeout=10, max_attempts=3
            )
            start.wait()
            return service.place_order(customer_id, items).id
        except Exception as e:
            return e
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(place, requests))


def split(outcomes):
    placed = [o for o in outcomes if isinstance(o, str)]
    failed = [o for o in outcomes if not isinstance(o, str)]
    return placed, failed


def test_two_orders_for_more_than_stock_one_wins(db, session_factory, strategy):
    customer = add_customer(db)
    product = add_product(db, "Product B", price=500, stock=3)
    line = [{"productId": product.id, "quantity": 2}]

    placed, failed = split(run_concurrently(session_factory, strategy, customer.id, [line, line]))

    assert len(placed) == 1
    assert len(failed) == 1 and isinstance(failed[0], InsufficientStockError)
    db.expire_all()
    assert db.get(Product, product.id).stock == 1
    assert db.query(Order).count() == 1


def test_many_orders_sell_exactly_the_stock(db, session_factory, strategy):
    customer = add_customer(db)
    product = add_product(db, "Charging Cable", price=2999, stock=10)
    line = [{"productId": product.id, "quantity": 2}]

    placed, failed = split(run_concurrently(session_factory, strategy, customer.id, [line] * 8))

    assert len(placed) == 5
    assert all(isinstance(e, InsufficientStockError) for e in failed), failed
    db.expire_all()
    assert db.get(Product, product.id).stock == 0
    orders = db.query(Order).all()
    assert len(orders) == 5
    assert sum(item.quantity for order in orders for item in order.items) == 10
    assert all(order.total == 2 * 2999 for order in orders)


def test_overlapping_products_in_any_order(db, session_factory, strategy):
    customer = add_customer(db)
    a = add_product(db, "A", price=100, stock=20)
    b = add_product(db, "B", price=200, stock=20)
    forward = [{"productId": a.id, "quantity": 1}, {"productId": b.id, "quantity": 1}]
    backward = [{"productId": b.id, "quantity": 1}, {"productId": a.id, "quantity": 1}]

    placed, failed = split(run_concurrently(session_factory, strategy, customer.id, [forward, backward] * 3))

    assert failed == []
    assert len(placed) == 6
    db.expire_all()
    assert db.get(Product, a.id).stock == 14
    assert db.get(Product, b.id).stock == 14


def test_lock_registry_orders_acquisition():
    locks = ProductLockRegistry()
    with locks.acquire(["b", "a", "b"], timeout=1) as held:
        assert held == ["a", "b"]
    # Everything released on exit
    with locks.acquire(["a", "b"], timeout=0.01):
        pass
    assert locks.active_count() == 0


def test_lock_registry_times_out_while_held():
    locks = ProductLockRegistry()
    holding = threading.Event()
    done = threading.Event()

    def hold():
        with locks.acquire(["a"], timeout=1):
            holding.set()
            done.wait(5)

    holder = threading.Thread(target=hold)
    holder.start()
    try:
        assert holding.wait(5)
        with pytest.raises(ConcurrencyConflictError):
            with locks.acquire(["b", "a"], timeout=0.05):
                pass
        # "b" was taken and released again; "a" is still held
        with locks.acquire(["b"], timeout=0.05):
            pass
        assert locks.active_count() == 1
    finally:
        done.set()
        holder.join(5)
    assert locks.active_count() == 0


def test_deleted_product_leaves_no_lock(client, db, as_user):
    product = add_product(db, "Case", price=4999, stock=50)
    customer = add_customer(db)
    headers = as_user("admin")
    response = client.post(
        "/api/orders",
        json={"customerId": customer.id, "items": [{"productId": product.id, "quantity": 1}]},
        headers=headers,
    )
    assert response.status_code == 201
    assert client.delete(f"/api/products/{product.id}", headers=headers).status_code == 204
    assert product_locks.active_count() == 0
