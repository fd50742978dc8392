"""Shared fixtures: a file-backed SQLite database per test and an API client on it."""
import pytest
from fastapi.testclient import TestClient

import crm.models  # noqa: F401 - register models
from crm.api.deps import get_db
from crm.core.config import settings
from crm.db.base import Base
from crm.db.session import make_engine, make_session_factory
from crm.main import app
from crm.models import Customer, Product


@pytest.fixture
def engine(tmp_path):
    # A file, not :memory:, so several threads can share it
    eng = make_engine(f"sqlite:///{tmp_path / 'crm_test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def add_customer(db, name="Customer One", **kwargs):
    customer = Customer(name=name, **kwargs)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def add_product(db, name="Product A", price=100, stock=3, **kwargs):
    product = Product(name=name, price=price, stock=stock, **kwargs)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def customer(db):
    return add_customer(db)


@pytest.fixture
def product_a(db):
    return add_product(db, "Product A", price=100, stock=3)


@pytest.fixture
def product_b(db):
    return add_product(db, "Product B", price=250, stock=10)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def login(client, username, password=None):
    """Sign in a demo user and return the Authorization header for it."""
    response = client.post(
        "/api/auth/login",
        json={"username": username, "password": password or settings.DEMO_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest.fixture
def as_user(client):
    """as_user("admin") -> auth headers for that demo user."""
    return lambda username: login(client, username)
