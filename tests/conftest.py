import os

# Must be set before storefront modules read settings and build the engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_BACKEND"] = "console"
os.environ["ADMIN_EMAIL"] = "admin@grocery.test"
os.environ["JWT_SECRET"] = "test-secret"

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from storefront.application.schemas import OrderCreate
from storefront.application.service import OrderService
from storefront.auth_local import Identity, create_access_token
from storefront.infrastructure.db import SessionLocal, init_models, drop_models


@pytest.fixture
def db():
    init_models()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_models()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def service(db, notifier):
    return OrderService(db, notifier=notifier, atomic_writes=True)


@pytest.fixture
def customer():
    return Identity(user_id="user-1", email="nimal@example.com")


@pytest.fixture
def admin():
    return Identity(user_id="admin-1", email="admin@grocery.test", is_admin=True)


def make_order(**overrides) -> OrderCreate:
    payload = {
        "user_id": "user-1",
        "customer_name": "Nimal Perera",
        "customer_phone": "0771234567",
        "customer_email": "nimal@example.com",
        "fulfillment_type": "pickup",
        "subtotal": 450,
        "delivery_fee": 0,
        "total": 450,
        "items": [
            {"product_id": "p-rice", "product_name": "Samba Rice 1kg", "quantity": 2, "price_at_purchase": 150},
            {"product_id": "p-dhal", "product_name": "Red Dhal 500g", "quantity": 1, "price_at_purchase": 150},
        ],
    }
    payload.update(overrides)
    return OrderCreate(**payload)


def make_delivery_order(**overrides) -> OrderCreate:
    fields = {
        "fulfillment_type": "delivery",
        "delivery_address": "12 Main Street, Ambalangoda",
        "delivery_lat": 6.2400,
        "delivery_lng": 80.0550,
        "delivery_distance_km": 0.51,
        "delivery_fee": 120,
        "total": 570,
    }
    fields.update(overrides)
    return make_order(**fields)


@pytest.fixture
def client():
    from storefront.main import app
    init_models()
    try:
        yield TestClient(app)
    finally:
        drop_models()


def auth_headers(user_id: str = "user-1", email: str = None, is_admin: bool = False) -> dict:
    token = create_access_token(user_id, email=email, is_admin=is_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def delivery_order_factory():
    return make_delivery_order


@pytest.fixture
def headers_for():
    return auth_headers
