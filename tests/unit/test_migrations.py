from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from storefront.application.service import OrderService
from storefront.domain.models import Base, Order
from storefront.main import run_migrations


@pytest.fixture
def migrated_engine(tmp_path):
    url = f"sqlite:///{tmp_path / 'storefront.db'}"
    run_migrations(url)
    engine = create_engine(url)
    try:
        yield engine
    finally:
        engine.dispose()


def test_migration_matches_models(migrated_engine):
    inspector = inspect(migrated_engine)
    for table in Base.metadata.sorted_tables:
        migrated = {c["name"] for c in inspector.get_columns(table.name)}
        assert migrated == {c.name for c in table.columns}, table.name

    indexes = {ix["name"]: ix for ix in inspector.get_indexes("orders")}
    assert indexes["ix_orders_order_number"]["unique"]
    assert "idx_orders_user_created" in indexes


def test_migrated_schema_accepts_orders(migrated_engine, order_factory):
    session = sessionmaker(bind=migrated_engine, expire_on_commit=False)()
    try:
        order = OrderService(session, notifier=MagicMock(), atomic_writes=True).create(order_factory())
        assert session.query(Order).count() == 1
        assert len(order.items) == 2
    finally:
        session.close()
