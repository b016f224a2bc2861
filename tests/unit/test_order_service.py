from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from storefront.application.service import OrderService
from storefront.auth_local import Identity
from storefront.domain.errors import (
    ForbiddenError,
    NotFoundError,
    NotificationError,
    PersistenceError,
    ValidationError,
)
from storefront.domain.models import Order, OrderItem, utcnow
from storefront.infrastructure.repository import OrderRepository

NON_TERMINAL = ["pending", "confirmed", "packing", "ready", "dispatched"]


def test_create_persists_order_and_items(service, db, order_factory):
    order = service.create(order_factory())

    assert order.id is not None
    assert order.order_number.startswith("ORD-")
    assert order.status == "pending"
    assert Decimal(order.total) == Decimal("450.00")
    assert db.query(Order).count() == 1
    items = db.query(OrderItem).filter(OrderItem.order_id == order.id).all()
    assert len(items) == 2
    rice = next(i for i in items if i.product_id == "p-rice")
    assert rice.product_name == "Samba Rice 1kg"
    assert Decimal(rice.subtotal) == Decimal("300.00")


def test_order_numbers_are_sequential_and_unique(service, order_factory):
    first = service.create(order_factory())
    second = service.create(order_factory())
    assert first.order_number != second.order_number
    assert int(second.order_number.rsplit("-", 1)[1]) == int(first.order_number.rsplit("-", 1)[1]) + 1


def test_order_numbers_continue_past_five_digits(service, db, order_factory):
    prefix = f"ORD-{utcnow().year}-"
    db.add(Order(
        order_number=f"{prefix}99999", user_id="user-1", customer_name="Seed", customer_phone="0770000000",
        fulfillment_type="pickup", subtotal=100, delivery_fee=0, total=100,
    ))
    db.commit()

    first = service.create(order_factory())
    second = service.create(order_factory())
    assert first.order_number == f"{prefix}100000"
    assert second.order_number == f"{prefix}100001"


def test_pickup_order_drops_delivery_fields(service, order_factory):
    order = service.create(order_factory(delivery_address="ignored", delivery_lat=6.1, delivery_lng=80.1))
    assert order.delivery_address is None
    assert order.delivery_lat is None
    assert order.delivery_lng is None
    assert order.delivery_distance_km is None


def test_delivery_order_keeps_location(service, delivery_order_factory):
    order = service.create(delivery_order_factory())
    assert order.fulfillment_type == "delivery"
    assert order.delivery_address == "12 Main Street, Ambalangoda"
    assert order.delivery_distance_km == 0.51
    assert Decimal(order.delivery_fee) == Decimal("120.00")


def test_empty_items_rejected_without_persisting(service, db, order_factory):
    with pytest.raises(ValidationError) as exc_info:
        service.create(order_factory(items=[]))
    assert "items" in exc_info.value.fields
    assert db.query(Order).count() == 0


@pytest.mark.parametrize("field", ["user_id", "customer_name", "customer_phone", "fulfillment_type"])
def test_missing_required_field_rejected(service, db, order_factory, field):
    with pytest.raises(ValidationError) as exc_info:
        service.create(order_factory(**{field: None}))
    assert field in exc_info.value.fields
    assert db.query(Order).count() == 0


def test_delivery_without_location_rejected(service, delivery_order_factory):
    with pytest.raises(ValidationError) as exc_info:
        service.create(delivery_order_factory(delivery_lat=None, delivery_address=None))
    assert set(exc_info.value.fields) >= {"delivery_lat", "delivery_address"}


def test_total_must_match_subtotal_plus_fee(service, order_factory):
    with pytest.raises(ValidationError) as exc_info:
        service.create(order_factory(delivery_fee=100, total=450))
    assert "total" in exc_info.value.fields


def test_item_quantity_must_be_positive(service, order_factory):
    items = [{"product_id": "p-1", "product_name": "Eggs", "quantity": 0, "price_at_purchase": 50}]
    with pytest.raises(ValidationError) as exc_info:
        service.create(order_factory(items=items, subtotal=0, total=0))
    assert "items[0].quantity" in exc_info.value.fields


def test_item_write_failure_rolls_back_transaction(service, db, order_factory):
    with patch.object(OrderRepository, "add_items", side_effect=SQLAlchemyError("items failed")):
        with pytest.raises(PersistenceError):
            service.create(order_factory())
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    service.notifier.send.assert_not_called()


def test_item_write_failure_compensates_header(db, notifier, order_factory, admin):
    service = OrderService(db, notifier=notifier, atomic_writes=False)
    service.repository.insert_order = MagicMock(wraps=service.repository.insert_order)

    with patch.object(OrderRepository, "insert_items", side_effect=SQLAlchemyError("items failed")):
        with pytest.raises(PersistenceError):
            service.create(order_factory())

    order_number = service.repository.insert_order.call_args.args[0]["order_number"]
    with pytest.raises(NotFoundError):
        service.get_by_number(order_number, admin)
    assert db.query(Order).count() == 0
    notifier.send.assert_not_called()


def test_compensated_mode_creates_order_normally(db, notifier, order_factory):
    service = OrderService(db, notifier=notifier, atomic_writes=False)
    order = service.create(order_factory())
    assert len(order.items) == 2
    assert db.query(Order).count() == 1


def test_admin_and_customer_are_notified(service, order_factory):
    order = service.create(order_factory())
    calls = service.notifier.send.call_args_list
    assert [c.args[1:] for c in calls] == [
        ("admin@grocery.test", True),
        ("nimal@example.com", False),
    ]
    assert all(c.args[0] is order for c in calls)


def test_only_admin_notified_without_customer_email(service, order_factory):
    service.create(order_factory(customer_email=None))
    service.notifier.send.assert_called_once()
    assert service.notifier.send.call_args.args[2] is True


def test_notification_failure_does_not_fail_order(service, db, order_factory):
    service.notifier.send.side_effect = NotificationError("smtp down")
    order = service.create(order_factory())
    assert order.id is not None
    assert db.query(Order).count() == 1


def test_unexpected_notifier_error_is_absorbed(service, db, order_factory):
    service.notifier.send.side_effect = RuntimeError("boom")
    service.create(order_factory())
    assert db.query(Order).count() == 1


def test_get_by_owner(service, order_factory, customer):
    order = service.create(order_factory())
    assert service.get(order.id, customer).id == order.id


def test_get_by_admin(service, order_factory, admin):
    order = service.create(order_factory())
    assert service.get(order.id, admin).id == order.id


def test_get_forbidden_for_other_user(service, order_factory):
    order = service.create(order_factory())
    with pytest.raises(ForbiddenError):
        service.get(order.id, Identity(user_id="someone-else"))


def test_get_missing_order(service, customer):
    with pytest.raises(NotFoundError):
        service.get(9999, customer)


def test_get_by_number(service, order_factory, customer):
    order = service.create(order_factory())
    assert service.get_by_number(order.order_number, customer).id == order.id


def test_list_for_user_newest_first(service, order_factory):
    first = service.create(order_factory())
    second = service.create(order_factory())
    service.create(order_factory(user_id="user-2"))

    orders = service.list_for_user("user-1")
    assert [o.id for o in orders] == [second.id, first.id]


def test_list_all_filters_by_status_and_search(service, order_factory):
    a = service.create(order_factory())
    b = service.create(order_factory(customer_name="Kamala Silva", customer_phone="0719999999"))
    service.update_status(b.id, "confirmed")

    assert [o.id for o in service.list_all()] == [b.id, a.id]
    assert [o.id for o in service.list_all(status="confirmed")] == [b.id]
    assert [o.id for o in service.list_all(search="kamala")] == [b.id]
    assert [o.id for o in service.list_all(search="0719")] == [b.id]
    assert [o.id for o in service.list_all(search=a.order_number.lower())] == [a.id]


def test_list_all_rejects_unknown_status(service):
    with pytest.raises(ValidationError):
        service.list_all(status="shipped")


def test_status_counts(service, order_factory):
    a = service.create(order_factory())
    service.create(order_factory())
    service.update_status(a.id, "packing")
    counts = service.status_counts()
    assert counts["pending"] == 1
    assert counts["packing"] == 1
    assert counts["cancelled"] == 0


@pytest.mark.parametrize("from_status", NON_TERMINAL)
def test_cancel_from_any_non_terminal_state(service, order_factory, from_status):
    order = service.create(order_factory())
    if from_status != "pending":
        service.update_status(order.id, from_status)
    before = order.updated_at

    updated = service.update_status(order.id, "cancelled")
    assert updated.status == "cancelled"
    assert updated.updated_at > before


def test_status_transitions_are_permissive(service, order_factory):
    # Documented behavior: terminal states can be left again
    order = service.create(order_factory())
    service.update_status(order.id, "completed")
    assert service.update_status(order.id, "pending").status == "pending"


def test_update_status_rejects_unknown_value(service, order_factory):
    order = service.create(order_factory())
    with pytest.raises(ValidationError):
        service.update_status(order.id, "lost")


def test_update_status_missing_order(service):
    with pytest.raises(NotFoundError):
        service.update_status(9999, "confirmed")


def test_status_update_keeps_pricing_and_items(service, order_factory):
    order = service.create(order_factory())
    updated = service.update_status(order.id, "dispatched")
    assert Decimal(updated.total) == Decimal("450.00")
    assert len(updated.items) == 2


def test_update_admin_notes(service, order_factory):
    order = service.create(order_factory())
    updated = service.update_admin_notes(order.id, "Call before delivery")
    assert updated.admin_notes == "Call before delivery"
    assert updated.status == "pending"
