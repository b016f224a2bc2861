from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, List

from shared.core import get_logger
from storefront.auth_local import Identity
from storefront.core_settings import get_settings
from storefront.domain.errors import ValidationError, NotFoundError, ForbiddenError, PersistenceError
from storefront.domain.models import Order, OrderStatus, FulfillmentType, utcnow
from storefront.infrastructure.notifications import EmailNotifier
from storefront.infrastructure.repository import OrderRepository
from .schemas import OrderCreate

logger = get_logger(__name__)

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT)


class OrderService:
    """
    Order lifecycle: atomic creation of an order with its items, reads
    scoped to owner or admin, and status changes from the dashboard.

    Status changes are permissive: any status may be set from any other,
    including out of the terminal states.
    """

    def __init__(self, db: Session, notifier: Optional[EmailNotifier] = None,
                 atomic_writes: Optional[bool] = None):
        self.repository = OrderRepository(db)
        self.settings = get_settings()
        self.notifier = notifier or EmailNotifier(self.settings)
        self.atomic_writes = self.settings.ORDER_ATOMIC_WRITES if atomic_writes is None else atomic_writes

    def _validate(self, data: OrderCreate) -> None:
        errors = {}
        for field in ("user_id", "customer_name", "customer_phone", "fulfillment_type"):
            value = getattr(data, field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field] = "This field is required"

        if data.fulfillment_type and data.fulfillment_type not in {f.value for f in FulfillmentType}:
            errors["fulfillment_type"] = "Must be 'pickup' or 'delivery'"

        if data.fulfillment_type == FulfillmentType.DELIVERY.value:
            for field in ("delivery_address", "delivery_lat", "delivery_lng", "delivery_distance_km"):
                if getattr(data, field) is None:
                    errors[field] = "Required for delivery orders"

        if not data.items:
            errors["items"] = "Order must contain at least one item"
        else:
            for i, item in enumerate(data.items):
                if not item.product_id:
                    errors[f"items[{i}].product_id"] = "This field is required"
                if not item.product_name:
                    errors[f"items[{i}].product_name"] = "This field is required"
                if item.quantity is None or item.quantity < 1:
                    errors[f"items[{i}].quantity"] = "Must be at least 1"
                if item.price_at_purchase is None or item.price_at_purchase < 0:
                    errors[f"items[{i}].price_at_purchase"] = "Must be zero or more"

        if data.subtotal < 0 or data.delivery_fee < 0:
            errors["subtotal"] = "Amounts must not be negative"
        elif _money(data.subtotal) + _money(data.delivery_fee) != _money(data.total):
            errors["total"] = "Total must equal subtotal plus delivery fee"

        if errors:
            raise ValidationError("Missing or invalid order fields", errors)

    def _order_fields(self, data: OrderCreate) -> dict:
        is_delivery = data.fulfillment_type == FulfillmentType.DELIVERY.value
        return {
            "order_number": self.repository.next_order_number(),
            "user_id": data.user_id,
            "customer_name": data.customer_name.strip(),
            "customer_phone": data.customer_phone.strip(),
            "customer_email": data.customer_email or None,
            "fulfillment_type": data.fulfillment_type,
            "delivery_address": data.delivery_address if is_delivery else None,
            "delivery_lat": data.delivery_lat if is_delivery else None,
            "delivery_lng": data.delivery_lng if is_delivery else None,
            "delivery_distance_km": data.delivery_distance_km if is_delivery else None,
            "subtotal": _money(data.subtotal),
            "delivery_fee": _money(data.delivery_fee),
            "total": _money(data.total),
            "express_delivery": data.express_delivery,
            "status": OrderStatus.PENDING.value,
            "customer_notes": data.customer_notes,
        }

    @staticmethod
    def _item_fields(data: OrderCreate) -> List[dict]:
        return [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "price_at_purchase": _money(item.price_at_purchase),
                "subtotal": _money(item.price_at_purchase) * item.quantity,
            }
            for item in data.items
        ]

    def create(self, data: OrderCreate) -> Order:
        self._validate(data)
        items = self._item_fields(data)
        try:
            order_fields = self._order_fields(data)
        except SQLAlchemyError:
            logger.error("Could not allocate order number", exc_info=True)
            self.repository.rollback()
            raise PersistenceError("Failed to create order")

        if self.atomic_writes:
            order = self._create_in_transaction(order_fields, items)
        else:
            order = self._create_with_compensation(order_fields, items)

        logger.info(
            f"Order created: {order.order_number}",
            extra={'extra_fields': {
                'order_id': order.id,
                'order_number': order.order_number,
                'fulfillment_type': order.fulfillment_type,
                'item_count': len(items),
                'total': str(order.total),
            }}
        )
        self._notify_created(order)
        return order

    def _create_in_transaction(self, order_fields: dict, items: List[dict]) -> Order:
        try:
            order = self.repository.add_order(order_fields)
            self.repository.add_items(order, items)
            self.repository.commit()
        except SQLAlchemyError:
            self.repository.rollback()
            logger.error("Order creation failed, transaction rolled back", exc_info=True)
            raise PersistenceError("Failed to create order")
        return self.repository.refresh(order)

    def _create_with_compensation(self, order_fields: dict, items: List[dict]) -> Order:
        """Header and items are separate commits; a failed item write deletes the header."""
        try:
            order = self.repository.insert_order(order_fields)
        except SQLAlchemyError:
            self.repository.rollback()
            logger.error("Order header write failed", exc_info=True)
            raise PersistenceError("Failed to create order")

        try:
            self.repository.insert_items(order, items)
        except SQLAlchemyError:
            self.repository.rollback()
            logger.error(
                f"Order items write failed, deleting header {order.order_number}",
                exc_info=True,
                extra={'extra_fields': {'order_id': order.id}}
            )
            try:
                self.repository.delete(order)
            except SQLAlchemyError:
                self.repository.rollback()
                logger.critical(
                    f"Compensating delete failed for order {order.order_number}",
                    exc_info=True,
                    extra={'extra_fields': {'order_id': order.id}}
                )
            raise PersistenceError("Failed to create order items")
        return self.repository.refresh(order)

    def _notify_created(self, order: Order) -> None:
        recipients = [(self.settings.ADMIN_EMAIL, True)]
        if order.customer_email:
            recipients.append((order.customer_email, False))
        for recipient, is_admin_copy in recipients:
            try:
                self.notifier.send(order, recipient, is_admin_copy)
            except Exception:
                # The order is already persisted; email is best-effort
                logger.warning(
                    f"Order email failed for {order.order_number}",
                    exc_info=True,
                    extra={'extra_fields': {'order_id': order.id, 'admin_copy': is_admin_copy}}
                )

    @staticmethod
    def _authorize(order: Order, identity: Identity) -> None:
        if identity.is_admin or order.user_id == identity.user_id:
            return
        raise ForbiddenError("You do not have access to this order")

    def get(self, order_id: int, identity: Identity) -> Order:
        order = self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")
        self._authorize(order, identity)
        return order

    def get_by_number(self, order_number: str, identity: Identity) -> Order:
        order = self.repository.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found")
        self._authorize(order, identity)
        return order

    def list_for_user(self, user_id: str) -> List[Order]:
        return self.repository.list_for_user(user_id)

    def list_all(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Order]:
        if status and status not in {s.value for s in OrderStatus}:
            raise ValidationError("Unknown order status", {"status": f"'{status}' is not a valid status"})
        return self.repository.list_all(status=status, search=search.strip() if search else None)

    def status_counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in OrderStatus}
        counts.update(self.repository.count_by_status())
        return counts

    def update_status(self, order_id: int, new_status: str) -> Order:
        try:
            status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError("Unknown order status", {"status": f"'{new_status}' is not a valid status"})

        order = self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")

        old_status = order.status
        order.status = status.value
        order.updated_at = utcnow()
        try:
            order = self.repository.save(order)
        except SQLAlchemyError:
            self.repository.rollback()
            logger.error(f"Status update failed for order {order_id}", exc_info=True)
            raise PersistenceError("Failed to update order")

        logger.info(
            f"Order {order.order_number} status {old_status} -> {order.status}",
            extra={'extra_fields': {'order_id': order.id, 'old_status': old_status, 'new_status': order.status}}
        )
        return order

    def update_admin_notes(self, order_id: int, notes: Optional[str]) -> Order:
        order = self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")
        order.admin_notes = notes
        order.updated_at = utcnow()
        try:
            return self.repository.save(order)
        except SQLAlchemyError:
            self.repository.rollback()
            logger.error(f"Admin notes update failed for order {order_id}", exc_info=True)
            raise PersistenceError("Failed to update order")
