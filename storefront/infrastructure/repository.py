"""
Order Repository - Data Access Layer
"""
from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import Integer, cast, desc, func, or_, select

from storefront.domain.models import Order, OrderItem, utcnow


class OrderRepository:
    """Storage operations for orders and their item rows"""

    def __init__(self, db: Session):
        self.db = db

    def next_order_number(self) -> str:
        """Next number in the ORD-YYYY-NNNNN sequence for the current year"""
        year = utcnow().year
        prefix = f"ORD-{year}-"
        # Compare the numeric suffix; past 99999 the string order no longer matches
        suffix = cast(func.substr(Order.order_number, len(prefix) + 1), Integer)
        latest = self.db.execute(
            select(func.max(suffix)).where(Order.order_number.like(f"{prefix}%"))
        ).scalar()
        next_num = (latest or 0) + 1
        return f"{prefix}{next_num:05d}"

    # Transactional path: flush only, caller commits once

    def add_order(self, order_data: dict) -> Order:
        order = Order(**order_data)
        self.db.add(order)
        self.db.flush()  # assign id
        return order

    def add_items(self, order: Order, items: List[dict]) -> List[OrderItem]:
        rows = [OrderItem(order=order, **item) for item in items]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    # Non-transactional path: every write is committed on its own

    def insert_order(self, order_data: dict) -> Order:
        order = self.add_order(order_data)
        self.db.commit()
        return order

    def insert_items(self, order: Order, items: List[dict]) -> List[OrderItem]:
        rows = self.add_items(order, items)
        self.db.commit()
        return rows

    def delete(self, order: Order) -> None:
        self.db.delete(order)
        self.db.commit()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, order: Order) -> Order:
        self.db.refresh(order)
        return order

    def get_by_id(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).options(selectinload(Order.items)).filter(Order.id == order_id).first()

    def get_by_number(self, order_number: str) -> Optional[Order]:
        return self.db.query(Order).options(selectinload(Order.items)).filter(
            Order.order_number == order_number
        ).first()

    def list_for_user(self, user_id: str) -> List[Order]:
        return self.db.query(Order).options(selectinload(Order.items)).filter(
            Order.user_id == user_id
        ).order_by(desc(Order.created_at), desc(Order.id)).all()

    def list_all(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Order]:
        query = self.db.query(Order).options(selectinload(Order.items))
        if status:
            query = query.filter(Order.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(Order.order_number).like(pattern),
                func.lower(Order.customer_name).like(pattern),
                Order.customer_phone.like(f"%{search}%"),
            ))
        return query.order_by(desc(Order.created_at), desc(Order.id)).all()

    def count_by_status(self) -> dict[str, int]:
        rows = self.db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        return {status: count for status, count in rows}

    def save(self, order: Order) -> Order:
        self.db.commit()
        self.db.refresh(order)
        return order
