from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from storefront.api.deps import get_identity, get_order_service, require_admin
from storefront.application.service import OrderService
from storefront.application.schemas import (
    OrderCreate,
    OrderRead,
    OrderStatusUpdate,
    OrderNotesUpdate,
    StatusSummary,
)
from storefront.auth_local import Identity

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])

@router.post("/", response_model=OrderRead, status_code=201)
def create_order(
    payload: OrderCreate,
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
):
    """Place an order with its items. Pricing comes from the client's quote."""
    if not (payload.user_id or "").strip():
        payload.user_id = identity.user_id
    elif payload.user_id != identity.user_id and not identity.is_admin:
        raise HTTPException(status_code=403, detail="Cannot place orders for another user")
    return OrderRead.model_validate(service.create(payload))

@router.get("/", response_model=list[OrderRead])
def list_my_orders(
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
):
    """Current user's orders, newest first."""
    return [OrderRead.model_validate(o) for o in service.list_for_user(identity.user_id)]

@router.get("/number/{order_number}", response_model=OrderRead)
def get_order_by_number(
    order_number: str,
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
):
    return OrderRead.model_validate(service.get_by_number(order_number, identity))

@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
):
    return OrderRead.model_validate(service.get(order_id, identity))

@admin_router.get("", response_model=list[OrderRead])
def list_all_orders(
    status: Optional[str] = Query(None, description="Filter by order status"),
    q: Optional[str] = Query(None, max_length=100, description="Search order number, name or phone"),
    admin: Identity = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    return [OrderRead.model_validate(o) for o in service.list_all(status=status, search=q)]

@admin_router.get("/summary", response_model=StatusSummary)
def order_summary(
    admin: Identity = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    counts = service.status_counts()
    return StatusSummary(total=sum(counts.values()), by_status=counts)

@admin_router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    admin: Identity = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    """Any status may be set from any other."""
    return OrderRead.model_validate(service.update_status(order_id, payload.status))

@admin_router.patch("/{order_id}/notes", response_model=OrderRead)
def update_order_notes(
    order_id: int,
    payload: OrderNotesUpdate,
    admin: Identity = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    return OrderRead.model_validate(service.update_admin_notes(order_id, payload.admin_notes))
