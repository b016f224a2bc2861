from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


# Required fields are optional here so OrderService reports them as
# field-level ValidationErrors instead of a generic 422.

class OrderItemCreate(BaseModel):
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = None
    price_at_purchase: Optional[float] = None

class OrderCreate(BaseModel):
    user_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    fulfillment_type: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_lat: Optional[float] = None
    delivery_lng: Optional[float] = None
    delivery_distance_km: Optional[float] = None
    subtotal: float = 0
    delivery_fee: float = 0
    total: float = 0
    express_delivery: bool = False
    customer_notes: Optional[str] = None
    items: Optional[list[OrderItemCreate]] = None

class OrderStatusUpdate(BaseModel):
    status: str

class OrderNotesUpdate(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=2000)

class OrderItemRead(BaseModel):
    id: int
    product_id: str
    product_name: str
    quantity: int
    price_at_purchase: float
    subtotal: float
    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: int
    order_number: str
    user_id: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    fulfillment_type: str
    delivery_address: Optional[str] = None
    delivery_lat: Optional[float] = None
    delivery_lng: Optional[float] = None
    delivery_distance_km: Optional[float] = None
    subtotal: float
    delivery_fee: float
    total: float
    express_delivery: bool
    status: str
    customer_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead] = []
    class Config:
        from_attributes = True

class StatusSummary(BaseModel):
    total: int
    by_status: dict[str, int]

class QuoteRequest(BaseModel):
    fulfillment_type: str = "delivery"
    cart_subtotal: float = Field(..., ge=0)
    express: bool = False
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    resolve_address: bool = False

class QuoteRead(BaseModel):
    fulfillment_type: str
    distance_km: float
    within_radius: bool
    delivery_fee: int
    subtotal: float
    total: float
    free_delivery: bool
    max_radius_km: float
    address: Optional[str] = None

class PricingConfigRead(BaseModel):
    free_delivery_threshold: float
    base_delivery_fee: float
    per_km_fee: float
    express_fee: float
    max_delivery_radius_km: float
    shop_lat: float
    shop_lng: float
