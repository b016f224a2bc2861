from fastapi import APIRouter, HTTPException

from storefront.application.schemas import QuoteRequest, QuoteRead, PricingConfigRead
from storefront.core_settings import get_settings
from storefront.domain import geo
from storefront.infrastructure.geocoding import describe_location

router = APIRouter(prefix="/pricing", tags=["pricing"])

@router.get("/config", response_model=PricingConfigRead)
def pricing_config():
    settings = get_settings()
    return PricingConfigRead(
        free_delivery_threshold=settings.FREE_DELIVERY_THRESHOLD,
        base_delivery_fee=settings.BASE_DELIVERY_FEE,
        per_km_fee=settings.PER_KM_FEE,
        express_fee=settings.EXPRESS_FEE,
        max_delivery_radius_km=settings.MAX_DELIVERY_RADIUS_KM,
        shop_lat=settings.SHOP_LAT,
        shop_lng=settings.SHOP_LNG,
    )

@router.post("/quote", response_model=QuoteRead)
def quote(payload: QuoteRequest):
    """Distance, radius check and delivery fee for a checkout location."""
    if payload.fulfillment_type not in ("pickup", "delivery"):
        raise HTTPException(status_code=400, detail="fulfillment_type must be 'pickup' or 'delivery'")
    customer = None
    if payload.fulfillment_type == "delivery":
        if payload.lat is None or payload.lng is None:
            raise HTTPException(status_code=400, detail="lat and lng are required for delivery quotes")
        customer = geo.Coordinate(payload.lat, payload.lng)

    settings = get_settings()
    config = geo.PricingConfig.from_settings(settings)
    result = geo.quote(
        payload.fulfillment_type,
        payload.cart_subtotal,
        payload.express,
        config,
        shop=geo.Coordinate(settings.SHOP_LAT, settings.SHOP_LNG),
        customer=customer,
    )
    address = None
    if customer is not None and payload.resolve_address:
        address = describe_location(customer.lat, customer.lng)
    return QuoteRead(
        fulfillment_type=result.fulfillment_type,
        distance_km=result.distance_km,
        within_radius=result.within_radius,
        delivery_fee=result.delivery_fee,
        subtotal=result.subtotal,
        total=result.total,
        free_delivery=result.free_delivery,
        max_radius_km=config.max_radius_km,
        address=address,
    )
