"""
Delivery eligibility and pricing.

Pure functions, no I/O. Callers validate coordinate ranges and pass
non-negative distances; anything else is garbage-in/garbage-out.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional

EARTH_RADIUS_KM = 6371.0


class Coordinate(NamedTuple):
    lat: float
    lng: float


class GeoResult(NamedTuple):
    distance_km: float
    within_radius: bool


@dataclass(frozen=True)
class PricingConfig:
    free_threshold: float = 5000
    base_fee: float = 100
    per_km_fee: float = 40
    express_fee: float = 150
    max_radius_km: float = 5

    @classmethod
    def from_settings(cls, settings) -> "PricingConfig":
        return cls(
            free_threshold=settings.FREE_DELIVERY_THRESHOLD,
            base_fee=settings.BASE_DELIVERY_FEE,
            per_km_fee=settings.PER_KM_FEE,
            express_fee=settings.EXPRESS_FEE,
            max_radius_km=settings.MAX_DELIVERY_RADIUS_KM,
        )


@dataclass(frozen=True)
class Quote:
    fulfillment_type: str
    distance_km: float
    within_radius: bool
    delivery_fee: int
    subtotal: float
    total: float
    free_delivery: bool


def _round_half_up(value: float, places: int = 0) -> Decimal:
    exp = Decimal(1).scaleb(-places)
    return Decimal(repr(value)).quantize(exp, rounding=ROUND_HALF_UP)


def distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in km (haversine), rounded to 2 decimals."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    # Float error can push h a hair outside [0, 1] for antipodal points
    h = min(max(h, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return float(_round_half_up(EARTH_RADIUS_KM * c, 2))


def within_radius(shop: Coordinate, customer: Coordinate, max_radius_km: float) -> GeoResult:
    """Boundary is inclusive: a point exactly at max_radius_km qualifies."""
    d = distance(shop, customer)
    return GeoResult(distance_km=d, within_radius=d <= max_radius_km)


def delivery_fee(distance_km: float, cart_subtotal: float, express: bool, config: PricingConfig) -> int:
    """
    Delivery fee in whole currency units.

    Reaching the free-delivery threshold replaces the distance-based fee
    entirely; the express surcharge is added on top either way.
    """
    if cart_subtotal >= config.free_threshold:
        fee = 0.0
    else:
        fee = config.base_fee + distance_km * config.per_km_fee

    if express:
        fee += config.express_fee

    return int(_round_half_up(fee))


def quote(
    fulfillment_type: str,
    cart_subtotal: float,
    express: bool,
    config: PricingConfig,
    shop: Coordinate,
    customer: Optional[Coordinate] = None,
) -> Quote:
    """Checkout pricing. Out-of-radius deliveries get no fee and cannot be placed."""
    if fulfillment_type == "pickup" or customer is None:
        return Quote(
            fulfillment_type=fulfillment_type,
            distance_km=0.0,
            within_radius=True,
            delivery_fee=0,
            subtotal=cart_subtotal,
            total=cart_subtotal,
            free_delivery=False,
        )

    geo = within_radius(shop, customer, config.max_radius_km)
    fee = delivery_fee(geo.distance_km, cart_subtotal, express, config) if geo.within_radius else 0
    return Quote(
        fulfillment_type=fulfillment_type,
        distance_km=geo.distance_km,
        within_radius=geo.within_radius,
        delivery_fee=fee,
        subtotal=cart_subtotal,
        total=cart_subtotal + fee,
        free_delivery=geo.within_radius and cart_subtotal >= config.free_threshold,
    )


def format_currency(amount) -> str:
    return f"LKR {float(amount):,.2f}"
