import httpx
from typing import Optional

from shared.core import get_logger
from storefront.core_settings import get_settings

logger = get_logger(__name__)


def reverse_geocode(lat: float, lng: float) -> Optional[str]:
    """Best-effort address lookup. Any failure returns None."""
    settings = get_settings()
    try:
        with httpx.Client(timeout=5.0) as client:
            response = client.get(
                settings.GEOCODER_URL,
                params={"format": "json", "lat": lat, "lon": lng, "zoom": 18, "addressdetails": 1},
                headers={"User-Agent": settings.SERVICE_NAME},
            )
            if response.status_code == 200:
                return response.json().get("display_name")
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Reverse geocoding failed: {e}")
    return None


def describe_location(lat: float, lng: float) -> str:
    return reverse_geocode(lat, lng) or f"{lat:.6f}, {lng:.6f}"
