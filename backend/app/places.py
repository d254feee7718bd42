"""Google Places (New) lookup: name, website, city, currency, phone, photos."""

import logging

import httpx

from app.config import require_setting
from app.models import PlaceDetails


logger = logging.getLogger(__name__)

PLACES_URL = "https://places.googleapis.com/v1/places/{place_id}"
PHOTO_MEDIA_URL = "https://places.googleapis.com/v1/{name}/media?key={key}&maxHeightPx=1000&maxWidthPx=1000"
FIELD_MASK = ",".join([
    "id", "displayName", "formattedAddress", "websiteUri", "addressComponents",
    "nationalPhoneNumber", "internationalPhoneNumber", "photos",
])
MAX_PHOTOS = 5


class PlaceLookupError(Exception):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


def _component(components: list[dict], *types: str) -> dict | None:
    for component in components:
        if any(t in component.get("types", []) for t in types):
            return component
    return None


def place_details_from_response(place_id: str, data: dict, api_key: str = "") -> PlaceDetails:
    components = data.get("addressComponents") or []
    city = _component(components, "locality", "administrative_area_level_3")
    country = _component(components, "country")
    country_code = (country or {}).get("shortText") or "US"

    photo_urls = [
        PHOTO_MEDIA_URL.format(name=photo["name"], key=api_key)
        for photo in (data.get("photos") or [])[:MAX_PHOTOS]
        if photo.get("name")
    ]

    return PlaceDetails(
        place_id=place_id,
        name=(data.get("displayName") or {}).get("text") or "Unknown Restaurant",
        website_url=data.get("websiteUri") or None,
        address=data.get("formattedAddress") or None,
        city=(city or {}).get("longText") or (city or {}).get("shortText") or None,
        currency="CAD" if country_code == "CA" else "USD",
        phone=data.get("internationalPhoneNumber") or data.get("nationalPhoneNumber") or None,
        photo_urls=photo_urls,
    )


async def fetch_place_details(place_id: str) -> PlaceDetails:
    """Raises ConfigurationError without an API key, PlaceLookupError on a failed lookup."""
    api_key = require_setting("google_maps_api_key")
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0)) as client:
            response = await client.get(
                PLACES_URL.format(place_id=place_id),
                headers={
                    "Content-Type": "application/json",
                    "X-Goog-Api-Key": api_key,
                    "X-Goog-FieldMask": FIELD_MASK,
                },
            )
    except httpx.RequestError as e:
        raise PlaceLookupError(f"Google Places request failed: {e}") from e

    if response.status_code != 200:
        logger.error("[places] lookup failed (%s): %s", response.status_code, response.text[:300])
        raise PlaceLookupError("Failed to fetch place details", status_code=response.status_code)

    details = place_details_from_response(place_id, response.json(), api_key)
    logger.info("[places] %s: %s (%s)", place_id, details.name, details.website_url or "no website")
    return details
