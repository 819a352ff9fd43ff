import logging
from typing import Any, Dict, Iterable, Optional

import requests

from ...models.enums import BusinessCategory

logger = logging.getLogger(__name__)

PLACES_URL = "https://maps.googleapis.com/maps/api/place"

DETAIL_FIELDS = (
    "place_id",
    "name",
    "formatted_address",
    "geometry",
    "types",
    "business_status",
    "rating",
    "user_ratings_total",
    "price_level",
    "formatted_phone_number",
    "international_phone_number",
    "website",
    "opening_hours",
)

# Checked in order against each of a place's types; first hit wins
_TYPE_CATEGORY = {
    "lodging": BusinessCategory.HOTEL,
    "rv_park": BusinessCategory.HOTEL,
    "travel_agency": BusinessCategory.TOUR,
    "tourist_attraction": BusinessCategory.TOUR,
    "amusement_park": BusinessCategory.TOUR,
    "aquarium": BusinessCategory.TOUR,
    "art_gallery": BusinessCategory.TOUR,
    "museum": BusinessCategory.TOUR,
    "zoo": BusinessCategory.TOUR,
    "taxi_stand": BusinessCategory.TRANSPORT,
    "bus_station": BusinessCategory.TRANSPORT,
    "subway_station": BusinessCategory.TRANSPORT,
    "airport": BusinessCategory.TRANSPORT,
    "car_rental": BusinessCategory.TRANSPORT,
    "moving_company": BusinessCategory.TRANSPORT,
    "restaurant": BusinessCategory.RESTAURANT,
    "meal_takeaway": BusinessCategory.RESTAURANT,
    "meal_delivery": BusinessCategory.RESTAURANT,
    "food": BusinessCategory.RESTAURANT,
    "bar": BusinessCategory.RESTAURANT,
    "cafe": BusinessCategory.RESTAURANT,
    "night_club": BusinessCategory.RESTAURANT,
    "park": BusinessCategory.ATTRACTION,
    "campground": BusinessCategory.ATTRACTION,
    "natural_feature": BusinessCategory.ATTRACTION,
}

_KEYWORD_CATEGORY = (
    (("hotel", "accommodation"), BusinessCategory.HOTEL),
    (("tour", "attraction"), BusinessCategory.TOUR),
    (("transport", "rental"), BusinessCategory.TRANSPORT),
    (("food", "restaurant"), BusinessCategory.RESTAURANT),
)


class PlacesError(RuntimeError):
    pass


class PlacesNotConfigured(PlacesError):
    pass


def map_types_to_category(types: Iterable[str] | None) -> BusinessCategory:
    types = list(types or [])
    for t in types:
        category = _TYPE_CATEGORY.get(t)
        if category is not None:
            return category
    joined = " ".join(types).lower()
    for keywords, category in _KEYWORD_CATEGORY:
        if any(k in joined for k in keywords):
            return category
    return BusinessCategory.OTHER


def category_search_queries(city: str) -> Dict[str, str]:
    return {
        "hotels": f"hotels in {city}",
        "restaurants": f"restaurants in {city}",
        "tours": f"tourist tours {city}",
        "transport": f"transportation services {city}",
        "attractions": f"tourist attractions {city}",
    }


class GooglePlacesClient:
    """Thin client for the Places web service (text search, nearby search, details).

    Responses are returned as the provider's JSON dicts, which always carry a
    ``status``; callers decide what a non-OK status means. Transport and HTTP
    errors raise :class:`PlacesError`.
    """

    def __init__(self, api_key: str | None, *, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        if not api_key:
            logger.warning("Google Places API key not found. Imports will not work.")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def text_search(
        self,
        query: str,
        *,
        location: str | None = None,
        radius: int | None = None,
        type: str | None = None,
        pagetoken: str | None = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"query": query}
        # Location bias only applies together with a radius
        if location:
            params["location"] = location
            params["radius"] = radius or 50000
        if type:
            params["type"] = type
        if pagetoken:
            params["pagetoken"] = pagetoken
        logger.info("Text search: %s", query)
        data = self._get("textsearch", params)
        logger.info("Found %d results", len(data.get("results") or []))
        return data

    def nearby_search(
        self,
        location: str,
        radius: int,
        *,
        type: str | None = None,
        keyword: str | None = None,
        pagetoken: str | None = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"location": location, "radius": radius}
        if type:
            params["type"] = type
        if keyword:
            params["keyword"] = keyword
        if pagetoken:
            params["pagetoken"] = pagetoken
        logger.info("Nearby search at %s, radius: %sm", location, radius)
        return self._get("nearbysearch", params)

    def place_details(self, place_id: str) -> Dict[str, Any]:
        return self._get("details", {"place_id": place_id, "fields": ",".join(DETAIL_FIELDS)})

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise PlacesNotConfigured("Google Places API key not configured")
        url = f"{PLACES_URL}/{endpoint}/json"
        try:
            resp = self.session.get(url, params={**params, "key": self.api_key}, timeout=self.timeout)
        except requests.RequestException as e:
            raise PlacesError(f"Places {endpoint} request failed: {e}") from e
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise PlacesError(f"Places {endpoint} failed: HTTP {resp.status_code}: {resp.text[:500]}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise PlacesError(f"Places {endpoint} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise PlacesError(f"Places {endpoint} returned an unexpected payload")
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.warning("Places %s status %s: %s", endpoint, status, data.get("error_message"))
        return data
