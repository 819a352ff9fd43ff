from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ...errors import BadRequest
from ...integrations.google_places.client import (
    GooglePlacesClient,
    PlacesError,
    category_search_queries,
    map_types_to_category,
)
from ...models.business import Business
from ...models.enums import ContactType
from .duplicates import CandidateRecord, DuplicateDetector
from .landmarks import is_landmark
from .repository import ImportRepository

logger = logging.getLogger(__name__)

IMPORT_CATEGORIES = ("hotels", "restaurants", "tours", "transport", "attractions", "all")
SEARCH_RADIUS_METERS = 50000

CITY_COORDINATES = {
    "Cartagena": "10.3932,-75.4832",
    "Cartagena, Colombia": "10.3932,-75.4832",
    "Bogotá": "4.7110,-74.0721",
    "Medellín": "6.2442,-75.5812",
    "Cali": "3.4516,-76.5320",
}

_PHONE_NOISE = re.compile(r"[\s\-\(\)]")


def clean_phone(raw: str) -> str:
    return _PHONE_NOISE.sub("", raw).lstrip("+")


def city_coordinates(city: str) -> str:
    return CITY_COORDINATES.get(city, CITY_COORDINATES["Cartagena"])


def search_queries(city: str, category: str) -> List[str]:
    base = category_search_queries(city)
    if category == "hotels":
        return [base["hotels"], f"accommodation in {city}", f"hostels in {city}"]
    if category == "restaurants":
        return [base["restaurants"], f"food in {city}", f"dining in {city}"]
    if category == "tours":
        return [base["tours"], f"tour operators {city}", f"excursions {city}"]
    if category == "transport":
        return [base["transport"], f"taxi services {city}", f"car rental {city}"]
    if category == "attractions":
        return [base["attractions"], f"museums in {city}", f"parks in {city}"]
    if category == "all":
        return list(base.values())
    return [base["hotels"]]


@dataclass
class ImportResult:
    success: bool = False
    imported: int = 0
    duplicates: int = 0
    skipped_landmarks: int = 0
    errors: int = 0
    created: List[int] = field(default_factory=list)
    duplicate_ids: List[int] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "imported": self.imported,
            "duplicates": self.duplicates,
            "skippedLandmarks": self.skipped_landmarks,
            "errors": self.errors,
            "details": {
                "created": list(self.created),
                "duplicateIds": list(self.duplicate_ids),
                "errorMessages": list(self.error_messages),
            },
        }


class ImportService:
    """Pull businesses for a city from Places and store the new ones.

    Each place is committed on its own, so a failure part way through keeps
    everything imported before it.
    """

    def __init__(
        self,
        places: GooglePlacesClient,
        repository: ImportRepository,
        detector: Optional[DuplicateDetector] = None,
        sleep: Callable[[float], None] = time.sleep,
        page_token_delay: float = 2.0,
        place_delay: float = 0.1,
    ):
        self.places = places
        self.repository = repository
        self.detector = detector or DuplicateDetector(repository)
        self.sleep = sleep
        self.page_token_delay = page_token_delay
        self.place_delay = place_delay

    def import_businesses(self, city: str, category: str, limit: int = 100, skip_duplicates: bool = False) -> ImportResult:
        if not self.places.is_configured():
            raise BadRequest("Google Places API key not configured")
        logger.info("Starting import for %s in %s, limit: %d", category, city, limit, extra={"city": city, "category": category})

        result = ImportResult()
        for query in search_queries(city, category):
            if result.imported >= limit:
                break
            for place in self._search(query, city, result):
                if result.imported >= limit:
                    break
                self._import_place(place, city, skip_duplicates, result)

        result.success = result.imported > 0
        logger.info(
            "Import completed. Imported: %d, Duplicates: %d, Landmarks: %d, Errors: %d",
            result.imported,
            result.duplicates,
            result.skipped_landmarks,
            result.errors,
            extra={"city": city, "category": category},
        )
        return result

    def _search(self, query: str, city: str, result: ImportResult) -> Iterator[Dict[str, Any]]:
        """Yield search hits page by page, following ``next_page_token``."""
        logger.info("Searching: %s", query)
        token: Optional[str] = None
        while True:
            try:
                if token:
                    response = self.places.text_search(query, pagetoken=token)
                else:
                    response = self.places.text_search(query, location=city_coordinates(city), radius=SEARCH_RADIUS_METERS)
            except PlacesError as e:
                logger.error("Search failed for %r: %s", query, e)
                result.error_messages.append(f"Search failed: {e}")
                return
            status = response.get("status")
            if status not in ("OK", "ZERO_RESULTS"):
                message = response.get("error_message") or status
                logger.error("Search failed: %s", message)
                result.error_messages.append(f"Search failed: {message}")
                return
            yield from response.get("results") or []
            token = response.get("next_page_token")
            if not token:
                return
            logger.info("Fetching next page...")
            # A fresh page token only becomes valid after a short delay
            self.sleep(self.page_token_delay)

    def _import_place(self, place: Dict[str, Any], city: str, skip_duplicates: bool, result: ImportResult) -> None:
        place_id = place.get("place_id")
        name = place.get("name") or place_id or "unknown place"
        if not place_id:
            logger.warning("Search hit without place id: %s", name)
            result.errors += 1
            result.error_messages.append(f"Missing place id for {name}")
            return
        try:
            response = self.places.place_details(place_id)
            if response.get("status") != "OK":
                message = response.get("error_message") or response.get("status")
                logger.warning("Failed to get details for %s: %s", name, message)
                result.errors += 1
                result.error_messages.append(f"Details failed for {name}: {message}")
                return
            details = response.get("result") or {}

            if is_landmark(details.get("name") or name, None, details.get("formatted_address")):
                logger.info("Skipping landmark: %s", name)
                result.skipped_landmarks += 1
                return

            if not skip_duplicates:
                check = self.detector.is_duplicate(CandidateRecord.from_place(details))
                if check.is_duplicate:
                    logger.info("Duplicate found: %s (existing: %s)", name, check.matched_id)
                    result.duplicates += 1
                    result.duplicate_ids.append(check.matched_id)
                    return

            city_row = self.repository.get_or_create_city(city)
            business = self.repository.create_business(self._business_values(details, city, city_row.id))
            self.repository.create_contacts(business.id, self._contacts(details))
            self.repository.commit()
        except (SQLAlchemyError, PlacesError) as e:
            self.repository.rollback()
            logger.error("Failed to import %s: %s", name, e)
            result.errors += 1
            result.error_messages.append(f"Import failed for {name}: {e}")
            return
        except Exception as e:
            # Malformed provider data for one place must not lose the whole run
            self.repository.rollback()
            logger.exception("Unexpected error importing %s", name)
            result.errors += 1
            result.error_messages.append(f"Import failed for {name}: {e}")
            return

        result.imported += 1
        result.created.append(business.id)
        logger.info("Imported: %s (%s)", business.name, business.id, extra={"business_id": business.id})
        if self.place_delay:
            self.sleep(self.place_delay)

    def _business_values(self, details: Dict[str, Any], city: str, city_id: int) -> Dict[str, Any]:
        category = map_types_to_category(details.get("types"))
        location = (details.get("geometry") or {}).get("location") or {}
        phone = details.get("formatted_phone_number") or details.get("international_phone_number")
        return {
            "name": details.get("name") or "Unknown Business",
            "description": f"{category.value.lower().replace('_', ' ')} in {city}",
            "category": category,
            "address": details.get("formatted_address"),
            "city_id": city_id,
            "latitude": location.get("lat"),
            "longitude": location.get("lng"),
            "google_place_id": details.get("place_id"),
            "website": details.get("website"),
            "phone": clean_phone(phone) if phone else None,
            "verified": False,
        }

    def _contacts(self, details: Dict[str, Any]) -> List[Dict[str, Any]]:
        contacts = []
        phone = details.get("formatted_phone_number") or details.get("international_phone_number")
        if phone:
            contacts.append({"type": ContactType.PHONE, "value": clean_phone(phone), "verified": False, "primary_contact": True})
        if details.get("website"):
            contacts.append({"type": ContactType.WEBSITE, "value": details["website"], "verified": False, "primary_contact": False})
        return contacts

    def get_import_stats(self) -> Dict[str, Any]:
        return {
            "totalBusinesses": self.repository.count_businesses(),
            "businessesByCategory": self.repository.count_by_category(),
            "businessesByCity": self.repository.count_by_city(),
            "verifiedBusinesses": self.repository.count_businesses(Business.verified.is_(True)),
            "withGooglePlaceId": self.repository.count_businesses(Business.google_place_id.isnot(None)),
        }


def import_service() -> ImportService:
    from ...services import services

    return ImportService(
        services().places,
        ImportRepository(),
        page_token_delay=float(current_app.config.get("PLACES_PAGE_TOKEN_DELAY_SECONDS", 2.0)),
        place_delay=float(current_app.config.get("IMPORT_PLACE_DELAY_SECONDS", 0.1)),
    )
