from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, or_, select

from ...extensions import db
from ...models.business import Business
from ...models.city import City
from ...models.contact import Contact
from ...models.enums import ContactType

logger = logging.getLogger(__name__)

# Coordinates stored on newly created city rows
_KNOWN_CITY_COORDS = {
    ("Cartagena", "Colombia"): (10.3997, -75.5144),
}


def parse_city(value: str) -> Dict[str, Any]:
    """Split "Name, Country" into city row fields; a bare name gets country "Unknown"."""
    parts = [p.strip() for p in (value or "").split(",")]
    if len(parts) >= 2:
        name, country = parts[0], parts[-1]
        out: Dict[str, Any] = {"name": name, "country": country}
        coords = _KNOWN_CITY_COORDS.get((name, country))
        if coords:
            out["latitude"], out["longitude"] = coords
        return out
    return {"name": value, "country": "Unknown"}


class ImportRepository:
    def __init__(self, session=None):
        self.session = session or db.session

    def find_by_place_id(self, place_id: str) -> Optional[Business]:
        return self.session.execute(select(Business).where(Business.google_place_id == place_id)).scalars().first()

    def find_by_name_tokens(self, tokens: Sequence[str]) -> List[Business]:
        if not tokens:
            return []
        clauses = [func.lower(Business.name).contains(t, autoescape=True) for t in tokens]
        return list(self.session.execute(select(Business).where(or_(*clauses)).order_by(Business.id)).scalars())

    def get_or_create_city(self, value: str) -> City:
        data = parse_city(value)
        city = self.session.execute(
            select(City).where(City.name == data["name"], City.country == data["country"])
        ).scalar_one_or_none()
        if city is not None:
            return city
        city = City(**data)
        self.session.add(city)
        self.session.flush()
        logger.info("Created new city: %s, %s", data["name"], data["country"])
        return city

    def create_business(self, values: Dict[str, Any]) -> Business:
        business = Business(**values)
        self.session.add(business)
        self.session.flush()
        return business

    def create_contacts(self, business_id: int, contacts: Sequence[Dict[str, Any]]) -> int:
        """Insert contacts, skipping (type, value) pairs already on the business."""
        existing = {
            (c.type, c.value)
            for c in self.session.execute(select(Contact).where(Contact.business_id == business_id)).scalars()
        }
        created = 0
        for data in contacts:
            key = (ContactType(data["type"]), data["value"])
            if key in existing:
                continue
            existing.add(key)
            self.session.add(Contact(business_id=business_id, **data))
            created += 1
        if created:
            self.session.flush()
        return created

    # Stats

    def count_businesses(self, *criteria) -> int:
        return int(self.session.execute(select(func.count(Business.id)).where(*criteria)).scalar_one())

    def count_by_category(self) -> Dict[str, int]:
        rows = self.session.execute(select(Business.category, func.count(Business.id)).group_by(Business.category)).all()
        return {category.value: int(n) for category, n in rows}

    def count_by_city(self) -> Dict[str, int]:
        rows = self.session.execute(
            select(City.name, func.count(Business.id))
            .select_from(Business)
            .outerjoin(City, Business.city_id == City.id)
            .group_by(City.name)
        ).all()
        out: Dict[str, int] = {}
        for name, n in rows:
            key = name if name is not None else "No City"
            out[key] = out.get(key, 0) + int(n)
        return out

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
