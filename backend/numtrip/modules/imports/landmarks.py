"""Keyword filter for places that are landmarks rather than contactable businesses.

Monuments, plazas, churches, forts and similar public sites show up in Places
results for tourist queries; they have no owner to claim them and are never
imported.
"""
from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, TypeVar

EXCLUDED_LANDMARK_KEYWORDS = (
    # Monuments and statues
    "monumento", "monument", "estatua", "statue",
    # Public spaces and plazas
    "plaza", "parque", "park", "malecon", "camellon",
    # Religious and historical sites
    "museo", "museum", "catedral", "cathedral", "iglesia", "church",
    "basilica", "convento", "convent", "castillo", "castle",
    "fortaleza", "fort", "murallas", "walls", "torre", "tower",
    "puerta", "gate", "cementerio",
    # Geographic features
    "bahia", "bay", "muelle", "puerto", "port",
    # Named Cartagena monuments and plazas
    "getsemani", "getsemaní", "alcatraces", "pegasos", "aduana",
    "india catalina", "bolivar", "bolívar", "santo domingo",
    "los coches", "san pedro claver", "santa cruz", "popa",
    "oro zenu", "zenú", "martires", "mártires", "oceanos",
    "océanos", "union", "unión", "reloj", "barajas",
)

T = TypeVar("T", bound=Mapping)


def is_landmark(name: str, description: Optional[str] = None, address: Optional[str] = None) -> bool:
    texts = [(name or "").lower(), (description or "").lower(), (address or "").lower()]
    return any(keyword in text for keyword in EXCLUDED_LANDMARK_KEYWORDS for text in texts)


def filter_landmarks(records: Iterable[T]) -> List[T]:
    """Drop mappings (``name``, optional ``description``/``address``) that look like landmarks."""
    return [r for r in records if not is_landmark(r.get("name", ""), r.get("description"), r.get("address"))]


def excluded_keywords() -> List[str]:
    return list(EXCLUDED_LANDMARK_KEYWORDS)
