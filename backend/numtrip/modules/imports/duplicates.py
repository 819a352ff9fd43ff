"""Duplicate detection for imported places.

A candidate is a duplicate when a stored business carries the same Places id,
or failing that, when a stored business has a near-identical name and an
address containing the candidate's address. The fuzzy path has no database
constraint behind it, so two concurrent imports can both admit a fuzzy match.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from rapidfuzz.distance import Levenshtein

logger = logging.getLogger(__name__)

# Fuzzy matches need a similarity strictly above this
SIMILARITY_THRESHOLD = 0.8


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit cost insertions, deletions and substitutions."""
    return Levenshtein.distance(a or "", b or "")


def similarity(a: str, b: str) -> float:
    """Case-insensitive ``(longest - distance) / longest``; 1.0 for two empty strings."""
    return Levenshtein.normalized_similarity((a or "").lower(), (b or "").lower())


def name_tokens(name: str) -> list[str]:
    return [w for w in (name or "").lower().split(" ") if len(w) > 2]


@dataclass(frozen=True)
class CandidateRecord:
    name: str
    external_id: Optional[str] = None
    formatted_address: Optional[str] = None

    @classmethod
    def from_place(cls, place: Mapping[str, Any]) -> "CandidateRecord":
        return cls(
            name=place.get("name") or "",
            external_id=place.get("place_id") or None,
            formatted_address=place.get("formatted_address") or None,
        )


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    matched_id: Optional[int] = None
    confidence: float = 0.0


class DuplicateDetector:
    def __init__(self, repository):
        self.repository = repository

    def is_duplicate(self, candidate: CandidateRecord) -> DuplicateCheck:
        if candidate.external_id:
            existing = self.repository.find_by_place_id(candidate.external_id)
            if existing is not None:
                return DuplicateCheck(True, existing.id, 1.0)

        tokens = name_tokens(candidate.name)
        if not tokens:
            return DuplicateCheck(False)

        address = (candidate.formatted_address or "").lower()
        for business in self.repository.find_by_name_tokens(tokens):
            score = similarity(candidate.name, business.name)
            # A stored business without an address never matches
            if score > SIMILARITY_THRESHOLD and business.address is not None and address in business.address.lower():
                logger.debug("Fuzzy duplicate %r ~ %r (%.3f)", candidate.name, business.name, score)
                return DuplicateCheck(True, business.id, score)
        return DuplicateCheck(False)
