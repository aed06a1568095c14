"""
Request-scoped data models for Physician Search.

Nothing here is persisted: facets, candidates and ranked results live for
the duration of one search request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

REGISTRY_SOURCE = "npi_registry"


@dataclass(frozen=True)
class ParsedFacets:
    """Facets extracted from a free-text query."""

    original_query: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    specialty: Optional[str] = None
    location: Optional[str] = None
    # Raw query text that resolved to ``specialty``
    specialty_text: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None

    @property
    def has_name(self) -> bool:
        return bool(self.first_name or self.last_name)

    @property
    def has_location(self) -> bool:
        return bool(self.location)


@dataclass(frozen=True)
class NormalizedLocation:
    """City/state pair; ``state`` is always a 2-letter code when present."""

    city: Optional[str] = None
    state: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.city and not self.state


@dataclass(frozen=True)
class FacetSuggestion:
    """One guess from an NLU facet suggester."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    specialty: Optional[str] = None
    location: Optional[str] = None
    confidence: float = 0.0


@dataclass(frozen=True)
class DirectoryListing:
    """Display fields returned by a directory enrichment provider."""

    phone: Optional[str] = None
    rating: Optional[float] = None
    address: Optional[str] = None
    source: str = "directory"


@dataclass
class ProviderAddress:
    purpose: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    telephone: str = ""
    fax: str = ""

    @property
    def is_practice_location(self) -> bool:
        return self.purpose.upper() == "LOCATION"

    @property
    def has_street(self) -> bool:
        return bool(self.address_1.strip())

    @property
    def has_contact(self) -> bool:
        return bool(self.telephone.strip() or self.fax.strip())

    def one_line(self) -> str:
        zip5 = self.postal_code[:5]
        city = self.city.title()
        tail = " ".join(p for p in (self.state.upper(), zip5) if p)
        parts = [p for p in (self.address_1.strip().title(), city, tail) if p]
        return ", ".join(parts)


@dataclass
class ProviderTaxonomy:
    description: str = ""
    primary: bool = False
    code: str = ""


@dataclass
class CandidateProvider:
    """A provider record as returned by the registry."""

    npi: str
    first_name: str = ""
    last_name: str = ""
    middle_name: str = ""
    credential: str = ""
    status: str = ""
    enumeration_date: Optional[str] = None
    addresses: List[ProviderAddress] = field(default_factory=list)
    taxonomies: List[ProviderTaxonomy] = field(default_factory=list)
    sources: List[str] = field(default_factory=lambda: [REGISTRY_SOURCE])
    listing: Optional[DirectoryListing] = None

    @property
    def full_name(self) -> str:
        parts = [p.strip() for p in (self.first_name, self.last_name) if p and p.strip()]
        return " ".join(parts).title()

    @property
    def display_name(self) -> str:
        if self.credential:
            return f"{self.full_name}, {self.credential}"
        return self.full_name

    @property
    def primary_specialty(self) -> str:
        for taxonomy in self.taxonomies:
            if taxonomy.primary and taxonomy.description:
                return taxonomy.description
        for taxonomy in self.taxonomies:
            if taxonomy.description:
                return taxonomy.description
        return ""

    @property
    def practice_address(self) -> Optional[ProviderAddress]:
        for address in self.addresses:
            if address.is_practice_location and address.has_street:
                return address
        return None

    @property
    def registry_phone(self) -> str:
        practice = self.practice_address
        if practice and practice.telephone:
            return practice.telephone
        for address in self.addresses:
            if address.telephone:
                return address.telephone
        for address in self.addresses:
            if address.fax:
                return address.fax
        return ""

    @property
    def phone(self) -> str:
        if self.listing and self.listing.phone:
            return self.listing.phone
        return self.registry_phone

    @property
    def rating(self) -> Optional[float]:
        return self.listing.rating if self.listing else None

    @property
    def display_location(self) -> str:
        if self.listing and self.listing.address:
            return self.listing.address
        practice = self.practice_address or (self.addresses[0] if self.addresses else None)
        return practice.one_line() if practice else ""

    @property
    def registry_city_state(self) -> Tuple[str, str]:
        practice = self.practice_address or (self.addresses[0] if self.addresses else None)
        if not practice:
            return "", ""
        return practice.city.title(), practice.state.upper()

    @property
    def years_experience(self) -> Optional[int]:
        """Years since the provider was enumerated in the registry."""
        if not self.enumeration_date:
            return None
        try:
            enumerated = datetime.strptime(self.enumeration_date[:10], "%Y-%m-%d")
        except ValueError:
            return None
        return max(0, datetime.now().year - enumerated.year)

    @property
    def source_count(self) -> int:
        return len(set(self.sources))


@dataclass
class ConfidenceScore:
    name_score: float = 0.0
    specialty_score: float = 0.0
    location_score: float = 0.0
    source_bonus: float = 0.0
    total: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "total": round(self.total, 2),
            "nameScore": round(self.name_score, 2),
            "specialtyScore": round(self.specialty_score, 2),
            "locationScore": round(self.location_score, 2),
            "sourceBonus": round(self.source_bonus, 2),
        }


@dataclass
class RankedResult:
    """Display record for one ranked provider."""

    npi: str
    name: str
    specialty: str
    location: str
    phone: str
    rating: Optional[float]
    years_experience: Optional[int]
    confidence: ConfidenceScore

    def to_dict(self) -> Dict[str, Any]:
        return {
            "npi": self.npi,
            "name": self.name,
            "specialty": self.specialty,
            "location": self.location,
            "phone": self.phone or "Not available",
            "rating": self.rating,
            "years_experience": self.years_experience,
            "confidence": self.confidence.to_dict(),
        }


@dataclass(frozen=True)
class SearchRequest:
    """Validated search request."""

    query: str
    radius: float = 5000
    page: int = 1
    page_size: int = 15


@dataclass
class Pagination:
    current_page: int
    results_per_page: int
    total_pages: int
    has_more: bool
    total_results: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "resultsPerPage": self.results_per_page,
            "totalPages": self.total_pages,
            "hasMore": self.has_more,
            "totalResults": self.total_results,
        }


@dataclass
class SearchResponse:
    query: str
    specialty: Optional[str]
    location: Optional[str]
    results: List[RankedResult]
    results_count: int
    search_radius: float
    pagination: Pagination
    error: Optional[str] = None
    suggestions: Optional[List[str]] = None
    stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "query": self.query,
            "specialty": self.specialty,
            "location": self.location,
            "results": [result.to_dict() for result in self.results],
            "resultsCount": self.results_count,
            "searchRadius": self.search_radius,
            "pagination": self.pagination.to_dict(),
        }
        if self.pagination.total_results == 0:
            payload["error"] = self.error
            payload["suggestions"] = list(self.suggestions or [])
        return payload
