"""
Ranking and pagination for Physician Search results.
"""

import math
import logging
from dataclasses import dataclass
from typing import Generic, List, Optional, Tuple, TypeVar

from physician_search.match.scorer import ConfidenceScorer, resolve_candidate_location
from physician_search.models import CandidateProvider, ConfidenceScore, ParsedFacets
from physician_search.normalize.location_normalizer import LocationNormalizer

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 50


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total_pages: int
    has_more: bool
    total_results: int


def filter_by_location(candidates: List[CandidateProvider], facets: ParsedFacets,
                       normalizer: LocationNormalizer) -> List[CandidateProvider]:
    """
    Drop candidates whose practice lies outside the queried location.

    With a query city, the candidate city must equal, contain or be
    contained by it; with a query state, the states must be equal.
    Candidates whose location cannot be determined are dropped.

    Args:
        candidates: Candidates from the cascade
        facets: Parsed query facets
        normalizer: Location normalizer

    Returns:
        Candidates inside the queried location, in their original order
    """
    if not facets.has_location:
        return list(candidates)

    query = normalizer.parse(facets.location)
    if query.is_empty:
        return list(candidates)

    query_city = normalizer.canonical_alias_of(query.city) if query.city else ""
    kept = []
    for candidate in candidates:
        location = resolve_candidate_location(candidate, normalizer)

        if query.state and location.state != query.state:
            continue

        if query_city:
            city = normalizer.canonical_alias_of(location.city) if location.city else ""
            if not city or not (city == query_city or query_city in city or city in query_city):
                continue

        kept.append(candidate)

    if len(kept) < len(candidates):
        logger.info(f"Location filter removed {len(candidates) - len(kept)} candidates outside {facets.location}")
    return kept


def rank(candidates: List[CandidateProvider], facets: ParsedFacets, scorer: ConfidenceScorer,
         min_confidence: float = 60, specialty: Optional[str] = None) -> List[Tuple[CandidateProvider, ConfidenceScore]]:
    """
    Score candidates, drop weak matches and sort best first.

    The sort is stable, so equal scores keep their discovery order.

    Args:
        candidates: Candidates in discovery order
        facets: Parsed query facets
        scorer: Confidence scorer
        min_confidence: Minimum total score to keep a candidate
        specialty: Specialty the search actually used

    Returns:
        (candidate, score) pairs sorted by descending total
    """
    scored = [(candidate, scorer.score(candidate, facets, specialty)) for candidate in candidates]
    kept = [pair for pair in scored if pair[1].total >= min_confidence]

    logger.info(f"Ranked {len(kept)} of {len(scored)} candidates at or above {min_confidence}")
    return sorted(kept, key=lambda pair: pair[1].total, reverse=True)


def paginate(results: List[T], page: int = 1, page_size: int = 15,
             min_page_size: int = MIN_PAGE_SIZE, max_page_size: int = MAX_PAGE_SIZE) -> Page:
    """
    Slice ranked results into a page.

    Args:
        results: Ranked results
        page: 1-based page number
        page_size: Results per page
        min_page_size: Smallest allowed page size
        max_page_size: Largest allowed page size

    Returns:
        Page with the slice and paging metadata

    Raises:
        ValueError: If page or page_size is out of range
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if not min_page_size <= page_size <= max_page_size:
        raise ValueError(f"page_size must be between {min_page_size} and {max_page_size}, got {page_size}")

    total = len(results)
    total_pages = math.ceil(total / page_size)
    start = (page - 1) * page_size

    return Page(
        items=list(results[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_more=page < total_pages,
        total_results=total,
    )
