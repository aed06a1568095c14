"""
Boundary validation for Physician Search requests.

Untyped request bodies become SearchRequest objects here, and parsed
facets are checked for sufficiency before any registry call is made.
"""

import math
import logging
from typing import Any, Dict, Optional, Union

from physician_search.exceptions import SearchValidationError
from physician_search.models import ParsedFacets, SearchRequest

logger = logging.getLogger(__name__)

FACET_EXAMPLES = [
    "Dr. John Smith",
    "cardiologist in Seattle, WA",
    "Sarah Johnson dermatologist",
    "retina surgeon in Tacoma, Washington",
]


def validate_search_request(payload: Union[SearchRequest, Dict[str, Any]],
                            config: Optional[Dict] = None) -> SearchRequest:
    """
    Validate a raw request body.

    Args:
        payload: SearchRequest or dict with query, radius, page and pageSize
        config: Search section of the search configuration

    Returns:
        Validated SearchRequest

    Raises:
        SearchValidationError: If the query is empty or paging is out of range
    """
    config = config or {}
    default_radius = config.get("default_radius", 5000)
    max_radius = config.get("max_radius", 50000)
    default_page_size = config.get("default_page_size", 15)
    min_page_size = config.get("min_page_size", 5)
    max_page_size = config.get("max_page_size", 50)

    if isinstance(payload, SearchRequest):
        raw = {
            "query": payload.query,
            "radius": payload.radius,
            "page": payload.page,
            "pageSize": payload.page_size,
        }
    elif isinstance(payload, dict):
        raw = payload
    else:
        raise SearchValidationError("Request body must be an object", FACET_EXAMPLES)

    query = raw.get("query")
    if not isinstance(query, str) or not query.strip():
        raise SearchValidationError("Search query is required", FACET_EXAMPLES)

    radius = _as_number(raw.get("radius"))
    if radius is None or not 0 < radius <= max_radius:
        if raw.get("radius") is not None:
            logger.warning(f"Invalid radius {raw.get('radius')!r}, using {default_radius}")
        radius = default_radius

    page = _as_int(raw.get("page", 1))
    if page is None or page < 1:
        raise SearchValidationError("Page must be a positive integer")

    page_size = _as_int(raw.get("pageSize", raw.get("page_size", default_page_size)))
    if page_size is None or not min_page_size <= page_size <= max_page_size:
        raise SearchValidationError(f"Page size must be between {min_page_size} and {max_page_size}")

    return SearchRequest(query=query.strip(), radius=radius, page=page, page_size=page_size)


def validate_facets(facets: ParsedFacets, generic_default: str = "General Practice") -> None:
    """
    Check that a query carries enough facets to search.

    A name alone is enough; otherwise at least two of name, a specialty
    other than the generic default, and location are required.

    Args:
        facets: Parsed query facets
        generic_default: Specialty that does not count as a facet

    Raises:
        SearchValidationError: If the facets are insufficient
    """
    if facets.has_name:
        return

    has_specialty = bool(facets.specialty) and facets.specialty != generic_default
    present = sum([facets.has_name, has_specialty, facets.has_location])
    if present >= 2:
        return

    logger.info(f"Rejected query '{facets.original_query}': only {present} facet(s) found")
    raise SearchValidationError(
        "Please provide at least two of the following: doctor name, specialty, or location",
        FACET_EXAMPLES,
    )


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
        if value.is_integer():
            value = int(value)
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return value


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
