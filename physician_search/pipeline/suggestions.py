"""
Suggestions returned with an empty Physician Search result.
"""

import logging
from typing import List, Optional, Tuple

from physician_search.models import ParsedFacets
from physician_search.normalize.specialty_taxonomy import SpecialtyTaxonomy

logger = logging.getLogger(__name__)


def build_no_results_message(facets: ParsedFacets, radius: float = 5000) -> str:
    """Human-readable explanation for an empty result."""
    subject = f"{facets.specialty} doctors" if facets.specialty else "doctors"
    if facets.full_name:
        subject = f"doctors named {facets.full_name}"
        if facets.specialty:
            subject += f" ({facets.specialty})"
    if facets.location:
        return f"No {subject} found within {radius / 1000:g}km of {facets.location}"
    return f"No {subject} found"


def build_suggestions(facets: ParsedFacets, taxonomy: SpecialtyTaxonomy,
                      specialty_used: Optional[str] = None, radius: float = 5000) -> Tuple[str, List[str]]:
    """
    Build the error text and tailored suggestions for an empty result.

    Args:
        facets: Parsed query facets
        taxonomy: Specialty taxonomy for broader and related terms
        specialty_used: Specialty the search last used
        radius: Search radius in meters

    Returns:
        (error message, suggestions)
    """
    suggestions: List[str] = []

    if not facets.location:
        suggestions.append('Add a city and state (e.g., "Seattle, WA") to narrow the search')
    else:
        suggestions.append("Check the spelling of the city or location name")
        suggestions.append("Try searching in a nearby larger city")

    specialty = facets.specialty or specialty_used
    if specialty:
        alternatives = []
        broader = taxonomy.broader_of(specialty)
        if broader:
            alternatives.append(broader)
        alternatives.extend(t for t in taxonomy.related_to(specialty) if t not in alternatives)
        if alternatives:
            suggestions.append(f"Try a broader or related specialty: {', '.join(alternatives[:3])}")
        else:
            suggestions.append('Try a more general specialty term (e.g., "Cardiologist" instead of '
                               '"Interventional Cardiologist")')
    else:
        closest = taxonomy.closest_specialty(facets.original_query)
        if closest:
            suggestions.append(f"Did you mean {closest}?")
        if facets.has_name:
            suggestions.append('Add a specialty (e.g., "cardiologist") to help find the right doctor')

    if facets.has_name:
        suggestions.append("Check the spelling of the doctor's name")
        if facets.first_name and facets.last_name:
            suggestions.append(f'Try searching by last name only (e.g., "Dr. {facets.last_name}")')

    return build_no_results_message(facets, radius), suggestions
