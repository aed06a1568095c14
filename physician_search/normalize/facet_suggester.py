"""
NLU facet suggestion capability for Physician Search.

A suggester guesses name/specialty/location facets for a raw query. The
structural parser stays authoritative; suggestions only fill facets it
left empty.
"""

import logging
from typing import List

from physician_search.models import FacetSuggestion

logger = logging.getLogger(__name__)


class FacetSuggester:
    """Interface for optional NLU facet suggestion services."""

    def suggest(self, query: str) -> List[FacetSuggestion]:
        """
        Suggest facets for a raw query.

        Args:
            query: Raw query text

        Returns:
            Suggestions ordered best first
        """
        raise NotImplementedError


class NullFacetSuggester(FacetSuggester):
    """Suggester used when no NLU service is configured."""

    def suggest(self, query: str) -> List[FacetSuggestion]:
        return []
