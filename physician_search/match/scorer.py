"""
Confidence scorer for Physician Search.

Combines name, specialty and location agreement between a query and a
registry candidate into a 0-100 confidence score.
"""

import re
import logging
from typing import Dict, Optional

from physician_search.match.fuzzy_matcher import match_name, similarity, token_overlap_ratio
from physician_search.models import CandidateProvider, ConfidenceScore, NormalizedLocation, ParsedFacets
from physician_search.normalize.location_normalizer import LocationNormalizer
from physician_search.normalize.specialty_taxonomy import SpecialtyTaxonomy

logger = logging.getLogger(__name__)


def resolve_candidate_location(candidate: CandidateProvider,
                               normalizer: LocationNormalizer) -> NormalizedLocation:
    """
    City and state of a candidate's practice.

    The display address is parsed first; the registry's structured
    address fields fill whatever it does not yield.

    Args:
        candidate: Candidate provider
        normalizer: Location normalizer

    Returns:
        NormalizedLocation, empty when neither source has a location
    """
    parsed = normalizer.parse_address(candidate.display_location)
    city, state = candidate.registry_city_state
    return NormalizedLocation(
        city=parsed.city or city or None,
        state=parsed.state or normalizer.state_code(state),
    )


class ConfidenceScorer:
    """
    Weighted confidence scorer for ranked results.

    Each component is a 0-100 match score scaled by its weight. A query
    without a given facet receives that facet's neutral score instead.
    """

    def __init__(self, taxonomy: SpecialtyTaxonomy, normalizer: LocationNormalizer,
                 config: Optional[Dict] = None):
        """
        Initialize confidence scorer with configuration.

        Args:
            taxonomy: Specialty taxonomy for expansion-set matches
            normalizer: Location normalizer for query and address parsing
            config: Scoring section of the search configuration
        """
        self.taxonomy = taxonomy
        self.normalizer = normalizer
        self.config = config or {}

        weights = self.config.get("weights", {})
        self.name_weight = weights.get("name", 0.4)
        self.specialty_weight = weights.get("specialty", 0.3)
        self.location_weight = weights.get("location", 0.3)

        neutral = self.config.get("neutral_scores", {})
        self.neutral_name = neutral.get("name", 20)
        self.neutral_specialty = neutral.get("specialty", 15)
        self.neutral_location = neutral.get("location", 15)

        bonuses = self.config.get("bonuses", {})
        self.multiple_sources_bonus = bonuses.get("multiple_sources", 10)
        self.registry_identifier_bonus = bonuses.get("registry_identifier", 5)

        logger.info("Initialized ConfidenceScorer")

    def match_specialty(self, query_specialty: Optional[str], candidate_specialty: Optional[str]) -> float:
        """
        Score how well a candidate's specialty agrees with the query.

        Args:
            query_specialty: Specialty searched for
            candidate_specialty: Specialty on the registry record

        Returns:
            100 for equal, 90 for containment, 85 for a related or broader
            term, else the word overlap ratio scaled to 0-100
        """
        query = (query_specialty or "").lower().strip()
        candidate = (candidate_specialty or "").lower().strip()
        if not query or not candidate:
            return 0.0

        if query == candidate:
            return 100.0
        if query in candidate or candidate in query:
            return 90.0

        for term in self.taxonomy.expansion_set(query_specialty):
            term = term.lower()
            if term == candidate or (len(term) >= 4 and re.search(rf"\b{re.escape(term)}\b", candidate)):
                return 85.0

        return token_overlap_ratio(query, candidate) * 100.0

    def best_specialty_match(self, query_specialty: Optional[str], candidate: CandidateProvider) -> float:
        """Highest specialty score over all of a candidate's taxonomies."""
        descriptions = [t.description for t in candidate.taxonomies if t.description]
        if not descriptions:
            return 0.0
        return max(self.match_specialty(query_specialty, d) for d in descriptions)

    def match_location(self, query_location: Optional[str], city: Optional[str], state: Optional[str]) -> float:
        """
        Score how well a candidate's city and state agree with the query.

        Args:
            query_location: Location text from the query
            city: Candidate city
            state: Candidate 2-letter state

        Returns:
            Up to 50 points for the city plus 30 for the state, capped at 100
        """
        query = self.normalizer.parse(query_location)
        score = 0.0

        if query.city and city:
            query_key = self.normalizer.canonical_alias_of(query.city)
            city_key = self.normalizer.canonical_alias_of(city)
            if query_key == city_key:
                score += 50
            elif query_key in city_key or city_key in query_key:
                score += 40
            elif similarity(query_key, city_key) > 0.8:
                score += 35

        if query.state and state and query.state == state.upper():
            score += 30

        return min(100.0, score)

    def score(self, candidate: CandidateProvider, facets: ParsedFacets,
              specialty: Optional[str] = None) -> ConfidenceScore:
        """
        Score one candidate against the query facets.

        Args:
            candidate: Candidate provider
            facets: Parsed query facets
            specialty: Specialty the search actually used, when it differs
                from the parsed one

        Returns:
            ConfidenceScore with total in [0, 100]
        """
        if facets.has_name:
            name_score = match_name(facets.full_name, candidate.full_name).score * self.name_weight
        else:
            name_score = self.neutral_name

        query_specialty = specialty or facets.specialty
        if query_specialty:
            specialty_score = self.best_specialty_match(query_specialty, candidate) * self.specialty_weight
        else:
            specialty_score = self.neutral_specialty

        if facets.has_location:
            location = resolve_candidate_location(candidate, self.normalizer)
            location_score = self.match_location(facets.location, location.city, location.state) * self.location_weight
        else:
            location_score = self.neutral_location

        source_bonus = 0.0
        if candidate.source_count > 1:
            source_bonus += self.multiple_sources_bonus
        if candidate.npi:
            source_bonus += self.registry_identifier_bonus

        total = min(100.0, name_score + specialty_score + location_score + source_bonus)
        return ConfidenceScore(
            name_score=name_score,
            specialty_score=specialty_score,
            location_score=location_score,
            source_bonus=source_bonus,
            total=max(0.0, total),
        )
