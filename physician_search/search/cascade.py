"""
Cascading registry search for Physician Search.

The registry only answers exact, ANDed queries, so a noisy query is run
through a fixed sequence of progressively relaxed lookups. The cascade
stops at the first stage that yields an active candidate.

Stage order:

1. exact                      every known facet
2. specialty_relaxation       each related specialty, name and location kept
3. name_relaxation            first name dropped, fuzzy name post-filter
4. location_relaxation        city and state dropped
5. name_specialty_relaxation  last name and location only, name and
                              specialty post-filter
6. specialty_only             specialty and location, only without a name
7. broad_terms                broader, related and alternate specialties,
                              then specialty without name, then name
                              without specialty
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from physician_search.ingestion.registry_client import RegistryClient, filter_active
from physician_search.ingestion.request_validator import validate_facets
from physician_search.match.fuzzy_matcher import match_name
from physician_search.match.scorer import ConfidenceScorer
from physician_search.models import CandidateProvider, ParsedFacets
from physician_search.normalize.location_normalizer import LocationNormalizer
from physician_search.normalize.specialty_taxonomy import SpecialtyTaxonomy

logger = logging.getLogger(__name__)

STAGES = [
    "exact",
    "specialty_relaxation",
    "name_relaxation",
    "location_relaxation",
    "name_specialty_relaxation",
    "specialty_only",
    "broad_terms",
]

PostFilter = Callable[[CandidateProvider], bool]


@dataclass
class CascadeAttempt:
    """One registry call issued by the cascade."""

    stage: str
    params: Dict[str, str]
    hits: int


@dataclass
class CascadeResult:
    candidates: List[CandidateProvider]
    stage: Optional[str]
    specialty_used: Optional[str]
    attempts: List[CascadeAttempt] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.candidates)

    @property
    def call_count(self) -> int:
        return len(self.attempts)


class _CascadeRun:
    """Per-request bookkeeping: issued parameter sets and the attempt trace."""

    def __init__(self, client: RegistryClient):
        self.client = client
        self.tried = set()
        self.attempts: List[CascadeAttempt] = []

    def query(self, stage: str, post_filter: Optional[PostFilter] = None,
              **params: Optional[str]) -> List[CandidateProvider]:
        params = {k: v for k, v in params.items() if v}
        if not params:
            return []

        key = frozenset(params.items())
        if key in self.tried:
            logger.debug(f"Skipping repeated lookup {params} in stage {stage}")
            return []
        self.tried.add(key)

        candidates = filter_active(self.client.lookup(**params))
        if post_filter:
            candidates = [c for c in candidates if post_filter(c)]

        self.attempts.append(CascadeAttempt(stage=stage, params=params, hits=len(candidates)))
        logger.debug(f"Stage {stage} lookup {params} kept {len(candidates)} candidates")
        return candidates


class CascadingSearch:
    """
    Runs the staged registry cascade for one set of query facets.

    Holds only configuration and collaborators; every call to ``run`` keeps
    its own state.
    """

    def __init__(self, client: RegistryClient, taxonomy: SpecialtyTaxonomy,
                 normalizer: LocationNormalizer, config: Optional[Dict] = None,
                 scorer: Optional[ConfidenceScorer] = None):
        """
        Initialize cascading search.

        Args:
            client: Registry client
            taxonomy: Specialty taxonomy for relaxed specialty terms
            normalizer: Location normalizer for splitting city and state
            config: Cascade section of the search configuration
            scorer: Scorer providing the specialty comparator for post-filters
        """
        self.client = client
        self.taxonomy = taxonomy
        self.normalizer = normalizer
        self.config = config or {}
        self.scorer = scorer or ConfidenceScorer(taxonomy, normalizer)

        self.name_threshold = self.config.get("name_match_threshold", 70)
        self.specialty_threshold = self.config.get("specialty_match_threshold", 50)

        logger.info("Initialized CascadingSearch")

    def run(self, facets: ParsedFacets) -> CascadeResult:
        """
        Search the registry for the given facets.

        Args:
            facets: Parsed query facets

        Returns:
            CascadeResult with the winning stage and the attempt trace

        Raises:
            SearchValidationError: If the facets are insufficient; raised
                before any registry call
        """
        validate_facets(facets, self.taxonomy.generic_default)

        run = _CascadeRun(self.client)
        location = self.normalizer.parse(facets.location)
        city, state = location.city, location.state
        first, last = facets.first_name, facets.last_name
        specialty = facets.specialty
        has_name = facets.has_name

        def name_filter(candidate: CandidateProvider) -> bool:
            return match_name(facets.full_name, candidate.full_name).score >= self.name_threshold

        def name_and_specialty_filter(candidate: CandidateProvider) -> bool:
            if not name_filter(candidate):
                return False
            if not specialty:
                return True
            return self.scorer.best_specialty_match(specialty, candidate) >= self.specialty_threshold

        def done(stage: str, candidates: List[CandidateProvider], used: Optional[str]) -> CascadeResult:
            logger.info(f"Cascade stage '{stage}' found {len(candidates)} candidates "
                        f"after {len(run.attempts)} registry calls")
            return CascadeResult(candidates, stage, used, run.attempts)

        # 1. exact
        found = run.query("exact", first_name=first, last_name=last, specialty=specialty,
                          city=city, state=state)
        if found:
            return done("exact", found, specialty)

        # 2. related specialties, name and location fixed
        if specialty:
            for related in self.taxonomy.related_to(specialty):
                found = run.query("specialty_relaxation", first_name=first, last_name=last,
                                  specialty=related, city=city, state=state)
                if found:
                    return done("specialty_relaxation", found, related)

        # 3. drop the first name
        if first and last:
            found = run.query("name_relaxation", name_filter, last_name=last, specialty=specialty,
                              city=city, state=state)
            if found:
                return done("name_relaxation", found, specialty)

        # 4. drop the location
        if has_name and (city or state):
            found = run.query("location_relaxation", first_name=first, last_name=last,
                              specialty=specialty)
            if found:
                return done("location_relaxation", found, specialty)

        # 5. last name and location only
        if last:
            found = run.query("name_specialty_relaxation", name_and_specialty_filter,
                              last_name=last, city=city, state=state)
            if found:
                return done("name_specialty_relaxation", found, specialty)

        # 6. specialty and location, for queries without a name
        if not has_name and specialty:
            found = run.query("specialty_only", specialty=specialty, city=city, state=state)
            if found:
                return done("specialty_only", found, specialty)

        # 7. broader, related and alternate terms, then drop name or specialty
        if specialty:
            for term in self._broad_terms(specialty):
                found = run.query("broad_terms", first_name=first, last_name=last,
                                  specialty=term, city=city, state=state)
                if found:
                    return done("broad_terms", found, term)

            if has_name and (city or state):
                found = run.query("broad_terms", specialty=specialty, city=city, state=state)
                if found:
                    return done("broad_terms", found, specialty)

            if has_name:
                found = run.query("broad_terms", first_name=first, last_name=last,
                                  city=city, state=state)
                if found:
                    return done("broad_terms", found, None)

        logger.info(f"Cascade exhausted after {len(run.attempts)} registry calls without results")
        return CascadeResult([], None, specialty, run.attempts)

    def _broad_terms(self, specialty: str) -> List[str]:
        terms: List[str] = []
        broader = self.taxonomy.broader_of(specialty)
        if broader:
            terms.append(broader)
        terms.extend(self.taxonomy.related_to(specialty))
        terms.extend(self.taxonomy.alternate_terms(specialty))

        seen = {specialty.lower()}
        ordered = []
        for term in terms:
            if term.lower() not in seen:
                seen.add(term.lower())
                ordered.append(term)
        return ordered
