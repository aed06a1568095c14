"""
Directory enrichment for Physician Search candidates.

An enrichment provider looks a candidate up in a business directory and
returns display fields (phone, rating, address). Lookups for different
candidates are independent and run concurrently.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from physician_search.models import CandidateProvider, DirectoryListing

logger = logging.getLogger(__name__)


class EnrichmentProvider:
    """Interface for business-directory enrichment services."""

    def enrich(self, name: str, specialty: Optional[str], city: Optional[str],
               state: Optional[str]) -> Optional[DirectoryListing]:
        """
        Look up a provider's directory listing.

        Args:
            name: Provider full name
            specialty: Provider specialty
            city: Practice city
            state: Practice state

        Returns:
            DirectoryListing, or None when the provider is not listed
        """
        raise NotImplementedError


class NullEnrichmentProvider(EnrichmentProvider):
    """Provider used when no directory service is configured."""

    def enrich(self, name: str, specialty: Optional[str], city: Optional[str],
               state: Optional[str]) -> Optional[DirectoryListing]:
        return None


class DirectoryEnricher:
    """
    Fans enrichment lookups out over a thread pool.

    A failed lookup leaves that candidate unenriched and does not affect
    the others.
    """

    def __init__(self, provider: EnrichmentProvider, config: Optional[Dict] = None):
        """
        Initialize directory enricher.

        Args:
            provider: Enrichment provider
            config: Enrichment section of the search configuration
        """
        self.provider = provider
        self.config = config or {}
        self.enabled = self.config.get("enabled", True)
        self.max_candidates = self.config.get("max_candidates", 50)
        self.max_workers = self.config.get("max_workers", 8)

        logger.info("Initialized DirectoryEnricher")

    def enrich_all(self, candidates: List[CandidateProvider],
                   specialty: Optional[str] = None) -> List[CandidateProvider]:
        """
        Enrich up to ``max_candidates`` candidates concurrently.

        Args:
            candidates: Candidates in discovery order
            specialty: Specialty the search used

        Returns:
            The same candidates in the same order; enriched ones carry a
            listing and the listing's source
        """
        if not self.enabled or not candidates or isinstance(self.provider, NullEnrichmentProvider):
            return candidates

        selected = candidates[:self.max_candidates]
        workers = max(1, min(self.max_workers, len(selected)))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            listings = list(executor.map(lambda c: self._enrich_one(c, specialty), selected))

        enriched = 0
        for candidate, listing in zip(selected, listings):
            if listing is None:
                continue
            candidate.listing = listing
            if listing.source not in candidate.sources:
                candidate.sources.append(listing.source)
            enriched += 1

        logger.info(f"Enriched {enriched} of {len(selected)} candidates")
        return candidates

    def _enrich_one(self, candidate: CandidateProvider, specialty: Optional[str]) -> Optional[DirectoryListing]:
        city, state = candidate.registry_city_state
        try:
            return self.provider.enrich(
                candidate.full_name,
                specialty or candidate.primary_specialty or None,
                city or None,
                state or None,
            )
        except Exception as e:
            logger.warning(f"Enrichment failed for NPI {candidate.npi}: {e}")
            return None
