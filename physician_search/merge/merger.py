"""
Candidate merger for Physician Search.

Collapses duplicate candidates on their registry identifier and assembles
the display records returned to callers.
"""

import logging
from typing import Dict, List, Optional

import phonenumbers
from phonenumbers import PhoneNumberFormat

from physician_search.models import CandidateProvider, ConfidenceScore, RankedResult

logger = logging.getLogger(__name__)


class ResultMerger:
    """
    Merges duplicate candidates and builds ranked display records.

    Duplicates share an NPI; the first occurrence wins and later copies
    only contribute sources and a directory listing it lacks.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize result merger.

        Args:
            config: Optional configuration dictionary
        """
        self.config = config or {}
        self.default_country = self.config.get("default_country", "US")

        logger.info("Initialized ResultMerger")

    def dedupe_by_identity(self, candidates: List[CandidateProvider]) -> List[CandidateProvider]:
        """
        Remove candidates that repeat an earlier NPI.

        Args:
            candidates: Candidates in discovery order

        Returns:
            One candidate per NPI, in order of first appearance
        """
        merged: Dict[str, CandidateProvider] = {}
        for candidate in candidates:
            existing = merged.get(candidate.npi)
            if existing is None:
                merged[candidate.npi] = candidate
                continue

            for source in candidate.sources:
                if source not in existing.sources:
                    existing.sources.append(source)
            if existing.listing is None and candidate.listing is not None:
                existing.listing = candidate.listing

        if len(merged) < len(candidates):
            logger.info(f"Merged {len(candidates) - len(merged)} duplicate candidates")
        return list(merged.values())

    def format_phone(self, phone: Optional[str]) -> str:
        """
        Format a phone number for display.

        Args:
            phone: Raw phone number

        Returns:
            National format ("(253) 555-0100"), the raw text when it cannot
            be parsed, or "" when empty
        """
        if not phone or not phone.strip():
            return ""

        try:
            parsed_phone = phonenumbers.parse(phone, self.default_country)
        except phonenumbers.NumberParseException as e:
            logger.debug(f"Failed to parse phone '{phone}': {e}")
            return phone.strip()

        if not phonenumbers.is_possible_number(parsed_phone):
            return phone.strip()

        return phonenumbers.format_number(parsed_phone, PhoneNumberFormat.NATIONAL)

    def build_ranked_result(self, candidate: CandidateProvider, score: ConfidenceScore) -> RankedResult:
        """
        Assemble the display record for a scored candidate.

        Args:
            candidate: Candidate provider
            score: Its confidence score

        Returns:
            RankedResult
        """
        return RankedResult(
            npi=candidate.npi,
            name=candidate.display_name,
            specialty=candidate.primary_specialty,
            location=candidate.display_location,
            phone=self.format_phone(candidate.phone),
            rating=candidate.rating,
            years_experience=candidate.years_experience,
            confidence=score,
        )
