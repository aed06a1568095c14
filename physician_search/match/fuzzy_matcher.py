"""
Fuzzy string matching for Physician Search.

Edit-distance similarity and tiered name-variant matching used both to
post-filter relaxed registry lookups and to score ranked candidates.
"""

import re
import logging
from dataclasses import dataclass
from typing import List
from Levenshtein import distance as levenshtein_distance

logger = logging.getLogger(__name__)

_NON_LETTER_PATTERN = re.compile(r"[^a-z\s]")
_WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass(frozen=True)
class NameMatchResult:
    matched: bool
    score: float
    kind: str


NO_MATCH = NameMatchResult(matched=False, score=0.0, kind="no-match")


def edit_distance(a: str, b: str) -> int:
    """Case-insensitive Levenshtein distance with unit costs."""
    return levenshtein_distance((a or "").lower(), (b or "").lower())


def similarity(a: str, b: str) -> float:
    """
    Normalized edit-distance similarity in [0, 1].

    Args:
        a: First string
        b: Second string

    Returns:
        1 - distance / max(len(a), len(b)); 1.0 when both are empty
    """
    a = a or ""
    b = b or ""
    max_length = max(len(a), len(b))
    if max_length == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / max_length


def normalize_name_text(name: str) -> str:
    """Lowercase a name and keep only letters and single spaces."""
    if not name or not isinstance(name, str):
        return ""
    text = _NON_LETTER_PATTERN.sub("", name.lower().strip())
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def extract_initials(name: str) -> str:
    return "".join(part[0] for part in name.split() if part)


def match_name(search_name: str, candidate_name: str) -> NameMatchResult:
    """
    Match a searched name against a candidate's name.

    Tiers are checked in order: exact, substring, initials, last name,
    token overlap, then whole-string similarity for typos.

    Args:
        search_name: Name typed by the user
        candidate_name: Name on the registry record

    Returns:
        NameMatchResult with a 0-100 score
    """
    search = normalize_name_text(search_name)
    candidate = normalize_name_text(candidate_name)

    if not search or not candidate:
        return NO_MATCH

    if search == candidate:
        return NameMatchResult(True, 100.0, "exact")

    if search in candidate or candidate in search:
        return NameMatchResult(True, 95.0, "exact")

    # "Andrew Kopstein" vs "A Kopstein"
    search_initials = extract_initials(search)
    if search_initials == extract_initials(candidate) and len(search_initials) >= 2:
        return NameMatchResult(True, 90.0, "initials")

    search_parts = [p for p in search.split() if len(p) > 1]
    candidate_parts = [p for p in candidate.split() if len(p) > 1]

    if search_parts and candidate_parts:
        search_last = search_parts[-1]
        candidate_last = candidate_parts[-1]

        if search_last == candidate_last and len(search_last) >= 3:
            search_first = search_parts[0]
            candidate_first = candidate_parts[0]
            if (search_first == candidate_first
                    or search_first[0] == candidate_first[0]
                    or search_first in candidate_first
                    or candidate_first in search_first):
                return NameMatchResult(True, 88.0, "partial")
            return NameMatchResult(True, 75.0, "partial")

        matching_parts = [
            part for part in search_parts
            if any(part in other or other in part for other in candidate_parts)
        ]
        if len(matching_parts) >= min(2, len(search_parts)):
            return NameMatchResult(True, 80.0, "partial")

    ratio = similarity(search, candidate)
    if ratio > 0.85:
        return NameMatchResult(True, ratio * 100.0, "similar")

    return NO_MATCH


def token_overlap_ratio(a: str, b: str) -> float:
    """
    Share of words that overlap between two phrases.

    A word overlaps when it contains, or is contained by, a word of the
    other phrase. The count is divided by the longer phrase's word count.
    """
    words_a = _split_words(a)
    words_b = _split_words(b)
    if not words_a or not words_b:
        return 0.0

    matching = [w for w in words_a if any(w in o or o in w for o in words_b)]
    return len(matching) / max(len(words_a), len(words_b))


def _split_words(text: str) -> List[str]:
    if not text:
        return []
    return [w for w in _WHITESPACE_PATTERN.split(text.lower().strip()) if w]
