"""
Specialty taxonomy for Physician Search.

Resolves free-text specialty terms ("eye surgeon", "cardiologst") to a
canonical specialty and exposes the broader/related/alternate specialty
sets the cascade uses to relax registry lookups.
"""

import re
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
import yaml
from thefuzz import fuzz, process

from physician_search.exceptions import TaxonomyError
from physician_search.match.fuzzy_matcher import similarity

logger = logging.getLogger(__name__)

DEFAULT_TAXONOMY_FILE = Path(__file__).resolve().parent.parent / "data" / "specialties.yaml"

_WORD_PATTERN = re.compile(r"[a-z][a-z'/&-]*")


@dataclass(frozen=True)
class TaxonomyTables:
    """Immutable lookup tables loaded from the taxonomy data file."""

    canonical: Tuple[str, ...]
    synonyms: Mapping[str, str]
    broader: Mapping[str, str]
    related: Mapping[str, Tuple[str, ...]]
    alternates: Mapping[str, Tuple[str, ...]]
    filler_words: frozenset
    generic_default: str


@dataclass(frozen=True)
class SpecialtyMatch:
    """A specialty resolved from a span of query text."""

    specialty: str
    matched_text: str
    start: int
    end: int
    method: str


@lru_cache(maxsize=None)
def load_taxonomy_tables(taxonomy_file: str = str(DEFAULT_TAXONOMY_FILE)) -> TaxonomyTables:
    """
    Load and validate the specialty taxonomy data file.

    Cached per path, so the tables are read once per process.

    Args:
        taxonomy_file: Path to the taxonomy YAML file

    Returns:
        Immutable taxonomy tables
    """
    with open(taxonomy_file, 'r') as f:
        raw = yaml.safe_load(f) or {}

    canonical = tuple(raw.get("canonical", []))
    canonical_set = set(canonical)
    if not canonical:
        raise TaxonomyError(f"No canonical specialties defined in {taxonomy_file}")

    synonyms: Dict[str, str] = {name.lower(): name for name in canonical}
    for synonym, target in (raw.get("synonyms") or {}).items():
        key = str(synonym).lower().strip()
        if target not in canonical_set:
            raise TaxonomyError(f"Synonym '{synonym}' maps to unknown specialty '{target}'")
        if key in synonyms and synonyms[key] != target:
            raise TaxonomyError(f"Synonym '{synonym}' maps to more than one specialty")
        synonyms[key] = target

    def _checked(section: str) -> Dict:
        table = raw.get(section) or {}
        for key, value in table.items():
            values = value if isinstance(value, list) else [value]
            unknown = [v for v in [key] + values if v not in canonical_set]
            if unknown:
                raise TaxonomyError(f"Unknown specialties in '{section}': {unknown}")
        return table

    broader = _checked("broader")
    related = {k: tuple(v) for k, v in _checked("related").items()}
    alternates = {k: tuple(v) for k, v in (raw.get("alternates") or {}).items()}
    unknown_alternates = [k for k in alternates if k not in canonical_set]
    if unknown_alternates:
        raise TaxonomyError(f"Unknown specialties in 'alternates': {unknown_alternates}")

    generic_default = raw.get("generic_default", "General Practice")

    logger.info(f"Loaded specialty taxonomy with {len(canonical)} specialties and {len(synonyms)} synonyms")

    return TaxonomyTables(
        canonical=canonical,
        synonyms=MappingProxyType(synonyms),
        broader=MappingProxyType(dict(broader)),
        related=MappingProxyType(related),
        alternates=MappingProxyType(alternates),
        filler_words=frozenset(w.lower() for w in raw.get("filler_words", [])),
        generic_default=generic_default,
    )


class SpecialtyTaxonomy:
    """
    Maps specialty synonyms to canonical specialties.

    Matching tries a direct synonym match first, then per-word and
    two-word fuzzy matches to tolerate typos.
    """

    def __init__(self, config: Optional[Dict] = None, taxonomy_file: Optional[str] = None):
        """
        Initialize specialty taxonomy with configuration.

        Args:
            config: Taxonomy section of the search configuration
            taxonomy_file: Override path for the taxonomy data file
        """
        config = config or {}
        self.word_threshold = config.get("word_similarity_threshold", 0.75)
        self.phrase_threshold = config.get("phrase_similarity_threshold", 0.7)
        self.min_word_length = config.get("min_fuzzy_word_length", 4)
        self.suggestion_min_score = config.get("suggestion_min_score", 85)

        self.tables = load_taxonomy_tables(taxonomy_file or str(DEFAULT_TAXONOMY_FILE))
        self._canonical_by_lower = {name.lower(): name for name in self.tables.canonical}

        # Longest synonyms first so "retina surgeon" wins over "retina"
        ordered = sorted(self.tables.synonyms, key=len, reverse=True)
        self._direct_patterns = [
            (synonym, re.compile(r"(?<![a-z0-9])" + r"\s+".join(map(re.escape, synonym.split())) + r"(?![a-z0-9])"))
            for synonym in ordered
        ]
        self._single_word_synonyms = [
            s for s in self.tables.synonyms if " " not in s and len(s) >= self.min_word_length
        ]
        self._two_word_synonyms = [s for s in self.tables.synonyms if len(s.split()) == 2]

    @property
    def generic_default(self) -> str:
        return self.tables.generic_default

    @property
    def canonical_specialties(self) -> List[str]:
        return list(self.tables.canonical)

    def canonicalize(self, text: str) -> Optional[str]:
        """
        Resolve free text to a canonical specialty.

        Args:
            text: Free text that may mention a specialty

        Returns:
            Canonical specialty, or None when nothing matches
        """
        match = self.match(text)
        return match.specialty if match else None

    def match(self, text: str) -> Optional[SpecialtyMatch]:
        """
        Resolve free text to a canonical specialty and report the matched span.

        Args:
            text: Free text that may mention a specialty

        Returns:
            SpecialtyMatch, or None when nothing matches
        """
        if not text or not isinstance(text, str):
            return None

        lowered = text.lower()

        # (a) direct synonym match
        for synonym, pattern in self._direct_patterns:
            found = pattern.search(lowered)
            if found:
                return SpecialtyMatch(
                    specialty=self.tables.synonyms[synonym],
                    matched_text=text[found.start():found.end()],
                    start=found.start(),
                    end=found.end(),
                    method="direct",
                )

        words = list(_WORD_PATTERN.finditer(lowered))

        # (b) per-word fuzzy match
        best: Optional[Tuple[float, re.Match, str]] = None
        for word in words:
            token = word.group(0)
            if len(token) < self.min_word_length or token in self.tables.filler_words:
                continue
            for synonym in self._single_word_synonyms:
                score = similarity(token, synonym)
                if score > self.word_threshold and (best is None or score > best[0]):
                    best = (score, word, synonym)
        if best:
            _, word, synonym = best
            return SpecialtyMatch(
                specialty=self.tables.synonyms[synonym],
                matched_text=text[word.start():word.end()],
                start=word.start(),
                end=word.end(),
                method="fuzzy_word",
            )

        # (c) adjacent two-word fuzzy match
        best_pair: Optional[Tuple[float, int, int, str]] = None
        for first, second in zip(words, words[1:]):
            phrase = f"{first.group(0)} {second.group(0)}"
            for synonym in self._two_word_synonyms:
                score = similarity(phrase, synonym)
                if score > self.phrase_threshold and (best_pair is None or score > best_pair[0]):
                    best_pair = (score, first.start(), second.end(), synonym)
        if best_pair:
            _, start, end, synonym = best_pair
            return SpecialtyMatch(
                specialty=self.tables.synonyms[synonym],
                matched_text=text[start:end],
                start=start,
                end=end,
                method="fuzzy_phrase",
            )

        return None

    def _canonical(self, specialty: Optional[str]) -> Optional[str]:
        if not specialty:
            return None
        key = specialty.lower().strip()
        return self._canonical_by_lower.get(key) or self.tables.synonyms.get(key)

    def broader_of(self, specialty: str) -> Optional[str]:
        """Return the parent category of a specialty, if one is defined."""
        canonical = self._canonical(specialty)
        return self.tables.broader.get(canonical) if canonical else None

    def related_to(self, specialty: str) -> List[str]:
        """Return sibling specialties in curated priority order."""
        canonical = self._canonical(specialty)
        return list(self.tables.related.get(canonical, ())) if canonical else []

    def alternate_terms(self, specialty: str) -> List[str]:
        """Return legacy registry descriptions for a specialty."""
        canonical = self._canonical(specialty)
        return list(self.tables.alternates.get(canonical, ())) if canonical else []

    def synonyms_of(self, specialty: str) -> List[str]:
        canonical = self._canonical(specialty)
        if not canonical:
            return []
        return [s for s, target in self.tables.synonyms.items() if target == canonical]

    def expansion_set(self, specialty: str) -> List[str]:
        """
        Every term that should count as the same or a closely related specialty.

        Args:
            specialty: Canonical or free-text specialty

        Returns:
            De-duplicated list: the specialty, its synonyms, related and
            broader specialties and legacy alternates
        """
        canonical = self._canonical(specialty) or specialty
        terms = [canonical]
        terms.extend(self.synonyms_of(canonical))
        terms.extend(self.related_to(canonical))
        broader = self.broader_of(canonical)
        if broader:
            terms.append(broader)
        terms.extend(self.alternate_terms(canonical))

        seen = set()
        expanded = []
        for term in terms:
            key = term.lower()
            if key not in seen:
                seen.add(key)
                expanded.append(term)
        return expanded

    def is_specialty_term(self, text: str) -> bool:
        """True when the whole text is a known synonym or filler word."""
        if not text:
            return False
        key = " ".join(text.lower().split())
        return key in self.tables.synonyms or key in self.tables.filler_words

    def is_filler_word(self, word: str) -> bool:
        return word.lower().strip(".,") in self.tables.filler_words

    def closest_specialty(self, text: str) -> Optional[str]:
        """
        Best "did you mean" specialty for text the parser could not resolve.

        Args:
            text: Unresolved query text

        Returns:
            Canonical specialty, or None when nothing is close enough
        """
        if not text:
            return None

        best: Optional[Tuple[str, int]] = None
        choices = list(self.tables.synonyms)
        for word in _WORD_PATTERN.findall(text.lower()):
            if len(word) < 5 or word in self.tables.filler_words:
                continue
            found = process.extractOne(word, choices, scorer=fuzz.partial_ratio,
                                       score_cutoff=self.suggestion_min_score)
            if found and (best is None or found[1] > best[1]):
                best = (found[0], found[1])

        return self.tables.synonyms[best[0]] if best else None
