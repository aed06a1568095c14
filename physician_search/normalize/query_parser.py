"""
Free-text query parsing for Physician Search.

Splits a query such as "retina surgeon in Tacoma, WA" or "Dr. John A. Smith"
into name, specialty and location facets.
"""

import re
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from physician_search.models import FacetSuggestion, ParsedFacets
from physician_search.normalize.location_normalizer import LocationNormalizer
from physician_search.normalize.specialty_taxonomy import SpecialtyTaxonomy

logger = logging.getLogger(__name__)

# First words of multi-word city names ("San Diego", "Fort Worth")
CITY_PREFIXES = [
    "new", "san", "los", "las", "santa", "saint", "st", "fort", "ft", "el", "la",
    "palm", "salt", "baton", "grand", "little", "long", "north", "south", "east",
    "west", "cedar", "corpus", "sioux", "port", "mount", "mt",
]

# Last words of multi-word city names ("Kansas City", "Palm Springs")
CITY_SUFFIXES = [
    "city", "beach", "springs", "falls", "heights", "park", "lake", "valley",
    "island", "rapids", "creek", "hills", "harbor", "grove", "village",
]

TITLE_WORDS = {"dr", "doctor"}


class QueryParser:
    """
    Extracts search facets from a free-text query.

    Location is removed first, then specialty, and the name is read from
    whatever text is left over.
    """

    def __init__(self, taxonomy: SpecialtyTaxonomy, normalizer: LocationNormalizer,
                 config: Optional[Dict] = None):
        """
        Initialize query parser.

        Args:
            taxonomy: Specialty taxonomy used to resolve specialty text
            normalizer: Location normalizer used to clean location text
            config: Parser section of the search configuration
        """
        self.taxonomy = taxonomy
        self.normalizer = normalizer
        self.config = config or {}
        self.nlu_min_confidence = self.config.get("nlu_min_confidence", 50)

        self.preposition_pattern = re.compile(
            r"\b(?:in|near|at)\s+([^,]+(?:,\s*[A-Za-z]{2,}(?:\s+[A-Za-z]+)?)?)",
            re.IGNORECASE,
        )
        prefixes = "|".join(CITY_PREFIXES)
        self.city_state_name_pattern = re.compile(
            rf"\b((?:(?:{prefixes})\.?\s+)?[A-Za-z]+)\s+({normalizer.state_name_pattern})\b",
            re.IGNORECASE,
        )
        self.city_state_code_pattern = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?),\s*([A-Z]{2})\b")
        self.capitalized_run_pattern = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+\b")
        self.token_pattern = re.compile(r"[A-Za-z][A-Za-z'.-]*")
        self.whitespace_pattern = re.compile(r"\s+")

        logger.info("Initialized QueryParser")

    def parse(self, query: str) -> ParsedFacets:
        """
        Parse a free-text query into facets.

        Args:
            query: Raw query text

        Returns:
            ParsedFacets; facets that could not be extracted are None
        """
        if not query or not isinstance(query, str):
            return ParsedFacets(original_query=query or "")

        original = self.whitespace_pattern.sub(" ", query).strip()
        working = original

        location_text, working = self._extract_location(working)

        specialty = None
        specialty_text = None
        match = self.taxonomy.match(working)
        if match:
            specialty = match.specialty
            specialty_text = match.matched_text
            working = self._remove_span(working, match.start, match.end)

        first_name, last_name = self._extract_name(working)
        if not first_name and not last_name:
            first_name, last_name = self._fallback_name(original, location_text)

        location = self.normalizer.normalize(location_text) if location_text else None

        facets = ParsedFacets(
            original_query=original,
            first_name=first_name,
            last_name=last_name,
            specialty=specialty,
            location=location,
            specialty_text=specialty_text,
        )
        logger.debug(f"Parsed query '{original}' into {facets}")
        return facets

    def apply_suggestions(self, facets: ParsedFacets, suggestions: List[FacetSuggestion],
                          min_confidence: Optional[float] = None) -> ParsedFacets:
        """
        Fill facets the parser left empty from the top NLU suggestion.

        Args:
            facets: Facets produced by ``parse``
            suggestions: Suggestions ordered best first
            min_confidence: Minimum confidence of the top suggestion

        Returns:
            New ParsedFacets; extracted facets are never overridden
        """
        if min_confidence is None:
            min_confidence = self.nlu_min_confidence
        if not suggestions:
            return facets

        top = suggestions[0]
        if top.confidence < min_confidence:
            logger.debug(f"Ignoring facet suggestion with confidence {top.confidence}")
            return facets

        updates = {}
        if facets.first_name is None and top.first_name:
            updates["first_name"] = top.first_name.strip()
        if facets.last_name is None and top.last_name:
            updates["last_name"] = top.last_name.strip()
        if facets.specialty is None and top.specialty:
            updates["specialty"] = self.taxonomy.canonicalize(top.specialty) or top.specialty.strip()
        if facets.location is None and top.location:
            updates["location"] = self.normalizer.normalize(top.location)

        if updates:
            logger.info(f"Filled facets {sorted(updates)} from suggestion")
            return replace(facets, **updates)
        return facets

    def _extract_location(self, text: str) -> Tuple[Optional[str], str]:
        # "in Tacoma, WA" / "near Seattle"
        found = self.preposition_pattern.search(text)
        if found:
            location_end, removed_end = self._location_bounds(text, *found.span(1))
            location = text[found.start(1):location_end].strip(" ,.")
            remaining = self._remove_span(text, found.start(), removed_end)
            # "near me"
            if all(self.taxonomy.is_filler_word(w) for w in location.split()):
                return None, remaining
            return location, remaining

        # "Tacoma Washington", but not the surname in "Dr. Mary Washington"
        for found in self.city_state_name_pattern.finditer(text):
            city, state = found.group(1), found.group(2)
            if city.lower() in TITLE_WORDS or self._follows_title(text, found.start()):
                continue
            if self.taxonomy.is_specialty_term(city) or self.taxonomy.is_filler_word(city):
                return state, self._remove_span(text, found.start(2), found.end(2))
            return f"{city} {state}", self._remove_span(text, found.start(), found.end())

        # "Tacoma, WA"
        for found in self.city_state_code_pattern.finditer(text):
            if found.group(2) in self.normalizer.valid_codes:
                return found.group(0), self._remove_span(text, found.start(), found.end())

        # Trailing shorthand or misspelling: "dentist tukwilla", "cardiologist nyc"
        words = text.split()
        for width in (2, 1):
            if len(words) > width:
                tail = " ".join(words[-width:])
                rest = " ".join(words[:-width])
                if self.normalizer.is_known_location(tail) and not self._is_bare_name(rest, tail):
                    return tail, rest

        return None, text

    def _location_bounds(self, text: str, start: int, end: int) -> Tuple[int, int]:
        """
        Find where a location introduced by "in", "near" or "at" ends.

        The location stops before a filler word or a specialty and is capped
        at a city-sized run of words. Lowercase words cut off by the cap
        ("in Seattle accepting new patients") are removed with it;
        capitalized ones ("in Seattle Sarah Lee") are left for the name.

        Args:
            text: Query text
            start: Start of the text following the preposition
            end: End of the preposition match

        Returns:
            (end of the location text, end of the text to remove)
        """
        comma = text.find(",", start, end)
        words = list(self.token_pattern.finditer(text, start, comma if comma != -1 else end))
        if not words:
            return end, end

        kept = len(words)
        for i in range(1, len(words)):
            if self._ends_location(text, words[i], end):
                kept = i
                break

        size = self._city_size([w.group(0) for w in words[:kept]])
        location_end = words[size - 1].end()
        if size < kept:
            if all(w.group(0)[0].isupper() for w in words[size:kept]):
                return location_end, location_end
            return location_end, words[kept - 1].end()
        if kept < len(words) or comma == -1:
            return location_end, location_end

        # ", WA" / ", West Virginia"
        state_words = list(self.token_pattern.finditer(text, comma, end))
        if len(state_words) > 1:
            two_words = f"{state_words[0].group(0)} {state_words[1].group(0)}"
            if self.normalizer.state_code(two_words):
                return state_words[1].end(), state_words[1].end()
        if state_words and not self._ends_location(text, state_words[0], end):
            return state_words[0].end(), state_words[0].end()
        return location_end, location_end

    def _ends_location(self, text: str, word: re.Match, end: int) -> bool:
        token = word.group(0)
        if self.taxonomy.is_filler_word(token) or self.taxonomy.is_specialty_term(token.strip(".,'-")):
            return True
        found = self.taxonomy.match(text[word.start():end])
        return found is not None and found.start == 0

    def _city_size(self, words: List[str]) -> int:
        for size in range(min(len(words), 4), 1, -1):
            if self._is_place(" ".join(words[:size])):
                return size

        lowered = [w.lower().rstrip(".") for w in words]
        size = 1
        if len(words) > 1 and (lowered[0] in CITY_PREFIXES or lowered[1] in CITY_SUFFIXES):
            size = 2
            if len(words) > 2 and lowered[2] in CITY_SUFFIXES:
                size = 3
        return size

    def _is_place(self, text: str) -> bool:
        key = " ".join(text.lower().split())
        return (self.normalizer.is_known_location(text) or key in self.normalizer.aliases
                or self.normalizer.parse(text).state is not None)

    def _follows_title(self, text: str, position: int) -> bool:
        before = text[:position].split()
        if not before:
            return False
        word = before[-1].lower().rstrip(".")
        return word == "dr" or (word == "doctor" and len(before) == 1)

    def _is_bare_name(self, text: str, tail: str) -> bool:
        # "Dr. Anna La" is a surname, "cardiologist la" a location
        if self.taxonomy.match(text):
            return False
        words = text.split()
        titled = bool(words) and words[0].lower().rstrip(".") in TITLE_WORDS
        return titled or tail.istitle()

    def _remove_span(self, text: str, start: int, end: int) -> str:
        return self.whitespace_pattern.sub(" ", f"{text[:start]} {text[end:]}").strip()

    def _extract_name(self, text: str) -> Tuple[Optional[str], Optional[str]]:
        words = [w.strip(".,'-") for w in self.token_pattern.findall(text)]
        words = [w for w in words if w]

        while words and words[0].lower() in TITLE_WORDS:
            words = words[1:]
        words = [w for w in words if not self.taxonomy.is_filler_word(w)]

        if not words:
            return None, None

        words = [self._display_name(w) for w in words]

        if len(words) >= 3 and len(words[1]) == 1:
            return words[0], " ".join(words[2:])
        if len(words) == 2:
            return words[0], words[1]
        if len(words) >= 3:
            return words[0], " ".join(words[1:])
        return None, words[0]

    def _fallback_name(self, original: str, location_text: Optional[str]
                       ) -> Tuple[Optional[str], Optional[str]]:
        """Recover the first capitalized two-word run that is not location or specialty text."""
        location_words = set((location_text or "").lower().replace(",", " ").split())
        for run in self.capitalized_run_pattern.finditer(original):
            words = [
                w for w in run.group(0).split()
                if not self.taxonomy.is_filler_word(w)
                and not self.taxonomy.is_specialty_term(w)
                and w.lower() not in location_words
            ]
            if len(words) >= 2:
                return words[0], " ".join(words[1:])

        return None, None

    def _display_name(self, word: str) -> str:
        return word.capitalize() if word.islower() or word.isupper() else word
