"""
Location normalization for Physician Search.

Corrects common misspellings and shorthand, splits free-text locations
into city and 2-letter state, and parses provider display addresses.
"""

import re
import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple
import usaddress
import yaml

from physician_search.models import NormalizedLocation

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_FILE = Path(__file__).resolve().parent.parent / "data" / "locations.yaml"


@lru_cache(maxsize=None)
def load_location_tables(location_file: str = str(DEFAULT_LOCATION_FILE)) -> Tuple[Mapping[str, str], ...]:
    """
    Load the correction, alias and state tables.

    Args:
        location_file: Path to the locations YAML file

    Returns:
        Tuple of (corrections, aliases, state_codes) read-only mappings
    """
    with open(location_file, 'r') as f:
        raw = yaml.safe_load(f) or {}

    corrections = {str(k).lower(): v for k, v in (raw.get("corrections") or {}).items()}
    aliases = {str(k).lower(): str(v).lower() for k, v in (raw.get("aliases") or {}).items()}
    states = {str(k).lower(): str(v).upper() for k, v in (raw.get("states") or {}).items()}

    logger.info(f"Loaded {len(corrections)} location corrections and {len(states)} states")
    return MappingProxyType(corrections), MappingProxyType(aliases), MappingProxyType(states)


class LocationNormalizer:
    """
    Normalizes free-text locations for registry lookups and comparisons.

    Display strings keep the user's spelling where no correction applies;
    comparison keys go through the alias table.
    """

    def __init__(self, config: Optional[Dict] = None, location_file: Optional[str] = None):
        """
        Initialize location normalizer.

        Args:
            config: Optional configuration dictionary
            location_file: Override path for the locations data file
        """
        self.config = config or {}
        self.corrections, self.aliases, self.state_codes = load_location_tables(
            location_file or str(DEFAULT_LOCATION_FILE)
        )
        self.valid_codes = frozenset(self.state_codes.values())

        # Longest names first so "west virginia" wins over "virginia"
        state_names = sorted(self.state_codes, key=len, reverse=True)
        self.state_name_pattern = "|".join(r"\s+".join(map(re.escape, n.split())) for n in state_names)

        self.whitespace_pattern = re.compile(r"\s+")
        self.zip_pattern = re.compile(r"\b\d{5}(?:-\d{4})?\b")
        self.city_state_tail_pattern = re.compile(
            r"([^,]+),\s*([A-Za-z][A-Za-z .]*?)\.?\s*(?:\d{5}(?:-\d{4})?)?\s*$"
        )

        logger.info("Initialized LocationNormalizer")

    def _key(self, text: str) -> str:
        return self.whitespace_pattern.sub(" ", text).strip().lower()

    def normalize(self, raw: Optional[str]) -> Optional[str]:
        """
        Apply the correction table to a free-text location.

        Args:
            raw: Raw location text

        Returns:
            Corrected location, the trimmed input when no rule applies,
            or None for empty input
        """
        if raw is None or not isinstance(raw, str):
            return None

        collapsed = self.whitespace_pattern.sub(" ", raw).strip()
        if not collapsed:
            return None

        key = collapsed.lower()
        if key in self.corrections:
            return self.corrections[key]

        key_without_comma = self.whitespace_pattern.sub(" ", key.replace(",", " ")).strip()
        if key_without_comma in self.corrections:
            return self.corrections[key_without_comma]

        return collapsed

    def is_known_location(self, text: str) -> bool:
        """True when the text is a key of the correction table."""
        return bool(text) and self._key(text) in self.corrections

    def state_code(self, text: Optional[str]) -> Optional[str]:
        """
        Convert a state name or code to its 2-letter code.

        Args:
            text: State name or abbreviation

        Returns:
            2-letter state code, or None if unrecognized
        """
        if not text:
            return None
        key = self._key(text).strip(".")
        if len(key) == 2 and key.upper() in self.valid_codes:
            return key.upper()
        return self.state_codes.get(key)

    def parse(self, location: Optional[str]) -> NormalizedLocation:
        """
        Split a location string into city and state.

        Recognizes, in order: "City, ST" / "City, Statename", "City Statename",
        a bare state code, a bare state name, and otherwise a city.

        Args:
            location: Location string

        Returns:
            NormalizedLocation
        """
        if not location or not isinstance(location, str):
            return NormalizedLocation()

        text = self.whitespace_pattern.sub(" ", location).strip().strip(".").strip()
        if not text:
            return NormalizedLocation()

        # "City, ST" or "City, Statename" (a trailing ZIP is ignored)
        if "," in text:
            city_part, state_part = text.rsplit(",", 1)
            state_part = self.zip_pattern.sub("", state_part).strip()
            code = self.state_code(state_part)
            city = self._display_city(city_part)
            if code:
                return NormalizedLocation(city=city or None, state=code)
            if city:
                return NormalizedLocation(city=city)

        words = text.replace(",", " ").split()
        whole_is_state = text.lower() in self.state_codes

        # "City Statename", state name of one or two words
        for width in ((2, 1) if not whole_is_state else ()):
            if len(words) > width:
                tail = " ".join(words[-width:])
                code = self.state_codes.get(tail.lower())
                if code is None and width == 1 and len(tail) == 2 and tail.isupper():
                    code = tail if tail in self.valid_codes else None
                if code:
                    city = self._display_city(" ".join(words[:-width]))
                    return NormalizedLocation(city=city, state=code)

        # Bare state code
        if len(text) == 2 and text.upper() in self.valid_codes:
            return NormalizedLocation(state=text.upper())

        # Bare state name
        code = self.state_codes.get(text.lower())
        if code:
            return NormalizedLocation(state=code)

        return NormalizedLocation(city=self._display_city(text))

    def canonical_alias_of(self, term: Optional[str]) -> str:
        """
        Comparison key for a location term; never used for display.

        Args:
            term: City or location term

        Returns:
            Lowercase canonical key ("la" -> "los angeles")
        """
        if not term:
            return ""
        key = self._key(term)
        return self.aliases.get(key, key)

    def parse_address(self, address: Optional[str]) -> NormalizedLocation:
        """
        Extract city and state from a one-line display address.

        Args:
            address: Display address ("123 Main St, Tacoma, WA 98405")

        Returns:
            NormalizedLocation, empty when nothing could be recognized
        """
        if not address or not isinstance(address, str):
            return NormalizedLocation()

        try:
            parsed, _ = usaddress.tag(address)
            city = parsed.get("PlaceName", "").strip(" ,")
            state = self.state_code(parsed.get("StateName", "").strip(" ,"))
            if city or state:
                return NormalizedLocation(city=self._display_city(city) or None, state=state)
        except usaddress.RepeatedLabelError as e:
            logger.warning(f"Failed to parse address '{address}': {e}")

        # Fallback: "..., City, ST 12345"
        match = self.city_state_tail_pattern.search(address)
        if match:
            city = match.group(1).strip()
            state = self.state_code(match.group(2))
            if state:
                return NormalizedLocation(city=self._display_city(city) or None, state=state)

        return NormalizedLocation()

    def _display_city(self, city: str) -> str:
        city = self.whitespace_pattern.sub(" ", city or "").strip(" ,.")
        if city.islower() or city.isupper():
            city = city.title()
        return city
