"""
Unit tests for the specialty taxonomy and location normalizer.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from physician_search.exceptions import TaxonomyError
from physician_search.models import NormalizedLocation
from physician_search.normalize.location_normalizer import LocationNormalizer
from physician_search.normalize.specialty_taxonomy import SpecialtyTaxonomy, load_taxonomy_tables


class TestSpecialtyTaxonomy:
    """Test cases for specialty resolution and expansion."""

    def setup_method(self):
        """Setup test fixtures."""
        self.config = {
            "word_similarity_threshold": 0.75,
            "phrase_similarity_threshold": 0.7,
            "min_fuzzy_word_length": 4,
        }
        self.taxonomy = SpecialtyTaxonomy(self.config)

    def test_eye_surgeon_resolves_to_ophthalmology(self):
        """Test synonym resolution and related specialties."""
        assert self.taxonomy.canonicalize("eye surgeon") == "Ophthalmology"
        assert "Retina Surgery" in self.taxonomy.related_to("Ophthalmology")

    def test_canonical_maps_to_itself(self):
        """Test that every canonical specialty resolves to itself."""
        for specialty in self.taxonomy.canonical_specialties:
            assert self.taxonomy.canonicalize(specialty) == specialty

    def test_longest_synonym_wins(self):
        """Test that a longer synonym is preferred over a shorter one."""
        match = self.taxonomy.match("find a retina surgeon in tacoma")
        assert match.specialty == "Retina Surgery"
        assert match.matched_text == "retina surgeon"
        assert match.method == "direct"

    def test_fuzzy_word_match(self):
        """Test typo tolerance on single words."""
        match = self.taxonomy.match("cardiologst near me")
        assert match.specialty == "Cardiology"
        assert match.method == "fuzzy_word"
        assert match.matched_text == "cardiologst"

    def test_no_specialty(self):
        """Test text without any specialty."""
        assert self.taxonomy.match("Dr. John Smith") is None
        assert self.taxonomy.canonicalize("") is None
        assert self.taxonomy.canonicalize(None) is None

    def test_broader_and_alternates(self):
        """Test broader categories and legacy registry descriptions."""
        assert self.taxonomy.broader_of("Retina Surgery") == "Ophthalmology"
        assert self.taxonomy.broader_of("retina surgeon") == "Ophthalmology"
        assert self.taxonomy.broader_of("Dermatology") is None
        assert self.taxonomy.alternate_terms("Cardiology") == ["Cardiovascular Disease"]
        assert self.taxonomy.related_to("Unknown Specialty") == []

    def test_expansion_set(self):
        """Test that the expansion set covers synonyms, relatives and parents."""
        expanded = self.taxonomy.expansion_set("Retina Surgery")
        assert expanded[0] == "Retina Surgery"
        assert "retina surgeon" in expanded
        assert "Ophthalmology" in expanded
        assert "Glaucoma" in expanded
        lowered = [term.lower() for term in expanded]
        assert "retina specialist" in lowered
        assert len(lowered) == len(set(lowered))

    def test_filler_and_specialty_terms(self):
        """Test filler word and specialty term checks."""
        assert self.taxonomy.is_filler_word("Named")
        assert self.taxonomy.is_filler_word("Dr.")
        assert not self.taxonomy.is_filler_word("Smith")
        assert self.taxonomy.is_specialty_term("Cardiologist")
        assert not self.taxonomy.is_specialty_term("Tacoma")

    def test_closest_specialty(self):
        """Test did-you-mean suggestions."""
        assert self.taxonomy.closest_specialty("dermatolgist") == "Dermatology"
        assert self.taxonomy.closest_specialty("") is None

    def test_generic_default(self):
        """Test the generic default specialty."""
        assert self.taxonomy.generic_default == "General Practice"

    def test_invalid_taxonomy_file(self, tmp_path):
        """Test that a synonym pointing at an unknown specialty is rejected."""
        bad_file = tmp_path / "bad.yaml"
        bad_file.write_text("canonical: [Cardiology]\nsynonyms:\n  heart doctor: Kardiology\n")
        with pytest.raises(TaxonomyError):
            load_taxonomy_tables(str(bad_file))


class TestLocationNormalizer:
    """Test cases for location normalization."""

    def setup_method(self):
        """Setup test fixtures."""
        self.normalizer = LocationNormalizer()

    def test_tukwilla_correction(self):
        """Test misspelling correction and city/state split."""
        assert self.normalizer.normalize("Tukwilla") == "Tukwila, WA"
        assert self.normalizer.parse("Tukwila, WA") == NormalizedLocation(city="Tukwila", state="WA")

    def test_normalize_passthrough(self):
        """Test that unknown locations are only trimmed."""
        assert self.normalizer.normalize("  Olympia,   WA ") == "Olympia, WA"
        assert self.normalizer.normalize("tacoma washington") == "Tacoma, WA"
        assert self.normalizer.normalize("   ") is None
        assert self.normalizer.normalize(None) is None

    def test_parse_city_state_name(self):
        """Test "City Statename" and "City, Statename" forms."""
        assert self.normalizer.parse("Tacoma Washington") == NormalizedLocation(city="Tacoma", state="WA")
        assert self.normalizer.parse("san diego, california") == NormalizedLocation(city="San Diego", state="CA")
        assert self.normalizer.parse("Charleston West Virginia") == NormalizedLocation(city="Charleston", state="WV")

    def test_parse_state_only(self):
        """Test bare state names and codes."""
        assert self.normalizer.parse("WA") == NormalizedLocation(state="WA")
        assert self.normalizer.parse("West Virginia") == NormalizedLocation(state="WV")
        assert self.normalizer.parse("New York") == NormalizedLocation(state="NY")

    def test_parse_city_only(self):
        """Test a location without a state."""
        assert self.normalizer.parse("Seattle") == NormalizedLocation(city="Seattle")
        assert self.normalizer.parse("").is_empty
        assert self.normalizer.parse(None).is_empty

    def test_state_code(self):
        """Test state name and code conversion."""
        assert self.normalizer.state_code("washington") == "WA"
        assert self.normalizer.state_code("wa") == "WA"
        assert self.normalizer.state_code("Atlantis") is None

    def test_canonical_alias(self):
        """Test comparison keys for shorthand city names."""
        assert self.normalizer.canonical_alias_of("LA") == "los angeles"
        assert self.normalizer.canonical_alias_of("St Louis") == "saint louis"
        assert self.normalizer.canonical_alias_of("Tacoma") == "tacoma"
        assert self.normalizer.canonical_alias_of(None) == ""

    def test_parse_address(self):
        """Test city/state extraction from a display address."""
        location = self.normalizer.parse_address("123 Main St, Tacoma, WA 98405")
        assert location.city == "Tacoma"
        assert location.state == "WA"
        assert self.normalizer.parse_address("").is_empty


if __name__ == "__main__":
    pytest.main([__file__])
