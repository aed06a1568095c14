"""
Unit tests for the cascading registry search.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from physician_search.exceptions import SearchValidationError
from physician_search.models import ParsedFacets
from physician_search.normalize.location_normalizer import LocationNormalizer
from physician_search.normalize.specialty_taxonomy import SpecialtyTaxonomy
from physician_search.search.cascade import STAGES, CascadingSearch
from provider_factory import FakeRegistryClient, registry_entry


class TestCascadingSearch:
    """Test cases for stage ordering and short-circuiting."""

    def setup_method(self):
        """Setup test fixtures."""
        self.taxonomy = SpecialtyTaxonomy()
        self.normalizer = LocationNormalizer()
        self.config = {"name_match_threshold": 70, "specialty_match_threshold": 50}

    def _cascade(self, client):
        return CascadingSearch(client, self.taxonomy, self.normalizer, self.config)

    def test_exact_stage_short_circuits(self):
        """Test that a hit in the first stage issues exactly one call."""
        client = FakeRegistryClient(lambda params: [
            registry_entry("1", "John", "Smith", "Cardiology", city="SEATTLE")
        ])
        facets = ParsedFacets(original_query="q", first_name="John", last_name="Smith",
                              specialty="Cardiology", location="Seattle, WA")
        result = self._cascade(client).run(facets)

        assert result.stage == "exact"
        assert result.specialty_used == "Cardiology"
        assert len(client.calls) == 1
        assert client.calls[0] == {"first_name": "John", "last_name": "Smith", "specialty": "Cardiology",
                                   "city": "Seattle", "state": "WA"}
        assert result.call_count == 1

    def test_related_specialty_stage(self):
        """Test that related specialties are tried in priority order."""
        def responder(params):
            if params.get("specialty") == "Interventional Cardiology":
                return [registry_entry("1", "John", "Smith", "Interventional Cardiology", city="SEATTLE")]
            return []

        client = FakeRegistryClient(responder)
        facets = ParsedFacets(original_query="q", first_name="John", last_name="Smith",
                              specialty="Cardiology", location="Seattle, WA")
        result = self._cascade(client).run(facets)

        assert result.stage == "specialty_relaxation"
        assert result.specialty_used == "Interventional Cardiology"
        assert len(client.calls) == 2

    def test_name_relaxation_post_filter(self):
        """Test that dropping the first name keeps only close name matches."""
        def responder(params):
            if "first_name" not in params and params.get("last_name") == "Smith":
                return [
                    registry_entry("1", "Jonathan", "Smith", "Dermatology", city="SEATTLE"),
                    registry_entry("2", "Mary", "Smith", "Dermatology", city="SEATTLE"),
                ]
            return []

        client = FakeRegistryClient(responder)
        facets = ParsedFacets(original_query="q", first_name="Jon", last_name="Smith",
                              specialty="Dermatology", location="Seattle, WA")
        result = self._cascade(client).run(facets)

        assert result.stage == "name_relaxation"
        assert [c.npi for c in result.candidates] == ["1", "2"]
        assert len(client.calls) == 3

    def test_location_relaxation(self):
        """Test that the location is dropped after name relaxation fails."""
        def responder(params):
            if "city" not in params and "state" not in params:
                return [registry_entry("9", "John", "Smith", "Dermatology", city="PORTLAND", state="OR")]
            return []

        client = FakeRegistryClient(responder)
        facets = ParsedFacets(original_query="q", first_name="John", last_name="Smith",
                              specialty="Dermatology", location="Seattle, WA")
        result = self._cascade(client).run(facets)

        assert result.stage == "location_relaxation"
        stages = [attempt.stage for attempt in result.attempts]
        assert stages == ["exact", "specialty_relaxation", "name_relaxation", "location_relaxation"]

    def test_name_specialty_relaxation_filters_specialty(self):
        """Test that last-name lookups drop candidates of an unrelated specialty."""
        def responder(params):
            if set(params) == {"last_name", "city", "state"}:
                return [
                    registry_entry("1", "Anna", "Smith", "Podiatry", city="SEATTLE"),
                    registry_entry("2", "John", "Smith", "Dermatology", city="SEATTLE"),
                ]
            return []

        client = FakeRegistryClient(responder)
        facets = ParsedFacets(original_query="q", first_name="John", last_name="Smith",
                              specialty="Dermatology", location="Seattle, WA")
        result = self._cascade(client).run(facets)

        assert result.stage == "name_specialty_relaxation"
        assert [c.npi for c in result.candidates] == ["2"]

    def test_broader_specialty_without_name(self):
        """Test a nameless query reaching the broader specialty stage."""
        def responder(params):
            if params.get("specialty") == "Ophthalmology":
                return [registry_entry("7", "Ann", "Lee", "Ophthalmology", city="TACOMA")]
            return []

        client = FakeRegistryClient(responder)
        facets = ParsedFacets(original_query="q", specialty="Retina Surgery", location="Tacoma, WA")
        result = self._cascade(client).run(facets)

        assert result.stage == "broad_terms"
        assert result.specialty_used == "Ophthalmology"
        # exact, three related specialties, broader
        assert len(client.calls) == 5
        assert len(client.calls) == result.call_count

    def test_identical_lookups_not_repeated(self):
        """Test that no parameter set is issued twice in one cascade."""
        client = FakeRegistryClient()
        facets = ParsedFacets(original_query="q", first_name="John", last_name="Smith",
                              specialty="Cardiology", location="Seattle, WA")
        result = self._cascade(client).run(facets)

        assert not result.found
        assert result.stage is None
        issued = [frozenset(call.items()) for call in client.calls]
        assert len(issued) == len(set(issued))
        assert len(client.calls) == result.call_count
        assert all(attempt.stage in STAGES for attempt in result.attempts)

    def test_last_name_only_query(self):
        """Test that a lone last name searches without unconstrained scans."""
        client = FakeRegistryClient()
        facets = ParsedFacets(original_query="Dr. Smith", last_name="Smith")
        result = self._cascade(client).run(facets)

        assert not result.found
        assert client.calls == [{"last_name": "Smith"}]

    def test_insufficient_facets_make_no_calls(self):
        """Test that validation fails before any registry call."""
        client = FakeRegistryClient()
        facets = ParsedFacets(original_query="cardiologist", specialty="Cardiology")
        with pytest.raises(SearchValidationError):
            self._cascade(client).run(facets)
        assert client.calls == []


if __name__ == "__main__":
    pytest.main([__file__])
