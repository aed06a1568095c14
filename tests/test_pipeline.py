"""
Integration tests for the complete Physician Search pipeline.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from physician_search.audit.history_sink import HistorySink
from physician_search.exceptions import SearchServiceError, SearchValidationError
from physician_search.merge.enricher import EnrichmentProvider
from physician_search.models import DirectoryListing, FacetSuggestion, SearchRequest
from physician_search.normalize.config import get_default_search_config
from physician_search.normalize.facet_suggester import FacetSuggester
from physician_search.pipeline.run_search import PhysicianSearchPipeline
from provider_factory import FailingRegistryClient, FakeRegistryClient, registry_entry


class RecordingSink(HistorySink):
    def __init__(self):
        self.events = []

    def record(self, event):
        self.events.append(event)


class BrokenSink(HistorySink):
    def record(self, event):
        raise ConnectionError("history store unavailable")


class StaticSuggester(FacetSuggester):
    def __init__(self, suggestions):
        self.suggestions = suggestions

    def suggest(self, query):
        return self.suggestions


class BrokenSuggester(FacetSuggester):
    def suggest(self, query):
        raise TimeoutError("nlu timed out")


class PartialDirectory(EnrichmentProvider):
    """Lists Ann Lee and fails for everyone else."""

    def __init__(self):
        self.calls = []

    def enrich(self, name, specialty, city, state):
        self.calls.append((name, specialty, city, state))
        if name == "Ann Lee":
            return DirectoryListing(phone="2535550199", rating=4.8, address="500 Pacific Ave, Tacoma, WA 98402")
        raise RuntimeError("directory quota exceeded")


def smiths(count):
    return [registry_entry(str(1000 + n), "John", "Smith", "Cardiology", city="SEATTLE") for n in range(count)]


class TestPhysicianSearchPipeline:
    """Integration tests for the complete pipeline."""

    def setup_method(self):
        """Setup test fixtures."""
        self.config = get_default_search_config()
        self.sink = RecordingSink()

    def _pipeline(self, client, **kwargs):
        kwargs.setdefault("history_sink", self.sink)
        return PhysicianSearchPipeline(config=self.config, registry_client=client, **kwargs)

    def test_broader_specialty_reported(self):
        """Test that the response reports the broader specialty the search used."""
        def responder(params):
            if params.get("specialty") == "Ophthalmology":
                return [registry_entry("7", "Ann", "Lee", "Ophthalmology", city="TACOMA")]
            return []

        client = FakeRegistryClient(responder)
        response = self._pipeline(client).search({"query": "retina surgeon in Tacoma, WA"})

        assert response.specialty == "Ophthalmology"
        assert response.stage == "broad_terms"
        assert response.results_count == 1
        assert response.results[0].specialty == "Ophthalmology"
        # exact, three related specialties, broader
        assert len(client.calls) == 5

    def test_specialty_alone_rejected_without_calls(self):
        """Test that a lone specialty fails validation before any registry call."""
        client = FakeRegistryClient(lambda params: smiths(1))
        with pytest.raises(SearchValidationError) as excinfo:
            self._pipeline(client).search({"query": "cardiologist"})

        assert "at least two of" in excinfo.value.message
        assert client.calls == []

    def test_name_only_query(self):
        """Test that a name alone is searchable."""
        client = FakeRegistryClient(lambda params: smiths(1))
        response = self._pipeline(client).search({"query": "Dr. John Smith"})

        assert client.calls[0] == {"first_name": "John", "last_name": "Smith"}
        assert response.results_count == 1
        assert response.results[0].name == "John Smith, MD"
        assert response.specialty is None
        assert response.results[0].confidence.total == pytest.approx(75.0)

    def test_response_wire_format(self):
        """Test the camelCase response contract."""
        client = FakeRegistryClient(lambda params: smiths(1))
        payload = self._pipeline(client).search({"query": "Dr. John Smith", "radius": 8000}).to_dict()

        assert payload["query"] == "Dr. John Smith"
        assert payload["resultsCount"] == 1
        assert payload["searchRadius"] == 8000
        assert payload["pagination"] == {
            "currentPage": 1,
            "resultsPerPage": 15,
            "totalPages": 1,
            "hasMore": False,
            "totalResults": 1,
        }
        assert payload["results"][0]["phone"] == "(253) 555-0100"
        assert "error" not in payload

    def test_history_recorded_on_first_page_only(self):
        """Test that history events are emitted for page 1 with results only."""
        client = FakeRegistryClient(lambda params: smiths(20))
        pipeline = self._pipeline(client)

        first = pipeline.search({"query": "Dr. John Smith", "page": 1})
        assert first.results_count == 15
        assert first.pagination.has_more
        assert len(self.sink.events) == 1
        assert self.sink.events[0]["query"] == "Dr. John Smith"
        assert self.sink.events[0]["results_count"] == 20

        second = pipeline.search(SearchRequest(query="Dr. John Smith", page=2))
        assert second.results_count == 5
        assert not second.pagination.has_more
        assert len(self.sink.events) == 1

    def test_page_past_end_is_not_an_empty_search(self):
        """Test that a page beyond the last one carries no error or suggestions."""
        client = FakeRegistryClient(lambda params: smiths(7))
        response = self._pipeline(client).search({"query": "Dr. John Smith", "page": 3, "pageSize": 5})
        payload = response.to_dict()

        assert payload["resultsCount"] == 0
        assert payload["pagination"]["totalResults"] == 7
        assert payload["pagination"]["totalPages"] == 2
        assert "error" not in payload
        assert "suggestions" not in payload
        assert self.sink.events == []

    def test_configured_page_size_bounds(self):
        """Test that page-size bounds from the search config apply end to end."""
        self.config["search"]["max_page_size"] = 100
        client = FakeRegistryClient(lambda params: smiths(90))
        response = self._pipeline(client).search({"query": "Dr. John Smith", "pageSize": 80})

        assert response.results_count == 80
        assert response.pagination.results_per_page == 80
        assert response.pagination.total_pages == 2

    def test_fractional_radius_echoed(self):
        """Test that a fractional radius is echoed unchanged."""
        client = FakeRegistryClient(lambda params: smiths(1))
        payload = self._pipeline(client).search({"query": "Dr. John Smith", "radius": 2500.5}).to_dict()
        assert payload["searchRadius"] == 2500.5

    def test_free_text_after_city_not_sent_as_city(self):
        """Test that words following the city never reach the registry city."""
        client = FakeRegistryClient(lambda params: smiths(1))
        response = self._pipeline(client).search(
            {"query": "find a cardiologist in Seattle accepting new patients"}
        )

        assert response.location == "Seattle"
        assert client.calls[0]["specialty"] == "Cardiology"
        assert all(call.get("city") == "Seattle" for call in client.calls)

    def test_failing_history_sink_ignored(self):
        """Test that a failing sink does not change the response."""
        client = FakeRegistryClient(lambda params: smiths(3))
        expected = self._pipeline(client).search({"query": "Dr. John Smith"}).to_dict()
        actual = self._pipeline(client, history_sink=BrokenSink()).search({"query": "Dr. John Smith"}).to_dict()
        assert actual == expected

    def test_no_results_suggestions(self):
        """Test error text and suggestions for an empty result."""
        client = FakeRegistryClient()
        response = self._pipeline(client).search({"query": "cardiologist in Seattle, WA"})
        payload = response.to_dict()

        assert payload["resultsCount"] == 0
        assert payload["error"].startswith("No Cardiology doctors found")
        assert any("Interventional Cardiology" in s for s in payload["suggestions"])
        assert self.sink.events == []

    def test_no_results_name_suggestions(self):
        """Test suggestions for a name-only query without results."""
        client = FakeRegistryClient()
        response = self._pipeline(client).search({"query": "Dr. John Smith"})

        assert response.results_count == 0
        assert any("city and state" in s for s in response.suggestions)
        assert any("specialty" in s for s in response.suggestions)
        assert any("last name only" in s for s in response.suggestions)

    def test_out_of_area_candidates_removed(self):
        """Test that the strict location filter runs before scoring."""
        client = FakeRegistryClient(lambda params: [
            registry_entry("1", "Ann", "Lee", "Cardiology", city="SEATTLE"),
        ])
        response = self._pipeline(client).search({"query": "cardiologist in Tacoma, WA"})
        assert response.results_count == 0

    def test_unexpected_failure_is_generic(self):
        """Test that internal errors surface without internal details."""
        client = FailingRegistryClient()
        with pytest.raises(SearchServiceError) as excinfo:
            self._pipeline(client).search({"query": "Dr. John Smith"})

        assert str(excinfo.value) == "Search failed. Please try again."
        assert "corrupted" not in excinfo.value.message
        assert isinstance(excinfo.value.__cause__, KeyError)

    def test_invalid_request_rejected(self):
        """Test that malformed paging is rejected before any call."""
        client = FakeRegistryClient()
        with pytest.raises(SearchValidationError):
            self._pipeline(client).search({"query": "Dr. John Smith", "page": 0})
        assert client.calls == []

    def test_enrichment_failure_keeps_candidate(self):
        """Test partial enrichment failures."""
        client = FakeRegistryClient(lambda params: [
            registry_entry("1", "Bob", "Ray", "Cardiology", city="TACOMA"),
            registry_entry("2", "Ann", "Lee", "Cardiology", city="TACOMA"),
        ])
        directory = PartialDirectory()
        response = self._pipeline(client, enrichment_provider=directory).search(
            {"query": "cardiologist in Tacoma, WA"}
        )

        assert len(directory.calls) == 2
        assert [r.npi for r in response.results] == ["2", "1"]
        enriched, plain = response.results
        assert enriched.rating == 4.8
        assert enriched.phone == "(253) 555-0199"
        assert enriched.location == "500 Pacific Ave, Tacoma, WA 98402"
        assert enriched.confidence.source_bonus == 15
        assert plain.rating is None
        assert plain.phone == "(253) 555-0100"

    def test_suggester_fills_missing_location(self):
        """Test that an NLU suggestion fills a facet the parser missed."""
        client = FakeRegistryClient()
        suggester = StaticSuggester([FacetSuggestion(location="Tacoma, WA", specialty="dermatologist",
                                                     confidence=90)])
        self._pipeline(client, suggester=suggester).search({"query": "Dr. John Smith cardiologist"})

        assert client.calls[0] == {"first_name": "John", "last_name": "Smith", "specialty": "Cardiology",
                                   "city": "Tacoma", "state": "WA"}

    def test_failing_suggester_ignored(self):
        """Test that a failing NLU suggester leaves the parsed facets alone."""
        client = FakeRegistryClient(lambda params: smiths(1))
        response = self._pipeline(client, suggester=BrokenSuggester()).search({"query": "Dr. John Smith"})
        assert response.results_count == 1


if __name__ == "__main__":
    pytest.main([__file__])
