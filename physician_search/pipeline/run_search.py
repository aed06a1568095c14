"""
Search pipeline orchestrator for Physician Search.

Coordinates one search request from query parsing through the registry
cascade, enrichment, location filtering, scoring, ranking and pagination.
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from physician_search.audit.history_sink import HistorySink, LoggingHistorySink, emit_history_event
from physician_search.exceptions import PhysicianSearchError, SearchServiceError, SearchValidationError
from physician_search.ingestion.registry_client import RegistryClient
from physician_search.ingestion.request_validator import validate_search_request
from physician_search.match.ranker import filter_by_location, paginate, rank
from physician_search.match.scorer import ConfidenceScorer
from physician_search.merge.enricher import DirectoryEnricher, EnrichmentProvider, NullEnrichmentProvider
from physician_search.merge.merger import ResultMerger
from physician_search.models import (
    CandidateProvider, ConfidenceScore, Pagination, ParsedFacets, SearchRequest, SearchResponse
)
from physician_search.normalize.config import DEFAULT_CONFIG_PATH, load_search_config
from physician_search.normalize.facet_suggester import FacetSuggester, NullFacetSuggester
from physician_search.normalize.location_normalizer import LocationNormalizer
from physician_search.normalize.query_parser import QueryParser
from physician_search.normalize.specialty_taxonomy import SpecialtyTaxonomy
from physician_search.pipeline.suggestions import build_suggestions
from physician_search.search.cascade import CascadeResult, CascadingSearch

logger = logging.getLogger(__name__)


class PhysicianSearchPipeline:
    """
    Main search orchestrator for Physician Search.

    Holds configuration and collaborators only; nothing is carried from one
    search to the next.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, config: Optional[Dict] = None,
                 registry_client: Optional[RegistryClient] = None,
                 suggester: Optional[FacetSuggester] = None,
                 enrichment_provider: Optional[EnrichmentProvider] = None,
                 history_sink: Optional[HistorySink] = None):
        """
        Initialize pipeline with configuration and collaborators.

        Args:
            config_path: Path to configuration file, used when ``config`` is None
            config: Configuration dictionary
            registry_client: Registry client; built from config when omitted
            suggester: Optional NLU facet suggester
            enrichment_provider: Optional directory enrichment provider
            history_sink: Sink for first-page search history events
        """
        self.config = config if config is not None else load_search_config(config_path)
        self.search_config = self.config.get("search", {})

        self.taxonomy = SpecialtyTaxonomy(self.config.get("taxonomy", {}))
        self.normalizer = LocationNormalizer(self.config.get("location", {}))
        self.parser = QueryParser(self.taxonomy, self.normalizer, self.config.get("parser", {}))
        self.scorer = ConfidenceScorer(self.taxonomy, self.normalizer, self.config.get("scoring", {}))

        self.registry_client = registry_client or RegistryClient(self.config.get("registry", {}))
        self.cascade = CascadingSearch(
            self.registry_client, self.taxonomy, self.normalizer,
            self.config.get("cascade", {}), scorer=self.scorer,
        )
        self.suggester = suggester or NullFacetSuggester()
        self.enricher = DirectoryEnricher(enrichment_provider or NullEnrichmentProvider(),
                                          self.config.get("enrichment", {}))
        self.merger = ResultMerger(self.config.get("merge", {}))
        self.history_sink = history_sink or LoggingHistorySink()

        self.min_confidence = self.search_config.get("min_confidence", 60)

        logger.info("Initialized PhysicianSearch pipeline")

    def _start_stage_timer(self, stage_name: str) -> float:
        """Start timing for a pipeline stage."""
        logger.debug(f"Starting stage: {stage_name}")
        return time.time()

    def _end_stage_timer(self, stage_name: str, started: float):
        """End timing for a pipeline stage."""
        duration = time.time() - started
        logger.info(f"Completed stage: {stage_name} in {duration:.2f} seconds")

    def parse_query(self, query: str) -> ParsedFacets:
        """
        Extract facets from the query, filling gaps from the NLU suggester.

        Args:
            query: Raw query text

        Returns:
            Parsed facets
        """
        started = self._start_stage_timer("query_parsing")
        facets = self.parser.parse(query)

        missing = not facets.has_name or not facets.specialty or not facets.location
        if missing and not isinstance(self.suggester, NullFacetSuggester):
            try:
                suggestions = self.suggester.suggest(query)
            except Exception as e:
                logger.warning(f"Facet suggester failed, using parsed facets only: {e}")
                suggestions = []
            facets = self.parser.apply_suggestions(facets, suggestions)

        logger.info(f"Parsed facets: name={facets.full_name} specialty={facets.specialty} "
                    f"location={facets.location}")
        self._end_stage_timer("query_parsing", started)
        return facets

    def find_candidates(self, facets: ParsedFacets) -> CascadeResult:
        """
        Run the registry cascade.

        Args:
            facets: Parsed query facets

        Returns:
            CascadeResult
        """
        started = self._start_stage_timer("registry_cascade")
        result = self.cascade.run(facets)
        self._end_stage_timer("registry_cascade", started)
        return result

    def prepare_candidates(self, candidates: List[CandidateProvider], facets: ParsedFacets,
                           specialty: Optional[str]) -> List[CandidateProvider]:
        """
        Enrich, merge and location-filter cascade candidates.

        Args:
            candidates: Active candidates from the cascade
            facets: Parsed query facets
            specialty: Specialty the cascade used

        Returns:
            Candidates ready for scoring, in discovery order
        """
        started = self._start_stage_timer("candidate_preparation")
        candidates = self.enricher.enrich_all(candidates, specialty)
        candidates = self.merger.dedupe_by_identity(candidates)
        candidates = filter_by_location(candidates, facets, self.normalizer)
        self._end_stage_timer("candidate_preparation", started)
        return candidates

    def rank_candidates(self, candidates: List[CandidateProvider], facets: ParsedFacets,
                        specialty: Optional[str]) -> List[Tuple[CandidateProvider, ConfidenceScore]]:
        """
        Score and sort candidates.

        Args:
            candidates: Prepared candidates
            facets: Parsed query facets
            specialty: Specialty the cascade used

        Returns:
            (candidate, score) pairs, best first
        """
        started = self._start_stage_timer("candidate_ranking")
        ranked = rank(candidates, facets, self.scorer, self.min_confidence, specialty)
        self._end_stage_timer("candidate_ranking", started)
        return ranked

    def search(self, payload: Union[SearchRequest, Dict[str, Any]]) -> SearchResponse:
        """
        Run a complete search request.

        Args:
            payload: SearchRequest or raw request dict

        Returns:
            SearchResponse for the requested page

        Raises:
            SearchValidationError: If the request or its facets are insufficient
            SearchServiceError: On any unexpected failure
        """
        request = validate_search_request(payload, self.search_config)
        logger.info(f"Searching for '{request.query}' (page {request.page}, size {request.page_size})")

        try:
            facets = self.parse_query(request.query)
            cascade_result = self.find_candidates(facets)
            specialty = cascade_result.specialty_used or facets.specialty

            candidates = self.prepare_candidates(cascade_result.candidates, facets, specialty)
            ranked = self.rank_candidates(candidates, facets, specialty)

            page = paginate(ranked, request.page, request.page_size,
                            self.search_config.get("min_page_size", 5),
                            self.search_config.get("max_page_size", 50))
            results = [self.merger.build_ranked_result(c, s) for c, s in page.items]

            response = SearchResponse(
                query=request.query,
                specialty=specialty,
                location=facets.location,
                results=results,
                results_count=len(results),
                search_radius=request.radius,
                pagination=Pagination(
                    current_page=page.page,
                    results_per_page=page.page_size,
                    total_pages=page.total_pages,
                    has_more=page.has_more,
                    total_results=page.total_results,
                ),
                stage=cascade_result.stage,
            )

            if page.total_results == 0:
                response.error, response.suggestions = build_suggestions(
                    facets, self.taxonomy, specialty, request.radius
                )
            elif request.page == 1:
                emit_history_event(self.history_sink, self._history_event(request, response))

        except PhysicianSearchError:
            raise
        except Exception as e:
            logger.error(f"Search failed for '{request.query}': {e}", exc_info=True)
            raise SearchServiceError() from e

        logger.info(f"Search '{request.query}' returned {page.total_results} results "
                    f"(stage {cascade_result.stage})")
        return response

    def _history_event(self, request: SearchRequest, response: SearchResponse) -> Dict[str, Any]:
        return {
            "query": request.query,
            "specialty": response.specialty,
            "location": response.location,
            "results_count": response.pagination.total_results,
            "search_radius": request.radius,
            "timestamp": datetime.now().isoformat(),
        }


def main():
    """Main entry point for the physician-search command."""
    parser = argparse.ArgumentParser(description="Physician Search matching and ranking engine")
    parser.add_argument("query", nargs="+", help="Free-text search query")
    parser.add_argument("--page", type=int, default=1, help="Result page number")
    parser.add_argument("--page-size", type=int, default=15, help="Results per page (5-50)")
    parser.add_argument("--radius", type=float, default=5000, help="Search radius in meters")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    request = {
        "query": " ".join(args.query),
        "page": args.page,
        "pageSize": args.page_size,
        "radius": args.radius,
    }

    try:
        pipeline = PhysicianSearchPipeline(args.config)
        response = pipeline.search(request)
        print(json.dumps(response.to_dict(), indent=2))

    except SearchValidationError as e:
        print(json.dumps(e.to_dict(), indent=2))
        sys.exit(2)
    except PhysicianSearchError as e:
        logger.error(f"Search execution failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
