"""
Search history sink for Physician Search.

The pipeline reports each successful first-page search to a sink. Storing
the history is the sink's business; the search never waits on or fails
because of it.
"""

import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


class HistorySink:
    """Interface for search history consumers."""

    def record(self, event: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingHistorySink(HistorySink):
    """Writes search history events to the log."""

    def record(self, event: Dict[str, Any]) -> None:
        logger.info(
            f"Search history: query='{event.get('query')}' specialty={event.get('specialty')} "
            f"location={event.get('location')} results={event.get('results_count')}"
        )


def emit_history_event(sink: HistorySink, event: Dict[str, Any]) -> bool:
    """
    Hand an event to a sink, logging and swallowing any failure.

    Args:
        sink: History sink
        event: Search history event

    Returns:
        True if the sink accepted the event
    """
    try:
        sink.record(event)
        return True
    except Exception as e:
        logger.warning(f"History sink failed to record search: {e}")
        return False
