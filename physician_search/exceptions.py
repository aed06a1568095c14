"""
Exception types for Physician Search.
"""

from typing import List, Optional


class PhysicianSearchError(Exception):
    """Base class for all Physician Search errors."""


class SearchValidationError(PhysicianSearchError, ValueError):
    """
    Raised when a request cannot be searched as given.

    Carries a human-readable message plus example reformulations the
    caller can show back to the user.
    """

    def __init__(self, message: str, examples: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.examples = list(examples or [])

    def to_dict(self) -> dict:
        return {"error": self.message, "examples": self.examples}


class RegistryError(PhysicianSearchError, RuntimeError):
    """Raised when the provider registry returns a non-successful response."""


class TaxonomyError(PhysicianSearchError):
    """Raised when the specialty taxonomy data is inconsistent."""


class SearchServiceError(PhysicianSearchError):
    """Generic failure surfaced to callers; never carries internal details."""

    DEFAULT_MESSAGE = "Search failed. Please try again."

    def __init__(self, message: str = DEFAULT_MESSAGE):
        super().__init__(message)
        self.message = message
