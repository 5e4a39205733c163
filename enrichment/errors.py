"""Enrichment error classes.

Only RequestValidationError escapes the engine. Every other error is raised
inside a single batch or item and converted into a failed EnrichmentResult
whose message is the exception text.
"""

from __future__ import annotations


class EnrichmentError(Exception):
    """Base exception for enrichment errors."""

    pass


class RequestValidationError(EnrichmentError):
    """Raised when a request is malformed, before any model call is made."""

    pass


class PreparationError(EnrichmentError):
    """Raised when field extraction or template expansion fails for one record."""

    pass


class BatchDispatchError(EnrichmentError):
    """Raised when the completion call for a whole batch fails or times out."""

    pass


class MissingAnswerError(EnrichmentError):
    """Raised when the model reply omits an item that was sent."""

    def __init__(self, message: str = "Failed to get a response from AI"):
        super().__init__(message)


class AmbiguousUnresolvedError(EnrichmentError):
    """Raised when an ambiguous answer could not be resolved by the fallback model."""

    pass


class CoercionError(EnrichmentError):
    """Raised when a raw answer cannot be cast to the column type."""

    pass


class CompletionTimeoutError(EnrichmentError):
    """Raised when a single completion call exceeds its deadline."""

    def __init__(self, timeout: float):
        super().__init__(f"Completion call timed out after {timeout:g}s")
        self.timeout = timeout
