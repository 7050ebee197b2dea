"""Error taxonomy shared by the analysis pipeline, its collaborators, and routes."""

from __future__ import annotations

from typing import Literal

ExtractionErrorKind = Literal["invalid_response", "call_failed"]

ANALYSIS_FAILED_MESSAGE = "Analysis failed, try again."


class StoryGraphError(RuntimeError):
    """Base class for service errors."""


class AnalysisInputError(StoryGraphError):
    """Raised when the text to analyze is missing or empty."""


class UpstreamFetchError(StoryGraphError):
    """Raised when the text source or catalog returns a non-success response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TextNotFoundError(UpstreamFetchError):
    """Raised when no plain-text edition exists for a book id."""


class TitleNotFoundError(StoryGraphError):
    """Raised when the catalog has no title for a book id."""


class LLMConfigurationError(StoryGraphError):
    """Raised when the model client cannot be built from settings."""


class ExtractionError(StoryGraphError):
    """Per-segment extraction failure. Recovered by the pipeline, never surfaced alone."""

    kind: ExtractionErrorKind

    def __init__(self, message: str, *, segment_index: int | None = None) -> None:
        super().__init__(message)
        self.segment_index = segment_index


class InvalidResponseError(ExtractionError):
    """The model answered, but not with a schema-conforming JSON object."""

    kind: ExtractionErrorKind = "invalid_response"


class CallFailedError(ExtractionError):
    """The model call itself failed (timeout, HTTP status, empty body)."""

    kind: ExtractionErrorKind = "call_failed"


class PipelineExhaustedError(StoryGraphError):
    """Raised when every segment of an analysis failed extraction."""

    def __init__(self, cache_key: str, failures: list) -> None:
        super().__init__(f"All {len(failures)} segment extractions failed for {cache_key}")
        self.cache_key = cache_key
        self.failures = failures


class AnalysisCancelledError(StoryGraphError):
    """Raised when the caller abandoned an analysis while segments were in flight."""


class CacheError(StoryGraphError):
    """Raised by cache stores; always recovered by their callers."""
