"""Service wiring for text and book analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Event

from storygraph.analysis.extractor import InteractionExtractor
from storygraph.analysis.llm_client import StructuredCompletionClient, get_default_completion_client
from storygraph.analysis.pipeline import AnalysisPipeline, PipelineConfig
from storygraph.analysis.single_flight import SingleFlight
from storygraph.analysis.types import AnalysisRequest, AnalysisResult
from storygraph.config import Settings, get_settings
from storygraph.errors import LLMConfigurationError
from storygraph.services.cache import AnalysisCache, CacheStore, get_default_cache_store
from storygraph.services.gutenberg import BookSource, CachedBookSource, get_default_gutenberg_client

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AnalysisService:
    """Long-lived collaborators shared by every request."""

    books: BookSource
    pipeline: AnalysisPipeline | None
    configuration_error: str | None = None

    def analyze_text(
        self,
        text: str,
        *,
        identifier: str | None = None,
        cancel_event: Event | None = None,
    ) -> AnalysisResult:
        return self._require_pipeline().analyze(
            AnalysisRequest(text=text, identifier=identifier),
            cancel_event=cancel_event,
        )

    def analyze_book(self, book_id: str, *, cancel_event: Event | None = None) -> AnalysisResult:
        """Fetch a book's text and analyze it keyed by its catalog number."""

        pipeline = self._require_pipeline()
        text = self.books.fetch_text(book_id)
        return pipeline.analyze(
            AnalysisRequest(text=text, identifier=f"book:{book_id}"),
            cancel_event=cancel_event,
        )

    def _require_pipeline(self) -> AnalysisPipeline:
        if self.pipeline is None:
            raise LLMConfigurationError(self.configuration_error or "Analysis is not configured.")
        return self.pipeline


def pipeline_config_from_settings(settings: Settings) -> PipelineConfig:
    return PipelineConfig(
        max_input_length=settings.max_input_length,
        chunk_size=settings.chunk_size if settings.chunk_size > 0 else None,
        cache_key_strategy=settings.cache_key_strategy,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        max_workers=settings.max_workers,
    )


def build_analysis_service(
    settings: Settings | None = None,
    *,
    store: CacheStore | None = None,
    completion_client: StructuredCompletionClient | None = None,
    books: BookSource | None = None,
) -> AnalysisService:
    """Construct the process-wide service; call once at startup."""

    settings = settings or get_settings()
    active_store = store or get_default_cache_store(settings)
    active_books = books or CachedBookSource(
        get_default_gutenberg_client(settings),
        active_store,
        ttl_seconds=settings.cache_ttl_seconds,
    )

    try:
        client = completion_client or get_default_completion_client(settings)
    except LLMConfigurationError as exc:
        logger.warning("analysis.not_configured reason=%s", exc)
        return AnalysisService(books=active_books, pipeline=None, configuration_error=str(exc))

    pipeline = AnalysisPipeline(
        InteractionExtractor(client),
        AnalysisCache(active_store, ttl_seconds=settings.cache_ttl_seconds),
        pipeline_config_from_settings(settings),
        single_flight=SingleFlight() if settings.single_flight else None,
    )
    return AnalysisService(books=active_books, pipeline=pipeline)
