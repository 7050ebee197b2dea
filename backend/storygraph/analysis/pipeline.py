"""Analysis orchestration: cache lookup, segmentation, concurrent extraction, merge, cache write."""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Event
from time import perf_counter

from storygraph.analysis.aggregator import merge_partials
from storygraph.analysis.extractor import InteractionExtractor
from storygraph.analysis.segmenter import DEFAULT_CHUNK_SIZE, DEFAULT_MAX_INPUT_LENGTH, segment_text
from storygraph.analysis.single_flight import SingleFlight
from storygraph.analysis.types import (
    AnalysisRequest,
    AnalysisResult,
    PartialResult,
    Segment,
    SegmentFailure,
)
from storygraph.errors import (
    AnalysisCancelledError,
    AnalysisInputError,
    ExtractionError,
    ExtractionErrorKind,
    PipelineExhaustedError,
)
from storygraph.services.cache import DEFAULT_CACHE_TTL_SECONDS, AnalysisCache, CacheKeyStrategy, derive_cache_key

logger = logging.getLogger(__name__)

_CANCEL_POLL_SECONDS = 0.1


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Knobs that used to differ between near-duplicate analysis routes."""

    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH
    chunk_size: int | None = DEFAULT_CHUNK_SIZE
    cache_key_strategy: CacheKeyStrategy = "identifier"
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    max_workers: int = 4


class AnalysisPipeline:
    """Produce one interaction graph per input, memoized by cache key.

    Collaborators are injected once and shared across calls; the pipeline keeps
    no per-request state on the instance apart from the single-flight registry.
    """

    def __init__(
        self,
        extractor: InteractionExtractor,
        cache: AnalysisCache,
        config: PipelineConfig | None = None,
        *,
        single_flight: SingleFlight[AnalysisResult] | None = None,
    ) -> None:
        self._extractor = extractor
        self._cache = cache
        self.config = config or PipelineConfig()
        self._single_flight = single_flight

    def analyze(self, request: AnalysisRequest, *, cancel_event: Event | None = None) -> AnalysisResult:
        """Return the interaction graph for request, from cache when possible.

        Raises AnalysisInputError for empty text, PipelineExhaustedError when
        every segment failed, and AnalysisCancelledError when cancel_event is
        set before extraction finishes.
        """

        if not isinstance(request.text, str) or not request.text.strip():
            raise AnalysisInputError("Book text is required")
        cache_key = derive_cache_key(request, self.config.cache_key_strategy)

        if self._single_flight is None:
            return self._run(request, cache_key, cancel_event)
        while True:
            try:
                result, shared = self._single_flight.do(
                    cache_key,
                    lambda: self._run(request, cache_key, cancel_event),
                    cancel_event=cancel_event,
                )
            except AnalysisCancelledError:
                # Another caller's cancellation must not fail this one.
                if cancel_event is not None and cancel_event.is_set():
                    raise
                continue
            if shared:
                logger.debug("analysis.single_flight_shared cache_key=%s", cache_key)
            return result

    def _run(self, request: AnalysisRequest, cache_key: str, cancel_event: Event | None) -> AnalysisResult:
        total_started = perf_counter()
        logger.debug("analysis.state cache_key=%s state=cache_lookup", cache_key)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info(
                "analysis.cache_hit cache_key=%s characters=%d total_ms=%.2f",
                cache_key,
                len(cached),
                (perf_counter() - total_started) * 1000.0,
            )
            return AnalysisResult(interactions=cached, cache_key=cache_key, cache_hit=True)

        logger.debug("analysis.state cache_key=%s state=segmenting", cache_key)
        segments = segment_text(
            request.text,
            max_input_length=self.config.max_input_length,
            chunk_size=self.config.chunk_size,
        )

        logger.debug("analysis.state cache_key=%s state=extracting segments=%d", cache_key, len(segments))
        started = perf_counter()
        partials, failures = self._extract_all(segments, cache_key, cancel_event)
        extract_ms = (perf_counter() - started) * 1000.0
        if not partials:
            logger.error(
                "analysis.pipeline_exhausted cache_key=%s segments=%d kinds=%s",
                cache_key,
                len(segments),
                ",".join(sorted({failure.kind for failure in failures})),
            )
            raise PipelineExhaustedError(cache_key, failures)

        logger.debug("analysis.state cache_key=%s state=aggregating partials=%d", cache_key, len(partials))
        interactions = merge_partials(partials)

        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError(f"Analysis cancelled before caching {cache_key}")
        logger.debug("analysis.state cache_key=%s state=caching", cache_key)
        self._cache.put(cache_key, interactions, self.config.cache_ttl_seconds)

        logger.info(
            (
                "analysis.pipeline_timing cache_key=%s model=%s prompt_version=%s "
                "segments=%d failed=%d characters=%d extract_ms=%.2f total_ms=%.2f"
            ),
            cache_key,
            self._extractor.model_name,
            self._extractor.prompt_version,
            len(segments),
            len(failures),
            len(interactions),
            extract_ms,
            (perf_counter() - total_started) * 1000.0,
        )
        return AnalysisResult(
            interactions=interactions,
            cache_key=cache_key,
            segments_total=len(segments),
            segments_failed=len(failures),
            failures=sorted(failures, key=lambda failure: failure.segment_index),
        )

    def _extract_all(
        self,
        segments: list[Segment],
        cache_key: str,
        cancel_event: Event | None,
    ) -> tuple[list[PartialResult], list[SegmentFailure]]:
        partials: list[PartialResult] = []
        failures: list[SegmentFailure] = []
        if not segments:
            return partials, failures

        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.config.max_workers, len(segments))),
            thread_name_prefix="storygraph-extract",
        )
        try:
            future_to_segment: dict[Future[PartialResult], Segment] = {
                executor.submit(self._extractor.extract, segment): segment for segment in segments
            }
            pending = set(future_to_segment)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    for future in pending:
                        future.cancel()
                    logger.info(
                        "analysis.cancelled cache_key=%s pending_segments=%d", cache_key, len(pending)
                    )
                    raise AnalysisCancelledError(f"Analysis cancelled for {cache_key}")
                done, pending = wait(
                    pending,
                    timeout=_CANCEL_POLL_SECONDS if cancel_event is not None else None,
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    segment = future_to_segment[future]
                    try:
                        partials.append(future.result())
                    except ExtractionError as exc:
                        failures.append(self._record_failure(cache_key, segment, exc.kind, str(exc)))
                    except Exception as exc:
                        logger.exception(
                            "analysis.segment_unexpected_error cache_key=%s segment=%d", cache_key, segment.index
                        )
                        failures.append(self._record_failure(cache_key, segment, "call_failed", repr(exc)))
        finally:
            executor.shutdown(wait=cancel_event is None or not cancel_event.is_set(), cancel_futures=True)
        return partials, failures

    @staticmethod
    def _record_failure(
        cache_key: str,
        segment: Segment,
        kind: ExtractionErrorKind,
        detail: str,
    ) -> SegmentFailure:
        logger.warning(
            "analysis.segment_failed cache_key=%s segment=%d kind=%s detail=%s",
            cache_key,
            segment.index,
            kind,
            detail[:200],
        )
        return SegmentFailure(segment_index=segment.index, kind=kind, detail=detail)
