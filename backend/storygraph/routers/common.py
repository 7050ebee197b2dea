"""Shared route helpers: service lookup, disconnect-aware execution, error mapping."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from threading import Event
from typing import TypeVar

from fastapi import HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from storygraph.errors import (
    ANALYSIS_FAILED_MESSAGE,
    AnalysisCancelledError,
    AnalysisInputError,
    LLMConfigurationError,
    PipelineExhaustedError,
    StoryGraphError,
    TextNotFoundError,
    TitleNotFoundError,
    UpstreamFetchError,
)
from storygraph.services.analysis import AnalysisService

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DISCONNECT_POLL_SECONDS = 0.5
CLIENT_CLOSED_REQUEST = 499


def get_analysis_service(request: Request) -> AnalysisService:
    """Return the service built at startup."""

    return request.app.state.analysis_service


async def run_until_disconnect(request: Request, fn: Callable[[Event], T]) -> T:
    """Run fn in the threadpool, signalling its cancel event if the client goes away."""

    cancel_event = Event()
    task = asyncio.ensure_future(run_in_threadpool(fn, cancel_event))
    while True:
        done, _ = await asyncio.wait({task}, timeout=_DISCONNECT_POLL_SECONDS)
        if done:
            return task.result()
        if not cancel_event.is_set() and await request.is_disconnected():
            logger.info("analysis.client_disconnected path=%s", request.url.path)
            cancel_event.set()


def to_http_exception(exc: StoryGraphError) -> HTTPException:
    """Map domain errors onto HTTP statuses; analysis failures get a generic message."""

    if isinstance(exc, AnalysisInputError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (TextNotFoundError, TitleNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, UpstreamFetchError):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, AnalysisCancelledError):
        return HTTPException(status_code=CLIENT_CLOSED_REQUEST, detail=str(exc))
    if isinstance(exc, PipelineExhaustedError):
        logger.warning(
            "analysis.failed cache_key=%s failures=%s",
            exc.cache_key,
            [(failure.segment_index, failure.kind) for failure in exc.failures],
        )
        return HTTPException(status_code=503, detail=ANALYSIS_FAILED_MESSAGE)
    if isinstance(exc, LLMConfigurationError):
        return HTTPException(status_code=503, detail=str(exc))
    logger.error("analysis.unmapped_error type=%s detail=%s", type(exc).__name__, exc)
    return HTTPException(status_code=500, detail=ANALYSIS_FAILED_MESSAGE)
