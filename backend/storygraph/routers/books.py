"""Book text, title, and analysis routes."""

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import PlainTextResponse

from storygraph.analysis.aggregator import graph_to_wire
from storygraph.errors import StoryGraphError
from storygraph.routers.common import get_analysis_service, run_until_disconnect, to_http_exception
from storygraph.schemas.analysis import (
    AnalysisRead,
    BookTitleRead,
    CharacterConnectionsRead,
    GraphData,
)
from storygraph.schemas.common import ApiResponse
from storygraph.services.analysis import AnalysisService
from storygraph.services.graph_view import build_graph_data, character_connections


router = APIRouter(prefix="/books/{book_id}")


@router.get("", response_class=PlainTextResponse)
def get_book_text(
    book_id: str = Path(..., min_length=1, pattern=r"^\d+$"),
    service: AnalysisService = Depends(get_analysis_service),
) -> PlainTextResponse:
    """Return the plain text of a Project Gutenberg book."""

    try:
        text = service.books.fetch_text(book_id)
    except StoryGraphError as exc:
        raise to_http_exception(exc) from exc
    return PlainTextResponse(text, headers={"Cache-Control": "public, max-age=86400"})


@router.get("/title", response_model=ApiResponse[BookTitleRead])
def get_book_title(
    book_id: str = Path(..., min_length=1, pattern=r"^\d+$"),
    service: AnalysisService = Depends(get_analysis_service),
) -> ApiResponse[BookTitleRead]:
    """Return a book's display title."""

    try:
        title = service.books.fetch_title(book_id)
    except StoryGraphError as exc:
        raise to_http_exception(exc) from exc
    return ApiResponse(data=BookTitleRead(book_id=book_id, title=title))


@router.post("/analysis", response_model=ApiResponse[AnalysisRead])
async def analyze_book(
    request: Request,
    book_id: str = Path(..., min_length=1, pattern=r"^\d+$"),
    service: AnalysisService = Depends(get_analysis_service),
) -> ApiResponse[AnalysisRead]:
    """Fetch a book and extract its character interaction graph."""

    try:
        result = await run_until_disconnect(
            request,
            lambda cancel_event: service.analyze_book(book_id, cancel_event=cancel_event),
        )
    except StoryGraphError as exc:
        raise to_http_exception(exc) from exc
    return ApiResponse(data=AnalysisRead.model_validate({"interactions": graph_to_wire(result.interactions)}))


@router.get("/graph", response_model=ApiResponse[GraphData])
async def get_book_graph(
    request: Request,
    book_id: str = Path(..., min_length=1, pattern=r"^\d+$"),
    service: AnalysisService = Depends(get_analysis_service),
) -> ApiResponse[GraphData]:
    """Return a book's interaction graph as nodes and links."""

    try:
        result = await run_until_disconnect(
            request,
            lambda cancel_event: service.analyze_book(book_id, cancel_event=cancel_event),
        )
    except StoryGraphError as exc:
        raise to_http_exception(exc) from exc
    return ApiResponse(data=build_graph_data(result.interactions))


@router.get("/characters/{character}/connections", response_model=ApiResponse[CharacterConnectionsRead])
async def get_character_connections(
    request: Request,
    character: str = Path(..., min_length=1),
    book_id: str = Path(..., min_length=1, pattern=r"^\d+$"),
    service: AnalysisService = Depends(get_analysis_service),
) -> ApiResponse[CharacterConnectionsRead]:
    """List one character's interaction partners within a book, busiest first."""

    try:
        result = await run_until_disconnect(
            request,
            lambda cancel_event: service.analyze_book(book_id, cancel_event=cancel_event),
        )
    except StoryGraphError as exc:
        raise to_http_exception(exc) from exc
    return ApiResponse(
        data=CharacterConnectionsRead(
            character=character,
            connections=character_connections(character, result.interactions),
        )
    )
