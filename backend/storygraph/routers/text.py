"""Free-text analysis routes."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from storygraph.analysis.aggregator import graph_to_wire
from storygraph.errors import StoryGraphError
from storygraph.routers.common import get_analysis_service, run_until_disconnect, to_http_exception
from storygraph.schemas.analysis import AnalysisRead, AnalyzeTextRequest
from storygraph.schemas.common import ApiResponse
from storygraph.services.analysis import AnalysisService


router = APIRouter()


async def _read_analysis_request(request: Request) -> AnalyzeTextRequest:
    body = (await request.body()).decode("utf-8", errors="replace")
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            return AnalyzeTextRequest.model_validate(json.loads(body))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise HTTPException(status_code=400, detail="Book text is required") from exc
    return AnalyzeTextRequest(text=body)


@router.post("/text", response_model=ApiResponse[AnalysisRead])
async def analyze_text(
    request: Request,
    service: AnalysisService = Depends(get_analysis_service),
) -> ApiResponse[AnalysisRead]:
    """Analyze raw text (text/plain body) or a JSON {identifier, text} payload."""

    payload = await _read_analysis_request(request)
    try:
        result = await run_until_disconnect(
            request,
            lambda cancel_event: service.analyze_text(
                payload.text,
                identifier=payload.identifier,
                cancel_event=cancel_event,
            ),
        )
    except StoryGraphError as exc:
        raise to_http_exception(exc) from exc
    return ApiResponse(data=AnalysisRead.model_validate({"interactions": graph_to_wire(result.interactions)}))
