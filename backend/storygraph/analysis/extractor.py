"""LLM-backed extraction of per-segment character interaction graphs."""

from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter, ValidationError

from storygraph.analysis.llm_client import StructuredCompletionClient
from storygraph.analysis.types import PartialResult, Segment
from storygraph.errors import CallFailedError, InvalidResponseError

INTERACTIONS_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "patternProperties": {
        "^.+$": {
            "type": "object",
            "patternProperties": {
                "^.+$": {
                    "type": "object",
                    "properties": {
                        "interactions": {
                            "type": "integer",
                            "minimum": 1,
                            "description": "The number of interactions between the two characters",
                        }
                    },
                    "required": ["interactions"],
                    "additionalProperties": False,
                }
            },
            "additionalProperties": False,
        }
    },
    "additionalProperties": False,
}
EXTRACTION_PROMPT_VERSION = "interactions.v1"
_PROMPT_FILES: dict[str, Path] = {
    "interactions.v1": Path(__file__).resolve().parent / "prompts" / "interactions_v1.txt",
}
_CODE_FENCE_RE = re.compile(r"```(?:json|JSON)?")


@lru_cache(maxsize=8)
def get_extraction_instruction(version: str = EXTRACTION_PROMPT_VERSION) -> str:
    prompt_file = _PROMPT_FILES.get(version)
    if prompt_file is None:
        raise ValueError(f"Extraction prompt version is not registered: {version}")
    prompt_text = prompt_file.read_text(encoding="utf-8").strip()
    if not prompt_text:
        raise ValueError(f"Extraction prompt file is empty: {prompt_file}")
    return prompt_text


class _RawInteraction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interactions: StrictInt = Field(ge=1)


_CharacterName = Annotated[str, Field(min_length=1)]
_RAW_GRAPH_ADAPTER = TypeAdapter(dict[_CharacterName, dict[_CharacterName, _RawInteraction]])


def unwrap_response(raw: str) -> str:
    """Remove markdown code fences the model may add despite instructions."""

    return _CODE_FENCE_RE.sub("", raw).strip()


def parse_partial_graph(raw: str) -> dict[str, dict[str, int]]:
    """Unwrap, decode, and validate a raw model reply.

    Any violation rejects the whole reply: a single zero count or stray field
    invalidates every other pair reported alongside it.
    """

    body = unwrap_response(raw)
    if not body:
        raise InvalidResponseError("Model reply was empty after unwrapping")
    try:
        decoded = json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidResponseError(f"Model reply is not valid JSON: {exc.msg}") from exc
    try:
        validated = _RAW_GRAPH_ADAPTER.validate_python(decoded)
    except ValidationError as exc:
        raise InvalidResponseError(
            f"Model reply failed schema validation ({exc.error_count()} errors): {exc.errors()[0]['msg']}"
        ) from exc
    return {
        source: {other: entry.interactions for other, entry in others.items()}
        for source, others in validated.items()
    }


class InteractionExtractor:
    """Turn one segment into a validated partial interaction graph."""

    def __init__(
        self,
        client: StructuredCompletionClient,
        *,
        prompt_version: str = EXTRACTION_PROMPT_VERSION,
    ) -> None:
        self._client = client
        self._prompt_version = prompt_version

    @property
    def prompt_version(self) -> str:
        return self._prompt_version

    @property
    def model_name(self) -> str:
        return str(getattr(self._client, "model", self._client.__class__.__name__))

    def extract(self, segment: Segment) -> PartialResult:
        """Raise InvalidResponseError or CallFailedError when the segment yields nothing usable."""

        try:
            raw = self._client.complete_structured(
                instruction=get_extraction_instruction(self._prompt_version),
                schema=INTERACTIONS_JSON_SCHEMA,
                text=segment.text,
            )
        except CallFailedError as exc:
            exc.segment_index = segment.index
            raise
        if not isinstance(raw, str) or not raw.strip():
            raise CallFailedError("Model returned an empty response", segment_index=segment.index)

        try:
            interactions = parse_partial_graph(raw)
        except InvalidResponseError as exc:
            exc.segment_index = segment.index
            raise
        return PartialResult(segment_index=segment.index, interactions=interactions)
