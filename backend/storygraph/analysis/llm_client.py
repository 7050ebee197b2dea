"""Structured-completion clients used by the interaction extractor."""

from __future__ import annotations

import http.client
import json
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from storygraph.config import Settings, get_settings
from storygraph.errors import CallFailedError, LLMConfigurationError


class StructuredCompletionClient(Protocol):
    """Protocol for model providers that answer with one JSON object as raw text."""

    def complete_structured(self, *, instruction: str, schema: dict[str, Any], text: str) -> str:
        """Return the raw model reply for text under instruction and schema."""


@dataclass(slots=True)
class OpenAICompatibleChatClient:
    """Minimal chat-completions client (Groq, OpenAI, or compatible) using stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.groq.com/openai/v1"
    max_tokens: int = 4000
    timeout_seconds: int = 60

    def complete_structured(self, *, instruction: str, schema: dict[str, Any], text: str) -> str:
        """Call the provider at temperature 0 and return the assistant message content."""

        system_prompt = (
            f"{instruction}\n\nYour response must conform to this JSON Schema:\n{json.dumps(schema, indent=2)}"
        )
        payload = {
            "model": self.model,
            "temperature": 0,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {
                    "role": "user",
                    "content": (
                        "Analyze the following book text and identify all characters and their interactions.\n"
                        f"Book text: {text}"
                    ),
                },
            ],
        }
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise CallFailedError(f"Model HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise CallFailedError(f"Model request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise CallFailedError(f"Model request timed out after {self.timeout_seconds}s") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise CallFailedError(f"Model connection failed: {exc!r}") from exc
        except UnicodeDecodeError as exc:
            raise CallFailedError("Model response body is not valid UTF-8") from exc

        if not raw.strip():
            raise CallFailedError("Model returned an empty response body")
        try:
            decoded = json.loads(raw)
            message = decoded["choices"][0]["message"]
            refusal = message.get("refusal")
            if isinstance(refusal, str) and refusal.strip():
                raise CallFailedError(f"Model refused extraction request: {refusal.strip()}")
            content = message["content"]
            if not isinstance(content, str) or not content.strip():
                raise TypeError("assistant message content missing")
            return content
        except CallFailedError:
            raise
        except (KeyError, IndexError, TypeError, AttributeError, json.JSONDecodeError) as exc:
            raise CallFailedError("Model returned an unexpected completion envelope") from exc


def get_default_completion_client(settings: Settings | None = None) -> StructuredCompletionClient:
    """Return the configured completion client."""

    settings = settings or get_settings()
    if not settings.llm_api_key:
        raise LLMConfigurationError(
            "LLM_API_KEY is not configured. Set it in backend/.env before running analysis."
        )
    return OpenAICompatibleChatClient(
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        max_tokens=settings.llm_max_tokens,
        timeout_seconds=settings.llm_timeout_seconds,
    )
