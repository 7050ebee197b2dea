"""Project Gutenberg text source and Gutendex title lookup."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from storygraph.config import Settings, get_settings
from storygraph.errors import TextNotFoundError, TitleNotFoundError, UpstreamFetchError
from storygraph.services.cache import DEFAULT_CACHE_TTL_SECONDS, CacheStore, read_through, write_through

logger = logging.getLogger(__name__)


class TextSource(Protocol):
    """Protocol for book text providers."""

    def fetch_text(self, book_id: str) -> str:
        """Return the plain text of a book."""


class TitleSource(Protocol):
    """Protocol for book title providers."""

    def fetch_title(self, book_id: str) -> str:
        """Return the display title of a book."""


class BookSource(TextSource, TitleSource, Protocol):
    """Provider of both book texts and titles."""


def _http_get(url: str, timeout_seconds: int) -> str:
    req = urllib_request.Request(url=url, method="GET", headers={"Accept": "*/*"})
    with urllib_request.urlopen(req, timeout=timeout_seconds) as resp:
        return resp.read().decode("utf-8", errors="replace")


@dataclass(slots=True)
class GutenbergClient:
    """Fetch plain-text editions from Project Gutenberg and titles from Gutendex."""

    gutenberg_base_url: str = "https://www.gutenberg.org"
    gutendex_base_url: str = "http://gutendex.com"
    timeout_seconds: int = 30

    def text_urls(self, book_id: str) -> list[str]:
        base = self.gutenberg_base_url.rstrip("/")
        return [
            f"{base}/files/{book_id}/{book_id}-0.txt",
            f"{base}/cache/epub/{book_id}/pg{book_id}.txt",
        ]

    def fetch_text(self, book_id: str) -> str:
        """Try the files/ layout first, then the cache/epub/ layout."""

        last_status: int | None = None
        last_reason = ""
        for url in self.text_urls(book_id):
            logger.info("gutenberg.fetch_text book_id=%s url=%s", book_id, url)
            try:
                return _http_get(url, self.timeout_seconds)
            except urllib_error.HTTPError as exc:
                last_status, last_reason = exc.code, str(exc.reason)
            except (urllib_error.URLError, TimeoutError) as exc:
                raise UpstreamFetchError(f"Failed to fetch book {book_id}: {exc}") from exc
        if last_status == 404:
            raise TextNotFoundError(f"Book {book_id} has no plain-text edition", status_code=404)
        raise UpstreamFetchError(
            f"Failed to fetch book {book_id}: HTTP {last_status} {last_reason}".strip(),
            status_code=last_status,
        )

    def fetch_title(self, book_id: str) -> str:
        url = f"{self.gutendex_base_url.rstrip('/')}/books/{book_id}"
        logger.info("gutendex.fetch_title book_id=%s url=%s", book_id, url)
        try:
            raw = _http_get(url, self.timeout_seconds)
        except urllib_error.HTTPError as exc:
            if exc.code == 404:
                raise TitleNotFoundError(f"Book {book_id} is not in the catalog") from exc
            raise UpstreamFetchError(f"Catalog HTTP {exc.code} for book {book_id}", status_code=exc.code) from exc
        except (urllib_error.URLError, TimeoutError) as exc:
            raise UpstreamFetchError(f"Catalog request failed for book {book_id}: {exc}") from exc
        try:
            title = json.loads(raw).get("title")
        except (json.JSONDecodeError, AttributeError) as exc:
            raise UpstreamFetchError(f"Catalog returned an invalid response for book {book_id}") from exc
        if not isinstance(title, str) or not title.strip():
            raise TitleNotFoundError(f"Book {book_id} has no title")
        return title.strip()


class CachedBookSource:
    """Read-through cache in front of a text/title source."""

    def __init__(
        self,
        source: BookSource,
        store: CacheStore,
        *,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self._source = source
        self._store = store
        self._ttl_seconds = ttl_seconds

    def fetch_text(self, book_id: str) -> str:
        key = f"book:{book_id}"
        cached = read_through(self._store, key)
        if isinstance(cached, str) and cached:
            return cached
        text = self._source.fetch_text(book_id)
        write_through(self._store, key, text, self._ttl_seconds)
        return text

    def fetch_title(self, book_id: str) -> str:
        key = f"book:{book_id}:title"
        cached = read_through(self._store, key)
        if isinstance(cached, str) and cached:
            return cached
        title = self._source.fetch_title(book_id)
        write_through(self._store, key, title, self._ttl_seconds)
        return title


def get_default_gutenberg_client(settings: Settings | None = None) -> GutenbergClient:
    settings = settings or get_settings()
    return GutenbergClient(
        gutenberg_base_url=settings.gutenberg_base_url,
        gutendex_base_url=settings.gutendex_base_url,
        timeout_seconds=settings.source_timeout_seconds,
    )
