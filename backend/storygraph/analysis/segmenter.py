"""Split raw text into ordered, bounded-length segments."""

from __future__ import annotations

from storygraph.analysis.types import Segment

DEFAULT_MAX_INPUT_LENGTH = 50_000
DEFAULT_CHUNK_SIZE = 10_000


def truncate_text(text: str, max_input_length: int = DEFAULT_MAX_INPUT_LENGTH) -> str:
    """Hard-cut text to at most max_input_length characters."""

    if max_input_length <= 0:
        raise ValueError(f"max_input_length must be positive, got {max_input_length}")
    return text[:max_input_length]


def segment_text(
    text: str,
    *,
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH,
    chunk_size: int | None = DEFAULT_CHUNK_SIZE,
) -> list[Segment]:
    """Truncate text and slice it into consecutive segments.

    Slicing uses plain character offsets, so a sentence (or an interaction) can
    straddle two segments. With chunk_size=None the truncated text is sent as a
    single segment. The in-order concatenation of the returned segments always
    equals the truncated text.
    """

    if chunk_size is not None and chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive or None, got {chunk_size}")

    truncated = truncate_text(text, max_input_length)
    if not truncated:
        return []
    if chunk_size is None or len(truncated) <= chunk_size:
        return [Segment(index=0, text=truncated)]
    return [
        Segment(index=idx, text=truncated[start : start + chunk_size])
        for idx, start in enumerate(range(0, len(truncated), chunk_size))
    ]
