"""Run a real model-backed analysis on a short in-memory text.

Usage (from repo root):
    python backend/scripts/smoke_analysis.py [--book-id 1342]

Usage (from backend/):
    python scripts/smoke_analysis.py
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from storygraph.analysis.aggregator import graph_to_wire
from storygraph.config import get_settings
from storygraph.services.analysis import build_analysis_service
from storygraph.services.cache import InMemoryCacheStore

_DEMO_TEXT = (
    '"Good morning, Bob," said Alice as she crossed the square. '
    '"Morning, Alice," Bob replied, tipping his hat. '
    "Later that day Alice met Carol at the library, and the two argued about the missing ledger. "
    '"You should ask Bob," Carol told her. Alice went back to Bob that evening.'
)


def main() -> None:
    parser = argparse.ArgumentParser(description="Smoke-test character interaction extraction")
    parser.add_argument("--book-id", help="Project Gutenberg book id to analyze instead of the demo text")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    service = build_analysis_service(get_settings(), store=InMemoryCacheStore())
    if args.book_id:
        result = service.analyze_book(args.book_id)
    else:
        result = service.analyze_text(_DEMO_TEXT, identifier="smoke-demo")
    print(
        json.dumps(
            {
                "cache_key": result.cache_key,
                "segments_total": result.segments_total,
                "segments_failed": result.segments_failed,
                "failures": [
                    {"segment": failure.segment_index, "kind": failure.kind, "detail": failure.detail}
                    for failure in result.failures
                ],
                "interactions": graph_to_wire(result.interactions),
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
