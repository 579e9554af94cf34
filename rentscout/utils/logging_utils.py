"""Shared logging utilities."""

from __future__ import annotations

import time
from typing import Any

from loguru import logger


def log_search(
    *,
    source: str,
    query: Any,
    results_raw: int,
    results_kept: int | None = None,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """Standardized search/result log line.

    Args:
        source: external system ("Redfin", "AirDNA").
        query: search URL / address.
        results_raw: count found on the page before filtering.
        results_kept: count after per-card validation (optional).
        duration_ms: elapsed milliseconds (optional).
        context: extra key/values (cache_key, step, etc.).
    """

    payload = {
        "source": source,
        "query": query,
        "results_raw": results_raw,
    }
    if results_kept is not None:
        payload["results_kept"] = results_kept
    if duration_ms is not None:
        payload["duration_ms"] = round(duration_ms, 1)
    payload.update({k: v for k, v in context.items() if v is not None})
    logger.bind(**payload).info(
        "search source={} results_raw={} results_kept={}", source, results_raw, results_kept
    )


class Timer:
    """Lightweight context timer for logging durations."""

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
