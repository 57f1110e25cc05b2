"""
Session metrics for observability.
Tracks action dispatch latency, search volume, cache hits and errors.
"""

import time
from typing import Any
from contextvars import ContextVar

from medifly.utils.logger import get_logger

logger = get_logger(__name__)

metrics_ctx: ContextVar[dict[str, Any] | None] = ContextVar("metrics", default=None)


class SessionMetrics:
    """
    Collects metrics for one chat session.
    Registers itself in a context variable so services can record without a reference.
    """

    def __init__(self):
        self.metrics = {
            "dispatch_timings": {},
            "searches": {"requests": 0, "cache_hits": 0, "results_returned": 0},
            "errors": {},
            "total_time": 0.0,
            "start_time": time.time(),
        }
        metrics_ctx.set(self.metrics)

    def start_dispatch(self, kind: str) -> None:
        """
        Start timing an action dispatch.

        Args:
            kind: Action kind (or "text" for free-text submissions)
        """
        self.metrics["dispatch_timings"].setdefault(kind, []).append(
            {"start": time.time(), "end": None}
        )

    def end_dispatch(self, kind: str) -> float:
        """
        End timing an action dispatch and return elapsed time.

        Raises:
            ValueError: If no dispatch of this kind is active
        """
        timings = self.metrics["dispatch_timings"].get(kind)
        if not timings or timings[-1]["end"] is not None:
            raise ValueError(f"No active dispatch timing for '{kind}'")

        timings[-1]["end"] = time.time()
        elapsed = timings[-1]["end"] - timings[-1]["start"]
        logger.info("dispatch_completed", kind=kind, elapsed=elapsed)
        return elapsed

    def finalize(self) -> dict[str, Any]:
        """
        Finalize metrics and calculate per-kind totals.

        Returns:
            Dictionary with all collected metrics
        """
        self.metrics["total_time"] = time.time() - self.metrics["start_time"]

        dispatch_summary = {}
        for kind, timings in self.metrics["dispatch_timings"].items():
            dispatch_summary[kind] = {
                "total_time": sum(
                    t["end"] - t["start"] for t in timings if t["end"] is not None
                ),
                "call_count": len(timings),
            }
        self.metrics["dispatch_summary"] = dispatch_summary

        logger.info(
            "session_metrics",
            total_time=self.metrics["total_time"],
            searches=self.metrics["searches"],
            errors=self.metrics["errors"],
            dispatch_summary=dispatch_summary,
        )
        return self.metrics


def get_metrics() -> dict[str, Any] | None:
    return metrics_ctx.get()


def record_search(cache_hit: bool, results: int) -> None:
    """
    Record a search served from cache or network.
    No-op when no session metrics are active.
    """
    metrics = get_metrics()
    if not metrics:
        return
    searches = metrics["searches"]
    searches["requests"] += 1
    searches["results_returned"] += results
    if cache_hit:
        searches["cache_hits"] += 1


def record_error(error_type: str) -> None:
    """Count an error by exception class name."""
    metrics = get_metrics()
    if not metrics:
        return
    errors = metrics["errors"]
    errors[error_type] = errors.get(error_type, 0) + 1
