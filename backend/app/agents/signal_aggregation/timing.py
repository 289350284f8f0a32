"""
Timing Utilities for Latency Instrumentation

Spans for individual source fetches and a step timer for the analysis
pipeline.  Step durations are returned so they can ride along in the
analysis report.
"""

import time
from contextlib import asynccontextmanager, contextmanager
from typing import Dict, Optional


def log_timing(scope: str, action: str, duration_ms: Optional[float] = None):
    """Log a timing event in standard format."""
    if duration_ms is not None:
        print(f"[TIMING] {scope}: {action} — duration={duration_ms:.0f}ms")
    else:
        print(f"[TIMING] {scope}: {action}")


@asynccontextmanager
async def timed_span(scope: str, action: str = "FETCH"):
    """Time an async operation.

    Yields a dict the caller may annotate (e.g. ``span["status"] = "ok"``);
    annotations are appended to the END line.
    """
    span: Dict[str, object] = {}
    log_timing(scope, f"{action} START")
    start = time.perf_counter()
    try:
        yield span
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        detail = " ".join(f"{key}={value}" for key, value in span.items())
        log_timing(scope, f"{action} END {detail}".rstrip(), duration_ms)


class StepTimer:
    """
    Times the named steps of one analysis run.

    Usage:
        timer = StepTimer("analysis")
        async with timer.async_step("aggregate"):
            await orchestrator.run(idea)
        with timer.step("score"):
            compute_composite(sub_scores)
        timings = timer.summary()
    """

    def __init__(self, scope: str):
        self.scope = scope
        self.steps: Dict[str, float] = {}
        self.start_time = time.perf_counter()

    def _record(self, step_name: str, start: float):
        duration_ms = (time.perf_counter() - start) * 1000
        self.steps[step_name] = duration_ms
        log_timing(self.scope, step_name, duration_ms)

    @contextmanager
    def step(self, step_name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self._record(step_name, start)

    @asynccontextmanager
    async def async_step(self, step_name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self._record(step_name, start)

    def summary(self) -> Dict[str, float]:
        """Log the total and return per-step durations (ms, rounded)."""
        total_ms = (time.perf_counter() - self.start_time) * 1000
        log_timing(self.scope, "TOTAL", total_ms)
        timings = {name: round(ms, 1) for name, ms in self.steps.items()}
        timings["total"] = round(total_ms, 1)
        return timings
