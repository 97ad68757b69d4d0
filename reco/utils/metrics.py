"""Timing instrumentation."""

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Dict


class PerformanceMetrics:
    """Track performance metrics. One instance per call; not shared across threads."""

    def __init__(self):
        self.start_times = {}
        self.durations = {}

    def start_timer(self, name: str):
        """Start timing an operation."""
        self.start_times[name] = perf_counter()

    def stop_timer(self, name: str) -> float:
        """Stop timing and return duration in milliseconds."""
        if name not in self.start_times:
            return 0.0
        duration = (perf_counter() - self.start_times.pop(name)) * 1000
        self.durations[name] = duration
        return duration

    @contextmanager
    def measure(self, name: str):
        self.start_timer(name)
        try:
            yield
        finally:
            self.stop_timer(name)

    def get_summary(self) -> Dict[str, float]:
        """Get summary of all timings."""
        return self.durations.copy()

    def log_summary(self, logger: logging.Logger, prefix: str = ""):
        if not logger.isEnabledFor(logging.DEBUG):
            return
        timings = ", ".join(f"{name}={ms:.1f}ms" for name, ms in self.durations.items())
        logger.debug("%s%s", prefix, timings)
