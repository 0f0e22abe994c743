"""
Progress tracking: throughput and ETA
"""

from dataclasses import dataclass
from typing import Optional
import math
import time


@dataclass(frozen=True)
class ProgressSnapshot:
    events_ingested: int
    events_this_run: int
    elapsed_seconds: float
    events_per_second: float
    eta_seconds: Optional[int]

    def summary(self) -> str:
        text = (
            f"Ingested: {self.events_ingested:,} | "
            f"Throughput: {int(self.events_per_second):,} events/sec"
        )
        if self.eta_seconds is not None:
            text += f" | ETA: {self.eta_seconds}s"
        return text


class ProgressTracker:
    """
    Tracks ingestion progress for one process run.

    Throughput only counts events ingested since start(); a resumed
    baseline is reported in the totals but not in the rate.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._started_at: Optional[float] = None
        self._baseline = 0
        self._current = 0

    def start(self, baseline: int = 0):
        self._started_at = self._clock()
        self._baseline = baseline
        self._current = baseline

    def update(self, total_ingested: int):
        self._current = total_ingested

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    @property
    def events_this_run(self) -> int:
        return max(0, self._current - self._baseline)

    def events_per_second(self) -> float:
        elapsed = self.elapsed
        if elapsed <= 0:
            return 0.0
        return self.events_this_run / elapsed

    def eta_seconds(self, total_expected: Optional[int]) -> Optional[int]:
        if not total_expected:
            return None
        if self._current >= total_expected:
            return 0
        eps = self.events_per_second()
        if eps <= 0:
            return None
        return math.ceil((total_expected - self._current) / eps)

    def snapshot(self, total_expected: Optional[int] = None) -> ProgressSnapshot:
        return ProgressSnapshot(
            events_ingested=self._current,
            events_this_run=self.events_this_run,
            elapsed_seconds=self.elapsed,
            events_per_second=self.events_per_second(),
            eta_seconds=self.eta_seconds(total_expected),
        )

    def summary(self, total_expected: Optional[int] = None) -> str:
        return self.snapshot(total_expected).summary()
