"""HDR histogram of response times.

Thin wrapper around ``hdrh.histogram.HdrHistogram`` that accepts and
reports milliseconds while storing integer microseconds, as the HDR
histogram only records integers.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

from openload.metrics.models import ResponseTimeStats

# Range: 1 microsecond to 10 minutes (in microseconds)
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 600_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Response time histogram working in milliseconds.

    Values outside the trackable range are clamped to its bounds, so a
    recorded value is never silently dropped.

    Attributes:
        lowest_us: Lowest trackable value in microseconds.
        highest_us: Highest trackable value in microseconds.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    def record_ms(self, latency_ms: float) -> None:
        """Record one response time in milliseconds."""
        value_us = int(latency_ms * 1000)
        value_us = max(self.lowest_us, min(value_us, self.highest_us))
        self._histogram.record_value(value_us)

    @property
    def count(self) -> int:
        """Return the number of recorded values."""
        return int(self._histogram.total_count)

    def percentile(self, percentile: float) -> float:
        """Return the value at *percentile* (0-100) in ms, 0.0 when empty."""
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0

    def stats(self) -> ResponseTimeStats:
        """Summarize the recorded values.

        Returns:
            A ResponseTimeStats; all zeros when nothing was recorded.
        """
        if self.count == 0:
            return ResponseTimeStats()
        return ResponseTimeStats(
            count=self.count,
            min=float(self._histogram.get_min_value()) / 1000.0,
            max=float(self._histogram.get_max_value()) / 1000.0,
            mean=float(self._histogram.get_mean_value()) / 1000.0,
            p50=self.percentile(50.0),
            p75=self.percentile(75.0),
            p90=self.percentile(90.0),
            p95=self.percentile(95.0),
            p99=self.percentile(99.0),
        )

    def merge(self, other: LatencyHistogram) -> None:
        """Add every value recorded in *other* to this histogram."""
        self._histogram.add(other._histogram)
