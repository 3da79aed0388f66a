"""Health utility classes for Revoke Radar.

Provides:
  - ScanStatsTracker — rolling window of the last N scan durations (avg, p99)
                       plus lifetime scan / failure / error totals
"""

from __future__ import annotations

from collections import deque

from revoke_radar.constants import SCAN_STATS_WINDOW


class ScanStatsTracker:
    """Rolling window of scan durations plus outcome totals.

    Used by ``/health`` to report ``avg_scan_ms`` / ``p99_scan_ms`` without
    storing unbounded history. Safe for single-threaded asyncio use (all access
    from the event loop).

    Usage::

        tracker = ScanStatsTracker()
        tracker.record(outcome.meta.duration_ms, ok=outcome.ok, errors=outcome.meta.errors)
        avg = tracker.avg_ms     # rolling average
        p99 = tracker.p99_ms     # 0.0 until 10+ samples
    """

    def __init__(self, window: int = SCAN_STATS_WINDOW) -> None:
        self._times: deque[float] = deque(maxlen=window)
        self.scans_total = 0
        self.scans_failed = 0
        self.errors_total = 0

    def record(self, duration_ms: float, ok: bool = True, errors: int = 0) -> None:
        """Add one finished scan. The oldest duration is evicted once the window is full."""
        self._times.append(duration_ms)
        self.scans_total += 1
        if not ok:
            self.scans_failed += 1
        self.errors_total += errors

    @property
    def avg_ms(self) -> float:
        if not self._times:
            return 0.0
        return sum(self._times) / len(self._times)

    @property
    def p99_ms(self) -> float:
        """99th percentile of the window; 0.0 with fewer than 10 samples."""
        if len(self._times) < 10:
            return 0.0
        sorted_times = sorted(self._times)
        idx = max(0, int(len(sorted_times) * 0.99) - 1)
        return sorted_times[idx]

    @property
    def count(self) -> int:
        return len(self._times)

    def snapshot(self) -> dict[str, float | int]:
        return {
            "scans_total": self.scans_total,
            "scans_failed": self.scans_failed,
            "errors_total": self.errors_total,
            "avg_scan_ms": round(self.avg_ms, 1),
            "p99_scan_ms": round(self.p99_ms, 1),
        }
