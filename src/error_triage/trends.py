"""Sliding-window error counts per category with spike detection."""
import bisect
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from .exceptions import TriageConfigError
from .types import ErrorCategory

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=1)
DEFAULT_CAPACITY = 1000
DEFAULT_SPIKE_THRESHOLD = 10
DEFAULT_SPIKE_THRESHOLDS: dict[ErrorCategory, int] = {
    ErrorCategory.SECURITY: 3,
    ErrorCategory.MEMORY: 3,
}


@dataclass(frozen=True)
class SpikeSignal:
    """Raised when a category sees more errors than its threshold within the window."""

    category: ErrorCategory
    count: int
    threshold: int
    window: timedelta
    detected_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "category": self.category.value,
            "count": self.count,
            "threshold": self.threshold,
            "window_seconds": self.window.total_seconds(),
            "detected_at": self.detected_at.isoformat(),
        }


class _CategoryBucket:
    """Ordered timestamps for one category, guarded by its own lock."""

    def __init__(self, capacity: int):
        self.lock = threading.Lock()
        self.times: deque[datetime] = deque(maxlen=capacity)
        self.spiking = False

    def evict_before(self, cutoff: datetime) -> None:
        times = self.times
        while times and times[0] < cutoff:
            times.popleft()


def _as_aware(timestamp: datetime) -> datetime:
    # Naive timestamps are taken to be UTC so they compare with aware ones.
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


class TrendAnalyzer:
    """Tracks recent errors per category and detects spikes.

    Every category owns a bounded ring buffer and a lock. Recording for one
    category never waits on another.
    """

    def __init__(
        self,
        window: timedelta = DEFAULT_WINDOW,
        capacity: int = DEFAULT_CAPACITY,
        default_threshold: int = DEFAULT_SPIKE_THRESHOLD,
        thresholds: Optional[Mapping[ErrorCategory, int]] = None,
        deduplicate: bool = False
    ):
        if window <= timedelta(0):
            raise TriageConfigError(f"window must be positive, got {window}", "window")
        if default_threshold < 0:
            raise TriageConfigError(
                f"default_threshold must be non-negative, got {default_threshold}",
                "default_threshold"
            )

        self.window = window
        self.capacity = capacity
        self.default_threshold = default_threshold
        self.deduplicate = deduplicate
        self.thresholds: dict[ErrorCategory, int] = DEFAULT_SPIKE_THRESHOLDS.copy()
        if thresholds:
            self.thresholds.update(thresholds)

        for category in ErrorCategory:
            threshold = self.threshold_for(category)
            if threshold < 0:
                raise TriageConfigError(
                    f"spike threshold for {category.value} must be non-negative",
                    "thresholds"
                )
            if capacity <= threshold:
                raise TriageConfigError(
                    f"capacity {capacity} must exceed the spike threshold "
                    f"{threshold} for {category.value}",
                    "capacity"
                )

        # Built once and never resized, so lookups need no lock.
        self._buckets: dict[ErrorCategory, _CategoryBucket] = {
            category: _CategoryBucket(capacity) for category in ErrorCategory
        }

    def threshold_for(self, category: ErrorCategory) -> int:
        """Get the spike threshold for a category."""
        return self.thresholds.get(category, self.default_threshold)

    def record(self, category: ErrorCategory, timestamp: datetime) -> Optional[SpikeSignal]:
        """Record one error and report a spike while the category is over its threshold.

        Every record that leaves the windowed count above the threshold returns
        a signal. With ``deduplicate`` set only the first record of each burst
        does, and the analyzer re-arms once the count falls back to the threshold.
        """
        try:
            return self._record(category, _as_aware(timestamp))
        except Exception:
            logger.exception(f"Failed to record trend for {getattr(category, 'value', category)}")
            return None

    def _record(self, category: ErrorCategory, timestamp: datetime) -> Optional[SpikeSignal]:
        bucket = self._buckets[category]
        threshold = self.threshold_for(category)

        with bucket.lock:
            times = bucket.times
            now = max(times[-1], timestamp) if times else timestamp
            cutoff = now - self.window
            bucket.evict_before(cutoff)

            if timestamp < cutoff:
                logger.warning(
                    f"Ignoring {category.value} error at {timestamp.isoformat()}: "
                    f"older than the {self.window} trend window"
                )
                return None

            if len(times) == self.capacity:
                times.popleft()
            if not times or timestamp >= times[-1]:
                times.append(timestamp)
            else:
                times.insert(bisect.bisect_right(times, timestamp), timestamp)

            count = len(times)
            if count <= threshold:
                bucket.spiking = False
                return None
            if self.deduplicate and bucket.spiking:
                return None
            bucket.spiking = True

        logger.warning(
            f"Error spike detected for category {category.value}: "
            f"{count} errors in {self.window} (threshold {threshold})"
        )
        return SpikeSignal(
            category=category,
            count=count,
            threshold=threshold,
            window=self.window,
            detected_at=timestamp
        )

    def recent_count(self, category: ErrorCategory, now: Optional[datetime] = None) -> int:
        """Count errors for a category inside the window ending at ``now``."""
        bucket = self._buckets[category]
        with bucket.lock:
            if not bucket.times:
                return 0
            end = _as_aware(now) if now is not None else bucket.times[-1]
            cutoff = end - self.window
            return sum(1 for t in bucket.times if cutoff <= t <= end)

    def is_recurring(
        self,
        category: ErrorCategory,
        min_count: int,
        now: Optional[datetime] = None
    ) -> bool:
        """Check whether a category has repeated at least ``min_count`` times in the window."""
        return self.recent_count(category, now) >= min_count

    def snapshot(self, now: Optional[datetime] = None) -> dict[str, int]:
        """Get windowed counts for every category."""
        return {
            category.value: self.recent_count(category, now)
            for category in ErrorCategory
        }

    def reset(self) -> None:
        """Forget all recorded errors."""
        for bucket in self._buckets.values():
            with bucket.lock:
                bucket.times.clear()
                bucket.spiking = False
