"""
Configuration for the triage engine.
"""
import json
import logging
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .exceptions import TriageConfigError
from .trends import DEFAULT_CAPACITY, DEFAULT_SPIKE_THRESHOLD, DEFAULT_SPIKE_THRESHOLDS, DEFAULT_WINDOW
from .types import ErrorCategory

logger = logging.getLogger(__name__)


@dataclass
class TriageConfig:
    """Tunable constants of the engine.

    The confidence floor and the spike thresholds were picked by hand and
    should be calibrated against real failure data.
    """
    confidence_floor: float = 0.3
    fallback_confidence: float = 0.5
    trend_window: timedelta = DEFAULT_WINDOW
    trend_capacity: int = DEFAULT_CAPACITY
    default_spike_threshold: int = DEFAULT_SPIKE_THRESHOLD
    spike_thresholds: Dict[ErrorCategory, int] = field(
        default_factory=lambda: DEFAULT_SPIKE_THRESHOLDS.copy()
    )
    memory_leak_min_events: int = 3
    deduplicate_spikes: bool = False

    def validate(self) -> 'TriageConfig':
        """Check value ranges. Returns self so calls can be chained."""
        for name in ("confidence_floor", "fallback_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise TriageConfigError(f"{name} must be within [0, 1], got {value}", name)
        if not isinstance(self.trend_window, timedelta):
            raise TriageConfigError(
                f"trend_window must be a timedelta, got {self.trend_window!r} "
                f"(use trend_window_seconds for numbers)",
                "trend_window"
            )
        if self.trend_window <= timedelta(0):
            raise TriageConfigError(
                f"trend_window must be positive, got {self.trend_window}", "trend_window"
            )
        if self.trend_capacity < 1:
            raise TriageConfigError(
                f"trend_capacity must be at least 1, got {self.trend_capacity}", "trend_capacity"
            )
        if self.default_spike_threshold < 0:
            raise TriageConfigError(
                "default_spike_threshold must be non-negative", "default_spike_threshold"
            )
        if self.memory_leak_min_events < 1:
            raise TriageConfigError(
                "memory_leak_min_events must be at least 1", "memory_leak_min_events"
            )
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TriageConfig':
        """Create from a JSON-friendly dictionary.

        ``trend_window_seconds`` sets the window, ``spike_thresholds`` is keyed
        by category value. Unknown keys are ignored with a warning.
        """
        data = dict(data)
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}

        if "trend_window_seconds" in data:
            seconds = data.pop("trend_window_seconds")
            try:
                kwargs["trend_window"] = timedelta(seconds=float(seconds))
            except (TypeError, ValueError) as e:
                raise TriageConfigError(
                    f"trend_window_seconds must be a number, got {seconds!r}", "trend_window"
                ) from e

        if "spike_thresholds" in data:
            raw = data.pop("spike_thresholds") or {}
            thresholds = DEFAULT_SPIKE_THRESHOLDS.copy()
            for key, value in raw.items():
                try:
                    category = key if isinstance(key, ErrorCategory) else ErrorCategory(key)
                except ValueError as e:
                    raise TriageConfigError(
                        f"Unknown category in spike_thresholds: {key!r}", "spike_thresholds"
                    ) from e
                try:
                    thresholds[category] = int(value)
                except (TypeError, ValueError) as e:
                    raise TriageConfigError(
                        f"Spike threshold for {category.value} must be an integer, got {value!r}",
                        "spike_thresholds"
                    ) from e
            kwargs["spike_thresholds"] = thresholds

        for key, value in data.items():
            if key in known:
                kwargs[key] = value
            else:
                logger.warning(f"Ignoring unknown config key: {key}")

        try:
            config = cls(**kwargs)
        except TypeError as e:
            raise TriageConfigError(f"Invalid configuration: {e}") from e
        return config.validate()

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "confidence_floor": self.confidence_floor,
            "fallback_confidence": self.fallback_confidence,
            "trend_window_seconds": self.trend_window.total_seconds(),
            "trend_capacity": self.trend_capacity,
            "default_spike_threshold": self.default_spike_threshold,
            "spike_thresholds": {
                category.value: threshold
                for category, threshold in self.spike_thresholds.items()
            },
            "memory_leak_min_events": self.memory_leak_min_events,
            "deduplicate_spikes": self.deduplicate_spikes,
        }


def load_config(path: Union[str, Path]) -> TriageConfig:
    """Load configuration from a JSON file, falling back to defaults for missing keys."""
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TriageConfigError(f"Could not read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise TriageConfigError(f"Config file {path} must contain a JSON object")

    logger.info(f"Loaded triage configuration from {path}")
    return TriageConfig.from_dict(data)
