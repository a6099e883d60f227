"""Triage engine: classification, recovery policy and trend tracking in one place."""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, FrozenSet, Iterable, Optional

from .classification.categories import Classification
from .classification.classifier import ErrorClassifier
from .classification.policy import RecoveryPlan, RecoveryPolicyResolver
from .config import TriageConfig
from .trends import SpikeSignal, TrendAnalyzer
from .types import ErrorCategory, ErrorEvent, TriageObserver

logger = logging.getLogger(__name__)

MEMORY_LEAK_SUSPECTED = "memory_leak_suspected"


@dataclass(frozen=True)
class Outcome:
    """Everything the engine decided about one error event."""

    event: ErrorEvent
    classification: Classification
    plan: RecoveryPlan
    spike: Optional[SpikeSignal] = None
    patterns: FrozenSet[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event": self.event.to_dict(),
            "classification": self.classification.to_dict(),
            "plan": self.plan.to_dict(),
            "spike": self.spike.to_dict() if self.spike else None,
            "patterns": sorted(self.patterns),
        }


class TriageEngine:
    """Classifies error events and decides how to recover from them.

    Construct one per process (or per test) and pass it to whoever reports
    errors. The trend buffers live and die with the engine.
    """

    def __init__(
        self,
        config: Optional[TriageConfig] = None,
        classifier: Optional[ErrorClassifier] = None,
        resolver: Optional[RecoveryPolicyResolver] = None,
        trends: Optional[TrendAnalyzer] = None,
        observers: Iterable[TriageObserver] = ()
    ):
        self.config = (config or TriageConfig()).validate()
        self.classifier = classifier or ErrorClassifier(
            confidence_floor=self.config.confidence_floor,
            fallback_confidence=self.config.fallback_confidence
        )
        self.resolver = resolver or RecoveryPolicyResolver()
        self.trends = trends or TrendAnalyzer(
            window=self.config.trend_window,
            capacity=self.config.trend_capacity,
            default_threshold=self.config.default_spike_threshold,
            thresholds=self.config.spike_thresholds,
            deduplicate=self.config.deduplicate_spikes
        )
        self._observers: tuple[TriageObserver, ...] = tuple(observers)
        self._pending: set[asyncio.Task] = set()

    @property
    def observers(self) -> tuple[TriageObserver, ...]:
        return self._observers

    def add_observer(self, observer: TriageObserver) -> None:
        """Register an observer for outcomes and spikes."""
        self._observers = self._observers + (observer,)

    def remove_observer(self, observer: TriageObserver) -> None:
        """Unregister an observer; unknown observers are ignored."""
        self._observers = tuple(o for o in self._observers if o is not observer)

    def classify(self, event: ErrorEvent) -> Classification:
        """Classify an error event."""
        return self.classifier.classify(event)

    def resolve(self, classification: Classification, attempt: int = 0) -> RecoveryPlan:
        """Resolve the recovery plan for a classification."""
        return self.resolver.resolve(classification, attempt)

    def record(self, category: ErrorCategory, timestamp: datetime) -> Optional[SpikeSignal]:
        """Feed the trend analyzer directly."""
        return self.trends.record(category, timestamp)

    def evaluate(self, event: ErrorEvent, attempt: int = 0) -> Outcome:
        """Run the full pipeline for one event without notifying observers."""
        classification = self.classify(event)
        plan = self.resolve(classification, attempt)
        spike = self.record(classification.category, event.occurred_at)
        patterns = self._detect_patterns(event, classification)
        return Outcome(
            event=event,
            classification=classification,
            plan=plan,
            spike=spike,
            patterns=patterns
        )

    def process(self, event: ErrorEvent, attempt: int = 0) -> Outcome:
        """Evaluate an event and notify observers.

        Async observer callbacks are scheduled on the running loop when there
        is one and dropped with a warning otherwise. Use ``process_async`` to
        wait for them.
        """
        outcome = self.evaluate(event, attempt)
        for result in self._notify(outcome):
            self._schedule(result)
        return outcome

    async def process_async(self, event: ErrorEvent, attempt: int = 0) -> Outcome:
        """Evaluate an event and wait for every observer, sync or async."""
        outcome = self.evaluate(event, attempt)
        for result in self._notify(outcome):
            try:
                await result
            except Exception:
                logger.exception("Async triage observer failed")
        return outcome

    def _detect_patterns(self, event: ErrorEvent, classification: Classification) -> FrozenSet[str]:
        patterns = set()
        if classification.category is ErrorCategory.MEMORY:
            repeated = self.trends.is_recurring(
                ErrorCategory.MEMORY,
                self.config.memory_leak_min_events,
                event.occurred_at
            )
            growing = event.context.get("memoryUsageTrend") == "increasing"
            if repeated or growing:
                patterns.add(MEMORY_LEAK_SUSPECTED)
                logger.error(
                    "Potential memory leak pattern detected",
                    extra={
                        "memory_usage_trend": event.context.get("memoryUsageTrend"),
                        "recent_memory_errors": self.trends.recent_count(
                            ErrorCategory.MEMORY, event.occurred_at
                        ),
                    }
                )
        return frozenset(patterns)

    def _notify(self, outcome: Outcome) -> list:
        """Call every observer; returns the awaitables async observers handed back."""
        awaitables = []
        for observer in self._observers:
            calls = [("on_outcome", outcome)]
            if outcome.spike is not None:
                calls.append(("on_spike", outcome.spike))
            for method_name, argument in calls:
                method = getattr(observer, method_name, None)
                if method is None:
                    continue
                try:
                    result = method(argument)
                except Exception:
                    logger.exception(f"Triage observer {observer!r} failed in {method_name}")
                    continue
                if inspect.isawaitable(result):
                    awaitables.append(result)
        return awaitables

    def _schedule(self, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Async triage observer called outside an event loop; skipping it")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = loop.create_task(self._run_observer(awaitable))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _run_observer(awaitable) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Async triage observer failed")
