"""Integration tests for the triage engine."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from error_triage import (
    BaseObserver,
    ErrorCategory,
    ErrorEvent,
    ErrorSeverity,
    TriageConfig,
    TriageConfigError,
    TriageEngine,
)
from error_triage.engine import MEMORY_LEAK_SUSPECTED


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_event(message="", offset=0, **context):
    return ErrorEvent(
        message=message,
        context=context,
        occurred_at=T0 + timedelta(seconds=offset)
    )


@pytest.fixture
def engine():
    """Create engine with default configuration."""
    return TriageEngine()


class RecordingObserver(BaseObserver):
    """Collects everything it is told about."""

    def __init__(self):
        self.outcomes = []
        self.spikes = []

    def on_outcome(self, outcome):
        self.outcomes.append(outcome)

    def on_spike(self, signal):
        self.spikes.append(signal)


class AsyncRecordingObserver:
    """Observer with coroutine callbacks."""

    def __init__(self):
        self.outcomes = []
        self.spikes = []

    async def on_outcome(self, outcome):
        await asyncio.sleep(0)
        self.outcomes.append(outcome)

    async def on_spike(self, signal):
        self.spikes.append(signal)


class TestScenarios:
    """Test end-to-end scenarios."""

    def test_network_scenario(self, engine):
        """Test host lookup failure while offline."""
        outcome = engine.process(make_event("SocketException: Failed host lookup", isOnline=False))

        assert outcome.classification.category == ErrorCategory.NETWORK
        assert outcome.classification.confidence >= 0.8
        assert outcome.plan.should_retry is True
        assert outcome.plan.retry_delay == timedelta(seconds=3)
        assert outcome.spike is None

    def test_memory_scenario(self, engine):
        """Test out-of-memory under pressure."""
        outcome = engine.process(make_event("OutOfMemoryError", memoryPressure="high"))

        assert outcome.classification.category == ErrorCategory.MEMORY
        assert outcome.classification.severity == ErrorSeverity.CRITICAL
        assert outcome.plan.should_retry is False
        assert "requiresRestart" in outcome.plan.side_effects

    def test_empty_scenario(self, engine):
        """Test an event carrying no information."""
        outcome = engine.process(make_event())

        assert outcome.classification.category == ErrorCategory.GENERAL
        assert outcome.classification.can_recover is False

    def test_authentication_scenario(self, engine):
        """Test an expired token."""
        outcome = engine.process(make_event("401 unauthorized: invalid token", tokenExpired=True))

        assert outcome.classification.category == ErrorCategory.AUTHENTICATION
        assert "clearTokens" in outcome.plan.side_effects

    def test_retry_attempt_feeds_backoff(self, engine):
        """Test that the attempt number reaches the delay strategy."""
        event = make_event("429 too many requests")

        first = engine.process(event)
        third = engine.process(event, attempt=2)

        assert first.plan.retry_delay == timedelta(seconds=2)
        assert third.plan.retry_delay == timedelta(seconds=8)


class TestTrendIntegration:
    """Test trend tracking through the engine."""

    def test_spike_reported_in_outcome(self, engine):
        """Test the fourth security error in an hour raises a spike."""
        outcomes = [engine.process(make_event("ssl certificate rejected", offset=i)) for i in range(4)]

        assert [o.spike is not None for o in outcomes] == [False, False, False, True]
        assert outcomes[-1].spike.category == ErrorCategory.SECURITY

    def test_repeated_memory_errors_flag_leak(self, engine):
        """Test recurring memory errors are flagged."""
        outcomes = [engine.process(make_event("OutOfMemoryError", offset=i)) for i in range(3)]

        assert MEMORY_LEAK_SUSPECTED not in outcomes[0].patterns
        assert MEMORY_LEAK_SUSPECTED not in outcomes[1].patterns
        assert MEMORY_LEAK_SUSPECTED in outcomes[2].patterns

    def test_growing_memory_usage_flags_leak(self, engine):
        """Test a rising memory trend is flagged on the first error."""
        outcome = engine.process(make_event("heap allocation failed", memoryUsageTrend="increasing"))

        assert outcome.classification.category == ErrorCategory.MEMORY
        assert MEMORY_LEAK_SUSPECTED in outcome.patterns

    def test_engines_do_not_share_state(self):
        """Test that trend state belongs to each engine."""
        first = TriageEngine()
        second = TriageEngine()
        for i in range(3):
            first.process(make_event("certificate", offset=i))

        assert first.trends.recent_count(ErrorCategory.SECURITY) == 3
        assert second.trends.recent_count(ErrorCategory.SECURITY) == 0

    def test_config_thresholds_reach_analyzer(self):
        """Test that configuration drives the trend analyzer."""
        config = TriageConfig(spike_thresholds={ErrorCategory.NETWORK: 1})
        engine = TriageEngine(config=config)

        results = [engine.process(make_event("socketexception", offset=i)).spike for i in range(2)]
        assert results[0] is None
        assert results[1] is not None

    def test_invalid_config_rejected(self):
        """Test construction fails on invalid configuration."""
        with pytest.raises(TriageConfigError):
            TriageEngine(config=TriageConfig(confidence_floor=2.0))


class TestObservers:
    """Test observer notification."""

    def test_observer_receives_outcome(self, engine):
        """Test that observers see every outcome."""
        observer = RecordingObserver()
        engine.add_observer(observer)

        outcome = engine.process(make_event("disk full", diskFull=True))

        assert observer.outcomes == [outcome]
        assert observer.spikes == []

    def test_observer_receives_spike(self):
        """Test that spikes are passed to observers."""
        observer = RecordingObserver()
        engine = TriageEngine(observers=[observer])

        for i in range(5):
            engine.process(make_event("OutOfMemoryError", offset=i))

        assert len(observer.outcomes) == 5
        assert [s.count for s in observer.spikes] == [4, 5]
        assert observer.spikes[0].category == ErrorCategory.MEMORY

    def test_deduplicated_spikes_from_config(self):
        """Test the config flag makes the engine report a burst once."""
        observer = RecordingObserver()
        engine = TriageEngine(config=TriageConfig(deduplicate_spikes=True), observers=[observer])

        for i in range(5):
            engine.process(make_event("OutOfMemoryError", offset=i))

        assert [s.count for s in observer.spikes] == [4]

    def test_failing_observer_is_isolated(self, engine, caplog):
        """Test that one broken observer does not break processing."""
        broken = Mock()
        broken.on_outcome.side_effect = RuntimeError("sink offline")
        healthy = RecordingObserver()
        engine.add_observer(broken)
        engine.add_observer(healthy)

        with caplog.at_level(logging.ERROR, logger="error_triage.engine"):
            outcome = engine.process(make_event("socketexception"))

        assert outcome.classification.category == ErrorCategory.NETWORK
        assert healthy.outcomes == [outcome]
        broken.on_outcome.assert_called_once_with(outcome)
        assert "sink offline" in caplog.text

    def test_remove_observer(self, engine):
        """Test unregistering an observer."""
        observer = RecordingObserver()
        engine.add_observer(observer)
        engine.remove_observer(observer)

        engine.process(make_event("socketexception"))

        assert observer.outcomes == []
        assert engine.observers == ()

    def test_partial_observer(self, engine):
        """Test observers implementing only one callback."""
        class OnlyOutcomes:
            def __init__(self):
                self.seen = 0

            def on_outcome(self, outcome):
                self.seen += 1

        observer = OnlyOutcomes()
        engine.add_observer(observer)
        for i in range(4):
            engine.process(make_event("certificate", offset=i))

        assert observer.seen == 4

    def test_async_observer_outside_loop_is_skipped(self, engine, caplog):
        """Test async callbacks without a running loop are dropped with a warning."""
        observer = AsyncRecordingObserver()
        engine.add_observer(observer)

        with caplog.at_level(logging.WARNING, logger="error_triage.engine"):
            outcome = engine.process(make_event("socketexception"))

        assert outcome.classification.category == ErrorCategory.NETWORK
        assert observer.outcomes == []
        assert "outside an event loop" in caplog.text


@pytest.mark.asyncio
class TestAsyncObservers:
    """Test async observer dispatch."""

    async def test_process_async_awaits_observers(self):
        """Test that process_async waits for coroutine callbacks."""
        observer = AsyncRecordingObserver()
        sync_observer = RecordingObserver()
        engine = TriageEngine(observers=[observer, sync_observer])

        outcome = await engine.process_async(make_event("socketexception"))

        assert observer.outcomes == [outcome]
        assert sync_observer.outcomes == [outcome]

    async def test_process_schedules_async_observers(self):
        """Test that sync processing inside a loop schedules async callbacks."""
        observer = AsyncRecordingObserver()
        engine = TriageEngine(observers=[observer])

        outcome = engine.process(make_event("socketexception"))
        for _ in range(5):
            await asyncio.sleep(0)

        assert observer.outcomes == [outcome]

    async def test_failing_async_observer_is_isolated(self):
        """Test that async observer failures do not propagate."""
        class Broken:
            async def on_outcome(self, outcome):
                raise RuntimeError("remote sink down")

        healthy = AsyncRecordingObserver()
        engine = TriageEngine(observers=[Broken(), healthy])

        outcome = await engine.process_async(make_event("socketexception"))

        assert healthy.outcomes == [outcome]
