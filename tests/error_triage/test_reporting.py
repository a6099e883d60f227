"""Tests for logging, crash report and user notice payloads."""
import logging
from datetime import datetime, timezone

import pytest

from error_triage import (
    ErrorEvent,
    ErrorSeverity,
    LoggingObserver,
    TriageEngine,
    build_crash_report,
    build_log_record,
    build_user_notice,
    log_level_for,
)


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """Create engine with default configuration."""
    return TriageEngine()


def evaluate(engine, message, **context):
    return engine.evaluate(ErrorEvent(message=message, context=context, occurred_at=T0))


class TestLogLevels:
    """Test severity to log level mapping."""

    @pytest.mark.parametrize("severity,level", [
        (ErrorSeverity.LOW, logging.WARNING),
        (ErrorSeverity.MEDIUM, logging.ERROR),
        (ErrorSeverity.HIGH, logging.ERROR),
        (ErrorSeverity.CRITICAL, logging.CRITICAL),
    ])
    def test_mapping(self, severity, level):
        """Test every severity maps to a level."""
        assert log_level_for(severity) == level


class TestPayloads:
    """Test structured payloads."""

    def test_log_record_contains_everything(self, engine):
        """Test the structured log record."""
        outcome = evaluate(engine, "socketexception", isOnline=False)
        record = build_log_record(outcome)

        assert record["level"] == "ERROR"
        assert record["classification"]["category"] == "network"
        assert record["plan"]["retry_delay"] == 3.0
        assert record["event"]["message"] == "socketexception"
        assert record["event"]["context"] == {"isOnline": False}
        assert record["spike"] is None

    def test_crash_report_fatal_for_critical(self, engine):
        """Test critical errors are reported as fatal."""
        report = build_crash_report(evaluate(engine, "OutOfMemoryError", currentScreen="gallery"))

        assert report["fatal"] is True
        assert report["level"] == "CRITICAL"
        assert "Screen: gallery" in report["information"]
        assert "User ID: anonymous" in report["information"]

    def test_crash_report_not_fatal_otherwise(self, engine):
        """Test non-critical errors are not fatal."""
        report = build_crash_report(evaluate(engine, "socketexception", userId="u-42"))

        assert report["fatal"] is False
        assert "User ID: u-42" in report["information"]
        assert "Category: network" in report["information"]

    def test_user_notice_hides_internals(self, engine):
        """Test the user notice only carries message and flags."""
        outcome = evaluate(engine, "validation failed: email required", formValidation=True)
        notice = build_user_notice(outcome.plan)

        assert notice.message == "Please check your input and try again."
        assert notice.should_notify is True
        assert notice.can_retry is True
        assert set(vars(notice)) == {"message", "should_notify", "can_retry"}


class TestLoggingObserver:
    """Test the logging observer."""

    def test_logs_at_mapped_level(self, caplog):
        """Test outcomes are logged at the severity's level."""
        engine = TriageEngine(observers=[LoggingObserver()])

        with caplog.at_level(logging.DEBUG, logger="error_triage.reporting"):
            engine.process(ErrorEvent(message="OutOfMemoryError", occurred_at=T0))
            engine.process(ErrorEvent(message="socketexception", occurred_at=T0))
            engine.process(ErrorEvent(message="invalid email format", occurred_at=T0))

        records = [r for r in caplog.records if r.name == "error_triage.reporting"]
        assert [r.levelno for r in records] == [logging.CRITICAL, logging.ERROR, logging.WARNING]
        assert records[0].triage["classification"]["category"] == "memory"

    def test_logs_spikes(self, caplog):
        """Test spikes are logged as warnings."""
        target = logging.getLogger("tests.triage")
        engine = TriageEngine(observers=[LoggingObserver(target)])

        with caplog.at_level(logging.WARNING, logger="tests.triage"):
            for _ in range(4):
                engine.process(ErrorEvent(message="certificate", occurred_at=T0))

        spike_records = [r for r in caplog.records if hasattr(r, "triage_spike")]
        assert len(spike_records) == 1
        assert spike_records[0].triage_spike["category"] == "security"
        assert spike_records[0].triage_spike["count"] == 4
