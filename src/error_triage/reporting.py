"""Payloads for logging, crash reporting and user messaging."""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from .classification.policy import RecoveryPlan
from .trends import SpikeSignal
from .types import BaseObserver, ErrorSeverity

if TYPE_CHECKING:
    from .engine import Outcome

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.WARNING,
    ErrorSeverity.MEDIUM: logging.ERROR,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

# Context keys copied into crash report information lines, with their defaults.
_CRASH_CONTEXT_FIELDS = (
    ("User ID", "userId", "anonymous"),
    ("Screen", "currentScreen", "unknown"),
    ("App Version", "appVersion", "unknown"),
    ("Platform", "platform", "unknown"),
    ("Network Status", "networkStatus", "unknown"),
    ("Memory Usage", "memoryUsage", "unknown"),
)


def log_level_for(severity: ErrorSeverity) -> int:
    """Map severity to a logging level. Critical maps to CRITICAL (fatal)."""
    return _LOG_LEVELS[severity]


def build_log_record(outcome: 'Outcome') -> dict[str, Any]:
    """Structured record for a leveled logger."""
    record = outcome.to_dict()
    record["level"] = logging.getLevelName(log_level_for(outcome.classification.severity))
    return record


def build_crash_report(outcome: 'Outcome') -> dict[str, Any]:
    """Crash report payload; ``fatal`` is set for critical errors."""
    classification = outcome.classification
    context = outcome.event.context
    information = [
        f"Severity: {classification.severity.value}",
        f"Category: {classification.category.value}",
        f"Can Recover: {classification.can_recover}",
    ]
    information.extend(
        f"{label}: {context.get(key, default)}"
        for label, key, default in _CRASH_CONTEXT_FIELDS
    )

    report = build_log_record(outcome)
    report["fatal"] = classification.severity is ErrorSeverity.CRITICAL
    report["information"] = information
    return report


@dataclass(frozen=True)
class UserNotice:
    """What the user-facing messaging layer is allowed to see."""

    message: str
    should_notify: bool
    can_retry: bool


def build_user_notice(plan: RecoveryPlan) -> UserNotice:
    """Build the user-facing notice from a recovery plan."""
    return UserNotice(
        message=plan.user_message,
        should_notify=plan.should_notify_user,
        can_retry=plan.should_retry
    )


class LoggingObserver(BaseObserver):
    """Writes every outcome to a logger at the level its severity maps to."""

    def __init__(self, target: Optional[logging.Logger] = None):
        self.logger = target or logger

    def on_outcome(self, outcome: 'Outcome') -> None:
        classification = outcome.classification
        self.logger.log(
            log_level_for(classification.severity),
            f"Error: {outcome.event.message} "
            f"[{classification.category.value}/{classification.severity.value}, "
            f"confidence {classification.confidence:.2f}]",
            extra={"triage": build_log_record(outcome)}
        )

    def on_spike(self, signal: SpikeSignal) -> None:
        self.logger.warning(
            f"Error spike detected for category: {signal.category.value}",
            extra={"triage_spike": signal.to_dict()}
        )
