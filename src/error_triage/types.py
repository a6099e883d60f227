"""
Shared type definitions for the triage engine.
"""
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import total_ordering
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol, Union

if TYPE_CHECKING:
    from .engine import Outcome
    from .trends import SpikeSignal


ContextValue = Union[str, int, float, bool]


class ErrorCategory(Enum):
    """Closed set of categories an error can be classified into."""
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    MEMORY = "memory"
    STORAGE = "storage"
    TIMEOUT = "timeout"
    PERMISSION = "permission"
    RATE_LIMIT = "rate_limit"
    SECURITY = "security"
    UI = "ui"
    DATA_CORRUPTION = "data_corruption"
    GENERAL = "general"  # Fallback when nothing reaches the confidence floor


@total_ordering
class ErrorSeverity(Enum):
    """Severity levels for errors, ordered low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {
    ErrorSeverity.LOW: 0,
    ErrorSeverity.MEDIUM: 1,
    ErrorSeverity.HIGH: 2,
    ErrorSeverity.CRITICAL: 3,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ErrorEvent:
    """A single captured failure, as handed over by the capture hooks.

    The context mapping is copied and exposed read-only so an event can be
    shared between threads without anyone changing it underneath the
    classifier.
    """
    message: str
    stack_trace: Optional[str] = None
    context: Mapping[str, ContextValue] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.message is None:
            object.__setattr__(self, "message", "")
        elif not isinstance(self.message, str):
            object.__setattr__(self, "message", str(self.message))
        if self.stack_trace is not None and not isinstance(self.stack_trace, str):
            object.__setattr__(self, "stack_trace", str(self.stack_trace))
        object.__setattr__(self, "context", MappingProxyType(dict(self.context or {})))

    @classmethod
    def from_exception(
        cls,
        error: BaseException,
        context: Optional[Mapping[str, ContextValue]] = None,
        occurred_at: Optional[datetime] = None
    ) -> 'ErrorEvent':
        """Build an event from a caught exception.

        The message carries the exception type name so keyword signals such as
        ``memoryerror`` or ``sslerror`` can see it.
        """
        message = f"{type(error).__name__}: {error}"
        stack_trace = None
        if error.__traceback__ is not None:
            stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        return cls(
            message=message,
            stack_trace=stack_trace,
            context=context or {},
            occurred_at=occurred_at or _utcnow()
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "message": self.message,
            "stack_trace": self.stack_trace,
            "context": dict(self.context),
            "occurred_at": self.occurred_at.isoformat(),
        }


class TriageObserver(Protocol):
    """Protocol for code that wants to hear about engine outputs."""

    def on_outcome(self, outcome: 'Outcome') -> Any:
        """Called once per processed event."""
        ...

    def on_spike(self, signal: 'SpikeSignal') -> Any:
        """Called when a category crosses its spike threshold."""
        ...


class BaseObserver:
    """No-op observer; subclass and override only what you need."""

    def on_outcome(self, outcome: 'Outcome') -> Any:
        return None

    def on_spike(self, signal: 'SpikeSignal') -> Any:
        return None
