"""Signal tables and scoring functions for error classification.

Each category gets evidence from three places: keywords in the lowercased
error message, keywords in the lowercased stack trace, and known keys in the
context map. Every hit adds a fixed weight and the total is clamped to 1.0.

The weights come from the original mobile client and have never been fitted
to real failure data. Treat them as calibration constants.
"""
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..types import ContextValue, ErrorCategory, ErrorEvent

MAX_SCORE = 1.0


@dataclass(frozen=True)
class ContextRule:
    """Evidence taken from a single context key.

    ``equals`` matches only a value of the same type, so ``True`` never
    matches ``1``. ``above`` matches real numbers (not booleans) strictly
    greater than the bound.
    """

    key: str
    weight: float
    equals: Optional[ContextValue] = None
    above: Optional[float] = None

    def matches(self, context: Mapping[str, Any]) -> bool:
        if self.key not in context:
            return False
        value = context[self.key]
        if self.equals is not None:
            return type(value) is type(self.equals) and value == self.equals
        if self.above is not None:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False
            return value > self.above
        return False


@dataclass(frozen=True)
class CategorySignals:
    """All evidence sources for one category."""

    message_keywords: tuple[tuple[str, float], ...] = ()
    stack_keywords: tuple[tuple[str, float], ...] = ()
    context_rules: tuple[ContextRule, ...] = ()

    def score(self, message: str, stack_trace: str, context: Mapping[str, Any]) -> float:
        """Sum the weights of every matching signal, clamped to 1.0."""
        score = 0.0
        if message:
            for keyword, weight in self.message_keywords:
                if keyword in message:
                    score += weight
        if stack_trace:
            for keyword, weight in self.stack_keywords:
                if keyword in stack_trace:
                    score += weight
        if context:
            for rule in self.context_rules:
                if rule.matches(context):
                    score += rule.weight
        return min(MAX_SCORE, score)


_200_MB = 200 * 1024 * 1024

NETWORK_SIGNALS = CategorySignals(
    message_keywords=(
        ("socketexception", 0.9),
        ("httpexception", 0.8),
        ("timeout", 0.7),
        ("connection", 0.6),
        ("host lookup failed", 0.9),
        ("failed host lookup", 0.9),
        ("network is unreachable", 0.9),
    ),
    stack_keywords=(
        ("http", 0.5),
        ("dio", 0.5),
        ("socket", 0.6),
    ),
    context_rules=(
        ContextRule("networkStatus", 0.8, equals="disconnected"),
        ContextRule("isOnline", 0.8, equals=False),
    )
)

AUTHENTICATION_SIGNALS = CategorySignals(
    message_keywords=(
        ("authentication", 0.9),
        ("unauthorized", 0.8),
        ("401", 0.8),
        ("token", 0.7),
        ("login", 0.6),
        ("credential", 0.8),
        ("session expired", 0.9),
        ("invalid token", 0.9),
    ),
    stack_keywords=(
        ("firebase_auth", 0.8),
        ("auth", 0.5),
    ),
    context_rules=(
        ContextRule("authStatus", 0.7, equals="unauthenticated"),
        ContextRule("tokenExpired", 0.9, equals=True),
    )
)

VALIDATION_SIGNALS = CategorySignals(
    message_keywords=(
        ("validation", 0.9),
        ("invalid", 0.7),
        ("format", 0.6),
        ("required", 0.5),
        ("length", 0.5),
        ("email", 0.6),
        ("password", 0.6),
    ),
    context_rules=(
        ContextRule("formValidation", 0.8, equals=True),
        ContextRule("inputError", 0.7, equals=True),
    )
)

MEMORY_SIGNALS = CategorySignals(
    message_keywords=(
        ("outofmemoryerror", 1.0),
        ("memoryerror", 1.0),
        ("memory", 0.8),
        ("heap", 0.7),
        ("allocation", 0.6),
    ),
    context_rules=(
        ContextRule("memoryUsage", 0.8, above=_200_MB),
        ContextRule("memoryPressure", 0.9, equals="high"),
    )
)

STORAGE_SIGNALS = CategorySignals(
    message_keywords=(
        ("storage", 0.8),
        ("disk", 0.7),
        ("space", 0.6),
        ("file", 0.5),
        ("directory", 0.5),
        ("permission denied", 0.7),
    ),
    context_rules=(
        ContextRule("storageSpace", 0.8, equals="low"),
        ContextRule("diskFull", 0.9, equals=True),
    )
)

TIMEOUT_SIGNALS = CategorySignals(
    message_keywords=(
        ("timeout", 0.9),
        ("time out", 0.9),
        ("timed out", 0.9),
        ("deadline exceeded", 0.8),
        ("took too long", 0.7),
    ),
    context_rules=(
        ContextRule("networkLatency", 0.7, above=5000),  # milliseconds
    )
)

PERMISSION_SIGNALS = CategorySignals(
    message_keywords=(
        ("permission", 0.9),
        ("access denied", 0.8),
        ("forbidden", 0.8),
        ("not allowed", 0.7),
    ),
    context_rules=(
        ContextRule("permissionDenied", 0.9, equals=True),
    )
)

RATE_LIMIT_SIGNALS = CategorySignals(
    message_keywords=(
        ("rate limit", 0.9),
        ("too many requests", 0.9),
        ("quota exceeded", 0.8),
        ("429", 0.8),
    )
)

SECURITY_SIGNALS = CategorySignals(
    message_keywords=(
        ("security", 0.9),
        ("encryption", 0.8),
        ("certificate", 0.8),
        ("ssl", 0.7),
        ("tls", 0.7),
    )
)

UI_SIGNALS = CategorySignals(
    message_keywords=(
        ("renderbox", 0.8),
        ("widget", 0.7),
        ("build", 0.6),
        ("layout", 0.6),
    ),
    stack_keywords=(
        ("flutter/lib/src/widgets", 0.7),
        ("flutter/lib/src/rendering", 0.8),
    )
)

DATA_CORRUPTION_SIGNALS = CategorySignals(
    message_keywords=(
        ("corrupt", 0.9),
        ("invalid data", 0.8),
        ("parse error", 0.7),
        ("malformed", 0.7),
    )
)

# General is the fallback and never collects evidence of its own.
GENERAL_SIGNALS = CategorySignals()

DEFAULT_SIGNALS: dict[ErrorCategory, CategorySignals] = {
    ErrorCategory.NETWORK: NETWORK_SIGNALS,
    ErrorCategory.AUTHENTICATION: AUTHENTICATION_SIGNALS,
    ErrorCategory.VALIDATION: VALIDATION_SIGNALS,
    ErrorCategory.MEMORY: MEMORY_SIGNALS,
    ErrorCategory.STORAGE: STORAGE_SIGNALS,
    ErrorCategory.TIMEOUT: TIMEOUT_SIGNALS,
    ErrorCategory.PERMISSION: PERMISSION_SIGNALS,
    ErrorCategory.RATE_LIMIT: RATE_LIMIT_SIGNALS,
    ErrorCategory.SECURITY: SECURITY_SIGNALS,
    ErrorCategory.UI: UI_SIGNALS,
    ErrorCategory.DATA_CORRUPTION: DATA_CORRUPTION_SIGNALS,
    ErrorCategory.GENERAL: GENERAL_SIGNALS,
}


def score(
    category: ErrorCategory,
    message: str,
    stack_trace: str,
    context: Mapping[str, Any],
    signals: Optional[Mapping[ErrorCategory, CategorySignals]] = None
) -> float:
    """Score one category. ``message`` and ``stack_trace`` must already be lowercased."""
    table = DEFAULT_SIGNALS if signals is None else signals
    category_signals = table.get(category)
    if category_signals is None:
        return 0.0
    return category_signals.score(message, stack_trace, context)


def score_all(
    message: str,
    stack_trace: str,
    context: Mapping[str, Any],
    signals: Optional[Mapping[ErrorCategory, CategorySignals]] = None
) -> dict[ErrorCategory, float]:
    """Score every category for already-lowercased inputs."""
    return {
        category: score(category, message, stack_trace, context, signals)
        for category in ErrorCategory
    }


def score_event(
    event: ErrorEvent,
    signals: Optional[Mapping[ErrorCategory, CategorySignals]] = None
) -> dict[ErrorCategory, float]:
    """Lowercase an event's text and score every category."""
    message = (event.message or "").lower()
    stack_trace = (event.stack_trace or "").lower()
    return score_all(message, stack_trace, event.context, signals)
