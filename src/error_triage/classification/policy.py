"""Recovery policy mapping based on error classification."""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, FrozenSet, Mapping, Optional

from ..exceptions import TriageConfigError
from ..strategies import BaseStrategy, ExponentialBackoffStrategy, FixedDelayStrategy
from ..types import ErrorCategory, ErrorSeverity
from .categories import Classification

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

# Side effects the caller is expected to carry out.
CLEAR_TOKENS = "clearTokens"
CLEAR_CACHE = "clearCache"
REQUIRES_RESTART = "requiresRestart"
REQUIRES_REAUTH = "requiresReauth"
HIGHLIGHT_FIELD = "highlightField"
REQUEST_PERMISSION = "requestPermission"


@dataclass(frozen=True)
class RecoveryPlan:
    """What the caller should do about a classified error."""

    should_retry: bool
    retry_delay: timedelta
    max_retries: int
    should_notify_user: bool
    user_message: str
    side_effects: FrozenSet[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "should_retry": self.should_retry,
            "retry_delay": self.retry_delay.total_seconds(),
            "max_retries": self.max_retries,
            "should_notify_user": self.should_notify_user,
            "user_message": self.user_message,
            "side_effects": sorted(self.side_effects),
        }


@dataclass(frozen=True)
class PolicyEntry:
    """Policy for one category."""

    should_retry: bool
    delay: BaseStrategy
    should_notify_user: bool
    user_message: str
    side_effects: FrozenSet[str] = field(default_factory=frozenset)
    max_retries: Optional[int] = None  # None means the default for retryable categories

    @property
    def effective_max_retries(self) -> int:
        if not self.should_retry:
            return 0
        if self.max_retries is None:
            return DEFAULT_MAX_RETRIES
        return self.max_retries


NO_DELAY = FixedDelayStrategy(delay=0.0)

DEFAULT_POLICIES: dict[ErrorCategory, PolicyEntry] = {
    ErrorCategory.NETWORK: PolicyEntry(
        should_retry=True,
        delay=FixedDelayStrategy(delay=3.0),
        should_notify_user=True,
        user_message="Connection issue detected. Please check your internet and try again."
    ),
    ErrorCategory.AUTHENTICATION: PolicyEntry(
        should_retry=True,
        delay=FixedDelayStrategy(delay=1.0),
        should_notify_user=True,
        user_message="Authentication required. Please sign in to continue.",
        side_effects=frozenset({CLEAR_TOKENS})
    ),
    ErrorCategory.MEMORY: PolicyEntry(
        should_retry=False,
        delay=FixedDelayStrategy(delay=5.0),
        should_notify_user=True,
        user_message=(
            "The app is running low on memory. "
            "Please close other apps and try again."
        ),
        side_effects=frozenset({REQUIRES_RESTART, CLEAR_CACHE})
    ),
    ErrorCategory.VALIDATION: PolicyEntry(
        should_retry=True,
        delay=NO_DELAY,
        should_notify_user=True,
        user_message="Please check your input and try again.",
        side_effects=frozenset({HIGHLIGHT_FIELD})
    ),
    ErrorCategory.RATE_LIMIT: PolicyEntry(
        should_retry=True,
        delay=ExponentialBackoffStrategy(initial_delay=2.0, backoff_factor=2.0, max_delay=60.0),
        should_notify_user=True,
        user_message="Too many requests. Please wait a moment and try again."
    ),
    ErrorCategory.SECURITY: PolicyEntry(
        should_retry=False,
        delay=NO_DELAY,
        should_notify_user=True,
        user_message="A security check failed. Please sign in again to continue.",
        side_effects=frozenset({REQUIRES_REAUTH})
    ),
    ErrorCategory.TIMEOUT: PolicyEntry(
        should_retry=True,
        delay=ExponentialBackoffStrategy(initial_delay=2.0, backoff_factor=2.0, max_delay=30.0),
        should_notify_user=True,
        user_message="The request is taking longer than expected. Please try again."
    ),
    ErrorCategory.STORAGE: PolicyEntry(
        should_retry=False,
        delay=NO_DELAY,
        should_notify_user=True,
        user_message="Storage issue detected. Please free up space and try again.",
        side_effects=frozenset({CLEAR_CACHE})
    ),
    ErrorCategory.PERMISSION: PolicyEntry(
        should_retry=False,
        delay=NO_DELAY,
        should_notify_user=True,
        user_message="Permission required to access this feature.",
        side_effects=frozenset({REQUEST_PERMISSION})
    ),
    ErrorCategory.UI: PolicyEntry(
        should_retry=False,
        delay=NO_DELAY,
        should_notify_user=False,
        user_message="Something went wrong while displaying this screen."
    ),
    ErrorCategory.DATA_CORRUPTION: PolicyEntry(
        should_retry=False,
        delay=NO_DELAY,
        should_notify_user=True,
        user_message="Some data could not be read. Please refresh and try again.",
        side_effects=frozenset({CLEAR_CACHE})
    ),
    ErrorCategory.GENERAL: PolicyEntry(
        should_retry=True,
        delay=FixedDelayStrategy(delay=2.0),
        should_notify_user=True,
        user_message=(
            "Something went wrong. Please try again or contact support "
            "if the problem persists."
        )
    ),
}


class RecoveryPolicyResolver:
    """Maps classifications to recovery plans.

    The policy table is the only place retry behaviour is defined.
    """

    def __init__(self, policies: Optional[Mapping[ErrorCategory, PolicyEntry]] = None):
        """Initialize with the default table, optionally overriding entries."""
        self.policies: dict[ErrorCategory, PolicyEntry] = DEFAULT_POLICIES.copy()
        if policies:
            self.policies.update(policies)

        missing = set(ErrorCategory) - set(self.policies)
        if missing:
            raise TriageConfigError(
                f"Policy table has no entry for: {sorted(c.value for c in missing)}",
                "policies"
            )
        for category, entry in self.policies.items():
            if entry.max_retries is not None and entry.max_retries < 0:
                raise TriageConfigError(
                    f"max_retries for {category.value} must be non-negative",
                    "policies"
                )

    def get_policy(self, category: ErrorCategory) -> PolicyEntry:
        """Get the policy entry for a category."""
        return self.policies[category]

    def resolve(self, classification: Classification, attempt: int = 0) -> RecoveryPlan:
        """Build the recovery plan for a classification.

        Args:
            classification: Error classification
            attempt: Number of retries already made (0-indexed), feeds backoff

        Returns:
            The recovery plan; never raises

        """
        entry = self.policies.get(classification.category)
        if entry is None:
            entry = self.policies[ErrorCategory.GENERAL]

        try:
            delay_seconds = entry.delay.calculate_delay(attempt)
        except Exception:
            logger.exception(f"Delay calculation failed for {classification.category.value}")
            delay_seconds = 0.0

        should_notify = entry.should_notify_user
        # Critical errors are always surfaced, whatever the category default says.
        if classification.severity >= ErrorSeverity.CRITICAL:
            should_notify = True

        plan = RecoveryPlan(
            should_retry=entry.should_retry,
            retry_delay=timedelta(seconds=delay_seconds),
            max_retries=entry.effective_max_retries,
            should_notify_user=should_notify,
            user_message=entry.user_message,
            side_effects=entry.side_effects
        )

        logger.debug(
            f"Resolved {classification.category.value} ({classification.severity.value}) "
            f"to retry={plan.should_retry} delay={delay_seconds}s "
            f"using {entry.delay.name}"
        )

        return plan
