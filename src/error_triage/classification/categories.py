"""Classification record and per-category classification profiles."""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping

from ..types import ErrorCategory, ErrorSeverity


@dataclass(frozen=True)
class Classification:
    """Result of error classification."""

    category: ErrorCategory
    severity: ErrorSeverity
    confidence: float  # 0.0 to 1.0
    can_recover: bool
    tags: FrozenSet[str] = frozenset()
    # Read-only proxy, left out of the hash.
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        confidence = float(self.confidence)
        if confidence != confidence:  # NaN
            confidence = 0.0
        object.__setattr__(self, "confidence", min(1.0, max(0.0, confidence)))
        object.__setattr__(self, "tags", frozenset(self.tags))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "can_recover": self.can_recover,
            "tags": sorted(self.tags),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class CategoryProfile:
    """Fixed classification traits of one category."""

    severity: ErrorSeverity
    can_recover: bool
    tags: tuple[str, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict)


CATEGORY_PROFILES: dict[ErrorCategory, CategoryProfile] = {
    ErrorCategory.NETWORK: CategoryProfile(
        severity=ErrorSeverity.MEDIUM,
        can_recover=True,
        tags=("network", "connectivity"),
        metadata={"can_queue": True, "use_cache": True, "retry_count": 3}
    ),
    ErrorCategory.AUTHENTICATION: CategoryProfile(
        severity=ErrorSeverity.HIGH,
        can_recover=True,
        tags=("auth", "security"),
        metadata={"requires_reauth": True, "clear_tokens": True}
    ),
    ErrorCategory.VALIDATION: CategoryProfile(
        severity=ErrorSeverity.LOW,
        can_recover=True,
        tags=("validation", "user_input"),
        metadata={"show_hints": True, "highlight_field": True}
    ),
    ErrorCategory.MEMORY: CategoryProfile(
        severity=ErrorSeverity.CRITICAL,
        can_recover=False,
        tags=("memory", "performance"),
        metadata={"requires_restart": True, "clear_cache": True}
    ),
    ErrorCategory.STORAGE: CategoryProfile(
        severity=ErrorSeverity.MEDIUM,
        can_recover=False,
        tags=("storage",),
        metadata={"check_free_space": True}
    ),
    ErrorCategory.TIMEOUT: CategoryProfile(
        severity=ErrorSeverity.MEDIUM,
        can_recover=True,
        tags=("timeout",)
    ),
    ErrorCategory.PERMISSION: CategoryProfile(
        severity=ErrorSeverity.MEDIUM,
        can_recover=False,
        tags=("permission",),
        metadata={"request_permission": True}
    ),
    ErrorCategory.RATE_LIMIT: CategoryProfile(
        severity=ErrorSeverity.MEDIUM,
        can_recover=True,
        tags=("rate_limit",),
        metadata={"respect_retry_after": True}
    ),
    ErrorCategory.SECURITY: CategoryProfile(
        severity=ErrorSeverity.HIGH,
        can_recover=False,
        tags=("security",),
        metadata={"requires_reauth": True}
    ),
    ErrorCategory.UI: CategoryProfile(
        severity=ErrorSeverity.LOW,
        can_recover=True,
        tags=("ui",)
    ),
    ErrorCategory.DATA_CORRUPTION: CategoryProfile(
        severity=ErrorSeverity.HIGH,
        can_recover=False,
        tags=("data_corruption",),
        metadata={"discard_local_copy": True}
    ),
    ErrorCategory.GENERAL: CategoryProfile(
        severity=ErrorSeverity.MEDIUM,
        can_recover=False,
        tags=("general", "unknown"),
        metadata={"needs_investigation": True}
    ),
}

_missing = set(ErrorCategory) - set(CATEGORY_PROFILES)
if _missing:
    raise RuntimeError(f"No classification profile for: {sorted(c.value for c in _missing)}")


def build_classification(category: ErrorCategory, confidence: float) -> Classification:
    """Create the classification for a winning category."""
    profile = CATEGORY_PROFILES[category]
    severity = profile.severity
    # Memory errors are always critical.
    if category is ErrorCategory.MEMORY:
        severity = ErrorSeverity.CRITICAL
    return Classification(
        category=category,
        severity=severity,
        confidence=confidence,
        can_recover=profile.can_recover,
        tags=frozenset(profile.tags),
        metadata=profile.metadata
    )


def build_general_classification(confidence: float = 0.5) -> Classification:
    """Create the fallback classification for errors nothing matched."""
    profile = CATEGORY_PROFILES[ErrorCategory.GENERAL]
    return Classification(
        category=ErrorCategory.GENERAL,
        severity=profile.severity,
        confidence=confidence,
        can_recover=False,
        tags=frozenset(profile.tags),
        metadata=profile.metadata
    )
