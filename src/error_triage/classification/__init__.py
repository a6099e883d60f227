"""Error classification and recovery policy."""
from .categories import (
    CATEGORY_PROFILES,
    CategoryProfile,
    Classification,
)
from .classifier import CLASSIFICATION_PRIORITY, ErrorClassifier
from .policy import DEFAULT_POLICIES, PolicyEntry, RecoveryPlan, RecoveryPolicyResolver
from .signals import DEFAULT_SIGNALS, CategorySignals, ContextRule

__all__ = [
    "ErrorClassifier",
    "Classification",
    "CategoryProfile",
    "CATEGORY_PROFILES",
    "CLASSIFICATION_PRIORITY",
    "CategorySignals",
    "ContextRule",
    "DEFAULT_SIGNALS",
    "RecoveryPolicyResolver",
    "RecoveryPlan",
    "PolicyEntry",
    "DEFAULT_POLICIES",
]
