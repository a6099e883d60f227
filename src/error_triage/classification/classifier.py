"""Main error classifier implementation."""
import logging
from typing import Mapping, Optional

from ..exceptions import TriageConfigError
from ..types import ErrorCategory, ErrorEvent
from .categories import Classification, build_classification, build_general_classification
from .signals import DEFAULT_SIGNALS, CategorySignals, score_event

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_FLOOR = 0.3
DEFAULT_FALLBACK_CONFIDENCE = 0.5

# Exact ties go to the earlier category. Ordered by operational severity.
CLASSIFICATION_PRIORITY: tuple[ErrorCategory, ...] = (
    ErrorCategory.SECURITY,
    ErrorCategory.MEMORY,
    ErrorCategory.AUTHENTICATION,
    ErrorCategory.DATA_CORRUPTION,
    ErrorCategory.PERMISSION,
    ErrorCategory.RATE_LIMIT,
    ErrorCategory.TIMEOUT,
    ErrorCategory.STORAGE,
    ErrorCategory.NETWORK,
    ErrorCategory.VALIDATION,
    ErrorCategory.UI,
    ErrorCategory.GENERAL,
)


class ErrorClassifier:
    """Classifies error events by scoring every category's signals."""

    def __init__(
        self,
        signals: Optional[Mapping[ErrorCategory, CategorySignals]] = None,
        confidence_floor: float = DEFAULT_CONFIDENCE_FLOOR,
        fallback_confidence: float = DEFAULT_FALLBACK_CONFIDENCE
    ):
        """Initialize classifier with signal tables and thresholds.

        Args:
            signals: Per-category signal tables; categories left out keep the defaults
            confidence_floor: Minimum winning score to trust a category (0.0-1.0)
            fallback_confidence: Confidence reported for the general fallback (0.0-1.0)

        """
        if not 0.0 <= confidence_floor <= 1.0:
            raise TriageConfigError(
                f"confidence_floor must be within [0, 1], got {confidence_floor}",
                "confidence_floor"
            )
        if not 0.0 <= fallback_confidence <= 1.0:
            raise TriageConfigError(
                f"fallback_confidence must be within [0, 1], got {fallback_confidence}",
                "fallback_confidence"
            )

        self.signals: dict[ErrorCategory, CategorySignals] = DEFAULT_SIGNALS.copy()
        if signals:
            self.signals.update(signals)
        self.confidence_floor = confidence_floor
        self.fallback_confidence = fallback_confidence

    def score_all(self, event: ErrorEvent) -> dict[ErrorCategory, float]:
        """Return the raw score of every category for an event."""
        return score_event(event, self.signals)

    def classify(self, event: ErrorEvent) -> Classification:
        """Classify an error event.

        Never raises. Anything unexpected while scoring is logged and the
        event falls back to the general classification.

        Args:
            event: The error event to classify

        Returns:
            Classification with category, severity, confidence, etc.

        """
        try:
            scores = self.score_all(event)
            category, best_score = self._pick_best(scores)
        except Exception:
            logger.exception("Error scoring failed, falling back to general classification")
            return build_general_classification(self.fallback_confidence)

        if (
            category is ErrorCategory.GENERAL
            or best_score <= 0.0
            or best_score < self.confidence_floor
        ):
            classification = build_general_classification(self.fallback_confidence)
        else:
            classification = build_classification(category, best_score)

        logger.debug(
            f"Classified error as {classification.category.value} "
            f"with confidence {classification.confidence:.2f} "
            f"(best raw score {best_score:.2f} for {category.value})"
        )

        return classification

    @staticmethod
    def _pick_best(scores: Mapping[ErrorCategory, float]) -> tuple[ErrorCategory, float]:
        """Pick the highest score, breaking exact ties by priority."""
        best_category = ErrorCategory.GENERAL
        best_score = -1.0
        for category in CLASSIFICATION_PRIORITY:
            value = scores.get(category, 0.0)
            if value > best_score:
                best_category, best_score = category, value
        return best_category, max(0.0, best_score)
