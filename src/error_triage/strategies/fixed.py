"""
Fixed delay strategy.
"""
from .base import BaseStrategy


class FixedDelayStrategy(BaseStrategy):
    """
    Fixed delay strategy.

    Same delay between all retry attempts.
    """

    def __init__(self, delay: float = 1.0):
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        super().__init__(delay)
        self.delay = delay

    def calculate_delay(self, attempt: int) -> float:
        """Return fixed delay regardless of attempt number."""
        return self.delay

    @property
    def name(self) -> str:
        return f"FixedDelay(delay={self.delay})"
