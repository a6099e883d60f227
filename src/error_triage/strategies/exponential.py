"""
Exponential backoff delay strategy.
"""
from .base import BaseStrategy


class ExponentialBackoffStrategy(BaseStrategy):
    """
    Exponential backoff strategy.

    Delay increases exponentially with each attempt:
    delay = min(initial_delay * (backoff_factor ** attempt), max_delay)

    There is no jitter: the delay is part of the recovery decision and has to
    be reproducible for identical inputs.
    """

    def __init__(
        self,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 60.0
    ):
        if initial_delay < 0 or max_delay < 0:
            raise ValueError("delays must be non-negative")
        if backoff_factor < 1.0:
            raise ValueError(f"backoff_factor must be >= 1.0, got {backoff_factor}")
        super().__init__(max_delay)
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor

    def calculate_delay(self, attempt: int) -> float:
        """Calculate exponentially increasing delay, capped at max_delay."""
        attempt = max(0, attempt)
        try:
            delay = self.initial_delay * (self.backoff_factor ** attempt)
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)

    @property
    def name(self) -> str:
        return (
            f"ExponentialBackoff(initial={self.initial_delay}, "
            f"factor={self.backoff_factor}, max={self.max_delay})"
        )
