"""
Base class for retry delay strategies.
"""
from abc import ABC, abstractmethod


class BaseStrategy(ABC):
    """Base class for retry delay strategies.

    Strategies only compute delays. Whether a retry happens at all is decided
    by the policy table, and the retry itself is run by the caller.
    """

    def __init__(self, max_delay: float = 60.0):
        self.max_delay = max_delay

    @abstractmethod
    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay before the next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name for logging."""
        pass

    def __repr__(self) -> str:
        return self.name
