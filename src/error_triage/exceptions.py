"""
Exceptions for the triage engine.

The classification path itself never raises; these are reserved for
configuration and construction mistakes.
"""
from typing import Optional


class TriageError(Exception):
    """Base exception for the triage engine."""


class TriageConfigError(TriageError):
    """Raised when engine configuration is invalid."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(message)
        self.field_name = field_name
