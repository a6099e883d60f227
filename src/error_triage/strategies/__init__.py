"""
Delay strategies used by the recovery policy table.
"""
from .base import BaseStrategy
from .exponential import ExponentialBackoffStrategy
from .fixed import FixedDelayStrategy


__all__ = [
    'BaseStrategy',
    'ExponentialBackoffStrategy',
    'FixedDelayStrategy'
]
