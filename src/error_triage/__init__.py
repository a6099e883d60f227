"""
Error triage: classifies runtime failures and recommends how to recover.
"""
from .classification import (
    Classification,
    ErrorClassifier,
    PolicyEntry,
    RecoveryPlan,
    RecoveryPolicyResolver,
)
from .config import TriageConfig, load_config
from .engine import Outcome, TriageEngine
from .exceptions import TriageConfigError, TriageError
from .reporting import (
    LoggingObserver,
    UserNotice,
    build_crash_report,
    build_log_record,
    build_user_notice,
    log_level_for,
)
from .trends import SpikeSignal, TrendAnalyzer
from .types import (
    BaseObserver,
    ErrorCategory,
    ErrorEvent,
    ErrorSeverity,
    TriageObserver,
)


__all__ = [
    # Engine
    'TriageEngine',
    'Outcome',

    # Types
    'ErrorEvent',
    'ErrorCategory',
    'ErrorSeverity',
    'TriageObserver',
    'BaseObserver',

    # Classification and policy
    'ErrorClassifier',
    'Classification',
    'RecoveryPolicyResolver',
    'RecoveryPlan',
    'PolicyEntry',

    # Trends
    'TrendAnalyzer',
    'SpikeSignal',

    # Reporting
    'LoggingObserver',
    'UserNotice',
    'build_log_record',
    'build_crash_report',
    'build_user_notice',
    'log_level_for',

    # Configuration
    'TriageConfig',
    'load_config',

    # Exceptions
    'TriageError',
    'TriageConfigError'
]
