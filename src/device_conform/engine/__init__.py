"""Generic conformance-test engine shared by every device tester."""
from .consistency import ConsistencyChecker, SensorConsistencyRecord, check_all_or_nothing
from .errors import (
    ActionNotImplementedError,
    ConfigurationError,
    ConformError,
    DriverError,
    ErrorClassifier,
    ErrorCodeTable,
    ErrorKind,
    InvalidOperationError,
    InvalidValueError,
    MethodNotImplementedError,
    NotConnectedError,
    NotImplementedDriverError,
    ProbeCreationError,
    PropertyNotImplementedError,
)
from .evaluator import RequirementEvaluator
from .members import MemberKind, MemberSpec, Requirement, method, prop
from .orchestrator import CheckResult, SessionContext, TestOrchestrator
from .outcome import ConformResults, LoggingReporter, Outcome, Reporter, Severity
from .performance import PerformanceProbe, PerformanceResult, classify_rate, rate_band
from .retry import RetryPolicy, RetryResult, RetryStatus
from .waiter import CompletionWaiter, WaitResult, WaitStatus

__all__ = [
    "ActionNotImplementedError",
    "CheckResult",
    "CompletionWaiter",
    "ConfigurationError",
    "ConformError",
    "ConformResults",
    "ConsistencyChecker",
    "DriverError",
    "ErrorClassifier",
    "ErrorCodeTable",
    "ErrorKind",
    "InvalidOperationError",
    "InvalidValueError",
    "LoggingReporter",
    "MemberKind",
    "MemberSpec",
    "MethodNotImplementedError",
    "NotConnectedError",
    "NotImplementedDriverError",
    "Outcome",
    "PerformanceProbe",
    "PerformanceResult",
    "ProbeCreationError",
    "PropertyNotImplementedError",
    "Reporter",
    "Requirement",
    "RequirementEvaluator",
    "RetryPolicy",
    "RetryResult",
    "RetryStatus",
    "SensorConsistencyRecord",
    "SessionContext",
    "Severity",
    "TestOrchestrator",
    "WaitResult",
    "WaitStatus",
    "check_all_or_nothing",
    "classify_rate",
    "rate_band",
    "method",
    "prop",
]
