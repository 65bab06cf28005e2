"""Test orchestrator: runs member checks and records one Outcome per member.

Every probe call made by a device tester goes through ``TestOrchestrator``.
It classifies errors, applies the requirement table, runs value validators
and forwards outcomes to the reporter, so probe errors never reach the
tester as exceptions.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from ..utils.logging_config import PerfStats
from .consistency import ConsistencyChecker
from .errors import ErrorClassifier, ErrorCodeTable, ErrorKind
from .evaluator import RequirementEvaluator
from .members import MemberSpec
from .outcome import ConformResults, LoggingReporter, Outcome, Reporter, Severity
from .performance import PerformanceProbe, ProbeStatus
from .retry import RetryPolicy, RetryStatus
from .validators import Validator
from .waiter import CompletionWaiter, StatusSink, WaitResult, WaitStatus

logger = logging.getLogger(__name__)

CheckSpec = Union[
    tuple[MemberSpec, Callable[[], Any]],
    tuple[MemberSpec, Callable[[], Any], Optional[Validator]],
]


@dataclass
class SessionContext:
    """Everything one device session shares; never shared between sessions."""
    classifier: ErrorClassifier
    evaluator: RequirementEvaluator
    cancel: threading.Event
    reporter: Reporter
    waiter: CompletionWaiter
    retry: RetryPolicy
    performance: PerformanceProbe
    stats: PerfStats = field(default_factory=PerfStats)
    operation_timeout: Optional[float] = None
    move_tolerance: int = 2
    display_method_calls: bool = False

    @classmethod
    def create(
        cls,
        cancel: Optional[threading.Event] = None,
        reporter: Optional[Reporter] = None,
        error_codes: Optional[ErrorCodeTable] = None,
        retry_max_attempts: int = 5,
        retry_delay: float = 1.0,
        performance_duration: float = 5.0,
        poll_interval: float = 0.2,
        operation_timeout: Optional[float] = None,
        move_tolerance: int = 2,
        display_method_calls: bool = False,
        status_sink: Optional[StatusSink] = None,
    ) -> "SessionContext":
        cancel = cancel or threading.Event()
        classifier = ErrorClassifier(error_codes)
        return cls(
            classifier=classifier,
            evaluator=RequirementEvaluator(),
            cancel=cancel,
            reporter=reporter or LoggingReporter(),
            waiter=CompletionWaiter(poll_interval, cancel, status_sink),
            retry=RetryPolicy(classifier, cancel, retry_max_attempts, retry_delay),
            performance=PerformanceProbe(performance_duration, cancel, status_sink),
            operation_timeout=operation_timeout,
            move_tolerance=move_tolerance,
            display_method_calls=display_method_calls,
        )

    @classmethod
    def from_config(
        cls,
        config,
        cancel: Optional[threading.Event] = None,
        reporter: Optional[Reporter] = None,
        status_sink: Optional[StatusSink] = None,
    ) -> "SessionContext":
        """Build a context from a ``SessionConfig``."""
        return cls.create(
            cancel=cancel,
            reporter=reporter,
            error_codes=ErrorCodeTable.from_dict(config.error_codes),
            retry_max_attempts=config.retry_max_attempts,
            retry_delay=config.retry_delay,
            performance_duration=config.performance_duration,
            poll_interval=config.poll_interval,
            operation_timeout=config.operation_timeout,
            move_tolerance=config.move_tolerance,
            display_method_calls=config.display_method_calls,
            status_sink=status_sink,
        )


@dataclass
class CheckResult:
    """What one check produced; the recorded Outcome plus the raw value."""
    outcome: Outcome
    value: Any = None
    succeeded: bool = False
    kind: Optional[ErrorKind] = None
    error: Optional[BaseException] = None
    skipped: bool = False

    @property
    def implemented(self) -> bool:
        """True when the driver showed the member exists, even if it failed."""
        if self.skipped:
            return False
        return self.succeeded or self.kind is not ErrorKind.NOT_IMPLEMENTED

    @property
    def ok(self) -> bool:
        """Succeeded and the recorded outcome is not a failure."""
        return self.succeeded and not self.outcome.is_failure


class TestOrchestrator:
    """Runs checks for one device session and owns its results."""

    # Not a pytest test class
    __test__ = False

    def __init__(self, context: SessionContext, results: Optional[ConformResults] = None):
        self.context = context
        self.results = results or ConformResults()
        self.consistency = ConsistencyChecker()

    @property
    def cancelled(self) -> bool:
        return self.context.cancel.is_set()

    def record(self, outcome: Outcome) -> Outcome:
        self.results.add(outcome)
        self.context.reporter.report(outcome)
        return outcome

    def skip(
        self,
        spec: Union[MemberSpec, str],
        reason: str,
        severity: Severity = Severity.INFO,
    ) -> CheckResult:
        name = spec.name if isinstance(spec, MemberSpec) else spec
        return CheckResult(self.record(Outcome(name, severity, reason)), skipped=True)

    def _cancelled_skip(self, spec: MemberSpec) -> CheckResult:
        self.results.cancelled = True
        return self.skip(spec, "Test cancelled")

    def _log_call(self, spec: MemberSpec, context: str) -> None:
        level = logging.INFO if self.context.display_method_calls else logging.DEBUG
        logger.log(level, f"Calling {spec.kind.value} {spec.name}{f' ({context})' if context else ''}")

    def check(
        self,
        spec: MemberSpec,
        call: Callable[[], Any],
        validate: Optional[Validator] = None,
        context: str = "",
    ) -> CheckResult:
        """Call a member once and record its Outcome."""
        if self.cancelled:
            return self._cancelled_skip(spec)

        self._log_call(spec, context)
        try:
            value = call()
        except Exception as e:
            return self._on_error(spec, e, self.context.classifier.classify(e, spec), context)
        return self._on_value(spec, value, validate, context)

    def check_with_retry(
        self,
        spec: MemberSpec,
        call: Callable[[], Any],
        validate: Optional[Validator] = None,
        context: str = "",
    ) -> CheckResult:
        """Like ``check`` but retries while the driver reports it is not ready."""
        if self.cancelled:
            return self._cancelled_skip(spec)

        self._log_call(spec, context)
        result = self.context.retry.run(call, spec)

        if result.status is RetryStatus.SUCCEEDED:
            return self._on_value(spec, result.value, validate, context)
        if result.status is RetryStatus.CANCELLED:
            return self._cancelled_skip(spec)
        if result.status is RetryStatus.PERSISTED:
            prefix = f"{context}: " if context else ""
            outcome = Outcome(
                spec.name, Severity.INFO,
                f"{prefix}Not ready after {result.attempts} attempts: {result.error}",
            )
            return CheckResult(
                self.record(outcome), kind=ErrorKind.INVALID_OPERATION, error=result.error
            )
        return self._on_error(spec, result.error, result.kind, context)

    def check_rejected(
        self,
        spec: MemberSpec,
        call: Callable[[], Any],
        context: str = "",
        expected: ErrorKind = ErrorKind.INVALID_VALUE,
        accepted_severity: Severity = Severity.ISSUE,
        accepted_message: str = "",
    ) -> CheckResult:
        """Call a member with a value the driver should refuse.

        The expected error kind is OK. Acceptance is recorded with
        ``accepted_severity``; any other error goes through the
        requirement table.
        """
        if self.cancelled:
            return self._cancelled_skip(spec)

        prefix = f"{context}: " if context else ""
        self._log_call(spec, context)
        try:
            value = call()
        except Exception as e:
            kind = self.context.classifier.classify(e, spec)
            if kind is expected:
                outcome = Outcome(
                    spec.name, Severity.OK, f"{prefix}{type(e).__name__} raised as expected"
                )
                return CheckResult(self.record(outcome), kind=kind, error=e)
            return self._on_error(spec, e, kind, context)

        message = accepted_message or f"No error raised, expected {expected.value}"
        outcome = Outcome(spec.name, accepted_severity, prefix + message)
        return CheckResult(self.record(outcome), value=value, succeeded=True)

    def read(self, call: Callable[[], Any]) -> tuple[Any, Optional[BaseException]]:
        """Call without recording an Outcome; the caller judges the result."""
        try:
            return call(), None
        except Exception as e:
            logger.debug(f"Unrecorded read raised {type(e).__name__}: {e}")
            return None, e

    def _on_error(
        self,
        spec: MemberSpec,
        error: BaseException,
        kind: ErrorKind,
        context: str,
    ) -> CheckResult:
        logger.debug(f"{spec.name} raised {type(error).__name__}: {error}")
        outcome = self.context.evaluator.on_error(spec, kind, error, context)
        return CheckResult(self.record(outcome), kind=kind, error=error)

    def _on_value(
        self,
        spec: MemberSpec,
        value: Any,
        validate: Optional[Validator],
        context: str,
    ) -> CheckResult:
        evaluator = self.context.evaluator
        prefix = f"{context}: " if context else ""

        if not evaluator.accepts_success(spec) or validate is None:
            text = "" if value is None else str(value)
            message = f"{prefix}{text}" if text else context
            outcome = evaluator.on_success(spec, message)
            return CheckResult(self.record(outcome), value=value, succeeded=True)

        try:
            severity, message = validate(value)
        except Exception as e:
            severity = Severity.ERROR
            message = f"Returned value {value!r} could not be validated: {e}"
        outcome = Outcome(spec.name, severity, prefix + message)
        return CheckResult(self.record(outcome), value=value, succeeded=True)

    def run(self, checks: Iterable[CheckSpec]) -> list[CheckResult]:
        """Run ``(spec, call[, validate])`` checks in order."""
        results = []
        for check in checks:
            spec, call = check[0], check[1]
            validate = check[2] if len(check) > 2 else None
            results.append(self.check(spec, call, validate))
        return results

    def wait_while(
        self,
        action: str,
        busy: Callable[[], bool],
        timeout: Optional[float] = None,
        status_text: Optional[Callable[[], str]] = None,
    ) -> WaitResult:
        if timeout is None:
            timeout = self.context.operation_timeout
        result = self.context.waiter.wait(busy, action, timeout, status_text)
        if result.status is WaitStatus.CANCELLED:
            self.results.cancelled = True
        return result

    def measure(self, name: str, operation: Callable[[], Any]) -> Outcome:
        """Run the performance probe for one member and record the rate."""
        result = self.context.performance.run(name, operation)
        if result.status is ProbeStatus.CANCELLED:
            self.results.cancelled = True
        elif result.status is ProbeStatus.COMPLETED:
            self.context.stats.record_rate(name, result.rate)
        return self.record(result.to_outcome())

    def evaluate_consistency(self) -> list[Outcome]:
        return [self.record(outcome) for outcome in self.consistency.evaluate_all()]
