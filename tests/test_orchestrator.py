"""Tests for the test orchestrator and session context."""
import pytest

from device_conform.config import SessionConfig
from device_conform.engine.errors import (
    ErrorKind,
    InvalidOperationError,
    InvalidValueError,
    MethodNotImplementedError,
    PropertyNotImplementedError,
)
from device_conform.engine.members import Requirement, method, prop
from device_conform.engine.orchestrator import SessionContext, TestOrchestrator
from device_conform.engine.outcome import ConformResults, Outcome, Severity
from device_conform.engine.validators import in_range
from device_conform.engine.waiter import WaitStatus


def raise_(error):
    def call():
        raise error
    return call


class TestCheck:
    """Tests for single checks."""

    def test_success_records_value(self, orch, reporter):
        """A successful read is OK and carries the value."""
        result = orch.check(prop("Name"), lambda: "Focuser")
        assert result.succeeded
        assert result.value == "Focuser"
        assert result.outcome.severity is Severity.OK
        assert result.outcome.message == "Focuser"
        assert reporter.outcomes == [result.outcome]
        assert orch.results.outcomes == [result.outcome]

    def test_validator_applied(self, orch):
        """The validator decides the severity of a successful read."""
        result = orch.check(prop("Temperature"), lambda: 80.0, in_range(-50, 50, Severity.ISSUE))
        assert result.succeeded
        assert not result.ok
        assert result.outcome.severity is Severity.ISSUE

    def test_validator_skipped_for_must_not(self, orch):
        """MustNotBeImplemented success is Error even with a valid value."""
        spec = prop("MaxBrightness", Requirement.MUST_NOT_BE_IMPLEMENTED)
        result = orch.check(spec, lambda: 10, in_range(0, 100))
        assert result.outcome.severity is Severity.ERROR

    def test_validator_error(self, orch):
        """A validator that cannot handle the value gives an Error."""
        result = orch.check(prop("MaxStep"), lambda: "lots", in_range(0, 100))
        assert result.outcome.severity is Severity.ERROR
        assert "could not be validated" in result.outcome.message

    def test_optional_not_implemented(self, orch):
        """Optional member raising not implemented is OK."""
        result = orch.check(method("Halt", Requirement.OPTIONAL), raise_(MethodNotImplementedError()))
        assert result.outcome.severity is Severity.OK
        assert result.kind is ErrorKind.NOT_IMPLEMENTED
        assert not result.implemented

    def test_mandatory_not_implemented(self, orch):
        """Mandatory member raising not implemented is Error."""
        result = orch.check(prop("Name"), raise_(PropertyNotImplementedError()))
        assert result.outcome.severity is Severity.ERROR
        assert not result.succeeded

    def test_unexpected_error_does_not_escape(self, orch):
        """An unexpected error is one Error outcome with the raw text."""
        result = orch.check(prop("Description"), raise_(RuntimeError("wire fault")))
        assert result.outcome.severity is Severity.ERROR
        assert "wire fault" in result.outcome.message
        assert result.implemented
        assert len(orch.results.outcomes) == 1

    def test_context_prefix(self, orch):
        """Context prefixes the success message."""
        result = orch.check(method("Move"), lambda: None, context="Move to 10")
        assert result.outcome.message == "Move to 10"

    def test_cancelled_skip(self, orch, cancel):
        """Once cancelled, checks are recorded as Info skips without calling."""
        cancel.set()
        calls = []
        result = orch.check(prop("Name"), lambda: calls.append(1))
        assert result.skipped
        assert result.outcome.severity is Severity.INFO
        assert calls == []
        assert orch.results.cancelled


class TestCheckWithRetry:
    """Tests for checks under the retry policy."""

    def test_recovers(self, orch):
        """Not-ready errors are retried until the value arrives."""
        calls = {"count": 0}

        def read():
            calls["count"] += 1
            if calls["count"] < 3:
                raise InvalidOperationError("warming up")
            return 55.0

        result = orch.check_with_retry(prop("Humidity", Requirement.OPTIONAL), read, in_range(0, 100))
        assert result.outcome.severity is Severity.OK
        assert result.value == 55.0

    def test_persisted_is_info(self, orch):
        """Exhausted retries are Info, not Error."""
        result = orch.check_with_retry(prop("Humidity"), raise_(InvalidOperationError("never ready")))
        assert result.outcome.severity is Severity.INFO
        assert "Not ready after 3 attempts" in result.outcome.message
        assert result.kind is ErrorKind.INVALID_OPERATION

    def test_other_error_through_table(self, orch):
        """Non-transient errors go straight to the requirement table."""
        result = orch.check_with_retry(
            prop("RainRate", Requirement.OPTIONAL), raise_(PropertyNotImplementedError())
        )
        assert result.outcome.severity is Severity.OK
        assert result.kind is ErrorKind.NOT_IMPLEMENTED


class TestCheckRejected:
    """Tests for invalid-value checks."""

    def test_expected_rejection_ok(self, orch):
        """The expected error kind is OK."""
        result = orch.check_rejected(prop("AveragePeriod Write"), raise_(InvalidValueError("negative")))
        assert result.outcome.severity is Severity.OK

    def test_acceptance_uses_given_severity(self, orch):
        """Accepting the bad value is reported with the given severity."""
        result = orch.check_rejected(prop("AveragePeriod Write"), lambda: None, context="Set to -2.0")
        assert result.outcome.severity is Severity.ISSUE
        assert result.outcome.message.startswith("Set to -2.0: ")

        result = orch.check_rejected(
            prop("AveragePeriod Write"), lambda: None,
            accepted_severity=Severity.OK, accepted_message="Accepted",
        )
        assert result.outcome.severity is Severity.OK
        assert result.outcome.message == "Accepted"

    def test_other_error_is_error(self, orch):
        """A different error kind goes through the table."""
        result = orch.check_rejected(method("CalibratorOn"), raise_(RuntimeError("crash")))
        assert result.outcome.severity is Severity.ERROR


class TestOrchestratorHelpers:
    """Tests for run, read, skip, wait_while and measure."""

    def test_run_sequence(self, orch, cancel):
        """Checks run in order; after cancellation the rest are skipped."""
        def cancel_now():
            cancel.set()
            return True

        results = orch.run([
            (prop("A"), lambda: 1),
            (prop("B"), cancel_now),
            (prop("C"), lambda: 3, in_range(0, 5)),
        ])
        assert [r.outcome.member for r in results] == ["A", "B", "C"]
        assert results[2].skipped
        assert results[2].outcome.severity is Severity.INFO

    def test_read_records_nothing(self, orch):
        """read returns value or error without an outcome."""
        assert orch.read(lambda: 5) == (5, None)
        value, error = orch.read(raise_(RuntimeError("x")))
        assert value is None
        assert isinstance(error, RuntimeError)
        assert orch.results.outcomes == []

    def test_skip_by_name(self, orch):
        """Skips accept a plain name and severity."""
        result = orch.skip("Move", "Skipped", Severity.ISSUE)
        assert result.outcome == Outcome("Move", Severity.ISSUE, "Skipped")
        assert not result.implemented

    def test_wait_while_default_timeout(self, context, orch):
        """wait_while falls back to the operation timeout."""
        context.operation_timeout = 0.02
        result = orch.wait_while("Move", lambda: True)
        assert result.status is WaitStatus.TIMED_OUT

    def test_wait_while_cancel_marks_results(self, orch, cancel):
        """A cancelled wait marks the session cancelled."""
        cancel.set()
        result = orch.wait_while("Move", lambda: True)
        assert result.status is WaitStatus.CANCELLED
        assert orch.results.cancelled

    def test_measure_records_rate(self, context, orch):
        """measure records an outcome and the rate in the session stats."""
        outcome = orch.measure("Position", lambda: 1)
        assert outcome.member == "Position"
        assert "Position" in context.stats.rates

    def test_evaluate_consistency(self, orch):
        """Consistency outcomes are recorded."""
        orch.consistency.record("Pressure", "value", True)
        outcomes = orch.evaluate_consistency()
        assert outcomes[0].severity is Severity.ISSUE
        assert orch.results.outcomes == outcomes


class TestEndToEnd:
    """A mandatory member failing unexpectedly does not stop the session."""

    def test_unexpected_error_then_continue(self, orch):
        """One Error with the raw text, then later checks still run."""
        orch.check(prop("DriverInfo"), raise_(RuntimeError("driver exploded")))
        orch.check(prop("Name"), lambda: "Still alive")

        outcomes = orch.results.outcomes
        assert len(outcomes) == 2
        assert outcomes[0].severity is Severity.ERROR
        assert "driver exploded" in outcomes[0].message
        assert outcomes[1].severity is Severity.OK
        assert len(orch.results.errors) == 1


class TestSessionContext:
    """Tests for building the per-session context."""

    def test_from_config(self):
        """Config settings flow into the engine services."""
        config = SessionConfig(
            device_type="Focuser",
            retry_max_attempts=7,
            retry_delay=0.5,
            poll_interval=0.1,
            move_tolerance=5,
            error_codes={"not_connected": [0x999]},
        )
        context = SessionContext.from_config(config)
        assert context.retry.max_attempts == 7
        assert context.retry.delay == 0.5
        assert context.waiter.poll_interval == 0.1
        assert context.move_tolerance == 5
        assert context.classifier.codes.lookup(0x999) is ErrorKind.NOT_CONNECTED

    def test_sessions_do_not_share_state(self):
        """Two contexts have separate cancel events and results."""
        first = SessionContext.create()
        second = SessionContext.create()
        first.cancel.set()
        assert not second.cancel.is_set()
        assert TestOrchestrator(first).results is not TestOrchestrator(second).results

    def test_explicit_results(self):
        """An orchestrator can be handed its results collector."""
        results = ConformResults("Focuser")
        assert TestOrchestrator(SessionContext.create(), results).results is results

    def test_invalid_poll_interval(self):
        """Bad engine settings are rejected."""
        with pytest.raises(ValueError):
            SessionContext.create(poll_interval=0)
