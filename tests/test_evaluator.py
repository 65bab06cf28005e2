"""Tests for the requirement decision table."""
import pytest

from device_conform.engine.errors import ErrorKind, InvalidValueError, PropertyNotImplementedError
from device_conform.engine.evaluator import RequirementEvaluator
from device_conform.engine.members import Requirement, method, prop
from device_conform.engine.outcome import Severity


@pytest.fixture
def evaluator():
    return RequirementEvaluator()


class TestOnSuccess:
    """Tests for successful calls."""

    @pytest.mark.parametrize("requirement", [
        Requirement.MANDATORY,
        Requirement.OPTIONAL,
        Requirement.MUST_BE_IMPLEMENTED,
    ])
    def test_success_is_ok(self, evaluator, requirement):
        """Success is OK for every requirement except MustNotBeImplemented."""
        outcome = evaluator.on_success(prop("X", requirement), "42")
        assert outcome.severity is Severity.OK
        assert outcome.message == "42"

    def test_must_not_success_is_error(self, evaluator):
        """MustNotBeImplemented plus success is Error regardless of value."""
        outcome = evaluator.on_success(prop("MaxBrightness", Requirement.MUST_NOT_BE_IMPLEMENTED), "100")
        assert outcome.severity is Severity.ERROR
        assert "declared absent" in outcome.message


class TestOnNotImplemented:
    """Tests for not-implemented errors."""

    def test_optional_is_ok(self, evaluator):
        """Optional plus NotImplemented is OK, never Error."""
        outcome = evaluator.on_error(
            method("Halt", Requirement.OPTIONAL), ErrorKind.NOT_IMPLEMENTED, PropertyNotImplementedError()
        )
        assert outcome.severity is Severity.OK
        assert "acceptable" in outcome.message

    def test_mandatory_is_error(self, evaluator):
        """Mandatory plus NotImplemented is Error."""
        outcome = evaluator.on_error(prop("Name"), ErrorKind.NOT_IMPLEMENTED)
        assert outcome.severity is Severity.ERROR
        assert "must be implemented" in outcome.message

    def test_must_be_is_error(self, evaluator):
        """MustBeImplemented plus NotImplemented is Error."""
        outcome = evaluator.on_error(
            prop("Position", Requirement.MUST_BE_IMPLEMENTED), ErrorKind.NOT_IMPLEMENTED
        )
        assert outcome.severity is Severity.ERROR
        assert "declared present" in outcome.message

    def test_must_not_is_ok(self, evaluator):
        """MustNotBeImplemented plus NotImplemented is OK."""
        outcome = evaluator.on_error(
            prop("Position", Requirement.MUST_NOT_BE_IMPLEMENTED), ErrorKind.NOT_IMPLEMENTED
        )
        assert outcome.severity is Severity.OK


class TestOnOtherError:
    """Tests for every other error kind."""

    @pytest.mark.parametrize("requirement", list(Requirement))
    def test_other_errors_are_errors(self, evaluator, requirement):
        """Any other error is Error whatever the requirement."""
        outcome = evaluator.on_error(
            prop("X", requirement), ErrorKind.INVALID_VALUE, InvalidValueError("bad value")
        )
        assert outcome.severity is Severity.ERROR

    def test_unexpected_keeps_raw_text(self, evaluator):
        """Unexpected errors carry the raw error text."""
        outcome = evaluator.on_error(prop("Name"), ErrorKind.UNEXPECTED, RuntimeError("socket closed"))
        assert outcome.severity is Severity.ERROR
        assert "Unexpected RuntimeError" in outcome.message
        assert "socket closed" in outcome.message

    def test_context_prefix(self, evaluator):
        """Context is prefixed to the message."""
        outcome = evaluator.on_error(
            prop("AveragePeriod"), ErrorKind.INVALID_VALUE, InvalidValueError("no"), context="Set to 0.0"
        )
        assert outcome.message.startswith("Set to 0.0: ")
