"""Requirement evaluation: requirement policy x call result -> Outcome."""
from typing import Optional

from .errors import ErrorKind, describe_error
from .members import MemberSpec, Requirement
from .outcome import Outcome, Severity


class RequirementEvaluator:
    """Single decision table shared by every device tester.

    | requirement          | success | NotImplemented | other error |
    |----------------------|---------|----------------|-------------|
    | Mandatory            | OK      | Error          | Error       |
    | Optional             | OK      | OK             | Error       |
    | MustBeImplemented    | OK      | Error          | Error       |
    | MustNotBeImplemented | Error   | OK             | Error       |
    """

    def accepts_success(self, spec: MemberSpec) -> bool:
        return spec.requirement is not Requirement.MUST_NOT_BE_IMPLEMENTED

    def on_success(self, spec: MemberSpec, message: str = "") -> Outcome:
        if not self.accepts_success(spec):
            text = "Capability declared absent but the member is implemented"
            if message:
                text = f"{message}: {text}"
            return Outcome(spec.name, Severity.ERROR, text)
        return Outcome(spec.name, Severity.OK, message)

    def on_error(
        self,
        spec: MemberSpec,
        kind: ErrorKind,
        error: Optional[BaseException] = None,
        context: str = "",
    ) -> Outcome:
        error_name = describe_error(error) if error is not None else kind.value
        prefix = f"{context}: " if context else ""

        if kind is ErrorKind.NOT_IMPLEMENTED:
            return self._on_not_implemented(spec, error_name, prefix)

        raw = str(error) if error is not None else ""
        detail = f": {raw}" if raw else ""
        if kind is ErrorKind.UNEXPECTED:
            text = f"{prefix}Unexpected {error_name}{detail}"
        else:
            text = f"{prefix}{error_name} was raised{detail}"
        return Outcome(spec.name, Severity.ERROR, text)

    def _on_not_implemented(self, spec: MemberSpec, error_name: str, prefix: str) -> Outcome:
        requirement = spec.requirement
        if requirement is Requirement.OPTIONAL:
            return Outcome(
                spec.name, Severity.OK,
                f"{prefix}Optional member raised {error_name}, not implemented is acceptable",
            )
        if requirement is Requirement.MUST_NOT_BE_IMPLEMENTED:
            return Outcome(
                spec.name, Severity.OK,
                f"{prefix}{error_name} raised as expected, capability declared absent",
            )
        if requirement is Requirement.MUST_BE_IMPLEMENTED:
            return Outcome(
                spec.name, Severity.ERROR,
                f"{prefix}Capability declared present but not implemented ({error_name})",
            )
        return Outcome(
            spec.name, Severity.ERROR,
            f"{prefix}Mandatory member raised {error_name}, it must be implemented",
        )
