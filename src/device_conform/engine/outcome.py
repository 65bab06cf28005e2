"""Check outcomes, severities and the reporter sink."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

results_logger = logging.getLogger("conform.results")


class Severity(Enum):
    """Severity of a single check result, lowest to highest."""
    OK = "OK"
    INFO = "INFO"
    WARNING = "WARNING"
    ISSUE = "ISSUE"
    ERROR = "ERROR"

    @property
    def log_level(self) -> int:
        return _LOG_LEVELS[self]


_LOG_LEVELS = {
    Severity.OK: logging.INFO,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ISSUE: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Outcome:
    """Result of one check against one member."""
    member: str
    severity: Severity
    message: str = ""

    @property
    def is_failure(self) -> bool:
        return self.severity in (Severity.ISSUE, Severity.ERROR)

    def to_dict(self) -> dict:
        return {
            "member": self.member,
            "severity": self.severity.value,
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"{self.member:30s} {self.severity.value:8s} {self.message}"


class Reporter(Protocol):
    """Receives every outcome as soon as it is recorded."""

    def report(self, outcome: Outcome) -> None:
        ...


class LoggingReporter:
    """Reporter that writes outcomes to the ``conform.results`` logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or results_logger

    def report(self, outcome: Outcome) -> None:
        self.logger.log(outcome.severity.log_level, str(outcome))


@dataclass
class ConformResults:
    """Outcomes of one device session plus issue and error tallies."""
    device_type: str = ""
    outcomes: list[Outcome] = field(default_factory=list)
    cancelled: bool = False
    abandoned_at: Optional[str] = None

    def add(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)

    @property
    def errors(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.severity is Severity.ERROR]

    @property
    def issues(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.severity is Severity.ISSUE]

    @property
    def warnings(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.severity is Severity.WARNING]

    @property
    def conformant(self) -> bool:
        """True when nothing failed and the run was not cancelled."""
        return not self.errors and not self.issues and not self.cancelled

    def count(self, severity: Severity) -> int:
        return sum(1 for o in self.outcomes if o.severity is severity)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "device_type": self.device_type,
            "conformant": self.conformant,
            "cancelled": self.cancelled,
            "abandoned_at": self.abandoned_at,
            "summary": {s.value: self.count(s) for s in Severity},
            "errors": [o.to_dict() for o in self.errors],
            "issues": [o.to_dict() for o in self.issues],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }

    def summary(self) -> str:
        if self.conformant:
            return "No errors, warnings or issues found: the driver passes conformance validation"

        error_count = len(self.errors)
        issue_count = len(self.issues)
        text = (
            f"The driver had {error_count} error{'' if error_count == 1 else 's'}"
            f" and {issue_count} issue{'' if issue_count == 1 else 's'}"
        )
        if self.cancelled:
            text += " (run cancelled before completion)"
        return text
