"""Value validators applied to members that returned successfully.

A validator takes the returned value and gives back a ``(Severity, message)``
verdict. The orchestrator turns that verdict into the member's Outcome.
"""
from collections.abc import Iterable
from typing import Any, Callable

from .outcome import Severity

Verdict = tuple[Severity, str]
Validator = Callable[[Any], Verdict]


def in_range(
    low: float,
    high: float,
    severity: Severity = Severity.ERROR,
    unit: str = "",
) -> Validator:
    """Value must lie within ``low..high`` inclusive."""
    suffix = f" {unit}" if unit else ""

    def validate(value: Any) -> Verdict:
        if low <= value <= high:
            return Severity.OK, f"{value}{suffix}"
        return severity, f"Invalid value: {value}{suffix}, expected between {low} and {high}{suffix}"

    return validate


def at_least(low: float, severity: Severity = Severity.ERROR) -> Validator:
    def validate(value: Any) -> Verdict:
        if value >= low:
            return Severity.OK, str(value)
        return severity, f"Invalid value: {value}, expected {low} or more"

    return validate


def greater_than(low: float, severity: Severity = Severity.ERROR) -> Validator:
    def validate(value: Any) -> Verdict:
        if value > low:
            return Severity.OK, str(value)
        return severity, f"Invalid value: {value}, expected more than {low}"

    return validate


def equals(expected: Any, severity: Severity = Severity.ERROR, reason: str = "") -> Validator:
    def validate(value: Any) -> Verdict:
        if value == expected:
            return Severity.OK, str(value)
        text = f"Returned {value}, expected {expected}"
        return severity, f"{text}: {reason}" if reason else text

    return validate


def non_empty_string(severity: Severity = Severity.ERROR) -> Validator:
    def validate(value: Any) -> Verdict:
        if not isinstance(value, str):
            return severity, f"Expected a string, got {type(value).__name__}"
        if not value.strip():
            return Severity.INFO, "No string returned"
        first_line = value.strip().splitlines()[0]
        return Severity.OK, first_line[:120]

    return validate


def is_bool(value: Any) -> Verdict:
    if isinstance(value, bool):
        return Severity.OK, str(value)
    return Severity.ERROR, f"Expected a boolean, got {type(value).__name__}: {value!r}"


def string_list(value: Any) -> Verdict:
    """Every entry must be a non-empty string; an empty list is fine."""
    if isinstance(value, str) or not isinstance(value, Iterable):
        return Severity.ERROR, f"Expected a list of strings, got {type(value).__name__}"
    items = list(value)
    for item in items:
        if not isinstance(item, str):
            return Severity.ERROR, f"Entry {item!r} is not a string"
        if not item.strip():
            return Severity.ERROR, "Supported actions contains an empty string"
    if not items:
        return Severity.OK, "Driver returned an empty action list"
    return Severity.OK, ", ".join(items)
