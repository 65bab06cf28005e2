"""Driver error types and the table-driven error classifier.

Drivers signal the same logical condition in different ways: a typed
exception from an in-process driver, an Alpaca ``ErrorNumber`` or a COM
HRESULT. The classifier folds all of these into one ``ErrorKind`` using a
per-session code table, so device testers never branch on raw codes.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .members import MemberSpec

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    NOT_IMPLEMENTED = "not_implemented"
    INVALID_VALUE = "invalid_value"
    INVALID_OPERATION = "invalid_operation"
    NOT_CONNECTED = "not_connected"
    UNEXPECTED = "unexpected"


# Alpaca error numbers
ALPACA_NOT_IMPLEMENTED = 0x400
ALPACA_INVALID_VALUE = 0x401
ALPACA_VALUE_NOT_SET = 0x402
ALPACA_NOT_CONNECTED = 0x407
ALPACA_INVALID_OPERATION = 0x40B
ALPACA_ACTION_NOT_IMPLEMENTED = 0x40C

# COM HRESULTs used by Windows drivers for the same conditions
COM_NOT_IMPLEMENTED = 0x80040400
COM_INVALID_VALUE = 0x80040401
COM_INVALID_VALUE_LEGACY = 0x80040405
COM_NOT_CONNECTED = 0x80040407
COM_INVALID_OPERATION = 0x8004040B


class ConformError(Exception):
    """Base error for failures of the checker itself, not of the driver."""


class ConfigurationError(ConformError):
    """Session configuration is missing or invalid."""


class ProbeCreationError(ConformError):
    """The driver could not be instantiated or reached."""


class DriverError(Exception):
    """Error raised through a device probe.

    ``code`` carries the device-supplied number when the transport has one
    (Alpaca ``ErrorNumber``, COM HRESULT); typed subclasses are used when
    the driver already says what went wrong.
    """

    def __init__(self, message: str = "", code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (0x{self.code:X})"


class NotImplementedDriverError(DriverError):
    """Member is not implemented by the driver."""


class PropertyNotImplementedError(NotImplementedDriverError):
    pass


class MethodNotImplementedError(NotImplementedDriverError):
    pass


class ActionNotImplementedError(NotImplementedDriverError):
    pass


class InvalidValueError(DriverError):
    pass


class InvalidOperationError(DriverError):
    """Operation is not possible right now, e.g. a sensor is not ready."""


class NotConnectedError(DriverError):
    pass


def not_implemented_for(spec: MemberSpec, message: str = "") -> NotImplementedDriverError:
    """Build the not-implemented error flavour matching a member kind."""
    if spec.is_property:
        return PropertyNotImplementedError(message or f"Property {spec.name} is not implemented")
    return MethodNotImplementedError(message or f"Method {spec.name} is not implemented")


def _codes(*values: int) -> set[int]:
    return set(values)


@dataclass
class ErrorCodeTable:
    """Numeric codes that identify each error kind for one session."""
    not_implemented: set[int] = field(
        default_factory=lambda: _codes(
            ALPACA_NOT_IMPLEMENTED, ALPACA_ACTION_NOT_IMPLEMENTED, COM_NOT_IMPLEMENTED
        )
    )
    invalid_value: set[int] = field(
        default_factory=lambda: _codes(
            ALPACA_INVALID_VALUE, COM_INVALID_VALUE, COM_INVALID_VALUE_LEGACY
        )
    )
    invalid_operation: set[int] = field(
        default_factory=lambda: _codes(ALPACA_INVALID_OPERATION, COM_INVALID_OPERATION)
    )
    not_connected: set[int] = field(
        default_factory=lambda: _codes(ALPACA_NOT_CONNECTED, COM_NOT_CONNECTED)
    )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ErrorCodeTable":
        """Build a table whose codes are added to the defaults.

        Keys are the error kind names (``not_implemented``, ``invalid_value``,
        ``invalid_operation``, ``not_connected``); values are lists of ints
        or hex strings.
        """
        table = cls()
        for key, values in (data or {}).items():
            if not hasattr(table, key):
                raise ValueError(f"Unknown error kind in code table: {key}")
            getattr(table, key).update(_parse_code(v) for v in _as_list(values))
        return table

    def lookup(self, code: int) -> Optional[ErrorKind]:
        if code in self.not_implemented:
            return ErrorKind.NOT_IMPLEMENTED
        if code in self.invalid_value:
            return ErrorKind.INVALID_VALUE
        if code in self.invalid_operation:
            return ErrorKind.INVALID_OPERATION
        if code in self.not_connected:
            return ErrorKind.NOT_CONNECTED
        return None

    def to_dict(self) -> dict:
        return {
            "not_implemented": sorted(self.not_implemented),
            "invalid_value": sorted(self.invalid_value),
            "invalid_operation": sorted(self.invalid_operation),
            "not_connected": sorted(self.not_connected),
        }


def _as_list(values) -> Iterable:
    if isinstance(values, (list, tuple, set)):
        return values
    return [values]


def _parse_code(value) -> int:
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


_TYPED_KINDS = (
    (NotImplementedDriverError, ErrorKind.NOT_IMPLEMENTED),
    (NotImplementedError, ErrorKind.NOT_IMPLEMENTED),
    (InvalidValueError, ErrorKind.INVALID_VALUE),
    (InvalidOperationError, ErrorKind.INVALID_OPERATION),
    (NotConnectedError, ErrorKind.NOT_CONNECTED),
)


class ErrorClassifier:
    """Maps an error raised by a probe call onto an ``ErrorKind``."""

    def __init__(self, codes: Optional[ErrorCodeTable] = None):
        self.codes = codes or ErrorCodeTable()

    def classify(self, error: BaseException, spec: Optional[MemberSpec] = None) -> ErrorKind:
        for error_type, kind in _TYPED_KINDS:
            if isinstance(error, error_type):
                if kind is ErrorKind.NOT_IMPLEMENTED and spec is not None:
                    self._check_flavour(error, spec)
                return kind

        code = getattr(error, "code", None)
        if isinstance(code, int):
            kind = self.codes.lookup(code)
            if kind is not None:
                return kind

        return ErrorKind.UNEXPECTED

    def _check_flavour(self, error: BaseException, spec: MemberSpec) -> None:
        if spec.is_property and isinstance(error, MethodNotImplementedError):
            logger.warning(
                f"{spec.name}: received MethodNotImplementedError from a property, "
                f"expected PropertyNotImplementedError"
            )
        elif not spec.is_property and isinstance(error, PropertyNotImplementedError):
            logger.warning(
                f"{spec.name}: received PropertyNotImplementedError from a method, "
                f"expected MethodNotImplementedError"
            )


def describe_error(error: BaseException) -> str:
    """Short name for an error, including its code when there is one."""
    code = getattr(error, "code", None)
    name = type(error).__name__
    if isinstance(code, int):
        return f"{name}(0x{code:X})"
    return name
