"""Device probe abstraction: the live handle to a driver under test."""
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_snake_case(name: str) -> str:
    """Translate a contract member name (``TempCompAvailable``) to ``temp_comp_available``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class DeviceProbe(ABC):
    """Abstract transport to one driver instance.

    Member names are the contract names (``CoverState``, ``Move``).
    Failures are raised as ``DriverError`` subclasses or code-tagged
    ``DriverError``; the probe never decides whether a failure is
    acceptable.
    """

    def __init__(self, device_type: str):
        self.device_type = device_type
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    @abstractmethod
    def description(self) -> str:
        """Human readable description of what is being probed."""
        pass

    def open(self) -> None:
        """Acquire the transport resources."""
        self._open = True

    def close(self) -> None:
        """Release the transport resources. Safe to call more than once."""
        self._open = False

    @abstractmethod
    def get(self, member: str) -> Any:
        """Read a property."""
        pass

    @abstractmethod
    def set(self, member: str, value: Any) -> None:
        """Write a property."""
        pass

    @abstractmethod
    def query(self, member: str, **params: Any) -> Any:
        """Call a method that only reads, such as ``SensorDescription``."""
        pass

    @abstractmethod
    def invoke(self, member: str, **params: Any) -> Any:
        """Call a method that acts on the device."""
        pass

    def __enter__(self) -> "DeviceProbe":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.description}>"
