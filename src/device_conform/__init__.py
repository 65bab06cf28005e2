"""device-conform - conformance checker for astronomy device drivers.

Drives a device through a fixed sequence of stages, calls every member
of its interface and classifies each result as OK, Info, Warning, Issue
or Error depending on whether the member is mandatory, optional or
conditionally required by the device's capabilities.
"""
from .config import DEVICE_TYPES, SessionConfig
from .engine import ConformError, ConformResults, Outcome, Severity
from .manager import ConformanceTestManager

__version__ = "0.1.0"

__all__ = [
    "DEVICE_TYPES",
    "ConformError",
    "ConformResults",
    "ConformanceTestManager",
    "Outcome",
    "SessionConfig",
    "Severity",
    "__version__",
]
