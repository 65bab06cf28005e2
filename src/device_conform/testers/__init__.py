"""Per-device testers."""
from ..engine.errors import ConfigurationError
from ..engine.orchestrator import TestOrchestrator
from ..probes.facades import DeviceFacade
from .base import DeviceTester
from .cover_calibrator import CoverCalibratorTester
from .focuser import FocuserTester
from .observing_conditions import ObservingConditionsTester
from .safety_monitor import SafetyMonitorTester

__all__ = [
    "CoverCalibratorTester",
    "DeviceTester",
    "FocuserTester",
    "ObservingConditionsTester",
    "SafetyMonitorTester",
    "create_tester",
]

# Tester registry, keyed by device type
DEVICE_TESTERS = {
    "SafetyMonitor": SafetyMonitorTester,
    "CoverCalibrator": CoverCalibratorTester,
    "Focuser": FocuserTester,
    "ObservingConditions": ObservingConditionsTester,
}


def create_tester(device_type: str, device: DeviceFacade, orchestrator: TestOrchestrator) -> DeviceTester:
    """Factory function to create tester instances."""
    if device_type not in DEVICE_TESTERS:
        raise ConfigurationError(f"Unknown device type: {device_type}")
    return DEVICE_TESTERS[device_type](device, orchestrator)
