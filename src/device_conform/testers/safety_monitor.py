"""SafetyMonitor tester."""
from ..engine.members import prop
from ..engine.outcome import Outcome, Severity
from ..engine.validators import is_bool
from ..probes.facades import SafetyMonitorFacade
from .base import DeviceTester

IS_SAFE = prop("IsSafe")


class SafetyMonitorTester(DeviceTester):
    device_type = "SafetyMonitor"

    has_pre_connect_check = True
    has_methods = False
    has_performance_check = True

    device: SafetyMonitorFacade

    def pre_connect_checks(self) -> None:
        """IsSafe must report False while the driver is disconnected."""
        if self.cancelled:
            self.orch.skip(IS_SAFE, "Test cancelled")
            return

        value, error = self.orch.read(lambda: self.device.is_safe)
        if error is not None:
            self.issue(
                "IsSafe",
                f"Cannot confirm that IsSafe is false before connection because it raised "
                f"{type(error).__name__}: {error}",
            )
        elif value is False:
            self.orch.record(Outcome("IsSafe", Severity.OK, "Reports false before connection"))
        else:
            self.issue("IsSafe", f"Reports {value} before connection rather than false")

    def check_properties(self) -> None:
        self.check(IS_SAFE, lambda: self.device.is_safe, is_bool)

    def check_performance(self) -> None:
        self.orch.measure("IsSafe", lambda: self.device.is_safe)
