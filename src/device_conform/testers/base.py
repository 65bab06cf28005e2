"""Device tester base class and the checks common to every device type."""
import logging
from typing import Any, Callable

from ..engine.members import MemberSpec, Requirement, method, prop
from ..engine.orchestrator import CheckResult, TestOrchestrator
from ..engine.outcome import Outcome, Severity
from ..engine.validators import at_least, is_bool, non_empty_string, string_list
from ..probes.facades import DeviceFacade

logger = logging.getLogger(__name__)

INTERFACE_VERSION = prop("InterfaceVersion")
CONNECTED = prop("Connected")
DESCRIPTION = prop("Description")
DRIVER_INFO = prop("DriverInfo")
DRIVER_VERSION = prop("DriverVersion")
NAME = prop("Name")
ACTION = method("Action", Requirement.OPTIONAL)
SUPPORTED_ACTIONS = prop("SupportedActions")


class DeviceTester:
    """Base class for per-device testers.

    The session manager calls the stage methods in a fixed order and
    skips the stages whose ``has_*`` flag is False. Subclasses only
    enumerate members; every call goes through the orchestrator.
    """

    device_type = ""

    has_pre_connect_check = False
    has_can_properties = False
    has_pre_run_check = False
    has_properties = True
    has_methods = True
    has_performance_check = False
    has_post_run_check = False

    def __init__(self, device: DeviceFacade, orchestrator: TestOrchestrator):
        self.device = device
        self.orch = orchestrator
        self.interface_version = 0

    @property
    def cancelled(self) -> bool:
        return self.orch.cancelled

    @property
    def context(self):
        return self.orch.context

    def check(self, spec: MemberSpec, call: Callable[[], Any], validate=None, context: str = "") -> CheckResult:
        return self.orch.check(spec, call, validate, context)

    def info(self, name: str, message: str) -> Outcome:
        return self.orch.record(Outcome(name, Severity.INFO, message))

    def issue(self, name: str, message: str) -> Outcome:
        return self.orch.record(Outcome(name, Severity.ISSUE, message))

    def check_common(self) -> None:
        """Members every driver implements regardless of device type."""
        result = self.check(INTERFACE_VERSION, lambda: self.device.interface_version, at_least(1, Severity.ISSUE))
        if result.succeeded:
            self.interface_version = result.value

        self.check(CONNECTED, lambda: self.device.connected, is_bool)
        self.check(DESCRIPTION, lambda: self.device.description, non_empty_string())
        self.check(DRIVER_INFO, lambda: self.device.driver_info, non_empty_string())
        self.check(DRIVER_VERSION, lambda: self.device.driver_version, non_empty_string())
        self.check(NAME, lambda: self.device.name, non_empty_string())

        if self.cancelled:
            self.orch.skip(ACTION, "Test cancelled")
        else:
            self.orch.skip(ACTION, "Action behaviour is driver specific and cannot be tested generically")

        self.check(SUPPORTED_ACTIONS, lambda: self.device.supported_actions, string_list)

    def pre_connect_checks(self) -> None:
        pass

    def read_can_properties(self) -> None:
        pass

    def pre_run_check(self) -> None:
        pass

    def check_properties(self) -> None:
        pass

    def check_methods(self) -> None:
        pass

    def check_performance(self) -> None:
        pass

    def post_run_check(self) -> None:
        pass
