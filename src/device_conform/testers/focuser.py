"""Focuser tester."""
import logging
import time
from typing import Any, Optional

from ..engine.members import MemberSpec, Requirement, method, prop
from ..engine.orchestrator import CheckResult
from ..engine.outcome import Severity
from ..engine.validators import Verdict, at_least, equals, greater_than, in_range, is_bool
from ..engine.waiter import WaitStatus
from ..probes.facades import FocuserFacade
from .base import DeviceTester

logger = logging.getLogger(__name__)

ABSOLUTE = prop("Absolute")
IS_MOVING = prop("IsMoving")
MAX_STEP = prop("MaxStep")
MAX_INCREMENT = prop("MaxIncrement")
POSITION = prop("Position")
STEP_SIZE = prop("StepSize", Requirement.OPTIONAL)
TEMP_COMP_AVAILABLE = prop("TempCompAvailable")
TEMP_COMP_READ = prop("TempComp Read")
TEMP_COMP_WRITE = prop("TempComp Write")
TEMPERATURE = prop("Temperature", Requirement.OPTIONAL)
HALT = method("Halt", Requirement.OPTIONAL)
MOVE = method("Move")

# Distance past either end of travel used to check that moves are clamped
OUT_OF_RANGE_INCREMENT = 10

# Below this a Move call is assumed to have returned before the move finished
SYNCHRONOUS_MOVE_SECONDS = 1.0


class FocuserTester(DeviceTester):
    device_type = "Focuser"

    has_performance_check = True

    device: FocuserFacade

    def __init__(self, device, orchestrator):
        super().__init__(device, orchestrator)
        self.absolute: Optional[bool] = None
        self.max_step: Optional[int] = None
        self.max_increment: Optional[int] = None
        self.position_ok = False
        self.temp_comp: Optional[bool] = None
        self.temp_comp_available = False
        self.temp_comp_true_ok = False
        self.temp_comp_false_ok = False

    @property
    def tolerance(self) -> int:
        return self.context.move_tolerance

    def check_properties(self) -> None:
        result = self.check(ABSOLUTE, lambda: self.device.absolute, is_bool)
        self.absolute = result.value if result.succeeded else None

        self.check(
            IS_MOVING, lambda: self.device.is_moving,
            equals(False, Severity.ISSUE, "IsMoving must be False at the start of the tests"),
        )

        result = self.check(MAX_STEP, lambda: self.device.max_step, at_least(1, Severity.ISSUE))
        self.max_step = result.value if result.succeeded else None

        result = self.check(
            MAX_INCREMENT, lambda: self.device.max_increment,
            in_range(1, self.max_step, Severity.ISSUE) if self.max_step else at_least(1, Severity.ISSUE),
        )
        self.max_increment = result.value if result.ok else None

        self._check_position()

        self.check(STEP_SIZE, lambda: self.device.step_size, greater_than(0.0, Severity.ISSUE))

        result = self.check(TEMP_COMP_AVAILABLE, lambda: self.device.temp_comp_available, is_bool)
        self.temp_comp_available = bool(result.value) if result.succeeded else False

        result = self.check(TEMP_COMP_READ, lambda: self.device.temp_comp, self._validate_temp_comp)
        self.temp_comp = result.value if result.succeeded else None

        self._check_temp_comp_write()

        self.check(TEMPERATURE, lambda: self.device.temperature, in_range(-50.0, 50.0, Severity.ISSUE))

    def _check_position(self) -> None:
        if self.absolute is None:
            self.orch.skip(POSITION, "Test skipped because Absolute returned an error", Severity.ISSUE)
            return

        if self.absolute:
            spec = POSITION.with_requirement(Requirement.MUST_BE_IMPLEMENTED)
            validate = in_range(0, self.max_step, Severity.ISSUE) if self.max_step else at_least(0, Severity.ISSUE)
            context = ""
        else:
            spec = POSITION.with_requirement(Requirement.MUST_NOT_BE_IMPLEMENTED)
            validate = None
            context = "Relative focuser"

        result = self.check(spec, lambda: self.device.position, validate, context=context)
        self.position_ok = bool(self.absolute) and result.ok

    def _validate_temp_comp(self, value: Any) -> Verdict:
        if value and not self.temp_comp_available:
            return Severity.ISSUE, "TempComp is True when TempCompAvailable is False"
        return Severity.OK, str(value)

    def _set_temp_comp(self, value: bool) -> None:
        self.device.temp_comp = value

    def _check_temp_comp_write(self) -> None:
        if not self.temp_comp_available:
            self.check(
                TEMP_COMP_WRITE.with_requirement(Requirement.MUST_NOT_BE_IMPLEMENTED),
                lambda: self._set_temp_comp(True),
                context="Temperature compensation is not available",
            )
        else:
            spec = TEMP_COMP_WRITE.with_requirement(Requirement.MUST_BE_IMPLEMENTED)
            result = self.check(spec, lambda: self._set_temp_comp(True), context="Turned temperature compensation on")
            self.temp_comp_true_ok = result.succeeded
            if result.succeeded:
                result = self.check(spec, lambda: self._set_temp_comp(False), context="Turned temperature compensation off")
                self.temp_comp_false_ok = result.succeeded

        self._restore_temp_comp()

    def _restore_temp_comp(self) -> None:
        if self.temp_comp is None:
            return
        _, error = self.orch.read(lambda: self._set_temp_comp(self.temp_comp))
        if error is not None:
            logger.debug(f"Could not restore TempComp to {self.temp_comp}: {error}")

    # Methods

    def check_methods(self) -> None:
        self.check(HALT, self.device.halt)

        if self.absolute is None or self.max_increment is None:
            self.orch.skip(
                MOVE,
                "Test skipped because Absolute or MaxIncrement did not return a valid value",
                Severity.ISSUE,
            )
            return

        if self.temp_comp_false_ok:
            self.orch.read(lambda: self._set_temp_comp(False))
        self._check_move(MOVE.renamed("Move - TempComp False"))

        if self.temp_comp_true_ok:
            self.orch.read(lambda: self._set_temp_comp(True))
            self._check_move(MOVE.renamed("Move - TempComp True"))
            if self.temp_comp_false_ok:
                self.orch.read(lambda: self._set_temp_comp(False))

        if self.absolute and self.max_step is not None:
            self._check_move_to(MOVE.renamed("Move - To 0"), 0, 0, Severity.INFO)
            self._check_move_to(MOVE.renamed("Move - Below 0"), -OUT_OF_RANGE_INCREMENT, 0, Severity.ISSUE)
            self._check_move_to(MOVE.renamed("Move - To MaxStep"), self.max_step, self.max_step, Severity.INFO)
            self._check_move_to(
                MOVE.renamed("Move - Above MaxStep"),
                self.max_step + OUT_OF_RANGE_INCREMENT, self.max_step, Severity.ISSUE,
            )

        self._restore_temp_comp()

    def _move_target(self, original: int) -> int:
        if not self.absolute:
            return min(int(self.max_increment / 10.0), self.max_increment)

        step = int(self.max_step / 10)
        target = original + step
        if target >= self.max_step:
            target = original - step
        if abs(target - original) > self.max_increment:
            target = original + self.max_increment
        return target

    def _check_move(self, spec: MemberSpec) -> None:
        if self.cancelled:
            self.orch.skip(spec, "Test cancelled")
            return

        original = 0
        if self.absolute:
            original, error = self.orch.read(lambda: self.device.position)
            if error is not None:
                self.orch.skip(spec, f"Test skipped because Position raised {error}", Severity.ISSUE)
                return

        target = self._move_target(original)
        result = self._check_move_to(spec, target, target, Severity.INFO)
        if not result.succeeded:
            return

        # Return to where the test started
        back = original if self.absolute else -target
        _, error = self.orch.read(lambda: self.device.move(back))
        if error is None:
            self._wait_for_move(spec.name)

    def _check_move_to(
        self, spec: MemberSpec, position: int, expected: int, off_target: Severity
    ) -> CheckResult:
        if self.cancelled:
            return self.orch.skip(spec, "Test cancelled")

        moving, error = self.orch.read(lambda: self.device.is_moving)
        if error is None and moving:
            return self.orch.skip(
                spec, "Focuser is already moving before the start of the Move test", Severity.ISSUE
            )

        start = time.monotonic()

        def verify(_) -> Verdict:
            return self._verify_move(spec.name, expected, off_target, start)

        return self.check(spec, lambda: self.device.move(position), verify, context=f"Move to {position}")

    def _wait_for_move(self, action: str):
        def status() -> str:
            if self.position_ok:
                return f"Position {self.device.position}"
            return "waiting for IsMoving to clear"

        return self.orch.wait_while(action, lambda: self.device.is_moving, status_text=status)

    def _verify_move(self, action: str, expected: int, off_target: Severity, start: float) -> Verdict:
        synchronous = time.monotonic() - start > SYNCHRONOUS_MOVE_SECONDS
        if synchronous and self.device.is_moving:
            return Severity.ISSUE, "Synchronous move expected but the focuser is moving after Move returned"

        result = self._wait_for_move(action)
        if result.status is WaitStatus.CANCELLED:
            return Severity.INFO, "Cancelled while waiting for the move to complete"
        if result.status is WaitStatus.TIMED_OUT:
            return Severity.ERROR, f"Move did not complete within {result.elapsed:.1f} seconds"
        if result.status is WaitStatus.FAILED:
            return Severity.ERROR, f"IsMoving could not be read while waiting: {result.error}"

        if not self.absolute:
            return Severity.OK, "Relative move OK"

        actual = self.device.position
        if abs(actual - expected) <= self.tolerance:
            return Severity.OK, f"Moved to {actual}"
        return off_target, f"Moved to {actual}, {actual - expected} steps from the requested {expected}"

    def check_performance(self) -> None:
        self.orch.measure("Position", lambda: self.device.position)
        self.orch.measure("IsMoving", lambda: self.device.is_moving)
        self.orch.measure("Temperature", lambda: self.device.temperature)
