"""CoverCalibrator tester.

Cover and calibrator are independent capabilities. Each state property
tells whether its capability is present, and that decides whether the
dependent members must or must not be implemented.
"""
import logging
import math
import time
from typing import Optional

from ..engine.members import Requirement, method, prop
from ..engine.outcome import Outcome, Severity
from ..engine.validators import Verdict, at_least, in_range
from ..engine.waiter import WaitResult, WaitStatus
from ..probes.facades import CalibratorStatus, CoverCalibratorFacade, CoverStatus
from .base import DeviceTester

logger = logging.getLogger(__name__)

CALIBRATOR_STATE = prop("CalibratorState")
COVER_STATE = prop("CoverState")
MAX_BRIGHTNESS = prop("MaxBrightness")
BRIGHTNESS = prop("Brightness")
OPEN_COVER = method("OpenCover")
CLOSE_COVER = method("CloseCover")
HALT_COVER = method("HaltCover")
CALIBRATOR_ON = method("CalibratorOn")
CALIBRATOR_OFF = method("CalibratorOff")


def state_name(value) -> Verdict:
    return Severity.OK, value.name


def brightness_levels(max_brightness: int) -> list[int]:
    """Valid brightness values worth testing for a given maximum."""
    if max_brightness <= 4:
        return list(range(1, max_brightness + 1))
    return [
        math.ceil((max_brightness + 1.0) / 4.0 - 1.0),
        math.floor((max_brightness + 1.0) / 2.0 - 1.0),
        math.floor((max_brightness + 1.0) * 3.0 / 4.0 - 1.0),
        max_brightness,
    ]


def _wait_failure(action: str, result: WaitResult) -> Optional[Verdict]:
    if result.status is WaitStatus.COMPLETED:
        return None
    if result.status is WaitStatus.CANCELLED:
        return Severity.INFO, f"{action} cancelled while waiting for completion"
    if result.status is WaitStatus.TIMED_OUT:
        return Severity.ERROR, f"{action} did not complete within {result.elapsed:.1f} seconds"
    return Severity.ERROR, f"{action}: state could not be read while waiting: {result.error}"


class CoverCalibratorTester(DeviceTester):
    device_type = "CoverCalibrator"

    has_performance_check = True

    device: CoverCalibratorFacade

    def __init__(self, device, orchestrator):
        super().__init__(device, orchestrator)
        self.calibrator_state: Optional[CalibratorStatus] = None
        self.cover_state: Optional[CoverStatus] = None
        self.max_brightness: Optional[int] = None
        self.brightness_ok = False
        self.async_open_time = 0.0
        self.async_close_time = 0.0
        # None until a cover move has returned; True once CoverState was seen Moving
        self.cover_asynchronous: Optional[bool] = None

    @property
    def calibrator_present(self) -> bool:
        return self.calibrator_state is not CalibratorStatus.NotPresent

    @property
    def cover_present(self) -> bool:
        return self.cover_state is not CoverStatus.NotPresent

    def _calibrator_requirement(self) -> Requirement:
        return Requirement.for_capability(self.calibrator_present)

    def _cover_requirement(self) -> Requirement:
        return Requirement.for_capability(self.cover_present)

    def _calibrator_context(self) -> str:
        if self.calibrator_present:
            return ""
        return "CalibratorState is NotPresent"

    def _cover_context(self) -> str:
        if self.cover_present:
            return ""
        return "CoverState is NotPresent"

    # Properties

    def check_properties(self) -> None:
        result = self.check(CALIBRATOR_STATE, lambda: self.device.calibrator_state, state_name)
        self.calibrator_state = result.value if result.succeeded else None

        result = self.check(COVER_STATE, lambda: self.device.cover_state, state_name)
        self.cover_state = result.value if result.succeeded else None

        self._check_max_brightness()
        self._check_brightness()

        if self.cover_state is CoverStatus.NotPresent and self.calibrator_state is CalibratorStatus.NotPresent:
            self.orch.record(Outcome(
                "DeviceCapabilities", Severity.WARNING,
                "Both CoverState and CalibratorState are NotPresent - this driver won't do a lot!",
            ))

    def _check_max_brightness(self) -> None:
        if self.calibrator_state is None:
            self.orch.skip(MAX_BRIGHTNESS, "Test skipped because CalibratorState returned an error", Severity.ISSUE)
            return

        result = self.check(
            MAX_BRIGHTNESS.with_requirement(self._calibrator_requirement()),
            lambda: self.device.max_brightness,
            at_least(1, Severity.ISSUE),
            context=self._calibrator_context(),
        )
        if result.ok and self.calibrator_present:
            self.max_brightness = result.value

    def _check_brightness(self) -> None:
        if self.calibrator_state is None:
            self.orch.skip(BRIGHTNESS, "Test skipped because CalibratorState returned an error", Severity.ISSUE)
            return

        if self.max_brightness is not None:
            validate = in_range(0, self.max_brightness, Severity.ERROR)
        else:
            validate = at_least(0, Severity.ISSUE)

        result = self.check(
            BRIGHTNESS.with_requirement(self._calibrator_requirement()),
            lambda: self.device.brightness,
            validate,
            context=self._calibrator_context(),
        )
        self.brightness_ok = result.ok and self.calibrator_present

    # Methods

    def check_methods(self) -> None:
        if self.cover_state is None:
            for spec in (OPEN_COVER, CLOSE_COVER, HALT_COVER):
                self.orch.skip(spec, "Test skipped because CoverState returned an error", Severity.ISSUE)
        else:
            self._check_cover_move(OPEN_COVER, self.device.open_cover, CoverStatus.Open)
            self._check_cover_move(CLOSE_COVER, self.device.close_cover, CoverStatus.Closed)
            self._check_halt_cover()

        if self.calibrator_state is None:
            for spec in (CALIBRATOR_ON, CALIBRATOR_OFF):
                self.orch.skip(spec, "Test skipped because CalibratorState returned an error", Severity.ISSUE)
        else:
            self._check_calibrator_on()
            self._check_calibrator_off()

    def _check_cover_move(self, spec, call, target: CoverStatus) -> None:
        start = time.monotonic()

        def verify(_) -> Verdict:
            return self._verify_cover(spec.name, target, start)

        self.check(
            spec.with_requirement(self._cover_requirement()),
            call,
            verify,
            context=self._cover_context(),
        )

    def _verify_cover(self, action: str, target: CoverStatus, start: float) -> Verdict:
        state = self.device.cover_state
        if state is not CoverStatus.Moving:
            if self.cover_asynchronous is None:
                self.cover_asynchronous = False
            elapsed = time.monotonic() - start
            if state is target:
                return Severity.OK, f"{action} was successful. The synchronous operation took {elapsed:.1f} seconds"
            return Severity.ERROR, f"{action} was unsuccessful - CoverState was {state.name} instead of {target.name}"

        self.cover_asynchronous = True
        result = self.orch.wait_while(
            action,
            lambda: self.device.cover_state is CoverStatus.Moving,
            status_text=lambda: f"cover moving for {time.monotonic() - start:.1f}s",
        )
        failure = _wait_failure(action, result)
        if failure is not None:
            return failure

        elapsed = time.monotonic() - start
        state = self.device.cover_state
        if state is not target:
            return Severity.ERROR, f"{action} was unsuccessful - CoverState was {state.name} instead of {target.name}"

        if target is CoverStatus.Open:
            self.async_open_time = elapsed
        else:
            self.async_close_time = elapsed
        return Severity.OK, f"{action} was successful. The asynchronous operation took {elapsed:.1f} seconds"

    def _check_halt_cover(self) -> None:
        if not self.cover_present:
            self.check(
                HALT_COVER.with_requirement(Requirement.MUST_NOT_BE_IMPLEMENTED),
                self.device.halt_cover,
                context=self._cover_context(),
            )
            return

        if self.cover_asynchronous is None:
            self.orch.skip(
                HALT_COVER,
                "Test skipped because neither OpenCover nor CloseCover completed, "
                "so it is unknown whether the cover operates asynchronously",
                Severity.ISSUE,
            )
            return

        if not self.cover_asynchronous:
            # Synchronous cover: there is never anything to halt
            self.check(
                HALT_COVER.with_requirement(Requirement.MUST_NOT_BE_IMPLEMENTED),
                self.device.halt_cover,
                context="The cover operates synchronously",
            )
            return

        if self.async_open_time <= 0.0 or self.async_close_time <= 0.0:
            self.orch.skip(
                HALT_COVER,
                "Test skipped because the cover could not be both opened and closed successfully",
                Severity.ISSUE,
            )
            return

        _, error = self.orch.read(self.device.open_cover)
        if error is not None:
            self.orch.skip(HALT_COVER, f"Test skipped because OpenCover raised {error}", Severity.ISSUE)
            return

        self.context.cancel.wait(self.async_open_time / 2.0)
        state, error = self.orch.read(lambda: self.device.cover_state)
        if state is not CoverStatus.Moving:
            self.orch.skip(
                HALT_COVER,
                "Cover should have been moving after waiting for half of the previous open time, "
                "but it was not. Test abandoned",
                Severity.ISSUE,
            )
            return

        def verify(_) -> Verdict:
            if self.device.cover_state is CoverStatus.Moving:
                return Severity.ERROR, "Cover is still moving after HaltCover"
            return Severity.OK, "Cover is no longer moving after HaltCover"

        self.check(
            HALT_COVER.with_requirement(Requirement.MUST_BE_IMPLEMENTED),
            self.device.halt_cover,
            verify,
        )

    def _check_calibrator_on(self) -> None:
        if not self.calibrator_present:
            self.check(
                CALIBRATOR_ON.with_requirement(Requirement.MUST_NOT_BE_IMPLEMENTED),
                lambda: self.device.calibrator_on(1),
                context=self._calibrator_context(),
            )
            return

        if self.max_brightness is None or not self.brightness_ok:
            self.orch.skip(
                CALIBRATOR_ON,
                "Brightness tests skipped because Brightness or MaxBrightness returned an invalid value or an error",
                Severity.ISSUE,
            )
            return

        spec = CALIBRATOR_ON.with_requirement(Requirement.MUST_BE_IMPLEMENTED)
        for brightness in [-1, 0, *brightness_levels(self.max_brightness), self.max_brightness + 1]:
            if self.cancelled:
                self.orch.skip(spec, "Test cancelled")
                return
            if brightness < 0 or brightness > self.max_brightness:
                self.orch.check_rejected(
                    spec,
                    lambda b=brightness: self.device.calibrator_on(b),
                    context=f"Brightness {brightness}",
                )
            else:
                self._check_calibrator_on_level(spec, brightness)

    def _check_calibrator_on_level(self, spec, brightness: int) -> None:
        start = time.monotonic()

        def verify(_) -> Verdict:
            failure = self._wait_calibrator("CalibratorOn")
            if failure is not None:
                return failure
            elapsed = time.monotonic() - start
            state = self.device.calibrator_state
            if state is not CalibratorStatus.Ready:
                return Severity.ERROR, f"Unsuccessful - CalibratorState was {state.name} instead of Ready"
            returned = self.device.brightness
            if returned != brightness:
                return Severity.ISSUE, f"Brightness returned {returned}, which does not match the value that was set"
            return Severity.OK, f"Successful, took {elapsed:.1f} seconds"

        self.check(spec, lambda: self.device.calibrator_on(brightness), verify, context=f"Brightness {brightness}")

    def _wait_calibrator(self, action: str) -> Optional[Verdict]:
        if self.device.calibrator_state is not CalibratorStatus.NotReady:
            return None
        result = self.orch.wait_while(
            action, lambda: self.device.calibrator_state is CalibratorStatus.NotReady
        )
        return _wait_failure(action, result)

    def _check_calibrator_off(self) -> None:
        def verify(_) -> Verdict:
            failure = self._wait_calibrator("CalibratorOff")
            if failure is not None:
                return failure
            state = self.device.calibrator_state
            if state is not CalibratorStatus.Off:
                return Severity.ERROR, f"Unsuccessful - CalibratorState was {state.name} instead of Off"
            if self.device.brightness != 0:
                return Severity.ISSUE, "Brightness is not set to zero when the calibrator is turned off"
            return Severity.OK, "Calibrator is off and Brightness is zero"

        self.check(
            CALIBRATOR_OFF.with_requirement(self._calibrator_requirement()),
            self.device.calibrator_off,
            verify,
            context=self._calibrator_context(),
        )

    def check_performance(self) -> None:
        self.orch.measure("CalibratorState", lambda: self.device.calibrator_state)
        self.orch.measure("CoverState", lambda: self.device.cover_state)
