"""Capability-typed views over a device probe, one per device category."""
from enum import IntEnum
from typing import Any

from .base import DeviceProbe


class CoverStatus(IntEnum):
    NotPresent = 0
    Closed = 1
    Moving = 2
    Open = 3
    Unknown = 4
    Error = 5


class CalibratorStatus(IntEnum):
    NotPresent = 0
    Off = 1
    NotReady = 2
    Ready = 3
    Unknown = 4
    Error = 5


class DeviceFacade:
    """Members every device type shares."""

    device_type = ""

    def __init__(self, probe: DeviceProbe):
        self.probe = probe

    def _get(self, member: str) -> Any:
        return self.probe.get(member)

    @property
    def connected(self) -> bool:
        return self._get("Connected")

    @connected.setter
    def connected(self, value: bool) -> None:
        self.probe.set("Connected", value)

    @property
    def interface_version(self) -> int:
        return self._get("InterfaceVersion")

    @property
    def description(self) -> str:
        return self._get("Description")

    @property
    def driver_info(self) -> str:
        return self._get("DriverInfo")

    @property
    def driver_version(self) -> str:
        return self._get("DriverVersion")

    @property
    def name(self) -> str:
        return self._get("Name")

    @property
    def supported_actions(self) -> list[str]:
        return self._get("SupportedActions")


class SafetyMonitorFacade(DeviceFacade):
    device_type = "SafetyMonitor"

    @property
    def is_safe(self) -> bool:
        return self._get("IsSafe")


class CoverCalibratorFacade(DeviceFacade):
    device_type = "CoverCalibrator"

    @property
    def cover_state(self) -> CoverStatus:
        return CoverStatus(int(self._get("CoverState")))

    @property
    def calibrator_state(self) -> CalibratorStatus:
        return CalibratorStatus(int(self._get("CalibratorState")))

    @property
    def brightness(self) -> int:
        return self._get("Brightness")

    @property
    def max_brightness(self) -> int:
        return self._get("MaxBrightness")

    def open_cover(self) -> None:
        self.probe.invoke("OpenCover")

    def close_cover(self) -> None:
        self.probe.invoke("CloseCover")

    def halt_cover(self) -> None:
        self.probe.invoke("HaltCover")

    def calibrator_on(self, brightness: int) -> None:
        self.probe.invoke("CalibratorOn", Brightness=brightness)

    def calibrator_off(self) -> None:
        self.probe.invoke("CalibratorOff")


class FocuserFacade(DeviceFacade):
    device_type = "Focuser"

    @property
    def absolute(self) -> bool:
        return self._get("Absolute")

    @property
    def is_moving(self) -> bool:
        return self._get("IsMoving")

    @property
    def max_increment(self) -> int:
        return self._get("MaxIncrement")

    @property
    def max_step(self) -> int:
        return self._get("MaxStep")

    @property
    def position(self) -> int:
        return self._get("Position")

    @property
    def step_size(self) -> float:
        return self._get("StepSize")

    @property
    def temp_comp(self) -> bool:
        return self._get("TempComp")

    @temp_comp.setter
    def temp_comp(self, value: bool) -> None:
        self.probe.set("TempComp", value)

    @property
    def temp_comp_available(self) -> bool:
        return self._get("TempCompAvailable")

    @property
    def temperature(self) -> float:
        return self._get("Temperature")

    def halt(self) -> None:
        self.probe.invoke("Halt")

    def move(self, position: int) -> None:
        self.probe.invoke("Move", Position=position)


OBSERVING_CONDITIONS_SENSORS = (
    "CloudCover",
    "DewPoint",
    "Humidity",
    "Pressure",
    "RainRate",
    "SkyBrightness",
    "SkyQuality",
    "SkyTemperature",
    "StarFWHM",
    "Temperature",
    "WindDirection",
    "WindGust",
    "WindSpeed",
)


class ObservingConditionsFacade(DeviceFacade):
    device_type = "ObservingConditions"

    @property
    def average_period(self) -> float:
        return self._get("AveragePeriod")

    @average_period.setter
    def average_period(self, value: float) -> None:
        self.probe.set("AveragePeriod", value)

    def sensor(self, name: str) -> float:
        """Read one sensor property by its contract name."""
        if name not in OBSERVING_CONDITIONS_SENSORS:
            raise KeyError(f"Unknown sensor: {name}")
        return self._get(name)

    def refresh(self) -> None:
        self.probe.invoke("Refresh")

    def sensor_description(self, sensor_name: str) -> str:
        return self.probe.query("SensorDescription", SensorName=sensor_name)

    def time_since_last_update(self, sensor_name: str) -> float:
        return self.probe.query("TimeSinceLastUpdate", SensorName=sensor_name)
