"""ObservingConditions tester.

Every sensor is optional, but a sensor's value, description and time
since last update must be implemented together. Sensor reads may report
"not ready" for a while after connection, so they run under the retry
policy.
"""
import logging

from ..engine.consistency import DESCRIPTION, LAST_UPDATE, VALUE, check_all_or_nothing
from ..engine.members import Requirement, method, prop
from ..engine.outcome import Outcome, Severity
from ..engine.validators import Verdict, at_least, in_range
from ..probes.facades import OBSERVING_CONDITIONS_SENSORS, ObservingConditionsFacade
from .base import DeviceTester

logger = logging.getLogger(__name__)

ABSOLUTE_ZERO = -273.15
WATER_BOILING_POINT = 100.0

SENSOR_RANGES = {
    "CloudCover": (0.0, 100.0),
    "DewPoint": (ABSOLUTE_ZERO, WATER_BOILING_POINT),
    "Humidity": (0.0, 100.0),
    "Pressure": (0.0, 1100.0),
    "RainRate": (0.0, 20000.0),
    "SkyBrightness": (0.0, 1000000.0),
    "SkyQuality": (-20.0, 30.0),
    "StarFWHM": (0.0, 1000.0),
    "SkyTemperature": (ABSOLUTE_ZERO, WATER_BOILING_POINT),
    "Temperature": (ABSOLUTE_ZERO, WATER_BOILING_POINT),
    "WindDirection": (0.0, 360.0),
    "WindGust": (0.0, 1000.0),
    "WindSpeed": (0.0, 1000.0),
}

AVERAGE_PERIOD = prop("AveragePeriod")
AVERAGE_PERIOD_WRITE = prop("AveragePeriod Write")
REFRESH = method("Refresh", Requirement.OPTIONAL)
TIME_SINCE_LAST_UPDATE_LATEST = method("TimeSinceLastUpdateLatest")

DEW_POINT_AND_HUMIDITY = "DewPoint & Humidity"


def description_verdict(value) -> Verdict:
    if value is None:
        return Severity.ISSUE, "The driver did not return a string at all"
    if not isinstance(value, str):
        return Severity.ERROR, f"Expected a string, got {type(value).__name__}"
    if value == "":
        return Severity.OK, 'The driver returned an empty string: ""'
    return Severity.OK, value


class ObservingConditionsTester(DeviceTester):
    device_type = "ObservingConditions"

    device: ObservingConditionsFacade

    def _record_pair(self, results: dict) -> None:
        flags = {name: result.succeeded for name, result in results.items()}
        self.orch.record(check_all_or_nothing(DEW_POINT_AND_HUMIDITY, flags))

    # Properties

    def check_properties(self) -> None:
        result = self.orch.check_with_retry(
            AVERAGE_PERIOD, lambda: self.device.average_period, in_range(0.0, 100000.0, Severity.ISSUE)
        )
        if result.succeeded:
            self._check_average_period_write(result.value)
        else:
            self.orch.skip(AVERAGE_PERIOD_WRITE, "Test skipped because AveragePeriod could not be read")

        values = {}
        for sensor in OBSERVING_CONDITIONS_SENSORS:
            values[sensor] = self._check_sensor(sensor)
            if sensor == "Humidity":
                self._record_pair({s: values[s] for s in ("DewPoint", "Humidity")})

        self._check_wind(values["WindSpeed"], values["WindDirection"])

    def _set_average_period(self, value: float) -> None:
        self.device.average_period = value

    def _check_average_period_write(self, original: float) -> None:
        self.orch.check_rejected(
            AVERAGE_PERIOD_WRITE,
            lambda: self._set_average_period(-2.0),
            context="Set to -2.0",
            accepted_message="No error generated on setting the average period below -1.0",
        )
        self.check(AVERAGE_PERIOD_WRITE, lambda: self._set_average_period(0.0), context="Set to 0.0")
        self.orch.check_rejected(
            AVERAGE_PERIOD_WRITE,
            lambda: self._set_average_period(5.0),
            context="Set to 5.0",
            accepted_severity=Severity.OK,
            accepted_message="Successfully set average period to 5.0",
        )
        self.check(
            AVERAGE_PERIOD_WRITE,
            lambda: self._set_average_period(original),
            context=f"Restore {original}",
        )

    def _check_sensor(self, sensor: str):
        low, high = SENSOR_RANGES[sensor]
        result = self.orch.check_with_retry(
            prop(sensor, Requirement.OPTIONAL),
            lambda: self.device.sensor(sensor),
            in_range(low, high, Severity.ISSUE),
        )
        self.orch.consistency.record(sensor, VALUE, result.succeeded)
        return result

    def _check_wind(self, speed, direction) -> None:
        if not speed.succeeded or speed.value != 0.0:
            return
        if direction.succeeded and direction.value == 0.0:
            self.orch.record(Outcome("WindSpeed", Severity.OK, "Wind direction is reported as 0.0 when wind speed is 0.0"))
        else:
            self.issue(
                "WindSpeed",
                f"When wind speed is reported as 0.0, wind direction should also be reported as 0.0, "
                f"it is actually reported as {direction.value}",
            )

    # Methods

    def check_methods(self) -> None:
        self.orch.check_with_retry(
            TIME_SINCE_LAST_UPDATE_LATEST,
            lambda: self.device.time_since_last_update(""),
            at_least(-1.0, Severity.ISSUE),
        )

        last_updates = {}
        for sensor in OBSERVING_CONDITIONS_SENSORS:
            result = self.orch.check_with_retry(
                method(f"TimeSinceLastUpdate{sensor}", Requirement.OPTIONAL),
                lambda s=sensor: self.device.time_since_last_update(s),
                at_least(-1.0, Severity.ISSUE),
            )
            self.orch.consistency.record(sensor, LAST_UPDATE, result.succeeded)
            last_updates[sensor] = result
            if sensor == "Humidity":
                self._record_pair({s: last_updates[s] for s in ("DewPoint", "Humidity")})

        self.check(REFRESH, self.device.refresh)

        descriptions = {}
        for sensor in OBSERVING_CONDITIONS_SENSORS:
            result = self.check(
                method(f"SensorDescription{sensor}", Requirement.OPTIONAL),
                lambda s=sensor: self.device.sensor_description(s),
                description_verdict,
            )
            self.orch.consistency.record(sensor, DESCRIPTION, result.succeeded)
            descriptions[sensor] = result
            if sensor == "Humidity":
                self._record_pair({s: descriptions[s] for s in ("DewPoint", "Humidity")})

        if self.cancelled:
            return
        self.orch.evaluate_consistency()
