"""All-or-nothing implementation checks for groups of linked members."""
from dataclasses import dataclass
from typing import Iterable, Mapping

from .outcome import Outcome, Severity

VALUE = "value"
DESCRIPTION = "description"
LAST_UPDATE = "last_update_time"


@dataclass
class SensorConsistencyRecord:
    """Which parts of one logical sensor turned out to be implemented."""
    has_value: bool = False
    has_description: bool = False
    has_last_update_time: bool = False

    def set(self, aspect: str, present: bool) -> None:
        if aspect == VALUE:
            self.has_value = present
        elif aspect == DESCRIPTION:
            self.has_description = present
        elif aspect == LAST_UPDATE:
            self.has_last_update_time = present
        else:
            raise KeyError(f"Unknown sensor aspect: {aspect}")

    def as_flags(self) -> dict[str, bool]:
        return {
            "value": self.has_value,
            "description": self.has_description,
            "time since last update": self.has_last_update_time,
        }


def check_all_or_nothing(name: str, flags: Mapping[str, bool]) -> Outcome:
    """OK when every flag agrees, Issue naming the split otherwise."""
    present = [member for member, ok in flags.items() if ok]
    absent = [member for member, ok in flags.items() if not ok]

    if not absent:
        return Outcome(name, Severity.OK, f"{_join(present)} are all implemented")
    if not present:
        return Outcome(name, Severity.OK, f"{_join(absent)} are all not implemented")
    return Outcome(
        name, Severity.ISSUE,
        f"Implemented: {_join(present)}; not implemented: {_join(absent)}. "
        f"These must either all be implemented or all not be implemented",
    )


def _join(items: Iterable[str]) -> str:
    return ", ".join(items)


class ConsistencyChecker:
    """Collects sensor aspects as checks run and judges them at the end."""

    def __init__(self):
        self._records: dict[str, SensorConsistencyRecord] = {}

    def record(self, sensor: str, aspect: str, present: bool) -> None:
        self._records.setdefault(sensor, SensorConsistencyRecord()).set(aspect, present)

    def get(self, sensor: str) -> SensorConsistencyRecord:
        return self._records.setdefault(sensor, SensorConsistencyRecord())

    @property
    def sensors(self) -> list[str]:
        return list(self._records)

    def evaluate(self, sensor: str) -> Outcome:
        return check_all_or_nothing(f"Consistency - {sensor}", self.get(sensor).as_flags())

    def evaluate_all(self) -> list[Outcome]:
        return [self.evaluate(sensor) for sensor in self._records]
