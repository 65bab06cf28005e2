"""Fixed-duration throughput sampling for a single driver member."""
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ..utils.logging_config import perf_logger
from .outcome import Outcome, Severity

logger = logging.getLogger(__name__)


class ProbeStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def rate_band(rate: float) -> tuple[Severity, str]:
    """Map transactions per second onto a severity and band label.

    Only the 2-10 per second band is OK. Fast and slow drivers are both
    reported as Info.
    """
    if rate > 10.0:
        return Severity.INFO, "faster than 10 per second"
    if rate >= 2.0:
        return Severity.OK, "2 to 10 per second"
    if rate >= 1.0:
        return Severity.INFO, "1 to 2 per second"
    return Severity.INFO, "slower than 1 per second"


def classify_rate(rate: float) -> Severity:
    return rate_band(rate)[0]


@dataclass(frozen=True)
class PerformanceResult:
    name: str
    status: ProbeStatus
    count: int
    elapsed: float
    error: Optional[BaseException] = None

    @property
    def rate(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.count / self.elapsed

    def to_outcome(self) -> Outcome:
        if self.status is ProbeStatus.FAILED:
            return Outcome(self.name, Severity.INFO, f"Unable to complete test: {self.error}")
        if self.status is ProbeStatus.CANCELLED:
            return Outcome(
                self.name, Severity.INFO,
                f"Cancelled after {self.count} transactions in {self.elapsed:.1f} seconds",
            )
        severity, band = rate_band(self.rate)
        return Outcome(self.name, severity, f"Transaction rate: {self.rate:.1f} per second ({band})")


class PerformanceProbe:
    """Calls an operation repeatedly for ``duration`` seconds and counts completions.

    Iterations can be far shorter than a millisecond, so cancellation and
    status updates happen once per elapsed second rather than per call.
    """

    def __init__(
        self,
        duration: float,
        cancel: threading.Event,
        status_sink: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if duration <= 0:
            raise ValueError(f"Performance duration must be positive: {duration}")
        self.duration = duration
        self.cancel = cancel
        self.status_sink = status_sink
        self.clock = clock

    def run(self, name: str, operation: Callable[[], Any]) -> PerformanceResult:
        if self.cancel.is_set():
            return PerformanceResult(name, ProbeStatus.CANCELLED, 0, 0.0)

        start = self.clock()
        count = 0
        elapsed = 0.0
        last_check = 0.0

        try:
            while elapsed <= self.duration:
                operation()
                count += 1
                elapsed = self.clock() - start

                if elapsed > last_check + 1.0:
                    last_check = elapsed
                    if self.status_sink is not None:
                        self.status_sink(f"{count} transactions in {elapsed:.0f} seconds")
                    if self.cancel.is_set():
                        return PerformanceResult(name, ProbeStatus.CANCELLED, count, elapsed)
        except Exception as e:
            elapsed = self.clock() - start
            logger.debug(f"Performance test of {name} aborted: {e!r}")
            return PerformanceResult(name, ProbeStatus.FAILED, count, elapsed, error=e)

        result = PerformanceResult(name, ProbeStatus.COMPLETED, count, elapsed)
        perf_logger.info(
            f"{name:20s} | {count:8d} calls | {elapsed:6.2f}s | {result.rate:8.1f}/s"
        )
        return result
