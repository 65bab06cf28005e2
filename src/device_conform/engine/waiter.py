"""Completion waiter: poll a busy predicate until the device settles."""
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

StatusSink = Callable[[str], None]


class WaitStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    # The busy predicate itself raised
    FAILED = "failed"


@dataclass(frozen=True)
class WaitResult:
    status: WaitStatus
    elapsed: float
    polls: int
    error: Optional[BaseException] = None

    @property
    def completed(self) -> bool:
        return self.status is WaitStatus.COMPLETED


class CompletionWaiter:
    """Blocks while ``busy()`` returns True.

    Each iteration checks cancellation first, then evaluates the predicate,
    so a cancelled wait never touches the device again. There is no
    timeout unless one is passed to ``wait``.
    """

    def __init__(
        self,
        poll_interval: float,
        cancel: threading.Event,
        status_sink: Optional[StatusSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if poll_interval <= 0:
            raise ValueError(f"Poll interval must be positive: {poll_interval}")
        self.poll_interval = poll_interval
        self.cancel = cancel
        self.status_sink = status_sink
        self.clock = clock

    def wait(
        self,
        busy: Callable[[], bool],
        action: str = "",
        timeout: Optional[float] = None,
        status_text: Optional[Callable[[], str]] = None,
    ) -> WaitResult:
        start = self.clock()
        polls = 0

        while True:
            if self.cancel.is_set():
                elapsed = self.clock() - start
                logger.debug(f"{action or 'wait'} cancelled after {polls} polls")
                return WaitResult(WaitStatus.CANCELLED, elapsed, polls)

            polls += 1
            try:
                still_busy = busy()
            except Exception as e:
                elapsed = self.clock() - start
                logger.debug(f"{action or 'wait'} failed after {polls} polls: {e!r}")
                return WaitResult(WaitStatus.FAILED, elapsed, polls, error=e)
            elapsed = self.clock() - start

            if not still_busy:
                logger.debug(f"{action or 'wait'} completed in {elapsed:.1f}s after {polls} polls")
                return WaitResult(WaitStatus.COMPLETED, elapsed, polls)

            if timeout is not None and elapsed > timeout:
                logger.debug(f"{action or 'wait'} timed out after {timeout:.1f}s")
                return WaitResult(WaitStatus.TIMED_OUT, elapsed, polls)

            self._emit(action, elapsed, timeout, status_text)
            self.cancel.wait(self.poll_interval)

    def _emit(
        self,
        action: str,
        elapsed: float,
        timeout: Optional[float],
        status_text: Optional[Callable[[], str]],
    ) -> None:
        if self.status_sink is None:
            return
        if status_text is not None:
            text = status_text()
        elif timeout is not None:
            text = f"{elapsed:.1f} / {timeout:.1f} seconds"
        else:
            text = f"{elapsed:.1f} seconds"
        self.status_sink(f"{action}: {text}" if action else text)
