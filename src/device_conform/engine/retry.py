"""Bounded fixed-delay retry for transient "not ready" driver errors."""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_fixed,
)

from .errors import ErrorClassifier, ErrorKind
from .members import MemberSpec

logger = logging.getLogger(__name__)


class RetryStatus(Enum):
    SUCCEEDED = "succeeded"
    # A non-transient error; never retried
    FAILED = "failed"
    # Still "not ready" after every attempt
    PERSISTED = "persisted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RetryResult:
    status: RetryStatus
    attempts: int
    value: Any = None
    error: Optional[BaseException] = None
    kind: Optional[ErrorKind] = None

    @property
    def succeeded(self) -> bool:
        return self.status is RetryStatus.SUCCEEDED


class RetryPolicy:
    """Retries an operation only while it raises InvalidOperation.

    ``max_attempts`` counts invocations, so an operation that is never
    ready is called exactly ``max_attempts`` times. The delay between
    attempts is interruptible by the cancellation event.
    """

    def __init__(
        self,
        classifier: ErrorClassifier,
        cancel: threading.Event,
        max_attempts: int = 5,
        delay: float = 1.0,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {max_attempts}")
        if delay < 0:
            raise ValueError(f"delay must not be negative: {delay}")
        self.classifier = classifier
        self.cancel = cancel
        self.max_attempts = max_attempts
        self.delay = delay

    def _retrying(self, spec: Optional[MemberSpec]) -> Retrying:
        def is_transient(error: BaseException) -> bool:
            return self.classifier.classify(error, spec) is ErrorKind.INVALID_OPERATION

        return Retrying(
            stop=stop_after_attempt(self.max_attempts) | stop_when_event_set(self.cancel),
            wait=wait_fixed(self.delay),
            retry=retry_if_exception(is_transient),
            sleep=self.cancel.wait,
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=False,
        )

    def run(self, operation: Callable[[], Any], spec: Optional[MemberSpec] = None) -> RetryResult:
        attempts = 0
        value = None
        last_error: Optional[BaseException] = None

        try:
            for attempt in self._retrying(spec):
                # The delay returns early on cancel; never start another call after it
                if self.cancel.is_set():
                    return self._cancelled(attempts, last_error)
                with attempt:
                    attempts += 1
                    value = operation()
                if attempt.retry_state.outcome.failed:
                    last_error = attempt.retry_state.outcome.exception()
        except RetryError as e:
            last_error = e.last_attempt.exception()
            if self.cancel.is_set():
                return self._cancelled(attempts, last_error)
            logger.info(
                f"{spec.name if spec else 'operation'}: InvalidOperation persisted "
                f"after {attempts} attempts ({(attempts - 1) * self.delay:.1f}s of retry delay)"
            )
            return RetryResult(
                RetryStatus.PERSISTED, attempts, error=last_error, kind=ErrorKind.INVALID_OPERATION
            )
        except Exception as e:
            return RetryResult(
                RetryStatus.FAILED, attempts, error=e, kind=self.classifier.classify(e, spec)
            )

        return RetryResult(RetryStatus.SUCCEEDED, attempts, value=value)

    @staticmethod
    def _cancelled(attempts: int, last_error: Optional[BaseException]) -> RetryResult:
        kind = ErrorKind.INVALID_OPERATION if last_error is not None else None
        return RetryResult(RetryStatus.CANCELLED, attempts, error=last_error, kind=kind)
