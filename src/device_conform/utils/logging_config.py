"""Logging configuration for device-conform.

Provides:
- Console output for following a conformance run live
- File-based logging with rotation
- A separate performance log for stage timings and probe throughput

Environment Variables:
    CONFORM_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    CONFORM_LOG_FILE: Path to log file (default: ~/.device-conform/conform.log)
    CONFORM_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    CONFORM_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from device_conform.utils.logging_config import setup_logging, timed_section_sync

    setup_logging()  # Call once at startup

    with timed_section_sync("properties", device="Focuser"):
        tester.check_properties()
"""
import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("conform.perf")
main_logger = logging.getLogger("conform")

_HANDLER_MARK = "_device_conform_handler"


def get_log_level(override: Optional[str] = None) -> int:
    """Get log level from an explicit override or the environment."""
    level_str = (override or os.environ.get("CONFORM_LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".device-conform" / "conform.log"
    path_str = os.environ.get("CONFORM_LOG_FILE", str(default_path))
    return Path(path_str).expanduser()


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARK, True)
    return handler


def _remove_own_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(level: Optional[str] = None, log_to_file: bool = True) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects CONFORM_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics

    Calling it again replaces the handlers it installed earlier.
    """
    log_level = get_log_level(level)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = _mark(logging.StreamHandler())
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    handlers: list[logging.Handler] = [console_handler]
    perf_handlers: list[logging.Handler] = [console_handler]

    log_file = get_log_file()
    perf_log_file = log_file.parent / "conform-perf.log"
    if log_to_file:
        max_size_mb = int(os.environ.get("CONFORM_LOG_MAX_SIZE", "10"))
        backup_count = int(os.environ.get("CONFORM_LOG_BACKUPS", "5"))
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = _mark(RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8"
        ))
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(main_format)
        handlers.append(file_handler)

        perf_handler = _mark(RotatingFileHandler(
            perf_log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8"
        ))
        perf_handler.setLevel(logging.DEBUG)
        perf_handler.setFormatter(perf_format)
        perf_handlers.append(perf_handler)

    # "conform" carries results and perf, "device_conform" the module loggers
    for name in ("conform", "device_conform"):
        logger = logging.getLogger(name)
        _remove_own_handlers(logger)
        logger.setLevel(logging.DEBUG)
        for handler in handlers:
            logger.addHandler(handler)

    _remove_own_handlers(perf_logger)
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.propagate = False
    for handler in perf_handlers:
        perf_logger.addHandler(handler)

    main_logger.info(
        f"Logging initialized: level={logging.getLevelName(log_level)}, "
        f"file={log_file if log_to_file else 'disabled'}"
    )
    if log_to_file:
        perf_logger.info(f"Performance logging to: {perf_log_file}")


@contextmanager
def timed_section_sync(
    operation: str,
    device: Optional[str] = None,
    stats: Optional["PerfStats"] = None,
    **extra,
):
    """Sync context manager for timing code sections.

    Usage:
        with timed_section_sync("methods", device="CoverCalibrator", stats=stats):
            tester.check_methods()
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {device or 'N/A':20s} | {elapsed:10.2f}ms | OK"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
        if stats is not None:
            stats.record(operation, elapsed)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {device or 'N/A':20s} | {elapsed:10.2f}ms | FAIL: {e}"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        if stats is not None:
            stats.record(operation, elapsed)
        raise


class PerfStats:
    """Collect and report performance statistics for one session.

    Stage timings are recorded in milliseconds; performance probe
    rates in transactions per second.

    Usage:
        stats = PerfStats()
        stats.record("properties", 1520.5)
        stats.record_rate("Position", 7.4)
        print(stats.summary())
    """

    def __init__(self):
        self._data: dict[str, list[float]] = {}
        self._rates: dict[str, float] = {}

    def record(self, operation: str, duration_ms: float) -> None:
        """Record a timing measurement."""
        if operation not in self._data:
            self._data[operation] = []
        self._data[operation].append(duration_ms)

    def record_rate(self, member: str, rate: float) -> None:
        """Record a measured transaction rate."""
        self._rates[member] = rate

    @property
    def rates(self) -> dict[str, float]:
        return dict(self._rates)

    def summary(self) -> str:
        """Generate summary statistics."""
        lines = ["Performance Summary", "=" * 60]

        for op, times in sorted(self._data.items()):
            if not times:
                continue
            count = len(times)
            total = sum(times)
            avg = total / count

            lines.append(
                f"{op:20s} | count={count:4d} | "
                f"avg={avg:10.2f}ms | total={total:10.2f}ms"
            )

        for member, rate in sorted(self._rates.items()):
            lines.append(f"{member:20s} | rate={rate:8.1f}/s")

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all recorded data."""
        self._data.clear()
        self._rates.clear()
