#!/usr/bin/env python3
"""Conformance test CLI runner.

Usage:
    device-conform [--config FILE] [--device-type TYPE] [--technology local|alpaca] ...

Settings come from the configuration file if one is given, otherwise
from CONFORM_* environment variables; command line options override both.

Exit codes:
    0    Device is conformant (no errors or issues)
    1    Errors or issues were found, or the session could not start
    130  Session was cancelled
"""
import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from .config import DEVICE_TYPES, TECHNOLOGIES, SessionConfig
from .engine.errors import ConformError
from .engine.outcome import LoggingReporter
from .manager import ConformanceTestManager
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="device-conform",
        description="Run conformance checks against a device driver",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Local driver class
    device-conform --device-type Focuser --driver my_drivers.focuser:Focuser

    # Alpaca device over HTTP
    device-conform --device-type SafetyMonitor --technology alpaca --host 10.0.0.5

    # Settings from a file, JSON report
    device-conform --config focuser.yaml --report focuser.json

Environment:
    CONFORM_DEVICE_TYPE, CONFORM_TECHNOLOGY, CONFORM_DRIVER, CONFORM_HOST, CONFORM_PORT
    CONFORM_LOG_LEVEL=DEBUG    Verbose console output
""",
    )
    parser.add_argument("--config", type=Path, help="YAML session configuration file")
    parser.add_argument("--device-type", type=str, help=f"One of: {', '.join(DEVICE_TYPES)}")
    parser.add_argument("--technology", choices=TECHNOLOGIES, help="Driver technology")
    parser.add_argument("--driver", type=str, help="Local driver import path (module:Class)")
    parser.add_argument("--host", type=str, help="Alpaca host")
    parser.add_argument("--port", type=int, help="Alpaca port")
    parser.add_argument("--device-number", type=int, help="Alpaca device number")
    parser.add_argument(
        "--performance",
        action="store_true",
        default=None,
        help="Run performance checks",
    )
    parser.add_argument("--report", type=Path, help="Write a JSON report to this file")
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to the console only",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def load_config(args: argparse.Namespace) -> SessionConfig:
    """Combine file or environment settings with command line overrides."""
    if args.config:
        config = SessionConfig.from_file(args.config)
    else:
        config = SessionConfig.from_env()

    return config.with_overrides(
        device_type=args.device_type,
        technology=args.technology,
        driver=args.driver,
        host=args.host,
        port=args.port,
        device_number=args.device_number,
        test_performance=args.performance,
        report_file=str(args.report) if args.report else None,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the conformance CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(level="DEBUG" if args.verbose else None, log_to_file=not args.no_log_file)

    try:
        config = load_config(args)
    except ConformError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info("=" * 60)
    logger.info("Device Conformance Checker")
    logger.info("=" * 60)
    logger.info(f"Device type: {config.device_type or 'not set'}")
    logger.info(f"Technology: {config.technology}")
    if config.technology == "alpaca":
        logger.info(f"Device: {config.base_url} #{config.device_number}")
    else:
        logger.info(f"Driver: {config.driver or 'not set'}")
    logger.info(f"Performance checks: {'on' if config.test_performance else 'off'}")
    logger.info("=" * 60)

    cancel = threading.Event()

    def on_interrupt(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        logger.warning("Cancelling, waiting for the current check to finish (Ctrl+C again to abort)")
        cancel.set()

    previous = signal.signal(signal.SIGINT, on_interrupt)
    manager = ConformanceTestManager(config, cancel=cancel, reporter=LoggingReporter())

    try:
        results = manager.run()
    except KeyboardInterrupt:
        logger.warning("Conformance run interrupted by user")
        return 130
    except ConformError as e:
        logger.error(f"Conformance run could not start: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Conformance run failed with exception: {e}")
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)

    logger.info("")
    logger.info("=" * 60)
    logger.info("CONFORMANCE RESULTS")
    logger.info("=" * 60)
    if manager.report is not None:
        for stage in manager.report.stages:
            stage_status = "OK" if stage.success else "FAIL"
            logger.info(f"  {stage.stage.value}: {stage_status} ({stage.duration_ms:.0f}ms)")
            if stage.error:
                logger.info(f"    Error: {stage.error}")
    logger.info("")
    logger.info(f"Errors: {len(results.errors)}")
    logger.info(f"Issues: {len(results.issues)}")
    logger.info(f"Warnings: {len(results.warnings)}")
    if results.abandoned_at:
        logger.info(f"Abandoned at: {results.abandoned_at}")
    if config.report_file:
        logger.info(f"Report: {config.report_file}")
    logger.info("=" * 60)

    if results.cancelled:
        logger.warning("CONFORMANCE RUN CANCELLED")
        return 130
    if results.conformant:
        logger.info("DEVICE IS CONFORMANT")
        return 0
    logger.error("DEVICE IS NOT CONFORMANT")
    return 1


if __name__ == "__main__":
    sys.exit(main())
