"""Conformance session manager.

Session stages, in order:
1. PRE_CONNECT     - Checks that must run while disconnected
2. CONNECT         - Set Connected True; failure abandons the session
3. COMMON          - Members every device type implements
4. CAN_PROPERTIES  - Capability flags
5. PRE_RUN         - Device preparation before member tests
6. PROPERTIES      - Property checks
7. METHODS         - Method checks
8. PERFORMANCE     - Throughput probes (opt-in)
9. POST_RUN        - Device restoration
10. DISCONNECT     - Set Connected False (always attempted)

The probe is released on every exit path, including cancellation.
"""
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .config import SessionConfig
from .engine.orchestrator import SessionContext, TestOrchestrator
from .engine.outcome import ConformResults, Outcome, Reporter, Severity
from .engine.waiter import StatusSink
from .probes import DeviceProbe, create_facade, create_probe
from .testers import DeviceTester, create_tester
from .utils.logging_config import PerfStats, perf_logger, timed_section_sync

logger = logging.getLogger(__name__)


class SessionStage(Enum):
    """Conformance session stages."""
    PRE_CONNECT = "pre_connect"
    CONNECT = "connect"
    COMMON = "common"
    CAN_PROPERTIES = "can_properties"
    PRE_RUN = "pre_run"
    PROPERTIES = "properties"
    METHODS = "methods"
    PERFORMANCE = "performance"
    POST_RUN = "post_run"
    DISCONNECT = "disconnect"


@dataclass
class StageRecord:
    """Timing of one executed stage."""
    stage: SessionStage
    success: bool
    duration_ms: float = 0
    error: Optional[str] = None


@dataclass
class SessionReport:
    """Results of one session plus the stages that ran."""
    timestamp: str
    device: str
    results: ConformResults
    stages: list[StageRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "timestamp": self.timestamp,
            "device": self.device,
            "stages": [
                {
                    "stage": s.stage.value,
                    "success": s.success,
                    "duration_ms": round(s.duration_ms, 1),
                    "error": s.error,
                }
                for s in self.stages
            ],
        }
        data.update(self.results.to_dict())
        return data


class ConformanceTestManager:
    """Runs one device session from probe creation to release."""

    def __init__(
        self,
        config: SessionConfig,
        cancel: Optional[threading.Event] = None,
        reporter: Optional[Reporter] = None,
        status_sink: Optional[StatusSink] = None,
        probe_factory: Callable[[SessionConfig], DeviceProbe] = create_probe,
    ):
        self.config = config
        self.cancel = cancel or threading.Event()
        self.reporter = reporter
        self.status_sink = status_sink
        self.probe_factory = probe_factory
        self.stats = PerfStats()
        self.report: Optional[SessionReport] = None

    def _stages(self, tester: DeviceTester) -> list[tuple[SessionStage, Callable[[], None]]]:
        config = self.config
        plan = [
            (SessionStage.COMMON, True, tester.check_common),
            (SessionStage.CAN_PROPERTIES, tester.has_can_properties, tester.read_can_properties),
            (SessionStage.PRE_RUN, tester.has_pre_run_check, tester.pre_run_check),
            (SessionStage.PROPERTIES, tester.has_properties and config.test_properties, tester.check_properties),
            (SessionStage.METHODS, tester.has_methods and config.test_methods, tester.check_methods),
            (
                SessionStage.PERFORMANCE,
                tester.has_performance_check and config.test_performance,
                tester.check_performance,
            ),
            (SessionStage.POST_RUN, tester.has_post_run_check, tester.post_run_check),
        ]
        return [(stage, run) for stage, enabled, run in plan if enabled]

    def _run_stage(
        self,
        report: SessionReport,
        stage: SessionStage,
        run: Callable[[], None],
        orchestrator: TestOrchestrator,
    ) -> bool:
        """Run one stage; False means the session must be abandoned."""
        record = StageRecord(stage=stage, success=True)
        report.stages.append(record)
        start = time.perf_counter()
        try:
            with timed_section_sync(stage.value, device=self.config.device_type, stats=self.stats):
                run()
        except Exception as e:
            logger.exception(f"{stage.value} stage failed: {e}")
            record.success = False
            record.error = str(e)
            report.results.abandoned_at = stage.value
            orchestrator.record(Outcome(
                stage.value, Severity.ISSUE,
                f"Testing abandoned after an unexpected error in the {stage.value} stage: {e}",
            ))
            return False
        finally:
            record.duration_ms = (time.perf_counter() - start) * 1000
        return True

    def run(self) -> ConformResults:
        """Run the session and return its results."""
        self.config.require_device()
        device_type = self.config.device_type

        results = ConformResults(device_type=device_type)
        context = SessionContext.from_config(
            self.config, cancel=self.cancel, reporter=self.reporter, status_sink=self.status_sink
        )
        context.stats = self.stats
        orchestrator = TestOrchestrator(context, results)

        probe = self.probe_factory(self.config)
        report = SessionReport(
            timestamp=datetime.now(timezone.utc).isoformat(),
            device=probe.description,
            results=results,
        )
        self.report = report
        logger.info(f"Starting conformance session for {probe.description}")

        with probe:
            device = create_facade(device_type, probe)
            tester = create_tester(device_type, device, orchestrator)
            self._run_session(report, tester, orchestrator)

        if self.cancel.is_set():
            results.cancelled = True

        logger.info(results.summary())
        perf_logger.info(self.stats.summary())

        if self.config.report_file:
            self.write_report(Path(self.config.report_file))

        return results

    def _run_session(self, report: SessionReport, tester: DeviceTester, orchestrator: TestOrchestrator) -> None:
        device = tester.device

        if tester.has_pre_connect_check:
            if not self._run_stage(report, SessionStage.PRE_CONNECT, tester.pre_connect_checks, orchestrator):
                return

        if not self._connect(report, device, orchestrator):
            return

        try:
            for stage, run in self._stages(tester):
                if self.cancel.is_set():
                    logger.warning(f"Session cancelled before the {stage.value} stage")
                    report.results.cancelled = True
                    break
                if not self._run_stage(report, stage, run, orchestrator):
                    break
        finally:
            self._disconnect(report, device)

    def _connect(self, report: SessionReport, device, orchestrator: TestOrchestrator) -> bool:
        record = StageRecord(stage=SessionStage.CONNECT, success=True)
        report.stages.append(record)

        def connect() -> None:
            device.connected = True

        _, error = orchestrator.read(connect)
        if error is None:
            logger.info("Connected to device")
            return True

        record.success = False
        record.error = str(error)
        report.results.abandoned_at = SessionStage.CONNECT.value
        orchestrator.record(Outcome(
            "Connected", Severity.ISSUE,
            f"Unable to set Connected to True, remaining tests abandoned: {type(error).__name__}: {error}",
        ))
        return False

    def _disconnect(self, report: SessionReport, device) -> None:
        record = StageRecord(stage=SessionStage.DISCONNECT, success=True)
        report.stages.append(record)
        try:
            device.connected = False
        except Exception as e:
            logger.warning(f"Failed to set Connected to False: {e}")
            record.success = False
            record.error = str(e)

    def write_report(self, path: Path) -> Path:
        """Write the session report as JSON."""
        if self.report is None:
            raise RuntimeError("No session has run yet")
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.report.to_dict(), f, indent=2, default=str)
        logger.info(f"Report written to {path}")
        return path
