"""Shared fixtures."""
import threading

import pytest

from device_conform.engine.orchestrator import SessionContext, TestOrchestrator
from device_conform.engine.outcome import ConformResults
from fakes import ListReporter


@pytest.fixture
def cancel():
    return threading.Event()


@pytest.fixture
def reporter():
    return ListReporter()


@pytest.fixture
def context(cancel, reporter):
    """Session context with no retry delay and a fast poll."""
    return SessionContext.create(
        cancel=cancel,
        reporter=reporter,
        retry_max_attempts=3,
        retry_delay=0,
        performance_duration=0.05,
        poll_interval=0.01,
        operation_timeout=5.0,
    )


@pytest.fixture
def orch(context):
    return TestOrchestrator(context, ConformResults(device_type="Test"))
