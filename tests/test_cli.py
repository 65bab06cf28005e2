"""Tests for the command line runner."""
import json
import os

import pytest

from device_conform.cli import build_parser, load_config, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep CONFORM_* settings from the caller's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("CONFORM_"):
            monkeypatch.delenv(name)


class TestParser:
    """Tests for argument parsing and config loading."""

    def test_overrides(self):
        """Command line options override environment settings."""
        args = build_parser().parse_args([
            "--device-type", "focuser",
            "--technology", "alpaca",
            "--host", "10.0.0.5",
            "--port", "4567",
            "--performance",
        ])
        config = load_config(args)
        assert config.device_type == "Focuser"
        assert config.host == "10.0.0.5"
        assert config.port == 4567
        assert config.test_performance is True

    def test_performance_unset_keeps_file_value(self, tmp_path):
        """Leaving out --performance keeps the configured value."""
        path = tmp_path / "session.yaml"
        path.write_text("device:\n  type: SafetyMonitor\ntests:\n  performance: true\n")
        config = load_config(build_parser().parse_args(["--config", str(path)]))
        assert config.test_performance is True

    def test_bad_technology(self):
        """Unknown technologies are rejected by argparse."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--technology", "serial"])


class TestMain:
    """Tests for the main entry point and its exit codes."""

    def test_conformant_driver(self):
        """A conformant driver exits 0."""
        code = main([
            "--device-type", "SafetyMonitor",
            "--driver", "fakes:FakeSafetyMonitor",
            "--no-log-file",
        ])
        assert code == 0

    def test_non_conformant_driver(self):
        """Issues give exit code 1."""
        code = main([
            "--device-type", "SafetyMonitor",
            "--driver", "fakes:UnsafeBeforeConnectMonitor",
            "--no-log-file",
        ])
        assert code == 1

    def test_unknown_device_type(self):
        """An unsupported device type exits 1 without running."""
        assert main(["--device-type", "Telescope", "--no-log-file"]) == 1

    def test_missing_driver(self):
        """A local session without a driver exits 1."""
        assert main(["--device-type", "Focuser", "--no-log-file"]) == 1

    def test_unimportable_driver(self):
        """A driver that cannot be imported exits 1."""
        code = main([
            "--device-type", "Focuser",
            "--driver", "fakes:NoSuchDriver",
            "--no-log-file",
        ])
        assert code == 1

    def test_report(self, tmp_path):
        """--report writes the JSON report."""
        path = tmp_path / "monitor.json"
        code = main([
            "--device-type", "SafetyMonitor",
            "--driver", "fakes:FakeSafetyMonitor",
            "--report", str(path),
            "--no-log-file",
        ])
        assert code == 0
        data = json.loads(path.read_text())
        assert data["device_type"] == "SafetyMonitor"
        assert data["conformant"] is True

    def test_yaml_config(self, tmp_path):
        """A session can be described entirely in YAML."""
        path = tmp_path / "focuser.yaml"
        path.write_text(
            "device:\n"
            "  type: Focuser\n"
            "  driver: fakes:FakeFocuser\n"
            "engine:\n"
            "  retry_delay: 0\n"
            "  poll_interval: 0.01\n"
        )
        assert main(["--config", str(path), "--no-log-file"]) == 0

    def test_missing_config_file(self, tmp_path):
        """A missing configuration file exits 1."""
        assert main(["--config", str(tmp_path / "nope.yaml"), "--no-log-file"]) == 1
