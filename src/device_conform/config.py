"""Session configuration for a conformance run.

Loaded from a YAML file, from environment variables, or built directly
and then overridden from the command line.

Environment variables:
- CONFORM_DEVICE_TYPE: Device type to test (e.g. Focuser)
- CONFORM_TECHNOLOGY: "local" or "alpaca"
- CONFORM_DRIVER: Import path of a local driver class ("package.module:Class")
- CONFORM_HOST / CONFORM_PORT / CONFORM_DEVICE_NUMBER: Alpaca device address
- CONFORM_TEST_PERFORMANCE: Set to "1" to run performance checks
- CONFORM_REPORT_FILE: Path for the JSON report
"""
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .engine.errors import ConfigurationError, ErrorCodeTable

logger = logging.getLogger(__name__)

TECHNOLOGIES = ("local", "alpaca")

DEVICE_TYPES = (
    "SafetyMonitor",
    "CoverCalibrator",
    "Focuser",
    "ObservingConditions",
)

DEFAULT_ALPACA_PORT = 11111


def normalise_device_type(name: str) -> str:
    """Accept any capitalisation of a supported device type."""
    for device_type in DEVICE_TYPES:
        if device_type.lower() == name.strip().lower():
            return device_type
    raise ConfigurationError(
        f"Unsupported device type: {name}. Supported: {', '.join(DEVICE_TYPES)}"
    )


@dataclass
class SessionConfig:
    """Settings for one device session."""
    # Device
    device_type: str = ""
    technology: str = "local"
    driver: str = ""
    host: str = "127.0.0.1"
    port: int = DEFAULT_ALPACA_PORT
    device_number: int = 0
    http_timeout: float = 10.0

    # Engine
    retry_max_attempts: int = 5
    retry_delay: float = 1.0
    performance_duration: float = 5.0
    poll_interval: float = 0.2
    operation_timeout: float = 60.0
    move_tolerance: int = 2
    error_codes: dict[str, list] = field(default_factory=dict)

    # Switches
    test_properties: bool = True
    test_methods: bool = True
    test_performance: bool = False
    display_method_calls: bool = False

    # Report
    report_file: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError on the first invalid setting."""
        if self.device_type:
            self.device_type = normalise_device_type(self.device_type)
        if self.technology not in TECHNOLOGIES:
            raise ConfigurationError(
                f"Unknown technology: {self.technology}. Expected one of {', '.join(TECHNOLOGIES)}"
            )
        if self.retry_max_attempts < 1:
            raise ConfigurationError(f"retry_max_attempts must be at least 1: {self.retry_max_attempts}")
        if self.retry_delay < 0:
            raise ConfigurationError(f"retry_delay must not be negative: {self.retry_delay}")
        if self.performance_duration <= 0:
            raise ConfigurationError(
                f"performance_duration must be positive: {self.performance_duration}"
            )
        if self.poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be positive: {self.poll_interval}")
        if self.operation_timeout <= 0:
            raise ConfigurationError(f"operation_timeout must be positive: {self.operation_timeout}")
        if self.move_tolerance < 0:
            raise ConfigurationError(f"move_tolerance must not be negative: {self.move_tolerance}")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}")
        if self.device_number < 0:
            raise ConfigurationError(f"Invalid device number: {self.device_number}")
        try:
            ErrorCodeTable.from_dict(self.error_codes)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid error code table: {e}") from e

    def require_device(self) -> None:
        """Check the settings needed to actually reach a device."""
        if not self.device_type:
            raise ConfigurationError("No device type configured")
        if self.technology == "local" and not self.driver:
            raise ConfigurationError("Local technology needs a driver import path (module:Class)")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionConfig":
        """Build from a flat or sectioned mapping.

        Sectioned layout (as written in YAML)::

            device: {type: Focuser, technology: alpaca, host: 10.0.0.5}
            engine: {retry_delay: 0.5}
            tests: {performance: true}
            error_codes: {invalid_operation: [0x80040410]}
            report_file: focuser.json
        """
        data = dict(data or {})
        flat: dict[str, Any] = {}

        device = data.pop("device", None) or {}
        for key, value in device.items():
            flat["device_type" if key == "type" else key] = value

        flat.update(data.pop("engine", None) or {})

        for key, value in (data.pop("tests", None) or {}).items():
            flat[key if key.startswith(("test_", "display_")) else f"test_{key}"] = value

        flat.update(data)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(flat) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        try:
            return cls(**flat)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "SessionConfig":
        """Load session config from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")

        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """Load session config from CONFORM_* environment variables."""
        env = os.environ
        try:
            return cls(
                device_type=env.get("CONFORM_DEVICE_TYPE", ""),
                technology=env.get("CONFORM_TECHNOLOGY", "local"),
                driver=env.get("CONFORM_DRIVER", ""),
                host=env.get("CONFORM_HOST", "127.0.0.1"),
                port=int(env.get("CONFORM_PORT", str(DEFAULT_ALPACA_PORT))),
                device_number=int(env.get("CONFORM_DEVICE_NUMBER", "0")),
                test_performance=env.get("CONFORM_TEST_PERFORMANCE", "0") == "1",
                report_file=env.get("CONFORM_REPORT_FILE") or None,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment setting: {e}") from e

    def with_overrides(self, **overrides: Any) -> "SessionConfig":
        """Copy with every non-None override applied, then revalidated."""
        data = asdict(self)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return SessionConfig(**data)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"
