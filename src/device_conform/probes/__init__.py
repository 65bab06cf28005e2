"""Device probes (transports) and per-category facades."""
from ..config import SessionConfig
from ..engine.errors import ConfigurationError
from .alpaca import AlpacaProbe
from .base import DeviceProbe, to_snake_case
from .facades import (
    CalibratorStatus,
    CoverCalibratorFacade,
    CoverStatus,
    DeviceFacade,
    FocuserFacade,
    ObservingConditionsFacade,
    SafetyMonitorFacade,
)
from .local import LocalProbe

__all__ = [
    "AlpacaProbe",
    "CalibratorStatus",
    "CoverCalibratorFacade",
    "CoverStatus",
    "DeviceFacade",
    "DeviceProbe",
    "FocuserFacade",
    "LocalProbe",
    "ObservingConditionsFacade",
    "SafetyMonitorFacade",
    "create_facade",
    "create_probe",
    "to_snake_case",
]

# Facade registry, keyed by device type
FACADES = {
    "SafetyMonitor": SafetyMonitorFacade,
    "CoverCalibrator": CoverCalibratorFacade,
    "Focuser": FocuserFacade,
    "ObservingConditions": ObservingConditionsFacade,
}


def create_probe(config: SessionConfig) -> DeviceProbe:
    """Factory picking the transport once per session."""
    config.require_device()
    if config.technology == "local":
        return LocalProbe.from_import_path(config.device_type, config.driver)
    if config.technology == "alpaca":
        return AlpacaProbe(
            config.device_type,
            host=config.host,
            port=config.port,
            device_number=config.device_number,
            timeout=config.http_timeout,
        )
    raise ConfigurationError(f"Unknown technology: {config.technology}")


def create_facade(device_type: str, probe: DeviceProbe) -> DeviceFacade:
    if device_type not in FACADES:
        raise ConfigurationError(f"No facade for device type: {device_type}")
    return FACADES[device_type](probe)
