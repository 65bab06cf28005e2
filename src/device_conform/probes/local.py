"""In-process driver probe."""
import importlib
import logging
from typing import Any

from ..engine.errors import (
    MethodNotImplementedError,
    ProbeCreationError,
    PropertyNotImplementedError,
)
from .base import DeviceProbe, to_snake_case

logger = logging.getLogger(__name__)


class LocalProbe(DeviceProbe):
    """Probe wrapping a Python driver object.

    Contract members map onto snake_case attributes: properties are plain
    (or ``@property``) attributes, methods are callables. Parameters are
    passed positionally in the order given. An attribute the driver does
    not define counts as not implemented.
    """

    def __init__(self, device_type: str, driver: Any):
        super().__init__(device_type)
        self.driver = driver

    @classmethod
    def from_import_path(cls, device_type: str, import_path: str) -> "LocalProbe":
        """Instantiate ``package.module:Class`` with no arguments."""
        module_name, sep, class_name = import_path.partition(":")
        if not sep or not module_name or not class_name:
            raise ProbeCreationError(
                f"Driver import path must look like 'package.module:Class': {import_path}"
            )

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ProbeCreationError(f"Cannot import driver module {module_name}: {e}") from e

        driver_class = getattr(module, class_name, None)
        if driver_class is None:
            raise ProbeCreationError(f"Module {module_name} has no class {class_name}")

        try:
            driver = driver_class()
        except Exception as e:
            raise ProbeCreationError(f"Failed to create driver {import_path}: {e}") from e

        logger.info(f"Created local {device_type} driver {import_path}")
        return cls(device_type, driver)

    @property
    def description(self) -> str:
        return f"local {self.device_type} driver {type(self.driver).__name__}"

    def _has(self, attribute: str) -> bool:
        # dir() does not run property getters
        return attribute in dir(self.driver)

    def get(self, member: str) -> Any:
        attribute = to_snake_case(member)
        if not self._has(attribute):
            raise PropertyNotImplementedError(f"Property {member} is not implemented")
        return getattr(self.driver, attribute)

    def query(self, member: str, **params: Any) -> Any:
        return self.invoke(member, **params)

    def set(self, member: str, value: Any) -> None:
        attribute = to_snake_case(member)
        if not self._has(attribute):
            raise PropertyNotImplementedError(f"Property {member} is not implemented")

        try:
            setattr(self.driver, attribute, value)
        except AttributeError as e:
            # Read-only property
            raise PropertyNotImplementedError(f"Property {member} cannot be written: {e}") from e

    def invoke(self, member: str, **params: Any) -> Any:
        attribute = to_snake_case(member)
        if not self._has(attribute):
            raise MethodNotImplementedError(f"Method {member} is not implemented")
        return getattr(self.driver, attribute)(*params.values())

    def close(self) -> None:
        dispose = getattr(self.driver, "dispose", None)
        if self.is_open and callable(dispose):
            try:
                dispose()
            except Exception as e:
                logger.warning(f"Driver dispose failed: {e}")
        super().close()
