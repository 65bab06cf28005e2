"""Tests for the in-process driver probe and the facades over it."""
import pytest

from device_conform.config import SessionConfig
from device_conform.engine.errors import (
    ConfigurationError,
    MethodNotImplementedError,
    ProbeCreationError,
    PropertyNotImplementedError,
)
from device_conform.probes import (
    AlpacaProbe,
    CalibratorStatus,
    CoverCalibratorFacade,
    CoverStatus,
    FocuserFacade,
    LocalProbe,
    ObservingConditionsFacade,
    SafetyMonitorFacade,
    create_facade,
    create_probe,
    to_snake_case,
)
from fakes import FakeCoverCalibrator, FakeFocuser, FakeObservingConditions, FakeSafetyMonitor


class TestSnakeCase:
    """Tests for contract name translation."""

    @pytest.mark.parametrize("name,expected", [
        ("CoverState", "cover_state"),
        ("TempCompAvailable", "temp_comp_available"),
        ("IsSafe", "is_safe"),
        ("StarFWHM", "star_fwhm"),
        ("TimeSinceLastUpdate", "time_since_last_update"),
        ("Connected", "connected"),
    ])
    def test_to_snake_case(self, name, expected):
        """Contract names map onto snake_case attributes."""
        assert to_snake_case(name) == expected


class TestLocalProbe:
    """Tests for LocalProbe."""

    def test_get_and_set(self):
        """Properties are read and written through attributes."""
        driver = FakeFocuser()
        probe = LocalProbe("Focuser", driver)
        assert probe.get("MaxStep") == 10000
        probe.set("TempComp", True)
        assert driver.temp_comp is True

    def test_missing_property(self):
        """A missing attribute is a property not-implemented error."""
        probe = LocalProbe("Focuser", FakeFocuser())
        with pytest.raises(PropertyNotImplementedError):
            probe.get("Backlash")
        with pytest.raises(PropertyNotImplementedError):
            probe.set("Backlash", 3)

    def test_read_only_property(self):
        """Writing a read-only property is not implemented."""
        probe = LocalProbe("SafetyMonitor", FakeSafetyMonitor())
        with pytest.raises(PropertyNotImplementedError, match="cannot be written"):
            probe.set("IsSafe", True)

    def test_invoke(self):
        """Methods are called with positional parameters."""
        driver = FakeFocuser()
        LocalProbe("Focuser", driver).invoke("Move", Position=1234)
        assert driver.position == 1234

    def test_missing_method(self):
        """A missing method is a method not-implemented error."""
        probe = LocalProbe("CoverCalibrator", FakeCoverCalibrator())
        with pytest.raises(MethodNotImplementedError):
            probe.invoke("HaltCover")

    def test_query_with_params(self):
        """query passes its parameters to the driver method."""
        probe = LocalProbe("ObservingConditions", FakeObservingConditions())
        assert probe.query("SensorDescription", SensorName="Pressure") == "Pressure sensor"

    def test_missing_query(self):
        """A missing query method is a method not-implemented error."""
        probe = LocalProbe("ObservingConditions", FakeSafetyMonitor())
        with pytest.raises(MethodNotImplementedError):
            probe.query("TimeSinceLastUpdate", SensorName="Humidity")

    def test_driver_errors_propagate(self):
        """Errors raised by the driver reach the caller unchanged."""
        probe = LocalProbe("CoverCalibrator", FakeCoverCalibrator())
        with pytest.raises(Exception, match="out of range"):
            probe.invoke("CalibratorOn", Brightness=500)

    def test_context_manager_disposes(self):
        """Leaving the context releases the driver."""
        driver = FakeFocuser()
        with LocalProbe("Focuser", driver) as probe:
            assert probe.is_open
        assert not probe.is_open
        assert driver.disposed

    def test_close_without_open(self):
        """Closing an unopened probe does not dispose."""
        driver = FakeFocuser()
        LocalProbe("Focuser", driver).close()
        assert not driver.disposed

    def test_from_import_path(self):
        """A driver class is instantiated from module:Class."""
        probe = LocalProbe.from_import_path("Focuser", "collections:OrderedDict")
        assert type(probe.driver).__name__ == "OrderedDict"
        assert "OrderedDict" in probe.description

    @pytest.mark.parametrize("path", [
        "no_colon",
        "device_conform_missing_module:Driver",
        "collections:NoSuchClass",
    ])
    def test_from_import_path_errors(self, path):
        """Bad import paths raise ProbeCreationError."""
        with pytest.raises(ProbeCreationError):
            LocalProbe.from_import_path("Focuser", path)


class TestCreateProbe:
    """Tests for the probe factory."""

    def test_local(self):
        """Local technology builds a LocalProbe."""
        config = SessionConfig(device_type="Focuser", driver="collections:OrderedDict")
        assert isinstance(create_probe(config), LocalProbe)

    def test_alpaca(self):
        """Alpaca technology builds an AlpacaProbe."""
        config = SessionConfig(device_type="Focuser", technology="alpaca", host="h", device_number=3)
        probe = create_probe(config)
        assert isinstance(probe, AlpacaProbe)
        assert probe.device_number == 3

    def test_requires_device(self):
        """A config without a device type is rejected."""
        with pytest.raises(ConfigurationError):
            create_probe(SessionConfig())

    def test_unknown_facade(self):
        """Unknown device types have no facade."""
        with pytest.raises(ConfigurationError):
            create_facade("Telescope", LocalProbe("Telescope", object()))


class TestFacades:
    """Tests for the per-category facades."""

    def test_common_members(self):
        """Common members and Connected round-trip."""
        driver = FakeSafetyMonitor()
        facade = create_facade("SafetyMonitor", LocalProbe("SafetyMonitor", driver))
        assert isinstance(facade, SafetyMonitorFacade)
        facade.connected = True
        assert driver.connected is True
        assert facade.interface_version == 1
        assert facade.supported_actions == []
        assert facade.is_safe is True

    def test_cover_calibrator_enums(self):
        """State properties are converted to enums."""
        facade = CoverCalibratorFacade(LocalProbe("CoverCalibrator", FakeCoverCalibrator()))
        assert facade.cover_state is CoverStatus.Closed
        facade.open_cover()
        assert facade.cover_state is CoverStatus.Open
        facade.calibrator_on(50)
        assert facade.calibrator_state is CalibratorStatus.Ready
        assert facade.brightness == 50

    def test_focuser(self):
        """Focuser members map onto the driver."""
        driver = FakeFocuser()
        facade = FocuserFacade(LocalProbe("Focuser", driver))
        facade.temp_comp = True
        facade.move(20000)
        assert driver.temp_comp is True
        assert facade.position == 10000

    def test_observing_conditions(self):
        """Sensors are read by contract name."""
        facade = ObservingConditionsFacade(LocalProbe("ObservingConditions", FakeObservingConditions()))
        assert facade.sensor("Humidity") == 65.0
        assert facade.time_since_last_update("") == 1.0
        with pytest.raises(KeyError):
            facade.sensor("Colour")
        with pytest.raises(PropertyNotImplementedError):
            facade.sensor("StarFWHM")
