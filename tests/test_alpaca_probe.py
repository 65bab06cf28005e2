"""Tests for the Alpaca REST probe."""
import json
from urllib.parse import parse_qs

import httpx
import pytest

from device_conform.engine.errors import (
    DriverError,
    ErrorClassifier,
    ErrorKind,
    ProbeCreationError,
)
from device_conform.probes.alpaca import AlpacaProbe, format_value


class FakeAlpacaDevice:
    """Records requests and answers from a member -> response table."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        member = request.url.path.rsplit("/", 1)[-1]
        response = self.responses.get(member, {"Value": None})
        if isinstance(response, httpx.Response):
            return response
        body = {"ErrorNumber": 0, "ErrorMessage": "", "ClientTransactionID": 0, "ServerTransactionID": 1}
        body.update(response)
        return httpx.Response(200, json=body)

    def form(self, index=-1) -> dict:
        return {k: v[0] for k, v in parse_qs(self.requests[index].content.decode()).items()}


@pytest.fixture
def device():
    return FakeAlpacaDevice({
        "position": {"Value": 1234},
        "ismoving": {"Value": False},
        "halt": {"ErrorNumber": 0x400, "ErrorMessage": "Halt is not implemented"},
        "temperature": {"ErrorNumber": 0x40B, "ErrorMessage": "Sensor not ready"},
    })


@pytest.fixture
def probe(device):
    probe = AlpacaProbe("Focuser", "127.0.0.1", 11111, device_number=2, transport=httpx.MockTransport(device))
    probe.open()
    yield probe
    probe.close()


class TestFormatValue:
    """Tests for form value rendering."""

    def test_bool(self):
        """Booleans use the capitalised form."""
        assert format_value(True) == "True"
        assert format_value(False) == "False"

    def test_numbers(self):
        """Numbers are rendered with str."""
        assert format_value(5) == "5"
        assert format_value(2.5) == "2.5"


class TestAlpacaProbe:
    """Tests for AlpacaProbe."""

    def test_get_url_and_params(self, probe, device):
        """GET goes to the device member URL with client ids."""
        assert probe.get("Position") == 1234
        request = device.requests[-1]
        assert request.method == "GET"
        assert request.url.path == "/api/v1/focuser/2/position"
        assert request.url.params["ClientID"] == "1"
        assert request.url.params["ClientTransactionID"] == "1"

    def test_transaction_ids_increase(self, probe, device):
        """Every request gets a new transaction id."""
        probe.get("Position")
        probe.get("IsMoving")
        ids = [r.url.params["ClientTransactionID"] for r in device.requests]
        assert ids == ["1", "2"]

    def test_set_is_form_put(self, probe, device):
        """Property writes are form encoded PUTs."""
        probe.set("TempComp", True)
        request = device.requests[-1]
        assert request.method == "PUT"
        assert request.url.path == "/api/v1/focuser/2/tempcomp"
        form = device.form()
        assert form["TempComp"] == "True"
        assert form["ClientID"] == "1"

    def test_invoke_params(self, probe, device):
        """Method parameters are sent as form fields."""
        probe.invoke("Move", Position=500)
        assert device.form()["Position"] == "500"

    def test_query_params(self, probe, device):
        """Query methods send their parameters on the GET."""
        probe.query("TimeSinceLastUpdate", SensorName="Humidity")
        request = device.requests[-1]
        assert request.method == "GET"
        assert request.url.path.endswith("/timesincelastupdate")
        assert request.url.params["SensorName"] == "Humidity"

    def test_error_number(self, probe):
        """A non-zero ErrorNumber becomes a code-tagged DriverError."""
        with pytest.raises(DriverError) as exc_info:
            probe.invoke("Halt")
        assert exc_info.value.code == 0x400
        assert "Halt is not implemented" in str(exc_info.value)
        assert ErrorClassifier().classify(exc_info.value) is ErrorKind.NOT_IMPLEMENTED

    def test_not_ready_code(self, probe):
        """InvalidOperation codes classify as transient."""
        with pytest.raises(DriverError) as exc_info:
            probe.get("Temperature")
        assert ErrorClassifier().classify(exc_info.value) is ErrorKind.INVALID_OPERATION

    def test_http_error_status(self, device, probe):
        """A non-200 response is an uncoded DriverError."""
        device.responses["stepsize"] = httpx.Response(400, text="Bad parameter")
        with pytest.raises(DriverError, match="HTTP 400") as exc_info:
            probe.get("StepSize")
        assert exc_info.value.code is None

    def test_invalid_json(self, device, probe):
        """A body that is not JSON is an error."""
        device.responses["name"] = httpx.Response(200, text="<html>")
        with pytest.raises(DriverError, match="invalid JSON"):
            probe.get("Name")

    def test_non_object_json(self, device, probe):
        """A JSON body that is not an object is an error."""
        device.responses["name"] = httpx.Response(200, content=json.dumps([1, 2]).encode())
        with pytest.raises(DriverError, match="expected an object"):
            probe.get("Name")

    def test_transport_failure(self):
        """Connection failures become uncoded DriverErrors."""
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with AlpacaProbe("Focuser", "127.0.0.1", 11111, transport=httpx.MockTransport(refuse)) as probe:
            with pytest.raises(DriverError, match="ConnectError") as exc_info:
                probe.get("Position")
        assert exc_info.value.code is None
        assert ErrorClassifier().classify(exc_info.value) is ErrorKind.UNEXPECTED

    def test_not_open(self):
        """Calls before open are refused."""
        probe = AlpacaProbe("Focuser", "127.0.0.1", 11111)
        with pytest.raises(ProbeCreationError):
            probe.get("Position")

    def test_close_is_idempotent(self, device):
        """close can be called more than once."""
        probe = AlpacaProbe("Focuser", "127.0.0.1", 11111, transport=httpx.MockTransport(device))
        probe.open()
        probe.close()
        probe.close()
        assert not probe.is_open

    def test_description(self):
        """Description names the device and address."""
        probe = AlpacaProbe("SafetyMonitor", "obs.local", 4567, device_number=1)
        assert probe.description == "Alpaca SafetyMonitor #1 at obs.local:4567"
