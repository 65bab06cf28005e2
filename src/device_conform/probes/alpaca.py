"""Alpaca REST device probe.

Maps probe calls onto the Alpaca device API::

    GET  /api/v1/{device_type}/{device_number}/{member}?ClientID=..&ClientTransactionID=..
    PUT  /api/v1/{device_type}/{device_number}/{member}   (form encoded)

Every response is a JSON object carrying ``Value`` (for reads),
``ErrorNumber`` and ``ErrorMessage``. A non-zero ``ErrorNumber`` is raised
as a ``DriverError`` tagged with that number so the session's error code
table decides what it means.
"""
import itertools
import logging
from typing import Any, Optional

import httpx

from ..engine.errors import DriverError, ProbeCreationError
from .base import DeviceProbe

logger = logging.getLogger(__name__)

API_VERSION = 1


def format_value(value: Any) -> str:
    """Render a parameter the way Alpaca devices parse form values."""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (list, tuple)):
        return ",".join(format_value(v) for v in value)
    return str(value)


class AlpacaProbe(DeviceProbe):
    """Probe talking to an Alpaca device over HTTP."""

    def __init__(
        self,
        device_type: str,
        host: str,
        port: int,
        device_number: int = 0,
        timeout: float = 10.0,
        client_id: int = 1,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(device_type)
        self.host = host
        self.port = port
        self.device_number = device_number
        self.timeout = timeout
        self.client_id = client_id
        self._transport = transport
        self._transaction_ids = itertools.count(1)
        self._http: Optional[httpx.Client] = None

    @property
    def description(self) -> str:
        return f"Alpaca {self.device_type} #{self.device_number} at {self.host}:{self.port}"

    @property
    def _base_url(self) -> str:
        return (
            f"http://{self.host}:{self.port}/api/v{API_VERSION}/"
            f"{self.device_type.lower()}/{self.device_number}"
        )

    def open(self) -> None:
        if self._http is None:
            self._http = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        logger.info(f"Opened {self.description}")
        super().open()

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None
            logger.info(f"Closed {self.description}")
        super().close()

    def _client(self) -> httpx.Client:
        if self._http is None:
            raise ProbeCreationError(f"{self.description} is not open")
        return self._http

    def _client_params(self) -> dict[str, str]:
        return {
            "ClientID": str(self.client_id),
            "ClientTransactionID": str(next(self._transaction_ids)),
        }

    def _request(self, method: str, member: str, params: dict[str, Any]) -> Any:
        url = f"{self._base_url}/{member.lower()}"
        fields = self._client_params()
        fields.update({k: format_value(v) for k, v in params.items()})

        try:
            if method == "GET":
                resp = self._client().get(url, params=fields)
            else:
                resp = self._client().put(url, data=fields)
        except httpx.HTTPError as e:
            raise DriverError(f"{method} {member} failed: {type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            text = resp.text.strip() or resp.reason_phrase
            raise DriverError(f"{method} {member} returned HTTP {resp.status_code}: {text}")

        try:
            body = resp.json()
        except ValueError as e:
            raise DriverError(f"{method} {member} returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise DriverError(f"{method} {member} returned {type(body).__name__}, expected an object")

        error_number = body.get("ErrorNumber", 0) or 0
        if error_number:
            message = body.get("ErrorMessage", "") or f"{member} failed"
            raise DriverError(message, code=int(error_number))

        return body.get("Value")

    def get(self, member: str) -> Any:
        return self._request("GET", member, {})

    def query(self, member: str, **params: Any) -> Any:
        return self._request("GET", member, params)

    def set(self, member: str, value: Any) -> None:
        self._request("PUT", member, {member: value})

    def invoke(self, member: str, **params: Any) -> Any:
        return self._request("PUT", member, params)
