"""A connector that delivers vehicle commands through the Fleet API over HTTPS."""

from __future__ import annotations

import base64
import json
import queue
import re
import threading
import time
from http import HTTPStatus
from typing import Any, Optional

import requests

from . import log
from .connector import BUFFER_SIZE, MAX_RESPONSE_LENGTH, AuthMethod, FleetAPIConnector

MAX_LATENCY = 10.0
"""Default maximum seconds permitted when updating the vehicle clock estimate."""

_WAKE_INTERVAL = 10.0
_READ_CHUNK = 8192

# Extracts the domain from bodies such as
# {"error": "user out of region, use base URL: https://fleet-api.example.com, see ..."}
_BASE_DOMAIN_RE = re.compile(r"use base URL: https://([-a-z0-9.]*)")


class CommandError(Exception):
    """A failure that records whether the command may have run and may be retried."""

    def __init__(
        self,
        err: Any,
        possible_success: bool = False,
        possible_temporary: bool = False,
    ) -> None:
        super().__init__(str(err))
        self.err = err
        self.possible_success = possible_success
        self.possible_temporary = possible_temporary

    def may_have_succeeded(self) -> bool:
        """Return True if the vehicle may have acted on the command."""
        return self.possible_success

    def temporary(self) -> bool:
        """Return True if retrying the command may succeed."""
        return self.possible_temporary


class NotConnectedError(CommandError):
    """The connection to the vehicle has been closed."""

    def __init__(self, message: str = "not connected to vehicle") -> None:
        super().__init__(message, False, False)


class ProtocolNotSupportedError(CommandError):
    """The server does not support signed vehicle commands."""

    def __init__(self, message: str = "vehicle does not support protocol") -> None:
        super().__init__(message, False, False)


class VehicleNotAwakeError(CommandError):
    """The vehicle is offline or asleep."""

    def __init__(
        self, message: str = "vehicle unavailable: vehicle is offline or asleep"
    ) -> None:
        super().__init__(message, False, False)


class HTTPError(Exception):
    """An unexpected HTTP status returned by the server."""

    def __init__(self, code: int, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.message:
            return self.message
        try:
            return HTTPStatus(self.code).phrase
        except ValueError:
            return ""

    def may_have_succeeded(self) -> bool:
        """Return True unless the status rules out the command having run."""
        if 400 <= self.code < 500:
            return False
        return self.code != HTTPStatus.SERVICE_UNAVAILABLE

    def temporary(self) -> bool:
        """Return True if the status suggests retrying may succeed."""
        return self.code in (
            HTTPStatus.SERVICE_UNAVAILABLE,
            HTTPStatus.GATEWAY_TIMEOUT,
            HTTPStatus.REQUEST_TIMEOUT,
            HTTPStatus.MISDIRECTED_REQUEST,
        )


def is_temporary(err: Optional[BaseException]) -> bool:
    """Return True if err reports itself as temporary."""
    check = getattr(err, "temporary", None)
    return callable(check) and bool(check())


def valid_tesla_domain_suffix(domain: str) -> bool:
    """Return True if domain belongs to one of the trusted server domains."""
    return domain.endswith((".tesla.com", ".tesla.cn", ".teslamotors.com"))


def _read_limited(response: requests.Response, limit: int) -> bytes:
    data = bytearray()
    for chunk in response.iter_content(chunk_size=_READ_CHUNK):
        data.extend(chunk)
        if len(data) >= limit:
            return bytes(data[:limit])
    return bytes(data)


def send_fleet_api_command(
    session: requests.Session,
    user_agent: str,
    auth_header: str,
    url: str,
    command: Any,
    timeout: Optional[float] = None,
) -> bytes:
    """POST command to url and return the response body.

    Raw bytes are sent as they are; anything else is serialised as JSON.
    """
    if isinstance(command, (bytes, bytearray, memoryview)):
        body = bytes(command)
    else:
        body = json.dumps(command, separators=(",", ":")).encode("utf-8")
    log.debug("Sending request to %s: %s", url, body)
    headers = {
        "User-Agent": user_agent,
        "Content-type": "application/json",
        "Authorization": auth_header,
        "Accept": "*/*",
    }
    try:
        response = session.post(url, data=body, headers=headers, timeout=timeout, stream=True)
    except requests.RequestException as exc:
        raise CommandError(exc, False, True) from exc

    with response:
        try:
            payload = _read_limited(response, MAX_RESPONSE_LENGTH + 1)
        except requests.RequestException as exc:
            raise CommandError(exc, True, False) from exc
        status = response.status_code

    if len(payload) == MAX_RESPONSE_LENGTH + 1:
        raise CommandError("response exceeds maximum length", True, True)

    log.debug("Server returned %d: %s", status, payload)
    if status == HTTPStatus.OK:
        return payload
    if status == HTTPStatus.UNPROCESSABLE_ENTITY:
        raise ProtocolNotSupportedError()
    if status == HTTPStatus.SERVICE_UNAVAILABLE:
        raise VehicleNotAwakeError()
    if status == HTTPStatus.REQUEST_TIMEOUT and b"vehicle is offline" in payload:
        raise VehicleNotAwakeError()
    raise HTTPError(status, payload.decode("utf-8", errors="replace"))


def _decode_routable_payload(body: bytes) -> bytes:
    document = json.loads(body)
    if document is None:
        return b""
    if not isinstance(document, dict):
        raise ValueError("response must be a JSON object")
    encoded = document.get("response")
    if encoded is None:
        return b""
    if not isinstance(encoded, str):
        raise ValueError("response must be a base64 string")
    return base64.b64decode(encoded, validate=True)


def _wake_state(body: bytes) -> str:
    document = json.loads(body)
    if document is None:
        return ""
    if not isinstance(document, dict):
        raise ValueError("wake response must be a JSON object")
    response = document.get("response")
    if response is None:
        return ""
    if not isinstance(response, dict):
        raise ValueError("wake response must contain an object")
    state = response.get("state")
    if state is None:
        return ""
    if not isinstance(state, str):
        raise ValueError("vehicle state must be a string")
    return state


class Connection(FleetAPIConnector):
    """Delivers commands to a vehicle by POSTing them to a Fleet API server."""

    def __init__(
        self, vin: str, auth_header: str, server_url: str, user_agent: str
    ) -> None:
        self.vin = vin
        self.user_agent = user_agent
        self.server_url = server_url
        self.session = requests.Session()
        self.last_poke: Optional[float] = None
        self._auth_header = auth_header
        self._inbox: "queue.Queue[Optional[bytes]]" = queue.Queue(BUFFER_SIZE)
        self._open = True
        self._lock = threading.Lock()

    def send_fleet_api_command(
        self, endpoint: str, command: Any, timeout: Optional[float] = None
    ) -> bytes:
        """POST command to endpoint on the current server, following region redirects."""
        url = f"https://{self.server_url}/{endpoint}"
        try:
            return send_fleet_api_command(
                self.session, self.user_agent, self._auth_header, url, command, timeout
            )
        except HTTPError as exc:
            if exc.code == HTTPStatus.MISDIRECTED_REQUEST:
                match = _BASE_DOMAIN_RE.search(exc.message)
                if match and valid_tesla_domain_suffix(match[1]):
                    log.debug("Received HTTP Status 421. Updating server URL.")
                    self.server_url = match[1]
            raise

    def preferred_auth_method(self) -> AuthMethod:
        return AuthMethod.HMAC

    def allowed_latency(self) -> float:
        return MAX_LATENCY

    def retry_interval(self) -> float:
        return 1.0

    def receive(self) -> "queue.Queue[Optional[bytes]]":
        """Return the queue of vehicle responses; None marks a closed connection."""
        return self._inbox

    def close(self) -> None:
        with self._lock:
            if self._open:
                self._open = False
                try:
                    self._inbox.put_nowait(None)
                except queue.Full:
                    pass

    def wakeup(self, timeout: Optional[float] = None) -> None:
        """Ask the vehicle to wake, polling until it reports that it is online."""
        deadline = None if timeout is None else time.monotonic() + timeout
        endpoint = f"api/1/vehicles/{self.vin}/wake_up"
        while True:
            with self._lock:
                self.last_poke = time.time()
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            err: Optional[Exception] = None
            try:
                body = self.send_fleet_api_command(endpoint, None, remaining)
                if _wake_state(body) == "online":
                    return
            except (CommandError, HTTPError, ValueError) as exc:
                err = exc

            if not is_temporary(err):
                if err is not None:
                    raise err
                return

            if deadline is not None:
                left = deadline - time.monotonic()
                if left <= _WAKE_INTERVAL:
                    time.sleep(max(0.0, left))
                    raise TimeoutError("deadline exceeded while waking vehicle")
            time.sleep(_WAKE_INTERVAL)

    def send(self, buffer: bytes, timeout: Optional[float] = None) -> None:
        """Send a routable message and queue the vehicle's reply."""
        endpoint = f"api/1/vehicles/{self.vin}/signed_command"
        command = {"routable_message": base64.b64encode(bytes(buffer)).decode("ascii")}
        body = self.send_fleet_api_command(endpoint, command, timeout)
        try:
            payload = _decode_routable_payload(body)
        except ValueError as exc:
            log.debug("Invalid server response (%d bytes): %s", len(body), body)
            raise CommandError(
                f"unable to parse server response: {exc}", True, False
            ) from exc
        with self._lock:
            if not self._open:
                raise NotConnectedError()
            try:
                self._inbox.put_nowait(payload)
            except queue.Full:
                raise CommandError(
                    "dropped response because inbox is full", True, False
                ) from None