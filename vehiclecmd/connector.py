"""Interfaces for datagram transport between clients and vehicles."""

from __future__ import annotations

import queue
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Optional


class AuthMethod(IntEnum):
    """Mechanisms vehicles use to authenticate clients."""

    NONE = 0  # Unauthenticated; used for handshake messages.
    GCM = 1  # Authenticated and encrypted with AES-GCM-ECDH.
    HMAC = 2  # Authenticated with HMAC-SHA256-ECDH.


BUFFER_SIZE = 5
"""Number of inbound messages that can be queued."""

MAX_RESPONSE_LENGTH = 100_000
"""Maximum byte-length of responses that connectors must support."""


class Connector(ABC):
    """Sends and receives raw datagrams to and from a vehicle.

    Implementations expose the vehicle identification number as ``vin`` and
    must be thread safe.
    """

    vin: str

    @abstractmethod
    def receive(self) -> "queue.Queue[Optional[bytes]]":
        """Return the queue on which datagrams from the vehicle arrive."""

    @abstractmethod
    def send(self, buffer: bytes, timeout: Optional[float] = None) -> None:
        """Send a datagram to the vehicle."""

    @abstractmethod
    def close(self) -> None:
        """Terminate the connection; repeated calls are harmless."""

    @abstractmethod
    def preferred_auth_method(self) -> AuthMethod:
        """Return the authentication method a dispatcher should use."""

    @abstractmethod
    def retry_interval(self) -> float:
        """Return the recommended seconds to wait between transmission attempts."""

    @abstractmethod
    def allowed_latency(self) -> float:
        """Return the maximum seconds between a request and a clock-updating response."""


class FleetAPIConnector(Connector):
    """A connector that can also send commands to the Fleet API."""

    @abstractmethod
    def send_fleet_api_command(
        self, endpoint: str, command: Any, timeout: Optional[float] = None
    ) -> bytes:
        """POST a command to a Fleet API endpoint and return the response body."""

    @abstractmethod
    def wakeup(self, timeout: Optional[float] = None) -> None:
        """Wake the vehicle, returning once it is online."""