"""Access to a user account on the Fleet API."""

from __future__ import annotations

import base64
import binascii
import json
import re
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import requests

from . import log
from .connector import MAX_RESPONSE_LENGTH
from .inet import HTTPError, send_fleet_api_command, valid_tesla_domain_suffix

LIBRARY_VERSION = "0.1.0"
DEFAULT_DOMAIN = "fleet-api.prd.na.vn.cloud.tesla.com"

# Mostly meant to stop paths; the HTTP library rejects the rest.
_DOMAIN_RE = re.compile(r"[A-Za-z0-9.-]+")
# Audience remappings used during development.
_REMAPPED_DOMAINS: Dict[str, str] = {}


def build_user_agent(app: str = "") -> str:
    """Return a User-Agent naming the application and this library."""
    library = f"tesla-sdk/{LIBRARY_VERSION}".strip()
    if not app:
        program = sys.argv[0] if sys.argv else ""
        app = Path(program).name if program else ""
        if not app:
            return library
    return f"{app} {library}"


def oauth_domain(audiences: Iterable[str], ou_code: str = "") -> str:
    """Choose the API server from a token's audiences, preferring the token's region."""
    audiences = list(audiences)
    if _REMAPPED_DOMAINS:
        for audience in audiences:
            if audience in _REMAPPED_DOMAINS:
                return _REMAPPED_DOMAINS[audience]
    domain = DEFAULT_DOMAIN
    region = f".{ou_code.lower()}."
    for audience in audiences:
        if audience.startswith("https://auth.tesla."):
            continue
        candidate = audience.removeprefix("https://").removesuffix("/")
        if not _DOMAIN_RE.fullmatch(candidate):
            continue
        if valid_tesla_domain_suffix(candidate) and candidate.startswith("fleet-api."):
            domain = candidate
            if region in domain:
                return domain
    return domain


def _decode_raw_base64(text: str) -> bytes:
    if "=" in text or len(text) % 4 == 1:
        raise ValueError("illegal base64 data")
    try:
        return base64.b64decode(text + "=" * (-len(text) % 4), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"illegal base64 data: {exc}") from exc


def _optional_str(document: Dict[str, Any], key: str) -> str:
    value = document.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _audiences(document: Dict[str, Any]) -> List[str]:
    value = document.get("aud")
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("aud must be a list")
    result = []
    for item in value:
        if item is None:
            item = ""
        if not isinstance(item, str):
            raise ValueError("aud entries must be strings")
        result.append(item)
    return result


class Account:
    """A user account that can send requests to its Fleet API server."""

    def __init__(self, user_agent: str, auth_header: str, host: str, subject: str) -> None:
        self.user_agent = user_agent
        self.host = host
        self.subject = subject
        self._auth_header = auth_header
        self._session = requests.Session()

    def get(self, endpoint: str, timeout: Optional[float] = None) -> bytes:
        """GET endpoint (a path such as "api/1/vehicles") and return the body."""
        url = f"https://{self.host}/{endpoint}"
        log.debug("Requesting %s...", url)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "Authorization": self._auth_header,
        }
        try:
            response = self._session.get(url, headers=headers, timeout=timeout, stream=True)
        except requests.RequestException as exc:
            raise ConnectionError(f"error fetching {endpoint}: {exc}") from exc
        with response:
            if response.status_code != 200:
                raise HTTPError(
                    response.status_code,
                    f"http error when sending command to {url}: "
                    f"{response.status_code} {response.reason}",
                )
            body = bytearray()
            try:
                for chunk in response.iter_content(chunk_size=8192):
                    body.extend(chunk)
                    if len(body) >= MAX_RESPONSE_LENGTH:
                        break
            except requests.RequestException as exc:
                raise ConnectionError(f"error reading {endpoint}: {exc}") from exc
        result = bytes(body[:MAX_RESPONSE_LENGTH])
        log.debug("Received: %s", result)
        return result

    def _send_fleet_api_command(
        self, endpoint: str, command: Any, timeout: Optional[float]
    ) -> bytes:
        return send_fleet_api_command(
            self._session,
            self.user_agent,
            self._auth_header,
            f"https://{self.host}/{endpoint}",
            command,
            timeout,
        )

    def post(self, endpoint: str, data: bytes, timeout: Optional[float] = None) -> bytes:
        """POST raw data to endpoint and return the response body."""
        return self._send_fleet_api_command(endpoint, bytes(data), timeout)

    def send_vehicle_fleet_api_command(
        self, vin: str, endpoint: str, command: Any, timeout: Optional[float] = None
    ) -> bytes:
        """Send a JSON-serialisable command to a vehicle endpoint."""
        return self._send_fleet_api_command(
            f"api/1/vehicles/{vin}/{endpoint}", command, timeout
        )

    def update_key(
        self, public_key: bytes, name: str, timeout: Optional[float] = None
    ) -> None:
        """Register display metadata for an uncompressed public key."""
        params = {
            "public_key": bytes(public_key).hex(),
            "kind": "mobile_device",
            "model": "3rd Party Application",
            "name": name,
            "tag": self.user_agent,
        }
        self._send_fleet_api_command("api/1/users/keys", params, timeout)


def new_account(oauth_token: str, user_agent: str = "") -> Account:
    """Create an Account from an OAuth token, deriving its server from the token."""
    parts = oauth_token.split(".")
    if len(parts) != 3:
        raise ValueError("client provided malformed OAuth token")
    try:
        payload_json = _decode_raw_base64(parts[1])
    except ValueError as exc:
        raise ValueError(f"client provided malformed OAuth token: {exc} ({parts[1]})") from exc
    try:
        document = json.loads(payload_json)
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ValueError("payload must be a JSON object")
        audiences = _audiences(document)
        ou_code = _optional_str(document, "ou_code")
        subject = _optional_str(document, "sub")
    except ValueError as exc:
        raise ValueError(f"client provided malformed OAuth token: {exc}") from exc

    domain = oauth_domain(audiences, ou_code)
    if not domain:
        raise ValueError("client provided OAuth token with invalid audiences")
    return Account(
        user_agent=build_user_agent(user_agent),
        auth_header="Bearer " + oauth_token.strip(),
        host=domain,
        subject=subject,
    )