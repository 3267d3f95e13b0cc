"""Session cache that lets clients resume authenticated vehicle sessions."""

from __future__ import annotations

import base64
import json
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import IO, Any, Dict, Iterable, List, Optional

_UTC = timezone.utc
_ZERO_TIME = datetime(1, 1, 1, tzinfo=_UTC)
_TIME_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?(?P<tz>[Zz]|[+-]\d{2}:\d{2})$"
)


def _as_aware(moment: datetime) -> datetime:
    return moment.replace(tzinfo=_UTC) if moment.tzinfo is None else moment


def _format_time(moment: datetime) -> str:
    text = _as_aware(moment).isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _parse_time(text: Any) -> datetime:
    if not isinstance(text, str):
        raise ValueError("created_at must be a string")
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp: {text!r}")
    fraction = (match["frac"] or "")[:6].ljust(6, "0")
    zone = "+00:00" if match["tz"] in ("Z", "z") else match["tz"]
    return datetime.fromisoformat(f"{match['base']}.{fraction}{zone}")


@dataclass
class CacheEntry:
    """Session state that allows resuming a session without a handshake."""

    created_at: datetime
    domain: int
    session_info: bytes

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-compatible dictionary for this entry."""
        return {
            "created_at": _format_time(self.created_at),
            "domain": self.domain,
            "data": base64.b64encode(self.session_info).decode("ascii"),
        }

    @classmethod
    def from_json(cls, data: Any) -> "CacheEntry":
        """Build an entry from a dictionary produced by to_json."""
        if not isinstance(data, dict):
            raise ValueError("cache entry must be an object")
        created = data.get("created_at")
        created_at = _ZERO_TIME if created is None else _parse_time(created)
        domain = data.get("domain", 0)
        if domain is None:
            domain = 0
        if isinstance(domain, bool) or not isinstance(domain, int):
            raise ValueError("domain must be an integer")
        encoded = data.get("data")
        if encoded is None:
            info = b""
        elif isinstance(encoded, str):
            info = base64.b64decode(encoded, validate=True)
        else:
            raise ValueError("data must be a base64 string")
        return cls(created_at=created_at, domain=domain, session_info=info)


def _most_recent(sessions: Iterable[CacheEntry]) -> datetime:
    newest = _ZERO_TIME
    for entry in sessions:
        created = _as_aware(entry.created_at)
        if created > newest:
            newest = created
    return newest


class SessionCache:
    """Holds session state for up to ``max_entries`` vehicles (0 means unbounded).

    When full, the vehicle whose most recent session is oldest is evicted.
    """

    def __init__(self, max_entries: int = 0) -> None:
        self.max_entries = max_entries
        self.vehicles: Dict[str, List[CacheEntry]] = {}
        self._lock = threading.Lock()

    def _to_json(self) -> Dict[str, Any]:
        return {
            "MaxEntries": self.max_entries,
            "vehicles": {
                vin: [entry.to_json() for entry in sessions]
                for vin, sessions in self.vehicles.items()
            },
        }

    def export(self, stream: IO[str]) -> None:
        """Write the cache as JSON to a text stream."""
        with self._lock:
            stream.write(json.dumps(self._to_json()) + "\n")

    def export_to_file(self, filename: str) -> None:
        """Write the cache to a file."""
        with open(filename, "w", encoding="utf-8") as stream:
            self.export(stream)

    def update(self, vin: str, sessions: Iterable[CacheEntry]) -> None:
        """Store the sessions for vin, evicting the stalest vehicle if full."""
        with self._lock:
            self.vehicles[vin] = list(sessions)
            if self.max_entries > 0 and len(self.vehicles) > self.max_entries:
                oldest_vin = vin
                oldest_time = datetime.now(_UTC)
                for candidate, entries in self.vehicles.items():
                    newest = _most_recent(entries)
                    if newest < oldest_time:
                        oldest_vin = candidate
                        oldest_time = newest
                del self.vehicles[oldest_vin]

    def get_entry(self, vin: str) -> Optional[List[CacheEntry]]:
        """Return the sessions stored for vin, or None."""
        with self._lock:
            return self.vehicles.get(vin)


def import_cache(stream: IO) -> SessionCache:
    """Read a cache previously written by SessionCache.export."""
    text = stream.read()
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError("session cache must be a JSON object")
    max_entries = document.get("MaxEntries", 0) or 0
    if isinstance(max_entries, bool) or not isinstance(max_entries, int):
        raise ValueError("MaxEntries must be an integer")
    cache = SessionCache(max_entries)
    vehicles = document.get("vehicles") or {}
    if not isinstance(vehicles, dict):
        raise ValueError("vehicles must be an object")
    for vin, entries in vehicles.items():
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise ValueError("vehicle sessions must be a list")
        cache.vehicles[vin] = [CacheEntry.from_json(entry) for entry in entries]
    return cache


def import_from_file(filename: str) -> SessionCache:
    """Read a cache from a file."""
    with open(filename, "r", encoding="utf-8") as stream:
        return import_cache(stream)