"""
RequestLog - Bounded history of backend requests for debugging.

One entry per logical request (retries are folded into the same entry).
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from time import monotonic
from typing import Any

from loguru import logger


@dataclass
class RequestLogEntry:
    """A single finished request."""

    timestamp: datetime
    method: str
    url: str
    status: int | None = None
    duration_ms: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "method": self.method,
            "url": self.url,
            "status": self.status,
            "duration_ms": round(self.duration_ms, 1),
            "error": self.error,
        }


@dataclass
class RequestLogStats:
    """Aggregates over the retained history."""

    total: int = 0
    errors: int = 0
    avg_duration_ms: float = 0.0

    @property
    def success(self) -> int:
        return self.total - self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "errors": self.errors,
            "success": self.success,
            "avg_duration_ms": round(self.avg_duration_ms),
        }


@dataclass
class _PendingRequest:
    method: str
    url: str
    timestamp: datetime = field(default_factory=datetime.now)
    started: float = field(default_factory=monotonic)

    def elapsed_ms(self) -> float:
        return (monotonic() - self.started) * 1000


class RequestLog:
    """
    Keeps the last ``max_entries`` requests.

    Usage:
        log = RequestLog()
        pending = log.log_request("GET", "/products")
        ...
        log.log_response(pending, 200)
    """

    def __init__(self, max_entries: int = 100, debug: bool = False):
        self._entries: deque[RequestLogEntry] = deque(maxlen=max_entries)
        self._debug = debug

    def log_request(self, method: str, url: str) -> _PendingRequest:
        """Mark the start of a request."""
        self._log(f"{method} {url}")
        return _PendingRequest(method=method, url=url)

    def log_response(self, pending: _PendingRequest, status: int) -> RequestLogEntry:
        """Record a request that produced an accepted response."""
        entry = RequestLogEntry(
            timestamp=pending.timestamp,
            method=pending.method,
            url=pending.url,
            status=status,
            duration_ms=pending.elapsed_ms(),
        )
        self._entries.append(entry)
        self._log(
            f"{entry.method} {entry.url} - {status} ({entry.duration_ms:.0f}ms)"
        )
        return entry

    def log_error(
        self,
        pending: _PendingRequest,
        error: Exception,
        status: int | None = None,
    ) -> RequestLogEntry:
        """Record a request that finally failed."""
        entry = RequestLogEntry(
            timestamp=pending.timestamp,
            method=pending.method,
            url=pending.url,
            status=status,
            duration_ms=pending.elapsed_ms(),
            error=str(error),
        )
        self._entries.append(entry)
        logger.error(
            f"[API] {entry.method} {entry.url} - Error: {entry.error} "
            f"({entry.duration_ms:.0f}ms)"
        )
        return entry

    def get_logs(self) -> list[RequestLogEntry]:
        return list(self._entries)

    def get_error_logs(self) -> list[RequestLogEntry]:
        return [entry for entry in self._entries if entry.error]

    def get_stats(self) -> RequestLogStats:
        total = len(self._entries)
        if total == 0:
            return RequestLogStats()
        return RequestLogStats(
            total=total,
            errors=sum(1 for entry in self._entries if entry.error),
            avg_duration_ms=sum(e.duration_ms for e in self._entries) / total,
        )

    def clear(self) -> None:
        self._entries.clear()

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[API] {message}")
