"""Audit event sinks for scan and credit events.

Design requirements:
- Append-only: never truncate/overwrite
- Fail closed: any IO failure raises AuditSinkError
- Deterministic: sorted keys, no extra whitespace
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

FRAMESCAN_AUDIT_LOG_PATH_ENV: Final[str] = "FRAMESCAN_AUDIT_LOG_PATH"
DEFAULT_AUDIT_LOG_PATH: Final[str] = "./var/audit/framescan_events.jsonl"


class AuditSinkError(Exception):
    """Raised when an audit event cannot be recorded."""


@runtime_checkable
class AuditSink(Protocol):
    """Protocol for append-only audit sinks."""

    def emit(self, event: dict[str, Any]) -> None:
        """Record one event.

        Raises:
            AuditSinkError: If emission fails for any reason.
        """
        ...


def make_event(event_type: str, **fields: Any) -> dict[str, Any]:
    """Build an audit event dict with a type and UTC timestamp."""
    return {
        "event_type": event_type,
        "timestamp": datetime.now(UTC).isoformat(),
        **fields,
    }


class JsonlFileAuditSink:
    """Append-only JSONL file sink.

    Path comes from the constructor, then FRAMESCAN_AUDIT_LOG_PATH, then
    DEFAULT_AUDIT_LOG_PATH. Parent directories are created on first write.
    """

    def __init__(self, file_path: str | None = None) -> None:
        if file_path is None:
            file_path = os.environ.get(FRAMESCAN_AUDIT_LOG_PATH_ENV) or DEFAULT_AUDIT_LOG_PATH
        self._file_path = Path(file_path)
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def emit(self, event: dict[str, Any]) -> None:
        try:
            line = json.dumps(event, sort_keys=True, separators=(",", ":")) + "\n"
        except (TypeError, ValueError) as e:
            raise AuditSinkError(f"Failed to serialize audit event: {e}") from e

        parent = self._file_path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AuditSinkError(f"Failed to create audit log directory {parent}: {e}") from e

        try:
            with self._lock, open(self._file_path, mode="a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            raise AuditSinkError(f"Failed to write audit event to {self._file_path}: {e}") from e


class InMemoryAuditSink:
    """In-memory sink for tests. Events are JSON round-tripped on emit."""

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def emit(self, event: dict[str, Any]) -> None:
        try:
            stored = json.loads(json.dumps(event, sort_keys=True, separators=(",", ":")))
        except (TypeError, ValueError) as e:
            raise AuditSinkError(f"Failed to serialize audit event: {e}") from e
        with self._lock:
            self._events.append(stored)

    @property
    def events(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def event_types(self) -> list[str]:
        return [e["event_type"] for e in self.events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def get_audit_sink() -> AuditSink:
    """Return the configured audit sink (JSONL file)."""
    return JsonlFileAuditSink()
