"""Key/document state backends for the credit ledger and report store.

The engine only needs ``load(key)`` and ``save(key, document)``. Documents
are JSON-compatible dicts. An empty backend is a valid first run: ``load``
returns None and callers fall back to their defaults.

Design requirements:
- Fail closed: backend errors raise StateBackendError, never return stale data
- Deterministic serialization (sorted keys)
- Thread-safe access
"""

from __future__ import annotations

import copy
import json
import logging
import os
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

FRAMESCAN_STATE_BACKEND_ENV: Final[str] = "FRAMESCAN_STATE_BACKEND"
FRAMESCAN_STATE_DB_PATH_ENV: Final[str] = "FRAMESCAN_STATE_DB_PATH"
DEFAULT_STATE_BACKEND: Final[str] = "memory"
DEFAULT_STATE_DB_PATH: Final[str] = "./var/state/framescan.sqlite3"


class StateBackendError(Exception):
    """Raised when a state document cannot be loaded or saved."""


@runtime_checkable
class StateBackend(Protocol):
    """Protocol for persisted state documents."""

    def load(self, key: str) -> dict[str, Any] | None:
        """Return the stored document for key, or None if nothing was saved.

        Raises:
            StateBackendError: If the backend is unavailable or the document is corrupt.
        """
        ...

    def save(self, key: str, document: dict[str, Any]) -> None:
        """Replace the stored document for key.

        Raises:
            StateBackendError: If the document cannot be serialized or written.
        """
        ...


class InMemoryStateBackend:
    """In-memory backend for tests and single-process use.

    Stores JSON round-tripped copies so callers can never mutate stored state.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            raw = self._documents.get(key)
        if raw is None:
            return None
        loaded: dict[str, Any] = json.loads(raw)
        return loaded

    def save(self, key: str, document: dict[str, Any]) -> None:
        try:
            raw = json.dumps(document, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise StateBackendError(f"Failed to serialize state document {key!r}: {e}") from e
        with self._lock:
            self._documents[key] = raw

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._documents)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Return a deep copy of every stored document."""
        with self._lock:
            return {k: copy.deepcopy(json.loads(v)) for k, v in self._documents.items()}


class SqliteStateBackend:
    """SQLite-backed state documents with thread-local connections.

    Creates the database and parent directories on first use. Uses WAL mode.

    Environment:
        FRAMESCAN_STATE_DB_PATH: Path to SQLite database file.
            Default: ./var/state/framescan.sqlite3
    """

    _CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS state_documents (
            doc_key TEXT PRIMARY KEY,
            body TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """

    _SELECT_SQL = "SELECT body FROM state_documents WHERE doc_key = ?"

    _UPSERT_SQL = """
        INSERT OR REPLACE INTO state_documents (doc_key, body, updated_at)
        VALUES (?, ?, ?)
    """

    def __init__(self, db_path: str | None = None) -> None:
        """Initialize the backend.

        Args:
            db_path: Path to SQLite database file. If None, uses environment
                variable FRAMESCAN_STATE_DB_PATH or the default path.
        """
        if db_path is None:
            db_path = os.environ.get(FRAMESCAN_STATE_DB_PATH_ENV, DEFAULT_STATE_DB_PATH)

        self._db_path = db_path
        self._local = threading.local()
        self._initialized = False
        self._init_lock = threading.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        if not self._initialized:
            with self._init_lock:
                if not self._initialized:
                    self._ensure_database()
                    self._initialized = True

        conn = getattr(self._local, "conn", None)
        if conn is None:
            try:
                conn = sqlite3.connect(self._db_path, check_same_thread=False)
                self._local.conn = conn
            except sqlite3.Error as e:
                raise StateBackendError(f"Failed to connect to state store: {e}") from e
        return conn

    def _ensure_database(self) -> None:
        try:
            db_path = Path(self._db_path)
            if db_path.is_dir():
                raise StateBackendError(f"State store path is a directory: {self._db_path}")
            db_path.parent.mkdir(parents=True, exist_ok=True)

            conn = sqlite3.connect(self._db_path)
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(self._CREATE_TABLE_SQL)
                conn.commit()
            finally:
                conn.close()

            logger.info("Initialized state store at %s", self._db_path)

        except sqlite3.Error as e:
            raise StateBackendError(f"Failed to initialize state store: {e}") from e
        except OSError as e:
            raise StateBackendError(f"Failed to create state store directory: {e}") from e

    def load(self, key: str) -> dict[str, Any] | None:
        try:
            conn = self._get_connection()
            row = conn.execute(self._SELECT_SQL, (key,)).fetchone()
        except sqlite3.Error as e:
            raise StateBackendError(f"Failed to load state document {key!r}: {e}") from e

        if row is None:
            return None
        try:
            loaded = json.loads(row[0])
        except json.JSONDecodeError as e:
            raise StateBackendError(f"Corrupt state document {key!r}: {e}") from e
        if not isinstance(loaded, dict):
            raise StateBackendError(f"State document {key!r} is not an object")
        return loaded

    def save(self, key: str, document: dict[str, Any]) -> None:
        try:
            body = json.dumps(document, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise StateBackendError(f"Failed to serialize state document {key!r}: {e}") from e
        try:
            conn = self._get_connection()
            conn.execute(self._UPSERT_SQL, (key, body, datetime.now(UTC).isoformat()))
            conn.commit()
        except sqlite3.Error as e:
            raise StateBackendError(f"Failed to save state document {key!r}: {e}") from e

    def close(self) -> None:
        """Close the calling thread's connection, if any."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


def get_state_backend() -> StateBackend:
    """Factory for the configured state backend.

    Reads FRAMESCAN_STATE_BACKEND (memory | sqlite, default memory).

    Raises:
        ValueError: If the configured backend name is unknown.
    """
    backend = os.environ.get(FRAMESCAN_STATE_BACKEND_ENV, DEFAULT_STATE_BACKEND).strip().lower()
    if backend == "sqlite":
        return SqliteStateBackend()
    if backend == "memory":
        return InMemoryStateBackend()
    raise ValueError(
        f"Unknown {FRAMESCAN_STATE_BACKEND_ENV} value: {backend!r} (expected memory or sqlite)"
    )
