"""State persistence backends."""

from framescan.persistence.backend import (
    InMemoryStateBackend,
    SqliteStateBackend,
    StateBackend,
    StateBackendError,
    get_state_backend,
)

__all__ = [
    "InMemoryStateBackend",
    "SqliteStateBackend",
    "StateBackend",
    "StateBackendError",
    "get_state_backend",
]
