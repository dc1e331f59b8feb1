"""Pytest configuration and fixtures for FrameScan tests.

Every test runs against the deterministic LLM client, the in-memory state
backend, and an audit log under the test's tmp_path, regardless of the
caller's environment.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from framescan.audit.sink import FRAMESCAN_AUDIT_LOG_PATH_ENV
from framescan.credits.ledger import FRAMESCAN_STARTING_CREDITS_ENV
from framescan.persistence.backend import (
    FRAMESCAN_STATE_BACKEND_ENV,
    FRAMESCAN_STATE_DB_PATH_ENV,
)
from framescan.pipeline.throttle import FRAMESCAN_MAX_SCANS_PER_SESSION_ENV
from framescan.providers.analysis_provider import FRAMESCAN_LLM_BACKEND_ENV


@pytest.fixture(autouse=True)
def isolate_framescan_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Pin configuration to offline, in-process defaults for every test."""
    monkeypatch.setenv(FRAMESCAN_LLM_BACKEND_ENV, "deterministic")
    monkeypatch.setenv(FRAMESCAN_STATE_BACKEND_ENV, "memory")
    monkeypatch.setenv(FRAMESCAN_AUDIT_LOG_PATH_ENV, str(tmp_path / "audit" / "events.jsonl"))
    monkeypatch.delenv(FRAMESCAN_STATE_DB_PATH_ENV, raising=False)
    monkeypatch.delenv(FRAMESCAN_STARTING_CREDITS_ENV, raising=False)
    monkeypatch.delenv(FRAMESCAN_MAX_SCANS_PER_SESSION_ENV, raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
