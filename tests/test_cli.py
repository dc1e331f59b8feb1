"""Tests for the framescan CLI.

Tests cover:
1. score: axis JSON from a file (list and {"axes": [...]} forms)
2. score failures: invalid JSON, out-of-range scores, empty input (exit code 1)
3. scan-text: success (exit code 0) and content rejection (exit code 2)
4. credits and profile output
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from framescan.audit.sink import InMemoryAuditSink
from framescan.cli import EXIT_BLOCKED, EXIT_FAIL, EXIT_OK, main
from framescan.persistence.backend import InMemoryStateBackend
from framescan.providers.analysis_provider import LLMAnalysisProvider
from framescan.providers.llm_client import DeterministicFrameScanLLMClient
from framescan.scoring.models import ALL_AXES
from framescan.service import FrameScanService

APEX_TEXT = "I will send the proposal Friday. Let's confirm the next step."


def _make_service() -> FrameScanService:
    return FrameScanService.create(
        backend=InMemoryStateBackend(),
        provider=LLMAnalysisProvider(llm_client=DeterministicFrameScanLLMClient()),
        audit_sink=InMemoryAuditSink(),
    )


def _axes(score: int) -> list[dict[str, Any]]:
    return [{"axis_id": axis.value, "score": score} for axis in ALL_AXES]


def _write(tmp_path: Path, data: Any) -> str:
    path = tmp_path / "axes.json"
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return str(path)


def _run(capsys: pytest.CaptureFixture[str], argv: list[str], **kwargs: Any) -> tuple[int, Any]:
    exit_code = main(argv, **kwargs)
    return exit_code, json.loads(capsys.readouterr().out)


class TestScoreCommand:
    def test_score_from_list(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code, output = _run(capsys, ["score", "--input", _write(tmp_path, _axes(3))])

        assert exit_code == EXIT_OK
        assert output["frame_score"] == 100
        assert output["overall_frame"] == "apex"
        assert len(output["axis_scores"]) == 9

    def test_score_from_axes_object_with_domain(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = _write(tmp_path, {"axes": _axes(0)})

        exit_code, output = _run(capsys, ["score", "--input", path, "--domain", "sales_email"])

        assert exit_code == EXIT_OK
        assert output["frame_score"] == 50
        assert output["domain"] == "sales_email"

    def test_invalid_json(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code, output = _run(capsys, ["score", "--input", _write(tmp_path, "{not json")])

        assert exit_code == EXIT_FAIL
        assert output["error"]["code"] == "INVALID_JSON"

    def test_out_of_range_score(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        axes = _axes(0)
        axes[0]["score"] = 5

        exit_code, output = _run(capsys, ["score", "--input", _write(tmp_path, axes)])

        assert exit_code == EXIT_FAIL
        assert output["error"]["code"] == "INVALIDAXISSCORE"
        assert "out of range" in output["error"]["message"]

    def test_incomplete_axis_set(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code, output = _run(capsys, ["score", "--input", _write(tmp_path, _axes(0)[:4])])

        assert exit_code == EXIT_FAIL
        assert "Missing axis ids" in output["error"]["message"]

    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code, output = _run(capsys, ["score", "--input", str(tmp_path / "nope.json")])

        assert exit_code == EXIT_FAIL
        assert output["error"]["code"] == "INVALID_INPUT"
        assert output["error"]["message"].startswith("File not found")

    def test_empty_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code, output = _run(capsys, ["score", "--input", _write(tmp_path, "   ")])

        assert exit_code == EXIT_FAIL
        assert output["error"]["message"] == "Empty input"


class TestScanTextCommand:
    def test_scan_content(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = _make_service()

        exit_code, output = _run(
            capsys,
            ["scan-text", "--content", APEX_TEXT, "--contact", "dana"],
            service=service,
        )

        assert exit_code == EXIT_OK
        assert output["report"]["score"]["frame_score"] == 100
        assert output["report"]["subject_contact_ids"] == ["dana"]
        assert output["credits_remaining"] == 10
        assert service.store.count() == 1

    def test_scan_from_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "message.txt"
        path.write_text(APEX_TEXT, encoding="utf-8")

        exit_code, output = _run(
            capsys,
            ["scan-text", "--input", str(path), "--domain", "sales_email"],
            service=_make_service(),
        )

        assert exit_code == EXIT_OK
        assert output["report"]["domain"] == "sales_email"

    def test_short_text_is_blocked(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = _make_service()

        exit_code, output = _run(capsys, ["scan-text", "--content", "hi"], service=service)

        assert exit_code == EXIT_BLOCKED
        assert output["error"]["code"] == "CONTENT_REJECTED"
        assert "reason" in output["error"]["details"]
        assert service.store.count() == 0


class TestCreditsCommand:
    def test_balance_only(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code, output = _run(capsys, ["credits"], service=_make_service())

        assert exit_code == EXIT_OK
        assert output["available"] == 10
        assert "transactions" not in output

    def test_with_transactions(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = _make_service()
        service.purchase_credits("pkg_starter")

        exit_code, output = _run(capsys, ["credits", "--transactions", "5"], service=service)

        assert exit_code == EXIT_OK
        assert output["available"] == 20
        assert [t["transaction_type"] for t in output["transactions"]] == ["purchase"]


class TestProfileCommand:
    def test_profile_for_contact(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = _make_service()
        service.run_text_scan(APEX_TEXT, subject_contact_ids=["dana"])

        exit_code, output = _run(capsys, ["profile", "--contact", "dana"], service=service)

        assert exit_code == EXIT_OK
        assert output["profile"]["contact_id"] == "dana"
        assert output["profile"]["current_frame_score"] == 100
        assert output["trend"] is None


class TestNoCommand:
    def test_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == EXIT_OK
        assert "framescan" in capsys.readouterr().out
