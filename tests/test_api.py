"""Tests for the FrameScan HTTP API.

Tests cover:
A) Health endpoint
B) Scan endpoints and the ScanError -> HTTP status mapping
C) Error envelope and request_id correlation
D) Report, profile, and credit endpoints
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient

from framescan import __version__
from framescan.api.main import create_app
from framescan.audit.sink import InMemoryAuditSink
from framescan.persistence.backend import InMemoryStateBackend
from framescan.pipeline.throttle import ScanThrottle
from framescan.providers.analysis_provider import LLMAnalysisProvider
from framescan.providers.llm_client import DeterministicFrameScanLLMClient
from framescan.providers.models import ProviderRequest
from framescan.service import FrameScanService

APEX_TEXT = "I will send the proposal Friday. Let's confirm the next step."
SLAVE_TEXT = "Sorry, just checking if you had a moment to look. I hope that is okay."
IMAGE_BODY = {
    "image_ref": "https://img.example/headshot.jpg",
    "context_label": "Confident headshot for my consulting website",
    "domain": "profile_photo",
    "tier": "detailed",
}


class _ExplodingProvider:
    def analyze(self, request: ProviderRequest) -> dict[str, Any]:
        raise RuntimeError("provider unavailable")


def _make_client(provider: Any = None, max_scans: int | None = None) -> TestClient:
    service = FrameScanService.create(
        backend=InMemoryStateBackend(),
        provider=provider or LLMAnalysisProvider(llm_client=DeterministicFrameScanLLMClient()),
        audit_sink=InMemoryAuditSink(),
        throttle=ScanThrottle(max_scans) if max_scans else None,
    )
    return TestClient(create_app(service))


@pytest.fixture
def client() -> TestClient:
    return _make_client()


def _assert_envelope(data: dict[str, Any], code: str) -> None:
    assert set(data) == {"code", "message", "details", "request_id"}
    assert data["code"] == code
    assert data["message"]
    assert data["request_id"]


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        datetime.fromisoformat(data["time"])


class TestScanEndpoints:
    def test_text_scan_created(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scans/text",
            json={"content": APEX_TEXT, "domain": "sales_email", "subject_contact_ids": ["dana"]},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["credits_remaining"] == 10
        assert data["report"]["score"]["frame_score"] == 100
        assert data["report"]["domain"] == "sales_email"
        assert data["report"]["subject_contact_ids"] == ["dana"]
        assert data["report"]["report_id"].startswith("fsr_")
        assert [a["advisory_type"] for a in data["advisories"]] == ["first_scan_complete"]

    def test_public_text_scan_infers_domain(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scans/public/text", json={"content": "Would you like to grab coffee with me?"}
        )

        assert response.status_code == 201
        report = response.json()["report"]
        assert report["domain"] == "dating_message"
        assert report["domain_inferred"] is True

    def test_image_scan_charges_credits(self, client: TestClient) -> None:
        response = client.post("/v1/scans/image", json=IMAGE_BODY)

        assert response.status_code == 201
        data = response.json()
        assert data["credits_remaining"] == 5
        assert data["report"]["raw_result"]["annotations"]

    def test_tiered_image_scan_without_domain(self, client: TestClient) -> None:
        body = {
            "image_ref": "https://img.example/team.jpg",
            "context_label": "Our team at the quarterly offsite",
            "tier": "basic",
        }

        response = client.post("/v1/scans/image/tiered", json=body)

        assert response.status_code == 201
        report = response.json()["report"]
        assert report["domain"] == "team_photo"
        assert report["domain_inferred"] is True


class TestScanErrors:
    def test_content_rejected_is_422(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scans/text", json={"content": "hi"}, headers={"X-Request-Id": "req-123"}
        )

        assert response.status_code == 422
        data = response.json()
        _assert_envelope(data, "CONTENT_REJECTED")
        assert data["request_id"] == "req-123"
        assert response.headers["X-Request-Id"] == "req-123"
        assert "reason" in data["details"]

    def test_insufficient_credits_is_402_with_advisories(self, client: TestClient) -> None:
        client.post("/v1/scans/image", json=IMAGE_BODY)
        client.post("/v1/scans/image", json=IMAGE_BODY)

        response = client.post("/v1/scans/image", json=IMAGE_BODY)

        assert response.status_code == 402
        data = response.json()
        _assert_envelope(data, "INSUFFICIENT_CREDITS")
        assert data["message"] == "Detailed scan needs 5 credits, 0 available."
        assert data["details"]["required"] == 5
        assert data["details"]["available"] == 0
        [advisory] = data["details"]["advisories"]
        assert advisory["advisory_type"] == "credits_low"
        assert advisory["priority"] == "urgent"

    def test_provider_failure_is_502_and_refunded(self) -> None:
        client = _make_client(provider=_ExplodingProvider())

        response = client.post("/v1/scans/image", json=IMAGE_BODY)

        assert response.status_code == 502
        data = response.json()
        _assert_envelope(data, "PROVIDER_FAILURE")
        assert data["message"] == "Scan failed, credits refunded."
        assert data["details"]["refunded"] is True
        assert client.get("/v1/credits").json()["available"] == 10

    def test_throttled_is_429(self) -> None:
        client = _make_client(max_scans=1)
        assert client.post("/v1/scans/text", json={"content": APEX_TEXT}).status_code == 201

        response = client.post("/v1/scans/text", json={"content": APEX_TEXT})

        assert response.status_code == 429
        _assert_envelope(response.json(), "SCAN_THROTTLED")

    def test_missing_body_field_is_validation_error(self, client: TestClient) -> None:
        response = client.post("/v1/scans/text", json={"domain": "generic"})

        assert response.status_code == 422
        data = response.json()
        _assert_envelope(data, "REQUEST_VALIDATION_FAILED")
        assert data["details"]["errors"][0]["field"] == "content"

    def test_domain_modality_mismatch_is_validation_error(self, client: TestClient) -> None:
        body = dict(IMAGE_BODY, domain="sales_email")

        response = client.post("/v1/scans/image", json=body)

        assert response.status_code == 422
        _assert_envelope(response.json(), "REQUEST_VALIDATION_FAILED")

    def test_generated_request_id_is_uuid(self, client: TestClient) -> None:
        response = client.post("/v1/scans/text", json={"content": "hi"})

        request_id = response.json()["request_id"]
        assert len(request_id) == 36
        assert request_id.count("-") == 4


class TestReportEndpoints:
    def test_latest_report_404_when_empty(self, client: TestClient) -> None:
        response = client.get("/v1/reports/latest")

        assert response.status_code == 404
        data = response.json()
        _assert_envelope(data, "NOT_FOUND")
        assert data["message"] == "No scan reports yet"

    def test_report_lookup_and_tags(self, client: TestClient) -> None:
        created = client.post("/v1/scans/text", json={"content": APEX_TEXT}).json()["report"]
        report_id = created["report_id"]

        assert client.get(f"/v1/reports/{report_id}").json() == created
        assert client.get("/v1/reports/latest").json()["report_id"] == report_id

        tagged = client.post(f"/v1/reports/{report_id}/tags", json={"tag": "board memo"})
        assert tagged.status_code == 200
        assert tagged.json()["custom_domain_tags"] == ["board memo"]
        assert tagged.json()["score"] == created["score"]

        untagged = client.delete(f"/v1/reports/{report_id}/tags/board memo")
        assert untagged.json()["custom_domain_tags"] == []

    def test_unknown_report_is_404(self, client: TestClient) -> None:
        assert client.get("/v1/reports/fsr_missing").status_code == 404

        response = client.post("/v1/reports/fsr_missing/tags", json={"tag": "x"})
        assert response.status_code == 404
        assert response.json()["details"] == {"report_id": "fsr_missing"}

    def test_contact_reports_and_profile(self, client: TestClient) -> None:
        client.post("/v1/scans/text", json={"content": SLAVE_TEXT, "subject_contact_ids": ["dana"]})
        client.post("/v1/scans/text", json={"content": APEX_TEXT, "subject_contact_ids": ["dana"]})

        reports = client.get("/v1/contacts/dana/reports").json()
        assert [r["score"]["frame_score"] for r in reports] == [100, 0]

        profile = client.get("/v1/contacts/dana/profile").json()
        assert profile["profile"]["current_frame_score"] == 100
        assert profile["profile"]["scans_count"] == 2
        assert profile["trend"] == {"direction": "up", "change_amount": 100}

    def test_profile_for_unknown_contact(self, client: TestClient) -> None:
        data = client.get("/v1/contacts/nobody/profile").json()

        assert data["profile"]["current_frame_score"] == 50
        assert data["trend"] is None


class TestCreditEndpoints:
    def test_balance(self, client: TestClient) -> None:
        data = client.get("/v1/credits").json()

        assert data["available"] == 10
        assert data["credits"] == 10
        assert data["bonus_credits"] == 0

    def test_purchase_and_history(self, client: TestClient) -> None:
        response = client.post("/v1/credits/purchase", json={"package_id": "pkg_standard"})

        assert response.status_code == 200
        assert response.json()["available"] == 40
        [tx] = client.get("/v1/credits/transactions").json()
        assert tx["transaction_type"] == "purchase"
        assert tx["package_id"] == "pkg_standard"

    def test_unknown_package_is_404(self, client: TestClient) -> None:
        response = client.post("/v1/credits/purchase", json={"package_id": "pkg_nope"})

        assert response.status_code == 404
        _assert_envelope(response.json(), "NOT_FOUND")

    def test_bonus(self, client: TestClient) -> None:
        response = client.post("/v1/credits/bonus", json={"amount": 3, "reason": "Referral"})

        assert response.status_code == 200
        assert response.json()["bonus_credits"] == 3

    def test_bonus_must_be_positive(self, client: TestClient) -> None:
        response = client.post("/v1/credits/bonus", json={"amount": 0, "reason": "Nothing"})

        assert response.status_code == 422
        _assert_envelope(response.json(), "REQUEST_VALIDATION_FAILED")

    def test_packages(self, client: TestClient) -> None:
        packages = client.get("/v1/credits/packages").json()

        assert [p["package_id"] for p in packages] == [
            "pkg_starter",
            "pkg_standard",
            "pkg_pro",
            "pkg_unlimited",
        ]
        assert [p["popular"] for p in packages].count(True) == 1
