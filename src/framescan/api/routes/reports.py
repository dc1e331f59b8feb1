"""Report and contact profile endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from framescan.api.deps import get_service
from framescan.api.errors import FrameScanHttpError
from framescan.reports.store import ReportNotFoundError
from framescan.service import FrameScanService

router = APIRouter(prefix="/v1", tags=["Reports"])


class TagRequest(BaseModel):
    tag: str = Field(..., min_length=1)


class ProfileResponse(BaseModel):
    profile: dict[str, Any]
    trend: dict[str, Any] | None


def _not_found(report_id: str) -> FrameScanHttpError:
    return FrameScanHttpError(
        status_code=404,
        code="NOT_FOUND",
        message=f"Scan report not found: {report_id}",
        details={"report_id": report_id},
    )


@router.get("/reports/latest")
def get_latest_report(
    contact_id: str | None = Query(default=None),
    service: FrameScanService = Depends(get_service),
) -> dict[str, Any]:
    report = service.get_latest_report(contact_id)
    if report is None:
        raise FrameScanHttpError(
            status_code=404, code="NOT_FOUND", message="No scan reports yet"
        )
    return report.model_dump(mode="json")


@router.get("/reports/{report_id}")
def get_report(report_id: str, service: FrameScanService = Depends(get_service)) -> dict[str, Any]:
    report = service.get_report_by_id(report_id)
    if report is None:
        raise _not_found(report_id)
    return report.model_dump(mode="json")


@router.post("/reports/{report_id}/tags")
def add_report_tag(
    report_id: str, body: TagRequest, service: FrameScanService = Depends(get_service)
) -> dict[str, Any]:
    try:
        report = service.add_custom_domain_tag(report_id, body.tag)
    except ReportNotFoundError as exc:
        raise _not_found(report_id) from exc
    return report.model_dump(mode="json")


@router.delete("/reports/{report_id}/tags/{tag}")
def remove_report_tag(
    report_id: str, tag: str, service: FrameScanService = Depends(get_service)
) -> dict[str, Any]:
    try:
        report = service.remove_custom_domain_tag(report_id, tag)
    except ReportNotFoundError as exc:
        raise _not_found(report_id) from exc
    return report.model_dump(mode="json")


@router.get("/contacts/{contact_id}/reports")
def list_contact_reports(
    contact_id: str, service: FrameScanService = Depends(get_service)
) -> list[dict[str, Any]]:
    return [r.model_dump(mode="json") for r in service.get_reports_for_contact(contact_id)]


@router.get("/contacts/{contact_id}/profile", response_model=ProfileResponse)
def get_contact_profile(
    contact_id: str,
    window: int = Query(default=3, ge=1, le=50),
    service: FrameScanService = Depends(get_service),
) -> ProfileResponse:
    view = service.get_contact_profile(contact_id, window)
    return ProfileResponse(
        profile=view.profile.model_dump(mode="json"),
        trend=view.trend.model_dump(mode="json") if view.trend else None,
    )
