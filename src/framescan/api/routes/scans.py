"""Scan endpoints.

POST /v1/scans/text           explicit-domain text scan (free)
POST /v1/scans/image          explicit-domain image scan at a tier
POST /v1/scans/image/tiered   image scan; domain inferred when omitted
POST /v1/scans/public/text    public text scan; domain inferred from keywords
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from framescan.api.deps import get_service
from framescan.credits.models import ScanTier
from framescan.scoring.models import Domain
from framescan.service import FrameScanService, ScanResult

router = APIRouter(prefix="/v1/scans", tags=["Scans"])


class TextScanRequest(BaseModel):
    content: str = Field(..., min_length=1)
    domain: Domain = Domain.GENERIC
    subject_contact_ids: list[str] | None = None
    title: str | None = None
    source_ref: str | None = None


class ImageScanRequest(BaseModel):
    image_ref: str = Field(..., min_length=1)
    context_label: str | None = None
    domain: Domain
    tier: ScanTier = ScanTier.BASIC
    subject_contact_ids: list[str] | None = None
    title: str | None = None
    source_ref: str | None = None


class TieredImageScanRequest(BaseModel):
    image_ref: str = Field(..., min_length=1)
    context_label: str | None = None
    tier: ScanTier
    domain: Domain | None = None
    subject_contact_ids: list[str] | None = None
    title: str | None = None
    source_ref: str | None = None


class PublicTextScanRequest(BaseModel):
    content: str = Field(..., min_length=1)


class ScanResponse(BaseModel):
    report: dict[str, Any]
    credits_remaining: int
    advisories: list[dict[str, Any]]


def _to_response(result: ScanResult) -> ScanResponse:
    return ScanResponse(
        report=result.report.model_dump(mode="json"),
        credits_remaining=result.credits_remaining,
        advisories=[a.model_dump(mode="json") for a in result.advisories],
    )


@router.post("/text", response_model=ScanResponse, status_code=201)
def scan_text(
    body: TextScanRequest, service: FrameScanService = Depends(get_service)
) -> ScanResponse:
    return _to_response(
        service.run_text_scan(
            body.content,
            domain=body.domain,
            subject_contact_ids=body.subject_contact_ids,
            title=body.title,
            source_ref=body.source_ref,
        )
    )


@router.post("/image", response_model=ScanResponse, status_code=201)
def scan_image(
    body: ImageScanRequest, service: FrameScanService = Depends(get_service)
) -> ScanResponse:
    return _to_response(
        service.run_image_scan(
            body.image_ref,
            body.context_label,
            domain=body.domain,
            tier=body.tier,
            subject_contact_ids=body.subject_contact_ids,
            title=body.title,
            source_ref=body.source_ref,
        )
    )


@router.post("/image/tiered", response_model=ScanResponse, status_code=201)
def scan_image_tiered(
    body: TieredImageScanRequest, service: FrameScanService = Depends(get_service)
) -> ScanResponse:
    return _to_response(
        service.run_tiered_image_scan(
            body.image_ref,
            body.context_label,
            tier=body.tier,
            domain=body.domain,
            subject_contact_ids=body.subject_contact_ids,
            title=body.title,
            source_ref=body.source_ref,
        )
    )


@router.post("/public/text", response_model=ScanResponse, status_code=201)
def scan_public_text(
    body: PublicTextScanRequest, service: FrameScanService = Depends(get_service)
) -> ScanResponse:
    return _to_response(service.run_public_text_scan(body.content))
