"""Scan report models.

- ScanReportDraft: everything the pipeline knows before persisting
- ScanReport: stored, immutable report (store assigns sequence + created_at)
- CumulativeProfile / Trend: derived per-contact aggregates
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from framescan.credits.models import ScanTier
from framescan.providers.models import ProviderResult
from framescan.scoring.models import Domain, FrameScore, Modality

DEFAULT_PROFILE_SCORE = 50


class TrendDirection(StrEnum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class ScanReportDraft(BaseModel):
    """A scored scan awaiting persistence."""

    model_config = ConfigDict(frozen=True)

    report_id: str | None = Field(
        default=None, description="Pre-allocated id; the store assigns one if absent"
    )
    title: str = ""
    domain: Domain
    domain_inferred: bool = False
    modality: Modality
    tier: ScanTier
    subject_contact_ids: list[str] = Field(..., min_length=1)
    score: FrameScore
    raw_result: ProviderResult
    custom_domain_tags: frozenset[str] = Field(default_factory=frozenset)
    source_ref: str | None = None


class ScanReport(BaseModel):
    """A persisted scan report. Scoring fields never change after creation."""

    model_config = ConfigDict(frozen=True)

    report_id: str
    sequence: int = Field(..., ge=1, description="Store-assigned monotonic sequence")
    created_at: datetime
    title: str = ""
    domain: Domain
    domain_inferred: bool = False
    modality: Modality
    tier: ScanTier
    subject_contact_ids: list[str] = Field(..., min_length=1)
    score: FrameScore
    raw_result: ProviderResult
    custom_domain_tags: frozenset[str] = Field(default_factory=frozenset)
    source_ref: str | None = None

    @field_serializer("custom_domain_tags")
    def _serialize_tags(self, tags: frozenset[str]) -> list[str]:
        return sorted(tags)

    @property
    def frame_score(self) -> int:
        return self.score.frame_score


class CumulativeProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    contact_id: str
    current_frame_score: int = Field(..., ge=0, le=100)
    scans_count: int = Field(..., ge=0)
    last_scan_at: datetime | None = None


class Trend(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    change_amount: int = Field(..., ge=0)
