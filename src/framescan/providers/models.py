"""Analysis provider request/result models.

ProviderRequest is what the pipeline sends to an AnalysisProvider.
ProviderResult is the normalized form of the provider's JSON payload; every
array field is present (possibly empty) and the axis set is complete.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from framescan.credits.models import ScanTier
from framescan.scoring.models import AxisId, AxisScore, Domain, Modality


class ProviderStatus(StrEnum):
    OK = "ok"
    REJECTED = "rejected"


class WinWinState(StrEnum):
    """Overall win/win reading of the content."""

    WIN_WIN = "win_win"
    WIN_LOSE = "win_lose"
    LOSE_LOSE = "lose_lose"
    NEUTRAL = "neutral"


class AnnotationSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ProviderRequest(BaseModel):
    """Input to the analysis provider."""

    model_config = ConfigDict(frozen=True)

    domain: Domain
    modality: Modality
    tier: ScanTier = ScanTier.BASIC
    content: str | None = Field(default=None, description="Text to analyze (text scans)")
    image_ref: str | None = Field(default=None, description="Image URL or data ref (image scans)")
    context_label: str | None = Field(
        default=None, description="Who/what/why description supplied by the user"
    )

    @model_validator(mode="after")
    def _validate_payload(self) -> ProviderRequest:
        if self.modality == Modality.TEXT and not self.content:
            raise ValueError("Text requests require content")
        if self.modality == Modality.IMAGE and not self.image_ref:
            raise ValueError("Image requests require image_ref")
        return self


class Diagnostics(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_patterns: list[str] = Field(default_factory=list)
    supporting_evidence: list[str] = Field(default_factory=list)


class CorrectionShift(BaseModel):
    """A recommended structural change on one axis."""

    model_config = ConfigDict(frozen=True)

    axis_id: AxisId
    shift: str
    protocol_steps: list[str] = Field(default_factory=list)


class SampleRewrite(BaseModel):
    model_config = ConfigDict(frozen=True)

    purpose: str
    apex_version: str


class Corrections(BaseModel):
    model_config = ConfigDict(frozen=True)

    top_shifts: list[CorrectionShift] = Field(default_factory=list)
    sample_rewrites: list[SampleRewrite] = Field(default_factory=list)


class ImageAnnotation(BaseModel):
    """Callout on a normalized region of an image (coordinates in 0..1)."""

    model_config = ConfigDict(frozen=True)

    annotation_id: str
    label: str
    description: str = ""
    severity: AnnotationSeverity = AnnotationSeverity.INFO
    x: float = Field(..., ge=0.0, le=1.0)
    y: float = Field(..., ge=0.0, le=1.0)
    width: float = Field(..., ge=0.0, le=1.0)
    height: float = Field(..., ge=0.0, le=1.0)


class ProviderResult(BaseModel):
    """Normalized provider payload for an accepted scan."""

    model_config = ConfigDict(frozen=True)

    status: ProviderStatus = ProviderStatus.OK
    title: str = ""
    summary: str = ""
    modality: Modality
    domain: Domain
    win_win_state: WinWinState = WinWinState.NEUTRAL
    axes: list[AxisScore]
    defaulted_axes: list[AxisId] = Field(
        default_factory=list, description="Axes the provider omitted, defaulted to 0"
    )
    diagnostics: Diagnostics = Field(default_factory=Diagnostics)
    corrections: Corrections = Field(default_factory=Corrections)
    annotations: list[ImageAnnotation] = Field(default_factory=list)
