"""Frame scoring domain models.

Defines the axis score model:
- AxisId: the 9 fixed frame axes
- Modality / Domain: what kind of content was scanned
- AxisBand: 5-band reading of a raw -3..+3 axis score
- OverallFrame: apex / slave / mixed / neutral classification
- AxisScore: raw per-axis score from the analysis provider
- WeightedAxisScore: normalized sub-score and the weight applied to it
- FrameScore: composite 0-100 score with its full weighted breakdown
"""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

AXIS_SCORE_MIN = -3
AXIS_SCORE_MAX = 3
_ROUNDING_EPSILON = 1e-9


class AxisId(StrEnum):
    """Frame axes (9 axes, canonical order)."""

    ASSUMPTIVE_STATE = "assumptive_state"
    BUYER_SELLER_POSITION = "buyer_seller_position"
    IDENTITY_VS_TACTIC = "identity_vs_tactic"
    INTERNAL_SALE = "internal_sale"
    WIN_WIN_INTEGRITY = "win_win_integrity"
    PERSUASION_STYLE = "persuasion_style"
    PEDESTALIZATION = "pedestalization"
    SELF_TRUST_VS_PERMISSION = "self_trust_vs_permission"
    FIELD_STRENGTH = "field_strength"


class Modality(StrEnum):
    """Content modality of a scan."""

    TEXT = "text"
    IMAGE = "image"


class Domain(StrEnum):
    """Content domain, selecting the weight pack."""

    GENERIC = "generic"
    SALES_EMAIL = "sales_email"
    DATING_MESSAGE = "dating_message"
    LEADERSHIP_UPDATE = "leadership_update"
    SOCIAL_POST = "social_post"
    PROFILE_PHOTO = "profile_photo"
    TEAM_PHOTO = "team_photo"
    LANDING_PAGE_HERO = "landing_page_hero"
    SOCIAL_POST_IMAGE = "social_post_image"


class AxisBand(StrEnum):
    """Reading of a raw axis score."""

    STRONG_SLAVE = "strong_slave"
    MILD_SLAVE = "mild_slave"
    NEUTRAL = "neutral"
    MILD_APEX = "mild_apex"
    STRONG_APEX = "strong_apex"


class OverallFrame(StrEnum):
    """Overall frame classification of a scan."""

    APEX = "apex"
    SLAVE = "slave"
    MIXED = "mixed"
    NEUTRAL = "neutral"


ALL_AXES: tuple[AxisId, ...] = tuple(AxisId)
_NUM_AXES = 9

TEXT_DOMAINS: frozenset[Domain] = frozenset(
    {
        Domain.GENERIC,
        Domain.SALES_EMAIL,
        Domain.DATING_MESSAGE,
        Domain.LEADERSHIP_UPDATE,
        Domain.SOCIAL_POST,
    }
)
IMAGE_DOMAINS: frozenset[Domain] = frozenset(
    {
        Domain.PROFILE_PHOTO,
        Domain.TEAM_PHOTO,
        Domain.LANDING_PAGE_HERO,
        Domain.SOCIAL_POST_IMAGE,
    }
)


def modality_for_domain(domain: Domain) -> Modality:
    """Return the modality a domain belongs to."""
    return Modality.IMAGE if domain in IMAGE_DOMAINS else Modality.TEXT


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative input.

    A small epsilon absorbs float drift from weight normalization so that
    a mathematically exact .5 rounds up.
    """
    return math.floor(value + 0.5 + _ROUNDING_EPSILON)


def band_for_score(score: float) -> AxisBand:
    """Map a raw axis score to its band.

    Band edges: <= -2 strong_slave, <= -0.5 mild_slave, <= 0.5 neutral,
    <= 2 mild_apex, above that strong_apex.
    """
    if score <= -2:
        return AxisBand.STRONG_SLAVE
    if score <= -0.5:
        return AxisBand.MILD_SLAVE
    if score <= 0.5:
        return AxisBand.NEUTRAL
    if score <= 2:
        return AxisBand.MILD_APEX
    return AxisBand.STRONG_APEX


class AxisScore(BaseModel):
    """Raw score for a single frame axis.

    Range checking happens in the scoring engine so that an out-of-range
    provider value surfaces as InvalidAxisScore rather than a pydantic error.
    """

    model_config = ConfigDict(frozen=True)

    axis_id: AxisId = Field(..., description="Axis being scored")
    score: int = Field(..., description="Raw axis score, -3 (slave) to +3 (apex)")
    notes: str = Field(default="", description="Provider or pipeline notes for this axis")

    @property
    def band(self) -> AxisBand:
        return band_for_score(self.score)


class WeightedAxisScore(BaseModel):
    """Normalized sub-score for one axis with the weight it carried."""

    model_config = ConfigDict(frozen=True)

    axis_id: AxisId
    sub_score: int = Field(..., ge=0, le=100, description="Axis score mapped to 0-100")
    weight: float = Field(..., gt=0.0, le=1.0, description="Domain pack weight")


class FrameScore(BaseModel):
    """Composite frame score derived from all 9 axis scores.

    frame_score must equal round_half_up(sum(weight * sub_score)) over the
    weighted breakdown. Hand-set scores that disagree are rejected.
    """

    model_config = ConfigDict(frozen=True)

    frame_score: int = Field(..., ge=0, le=100, description="Composite score 0-100")
    overall_frame: OverallFrame
    domain: Domain = Field(default=Domain.GENERIC)
    axis_scores: list[AxisScore] = Field(..., description="One score per axis, canonical order")
    weighted_axis_scores: list[WeightedAxisScore] = Field(
        ..., description="Sub-score and weight per axis, canonical order"
    )
    notes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_breakdown(self) -> FrameScore:
        """Fail closed: exactly the 9 axes in order, composite matches breakdown."""
        axis_order = tuple(a.axis_id for a in self.axis_scores)
        if axis_order != ALL_AXES:
            raise ValueError(
                f"axis_scores must list all {_NUM_AXES} axes in canonical order "
                f"(got {[a.value for a in axis_order]})"
            )
        weighted_order = tuple(w.axis_id for w in self.weighted_axis_scores)
        if weighted_order != ALL_AXES:
            raise ValueError(
                f"weighted_axis_scores must list all {_NUM_AXES} axes in canonical order"
            )
        composite = sum(w.weight * w.sub_score for w in self.weighted_axis_scores)
        expected = round_half_up(composite)
        if self.frame_score != expected:
            raise ValueError(
                f"frame_score {self.frame_score} does not match weighted breakdown ({expected})"
            )
        return self

    def axis(self, axis_id: AxisId) -> AxisScore:
        """Return the raw score for one axis."""
        for axis_score in self.axis_scores:
            if axis_score.axis_id == axis_id:
                return axis_score
        raise KeyError(axis_id)
