"""Frame scoring: axis models, domain weight packs, and the composite engine."""

from framescan.scoring.domain_packs import (
    DomainPack,
    DomainPackNotFoundError,
    get_domain_pack,
    list_domain_packs,
)
from framescan.scoring.engine import (
    InvalidAxisScore,
    axis_scores_from_raw,
    classify_overall_frame,
    compute_frame_score,
    normalize_axis_score,
    score_to_band,
    strongest_axes,
    weakest_axes,
)
from framescan.scoring.models import (
    ALL_AXES,
    AxisBand,
    AxisId,
    AxisScore,
    Domain,
    FrameScore,
    Modality,
    OverallFrame,
    WeightedAxisScore,
)

__all__ = [
    "ALL_AXES",
    "AxisBand",
    "AxisId",
    "AxisScore",
    "Domain",
    "DomainPack",
    "DomainPackNotFoundError",
    "FrameScore",
    "InvalidAxisScore",
    "Modality",
    "OverallFrame",
    "WeightedAxisScore",
    "axis_scores_from_raw",
    "classify_overall_frame",
    "compute_frame_score",
    "get_domain_pack",
    "list_domain_packs",
    "normalize_axis_score",
    "score_to_band",
    "strongest_axes",
    "weakest_axes",
]
