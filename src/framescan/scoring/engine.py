"""Frame scoring engine.

Deterministic aggregator that:
1. Validates the axis set (all 9 axes, once each, integer in [-3, +3])
2. Normalizes each raw score to a 0-100 sub-score
3. Computes frame_score = round_half_up(sum(sub_i * weight_i)) from the domain pack
4. Classifies the overall frame from the composite and the sub-score spread

Pure functions only. No I/O, no clamping: invalid input raises InvalidAxisScore.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Iterable, Mapping
from typing import Any

from framescan.scoring.domain_packs import DEFAULT_DOMAIN, DomainPack, get_domain_pack
from framescan.scoring.models import (
    ALL_AXES,
    AXIS_SCORE_MAX,
    AXIS_SCORE_MIN,
    AxisBand,
    AxisId,
    AxisScore,
    FrameScore,
    OverallFrame,
    WeightedAxisScore,
    band_for_score,
    round_half_up,
)

logger = logging.getLogger(__name__)

APEX_MIN_SCORE = 70
SLAVE_MAX_SCORE = 30
MIXED_MIN_SPREAD = 25.0


class InvalidAxisScore(Exception):
    """Raised when an axis set is incomplete, duplicated, unknown, or out of range."""


def normalize_axis_score(raw: int) -> int:
    """Map a raw -3..+3 axis score onto 0..100.

    Args:
        raw: Raw axis score.

    Returns:
        round_half_up(((raw + 3) / 6) * 100)

    Raises:
        InvalidAxisScore: If raw is not an integer in [-3, +3].
    """
    _check_raw_score(raw)
    return round_half_up(((raw + 3) / 6) * 100)


def score_to_band(raw: float) -> AxisBand:
    """Return the band label for a raw axis score."""
    return band_for_score(raw)


def _check_raw_score(raw: Any, axis: str = "axis") -> None:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidAxisScore(f"Score for {axis} must be an integer (got {raw!r})")
    if raw < AXIS_SCORE_MIN or raw > AXIS_SCORE_MAX:
        raise InvalidAxisScore(
            f"Score for {axis} out of range [{AXIS_SCORE_MIN}, {AXIS_SCORE_MAX}]: {raw}"
        )


def _coerce_raw_score(value: Any, axis: str) -> int:
    """Accept ints and integral floats (JSON numbers), reject everything else."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    _check_raw_score(value, axis)
    return int(value)


def axis_scores_from_raw(items: Iterable[Mapping[str, Any]]) -> list[AxisScore]:
    """Build AxisScore objects from provider-shaped dicts.

    Each item must carry ``axis_id`` (or ``axisId``) and ``score``; ``notes``
    is optional. Validation of completeness happens in compute_frame_score.

    Raises:
        InvalidAxisScore: On unknown axis ids or non-integer / out-of-range scores.
    """
    result: list[AxisScore] = []
    for i, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise InvalidAxisScore(f"Axis entry {i} is not an object")
        raw_id = item.get("axis_id", item.get("axisId"))
        try:
            axis_id = AxisId(raw_id)
        except ValueError as exc:
            raise InvalidAxisScore(f"Unknown axis id: {raw_id!r}") from exc
        if "score" not in item:
            raise InvalidAxisScore(f"Axis {axis_id.value} has no score")
        score = _coerce_raw_score(item["score"], axis_id.value)
        notes = item.get("notes") or ""
        result.append(AxisScore(axis_id=axis_id, score=score, notes=str(notes)))
    return result


def _validate_axis_set(axis_scores: Iterable[AxisScore]) -> dict[AxisId, AxisScore]:
    by_axis: dict[AxisId, AxisScore] = {}
    for axis_score in axis_scores:
        if not isinstance(axis_score, AxisScore):
            raise InvalidAxisScore(f"Expected AxisScore, got {type(axis_score).__name__}")
        if axis_score.axis_id in by_axis:
            raise InvalidAxisScore(f"Duplicate axis id: {axis_score.axis_id.value}")
        _check_raw_score(axis_score.score, axis_score.axis_id.value)
        by_axis[axis_score.axis_id] = axis_score

    missing = [a.value for a in ALL_AXES if a not in by_axis]
    if missing:
        raise InvalidAxisScore(f"Missing axis ids: {missing}")
    return by_axis


def classify_overall_frame(frame_score: int, sub_scores: list[int]) -> OverallFrame:
    """Classify the overall frame.

    Order matters: a wide spread of sub-scores is "mixed" regardless of the
    composite, then the slave and apex thresholds apply, else "neutral".
    """
    spread = statistics.pstdev(sub_scores) if sub_scores else 0.0
    if spread >= MIXED_MIN_SPREAD:
        return OverallFrame.MIXED
    if frame_score <= SLAVE_MAX_SCORE:
        return OverallFrame.SLAVE
    if frame_score >= APEX_MIN_SCORE:
        return OverallFrame.APEX
    return OverallFrame.NEUTRAL


def compute_frame_score(
    axis_scores: Iterable[AxisScore],
    pack: DomainPack | None = None,
) -> FrameScore:
    """Compute the composite FrameScore for a complete axis set.

    Args:
        axis_scores: Exactly one AxisScore per axis id, any order.
        pack: Domain weight pack. Defaults to the generic pack.

    Returns:
        FrameScore with canonical axis order and the weighted breakdown.

    Raises:
        InvalidAxisScore: If the axis set is incomplete, has duplicates, or a
            score is outside [-3, +3].
    """
    if pack is None:
        pack = get_domain_pack(DEFAULT_DOMAIN)

    by_axis = _validate_axis_set(axis_scores)
    ordered = [by_axis[axis] for axis in ALL_AXES]

    weighted = [
        WeightedAxisScore(
            axis_id=a.axis_id,
            sub_score=normalize_axis_score(a.score),
            weight=pack.weight_for(a.axis_id),
        )
        for a in ordered
    ]
    composite = sum(w.weight * w.sub_score for w in weighted)
    frame_score = round_half_up(composite)
    sub_scores = [w.sub_score for w in weighted]
    overall = classify_overall_frame(frame_score, sub_scores)

    band_counts: dict[str, int] = {}
    for a in ordered:
        band_counts[a.band.value] = band_counts.get(a.band.value, 0) + 1
    band_summary = ", ".join(f"{band}={count}" for band, count in sorted(band_counts.items()))

    notes = [
        f"Domain: {pack.domain.value} ({pack.label})",
        f"Priority axes: {', '.join(a.value for a in pack.priority_axes)}",
        f"Weighted composite: {composite:.2f}",
        f"Axis bands: {band_summary}",
    ]

    logger.debug(
        "Computed frame score %d (%s) for domain %s",
        frame_score,
        overall.value,
        pack.domain.value,
    )

    return FrameScore(
        frame_score=frame_score,
        overall_frame=overall,
        domain=pack.domain,
        axis_scores=ordered,
        weighted_axis_scores=weighted,
        notes=notes,
    )


def weakest_axes(score: FrameScore, n: int = 3) -> list[AxisScore]:
    """Return the n lowest-scoring axes, ties broken by canonical order."""
    order = {axis: i for i, axis in enumerate(ALL_AXES)}
    ranked = sorted(score.axis_scores, key=lambda a: (a.score, order[a.axis_id]))
    return ranked[:n]


def strongest_axes(score: FrameScore, n: int = 3) -> list[AxisScore]:
    """Return the n highest-scoring axes, ties broken by canonical order."""
    order = {axis: i for i, axis in enumerate(ALL_AXES)}
    ranked = sorted(score.axis_scores, key=lambda a: (-a.score, order[a.axis_id]))
    return ranked[:n]
