"""Provider payload normalization.

Runs exactly once per scan, at the pipeline boundary. After normalization:
- every array field exists (possibly empty), including nested protocol_steps
- the axis set is complete: omitted axes are defaulted to score 0
- annotations only survive on detailed image scans

Payload keys are accepted in snake_case or the camelCase some providers emit.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from framescan.credits.models import ScanTier
from framescan.providers.models import (
    CorrectionShift,
    Corrections,
    Diagnostics,
    ImageAnnotation,
    ProviderRequest,
    ProviderResult,
    ProviderStatus,
    SampleRewrite,
    WinWinState,
)
from framescan.scoring.engine import InvalidAxisScore, axis_scores_from_raw
from framescan.scoring.models import ALL_AXES, AxisId, AxisScore, Modality

logger = logging.getLogger(__name__)

DEFAULTED_AXIS_NOTE = "not assessed"
DEFAULT_REJECTION_REASON = (
    "Not enough context to analyze. Describe who is involved, what this is, and why."
)


class MalformedProviderPayload(ValueError):
    """Raised when the provider payload cannot be read as a frame-scan result."""


class ProviderRejection(Exception):
    """Raised when the provider declined to score the content."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _pick(data: Mapping[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _str_list(value: Any) -> list[str]:
    return [str(v) for v in _as_list(value) if v is not None]


def _normalize_axes(raw_axes: Any) -> tuple[list[AxisScore], list[AxisId]]:
    if not isinstance(raw_axes, list) or not raw_axes:
        raise MalformedProviderPayload("Provider payload has no axis scores")

    parsed = axis_scores_from_raw(raw_axes)
    by_axis: dict[AxisId, AxisScore] = {}
    for axis_score in parsed:
        if axis_score.axis_id in by_axis:
            raise InvalidAxisScore(f"Duplicate axis id: {axis_score.axis_id.value}")
        by_axis[axis_score.axis_id] = axis_score

    defaulted = [axis for axis in ALL_AXES if axis not in by_axis]
    for axis in defaulted:
        by_axis[axis] = AxisScore(axis_id=axis, score=0, notes=DEFAULTED_AXIS_NOTE)
    if defaulted:
        logger.warning(
            "Provider omitted %d axes, defaulted to 0: %s",
            len(defaulted),
            ", ".join(a.value for a in defaulted),
        )
    return [by_axis[axis] for axis in ALL_AXES], defaulted


def _normalize_shifts(raw_shifts: Any) -> list[CorrectionShift]:
    shifts: list[CorrectionShift] = []
    for i, raw in enumerate(_as_list(raw_shifts)):
        if not isinstance(raw, Mapping):
            logger.warning("Dropping malformed correction shift at index %d", i)
            continue
        try:
            shifts.append(
                CorrectionShift(
                    axis_id=_pick(raw, "axis_id", "axisId"),
                    shift=str(raw.get("shift") or ""),
                    protocol_steps=_str_list(_pick(raw, "protocol_steps", "protocolSteps")),
                )
            )
        except ValidationError:
            logger.warning("Dropping correction shift with unknown axis at index %d", i)
    return shifts


def _normalize_rewrites(raw_rewrites: Any) -> list[SampleRewrite]:
    rewrites: list[SampleRewrite] = []
    for raw in _as_list(raw_rewrites):
        if not isinstance(raw, Mapping):
            continue
        apex_version = _pick(raw, "apex_version", "apexVersion")
        if not apex_version:
            continue
        rewrites.append(
            SampleRewrite(purpose=str(raw.get("purpose") or ""), apex_version=str(apex_version))
        )
    return rewrites


def _normalize_annotations(raw_annotations: Any) -> list[ImageAnnotation]:
    annotations: list[ImageAnnotation] = []
    for i, raw in enumerate(_as_list(raw_annotations)):
        if not isinstance(raw, Mapping):
            continue
        try:
            annotations.append(
                ImageAnnotation(
                    annotation_id=str(_pick(raw, "annotation_id", "id") or f"ann-{i + 1}"),
                    label=str(raw.get("label") or "Observation"),
                    description=str(raw.get("description") or ""),
                    severity=raw.get("severity") or "info",
                    x=raw.get("x"),
                    y=raw.get("y"),
                    width=raw.get("width"),
                    height=raw.get("height"),
                )
            )
        except ValidationError:
            logger.warning("Dropping annotation with invalid region at index %d", i)
    return annotations


def _win_win_state(value: Any) -> WinWinState:
    try:
        return WinWinState(value)
    except ValueError:
        return WinWinState.NEUTRAL


def normalize_provider_result(raw: Any, request: ProviderRequest) -> ProviderResult:
    """Normalize a raw provider payload for the given request.

    Args:
        raw: Parsed provider JSON.
        request: The request the payload answers; supplies domain, modality, tier.

    Returns:
        ProviderResult with every array present and all 9 axes.

    Raises:
        ProviderRejection: If the provider reported status "rejected".
        MalformedProviderPayload: If the payload is not an object or has no axes.
        InvalidAxisScore: If an axis id is unknown, duplicated, or out of range.
    """
    if not isinstance(raw, Mapping):
        raise MalformedProviderPayload("Provider payload must be a JSON object")

    status = str(raw.get("status") or ProviderStatus.OK.value).lower()
    if status == ProviderStatus.REJECTED.value:
        reason = _pick(raw, "rejection_reason", "rejectionReason") or DEFAULT_REJECTION_REASON
        raise ProviderRejection(str(reason))
    if status != ProviderStatus.OK.value:
        raise MalformedProviderPayload(f"Unknown provider status: {status!r}")

    axes, defaulted = _normalize_axes(raw.get("axes"))

    diagnostics_raw = _as_mapping(raw.get("diagnostics"))
    corrections_raw = _as_mapping(raw.get("corrections"))

    annotations: list[ImageAnnotation] = []
    if request.modality == Modality.IMAGE and request.tier == ScanTier.DETAILED:
        annotations = _normalize_annotations(raw.get("annotations"))

    return ProviderResult(
        status=ProviderStatus.OK,
        title=str(raw.get("title") or ""),
        summary=str(raw.get("summary") or ""),
        modality=request.modality,
        domain=request.domain,
        win_win_state=_win_win_state(_pick(raw, "overall_win_win_state", "overallWinWinState")),
        axes=axes,
        defaulted_axes=defaulted,
        diagnostics=Diagnostics(
            primary_patterns=_str_list(
                _pick(diagnostics_raw, "primary_patterns", "primaryPatterns")
            ),
            supporting_evidence=_str_list(
                _pick(diagnostics_raw, "supporting_evidence", "supportingEvidence")
            ),
        ),
        corrections=Corrections(
            top_shifts=_normalize_shifts(_pick(corrections_raw, "top_shifts", "topShifts")),
            sample_rewrites=_normalize_rewrites(
                _pick(corrections_raw, "sample_rewrites", "sampleRewrites")
            ),
        ),
        annotations=annotations,
    )
