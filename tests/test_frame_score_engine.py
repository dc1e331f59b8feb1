"""Tests for the frame scoring engine.

Covers:
1. Raw score normalization and band edges
2. Composite score and overall frame classification
3. Domain weighting
4. Fail-closed validation of the axis set
"""

from __future__ import annotations

import random

import pytest
from pydantic import ValidationError

from framescan.scoring.domain_packs import get_domain_pack
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
    OverallFrame,
    round_half_up,
)


def _make_axes(default: int = 0, **overrides: int) -> list[AxisScore]:
    """Build a full axis set with every axis at default unless overridden."""
    return [
        AxisScore(axis_id=axis, score=overrides.get(axis.value, default)) for axis in ALL_AXES
    ]


class TestNormalization:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(-3, 0), (-2, 17), (-1, 33), (0, 50), (1, 67), (2, 83), (3, 100)],
    )
    def test_raw_scores_map_to_0_100(self, raw: int, expected: int) -> None:
        assert normalize_axis_score(raw) == expected

    def test_out_of_range_raw_score_raises(self) -> None:
        with pytest.raises(InvalidAxisScore, match="out of range"):
            normalize_axis_score(4)

    @pytest.mark.parametrize(
        ("raw", "band"),
        [
            (-3, AxisBand.STRONG_SLAVE),
            (-2, AxisBand.STRONG_SLAVE),
            (-1, AxisBand.MILD_SLAVE),
            (0, AxisBand.NEUTRAL),
            (1, AxisBand.MILD_APEX),
            (2, AxisBand.MILD_APEX),
            (3, AxisBand.STRONG_APEX),
        ],
    )
    def test_band_edges(self, raw: int, band: AxisBand) -> None:
        assert score_to_band(raw) == band
        assert AxisScore(axis_id=AxisId.FIELD_STRENGTH, score=raw).band == band

    def test_round_half_up_rounds_exact_halves_up(self) -> None:
        assert round_half_up(49.5) == 50
        assert round_half_up(50.4999) == 50
        assert round_half_up(0.5) == 1


class TestCompositeScore:
    def test_all_zero_axes_score_50_neutral(self) -> None:
        score = compute_frame_score(_make_axes(0))

        assert score.frame_score == 50
        assert score.overall_frame == OverallFrame.NEUTRAL

    def test_all_max_axes_score_100_apex(self) -> None:
        score = compute_frame_score(_make_axes(3))

        assert score.frame_score == 100
        assert score.overall_frame == OverallFrame.APEX

    def test_all_min_axes_score_0_slave(self) -> None:
        score = compute_frame_score(_make_axes(-3))

        assert score.frame_score == 0
        assert score.overall_frame == OverallFrame.SLAVE

    @pytest.mark.parametrize(
        ("value", "expected_score", "expected_frame"),
        [
            (-2, 17, OverallFrame.SLAVE),
            (-1, 33, OverallFrame.NEUTRAL),
            (1, 67, OverallFrame.NEUTRAL),
            (2, 83, OverallFrame.APEX),
        ],
    )
    def test_uniform_axes_classification(
        self, value: int, expected_score: int, expected_frame: OverallFrame
    ) -> None:
        score = compute_frame_score(_make_axes(value))

        assert score.frame_score == expected_score
        assert score.overall_frame == expected_frame

    def test_wide_spread_is_mixed_regardless_of_composite(self) -> None:
        axes = _make_axes(
            -3,
            assumptive_state=3,
            buyer_seller_position=3,
            win_win_integrity=3,
        )
        score = compute_frame_score(axes)

        assert score.frame_score == 50
        assert score.overall_frame == OverallFrame.MIXED

    def test_frame_score_matches_weighted_breakdown(self) -> None:
        axes = _make_axes(0, field_strength=2, pedestalization=-1, internal_sale=3)
        score = compute_frame_score(axes, get_domain_pack(Domain.LEADERSHIP_UPDATE))

        composite = sum(w.weight * w.sub_score for w in score.weighted_axis_scores)
        assert score.frame_score == round_half_up(composite)
        assert abs(sum(w.weight for w in score.weighted_axis_scores) - 1.0) < 1e-9

    def test_output_is_in_canonical_order_for_any_input_order(self) -> None:
        axes = _make_axes(0, field_strength=2, pedestalization=-1)
        shuffled = list(axes)
        random.Random(7).shuffle(shuffled)

        ordered = compute_frame_score(axes)
        from_shuffled = compute_frame_score(shuffled)

        assert [a.axis_id for a in from_shuffled.axis_scores] == list(ALL_AXES)
        assert [w.axis_id for w in from_shuffled.weighted_axis_scores] == list(ALL_AXES)
        assert from_shuffled.frame_score == ordered.frame_score

    def test_raising_one_axis_never_lowers_the_score(self) -> None:
        for axis in ALL_AXES:
            previous = -1
            for value in range(-3, 4):
                current = compute_frame_score(_make_axes(0, **{axis.value: value})).frame_score
                assert current >= previous
                previous = current

    def test_notes_describe_domain_and_bands(self) -> None:
        score = compute_frame_score(_make_axes(0), get_domain_pack(Domain.SALES_EMAIL))

        assert score.domain == Domain.SALES_EMAIL
        assert score.notes[0] == "Domain: sales_email (Sales email)"
        assert "Axis bands: neutral=9" in score.notes


class TestDomainWeighting:
    def test_priority_axis_moves_score_more_in_its_domain(self) -> None:
        axes = _make_axes(0, pedestalization=3)

        generic = compute_frame_score(axes, get_domain_pack(Domain.GENERIC))
        dating = compute_frame_score(axes, get_domain_pack(Domain.DATING_MESSAGE))

        assert generic.frame_score == 54
        assert dating.frame_score == 58

    def test_default_pack_is_generic(self) -> None:
        score = compute_frame_score(_make_axes(1))
        assert score.domain == Domain.GENERIC


class TestClassifyOverallFrame:
    def test_thresholds_are_inclusive(self) -> None:
        assert classify_overall_frame(70, [70] * 9) == OverallFrame.APEX
        assert classify_overall_frame(30, [30] * 9) == OverallFrame.SLAVE
        assert classify_overall_frame(69, [69] * 9) == OverallFrame.NEUTRAL
        assert classify_overall_frame(31, [31] * 9) == OverallFrame.NEUTRAL

    def test_mixed_takes_precedence_over_apex(self) -> None:
        sub_scores = [100] * 7 + [0] * 2
        assert classify_overall_frame(78, sub_scores) == OverallFrame.MIXED


class TestValidation:
    def test_missing_axis_raises(self) -> None:
        axes = _make_axes(0)[:-1]
        with pytest.raises(InvalidAxisScore, match="Missing axis ids"):
            compute_frame_score(axes)

    def test_duplicate_axis_raises(self) -> None:
        axes = _make_axes(0) + [AxisScore(axis_id=AxisId.FIELD_STRENGTH, score=1)]
        with pytest.raises(InvalidAxisScore, match="Duplicate axis id"):
            compute_frame_score(axes)

    def test_out_of_range_score_raises_without_clamping(self) -> None:
        axes = _make_axes(0, persuasion_style=4)
        with pytest.raises(InvalidAxisScore, match="persuasion_style"):
            compute_frame_score(axes)

    def test_hand_built_frame_score_must_match_breakdown(self) -> None:
        score = compute_frame_score(_make_axes(1))
        data = score.model_dump()
        data["frame_score"] = score.frame_score + 1

        with pytest.raises(ValidationError, match="does not match weighted breakdown"):
            FrameScore.model_validate(data)


class TestAxisScoresFromRaw:
    def test_accepts_snake_and_camel_ids_and_integral_floats(self) -> None:
        axes = axis_scores_from_raw(
            [
                {"axis_id": "field_strength", "score": 2},
                {"axisId": "pedestalization", "score": -1.0, "notes": "leans in"},
            ]
        )

        assert axes[0].axis_id == AxisId.FIELD_STRENGTH
        assert axes[1].score == -1
        assert axes[1].notes == "leans in"

    @pytest.mark.parametrize("bad_score", [1.5, True, "2", None])
    def test_non_integer_scores_raise(self, bad_score: object) -> None:
        with pytest.raises(InvalidAxisScore):
            axis_scores_from_raw([{"axis_id": "field_strength", "score": bad_score}])

    def test_unknown_axis_raises(self) -> None:
        with pytest.raises(InvalidAxisScore, match="Unknown axis id"):
            axis_scores_from_raw([{"axis_id": "charisma", "score": 1}])

    def test_missing_score_raises(self) -> None:
        with pytest.raises(InvalidAxisScore, match="has no score"):
            axis_scores_from_raw([{"axis_id": "field_strength"}])


class TestRanking:
    def test_weakest_and_strongest_axes(self) -> None:
        score = compute_frame_score(
            _make_axes(0, internal_sale=-3, pedestalization=-2, field_strength=3)
        )

        weakest = weakest_axes(score, n=2)
        strongest = strongest_axes(score, n=1)

        assert [a.axis_id for a in weakest] == [AxisId.INTERNAL_SALE, AxisId.PEDESTALIZATION]
        assert strongest[0].axis_id == AxisId.FIELD_STRENGTH

    def test_ties_break_in_canonical_order(self) -> None:
        score = compute_frame_score(_make_axes(0))
        assert [a.axis_id for a in weakest_axes(score, n=3)] == list(ALL_AXES[:3])
