"""Per-contact aggregation over stored scan reports.

One profile/trend pair serves every consumer (contact tab, dashboard tile,
API, CLI) so they never disagree.
"""

from __future__ import annotations

from collections.abc import Sequence

from framescan.reports.models import (
    DEFAULT_PROFILE_SCORE,
    CumulativeProfile,
    ScanReport,
    Trend,
    TrendDirection,
)
from framescan.scoring.models import round_half_up

DEFAULT_TREND_WINDOW = 3


def _newest_first(reports: Sequence[ScanReport]) -> list[ScanReport]:
    return sorted(reports, key=lambda r: (r.created_at, r.sequence), reverse=True)


def compute_cumulative_profile(
    contact_id: str, reports: Sequence[ScanReport]
) -> CumulativeProfile:
    """Summarize a contact's reports.

    Args:
        contact_id: Contact the reports belong to.
        reports: The contact's reports, any order.

    Returns:
        Profile whose current score is the newest report's score, or
        DEFAULT_PROFILE_SCORE (50) when there are no reports.
    """
    ordered = _newest_first(reports)
    if not ordered:
        return CumulativeProfile(
            contact_id=contact_id,
            current_frame_score=DEFAULT_PROFILE_SCORE,
            scans_count=0,
            last_scan_at=None,
        )
    latest = ordered[0]
    return CumulativeProfile(
        contact_id=contact_id,
        current_frame_score=latest.frame_score,
        scans_count=len(ordered),
        last_scan_at=latest.created_at,
    )


def compute_trend(
    reports: Sequence[ScanReport], window: int = DEFAULT_TREND_WINDOW
) -> Trend | None:
    """Compare the latest score against the mean of up to `window` prior scores.

    Returns:
        None with fewer than two reports. Otherwise a Trend whose direction
        is the sign of the delta and whose change_amount is the rounded
        absolute delta.

    Raises:
        ValueError: If window < 1.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    ordered = _newest_first(reports)
    if len(ordered) < 2:
        return None

    latest = ordered[0].frame_score
    previous = [r.frame_score for r in ordered[1 : window + 1]]
    delta = latest - sum(previous) / len(previous)

    if delta > 0:
        direction = TrendDirection.UP
    elif delta < 0:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.FLAT
    return Trend(direction=direction, change_amount=round_half_up(abs(delta)))
