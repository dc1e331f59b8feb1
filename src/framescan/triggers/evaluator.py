"""Advisory (upsell) trigger evaluation.

Pure functions over explicit session counters. Nothing here blocks or
alters a scan; the service evaluates triggers after each scan that succeeds
or fails (not after rejections or throttling) and returns the advisories
alongside the result.

Usage:
    advisories = evaluate(outcome, session, config)
    session = advance_session(session, outcome)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from framescan.credits.models import ScanTier

URGENT_COACHING_SCORE = 30


class AdvisoryType(StrEnum):
    LOW_SCORE_COACHING = "low_score_coaching"
    CREDITS_LOW = "credits_low"
    UPGRADE_DETAILED = "upgrade_detailed"
    RECURRING_PATTERN = "recurring_pattern"
    FIRST_SCAN_COMPLETE = "first_scan_complete"


class AdvisoryPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


_PRIORITY_RANK: dict[AdvisoryPriority, int] = {
    AdvisoryPriority.URGENT: 0,
    AdvisoryPriority.HIGH: 1,
    AdvisoryPriority.MEDIUM: 2,
    AdvisoryPriority.LOW: 3,
}


class AdvisoryEvent(BaseModel):
    """An advisory shown to the user after a scan. Urgent advisories cannot be dismissed."""

    model_config = ConfigDict(frozen=True)

    advisory_id: str
    advisory_type: AdvisoryType
    priority: AdvisoryPriority
    title: str
    message: str
    cta_text: str
    cta_action: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def dismissable(self) -> bool:
        return self.priority != AdvisoryPriority.URGENT


@dataclass(frozen=True)
class TriggerConfig:
    """Advisory thresholds.

    Attributes:
        low_score_threshold: Scores strictly below this suggest coaching.
        low_credits_threshold: Available credits strictly below this warn.
        same_tier_scans_before_upgrade: Consecutive basic scans before suggesting detailed.
        pattern_repeat_threshold: Occurrences of one diagnostic pattern before flagging it.
        enabled: Master switch.
    """

    low_score_threshold: int = 45
    low_credits_threshold: int = 3
    same_tier_scans_before_upgrade: int = 3
    pattern_repeat_threshold: int = 2
    enabled: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.low_score_threshold <= 100:
            raise ValueError(
                f"low_score_threshold must be in [0, 100], got {self.low_score_threshold}"
            )
        if self.low_credits_threshold < 0:
            raise ValueError(
                f"low_credits_threshold must be >= 0, got {self.low_credits_threshold}"
            )
        if self.same_tier_scans_before_upgrade < 1:
            raise ValueError(
                "same_tier_scans_before_upgrade must be >= 1, "
                f"got {self.same_tier_scans_before_upgrade}"
            )
        if self.pattern_repeat_threshold < 1:
            raise ValueError(
                f"pattern_repeat_threshold must be >= 1, got {self.pattern_repeat_threshold}"
            )


class SessionState(BaseModel):
    """Per-session counters the evaluator reads. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    scans_completed: int = 0
    consecutive_basic_scans: int = 0
    pattern_counts: dict[str, int] = Field(default_factory=dict)
    dismissed: frozenset[AdvisoryType] = Field(default_factory=frozenset)


class ScanOutcome(BaseModel):
    """What the evaluator needs to know about one finished scan."""

    model_config = ConfigDict(frozen=True)

    succeeded: bool
    tier: ScanTier
    available_credits: int
    frame_score: int | None = None
    patterns: list[str] = Field(default_factory=list)


def normalize_pattern(pattern: str) -> str:
    return pattern.strip().lower()


def _scan_patterns(outcome: ScanOutcome) -> list[str]:
    """Distinct normalized patterns of one scan, first-seen order."""
    seen: list[str] = []
    for pattern in outcome.patterns:
        key = normalize_pattern(pattern)
        if key and key not in seen:
            seen.append(key)
    return seen


def advance_session(session: SessionState, outcome: ScanOutcome) -> SessionState:
    """Return the session counters after this outcome.

    Failed scans leave the counters unchanged. A successful detailed scan
    resets the basic-scan streak.
    """
    if not outcome.succeeded:
        return session

    counts = dict(session.pattern_counts)
    for key in _scan_patterns(outcome):
        counts[key] = counts.get(key, 0) + 1

    streak = session.consecutive_basic_scans + 1 if outcome.tier == ScanTier.BASIC else 0
    dismissed = session.dismissed | {AdvisoryType.FIRST_SCAN_COMPLETE}
    return SessionState(
        scans_completed=session.scans_completed + 1,
        consecutive_basic_scans=streak,
        pattern_counts=counts,
        dismissed=dismissed,
    )


def dismiss(session: SessionState, advisory_type: AdvisoryType) -> SessionState:
    """Suppress an advisory type for the rest of the session."""
    return session.model_copy(update={"dismissed": session.dismissed | {advisory_type}})


def evaluate(
    outcome: ScanOutcome,
    session: SessionState,
    config: TriggerConfig | None = None,
) -> list[AdvisoryEvent]:
    """Evaluate every trigger predicate for one scan outcome.

    Args:
        outcome: The scan that just finished.
        session: Session counters before this outcome.
        config: Thresholds (defaults to TriggerConfig()).

    Returns:
        Advisories sorted by priority (urgent first), then type.
    """
    config = config or TriggerConfig()
    if not config.enabled:
        return []

    after = advance_session(session, outcome)
    scan_number = after.scans_completed if outcome.succeeded else session.scans_completed + 1
    events: list[AdvisoryEvent] = []

    def fire(
        advisory_type: AdvisoryType,
        priority: AdvisoryPriority,
        title: str,
        message: str,
        cta_text: str,
        cta_action: str,
        **metadata: Any,
    ) -> None:
        if advisory_type in session.dismissed and priority != AdvisoryPriority.URGENT:
            return
        events.append(
            AdvisoryEvent(
                advisory_id=f"adv_{advisory_type.value}_{scan_number}",
                advisory_type=advisory_type,
                priority=priority,
                title=title,
                message=message,
                cta_text=cta_text,
                cta_action=cta_action,
                metadata=metadata,
            )
        )

    if outcome.succeeded and outcome.frame_score is not None:
        score = outcome.frame_score
        if score < config.low_score_threshold:
            fire(
                AdvisoryType.LOW_SCORE_COACHING,
                AdvisoryPriority.HIGH if score < URGENT_COACHING_SCORE else AdvisoryPriority.MEDIUM,
                "Coaching Recommended",
                f"Your frame score of {score} shows significant leaks. "
                "Structured coaching could accelerate your improvement.",
                "Explore Coaching",
                "/coaching",
                frame_score=score,
            )

    credits = outcome.available_credits
    if credits < config.low_credits_threshold:
        if credits == 0:
            fire(
                AdvisoryType.CREDITS_LOW,
                AdvisoryPriority.URGENT,
                "Out of Credits",
                "You've used all your credits. Purchase more to continue detailed image analysis.",
                "Get Credits",
                "/credits",
                credits_remaining=credits,
            )
        else:
            plural = "" if credits == 1 else "s"
            fire(
                AdvisoryType.CREDITS_LOW,
                AdvisoryPriority.MEDIUM,
                "Credits Running Low",
                f"You have {credits} credit{plural} remaining. Top up to keep analyzing.",
                "Get Credits",
                "/credits",
                credits_remaining=credits,
            )

    if outcome.succeeded and outcome.tier == ScanTier.BASIC:
        if after.consecutive_basic_scans >= config.same_tier_scans_before_upgrade:
            fire(
                AdvisoryType.UPGRADE_DETAILED,
                AdvisoryPriority.LOW,
                "Unlock Detailed Analysis",
                "You've run several basic scans. "
                "Detailed scans include visual annotations and deeper analysis.",
                "Try Detailed Scan",
                "/scan?tier=detailed",
                basic_scans_completed=after.consecutive_basic_scans,
            )

    if outcome.succeeded:
        for key in _scan_patterns(outcome):
            occurrences = after.pattern_counts.get(key, 0)
            if occurrences >= config.pattern_repeat_threshold:
                fire(
                    AdvisoryType.RECURRING_PATTERN,
                    AdvisoryPriority.HIGH,
                    "Recurring Pattern Detected",
                    f'We\'ve detected "{key}" appearing {occurrences} times. '
                    "This may indicate a deeper issue that coaching could address.",
                    "Get Pattern Analysis",
                    "/coaching/patterns",
                    pattern=key,
                    occurrences=occurrences,
                )
                break

    if outcome.succeeded and session.scans_completed == 0:
        fire(
            AdvisoryType.FIRST_SCAN_COMPLETE,
            AdvisoryPriority.LOW,
            "First Scan Complete!",
            "Great start! Keep scanning to track your frame progress over time.",
            "View Profile",
            "/profile",
            milestone="first_scan",
        )

    return sorted(events, key=lambda e: (_PRIORITY_RANK[e.priority], e.advisory_type.value))


def top_advisory(events: list[AdvisoryEvent]) -> AdvisoryEvent | None:
    """Return the highest-priority advisory, if any."""
    if not events:
        return None
    return min(events, key=lambda e: _PRIORITY_RANK[e.priority])
