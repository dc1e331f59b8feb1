"""Advisory trigger evaluation."""

from framescan.triggers.evaluator import (
    AdvisoryEvent,
    AdvisoryPriority,
    AdvisoryType,
    ScanOutcome,
    SessionState,
    TriggerConfig,
    advance_session,
    dismiss,
    evaluate,
    top_advisory,
)

__all__ = [
    "AdvisoryEvent",
    "AdvisoryPriority",
    "AdvisoryType",
    "ScanOutcome",
    "SessionState",
    "TriggerConfig",
    "advance_session",
    "dismiss",
    "evaluate",
    "top_advisory",
]
