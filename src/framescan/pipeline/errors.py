"""Scan error taxonomy.

The pipeline is the only layer that raises these; lower layers raise narrow
errors that the pipeline translates. Every ScanError carries a user_message
suitable for display and the advisories evaluated for the failed scan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from framescan.credits.models import ScanTier

if TYPE_CHECKING:
    from framescan.triggers.evaluator import AdvisoryEvent


class ScanError(Exception):
    """Base class for scan failures surfaced to callers."""

    code = "SCAN_ERROR"

    def __init__(self, user_message: str) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.advisories: list[AdvisoryEvent] = []

    def details(self) -> dict[str, object]:
        return {}


class ContentRejected(ScanError):
    """Content lacked the context needed for analysis. No credits consumed."""

    code = "CONTENT_REJECTED"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def details(self) -> dict[str, object]:
        return {"reason": self.reason}


class InsufficientCredits(ScanError):
    """Balance cannot cover the requested tier. Checked before any provider call."""

    code = "INSUFFICIENT_CREDITS"

    def __init__(self, tier: ScanTier, required: int, available: int) -> None:
        super().__init__(
            f"{ScanTier(tier).value.capitalize()} scan needs {required} credits, "
            f"{available} available."
        )
        self.tier = ScanTier(tier)
        self.required = required
        self.available = available

    def details(self) -> dict[str, object]:
        return {"tier": self.tier.value, "required": self.required, "available": self.available}


class ProviderFailure(ScanError):
    """Provider errored or returned an unusable payload. Reservations are refunded."""

    code = "PROVIDER_FAILURE"

    def __init__(
        self,
        reason: str,
        *,
        refunded: bool = False,
        refund_transaction_id: str | None = None,
    ) -> None:
        super().__init__("Scan failed, credits refunded." if refunded else "Scan failed.")
        self.reason = reason
        self.refunded = refunded
        self.refund_transaction_id = refund_transaction_id

    def details(self) -> dict[str, object]:
        return {
            "reason": self.reason,
            "refunded": self.refunded,
            "refund_transaction_id": self.refund_transaction_id,
        }


class ScanThrottled(ScanError):
    """Per-session scan limit reached."""

    code = "SCAN_THROTTLED"

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Scan limit reached ({limit} scans per session). Start a new session to continue."
        )
        self.limit = limit

    def details(self) -> dict[str, object]:
        return {"limit": self.limit}
