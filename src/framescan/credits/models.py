"""Credit system models.

Defines:
- ScanTier: basic / detailed analysis tiers
- CreditTransactionType: purchase / use / bonus / refund
- CreditPackage: purchasable credit bundles
- CreditBalance: base + bonus credits with lifetime counters
- CreditTransaction: one signed ledger entry per balance change
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScanTier(StrEnum):
    """Analysis depth tier."""

    BASIC = "basic"
    DETAILED = "detailed"


class CreditTransactionType(StrEnum):
    """Kind of ledger entry."""

    PURCHASE = "purchase"
    USE = "use"
    BONUS = "bonus"
    REFUND = "refund"


SCAN_CREDIT_COSTS: dict[ScanTier, int] = {
    ScanTier.BASIC: 0,
    ScanTier.DETAILED: 5,
}
TEXT_SCAN_COST = 0
DEFAULT_STARTING_CREDITS = 10


def generate_transaction_id() -> str:
    return f"CTX-{uuid.uuid4().hex[:12].upper()}"


class CreditPackage(BaseModel):
    """A purchasable bundle of credits."""

    model_config = ConfigDict(frozen=True)

    package_id: str
    name: str
    credits: int = Field(..., gt=0)
    price_cents: int = Field(..., ge=0, description="Price in minor currency units")
    currency: str = "usd"
    popular: bool = False


CREDIT_PACKAGES: dict[str, CreditPackage] = {
    "pkg_starter": CreditPackage(
        package_id="pkg_starter", name="Starter", credits=10, price_cents=499
    ),
    "pkg_standard": CreditPackage(
        package_id="pkg_standard", name="Standard", credits=30, price_cents=999, popular=True
    ),
    "pkg_pro": CreditPackage(package_id="pkg_pro", name="Pro", credits=100, price_cents=2499),
    "pkg_unlimited": CreditPackage(
        package_id="pkg_unlimited", name="Unlimited", credits=999999, price_cents=4999
    ),
}


class CreditBalance(BaseModel):
    """Current credit balance.

    Bonus credits are spent before base credits. Lifetime counters only move
    through ledger operations.
    """

    credits: int = Field(default=0, ge=0)
    bonus_credits: int = Field(default=0, ge=0)
    total_purchased: int = Field(default=0, ge=0)
    total_used: int = Field(default=0, ge=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def available(self) -> int:
        return self.credits + self.bonus_credits


class CreditTransaction(BaseModel):
    """One ledger entry. ``use`` amounts are negative, all others non-negative."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(default_factory=generate_transaction_id)
    transaction_type: CreditTransactionType
    amount: int
    balance_after: int = Field(..., ge=0, description="Available credits after this entry")
    description: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    scan_report_id: str | None = None
    package_id: str | None = None

    @model_validator(mode="after")
    def _validate_sign(self) -> CreditTransaction:
        """Fail closed: sign of amount must match the transaction type."""
        if self.transaction_type == CreditTransactionType.USE:
            if self.amount >= 0:
                raise ValueError(f"use transaction amount must be negative (got {self.amount})")
        elif self.amount < 0:
            raise ValueError(
                f"{self.transaction_type.value} transaction amount must be non-negative "
                f"(got {self.amount})"
            )
        return self
