"""Credit ledger gating the paid analysis tiers."""

from framescan.credits.ledger import CreditLedger
from framescan.credits.models import (
    CREDIT_PACKAGES,
    SCAN_CREDIT_COSTS,
    TEXT_SCAN_COST,
    CreditBalance,
    CreditPackage,
    CreditTransaction,
    CreditTransactionType,
    ScanTier,
)

__all__ = [
    "CREDIT_PACKAGES",
    "SCAN_CREDIT_COSTS",
    "TEXT_SCAN_COST",
    "CreditBalance",
    "CreditLedger",
    "CreditPackage",
    "CreditTransaction",
    "CreditTransactionType",
    "ScanTier",
]
