"""Credit ledger with atomic reserve / refund semantics.

Every balance change appends exactly one CreditTransaction, so the sum of
all transaction amounts always equals available - initial_available.

All mutations run under one mutex: two concurrent reserve_and_use calls
against a balance that covers only one of them cannot both succeed.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Final

from framescan.credits.models import (
    CREDIT_PACKAGES,
    DEFAULT_STARTING_CREDITS,
    SCAN_CREDIT_COSTS,
    CreditBalance,
    CreditPackage,
    CreditTransaction,
    CreditTransactionType,
    ScanTier,
)

logger = logging.getLogger(__name__)

FRAMESCAN_STARTING_CREDITS_ENV: Final[str] = "FRAMESCAN_STARTING_CREDITS"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def starting_credits_from_env() -> int:
    """Read the first-run credit grant from FRAMESCAN_STARTING_CREDITS.

    Raises:
        ValueError: If the value is not a non-negative integer.
    """
    raw = os.environ.get(FRAMESCAN_STARTING_CREDITS_ENV)
    if raw is None or not raw.strip():
        return DEFAULT_STARTING_CREDITS
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{FRAMESCAN_STARTING_CREDITS_ENV} must be an integer: {raw!r}") from e
    if value < 0:
        raise ValueError(f"{FRAMESCAN_STARTING_CREDITS_ENV} must be >= 0, got {value}")
    return value


class CreditLedger:
    """Process-local credit balance plus its append-only transaction history."""

    def __init__(
        self,
        initial_balance: CreditBalance | None = None,
        transactions: list[CreditTransaction] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            initial_balance: Starting balance. If None, grants
                FRAMESCAN_STARTING_CREDITS (default 10) base credits.
            transactions: Existing history to carry over (oldest first).
            clock: Timestamp source, injectable for tests.
        """
        self._clock = clock or _utcnow
        if initial_balance is None:
            initial_balance = CreditBalance(
                credits=starting_credits_from_env(), updated_at=self._clock()
            )
        self._initial_balance = initial_balance.model_copy()
        self._initial_transactions = list(transactions or [])
        self._lock = threading.Lock()
        self._balance = initial_balance.model_copy()
        self._transactions: list[CreditTransaction] = list(self._initial_transactions)
        self._initial_available = self._balance.available - sum(
            t.amount for t in self._transactions
        )

    # -- reads -------------------------------------------------------------

    @staticmethod
    def get_cost_for_tier(tier: ScanTier) -> int:
        return SCAN_CREDIT_COSTS[ScanTier(tier)]

    @staticmethod
    def get_packages() -> list[CreditPackage]:
        return list(CREDIT_PACKAGES.values())

    def get_balance(self) -> CreditBalance:
        """Return a copy of the current balance."""
        with self._lock:
            return self._balance.model_copy()

    def get_available_credits(self) -> int:
        with self._lock:
            return self._balance.available

    def get_transactions(self, limit: int | None = None) -> list[CreditTransaction]:
        """Return transactions newest first (ties keep reverse insertion order)."""
        with self._lock:
            newest_first = list(reversed(self._transactions))
        if limit is not None:
            return newest_first[:limit]
        return newest_first

    @property
    def initial_available(self) -> int:
        """Available credits before the first recorded transaction."""
        return self._initial_available

    def has_credits_for(self, tier: ScanTier) -> bool:
        cost = self.get_cost_for_tier(tier)
        with self._lock:
            return self._balance.available >= cost

    # -- mutations ---------------------------------------------------------

    def _record(
        self,
        transaction_type: CreditTransactionType,
        amount: int,
        description: str,
        *,
        scan_report_id: str | None = None,
        package_id: str | None = None,
    ) -> CreditTransaction:
        """Append one transaction. Caller must hold the lock."""
        now = self._clock()
        self._balance.updated_at = now
        tx = CreditTransaction(
            transaction_type=transaction_type,
            amount=amount,
            balance_after=self._balance.available,
            description=description,
            created_at=now,
            scan_report_id=scan_report_id,
            package_id=package_id,
        )
        self._transactions.append(tx)
        return tx

    def reserve_and_use(self, tier: ScanTier, scan_report_id: str | None = None) -> bool:
        """Atomically check and deduct the cost of a tier.

        Zero-cost tiers succeed without recording a transaction. Bonus
        credits are spent before base credits.

        Returns:
            True if the credits were deducted (or nothing was owed), False if
            the balance could not cover the cost. A False result changes nothing.
        """
        tier = ScanTier(tier)
        cost = self.get_cost_for_tier(tier)
        if cost == 0:
            return True

        with self._lock:
            available = self._balance.available
            if available < cost:
                logger.warning(
                    "Insufficient credits for %s scan: need %d, have %d",
                    tier.value,
                    cost,
                    available,
                )
                return False

            from_bonus = min(self._balance.bonus_credits, cost)
            self._balance.bonus_credits -= from_bonus
            self._balance.credits -= cost - from_bonus
            self._balance.total_used += cost
            tx = self._record(
                CreditTransactionType.USE,
                -cost,
                f"{tier.value.capitalize()} scan",
                scan_report_id=scan_report_id,
            )

        logger.info(
            "Used %d credits for %s scan (report=%s, balance_after=%d)",
            cost,
            tier.value,
            scan_report_id,
            tx.balance_after,
        )
        return True

    def refund(
        self, amount: int, reason: str, scan_report_id: str | None = None
    ) -> CreditTransaction:
        """Return credits to the base balance after a failed reserved operation.

        Raises:
            ValueError: If amount is not positive.
        """
        if amount <= 0:
            raise ValueError(f"Refund amount must be positive, got {amount}")

        with self._lock:
            self._balance.credits += amount
            self._balance.total_used = max(0, self._balance.total_used - amount)
            tx = self._record(
                CreditTransactionType.REFUND,
                amount,
                reason,
                scan_report_id=scan_report_id,
            )

        logger.warning(
            "Refunded %d credits (report=%s): %s", amount, scan_report_id, reason
        )
        return tx

    def purchase(self, package_id: str) -> bool:
        """Add a package's credits to the base balance.

        Returns:
            False for an unknown package (nothing changes), True otherwise.
        """
        package = CREDIT_PACKAGES.get(package_id)
        if package is None:
            logger.warning("Unknown credit package: %s", package_id)
            return False

        with self._lock:
            self._balance.credits += package.credits
            self._balance.total_purchased += package.credits
            tx = self._record(
                CreditTransactionType.PURCHASE,
                package.credits,
                f"Purchased {package.name} package",
                package_id=package.package_id,
            )

        logger.info(
            "Purchased %s: +%d credits (balance_after=%d)",
            package.package_id,
            package.credits,
            tx.balance_after,
        )
        return True

    def bonus(self, amount: int, reason: str) -> CreditTransaction:
        """Grant bonus credits.

        Raises:
            ValueError: If amount is not positive.
        """
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")

        with self._lock:
            self._balance.bonus_credits += amount
            tx = self._record(CreditTransactionType.BONUS, amount, reason)

        logger.info("Granted %d bonus credits: %s", amount, reason)
        return tx

    # -- state -------------------------------------------------------------

    def reset(self, initial_balance: CreditBalance | None = None) -> None:
        """Restore the injected initial state (or a new one)."""
        with self._lock:
            if initial_balance is not None:
                self._initial_balance = initial_balance.model_copy()
                self._initial_transactions = []
            self._balance = self._initial_balance.model_copy()
            self._transactions = list(self._initial_transactions)
            self._initial_available = self._balance.available - sum(
                t.amount for t in self._transactions
            )

    def to_document(self) -> dict[str, Any]:
        """Serialize balance and history into a JSON-compatible document."""
        with self._lock:
            return {
                "balance": self._balance.model_dump(mode="json"),
                "transactions": [t.model_dump(mode="json") for t in self._transactions],
            }

    @classmethod
    def from_document(
        cls,
        document: dict[str, Any],
        clock: Callable[[], datetime] | None = None,
    ) -> CreditLedger:
        """Rebuild a ledger from a document written by to_document."""
        balance = CreditBalance.model_validate(document["balance"])
        transactions = [
            CreditTransaction.model_validate(t) for t in document.get("transactions", [])
        ]
        return cls(initial_balance=balance, transactions=transactions, clock=clock)
