"""
Balance calculation over ledger entries.

A balance is never stored. It is the signed sum of a collector's entries
in one currency, computed with a single aggregate query.

Usage:
    from banking.ledger.balance import balance_calculator

    credits = balance_calculator.calculate_balance("cust_123")
    credits.balance          # Decimal("400.00")

    unified = balance_calculator.calculate_unified_balance("vendor_a")
    unified.usd_balance      # Decimal("103.00")
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db.models import Case, DecimalField, F, Q, Sum, Value, When
from django.db.models.functions import Coalesce

from .models import Currency, LedgerEntry, TransactionType
from .types import ZERO, CreditBalance, UnifiedBalance

logger = logging.getLogger(__name__)

_AMOUNT = DecimalField(max_digits=16, decimal_places=2)


def _sum(condition: Q) -> Coalesce:
    return Coalesce(
        Sum(Case(When(condition, then=F("amount")), default=Value(0), output_field=_AMOUNT)),
        Value(0),
        output_field=_AMOUNT,
    )


def _earned_condition(currency: str) -> Q:
    return Q(
        currency=currency,
        amount__gt=0,
        transaction_type__in=TransactionType.earning_types(),
    )


class BalanceCalculator:
    """
    Computes balances from the ledger.

    Balances are exact Decimal sums. Entries in one currency never affect
    the balance of the other.
    """

    @staticmethod
    def _aggregate(collector_identifier: str) -> dict[str, Decimal]:
        totals = LedgerEntry.objects.filter(
            collector_identifier=collector_identifier,
        ).aggregate(
            credits_total=_sum(Q(currency=Currency.CREDITS)),
            credits_earned=_sum(_earned_condition(Currency.CREDITS)),
            credits_spent=_sum(Q(currency=Currency.CREDITS, amount__lt=0)),
            usd_total=_sum(Q(currency=Currency.USD)),
            usd_earned=_sum(_earned_condition(Currency.USD)),
        )
        return {key: Decimal(value) for key, value in totals.items()}

    @staticmethod
    def get_raw_balance(collector_identifier: str, currency: str = Currency.CREDITS) -> Decimal:
        """Unclamped signed sum of the collector's entries in one currency."""
        result = LedgerEntry.objects.filter(
            collector_identifier=collector_identifier,
            currency=currency,
        ).aggregate(total=Coalesce(Sum("amount"), Value(0), output_field=_AMOUNT))
        return Decimal(result["total"])

    @staticmethod
    def calculate_balance(collector_identifier: str) -> CreditBalance:
        """
        CREDITS balance of a collector.

        A negative raw sum (possible only through admin adjustments) is
        reported as zero and logged; raw_balance keeps the true value.

        Returns:
            CreditBalance; all zeros for a collector with no entries
        """
        totals = BalanceCalculator._aggregate(collector_identifier)
        raw = totals["credits_total"]
        if raw < ZERO:
            logger.warning(
                "Negative credits balance clamped to zero",
                extra={
                    "collector_identifier": collector_identifier,
                    "raw_balance": str(raw),
                },
            )
        return CreditBalance(
            balance=max(raw, ZERO),
            credits_earned=totals["credits_earned"],
            credits_spent=-totals["credits_spent"],
            raw_balance=raw,
        )

    @staticmethod
    def calculate_unified_balance(collector_identifier: str) -> UnifiedBalance:
        """CREDITS and USD balances plus lifetime earnings in each currency."""
        totals = BalanceCalculator._aggregate(collector_identifier)
        raw_credits = totals["credits_total"]
        if raw_credits < ZERO:
            logger.warning(
                "Negative credits balance clamped to zero",
                extra={
                    "collector_identifier": collector_identifier,
                    "raw_balance": str(raw_credits),
                },
            )
        return UnifiedBalance(
            credits_balance=max(raw_credits, ZERO),
            usd_balance=totals["usd_total"],
            total_credits_earned=totals["credits_earned"],
            total_usd_earned=totals["usd_earned"],
        )

    @staticmethod
    def get_total_credits_earned(collector_identifier: str) -> Decimal:
        """
        Lifetime credits earned, the basis for perk unlocks.

        Spending never reduces this figure.
        """
        result = LedgerEntry.objects.filter(
            collector_identifier=collector_identifier,
        ).aggregate(earned=_sum(_earned_condition(Currency.CREDITS)))
        return Decimal(result["earned"])


# Singleton instance for convenience
balance_calculator = BalanceCalculator()
