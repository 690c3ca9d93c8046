"""
Tests for BalanceCalculator.

Balances are derived from entries only; these tests write entries through
the factory and check the aggregates.
"""

import logging
from decimal import Decimal

from banking.ledger.balance import BalanceCalculator
from banking.ledger.models import Currency, TransactionType
from banking.tests.factories import LedgerEntryFactory

CUSTOMER = "collector@example.com"


def entry(transaction_type, amount, currency=Currency.CREDITS, identifier=CUSTOMER):
    return LedgerEntryFactory(
        collector_identifier=identifier,
        transaction_type=transaction_type,
        amount=Decimal(amount),
        currency=currency,
    )


class TestCalculateBalance:
    """Tests for BalanceCalculator.calculate_balance()."""

    def test_no_entries_returns_zeros(self, db):
        balance = BalanceCalculator.calculate_balance(CUSTOMER)

        assert balance.balance == Decimal("0")
        assert balance.credits_earned == Decimal("0")
        assert balance.credits_spent == Decimal("0")
        assert balance.raw_balance == Decimal("0")

    def test_earned_minus_spent(self, db):
        """Should sum signed CREDITS entries."""
        entry(TransactionType.CREDIT_EARNED, "400")
        entry(TransactionType.SUBSCRIPTION_CREDIT, "100")
        entry(TransactionType.CREDIT_PAYMENT, "-150")

        balance = BalanceCalculator.calculate_balance(CUSTOMER)

        assert balance.balance == Decimal("350.00")
        assert balance.credits_earned == Decimal("500.00")
        assert balance.credits_spent == Decimal("150.00")

    def test_ignores_usd_entries(self, db):
        """Currencies never mix."""
        entry(TransactionType.CREDIT_EARNED, "400")
        entry(TransactionType.ADJUSTMENT, "999", currency=Currency.USD)

        assert BalanceCalculator.calculate_balance(CUSTOMER).balance == Decimal("400.00")

    def test_ignores_other_collectors(self, db):
        entry(TransactionType.CREDIT_EARNED, "400", identifier="other@example.com")

        assert BalanceCalculator.calculate_balance(CUSTOMER).balance == Decimal("0")

    def test_negative_balance_clamped_and_logged(self, db, caplog):
        """Should report zero while keeping the raw value."""
        entry(TransactionType.CREDIT_EARNED, "100")
        entry(TransactionType.ADJUSTMENT, "-150")

        with caplog.at_level(logging.WARNING, logger="banking.ledger.balance"):
            balance = BalanceCalculator.calculate_balance(CUSTOMER)

        assert balance.balance == Decimal("0")
        assert balance.raw_balance == Decimal("-50.00")
        assert balance.is_clamped is True
        assert "Negative credits balance clamped to zero" in caplog.text

    def test_positive_adjustment_is_not_an_earning(self, db):
        entry(TransactionType.CREDIT_EARNED, "100")
        entry(TransactionType.ADJUSTMENT, "50")

        balance = BalanceCalculator.calculate_balance(CUSTOMER)

        assert balance.balance == Decimal("150.00")
        assert balance.credits_earned == Decimal("100.00")


class TestCalculateUnifiedBalance:
    """Tests for BalanceCalculator.calculate_unified_balance()."""

    def test_vendor_usd_balance(self, db):
        entry(TransactionType.PAYOUT_EARNED, "103", Currency.USD, "vendor_a")
        entry(TransactionType.PAYOUT_EARNED, "50", Currency.USD, "vendor_a")
        entry(TransactionType.PAYOUT_WITHDRAWAL, "-103", Currency.USD, "vendor_a")

        balance = BalanceCalculator.calculate_unified_balance("vendor_a")

        assert balance.usd_balance == Decimal("50.00")
        assert balance.total_usd_earned == Decimal("153.00")
        assert balance.credits_balance == Decimal("0")

    def test_usd_balance_is_not_clamped(self, db):
        """A refund after a withdrawal leaves the vendor owing the platform."""
        entry(TransactionType.PAYOUT_EARNED, "103", Currency.USD, "vendor_a")
        entry(TransactionType.PAYOUT_WITHDRAWAL, "-103", Currency.USD, "vendor_a")
        entry(TransactionType.REFUND_DEDUCTION, "-20", Currency.USD, "vendor_a")

        balance = BalanceCalculator.calculate_unified_balance("vendor_a")

        assert balance.usd_balance == Decimal("-20.00")

    def test_both_currencies_for_one_collector(self, db):
        entry(TransactionType.CREDIT_EARNED, "400")
        entry(TransactionType.ADJUSTMENT, "12.50", currency=Currency.USD)

        balance = BalanceCalculator.calculate_unified_balance(CUSTOMER)

        assert balance.credits_balance == Decimal("400.00")
        assert balance.usd_balance == Decimal("12.50")
        assert balance.total_credits_earned == Decimal("400.00")
        assert balance.total_usd_earned == Decimal("0")


class TestRawBalanceAndLifetimeEarnings:
    def test_get_raw_balance_per_currency(self, db):
        entry(TransactionType.CREDIT_EARNED, "100")
        entry(TransactionType.ADJUSTMENT, "-150")
        entry(TransactionType.ADJUSTMENT, "7", currency=Currency.USD)

        assert BalanceCalculator.get_raw_balance(CUSTOMER) == Decimal("-50.00")
        assert BalanceCalculator.get_raw_balance(CUSTOMER, Currency.USD) == Decimal("7.00")

    def test_total_credits_earned_ignores_spending(self, db):
        """Spending never lowers lifetime earnings."""
        entry(TransactionType.CREDIT_EARNED, "2000")
        entry(TransactionType.NFC_SCAN_REWARD, "300")
        entry(TransactionType.SERIES_COMPLETION_REWARD, "250")
        entry(TransactionType.CREDIT_PAYMENT, "-2000")

        assert BalanceCalculator.get_total_credits_earned(CUSTOMER) == Decimal("2550.00")
