"""
Tests for ledger data types.
"""

from decimal import Decimal

import pytest

from core.exceptions import ValidationError

from banking.ledger.models import Currency, TransactionType
from banking.ledger.types import (
    CreditBalance,
    RecordEntryParams,
    UnifiedBalance,
    build_dedup_key,
    to_decimal,
)


def make_params(**overrides):
    values = {
        "collector_identifier": "collector@example.com",
        "transaction_type": TransactionType.CREDIT_EARNED,
        "amount": 400,
        "currency": Currency.CREDITS,
    }
    values.update(overrides)
    return RecordEntryParams(**values)


class TestToDecimal:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (40, Decimal("40.00")),
            ("412.00", Decimal("412.00")),
            (" 10.5 ", Decimal("10.50")),
            (Decimal("0.005"), Decimal("0.01")),
            (-7.25, Decimal("-7.25")),
        ],
    )
    def test_parses_numeric_values(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", None, True, "NaN", "Infinity", [1]])
    def test_rejects_non_numeric(self, value):
        """Should raise INVALID_AMOUNT for anything that is not a finite number."""
        with pytest.raises(ValidationError) as exc_info:
            to_decimal(value)

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_names_the_field_in_the_error(self):
        with pytest.raises(ValidationError) as exc_info:
            to_decimal("abc", "price")

        assert "price" in exc_info.value.details


class TestBuildDedupKey:
    def test_joins_parts_with_colons(self):
        key = build_dedup_key("vendor_a", "payout_earned", "li_1", "USD")

        assert key == "vendor_a:payout_earned:li_1:USD"

    def test_stringifies_parts(self):
        assert build_dedup_key("c", "t", 42) == "c:t:42"


class TestRecordEntryParams:
    def test_normalizes_amount(self):
        params = make_params(amount="400")

        assert params.amount == Decimal("400.00")

    def test_defaults(self):
        params = make_params()

        assert params.created_by == "system"
        assert params.metadata == {}
        assert params.dedup_key is None

    @pytest.mark.parametrize(
        "overrides,error_code",
        [
            ({"collector_identifier": ""}, "MISSING_COLLECTOR_IDENTIFIER"),
            ({"currency": "EUR"}, "INVALID_CURRENCY"),
            ({"transaction_type": "gift"}, "INVALID_TRANSACTION_TYPE"),
            ({"amount": "ten"}, "INVALID_AMOUNT"),
            ({"amount": 0}, "ZERO_AMOUNT"),
            ({"created_by": ""}, "MISSING_CREATED_BY"),
        ],
    )
    def test_rejects_malformed_input(self, overrides, error_code):
        """Should fail before any database work."""
        with pytest.raises(ValidationError) as exc_info:
            make_params(**overrides)

        assert exc_info.value.error_code == error_code


class TestBalanceTypes:
    def test_credit_balance_is_clamped_when_raw_negative(self):
        balance = CreditBalance(
            balance=Decimal("0"),
            credits_earned=Decimal("0"),
            credits_spent=Decimal("0"),
            raw_balance=Decimal("-50"),
        )

        assert balance.is_clamped is True

    def test_credit_balance_not_clamped(self):
        balance = CreditBalance(
            balance=Decimal("400"),
            credits_earned=Decimal("400"),
            credits_spent=Decimal("0"),
            raw_balance=Decimal("400"),
        )

        assert balance.is_clamped is False

    def test_unified_balance_to_dict(self):
        balance = UnifiedBalance(
            credits_balance=Decimal("400.00"),
            usd_balance=Decimal("103.00"),
            total_credits_earned=Decimal("400.00"),
            total_usd_earned=Decimal("103.00"),
        )

        assert balance.to_dict() == {
            "credits_balance": "400.00",
            "usd_balance": "103.00",
            "total_credits_earned": "400.00",
            "total_usd_earned": "103.00",
        }
