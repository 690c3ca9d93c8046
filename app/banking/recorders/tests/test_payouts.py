"""
Tests for PayoutLedgerRecorder.

Covers vendor earnings on fulfillment, payout withdrawals and refund
deductions.
"""

from decimal import Decimal

import pytest

from core.exceptions import NotFoundError, ValidationError

from banking.exceptions import InvalidStateTransitionError
from banking.ledger import (
    AccountType,
    CollectorAccount,
    Currency,
    LedgerEntry,
    TransactionType,
    balance_calculator,
)
from banking.models import Vendor, VendorPayout
from banking.recorders.payouts import PayoutLedgerRecorder
from banking.state_machines import PayoutStatus
from banking.tests.factories import (
    ExchangeRateFactory,
    OrderLineItemFactory,
    ProductPayoutRuleFactory,
    VendorFactory,
    VendorPayoutFactory,
)


def deposit(vendor, price, line_item_id="li_1", **kwargs):
    return PayoutLedgerRecorder.deposit_payout_earnings(
        line_item_id=line_item_id,
        order_id="ord_1",
        vendor_name=vendor.vendor_name,
        line_item_price=price,
        **kwargs,
    )


class TestDepositPayoutEarnings:
    """Tests for PayoutLedgerRecorder.deposit_payout_earnings()."""

    def test_platform_default_share(self, db, vendor):
        """$412 at the 25% platform default is $103."""
        result = deposit(vendor, "412.00")

        assert result.usd_deposited == Decimal("103.00")
        assert result.new_balance == Decimal("103.00")
        assert result.currency == Currency.USD

        entry = LedgerEntry.objects.get(id=result.entry_id)
        assert entry.collector_identifier == "Street Collector"
        assert entry.transaction_type == TransactionType.PAYOUT_EARNED
        assert entry.metadata["payout_setting"]["source"] == "platform_default"
        assert entry.metadata["exchange_rate"] == "1"

    def test_second_delivery_is_a_no_op(self, db, vendor):
        deposit(vendor, "412.00")
        second = deposit(vendor, "412.00")

        assert second.already_recorded is True
        assert second.usd_deposited == Decimal("0")
        assert second.new_balance == Decimal("103.00")

    def test_creates_vendor_account_linked_to_directory(self, db, vendor):
        deposit(vendor, "412.00")

        account = CollectorAccount.objects.get(collector_identifier="Street Collector")
        assert account.account_type == AccountType.VENDOR
        assert account.vendor_id == vendor.id

    def test_auth_id_is_the_collector_identifier(self, db):
        vendor = VendorFactory(vendor_name="Studio", auth_id="auth|42")

        result = deposit(vendor, "100.00")

        entry = LedgerEntry.objects.get(id=result.entry_id)
        assert entry.collector_identifier == "auth|42"

    def test_linking_a_login_keeps_the_ledger_identity(self, db, vendor):
        """Redelivery after the vendor signs in is still a no-op."""
        deposit(vendor, "412.00")
        vendor.auth_id = "auth_123"
        vendor.save()

        second = deposit(vendor, "412.00")

        assert second.already_recorded is True
        assert LedgerEntry.objects.filter(
            transaction_type=TransactionType.PAYOUT_EARNED
        ).count() == 1
        assert Vendor.objects.get(id=vendor.id).collector_identifier == "Street Collector"
        balance = balance_calculator.calculate_unified_balance("Street Collector")
        assert balance.usd_balance == Decimal("103.00")
        assert not CollectorAccount.objects.filter(collector_identifier="auth_123").exists()

    def test_vendor_percentage(self, db):
        vendor = VendorFactory(default_payout_percentage=Decimal("50.00"))

        assert deposit(vendor, "412.00").usd_deposited == Decimal("206.00")

    def test_product_flat_rule(self, db, vendor):
        ProductPayoutRuleFactory(
            vendor=vendor,
            product_id="prod_print",
            payout_amount=Decimal("30.00"),
            is_percentage=False,
        )

        result = deposit(vendor, "412.00", product_id="prod_print")

        assert result.usd_deposited == Decimal("30.00")

    def test_uses_original_price_from_line_item(self, db, vendor):
        """Vendors are paid on the pre-discount price."""
        OrderLineItemFactory(
            line_item_id="li_1",
            vendor_name=vendor.vendor_name,
            price=Decimal("412.00"),
            original_price=Decimal("500.00"),
        )

        assert deposit(vendor, "412.00").usd_deposited == Decimal("125.00")

    def test_adds_back_discount_allocations(self, db, vendor):
        payload = {"price": "90.00", "discount_allocations": [{"amount": "10.00"}]}

        result = deposit(vendor, "80.00", shopify_line_item=payload)

        assert result.usd_deposited == Decimal("25.00")

    def test_converts_with_fallback_rate(self, db, vendor):
        """GBP falls back to the configured 1.27 rate."""
        assert deposit(vendor, "100.00", currency="GBP").usd_deposited == Decimal("31.75")

    def test_converts_with_stored_rate(self, db, vendor):
        ExchangeRateFactory(from_currency="GBP", rate=Decimal("1.250000"))

        assert deposit(vendor, "100.00", currency="gbp").usd_deposited == Decimal("31.25")

    def test_unknown_vendor_raises(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            PayoutLedgerRecorder.deposit_payout_earnings(
                line_item_id="li_1",
                order_id="ord_1",
                vendor_name="Nobody",
                line_item_price="10.00",
            )

        assert exc_info.value.error_code == "VENDOR_NOT_FOUND"
        assert LedgerEntry.objects.count() == 0

    def test_zero_payout_raises(self, db, vendor):
        with pytest.raises(ValidationError) as exc_info:
            deposit(vendor, "0.00")

        assert exc_info.value.error_code == "INVALID_PAYOUT_AMOUNT"

    def test_malformed_price_raises(self, db, vendor):
        with pytest.raises(ValidationError) as exc_info:
            deposit(vendor, "lots")

        assert exc_info.value.error_code == "INVALID_AMOUNT"


class TestRecordPayoutWithdrawal:
    """Tests for PayoutLedgerRecorder.record_payout_withdrawal()."""

    def test_records_negative_usd_entry(self, db, processing_payout):
        result = PayoutLedgerRecorder.record_payout_withdrawal(processing_payout)

        assert result.usd_withdrawn == Decimal("103.00")
        assert result.new_balance == Decimal("0")

        entry = LedgerEntry.objects.get(id=result.entry_id)
        assert entry.amount == Decimal("-103.00")
        assert entry.payout_id == str(processing_payout.id)
        assert entry.metadata["reference"] == processing_payout.reference
        assert entry.metadata["rail_batch_id"] == "PB-123"

    def test_second_call_withdraws_nothing(self, db, processing_payout):
        """Replaying the withdrawal is safe."""
        PayoutLedgerRecorder.record_payout_withdrawal(processing_payout)
        second = PayoutLedgerRecorder.record_payout_withdrawal(processing_payout)

        assert second.already_recorded is True
        assert second.usd_withdrawn == Decimal("0")
        assert balance_calculator.calculate_unified_balance("Street Collector").usd_balance == 0

    def test_linking_a_login_does_not_withdraw_twice(self, db, completed_payout):
        PayoutLedgerRecorder.record_payout_withdrawal(completed_payout)
        vendor = Vendor.objects.get(id=completed_payout.vendor_id)
        vendor.auth_id = "auth_123"
        vendor.save()

        payout = VendorPayout.objects.select_related("vendor").get(id=completed_payout.id)
        second = PayoutLedgerRecorder.record_payout_withdrawal(payout)

        assert second.already_recorded is True
        assert LedgerEntry.objects.filter(
            transaction_type=TransactionType.PAYOUT_WITHDRAWAL
        ).count() == 1

    def test_completed_payout_can_be_withdrawn(self, db, completed_payout):
        result = PayoutLedgerRecorder.record_payout_withdrawal(completed_payout)

        assert result.usd_withdrawn == Decimal("103.00")

    @pytest.mark.parametrize("status", [PayoutStatus.PENDING, PayoutStatus.FAILED])
    def test_rejects_unacknowledged_payout(self, db, vendor_with_earnings, status):
        """A payout the rail never accepted has no financial effect."""
        payout = VendorPayoutFactory(vendor=vendor_with_earnings, status=status)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            PayoutLedgerRecorder.record_payout_withdrawal(payout)

        assert exc_info.value.error_code == "PAYOUT_NOT_ACKNOWLEDGED"
        assert not LedgerEntry.objects.filter(
            transaction_type=TransactionType.PAYOUT_WITHDRAWAL
        ).exists()

    def test_records_created_by(self, db, processing_payout):
        result = PayoutLedgerRecorder.record_payout_withdrawal(
            processing_payout, created_by="admin@example.com"
        )

        assert LedgerEntry.objects.get(id=result.entry_id).created_by == "admin@example.com"


class TestRecordRefundDeduction:
    """Tests for PayoutLedgerRecorder.record_refund_deduction()."""

    def test_deducts_from_vendor(self, db, vendor_with_earnings):
        result = PayoutLedgerRecorder.record_refund_deduction(
            vendor_name="Street Collector",
            order_id="ord_412",
            amount="20.00",
            refund_id="ref_1",
            reason="Damaged in transit",
        )

        assert result.usd_deducted == Decimal("20.00")
        assert result.new_balance == Decimal("83.00")

        entry = LedgerEntry.objects.get(id=result.entry_id)
        assert entry.amount == Decimal("-20.00")
        assert entry.description == "Damaged in transit"

    def test_same_refund_deducted_once(self, db, vendor_with_earnings):
        for _ in range(2):
            PayoutLedgerRecorder.record_refund_deduction(
                vendor_name="Street Collector", order_id="ord_412", amount="20.00", refund_id="ref_1"
            )

        assert balance_calculator.calculate_unified_balance("Street Collector").usd_balance == Decimal(
            "83.00"
        )

    def test_without_refund_id_every_call_deducts(self, db, vendor_with_earnings):
        for _ in range(2):
            PayoutLedgerRecorder.record_refund_deduction(
                vendor_name="Street Collector", order_id="ord_412", amount="20.00"
            )

        assert balance_calculator.calculate_unified_balance("Street Collector").usd_balance == Decimal(
            "63.00"
        )

    def test_refund_after_withdrawal_goes_negative(self, db, processing_payout):
        """USD balances are not clamped; the vendor owes the platform."""
        PayoutLedgerRecorder.record_payout_withdrawal(processing_payout)

        result = PayoutLedgerRecorder.record_refund_deduction(
            vendor_name="Street Collector", order_id="ord_412", amount="20.00"
        )

        assert result.new_balance == Decimal("-20.00")

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_rejects_non_positive_amount(self, db, vendor, amount):
        with pytest.raises(ValidationError) as exc_info:
            PayoutLedgerRecorder.record_refund_deduction(
                vendor_name="Street Collector", order_id="ord_1", amount=amount
            )

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_requires_order_id(self, db, vendor):
        with pytest.raises(ValidationError) as exc_info:
            PayoutLedgerRecorder.record_refund_deduction(
                vendor_name="Street Collector", order_id="", amount="5.00"
            )

        assert exc_info.value.error_code == "MISSING_ORDER_ID"

    def test_unknown_vendor_raises(self, db):
        with pytest.raises(NotFoundError):
            PayoutLedgerRecorder.record_refund_deduction(
                vendor_name="Nobody", order_id="ord_1", amount="5.00"
            )
