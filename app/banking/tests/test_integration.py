"""
Integration tests for the earn, spend, withdraw and reconcile loop.

These run the recorders, the payout processor and the integrity check
together against the database, with rails simulated or mocked.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.db.models import Sum

from banking.exceptions import InsufficientBalance, LedgerWriteError
from banking.ledger import AccountType, Currency, LedgerEntry, TransactionType, balance_calculator
from banking.models import PaymentMethod, PerkType, VendorPayout
from banking.rails import RailResponse, RailStatus
from banking.recorders import AdjustmentRecorder, CreditRecorder, PayoutLedgerRecorder
from banking.services import (
    FulfillmentEvent,
    FulfillmentHandler,
    PayoutCandidate,
    PayoutOptions,
    PayoutProcessor,
    PerkRedemptionEngine,
    UnifiedBankingService,
)
from banking.state_machines import PayoutStatus
from banking.tests.factories import VendorFactory


@pytest.mark.django_db
class TestCollectorCredits:
    """Earning and spending credits."""

    def test_forty_dollar_purchase_earns_400_credits(self, customer):
        result = CreditRecorder.deposit_purchase_credits(
            customer, line_item_id="li_40", price="40.00", order_id="ord_40"
        )

        assert result.credits_deposited == Decimal("400")
        assert balance_calculator.calculate_balance(customer).balance == Decimal("400")

    def test_earning_twice_records_once(self, customer):
        CreditRecorder.deposit_purchase_credits(customer, line_item_id="li_40", price="40.00")
        second = CreditRecorder.deposit_purchase_credits(
            customer, line_item_id="li_40", price="40.00"
        )

        assert second.credits_deposited == Decimal("0")
        assert LedgerEntry.objects.filter(line_item_id="li_40").count() == 1

    def test_overspend_is_rejected_without_partial_debit(self, customer_with_credits):
        with pytest.raises(InsufficientBalance):
            CreditRecorder.spend_credits(customer_with_credits, amount="1000")

        assert balance_calculator.calculate_balance(customer_with_credits).balance == Decimal(
            "400"
        )
        assert not LedgerEntry.objects.filter(
            transaction_type=TransactionType.CREDIT_PAYMENT
        ).exists()

    @pytest.mark.parametrize(
        "spends",
        [
            ["100", "100", "100", "100", "100"],
            ["399", "1", "1"],
            ["250", "250"],
            ["400"],
        ],
    )
    def test_balance_never_negative(self, customer_with_credits, spends):
        for amount in spends:
            try:
                CreditRecorder.spend_credits(customer_with_credits, amount=amount)
            except InsufficientBalance:
                pass
            balance = balance_calculator.calculate_balance(customer_with_credits)
            assert balance.balance >= 0
            assert balance.raw_balance >= 0

    def test_lamp_stays_unlocked_after_spending_everything(self, customer):
        CreditRecorder.deposit_purchase_credits(customer, line_item_id="li_lamp", price="255.00")
        CreditRecorder.spend_credits(customer, amount="2550")

        status = PerkRedemptionEngine.check_perk_unlock_status(customer)

        assert balance_calculator.calculate_balance(customer).balance == Decimal("0")
        assert status[PerkType.LAMP].unlocked is True


@pytest.mark.django_db
class TestVendorPayoutLoop:
    """Fulfillment to payout to reconciliation."""

    def test_fulfillment_then_payout_then_reconcile(self, vendor, simulated_rails):
        FulfillmentHandler.handle_line_item_fulfilled(
            FulfillmentEvent(
                line_item_id="li_412",
                order_id="ord_412",
                price="412.00",
                vendor_name="Street Collector",
                customer_identifier="collector@example.com",
            )
        )
        assert UnifiedBankingService.get_vendor_balance("Street Collector").usd_balance == Decimal(
            "103.00"
        )

        [result] = PayoutProcessor.submit_batch(
            [
                PayoutCandidate(
                    vendor_name="Street Collector", amount="103.00", line_item_ids=["li_412"]
                )
            ],
            PayoutOptions(payment_method=PaymentMethod.PAYPAL),
        )

        assert result.status == PayoutStatus.COMPLETED
        withdrawals = LedgerEntry.objects.filter(transaction_type=TransactionType.PAYOUT_WITHDRAWAL)
        assert withdrawals.count() == 1
        assert withdrawals.get().amount == Decimal("-103.00")
        assert UnifiedBankingService.get_vendor_balance("Street Collector").usd_balance == Decimal(
            "0"
        )

        report = UnifiedBankingService.verify_platform_integrity()
        assert report.drift == Decimal("0")
        assert report.missing_count == 0
        assert report.is_healthy is True

    def test_second_withdrawal_is_a_no_op(self, completed_payout):
        first = PayoutLedgerRecorder.record_payout_withdrawal(completed_payout)
        second = PayoutLedgerRecorder.record_payout_withdrawal(completed_payout)

        assert first.usd_withdrawn == Decimal("103.00")
        assert second.usd_withdrawn == Decimal("0")
        assert balance_calculator.calculate_unified_balance(
            "Street Collector"
        ).usd_balance == Decimal("0")

    def test_vendor_signing_in_does_not_pay_twice(self, vendor, simulated_rails):
        event = FulfillmentEvent(
            line_item_id="li_412",
            order_id="ord_412",
            price="412.00",
            vendor_name="Street Collector",
            customer_identifier="collector@example.com",
        )
        FulfillmentHandler.handle_line_item_fulfilled(event)
        [result] = PayoutProcessor.submit_batch(
            [PayoutCandidate(vendor_name="Street Collector", amount="103.00")],
            PayoutOptions(payment_method=PaymentMethod.PAYPAL),
        )

        vendor.auth_id = "auth_123"
        vendor.save()
        PayoutProcessor.process_payouts([VendorPayout.objects.get(id=result.payout_id)])
        redelivery = FulfillmentHandler.handle_line_item_fulfilled(event)

        assert redelivery.payout.data["already_recorded"] is True
        assert LedgerEntry.objects.filter(
            transaction_type=TransactionType.PAYOUT_WITHDRAWAL
        ).count() == 1
        report = UnifiedBankingService.verify_platform_integrity()
        assert report.drift == Decimal("0")
        assert UnifiedBankingService.get_vendor_balance("Street Collector").usd_balance == Decimal(
            "0"
        )

    def test_reconciliation_closes_for_many_payouts(self, simulated_rails):
        vendors = [VendorFactory() for _ in range(3)]
        for index, vendor in enumerate(vendors):
            PayoutLedgerRecorder.deposit_payout_earnings(
                line_item_id=f"li_{index}",
                order_id=f"ord_{index}",
                vendor_name=vendor.vendor_name,
                line_item_price="100.00",
            )

        results = PayoutProcessor.submit_batch(
            [PayoutCandidate(vendor_name=vendor.vendor_name, amount="25.00") for vendor in vendors],
            PayoutOptions(),
        )

        assert all(result.success for result in results)
        report = UnifiedBankingService.verify_platform_integrity()
        assert report.completed_payout_count == 3
        assert report.drift == Decimal("0")
        assert report.missing_count == 0

    def test_misconfigured_vendor_does_not_block_batch(self, vendor_with_earnings, simulated_rails):
        VendorFactory(vendor_name="No Email", paypal_email="")
        PayoutLedgerRecorder.deposit_payout_earnings(
            line_item_id="li_ne", order_id="ord_ne", vendor_name="No Email", line_item_price="40.00"
        )

        results = PayoutProcessor.submit_batch(
            [
                PayoutCandidate(vendor_name="No Email", amount="10.00"),
                PayoutCandidate(vendor_name="Street Collector", amount="103.00"),
            ],
            PayoutOptions(payment_method=PaymentMethod.PAYPAL),
        )

        by_vendor = {result.vendor_name: result for result in results}
        assert by_vendor["No Email"].error_code == "PAYMENT_METHOD_NOT_CONFIGURED"
        assert by_vendor["No Email"].status == PayoutStatus.FAILED
        assert by_vendor["Street Collector"].success is True
        assert balance_calculator.calculate_unified_balance("No Email").usd_balance == Decimal(
            "10.00"
        )

    def test_crash_between_rail_and_ledger_is_repaired(self, pending_payout):
        """A withdrawal lost after the rail accepted is found and repaired."""
        rail = MagicMock()
        rail.name = "stripe"
        rail.resolve_payee.return_value = "acct_test123"
        rail.submit.return_value = RailResponse(status=RailStatus.COMPLETED, transfer_id="tr_1")

        with patch("banking.services.payout_processor.get_rail", return_value=rail), patch.object(
            PayoutLedgerRecorder,
            "record_payout_withdrawal",
            side_effect=LedgerWriteError("connection lost"),
        ):
            [result] = PayoutProcessor.process_payouts([pending_payout])

        assert result.ledger_recorded is False
        report = UnifiedBankingService.verify_platform_integrity()
        assert report.missing_payout_ids == [str(pending_payout.id)]

        UnifiedBankingService.repair_missing_withdrawals(created_by="ops@example.com")

        assert UnifiedBankingService.verify_platform_integrity().is_healthy is True


@pytest.mark.django_db
class TestConservation:
    def test_usd_balance_is_signed_sum_of_entries(self, vendor_with_earnings, processing_payout):
        PayoutLedgerRecorder.record_refund_deduction(
            vendor_name="Street Collector", order_id="ord_412", amount="20.00", refund_id="ref_1"
        )
        PayoutLedgerRecorder.record_payout_withdrawal(processing_payout)
        AdjustmentRecorder.record_adjustment(
            collector_identifier="Street Collector",
            amount="5.50",
            currency=Currency.USD,
            reason="Shipping reimbursement",
            created_by="admin@example.com",
            account_type=AccountType.VENDOR,
        )

        total = LedgerEntry.objects.filter(
            collector_identifier="Street Collector", currency=Currency.USD
        ).aggregate(total=Sum("amount"))["total"]
        balance = balance_calculator.calculate_unified_balance("Street Collector")

        assert balance.usd_balance == total
        assert balance.usd_balance == Decimal("-14.50")
        assert balance.credits_balance == Decimal("0")
