"""
Tests for banking Celery tasks.

Tasks are called directly, the same way celery runs them in a worker.
"""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.db import OperationalError

from banking.exceptions import LedgerWriteError
from banking.ledger import LedgerEntry, TransactionType
from banking.models import PaymentMethod, VendorPayout
from banking.rails import PollStatus, RailPollResult
from banking.state_machines import PayoutStatus
from banking.tasks import (
    process_payout_batch,
    record_fulfillment_earnings,
    sync_processing_payouts,
    verify_platform_integrity,
)


FULFILLMENT_EVENT = {
    "line_item_id": "li_40",
    "order_id": "ord_40",
    "price": "40.00",
    "vendor_name": "Street Collector",
    "customer_identifier": "collector@example.com",
}


@pytest.fixture
def flaky_ledger_insert():
    """The first ledger insert fails with a dropped connection; later ones succeed."""
    failures = []
    original_create = LedgerEntry.objects.create

    def create(**kwargs):
        if not failures:
            failures.append(kwargs["transaction_type"])
            raise OperationalError("server closed the connection unexpectedly")
        return original_create(**kwargs)

    with patch.object(LedgerEntry.objects, "create", side_effect=create):
        yield failures


class TestRecordFulfillmentEarnings:
    def test_records_both_sides(self, db, vendor):
        result = record_fulfillment_earnings(
            {
                "line_item_id": "li_40",
                "order_id": "ord_40",
                "price": "40.00",
                "vendor_name": "Street Collector",
                "customer_identifier": "collector@example.com",
                "source": "storefront-webhook",
            }
        )

        assert result["success"] is True
        assert LedgerEntry.objects.count() == 2

    def test_storage_failure_propagates(self, db, vendor, flaky_ledger_insert):
        """The error reaches celery instead of ending the task as a success."""
        with pytest.raises(LedgerWriteError):
            record_fulfillment_earnings(FULFILLMENT_EVENT)

        assert list(LedgerEntry.objects.values_list("transaction_type", flat=True)) == [
            TransactionType.PAYOUT_EARNED
        ]

    def test_storage_failure_is_retried(self, db, vendor, flaky_ledger_insert):
        """The retry records the missing credits without paying the vendor twice."""
        async_result = record_fulfillment_earnings.apply(args=[FULFILLMENT_EVENT])

        assert async_result.successful()
        assert async_result.result["success"] is True
        assert len(flaky_ledger_insert) == 1
        recorded = list(LedgerEntry.objects.values_list("transaction_type", flat=True))
        assert sorted(recorded) == [TransactionType.CREDIT_EARNED, TransactionType.PAYOUT_EARNED]

    def test_unknown_vendor_is_not_retried(self, db):
        result = record_fulfillment_earnings({**FULFILLMENT_EVENT, "vendor_name": "Nobody"})

        assert result["success"] is False
        assert result["payout"]["error_code"] == "VENDOR_NOT_FOUND"

    def test_is_acknowledged_after_running(self):
        assert record_fulfillment_earnings.acks_late is True


class TestProcessPayoutBatch:
    """Tests for process_payout_batch task."""

    def test_processes_payouts(self, db, pending_payout, simulated_rails):
        result = process_payout_batch([str(pending_payout.id)])

        assert result["missing"] == []
        [item] = result["results"]
        assert item["success"] is True
        assert item["status"] == PayoutStatus.COMPLETED
        assert LedgerEntry.objects.filter(
            transaction_type=TransactionType.PAYOUT_WITHDRAWAL
        ).count() == 1

    def test_reports_missing_payouts(self, db, pending_payout, simulated_rails):
        unknown = str(uuid.uuid4())

        result = process_payout_batch([str(pending_payout.id), unknown])

        assert result["missing"] == [unknown]
        assert len(result["results"]) == 1

    def test_payment_method_override(self, db, pending_payout):
        """Manual payouts complete without a rail call."""
        result = process_payout_batch([str(pending_payout.id)], payment_method=PaymentMethod.MANUAL)

        payout = VendorPayout.objects.get(id=pending_payout.id)
        assert payout.payment_method == PaymentMethod.MANUAL
        assert payout.status == PayoutStatus.COMPLETED
        assert result["results"][0]["transfer_id"].startswith("MANUAL-")


class TestSyncProcessingPayouts:
    def test_returns_report(self, db, processing_payout):
        rail = MagicMock()
        rail.fetch_status.return_value = RailPollResult(
            status=PollStatus.SUCCEEDED, rail_status="SUCCESS", transfer_id="TX-9"
        )

        with patch("banking.services.payout_processor.get_rail", return_value=rail):
            result = sync_processing_payouts()

        assert result["checked"] == 1
        assert result["completed"] == [str(processing_payout.id)]
        assert result["errors"] == {}


class TestVerifyPlatformIntegrity:
    def test_returns_report_dict(self, db, completed_payout):
        result = verify_platform_integrity()

        assert result["is_healthy"] is False
        assert result["missing_payout_ids"] == [str(completed_payout.id)]
        assert Decimal(result["drift"]) == Decimal("103.00")
