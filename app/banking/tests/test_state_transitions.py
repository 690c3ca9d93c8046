"""
Tests for state machine transitions using django-fsm.

Tests valid and invalid state transitions for VendorPayout and
PerkRedemption models.
"""

import pytest
from django_fsm import TransitionNotAllowed

from banking.models import VendorPayout
from banking.models.payout import SUBMISSION_MARKER
from banking.state_machines import PayoutStatus, RedemptionStatus
from banking.tests.factories import PerkRedemptionFactory, VendorPayoutFactory


# =============================================================================
# VendorPayout State Transition Tests
# =============================================================================


class TestVendorPayoutTransitions:
    """Tests for VendorPayout state machine transitions."""

    # -------------------------------------------------------------------------
    # Valid Transitions
    # -------------------------------------------------------------------------

    def test_pending_to_processing(self, db, pending_payout):
        """Should transition from pending to processing."""
        pending_payout.process(batch_id="PB-123")
        pending_payout.save()

        assert pending_payout.status == PayoutStatus.PROCESSING
        assert pending_payout.rail_batch_id == "PB-123"
        assert pending_payout.processed_at is not None

    def test_pending_to_completed(self, db, pending_payout):
        """Should complete directly for synchronous rails."""
        pending_payout.complete(transfer_id="tr_test123456")
        pending_payout.save()

        assert pending_payout.status == PayoutStatus.COMPLETED
        assert pending_payout.rail_transfer_id == "tr_test123456"
        assert pending_payout.processed_at is not None
        assert pending_payout.completed_at is not None

    def test_processing_to_completed(self, db, processing_payout):
        """Should keep the batch id when completing."""
        processing_payout.complete(transfer_id="TX-9")
        processing_payout.save()

        assert processing_payout.status == PayoutStatus.COMPLETED
        assert processing_payout.rail_batch_id == "PB-123"

    def test_pending_to_failed(self, db, pending_payout):
        """Should record the failure reason in notes."""
        pending_payout.fail(reason="Receiver unregistered")
        pending_payout.save()

        assert pending_payout.status == PayoutStatus.FAILED
        assert pending_payout.failure_reason == "Receiver unregistered"
        assert pending_payout.notes == "Receiver unregistered"
        assert pending_payout.failed_at is not None

    def test_failed_to_pending_on_retry(self, db, vendor_with_earnings):
        """Should clear the failure and the submission claim."""
        payout = VendorPayoutFactory(
            vendor=vendor_with_earnings,
            status=PayoutStatus.FAILED,
            failure_reason="Timed out",
            metadata={SUBMISSION_MARKER: {"started_at": "2024-06-01T10:00:00+00:00"}},
        )

        payout.retry()
        payout.save()

        payout = VendorPayout.objects.get(id=payout.id)
        assert payout.status == PayoutStatus.PENDING
        assert payout.failure_reason == ""
        assert payout.failed_at is None
        assert SUBMISSION_MARKER not in payout.metadata

    # -------------------------------------------------------------------------
    # Invalid Transitions
    # -------------------------------------------------------------------------

    def test_completed_cannot_fail(self, db, completed_payout):
        """Should not fail a completed payout."""
        with pytest.raises(TransitionNotAllowed):
            completed_payout.fail(reason="Too late")

    def test_completed_cannot_process(self, db, completed_payout):
        with pytest.raises(TransitionNotAllowed):
            completed_payout.process()

    def test_pending_cannot_retry(self, db, pending_payout):
        with pytest.raises(TransitionNotAllowed):
            pending_payout.retry()

    def test_failed_cannot_complete(self, db, failed_payout):
        """Should require a retry before a failed payout can complete."""
        with pytest.raises(TransitionNotAllowed):
            failed_payout.complete()

    def test_status_is_protected(self, db, pending_payout):
        """Should not allow direct assignment of the status field."""
        with pytest.raises(AttributeError):
            pending_payout.status = PayoutStatus.COMPLETED

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def test_rail_acknowledged(self, db, pending_payout, processing_payout, completed_payout):
        assert pending_payout.is_rail_acknowledged is False
        assert processing_payout.is_rail_acknowledged is True
        assert completed_payout.is_rail_acknowledged is True

    def test_invoice_context(self, db, vendor_with_earnings):
        vendor_with_earnings.tax_id = "GB123456789"
        vendor_with_earnings.save()
        payout = VendorPayoutFactory(
            vendor=vendor_with_earnings,
            reference="PAYOUT-20240601-1A2B3C",
            invoice_number="INV-202406-ABCDEF",
        )

        context = payout.invoice_context()

        assert context["reference"] == "PAYOUT-20240601-1A2B3C"
        assert context["invoice_number"] == "INV-202406-ABCDEF"
        assert context["amount"] == "103.00"
        assert context["tax_id"] == "GB123456789"
        assert context["completed_at"] is None


# =============================================================================
# PerkRedemption State Transition Tests
# =============================================================================


class TestPerkRedemptionTransitions:
    """Tests for PerkRedemption state machine transitions."""

    def test_pending_to_fulfilled(self, db):
        redemption = PerkRedemptionFactory()

        redemption.fulfill()
        redemption.save()

        assert redemption.redemption_status == RedemptionStatus.FULFILLED
        assert redemption.fulfilled_at is not None

    def test_pending_to_cancelled(self, db):
        redemption = PerkRedemptionFactory()

        redemption.cancel(reason="Out of stock")
        redemption.save()

        assert redemption.redemption_status == RedemptionStatus.CANCELLED
        assert redemption.metadata["cancel_reason"] == "Out of stock"

    def test_fulfilled_cannot_be_cancelled(self, db):
        redemption = PerkRedemptionFactory(redemption_status=RedemptionStatus.FULFILLED)

        with pytest.raises(TransitionNotAllowed):
            redemption.cancel()

    def test_cancelled_cannot_be_fulfilled(self, db):
        redemption = PerkRedemptionFactory(redemption_status=RedemptionStatus.CANCELLED)

        with pytest.raises(TransitionNotAllowed):
            redemption.fulfill()
