"""
Celery tasks for the banking app.

This module provides async tasks for:
- Recording earnings for fulfilled line items
- Processing an admin payout batch in the background
- Periodic platform integrity verification
- Periodic status polling of processing payouts

Usage:
    from banking.tasks import record_fulfillment_earnings

    record_fulfillment_earnings.delay({
        "line_item_id": "li_1",
        "order_id": "ord_1",
        "price": "40.00",
        "vendor_name": "Street Collector",
        "customer_identifier": "collector@example.com",
    })

Schedules for the periodic tasks are created by
banking/migrations/0002_add_banking_schedules.py.
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db import DatabaseError

from banking.exceptions import LedgerWriteError
from banking.models import VendorPayout
from banking.services import (
    FulfillmentEvent,
    FulfillmentHandler,
    PayoutOptions,
    PayoutProcessor,
    UnifiedBankingService,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_FULFILLMENT_RETRIES = 5


# =============================================================================
# Earnings
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError, LedgerWriteError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_FULFILLMENT_RETRIES},
    acks_late=True,
)
def record_fulfillment_earnings(self, event: dict) -> dict:
    """
    Record credits and vendor earnings for a fulfilled line item.

    Storage failures are retried; both recorders are idempotent on the
    line item, so the side that already succeeded is not recorded twice.
    Business failures (unknown vendor) are returned in the result.

    Args:
        event: FulfillmentEvent fields as a JSON-serializable dict

    Returns:
        FulfillmentResult as a dict
    """
    result = FulfillmentHandler.handle_line_item_fulfilled(FulfillmentEvent.from_dict(event))
    return result.to_dict()


# =============================================================================
# Payouts
# =============================================================================


@shared_task
def process_payout_batch(payout_ids: list[str], payment_method: str | None = None) -> dict:
    """
    Send pending payouts to their rails.

    Never retried by Celery: resending a payout instruction could pay a
    vendor twice. Failed payouts are retried by an admin.

    Args:
        payout_ids: VendorPayout ids to process
        payment_method: Overrides each payout's payment method when given

    Returns:
        Dict with per-payout results
    """
    payouts = list(VendorPayout.objects.filter(id__in=payout_ids).order_by("created_at"))
    found = {str(payout.id) for payout in payouts}
    missing = [payout_id for payout_id in payout_ids if str(payout_id) not in found]
    if missing:
        logger.warning("Payouts not found for batch", extra={"payout_ids": missing})

    options = PayoutOptions()
    if payment_method:
        options.payment_method = payment_method
        for payout in payouts:
            if payout.payment_method != payment_method:
                VendorPayout.objects.filter(id=payout.id).update(payment_method=payment_method)
                payout.payment_method = payment_method

    results = PayoutProcessor.process_payouts(payouts, options)
    succeeded = sum(1 for result in results if result.success)
    logger.info(
        f"Processed payout batch: {succeeded}/{len(results)} succeeded",
        extra={"succeeded": succeeded, "total": len(results)},
    )
    return {
        "results": [result.to_dict() for result in results],
        "missing": missing,
    }


@shared_task
def sync_processing_payouts() -> dict:
    """
    Periodic task polling the rails for payouts still processing.

    This task should be scheduled via celery-beat every 15 minutes.
    """
    report = PayoutProcessor.sync_processing_payouts()
    if report.completed or report.flagged:
        logger.info(
            "Synced processing payouts",
            extra={
                "checked": report.checked,
                "completed": len(report.completed),
                "flagged": len(report.flagged),
            },
        )
    return {
        "checked": report.checked,
        "completed": report.completed,
        "flagged": report.flagged,
        "errors": report.errors,
    }


# =============================================================================
# Integrity
# =============================================================================


@shared_task
def verify_platform_integrity() -> dict:
    """
    Periodic reconciliation of completed payouts against ledger withdrawals.

    Read-only. An unhealthy report is logged by the service; repairs are
    left to an operator (admin action or repair_missing_withdrawals).
    """
    return UnifiedBankingService.verify_platform_integrity().to_dict()
