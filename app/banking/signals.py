"""
Django signals for the banking app.

Signals:
    payout_completed: Sent after a vendor payout reaches COMPLETED.
        Arguments: payout (VendorPayout), invoice_context (dict)

Receivers (invoice rendering, email delivery) run through send_robust, so a
failing receiver is logged and never undoes the payout or its ledger entry.

Usage:
    from django.dispatch import receiver
    from banking.signals import payout_completed

    @receiver(payout_completed)
    def send_payout_invoice(sender, payout, invoice_context, **kwargs):
        ...
"""

from __future__ import annotations

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

payout_completed = Signal()


def send_payout_completed(sender, payout) -> None:
    """Notify receivers of a completed payout and log receiver failures."""
    responses = payout_completed.send_robust(
        sender=sender,
        payout=payout,
        invoice_context=payout.invoice_context(),
    )
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                "payout_completed receiver failed",
                extra={
                    "payout_id": str(payout.id),
                    "receiver": getattr(receiver, "__qualname__", repr(receiver)),
                    "error": str(response),
                },
            )
