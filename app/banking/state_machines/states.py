"""
State enums for banking models.

These are Django TextChoices used by django-fsm fields.

Vendor Payout States:
    pending → processing → completed      (asynchronous rails: PayPal, bank transfer)
    pending → completed                   (synchronous rails: manual, Stripe, simulated)
    pending/processing → failed → pending (retry)

Perk Redemption States:
    pending → fulfilled
    pending → cancelled
"""

from django.db import models


class PayoutStatus(models.TextChoices):
    """
    States for the VendorPayout lifecycle.

    Terminal states: COMPLETED
    FAILED can be retried back to PENDING by an admin.

    The ledger withdrawal is recorded once a payout reaches PROCESSING or
    COMPLETED, i.e. after the rail has acknowledged the instruction.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"

    @classmethod
    def rail_acknowledged(cls) -> list[str]:
        """States in which the rail has accepted the payout instruction."""
        return [cls.PROCESSING, cls.COMPLETED]


class RedemptionStatus(models.TextChoices):
    """States for a PerkRedemption."""

    PENDING = "pending", "Pending"
    FULFILLED = "fulfilled", "Fulfilled"
    CANCELLED = "cancelled", "Cancelled"
