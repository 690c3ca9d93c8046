"""
Perk redemption model.

Perks are non-monetary rewards (a lamp, a proof print) unlocked by lifetime
credits earned. Redeeming one writes no ledger entry; this record is what
prevents issuing the same perk twice.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

from banking.state_machines import RedemptionStatus


class PerkType(models.TextChoices):
    LAMP = "lamp", "Lamp"
    PROOF_PRINT = "proof_print", "Proof Print"


class PerkRedemption(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    One unlocked perk instance for a collector.

    State Flow:
        PENDING -> FULFILLED
        PENDING -> CANCELLED

    Constraints:
        At most one PENDING redemption per (collector, perk type, product key).
    """

    collector_identifier = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Collector who unlocked the perk",
    )
    perk_type = models.CharField(
        max_length=20,
        choices=PerkType.choices,
        help_text="Which perk was redeemed",
    )
    product_key = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Artwork or product the perk is issued for",
    )
    redemption_status = FSMField(
        default=RedemptionStatus.PENDING,
        choices=RedemptionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the redemption (managed by FSM)",
    )
    unlocked_at = models.DateTimeField(
        help_text="When the redemption was made",
    )
    credits_earned_at_unlock = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Lifetime credits earned observed when the perk was redeemed",
    )
    fulfilled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the perk was shipped or handed over",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["collector_identifier", "perk_type", "product_key"],
                condition=Q(redemption_status=RedemptionStatus.PENDING),
                name="unique_pending_perk_redemption",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.perk_type} for {self.collector_identifier} ({self.redemption_status})"

    @transition(
        field=redemption_status,
        source=RedemptionStatus.PENDING,
        target=RedemptionStatus.FULFILLED,
    )
    def fulfill(self, fulfilled_at=None):
        self.fulfilled_at = fulfilled_at or timezone.now()

    @transition(
        field=redemption_status,
        source=RedemptionStatus.PENDING,
        target=RedemptionStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        if reason:
            self.metadata["cancel_reason"] = reason
