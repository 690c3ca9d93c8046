"""
Perk redemption engine.

Perks unlock on lifetime credits earned, not on the spendable balance, so
a collector who spent everything keeps every perk they unlocked. Redeeming a
perk writes a PerkRedemption and no ledger entry.

Usage:
    from banking.services import PerkRedemptionEngine

    status = PerkRedemptionEngine.check_perk_unlock_status("collector@example.com")
    if status["lamp"].unlocked:
        PerkRedemptionEngine.redeem_perk("collector@example.com", PerkType.LAMP, product_key="ART-12")
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.exceptions import NotFoundError, ValidationError
from core.services import BaseService

from banking.exceptions import AlreadyRedeemed, InvalidStateTransitionError, NotUnlocked
from banking.ledger import balance_calculator
from banking.models import PerkRedemption, PerkType
from banking.state_machines import RedemptionStatus

# Unlock thresholds in USD of purchases; converted with CREDITS_PER_DOLLAR
PERK_THRESHOLDS_USD = {
    PerkType.LAMP: Decimal("255"),
    PerkType.PROOF_PRINT: Decimal("24"),
}


def perk_threshold(perk_type: str) -> Decimal:
    """Lifetime credits needed to unlock a perk (lamp: 2550, proof print: 240)."""
    try:
        usd = PERK_THRESHOLDS_USD[perk_type]
    except KeyError:
        raise ValidationError(
            f"Unknown perk type: {perk_type}",
            error_code="INVALID_PERK_TYPE",
            details={"perk_type": perk_type, "allowed": list(PerkType.values)},
        )
    return usd * settings.CREDITS_PER_DOLLAR


@dataclass(frozen=True)
class PerkProgress:
    perk_type: str
    unlocked: bool
    progress: Decimal
    credits_earned: Decimal
    threshold: Decimal
    credits_remaining: Decimal

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("progress", "credits_earned", "threshold", "credits_remaining"):
            data[key] = str(data[key])
        return data


class PerkRedemptionEngine(BaseService):
    """Unlock checks and redemption bookkeeping for collector perks."""

    @classmethod
    def check_perk_unlock_status(cls, collector_identifier: str) -> dict[str, PerkProgress]:
        """
        Progress towards every perk. Side-effect free.

        Returns:
            Mapping of perk type to PerkProgress; progress is a percentage
            capped at 100
        """
        earned = balance_calculator.get_total_credits_earned(collector_identifier)
        status = {}
        for perk_type in PerkType.values:
            threshold = perk_threshold(perk_type)
            progress = min(earned / threshold * 100, Decimal("100")).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
            status[perk_type] = PerkProgress(
                perk_type=perk_type,
                unlocked=earned >= threshold,
                progress=progress,
                credits_earned=earned,
                threshold=threshold,
                credits_remaining=max(threshold - earned, Decimal("0")),
            )
        return status

    @classmethod
    def redeem_perk(
        cls,
        collector_identifier: str,
        perk_type: str,
        product_key: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> PerkRedemption:
        """
        Redeem an unlocked perk.

        Raises:
            ValidationError: Unknown perk type
            NotUnlocked: Lifetime credits earned below the threshold
            AlreadyRedeemed: A pending redemption exists for this perk and product
        """
        threshold = perk_threshold(perk_type)
        earned = balance_calculator.get_total_credits_earned(collector_identifier)
        log_context = {
            "collector_identifier": collector_identifier,
            "perk_type": perk_type,
            "product_key": product_key,
        }

        if earned < threshold:
            raise NotUnlocked(
                f"{PerkType(perk_type).label} unlocks at {threshold} lifetime credits",
                details={**log_context, "credits_earned": str(earned), "threshold": str(threshold)},
            )

        pending = PerkRedemption.objects.filter(
            collector_identifier=collector_identifier,
            perk_type=perk_type,
            product_key=product_key,
            redemption_status=RedemptionStatus.PENDING,
        )
        if pending.exists():
            raise AlreadyRedeemed(
                "This perk already has a pending redemption",
                details={**log_context, "redemption_id": str(pending.first().id)},
            )

        try:
            with transaction.atomic():
                redemption = PerkRedemption.objects.create(
                    collector_identifier=collector_identifier,
                    perk_type=perk_type,
                    product_key=product_key,
                    unlocked_at=timezone.now(),
                    credits_earned_at_unlock=earned,
                    metadata=metadata or {},
                )
        except IntegrityError:
            # Lost the race against a concurrent redemption
            raise AlreadyRedeemed(
                "This perk already has a pending redemption",
                details=log_context,
            )

        cls.get_logger().info(
            "Perk redeemed",
            extra={**log_context, "redemption_id": str(redemption.id), "credits_earned": str(earned)},
        )
        return redemption

    @classmethod
    def fulfill_redemption(cls, redemption_id) -> PerkRedemption:
        """Mark a pending redemption as shipped."""
        return cls._transition(redemption_id, "fulfill")

    @classmethod
    def cancel_redemption(cls, redemption_id, reason: str = "") -> PerkRedemption:
        """Cancel a pending redemption; the collector can redeem the perk again."""
        return cls._transition(redemption_id, "cancel", reason=reason)

    @classmethod
    def _transition(cls, redemption_id, action: str, **kwargs: Any) -> PerkRedemption:
        with transaction.atomic():
            try:
                redemption = PerkRedemption.objects.select_for_update().get(id=redemption_id)
            except PerkRedemption.DoesNotExist:
                raise NotFoundError(
                    "Perk redemption not found",
                    error_code="REDEMPTION_NOT_FOUND",
                    details={"redemption_id": str(redemption_id)},
                )
            try:
                getattr(redemption, action)(**kwargs)
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    str(e),
                    details={
                        "redemption_id": str(redemption.id),
                        "status": redemption.redemption_status,
                    },
                )
            redemption.save()

        cls.get_logger().info(
            "Perk redemption updated",
            extra={"redemption_id": str(redemption.id), "status": redemption.redemption_status},
        )
        return redemption

    @staticmethod
    def list_redemptions(collector_identifier: str | None = None, status: str | None = None):
        """Redemptions, newest first, optionally filtered by collector and status."""
        queryset = PerkRedemption.objects.all()
        if collector_identifier:
            queryset = queryset.filter(collector_identifier=collector_identifier)
        if status:
            queryset = queryset.filter(redemption_status=status)
        return queryset
