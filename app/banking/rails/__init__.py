"""
External payment rails for vendor payouts.

Usage:
    from banking.rails import get_rail

    rail = get_rail(PaymentMethod.PAYPAL)
    payee = rail.resolve_payee(vendor)
    response = rail.submit(RailPayoutRequest.for_payout(payout, payee))
"""

from django.conf import settings

from core.exceptions import ValidationError

from .base import (
    PayoutRail,
    PollStatus,
    RailPayoutRequest,
    RailPollResult,
    RailResponse,
    RailStatus,
)
from .manual import BankTransferRail, ManualRail, SimulatedRail
from .paypal import PayPalRail
from .stripe_rail import StripeRail

RAILS: dict[str, type[PayoutRail]] = {
    PayPalRail.name: PayPalRail,
    StripeRail.name: StripeRail,
    BankTransferRail.name: BankTransferRail,
    ManualRail.name: ManualRail,
}


def get_rail(payment_method: str) -> PayoutRail:
    """
    Rail for a payment method.

    Manual payouts always use ManualRail; every other rail is replaced by a
    SimulatedRail when BANKING_SIMULATE_PAYOUT_RAILS is set.

    Raises:
        ValidationError: If the payment method is unknown
    """
    rail_class = RAILS.get(payment_method)
    if rail_class is None:
        raise ValidationError(
            f"Unknown payment method: {payment_method}",
            error_code="INVALID_PAYMENT_METHOD",
            details={"payment_method": payment_method, "allowed": sorted(RAILS)},
        )
    rail = rail_class()
    if settings.BANKING_SIMULATE_PAYOUT_RAILS and rail_class is not ManualRail:
        return SimulatedRail(rail)
    return rail


__all__ = [
    "BankTransferRail",
    "ManualRail",
    "PayPalRail",
    "PayoutRail",
    "PollStatus",
    "RailPayoutRequest",
    "RailPollResult",
    "RailResponse",
    "RailStatus",
    "SimulatedRail",
    "StripeRail",
    "get_rail",
]
