"""
Rails that never call an external API.

- ManualRail: admin paid the vendor outside the platform; completes at once
- BankTransferRail: admin initiates a wire; stays processing until confirmed
- SimulatedRail: stands in for any rail when BANKING_SIMULATE_PAYOUT_RAILS is set
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.utils import timezone

from .base import PayoutRail, RailPayoutRequest, RailResponse, RailStatus

if TYPE_CHECKING:
    from banking.models import Vendor


def _stamp() -> str:
    return timezone.now().strftime("%Y%m%d%H%M%S")


class ManualRail(PayoutRail):
    """Payout settled by hand; synchronous."""

    name = "manual"

    def resolve_payee(self, vendor: Vendor | None) -> str:
        return vendor.vendor_name if vendor else ""

    def submit(self, request: RailPayoutRequest) -> RailResponse:
        return RailResponse(
            status=RailStatus.COMPLETED,
            transfer_id=f"MANUAL-{_stamp()}-{request.payout_id[:8].upper()}",
        )


class BankTransferRail(PayoutRail):
    """
    Wire transfer initiated by an admin.

    Accepted immediately and left processing; an admin confirms it with
    PayoutProcessor.mark_payout_completed once the bank settles.
    """

    name = "bank_transfer"

    def resolve_payee(self, vendor: Vendor | None) -> str:
        if vendor is None or not vendor.address.strip():
            raise self._not_configured(vendor, "Vendor has no bank/postal address on file")
        return vendor.vendor_name

    def submit(self, request: RailPayoutRequest) -> RailResponse:
        return RailResponse(
            status=RailStatus.PROCESSING,
            batch_id=f"BANK-{request.client_reference_id}",
        )


class SimulatedRail(PayoutRail):
    """
    Local stand-in for a real rail.

    Payee details are still resolved through the wrapped rail so that a
    misconfigured vendor fails the same way it would in production.
    """

    def __init__(self, wrapped: PayoutRail):
        self.wrapped = wrapped
        self.name = wrapped.name

    def resolve_payee(self, vendor: Vendor | None) -> str:
        return self.wrapped.resolve_payee(vendor)

    def submit(self, request: RailPayoutRequest) -> RailResponse:
        self.get_logger().info(
            "Simulated payout submission",
            extra={"payout_id": request.payout_id, "rail": self.name},
        )
        return RailResponse(
            status=RailStatus.COMPLETED,
            batch_id=f"SIM-{self.name.upper()}-{_stamp()}",
            transfer_id=f"SIM-{request.payout_id[:8].upper()}",
        )
