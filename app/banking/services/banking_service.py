"""
Unified banking service.

Facade over the ledger for cross-cutting reads and for the reconciliation
check between payout records and ledger withdrawals.

Usage:
    from banking.services import UnifiedBankingService

    UnifiedBankingService.get_balance("cust_123")
    UnifiedBankingService.get_all_vendor_balances()

    report = UnifiedBankingService.verify_platform_integrity()
    if not report.is_healthy:
        UnifiedBankingService.repair_missing_withdrawals(created_by="ops@example.com")
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.db.models import Max, Sum
from django.utils import timezone

from core.exceptions import BaseApplicationError
from core.services import BaseService

from banking.ledger import (
    Currency,
    LedgerEntry,
    TransactionType,
    UnifiedBalance,
    balance_calculator,
)
from banking.models import Vendor, VendorPayout
from banking.recorders import (
    AdjustmentRecorder,
    AdjustmentResult,
    PayoutLedgerRecorder,
    RefundDeductionResult,
)
from banking.recorders.payouts import get_vendor
from banking.state_machines import PayoutStatus

# Drift below one cent is rounding, not a discrepancy
DRIFT_TOLERANCE = Decimal("0.01")


class DriftKind:
    MISSING_WITHDRAWAL = "missing_withdrawal"
    AMOUNT_MISMATCH = "amount_mismatch"
    UNMATCHED_WITHDRAWAL = "unmatched_withdrawal"
    TOTAL_DRIFT = "total_drift"


@dataclass(frozen=True)
class IntegrityDrift:
    """
    One discrepancy found by verify_platform_integrity.

    A report record for operators; it is never raised.
    """

    kind: str
    message: str
    payout_id: str | None = None
    expected: Decimal | None = None
    recorded: Decimal | None = None


@dataclass
class IntegrityReport:
    """
    Result of reconciling completed payouts against ledger withdrawals.

    Attributes:
        payouts_total: Sum of completed payout amounts
        withdrawals_total: Absolute sum of all payout_withdrawal entries
        drift: payouts_total - withdrawals_total
        in_flight_total: Part of withdrawals_total mirroring payouts still processing
        settled_drift: drift with in-flight withdrawals left out; health is judged on it
        missing_payout_ids: Completed payouts with no withdrawal entry
    """

    payouts_total: Decimal
    withdrawals_total: Decimal
    drift: Decimal
    completed_payout_count: int
    withdrawal_count: int
    in_flight_total: Decimal
    settled_drift: Decimal
    missing_payout_ids: list[str] = field(default_factory=list)
    issues: list[IntegrityDrift] = field(default_factory=list)
    checked_at: datetime = field(default_factory=timezone.now)

    @property
    def missing_count(self) -> int:
        return len(self.missing_payout_ids)

    @property
    def is_healthy(self) -> bool:
        return abs(self.settled_drift) < DRIFT_TOLERANCE and self.missing_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "payouts_total": str(self.payouts_total),
            "withdrawals_total": str(self.withdrawals_total),
            "drift": str(self.drift),
            "in_flight_total": str(self.in_flight_total),
            "settled_drift": str(self.settled_drift),
            "completed_payout_count": self.completed_payout_count,
            "withdrawal_count": self.withdrawal_count,
            "missing_payout_ids": self.missing_payout_ids,
            "missing_count": self.missing_count,
            "is_healthy": self.is_healthy,
            "checked_at": self.checked_at.isoformat(),
            "issues": [
                {
                    key: (str(value) if isinstance(value, Decimal) else value)
                    for key, value in asdict(issue).items()
                }
                for issue in self.issues
            ],
        }


@dataclass
class RepairReport:
    repaired_payout_ids: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def repaired_count(self) -> int:
        return len(self.repaired_payout_ids)


@dataclass(frozen=True)
class VendorBalance:
    """Row of the admin payout console."""

    vendor_name: str
    collector_identifier: str
    usd_balance: Decimal
    total_usd_earned: Decimal
    last_payout_at: datetime | None
    paypal_email: str
    stripe_ready: bool
    is_active: bool


class UnifiedBankingService(BaseService):
    """Cross-cutting reads and reconciliation over the ledger."""

    @classmethod
    def get_balance(cls, collector_identifier: str) -> UnifiedBalance:
        return balance_calculator.calculate_unified_balance(collector_identifier)

    @classmethod
    def get_vendor_balance(cls, vendor_name: str) -> VendorBalance:
        """
        Balance row for one vendor.

        Raises:
            NotFoundError: If the vendor is not in the vendor directory
        """
        vendor = get_vendor(vendor_name)
        balance = balance_calculator.calculate_unified_balance(vendor.collector_identifier)
        last_payout_at = (
            VendorPayout.objects.filter(
                vendor_name=vendor.vendor_name,
                status=PayoutStatus.COMPLETED,
            ).aggregate(last=Max("completed_at"))["last"]
        )
        return cls._vendor_row(vendor, balance.usd_balance, balance.total_usd_earned, last_payout_at)

    @classmethod
    def get_all_vendor_balances(cls, include_inactive: bool = False) -> list[VendorBalance]:
        """
        Every vendor with its withdrawable USD balance, highest first.

        Uses grouped queries over the ledger and payouts regardless of
        the number of vendors.
        """
        vendors = Vendor.objects.all()
        if not include_inactive:
            vendors = vendors.filter(is_active=True)
        vendors = list(vendors)

        identifiers = [vendor.collector_identifier for vendor in vendors]
        usd_rows = (
            LedgerEntry.objects.filter(
                collector_identifier__in=identifiers,
                currency=Currency.USD,
            )
            .values("collector_identifier")
            .annotate(total=Sum("amount"))
        )
        usd_totals = {row["collector_identifier"]: row["total"] for row in usd_rows}
        earned_rows = (
            LedgerEntry.objects.filter(
                collector_identifier__in=identifiers,
                currency=Currency.USD,
                transaction_type=TransactionType.PAYOUT_EARNED,
                amount__gt=0,
            )
            .values("collector_identifier")
            .annotate(total=Sum("amount"))
        )
        earned_totals = {row["collector_identifier"]: row["total"] for row in earned_rows}
        last_payouts = dict(
            VendorPayout.objects.filter(status=PayoutStatus.COMPLETED)
            .values("vendor_name")
            .annotate(last=Max("completed_at"))
            .values_list("vendor_name", "last")
        )

        rows = [
            cls._vendor_row(
                vendor,
                Decimal(usd_totals.get(vendor.collector_identifier) or 0),
                Decimal(earned_totals.get(vendor.collector_identifier) or 0),
                last_payouts.get(vendor.vendor_name),
            )
            for vendor in vendors
        ]
        rows.sort(key=lambda row: (-row.usd_balance, row.vendor_name))
        return rows

    @staticmethod
    def _vendor_row(
        vendor: Vendor,
        usd_balance: Decimal,
        total_usd_earned: Decimal,
        last_payout_at: datetime | None,
    ) -> VendorBalance:
        return VendorBalance(
            vendor_name=vendor.vendor_name,
            collector_identifier=vendor.collector_identifier,
            usd_balance=usd_balance,
            total_usd_earned=total_usd_earned,
            last_payout_at=last_payout_at,
            paypal_email=vendor.paypal_email,
            stripe_ready=bool(vendor.stripe_account_id and vendor.stripe_onboarding_complete),
            is_active=vendor.is_active,
        )

    # =========================================================================
    # Typed recorder wrappers
    # =========================================================================

    @classmethod
    def record_adjustment(
        cls,
        collector_identifier: str,
        amount: Any,
        currency: str,
        reason: str,
        created_by: str,
        **kwargs: Any,
    ) -> AdjustmentResult:
        return AdjustmentRecorder.record_adjustment(
            collector_identifier=collector_identifier,
            amount=amount,
            currency=currency,
            reason=reason,
            created_by=created_by,
            **kwargs,
        )

    @classmethod
    def record_refund_deduction(
        cls,
        vendor_name: str,
        order_id: str,
        amount: Any,
        **kwargs: Any,
    ) -> RefundDeductionResult:
        return PayoutLedgerRecorder.record_refund_deduction(
            vendor_name=vendor_name,
            order_id=order_id,
            amount=amount,
            **kwargs,
        )

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @classmethod
    def verify_platform_integrity(cls) -> IntegrityReport:
        """
        Reconcile completed payouts against payout_withdrawal entries.

        Read-only. drift is the difference between the two totals;
        missing_payout_ids names completed payouts that have no ledger mirror.
        Withdrawals of payouts still processing are reported as
        in_flight_total and do not make the platform unhealthy.
        """
        completed = dict(
            VendorPayout.objects.filter(status=PayoutStatus.COMPLETED).values_list("id", "amount")
        )
        completed = {str(payout_id): amount for payout_id, amount in completed.items()}
        payouts_total = sum(completed.values(), Decimal("0"))

        withdrawals = list(
            LedgerEntry.objects.filter(
                transaction_type=TransactionType.PAYOUT_WITHDRAWAL,
            ).values_list("payout_id", "amount")
        )
        withdrawals_total = sum((abs(amount) for _, amount in withdrawals), Decimal("0"))

        recorded_by_payout: dict[str, Decimal] = {}
        for payout_id, amount in withdrawals:
            if payout_id:
                recorded_by_payout[payout_id] = recorded_by_payout.get(payout_id, Decimal("0")) + abs(
                    amount
                )

        processing_ids = {
            str(payout_id)
            for payout_id in VendorPayout.objects.filter(
                status=PayoutStatus.PROCESSING,
            ).values_list("id", flat=True)
        }
        in_flight_total = sum(
            (amount for payout_id, amount in recorded_by_payout.items() if payout_id in processing_ids),
            Decimal("0"),
        )

        issues: list[IntegrityDrift] = []
        missing = sorted(set(completed) - set(recorded_by_payout))
        for payout_id in missing:
            issues.append(
                IntegrityDrift(
                    kind=DriftKind.MISSING_WITHDRAWAL,
                    message="Completed payout has no payout_withdrawal entry",
                    payout_id=payout_id,
                    expected=completed[payout_id],
                    recorded=Decimal("0"),
                )
            )
        for payout_id, recorded in recorded_by_payout.items():
            if payout_id in completed and recorded != completed[payout_id]:
                issues.append(
                    IntegrityDrift(
                        kind=DriftKind.AMOUNT_MISMATCH,
                        message="Withdrawal amount differs from payout amount",
                        payout_id=payout_id,
                        expected=completed[payout_id],
                        recorded=recorded,
                    )
                )
            elif payout_id not in completed and payout_id not in processing_ids:
                issues.append(
                    IntegrityDrift(
                        kind=DriftKind.UNMATCHED_WITHDRAWAL,
                        message="Withdrawal entry references no completed or processing payout",
                        payout_id=payout_id,
                        recorded=recorded,
                    )
                )

        drift = payouts_total - withdrawals_total
        # Processing payouts are withdrawn before they complete
        settled_drift = drift + in_flight_total
        if abs(settled_drift) >= DRIFT_TOLERANCE:
            issues.append(
                IntegrityDrift(
                    kind=DriftKind.TOTAL_DRIFT,
                    message=f"Completed payouts and their withdrawals differ by {settled_drift}",
                    expected=payouts_total,
                    recorded=withdrawals_total - in_flight_total,
                )
            )

        report = IntegrityReport(
            payouts_total=payouts_total,
            withdrawals_total=withdrawals_total,
            drift=drift,
            completed_payout_count=len(completed),
            withdrawal_count=len(withdrawals),
            in_flight_total=in_flight_total,
            settled_drift=settled_drift,
            missing_payout_ids=missing,
            issues=issues,
        )

        log_context = {
            "payouts_total": str(payouts_total),
            "withdrawals_total": str(withdrawals_total),
            "drift": str(drift),
            "settled_drift": str(settled_drift),
            "missing_count": report.missing_count,
        }
        if report.is_healthy:
            cls.get_logger().info("Platform integrity verified", extra=log_context)
        else:
            cls.get_logger().warning(
                "Platform integrity drift detected",
                extra={**log_context, "missing_payout_ids": missing[:50]},
            )
        return report

    @classmethod
    def repair_missing_withdrawals(cls, created_by: str) -> RepairReport:
        """
        Re-run the withdrawal recorder for completed payouts without a ledger mirror.

        The recorder is idempotent, so repairing twice records nothing new.
        One payout's failure does not stop the others.
        """
        report = RepairReport()
        missing_ids = cls.verify_platform_integrity().missing_payout_ids
        for payout in VendorPayout.objects.select_related("vendor").filter(id__in=missing_ids):
            try:
                PayoutLedgerRecorder.record_payout_withdrawal(payout, created_by=created_by)
            except BaseApplicationError as e:
                cls.get_logger().error(
                    "Withdrawal repair failed",
                    extra={"payout_id": str(payout.id), "error": e.message},
                )
                report.failed[str(payout.id)] = e.message
                continue
            report.repaired_payout_ids.append(str(payout.id))

        cls.get_logger().info(
            "Withdrawal repair finished",
            extra={
                "repaired": report.repaired_count,
                "failed": len(report.failed),
                "created_by": created_by,
            },
        )
        return report
