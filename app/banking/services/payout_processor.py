"""
Payout processor for vendor payout batches.

Flow for each payout in a batch:
    1. Resolve the vendor's payee details for the payment method
    2. Claim the payout so a concurrent run cannot send it twice
    3. Send a single-item instruction to the rail (outside any transaction)
    4. Rail accepted: PENDING -> PROCESSING (async) or COMPLETED (sync),
       then record the ledger withdrawal
       Rail rejected or unreachable: PENDING -> FAILED, ledger untouched

The ledger is never debited before the rail has acknowledged the payout.
If the withdrawal cannot be recorded after the rail accepted, the payout
keeps its status and the gap is left for verify_platform_integrity and
UnifiedBankingService.repair_missing_withdrawals.

Admins can also settle line items by hand with mark_line_items_paid and
mark_month_paid. Marked items are never included in a later payout.

Usage:
    from banking.services import PayoutProcessor, PayoutCandidate, PayoutOptions

    results = PayoutProcessor.submit_batch(
        candidates=[PayoutCandidate(vendor_name="Street Collector", amount=Decimal("103.00"))],
        options=PayoutOptions(payment_method=PaymentMethod.PAYPAL, notes="June payouts"),
        processed_by="admin@example.com",
    )
    for item in results:
        print(item.vendor_name, item.success, item.error)
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService

from banking.exceptions import (
    ExternalRailError,
    InvalidStateTransitionError,
    PaymentMethodNotConfigured,
)
from banking.ledger import LedgerEntry, TransactionType, to_decimal
from banking.models import OrderLineItem, PaymentMethod, Vendor, VendorPayout, VendorPayoutItem
from banking.models.payout import SUBMISSION_MARKER
from banking.rails import PollStatus, RailPayoutRequest, get_rail
from banking.recorders import PayoutLedgerRecorder
from banking.recorders.payouts import get_vendor
from banking.signals import send_payout_completed
from banking.state_machines import PayoutStatus

from .payout_calculator import PayoutCalculator
from .payout_validator import PayoutValidator

# Metadata keys written on payouts that need a human
LEDGER_ERROR_KEY = "ledger_withdrawal_error"
RAIL_REVIEW_KEY = "rail_review"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class PayoutCandidate:
    """
    One vendor row submitted by the admin payout console.

    Attributes:
        vendor_name: Vendor to pay
        amount: USD amount to send
        line_item_ids: Line items covered by this payout
        product_count: Number of products covered (defaults to len(line_item_ids))
    """

    vendor_name: str
    amount: Any
    line_item_ids: list[str] = field(default_factory=list)
    product_count: int | None = None


@dataclass
class PayoutOptions:
    payment_method: str = PaymentMethod.PAYPAL
    generate_invoices: bool = True
    notes: str = ""


@dataclass
class PayoutItemResult:
    """Per-vendor outcome returned to the admin payout console."""

    vendor_name: str
    success: bool
    payout_id: str | None = None
    reference: str | None = None
    status: str | None = None
    error: str | None = None
    error_code: str | None = None
    batch_id: str | None = None
    transfer_id: str | None = None
    ledger_recorded: bool = False

    @classmethod
    def for_payout(cls, payout: VendorPayout, success: bool, **kwargs: Any) -> PayoutItemResult:
        return cls(
            vendor_name=payout.vendor_name,
            success=success,
            payout_id=str(payout.id),
            reference=payout.reference,
            status=payout.status,
            batch_id=payout.rail_batch_id or None,
            transfer_id=payout.rail_transfer_id or None,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PayoutBatch:
    payouts: list[VendorPayout] = field(default_factory=list)
    failures: list[PayoutItemResult] = field(default_factory=list)


@dataclass
class SyncReport:
    checked: int = 0
    completed: list[str] = field(default_factory=list)
    flagged: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class MarkPaidResult:
    """Line items an admin marked paid, and the payout recorded for them if any."""

    vendor_name: str
    line_item_ids: list[str] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    payout: PayoutItemResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_name": self.vendor_name,
            "line_item_ids": self.line_item_ids,
            "items_count": len(self.line_item_ids),
            "total_amount": str(self.total_amount),
            "payout": self.payout.to_dict() if self.payout else None,
        }


# =============================================================================
# Helpers
# =============================================================================


def generate_reference(now=None) -> str:
    now = now or timezone.now()
    return f"PAYOUT-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def generate_invoice_number(now=None) -> str:
    now = now or timezone.now()
    return f"INV-{now:%Y%m}-{uuid.uuid4().hex[:6].upper()}"


# =============================================================================
# Payout Processor
# =============================================================================


class PayoutProcessor(BaseService):
    """
    Orchestrates vendor payout batches.

    Batches are processed payout by payout. A failure of one payout is
    reported in its PayoutItemResult and never stops the rest of the batch.
    Rail calls are made outside database transactions and are never
    retried automatically.
    """

    @classmethod
    def submit_batch(
        cls,
        candidates: list[PayoutCandidate],
        options: PayoutOptions,
        processed_by: str = "",
    ) -> list[PayoutItemResult]:
        """Create payouts for the candidates and send them, one result per candidate."""
        batch = cls.create_payout_batch(candidates, options, processed_by)
        results = cls.process_payouts(batch.payouts, options)
        return batch.failures + results

    @classmethod
    def create_payout_batch(
        cls,
        candidates: list[PayoutCandidate],
        options: PayoutOptions,
        processed_by: str = "",
    ) -> PayoutBatch:
        """
        Create one pending payout per candidate.

        Candidates that cannot become a payout (unknown vendor, bad amount,
        line item already paid) are returned as failures; the others are
        created.
        """
        if options.payment_method not in PaymentMethod.values:
            raise ValidationError(
                f"Unknown payment method: {options.payment_method}",
                error_code="INVALID_PAYMENT_METHOD",
                details={"payment_method": options.payment_method},
            )

        batch = PayoutBatch()
        for candidate in candidates:
            try:
                batch.payouts.append(cls._create_payout(candidate, options, processed_by))
            except (BaseApplicationError, IntegrityError) as e:
                error_code = getattr(e, "error_code", "DUPLICATE_PAYMENT")
                message = getattr(e, "message", None) or "A line item in this payout is already paid"
                cls.get_logger().warning(
                    "Payout candidate rejected",
                    extra={"vendor_name": candidate.vendor_name, "error_code": error_code},
                )
                batch.failures.append(
                    PayoutItemResult(
                        vendor_name=candidate.vendor_name,
                        success=False,
                        error=message,
                        error_code=error_code,
                    )
                )
        return batch

    @classmethod
    def _create_payout(
        cls,
        candidate: PayoutCandidate,
        options: PayoutOptions,
        processed_by: str,
    ) -> VendorPayout:
        vendor = Vendor.objects.filter(vendor_name=candidate.vendor_name).first()
        if vendor is None:
            raise NotFoundError(
                f"Vendor not found: {candidate.vendor_name}",
                error_code="VENDOR_NOT_FOUND",
                details={"vendor_name": candidate.vendor_name},
            )
        amount = to_decimal(candidate.amount)
        if amount <= 0:
            raise ValidationError(
                "Payout amount must be positive",
                error_code="INVALID_PAYOUT_AMOUNT",
                details={"vendor_name": candidate.vendor_name, "amount": str(amount)},
            )

        now = timezone.now()
        with transaction.atomic():
            payout = VendorPayout.objects.create(
                vendor=vendor,
                vendor_name=vendor.vendor_name,
                amount=amount,
                payment_method=options.payment_method,
                reference=generate_reference(now),
                invoice_number=generate_invoice_number(now) if options.generate_invoices else "",
                product_count=candidate.product_count or len(candidate.line_item_ids),
                notes=options.notes,
                processed_by=processed_by,
                metadata={"generate_invoices": options.generate_invoices},
            )
            for line_item_id in candidate.line_item_ids:
                earned = LedgerEntry.objects.filter(
                    line_item_id=line_item_id,
                    transaction_type=TransactionType.PAYOUT_EARNED,
                ).aggregate(total=Sum("amount"))["total"]
                VendorPayoutItem.objects.create(
                    payout=payout,
                    line_item_id=line_item_id,
                    order_id=(
                        LedgerEntry.objects.filter(line_item_id=line_item_id)
                        .exclude(order_id=None)
                        .values_list("order_id", flat=True)
                        .first()
                        or ""
                    ),
                    amount=earned or Decimal("0"),
                )

        cls.get_logger().info(
            "Created vendor payout",
            extra={
                "payout_id": str(payout.id),
                "vendor_name": payout.vendor_name,
                "amount": str(payout.amount),
                "payment_method": payout.payment_method,
            },
        )
        return payout

    # =========================================================================
    # Processing
    # =========================================================================

    @classmethod
    def process_payouts(
        cls,
        payouts: list[VendorPayout],
        options: PayoutOptions | None = None,
    ) -> list[PayoutItemResult]:
        """
        Send each payout to its rail, in order.

        Returns:
            One PayoutItemResult per payout, in the order given
        """
        options = options or PayoutOptions()
        results = []
        for payout in payouts:
            try:
                results.append(cls._process_one(payout, options))
            except (BaseApplicationError, DatabaseError) as e:
                cls.get_logger().exception(
                    "Unexpected error while processing payout",
                    extra={"payout_id": str(payout.id)},
                )
                results.append(
                    PayoutItemResult.for_payout(
                        payout,
                        success=False,
                        error=getattr(e, "message", None) or str(e),
                        error_code=getattr(e, "error_code", "PAYOUT_PROCESSING_ERROR"),
                    )
                )
        succeeded = sum(1 for result in results if result.success)
        cls.get_logger().info(
            "Payout batch processed",
            extra={"total": len(results), "succeeded": succeeded, "failed": len(results) - succeeded},
        )
        return results

    @classmethod
    def _process_one(cls, payout: VendorPayout, options: PayoutOptions) -> PayoutItemResult:
        payout = VendorPayout.objects.select_related("vendor").get(id=payout.id)
        log_context = {"payout_id": str(payout.id), "vendor_name": payout.vendor_name}

        if payout.status in PayoutStatus.rail_acknowledged():
            # Already accepted by the rail; only make sure the ledger mirrors it
            cls.get_logger().info("Payout already sent, not resending", extra=log_context)
            return cls._record_withdrawal(payout)

        if payout.status == PayoutStatus.FAILED:
            return PayoutItemResult.for_payout(
                payout,
                success=False,
                error="Payout previously failed; retry it before resubmitting",
                error_code="PAYOUT_FAILED",
            )

        rail = get_rail(payout.payment_method)
        try:
            payee = rail.resolve_payee(payout.vendor)
        except PaymentMethodNotConfigured as e:
            return cls._fail(payout, e)

        if not cls._claim(payout):
            payout = VendorPayout.objects.get(id=payout.id)
            return PayoutItemResult.for_payout(
                payout,
                success=False,
                error="Payout is already being submitted",
                error_code="PAYOUT_IN_PROGRESS",
            )

        request = RailPayoutRequest.for_payout(payout, payee, note=options.notes)
        cls.get_logger().info(
            "Submitting payout to rail",
            extra={**log_context, "rail": rail.name, "amount": str(payout.amount)},
        )
        try:
            response = rail.submit(request)
        except ExternalRailError as e:
            return cls._fail(payout, e)
        except Exception as e:
            # The claim is held; fail the payout so it can be retried after review
            cls.get_logger().exception("Unexpected error from payout rail", extra=log_context)
            return cls._fail(
                payout,
                ExternalRailError(
                    f"Unexpected error from {rail.name}; check the rail before retrying: {e}",
                    error_code="RAIL_ERROR",
                    rail=rail.name,
                ),
            )

        with transaction.atomic():
            payout = VendorPayout.objects.select_for_update().get(id=payout.id)
            if response.is_completed:
                payout.complete(batch_id=response.batch_id, transfer_id=response.transfer_id)
            else:
                payout.process(batch_id=response.batch_id, transfer_id=response.transfer_id)
            payout.save()

        cls.get_logger().info(
            "Rail accepted payout",
            extra={
                **log_context,
                "status": payout.status,
                "batch_id": response.batch_id,
                "transfer_id": response.transfer_id,
            },
        )

        result = cls._record_withdrawal(payout)
        if payout.status == PayoutStatus.COMPLETED:
            send_payout_completed(cls, payout)
        return result

    @classmethod
    def _claim(cls, payout: VendorPayout) -> bool:
        """Mark a pending payout as being submitted; False if another run got it first."""
        with transaction.atomic():
            locked = VendorPayout.objects.select_for_update().get(id=payout.id)
            if locked.status != PayoutStatus.PENDING or locked.has_meta(SUBMISSION_MARKER):
                return False
            locked.set_meta(SUBMISSION_MARKER, {"started_at": timezone.now().isoformat()})
        return True

    @classmethod
    def _record_withdrawal(cls, payout: VendorPayout) -> PayoutItemResult:
        """
        Mirror an acknowledged payout into the ledger.

        A failure here is logged and flagged on the payout; it never undoes
        the payout's status because the money has already left.
        """
        try:
            PayoutLedgerRecorder.record_payout_withdrawal(payout)
        except (BaseApplicationError, DatabaseError) as e:
            message = getattr(e, "message", None) or str(e)
            cls.get_logger().error(
                "Ledger withdrawal failed after rail accepted payout - reconciliation needed",
                extra={
                    "payout_id": str(payout.id),
                    "vendor_name": payout.vendor_name,
                    "amount": str(payout.amount),
                    "error": message,
                },
                exc_info=True,
            )
            payout.set_meta(LEDGER_ERROR_KEY, {"error": message, "at": timezone.now().isoformat()})
            return PayoutItemResult.for_payout(
                payout,
                success=True,
                error=f"Ledger withdrawal not recorded: {message}",
                error_code="LEDGER_WITHDRAWAL_FAILED",
                ledger_recorded=False,
            )
        return PayoutItemResult.for_payout(payout, success=True, ledger_recorded=True)

    @classmethod
    def _fail(cls, payout: VendorPayout, error: BaseApplicationError) -> PayoutItemResult:
        """Move a payout to FAILED with the rail's message as a note."""
        cls.get_logger().error(
            "Payout failed",
            extra={
                "payout_id": str(payout.id),
                "vendor_name": payout.vendor_name,
                "error_code": error.error_code,
                "error": error.message,
            },
        )
        with transaction.atomic():
            payout = VendorPayout.objects.select_for_update().get(id=payout.id)
            if payout.status in (PayoutStatus.PENDING, PayoutStatus.PROCESSING):
                payout.fail(reason=error.message)
                payout.save()
        return PayoutItemResult.for_payout(
            payout,
            success=False,
            error=error.message,
            error_code=error.error_code,
        )

    # =========================================================================
    # Manual settlement
    # =========================================================================

    @classmethod
    def mark_line_items_paid(
        cls,
        line_item_ids: list[str] | None = None,
        order_ids: list[str] | None = None,
        vendor_name: str | None = None,
        marked_by: str = "",
        payout_reference: str = "",
        create_payout_record: bool = False,
        skip_validation: bool = False,
    ) -> MarkPaidResult:
        """
        Mark line items as paid outside the payout rails.

        Line items come from line_item_ids and from the vendor's fulfilled
        line items in order_ids. With create_payout_record a completed
        manual payout is recorded for them, which also writes its ledger
        withdrawal. Without it the items are only marked paid.

        Raises:
            ValidationError: If no line items are given, validation fails or
                the items belong to several vendors
        """
        line_item_ids = list(line_item_ids or [])
        order_ids = list(order_ids or [])
        if not line_item_ids and not order_ids:
            raise ValidationError(
                "Either line_item_ids or order_ids must be provided",
                error_code="MISSING_LINE_ITEMS",
            )
        if order_ids:
            if not vendor_name:
                raise ValidationError(
                    "vendor_name is required when using order_ids",
                    error_code="VENDOR_NAME_REQUIRED",
                )
            from_orders = PayoutCalculator.eligible_line_items(vendor_name).filter(
                order_id__in=order_ids
            )
            line_item_ids += list(from_orders.values_list("line_item_id", flat=True))
        line_item_ids = list(dict.fromkeys(line_item_ids))
        if not line_item_ids:
            raise ValidationError(
                "No fulfilled line items found for the specified orders",
                error_code="NO_ELIGIBLE_LINE_ITEMS",
                details={"order_ids": order_ids},
            )

        if not skip_validation:
            validation = PayoutValidator.validate_payout(
                line_item_ids=line_item_ids, vendor_name=vendor_name
            ).merge(PayoutValidator.ensure_data_integrity(line_item_ids))
            if not validation.valid:
                raise ValidationError(
                    "Validation failed",
                    error_code="PAYOUT_VALIDATION_FAILED",
                    details=validation.to_dict(),
                )

        line_items = list(OrderLineItem.objects.filter(line_item_id__in=line_item_ids))
        vendor_names = {item.vendor_name for item in line_items if item.vendor_name}
        if len(vendor_names) > 1:
            raise ValidationError(
                "Line items must belong to the same vendor",
                error_code="MIXED_VENDORS",
                details={"vendor_names": sorted(vendor_names)},
            )
        vendor_name = next(iter(vendor_names), None) or vendor_name
        if not vendor_name or not line_items:
            raise ValidationError(
                "Unable to determine vendor name",
                error_code="VENDOR_NAME_REQUIRED",
            )

        return cls._mark_paid(
            get_vendor(vendor_name),
            line_items,
            marked_by=marked_by,
            payout_reference=payout_reference,
            create_payout_record=create_payout_record,
            notes=f"Manually marked as paid by {marked_by}" if marked_by else "Manually marked as paid",
        )

    @classmethod
    def mark_month_paid(
        cls,
        vendor_name: str,
        year: int,
        month: int,
        marked_by: str = "",
        payout_reference: str = "",
        create_payout_record: bool = False,
    ) -> MarkPaidResult:
        """
        Mark every unpaid fulfilled line item a vendor sold in a month as paid.

        The month is taken in the active time zone.

        Raises:
            NotFoundError: If the vendor is not in the vendor directory
            ValidationError: If the month is invalid or has nothing left to pay
        """
        if not 1 <= month <= 12:
            raise ValidationError(
                "Month must be between 1 and 12",
                error_code="INVALID_MONTH",
                details={"month": month},
            )
        vendor = get_vendor(vendor_name)
        period = f"{year}-{month:02d}"
        start = timezone.make_aware(datetime(year, month, 1))
        end = timezone.make_aware(datetime(year + month // 12, month % 12 + 1, 1))

        in_month = PayoutCalculator.eligible_line_items(vendor_name).filter(
            created_at__gte=start, created_at__lt=end
        )
        if not in_month.exists():
            raise ValidationError(
                f"No eligible line items found for {period}",
                error_code="NO_ELIGIBLE_LINE_ITEMS",
                details={"vendor_name": vendor_name, "period": period},
            )
        paid_ids = VendorPayoutItem.objects.values_list("line_item_id", flat=True)
        unpaid = list(in_month.exclude(line_item_id__in=paid_ids))
        if not unpaid:
            raise ValidationError(
                "All items for this month are already paid",
                error_code="ALREADY_PAID",
                details={"vendor_name": vendor_name, "period": period},
            )

        return cls._mark_paid(
            vendor,
            unpaid,
            marked_by=marked_by,
            payout_reference=payout_reference
            or (f"PAY-{period}-{uuid.uuid4().hex[:8].upper()}" if create_payout_record else ""),
            create_payout_record=create_payout_record,
            notes=f"Bulk payment for {period}",
        )

    @classmethod
    def _mark_paid(
        cls,
        vendor: Vendor,
        line_items: list[OrderLineItem],
        marked_by: str,
        payout_reference: str,
        create_payout_record: bool,
        notes: str,
    ) -> MarkPaidResult:
        item_payouts = [PayoutCalculator.line_item_payout(item, vendor) for item in line_items]
        total = sum((item.payout_amount for item in item_payouts), Decimal("0"))
        result = MarkPaidResult(
            vendor_name=vendor.vendor_name,
            line_item_ids=[item.line_item_id for item in item_payouts],
            total_amount=total,
        )
        if create_payout_record and total <= 0:
            raise ValidationError(
                "Payout amount must be positive",
                error_code="INVALID_PAYOUT_AMOUNT",
                details={"vendor_name": vendor.vendor_name, "amount": str(total)},
            )
        if (
            create_payout_record
            and payout_reference
            and VendorPayout.objects.filter(reference=payout_reference).exists()
        ):
            raise ValidationError(
                f"Payout reference already used: {payout_reference}",
                error_code="DUPLICATE_REFERENCE",
                details={"reference": payout_reference},
            )

        now = timezone.now()
        payout = None
        try:
            with transaction.atomic():
                if create_payout_record:
                    payout = VendorPayout.objects.create(
                        vendor=vendor,
                        vendor_name=vendor.vendor_name,
                        amount=total,
                        payment_method=PaymentMethod.MANUAL,
                        reference=payout_reference or generate_reference(now),
                        invoice_number=generate_invoice_number(now),
                        product_count=len(item_payouts),
                        notes=notes,
                        processed_by=marked_by,
                    )
                for item in item_payouts:
                    VendorPayoutItem.objects.create(
                        payout=payout,
                        line_item_id=item.line_item_id,
                        order_id=item.order_id,
                        amount=item.payout_amount,
                        manually_marked_paid=True,
                        marked_by=marked_by,
                        marked_at=now,
                        payout_reference=payout_reference,
                    )
        except IntegrityError:
            raise ValidationError(
                "A line item in this request is already paid",
                error_code="DUPLICATE_PAYMENT",
                details={"line_item_ids": result.line_item_ids},
            )

        cls.get_logger().info(
            "Line items marked paid",
            extra={
                "vendor_name": vendor.vendor_name,
                "items_count": len(item_payouts),
                "total_amount": str(total),
                "marked_by": marked_by,
                "payout_id": str(payout.id) if payout else None,
            },
        )
        if payout is not None:
            [result.payout] = cls.process_payouts(
                [payout], PayoutOptions(payment_method=PaymentMethod.MANUAL, notes=notes)
            )
        return result

    # =========================================================================
    # Confirmation & polling
    # =========================================================================

    @classmethod
    def mark_payout_completed(
        cls,
        payout: VendorPayout,
        rail_reference: str = "",
    ) -> VendorPayout:
        """
        Confirm an asynchronous payout.

        Idempotent: a completed payout is returned unchanged.

        Raises:
            InvalidStateTransitionError: If the payout is not processing
        """
        with transaction.atomic():
            payout = VendorPayout.objects.select_for_update().get(id=payout.id)
            if payout.status == PayoutStatus.COMPLETED:
                return payout
            try:
                if payout.status != PayoutStatus.PROCESSING:
                    raise TransitionNotAllowed(f"Cannot confirm a {payout.status} payout")
                payout.complete(transfer_id=rail_reference)
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    str(e),
                    details={"payout_id": str(payout.id), "status": payout.status},
                )
            payout.save()

        cls.get_logger().info(
            "Payout confirmed",
            extra={"payout_id": str(payout.id), "rail_reference": rail_reference},
        )
        cls._record_withdrawal(payout)
        send_payout_completed(cls, payout)
        return payout

    @classmethod
    def retry_payout(cls, payout: VendorPayout) -> VendorPayout:
        """
        Put a failed payout back to PENDING so it can be resubmitted.

        Raises:
            InvalidStateTransitionError: If the payout is not failed
        """
        with transaction.atomic():
            payout = VendorPayout.objects.select_for_update().get(id=payout.id)
            try:
                payout.retry()
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    str(e),
                    details={"payout_id": str(payout.id), "status": payout.status},
                )
            payout.save()
        return payout

    @classmethod
    def sync_processing_payouts(cls) -> SyncReport:
        """
        Poll the rail for payouts still processing.

        Payouts the rail reports as paid are completed. Payouts the rail
        reports as failed are flagged in metadata for review and left
        processing, because their withdrawal is already in the ledger.
        """
        report = SyncReport()
        processing = VendorPayout.objects.select_related("vendor").filter(
            status=PayoutStatus.PROCESSING,
        ).exclude(rail_batch_id="")

        for payout in processing:
            rail = get_rail(payout.payment_method)
            try:
                poll = rail.fetch_status(payout)
            except ExternalRailError as e:
                report.errors[str(payout.id)] = e.message
                cls.get_logger().warning(
                    "Payout status poll failed",
                    extra={"payout_id": str(payout.id), "error": e.message},
                )
                continue
            if poll is None:
                continue

            report.checked += 1
            if poll.status == PollStatus.SUCCEEDED:
                cls.mark_payout_completed(payout, rail_reference=poll.transfer_id)
                report.completed.append(str(payout.id))
            elif poll.status == PollStatus.FAILED:
                if not payout.has_meta(RAIL_REVIEW_KEY):
                    payout.set_meta(
                        RAIL_REVIEW_KEY,
                        {
                            "rail_status": poll.rail_status,
                            "error": poll.error,
                            "flagged_at": timezone.now().isoformat(),
                        },
                    )
                cls.get_logger().error(
                    "Rail reports processing payout as failed - review needed",
                    extra={
                        "payout_id": str(payout.id),
                        "rail_status": poll.rail_status,
                        "error": poll.error,
                    },
                )
                report.flagged.append(str(payout.id))

        return report
