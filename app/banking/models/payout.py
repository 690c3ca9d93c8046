"""
Vendor payout models.

A VendorPayout is a workflow object: it tracks an instruction sent to an
external payment rail. Its financial effect exists only once the matching
payout_withdrawal ledger entry is recorded.

Usage:
    from banking.models import VendorPayout

    payout = VendorPayout.objects.create(
        vendor=vendor,
        vendor_name=vendor.vendor_name,
        amount=Decimal("103.00"),
        payment_method=PaymentMethod.PAYPAL,
        reference="PAYOUT-20240601-1A2B3C",
    )

    payout.process(batch_id="PB-123")  # pending -> processing
    payout.save()

    payout.complete()                  # processing -> completed
    payout.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

from banking.state_machines import PayoutStatus

# Metadata key set while a payout is being sent to its rail
SUBMISSION_MARKER = "rail_submission"


class PaymentMethod(models.TextChoices):
    """Rails a payout can be sent through."""

    PAYPAL = "paypal", "PayPal"
    STRIPE = "stripe", "Stripe"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    MANUAL = "manual", "Manual"


class VendorPayout(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A payout instruction to one vendor.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED   (asynchronous rails)
        PENDING -> COMPLETED                 (synchronous rails)
        PENDING/PROCESSING -> FAILED -> PENDING (retry)

    Fields:
        vendor: Vendor directory entry
        vendor_name: Vendor name at the time of the payout
        amount: USD amount sent to the vendor
        status: Current FSM state
        payment_method: Rail used for the payout
        reference: Payout reference shown to vendor and rail
        invoice_number: Invoice number for the invoice collaborator
        rail_batch_id: Rail batch identifier (PayPal payout batch)
        rail_transfer_id: Rail transfer identifier (Stripe tr_xxx)
        notes: Admin notes and rail error messages
    """

    # ==========================================================================
    # Vendor
    # ==========================================================================

    vendor = models.ForeignKey(
        "banking.Vendor",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payouts",
        help_text="Vendor receiving the payout",
    )
    vendor_name = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Vendor name at the time the payout was created",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount sent to the vendor",
    )
    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code",
    )
    product_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of line items covered by this payout",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PayoutStatus.PENDING,
        choices=PayoutStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.PAYPAL,
        help_text="Rail used to send the payout",
    )

    # ==========================================================================
    # References
    # ==========================================================================

    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text="Payout reference shared with the rail and the vendor",
    )
    invoice_number = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Invoice number for the invoice/email subsystem",
    )
    rail_batch_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Batch identifier returned by the rail",
    )
    rail_transfer_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Transfer identifier returned by the rail",
    )

    # ==========================================================================
    # Audit & timestamps
    # ==========================================================================

    notes = models.TextField(
        blank=True,
        default="",
        help_text="Admin notes and rail error messages",
    )
    processed_by = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Admin who submitted the payout",
    )
    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the rail accepted the payout",
    )
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout completed",
    )
    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout failed",
    )
    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Rail error message if the payout failed",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["vendor_name", "status"],
                name="payout_vendor_status_idx",
            ),
            models.Index(
                fields=["status", "payment_method"],
                name="payout_status_method_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="vendor_payout_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"VendorPayout({self.reference}, {self.status}, {self.amount} {self.currency})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.PROCESSING,
    )
    def process(self, batch_id: str = "", transfer_id: str = ""):
        """
        Rail accepted the instruction asynchronously.

        Transition: PENDING -> PROCESSING
        """
        self.processed_at = timezone.now()
        if batch_id:
            self.rail_batch_id = batch_id
        if transfer_id:
            self.rail_transfer_id = transfer_id

    @transition(
        field=status,
        source=[PayoutStatus.PENDING, PayoutStatus.PROCESSING],
        target=PayoutStatus.COMPLETED,
    )
    def complete(self, batch_id: str = "", transfer_id: str = ""):
        """
        Rail confirmed the payout.

        Transition: PENDING/PROCESSING -> COMPLETED
        """
        now = timezone.now()
        self.processed_at = self.processed_at or now
        self.completed_at = now
        if batch_id:
            self.rail_batch_id = batch_id
        if transfer_id:
            self.rail_transfer_id = transfer_id

    @transition(
        field=status,
        source=[PayoutStatus.PENDING, PayoutStatus.PROCESSING],
        target=PayoutStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """
        Rail rejected the payout or could not be reached.

        Transition: PENDING/PROCESSING -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason
        if reason:
            self.notes = f"{self.notes}\n{reason}".strip()

    @transition(
        field=status,
        source=PayoutStatus.FAILED,
        target=PayoutStatus.PENDING,
    )
    def retry(self):
        """
        Re-queue a failed payout for an admin to resubmit.

        Transition: FAILED -> PENDING
        """
        self.failed_at = None
        self.failure_reason = ""
        self.metadata.pop(SUBMISSION_MARKER, None)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def is_rail_acknowledged(self) -> bool:
        return self.status in PayoutStatus.rail_acknowledged()

    def invoice_context(self) -> dict:
        """
        Data the invoice/email subsystem needs to render a payout document.

        The layout of the invoice is not known here.
        """
        vendor_tax = self.vendor.tax_fields() if self.vendor else {}
        return {
            "payout_id": str(self.id),
            "vendor_name": self.vendor_name,
            "amount": str(self.amount),
            "currency": self.currency,
            "reference": self.reference,
            "invoice_number": self.invoice_number,
            "payment_method": self.payment_method,
            "product_count": self.product_count,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            **vendor_tax,
        }


class VendorPayoutItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    A line item covered by a payout, or marked paid by an admin.

    A line item can be paid at most once, which is what the
    duplicate-payment check relies on. Items marked paid without a payout
    record have no payout and no ledger effect.
    """

    payout = models.ForeignKey(
        VendorPayout,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="items",
        help_text="Payout covering this line item",
    )
    line_item_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Storefront line item ID",
    )
    order_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Storefront order ID",
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        help_text="Vendor share for this line item",
    )
    manually_marked_paid = models.BooleanField(
        default=False,
        help_text="Whether an admin marked this item paid outside a rail",
    )
    marked_by = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Admin who marked the item paid",
    )
    marked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the item was marked paid",
    )
    payout_reference = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Reference of the offline payment, if any",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.line_item_id} -> {self.payout_id or 'marked paid'}"
