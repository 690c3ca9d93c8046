"""
Banking admin configuration.

This file imports admin configurations from the ledger submodule
and registers banking domain models with the Django admin.
"""

from django.contrib import admin

from core.exceptions import BaseApplicationError

from banking.ledger.admin import CollectorAccountAdmin, LedgerEntryAdmin
from banking.models import (
    CreditSubscription,
    ExchangeRate,
    OrderLineItem,
    PerkRedemption,
    ProductPayoutRule,
    Vendor,
    VendorPayout,
    VendorPayoutItem,
)
from banking.services import PayoutProcessor, PerkRedemptionEngine, UnifiedBankingService
from banking.state_machines import PayoutStatus, RedemptionStatus

__all__ = [
    "CollectorAccountAdmin",
    "LedgerEntryAdmin",
    "VendorAdmin",
    "ProductPayoutRuleAdmin",
    "ExchangeRateAdmin",
    "OrderLineItemAdmin",
    "VendorPayoutItemAdmin",
    "CreditSubscriptionAdmin",
    "VendorPayoutAdmin",
    "PerkRedemptionAdmin",
]


def _actor(request) -> str:
    return getattr(request.user, "email", "") or request.user.get_username()


class ProductPayoutRuleInline(admin.TabularInline):
    model = ProductPayoutRule
    extra = 0
    fields = ["product_id", "payout_amount", "is_percentage"]


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    """
    Admin configuration for Vendor.

    Payee details edited here are read by the payout rails.
    """

    list_display = [
        "vendor_name",
        "paypal_email",
        "stripe_account_id",
        "stripe_onboarding_complete",
        "default_payout_percentage",
        "is_active",
    ]
    list_filter = ["is_active", "stripe_onboarding_complete", "is_company"]
    search_fields = ["vendor_name", "auth_id", "ledger_identifier", "contact_email", "paypal_email"]
    readonly_fields = ["id", "ledger_identifier", "created_at", "updated_at"]
    ordering = ["vendor_name"]
    inlines = [ProductPayoutRuleInline]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "vendor_name",
                    "auth_id",
                    "ledger_identifier",
                    "contact_email",
                    "is_active",
                ),
            },
        ),
        (
            "Payout Details",
            {
                "fields": (
                    "paypal_email",
                    "stripe_account_id",
                    "stripe_onboarding_complete",
                    "default_payout_percentage",
                ),
            },
        ),
        (
            "Tax",
            {
                "fields": ("tax_id", "tax_country", "is_company", "address"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )


@admin.register(ProductPayoutRule)
class ProductPayoutRuleAdmin(admin.ModelAdmin):
    list_display = ["vendor", "product_id", "payout_amount", "is_percentage"]
    list_filter = ["is_percentage"]
    search_fields = ["product_id", "vendor__vendor_name"]
    ordering = ["vendor", "product_id"]


@admin.register(ExchangeRate)
class ExchangeRateAdmin(admin.ModelAdmin):
    list_display = ["from_currency", "to_currency", "rate", "updated_at"]
    search_fields = ["from_currency"]
    ordering = ["from_currency"]


@admin.register(OrderLineItem)
class OrderLineItemAdmin(admin.ModelAdmin):
    list_display = [
        "line_item_id",
        "order_name",
        "vendor_name",
        "price",
        "currency",
        "fulfillment_status",
        "status",
        "created_at",
    ]
    list_filter = ["fulfillment_status", "status", "currency"]
    search_fields = ["line_item_id", "order_id", "order_name", "vendor_name", "customer_identifier"]
    readonly_fields = ["id", "created_at", "updated_at"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["mark_paid"]

    @admin.action(description="Mark selected line items as paid")
    def mark_paid(self, request, queryset):
        try:
            result = PayoutProcessor.mark_line_items_paid(
                line_item_ids=list(queryset.values_list("line_item_id", flat=True)),
                marked_by=_actor(request),
            )
        except BaseApplicationError as e:
            errors = "; ".join(e.details.get("errors", [])) or e.message
            self.message_user(request, errors, level="error")
            return
        self.message_user(
            request,
            f"Marked {len(result.line_item_ids)} line items of {result.vendor_name} as paid.",
        )


@admin.register(VendorPayoutItem)
class VendorPayoutItemAdmin(admin.ModelAdmin):
    """Paid line items, including those marked paid without a payout."""

    list_display = [
        "line_item_id",
        "order_id",
        "amount",
        "payout",
        "manually_marked_paid",
        "marked_by",
        "marked_at",
    ]
    list_filter = ["manually_marked_paid"]
    search_fields = ["line_item_id", "order_id", "payout_reference", "marked_by"]
    readonly_fields = [
        "id",
        "payout",
        "line_item_id",
        "order_id",
        "amount",
        "manually_marked_paid",
        "marked_by",
        "marked_at",
        "payout_reference",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(CreditSubscription)
class CreditSubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "subscription_id",
        "collector_identifier",
        "monthly_credits",
        "status",
        "next_billing_at",
    ]
    list_filter = ["status"]
    search_fields = ["subscription_id", "collector_identifier"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]


class VendorPayoutItemInline(admin.TabularInline):
    """Line items covered by a payout (read-only)."""

    model = VendorPayoutItem
    extra = 0
    fields = readonly_fields = [
        "line_item_id",
        "order_id",
        "amount",
        "manually_marked_paid",
        "marked_by",
        "created_at",
    ]
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(VendorPayout)
class VendorPayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for VendorPayout.

    Status is FSM-protected; use the actions to move payouts through
    their lifecycle so the ledger stays in step.
    """

    list_display = [
        "reference",
        "vendor_name",
        "amount_display",
        "status",
        "payment_method",
        "processed_at",
        "completed_at",
        "created_at",
    ]
    list_filter = ["status", "payment_method", "created_at"]
    search_fields = [
        "id",
        "reference",
        "invoice_number",
        "vendor_name",
        "rail_batch_id",
        "rail_transfer_id",
    ]
    readonly_fields = [
        "id",
        "status",
        "reference",
        "invoice_number",
        "rail_batch_id",
        "rail_transfer_id",
        "processed_by",
        "processed_at",
        "completed_at",
        "failed_at",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [VendorPayoutItemInline]
    actions = [
        "send_payouts",
        "retry_payouts",
        "mark_completed",
        "repair_missing_withdrawals",
    ]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "vendor", "vendor_name", "status", "payment_method"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "currency", "product_count"),
            },
        ),
        (
            "Rail Details",
            {
                "fields": ("reference", "invoice_number", "rail_batch_id", "rail_transfer_id"),
            },
        ),
        (
            "Status Timestamps",
            {
                "fields": ("processed_by", "processed_at", "completed_at", "failed_at"),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Notes",
            {
                "fields": ("notes", "metadata"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def amount_display(self, obj: VendorPayout) -> str:
        """Display the amount formatted as currency."""
        return f"${obj.amount:.2f} {obj.currency}"

    amount_display.short_description = "Amount"

    @admin.action(description="Send selected pending payouts")
    def send_payouts(self, request, queryset):
        payouts = list(queryset.filter(status=PayoutStatus.PENDING))
        results = PayoutProcessor.process_payouts(payouts)
        succeeded = sum(1 for result in results if result.success)
        self.message_user(
            request,
            f"Sent {succeeded} of {len(results)} payouts.",
        )

    @admin.action(description="Retry selected failed payouts")
    def retry_payouts(self, request, queryset):
        count = 0
        for payout in queryset.filter(status=PayoutStatus.FAILED):
            PayoutProcessor.retry_payout(payout)
            count += 1
        self.message_user(request, f"Reset {count} payouts to pending.")

    @admin.action(description="Mark selected processing payouts as completed")
    def mark_completed(self, request, queryset):
        count = 0
        for payout in queryset.filter(status=PayoutStatus.PROCESSING):
            try:
                PayoutProcessor.mark_payout_completed(payout)
            except BaseApplicationError as e:
                self.message_user(request, f"{payout.reference}: {e.message}", level="error")
                continue
            count += 1
        self.message_user(request, f"Marked {count} payouts as completed.")

    @admin.action(description="Repair missing ledger withdrawals")
    def repair_missing_withdrawals(self, request, queryset):
        report = UnifiedBankingService.repair_missing_withdrawals(created_by=_actor(request))
        self.message_user(
            request,
            f"Repaired {report.repaired_count} withdrawals, {len(report.failed)} failed.",
        )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payouts (audit trail)."""
        return False


@admin.register(PerkRedemption)
class PerkRedemptionAdmin(admin.ModelAdmin):
    list_display = [
        "collector_identifier",
        "perk_type",
        "product_key",
        "redemption_status",
        "unlocked_at",
        "fulfilled_at",
    ]
    list_filter = ["perk_type", "redemption_status"]
    search_fields = ["collector_identifier", "product_key"]
    readonly_fields = [
        "id",
        "redemption_status",
        "unlocked_at",
        "credits_earned_at_unlock",
        "fulfilled_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    actions = ["fulfill_redemptions", "cancel_redemptions"]

    @admin.action(description="Mark selected redemptions as fulfilled")
    def fulfill_redemptions(self, request, queryset):
        count = 0
        for redemption in queryset.filter(redemption_status=RedemptionStatus.PENDING):
            PerkRedemptionEngine.fulfill_redemption(redemption.id)
            count += 1
        self.message_user(request, f"Fulfilled {count} redemptions.")

    @admin.action(description="Cancel selected redemptions")
    def cancel_redemptions(self, request, queryset):
        count = 0
        for redemption in queryset.filter(redemption_status=RedemptionStatus.PENDING):
            PerkRedemptionEngine.cancel_redemption(redemption.id, reason=f"Cancelled by {_actor(request)}")
            count += 1
        self.message_user(request, f"Cancelled {count} redemptions.")

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
