"""
Django admin configuration for ledger models.

Key features:
- LedgerEntry is immutable (no add/edit/delete permissions)
- Balances displayed on the CollectorAccount list view
- Accounts are deactivated, never deleted
"""

from django.contrib import admin

from .balance import BalanceCalculator
from .models import AccountStatus, CollectorAccount, LedgerEntry
from .store import LedgerStore


@admin.register(CollectorAccount)
class CollectorAccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for CollectorAccount.

    Balances are computed from the ledger on every render.
    """

    list_display = [
        "collector_identifier",
        "account_type",
        "account_status",
        "credits_display",
        "usd_display",
        "created_at",
    ]
    list_filter = ["account_type", "account_status"]
    search_fields = ["collector_identifier", "vendor__vendor_name"]
    readonly_fields = ["id", "collector_identifier", "created_at", "updated_at", "usd_display"]
    ordering = ["-created_at"]
    actions = ["deactivate_accounts", "reactivate_accounts"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "collector_identifier", "account_type", "vendor"),
            },
        ),
        (
            "Status",
            {
                "fields": ("account_status",),
            },
        ),
        (
            "Balance",
            {
                "fields": ("usd_display",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def credits_display(self, obj: CollectorAccount) -> str:
        balance = BalanceCalculator.calculate_balance(obj.collector_identifier)
        return f"{balance.balance} credits"

    credits_display.short_description = "Credits"

    def usd_display(self, obj: CollectorAccount) -> str:
        usd = BalanceCalculator.calculate_unified_balance(obj.collector_identifier).usd_balance
        return f"${usd:.2f}"

    usd_display.short_description = "USD"

    @admin.action(description="Deactivate selected accounts")
    def deactivate_accounts(self, request, queryset):
        count = 0
        for account in queryset.filter(account_status=AccountStatus.ACTIVE):
            LedgerStore.deactivate_account(account.collector_identifier)
            count += 1
        self.message_user(request, f"Deactivated {count} accounts.")

    @admin.action(description="Reactivate selected accounts")
    def reactivate_accounts(self, request, queryset):
        count = 0
        for account in queryset.filter(account_status=AccountStatus.INACTIVE):
            LedgerStore.reactivate_account(account.collector_identifier)
            count += 1
        self.message_user(request, f"Reactivated {count} accounts.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for accounts (audit trail)."""
        return False


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    """
    Admin configuration for LedgerEntry.

    Ledger entries are immutable - they cannot be edited or deleted
    through the admin interface. Corrections are recorded as adjustment
    entries through the adjustments endpoint.
    """

    list_display = [
        "id",
        "created_at",
        "collector_identifier",
        "transaction_type",
        "amount",
        "currency",
        "created_by",
    ]
    list_filter = ["transaction_type", "currency", "created_at"]
    search_fields = [
        "id",
        "collector_identifier",
        "order_id",
        "line_item_id",
        "payout_id",
        "dedup_key",
        "description",
    ]
    readonly_fields = [
        "id",
        "collector_identifier",
        "transaction_type",
        "amount",
        "currency",
        "order_id",
        "line_item_id",
        "subscription_id",
        "purchase_id",
        "payout_id",
        "description",
        "metadata",
        "tax_year",
        "created_at",
        "created_by",
        "dedup_key",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "collector_identifier", "transaction_type"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "currency", "tax_year"),
            },
        ),
        (
            "References",
            {
                "fields": (
                    "order_id",
                    "line_item_id",
                    "subscription_id",
                    "purchase_id",
                    "payout_id",
                    "dedup_key",
                ),
            },
        ),
        (
            "Details",
            {
                "fields": ("description", "metadata", "created_by", "created_at"),
            },
        ),
    )

    def has_add_permission(self, request) -> bool:
        """Entries are recorded by the recorders only."""
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        """Entries are immutable."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Entries are immutable."""
        return False
