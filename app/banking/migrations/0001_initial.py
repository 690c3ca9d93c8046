"""
Initial banking schema.

Tables:
    - Vendor, ProductPayoutRule, ExchangeRate: vendor directory and payout rules
    - CollectorAccount, LedgerEntry: the ledger (no balance column anywhere)
    - OrderLineItem, CreditSubscription: storefront mirror
    - VendorPayout, VendorPayoutItem: payout workflow
    - PerkRedemption: unlocked perks
"""

import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


def uuid_pk():
    return models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
        primary_key=True,
        serialize=False,
    )


def created_at():
    return models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )


def updated_at():
    return models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )


def metadata():
    return models.JSONField(
        blank=True,
        default=dict,
        help_text="Flexible key-value metadata storage",
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        # =====================================================================
        # Vendor directory
        # =====================================================================
        migrations.CreateModel(
            name="Vendor",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "vendor_name",
                    models.CharField(
                        help_text="Vendor name as it appears on storefront line items",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "auth_id",
                    models.CharField(
                        blank=True,
                        help_text="Login identity of the vendor",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "ledger_identifier",
                    models.CharField(
                        editable=False,
                        help_text="Collector identifier of the vendor's ledger entries, fixed on first save",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "contact_email",
                    models.EmailField(
                        blank=True,
                        default="",
                        help_text="Where payout notifications are sent",
                        max_length=254,
                    ),
                ),
                (
                    "paypal_email",
                    models.EmailField(
                        blank=True,
                        default="",
                        help_text="PayPal payee address",
                        max_length=254,
                    ),
                ),
                (
                    "stripe_account_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stripe Connected Account ID (acct_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "stripe_onboarding_complete",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the connected account can receive transfers",
                    ),
                ),
                (
                    "default_payout_percentage",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Vendor-wide payout percentage; platform default when empty",
                        max_digits=5,
                        null=True,
                    ),
                ),
                (
                    "tax_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Tax identification number (pass-through for invoices)",
                        max_length=64,
                    ),
                ),
                (
                    "tax_country",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="ISO 3166 country code for tax reporting",
                        max_length=2,
                    ),
                ),
                (
                    "is_company",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the vendor invoices as a company",
                    ),
                ),
                (
                    "address",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Postal address printed on invoices",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Inactive vendors are excluded from payout batches",
                    ),
                ),
            ],
            options={
                "ordering": ["vendor_name"],
            },
        ),
        migrations.CreateModel(
            name="ProductPayoutRule",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "product_id",
                    models.CharField(
                        help_text="Storefront product ID",
                        max_length=255,
                    ),
                ),
                (
                    "payout_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Percentage or flat USD amount, depending on is_percentage",
                        max_digits=10,
                    ),
                ),
                (
                    "is_percentage",
                    models.BooleanField(
                        default=True,
                        help_text="Whether payout_amount is a percentage",
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        help_text="Vendor the product belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payout_rules",
                        to="banking.vendor",
                    ),
                ),
            ],
            options={
                "ordering": ["vendor", "product_id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("vendor", "product_id"),
                        name="unique_payout_rule_per_product",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("payout_amount__gte", 0)),
                        name="payout_rule_amount_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ExchangeRate",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "from_currency",
                    models.CharField(
                        help_text="ISO 4217 source currency code",
                        max_length=3,
                    ),
                ),
                (
                    "to_currency",
                    models.CharField(
                        default="USD",
                        help_text="ISO 4217 target currency code",
                        max_length=3,
                    ),
                ),
                (
                    "rate",
                    models.DecimalField(
                        decimal_places=6,
                        help_text="Units of to_currency per unit of from_currency",
                        max_digits=12,
                    ),
                ),
            ],
            options={
                "ordering": ["from_currency", "to_currency"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("from_currency", "to_currency"),
                        name="unique_exchange_rate_pair",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Ledger
        # =====================================================================
        migrations.CreateModel(
            name="CollectorAccount",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "collector_identifier",
                    models.CharField(
                        help_text="Stable opaque key of the customer or vendor",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "account_type",
                    models.CharField(
                        choices=[("customer", "Customer"), ("vendor", "Vendor")],
                        help_text="Whether this account belongs to a customer or a vendor",
                        max_length=20,
                    ),
                ),
                (
                    "account_status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        db_index=True,
                        default="active",
                        help_text="Inactive accounts keep their history but accept no new entries",
                        max_length=20,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        help_text="Vendor directory entry for vendor accounts",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="collector_accounts",
                        to="banking.vendor",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["account_type", "account_status"],
                        name="collector_acct_type_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", uuid_pk()),
                (
                    "collector_identifier",
                    models.CharField(
                        db_index=True,
                        help_text="Collector this entry belongs to",
                        max_length=255,
                    ),
                ),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("credit_earned", "Credit Earned"),
                            ("subscription_credit", "Subscription Credit"),
                            ("credit_payment", "Credit Payment"),
                            ("nfc_scan_reward", "NFC Scan Reward"),
                            ("series_completion_reward", "Series Completion Reward"),
                            ("payout_earned", "Payout Earned"),
                            ("payout_withdrawal", "Payout Withdrawal"),
                            ("refund_deduction", "Refund Deduction"),
                            ("perk_redemption", "Perk Redemption"),
                            ("adjustment", "Adjustment"),
                        ],
                        help_text="Economic event this entry records",
                        max_length=50,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Signed amount; positive adds to the balance, negative subtracts",
                        max_digits=14,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        choices=[("CREDITS", "Credits"), ("USD", "US Dollars")],
                        help_text="CREDITS or USD; balances never mix currencies",
                        max_length=10,
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Storefront order this entry relates to",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "line_item_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Storefront line item this entry relates to",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "subscription_id",
                    models.CharField(
                        blank=True,
                        help_text="Credit subscription this entry relates to",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "purchase_id",
                    models.CharField(
                        blank=True,
                        help_text="Purchase paid with credits",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "payout_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Vendor payout mirrored by this entry",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Human-readable description of this entry",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Audit context only; balance math never reads it",
                    ),
                ),
                (
                    "tax_year",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Tax year the amount is reported under",
                        null=True,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this entry was recorded",
                    ),
                ),
                (
                    "created_by",
                    models.CharField(
                        default="system",
                        help_text="Service or admin that recorded this entry",
                        max_length=255,
                    ),
                ),
                (
                    "dedup_key",
                    models.CharField(
                        blank=True,
                        help_text="Natural key that makes the recording operation idempotent",
                        max_length=512,
                        null=True,
                        unique=True,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Ledger entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["collector_identifier", "currency"],
                        name="ledger_collector_currency_idx",
                    ),
                    models.Index(
                        fields=["transaction_type", "currency"],
                        name="ledger_type_currency_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="ledger_entry_amount_nonzero",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Storefront mirror
        # =====================================================================
        migrations.CreateModel(
            name="OrderLineItem",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "line_item_id",
                    models.CharField(
                        help_text="Storefront line item ID",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        db_index=True,
                        help_text="Storefront order ID",
                        max_length=255,
                    ),
                ),
                (
                    "order_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Human-readable order number (#1001)",
                        max_length=64,
                    ),
                ),
                (
                    "vendor_name",
                    models.CharField(
                        db_index=True,
                        help_text="Vendor the line item is paid out to",
                        max_length=255,
                    ),
                ),
                (
                    "product_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Storefront product ID",
                        max_length=255,
                    ),
                ),
                (
                    "customer_identifier",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Collector identifier of the buying customer",
                        max_length=255,
                    ),
                ),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Price paid, after discounts, in the line item currency",
                        max_digits=12,
                    ),
                ),
                (
                    "original_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Price before discounts, when known",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="USD",
                        help_text="ISO 4217 currency code of the price",
                        max_length=3,
                    ),
                ),
                (
                    "fulfillment_status",
                    models.CharField(
                        choices=[
                            ("unfulfilled", "Unfulfilled"),
                            ("partial", "Partially Fulfilled"),
                            ("fulfilled", "Fulfilled"),
                        ],
                        db_index=True,
                        default="unfulfilled",
                        help_text="Storefront fulfillment status",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("removed", "Removed")],
                        default="active",
                        help_text="Removed line items are never paid out",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["vendor_name", "fulfillment_status"],
                        name="line_item_vendor_fulfil_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditSubscription",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "subscription_id",
                    models.CharField(
                        help_text="External subscription ID",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "collector_identifier",
                    models.CharField(
                        db_index=True,
                        help_text="Collector receiving the monthly credits",
                        max_length=255,
                    ),
                ),
                (
                    "monthly_credits",
                    models.PositiveIntegerField(
                        help_text="Credits deposited each billing cycle",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("cancelled", "Cancelled")],
                        default="active",
                        help_text="Only active subscriptions are credited",
                        max_length=20,
                    ),
                ),
                (
                    "next_billing_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="When the next credit deposit is due",
                        null=True,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        # =====================================================================
        # Payouts
        # =====================================================================
        migrations.CreateModel(
            name="VendorPayout",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                ("metadata", metadata()),
                (
                    "vendor_name",
                    models.CharField(
                        db_index=True,
                        help_text="Vendor name at the time the payout was created",
                        max_length=255,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount sent to the vendor",
                        max_digits=14,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="USD",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "product_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Number of line items covered by this payout",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payout (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("paypal", "PayPal"),
                            ("stripe", "Stripe"),
                            ("bank_transfer", "Bank Transfer"),
                            ("manual", "Manual"),
                        ],
                        default="paypal",
                        help_text="Rail used to send the payout",
                        max_length=20,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        help_text="Payout reference shared with the rail and the vendor",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "invoice_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Invoice number for the invoice/email subsystem",
                        max_length=100,
                    ),
                ),
                (
                    "rail_batch_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Batch identifier returned by the rail",
                        max_length=255,
                    ),
                ),
                (
                    "rail_transfer_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Transfer identifier returned by the rail",
                        max_length=255,
                    ),
                ),
                (
                    "notes",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Admin notes and rail error messages",
                    ),
                ),
                (
                    "processed_by",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Admin who submitted the payout",
                        max_length=255,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the rail accepted the payout",
                        null=True,
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payout completed",
                        null=True,
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payout failed",
                        null=True,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Rail error message if the payout failed",
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        help_text="Vendor receiving the payout",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payouts",
                        to="banking.vendor",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["vendor_name", "status"],
                        name="payout_vendor_status_idx",
                    ),
                    models.Index(
                        fields=["status", "payment_method"],
                        name="payout_status_method_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="vendor_payout_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="VendorPayoutItem",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                (
                    "line_item_id",
                    models.CharField(
                        help_text="Storefront line item ID",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Storefront order ID",
                        max_length=255,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Vendor share for this line item",
                        max_digits=12,
                    ),
                ),
                (
                    "manually_marked_paid",
                    models.BooleanField(
                        default=False,
                        help_text="Whether an admin marked this item paid outside a rail",
                    ),
                ),
                (
                    "marked_by",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Admin who marked the item paid",
                        max_length=255,
                    ),
                ),
                (
                    "marked_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the item was marked paid",
                        null=True,
                    ),
                ),
                (
                    "payout_reference",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Reference of the offline payment, if any",
                        max_length=255,
                    ),
                ),
                (
                    "payout",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payout covering this line item",
                        on_delete=django.db.models.deletion.CASCADE,
                        null=True,
                        related_name="items",
                        to="banking.vendorpayout",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        # =====================================================================
        # Perks
        # =====================================================================
        migrations.CreateModel(
            name="PerkRedemption",
            fields=[
                ("id", uuid_pk()),
                ("created_at", created_at()),
                ("updated_at", updated_at()),
                ("metadata", metadata()),
                (
                    "collector_identifier",
                    models.CharField(
                        db_index=True,
                        help_text="Collector who unlocked the perk",
                        max_length=255,
                    ),
                ),
                (
                    "perk_type",
                    models.CharField(
                        choices=[("lamp", "Lamp"), ("proof_print", "Proof Print")],
                        help_text="Which perk was redeemed",
                        max_length=20,
                    ),
                ),
                (
                    "product_key",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Artwork or product the perk is issued for",
                        max_length=255,
                    ),
                ),
                (
                    "redemption_status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("fulfilled", "Fulfilled"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the redemption (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "unlocked_at",
                    models.DateTimeField(
                        help_text="When the redemption was made",
                    ),
                ),
                (
                    "credits_earned_at_unlock",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Lifetime credits earned observed when the perk was redeemed",
                        max_digits=14,
                    ),
                ),
                (
                    "fulfilled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the perk was shipped or handed over",
                        null=True,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("redemption_status", "pending")),
                        fields=("collector_identifier", "perk_type", "product_key"),
                        name="unique_pending_perk_redemption",
                    ),
                ],
            },
        ),
    ]
