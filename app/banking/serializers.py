"""
Serializers for banking API.

Request serializers validate the shape of admin and service requests;
amount and currency rules are enforced again by the recorders. Response
serializers render service dataclasses and models.

Serializer Hierarchy:
    PayoutCandidateSerializer / PayoutBatchRequestSerializer: admin payout console
    PayoutValidationRequestSerializer: payout pre-flight checks
    AdjustmentRequestSerializer: manual ledger adjustment
    FulfillmentEventSerializer: fulfillment event intake
    PerkRedeemRequestSerializer: perk redemption

    PerkRedemptionSerializer: model output
    VendorBalanceSerializer, PayoutItemResultSerializer: service output
"""

from __future__ import annotations

from rest_framework import serializers

from banking.ledger import AccountType, Currency
from banking.models import PaymentMethod, PerkRedemption, PerkType
from banking.services import FulfillmentEvent, PayoutCandidate, PayoutOptions

# =============================================================================
# Admin payout console
# =============================================================================


class PayoutCandidateSerializer(serializers.Serializer):
    vendor_name = serializers.CharField(max_length=255)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    line_item_ids = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False,
        default=list,
    )
    product_count = serializers.IntegerField(min_value=0, required=False, allow_null=True)


class PayoutBatchRequestSerializer(serializers.Serializer):
    """
    Body of POST /api/v1/banking/payouts/process/.

    Amount sign is not checked here: a non-positive amount becomes a failed
    item in the per-vendor results instead of rejecting the whole batch.
    """

    candidates = PayoutCandidateSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        default=PaymentMethod.PAYPAL,
    )
    generate_invoices = serializers.BooleanField(default=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def to_candidates(self) -> list[PayoutCandidate]:
        return [PayoutCandidate(**candidate) for candidate in self.validated_data["candidates"]]

    def to_options(self) -> PayoutOptions:
        data = self.validated_data
        return PayoutOptions(
            payment_method=data["payment_method"],
            generate_invoices=data["generate_invoices"],
            notes=data["notes"],
        )


class PayoutItemResultSerializer(serializers.Serializer):
    vendor_name = serializers.CharField()
    success = serializers.BooleanField()
    payout_id = serializers.CharField(allow_null=True)
    reference = serializers.CharField(allow_null=True)
    status = serializers.CharField(allow_null=True)
    error = serializers.CharField(allow_null=True)
    error_code = serializers.CharField(allow_null=True)
    batch_id = serializers.CharField(allow_null=True)
    transfer_id = serializers.CharField(allow_null=True)
    ledger_recorded = serializers.BooleanField()


class PayoutValidationRequestSerializer(serializers.Serializer):
    line_item_ids = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False,
        default=list,
    )
    order_ids = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False,
        default=list,
    )
    vendor_name = serializers.CharField(required=False, allow_blank=True, default="")
    check_duplicates = serializers.BooleanField(default=True)
    check_fulfillment_status = serializers.BooleanField(default=True)

    def validate(self, attrs):
        if not attrs["line_item_ids"] and not (attrs["order_ids"] and attrs["vendor_name"]):
            raise serializers.ValidationError(
                "Provide line_item_ids, or order_ids together with vendor_name."
            )
        return attrs


class MarkPaidRequestSerializer(serializers.Serializer):
    """Body of POST /api/v1/banking/payouts/mark-paid/; marked_by is the admin."""

    line_item_ids = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False,
        default=list,
    )
    order_ids = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False,
        default=list,
    )
    vendor_name = serializers.CharField(required=False, allow_blank=True, default="")
    payout_reference = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    create_payout_record = serializers.BooleanField(default=False)
    skip_validation = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if not attrs["line_item_ids"] and not attrs["order_ids"]:
            raise serializers.ValidationError("Provide line_item_ids or order_ids.")
        if attrs["order_ids"] and not attrs["vendor_name"]:
            raise serializers.ValidationError("vendor_name is required when using order_ids.")
        return attrs


class MarkMonthPaidRequestSerializer(serializers.Serializer):
    vendor_name = serializers.CharField(max_length=255)
    year = serializers.IntegerField(min_value=2000, max_value=9999)
    month = serializers.IntegerField(min_value=1, max_value=12)
    payout_reference = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    create_payout_record = serializers.BooleanField(default=False)


class ValidationResultSerializer(serializers.Serializer):
    valid = serializers.BooleanField()
    errors = serializers.ListField(child=serializers.CharField())
    warnings = serializers.ListField(child=serializers.CharField())


class VendorBalanceSerializer(serializers.Serializer):
    vendor_name = serializers.CharField()
    collector_identifier = serializers.CharField()
    usd_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_usd_earned = serializers.DecimalField(max_digits=14, decimal_places=2)
    last_payout_at = serializers.DateTimeField(allow_null=True)
    paypal_email = serializers.CharField(allow_blank=True)
    stripe_ready = serializers.BooleanField()
    is_active = serializers.BooleanField()


# =============================================================================
# Ledger
# =============================================================================


class UnifiedBalanceSerializer(serializers.Serializer):
    credits_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    usd_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_credits_earned = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_usd_earned = serializers.DecimalField(max_digits=14, decimal_places=2)


class AdjustmentRequestSerializer(serializers.Serializer):
    """
    Body of POST /api/v1/banking/adjustments/.

    created_by is taken from the authenticated admin, never from the body.
    """

    collector_identifier = serializers.CharField(max_length=255)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    currency = serializers.ChoiceField(choices=Currency.choices)
    account_type = serializers.ChoiceField(choices=AccountType.choices, default=AccountType.CUSTOMER)
    reason = serializers.CharField(max_length=1000)
    reverses_entry_id = serializers.UUIDField(required=False, allow_null=True)
    order_id = serializers.CharField(max_length=255, required=False, allow_null=True)

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("Adjustment amount cannot be zero.")
        return value


class FulfillmentEventSerializer(serializers.Serializer):
    line_item_id = serializers.CharField(max_length=255)
    order_id = serializers.CharField(max_length=255)
    order_name = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    original_price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
        default=None,
    )
    currency = serializers.CharField(max_length=3, required=False, default="USD")
    vendor_name = serializers.CharField(max_length=255)
    product_id = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    customer_identifier = serializers.CharField(
        max_length=255,
        required=False,
        allow_blank=True,
        default="",
    )

    def to_event(self) -> FulfillmentEvent:
        return FulfillmentEvent(**self.validated_data)


# =============================================================================
# Perks
# =============================================================================


class PerkRedeemRequestSerializer(serializers.Serializer):
    collector_identifier = serializers.CharField(max_length=255)
    perk_type = serializers.ChoiceField(choices=PerkType.choices)
    product_key = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class PerkRedemptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PerkRedemption
        fields = [
            "id",
            "collector_identifier",
            "perk_type",
            "product_key",
            "redemption_status",
            "unlocked_at",
            "credits_earned_at_unlock",
            "fulfilled_at",
            "created_at",
        ]
        read_only_fields = fields
