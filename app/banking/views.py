"""
API views for the banking app.

Endpoints:
    GET  /api/v1/banking/balances/{identifier}/ - Unified balance (owner or staff)
    GET  /api/v1/banking/vendors/balances/      - All vendor balances (admin)
    POST /api/v1/banking/payouts/process/       - Admin payout console batch (admin)
    POST /api/v1/banking/payouts/validate/      - Payout pre-flight checks (admin)
    POST /api/v1/banking/payouts/mark-paid/     - Mark line items paid by hand (admin)
    POST /api/v1/banking/payouts/mark-month-paid/ - Mark a vendor's month paid (admin)
    GET  /api/v1/banking/vendors/{name}/payouts/pending/    - Pending payout (admin)
    GET  /api/v1/banking/vendors/{name}/line-items/pending/ - Unpaid line items (admin)
    GET  /api/v1/banking/integrity/             - Platform integrity report (admin)
    POST /api/v1/banking/adjustments/           - Manual ledger adjustment (admin)
    POST /api/v1/banking/fulfillment/           - Fulfillment event intake (admin/service)
    GET  /api/v1/banking/perks/{identifier}/    - Perk unlock status (owner or staff)
    POST /api/v1/banking/perks/redeem/          - Redeem a perk (owner or staff)

Design Decisions:
    - Views only parse input and render output; the services do the work
    - Domain errors render as BaseApplicationError.to_dict() with the
      error's own status code
    - The payout batch endpoint answers 200 whenever the request is well
      formed; failed vendors are reported per item
    - Balances and perks are visible to their collector and to staff only
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from banking.permissions import IsCollectorOrStaff
from banking.serializers import (
    AdjustmentRequestSerializer,
    FulfillmentEventSerializer,
    MarkMonthPaidRequestSerializer,
    MarkPaidRequestSerializer,
    PayoutBatchRequestSerializer,
    PayoutItemResultSerializer,
    PayoutValidationRequestSerializer,
    PerkRedeemRequestSerializer,
    PerkRedemptionSerializer,
    UnifiedBalanceSerializer,
    ValidationResultSerializer,
    VendorBalanceSerializer,
)
from banking.services import (
    FulfillmentHandler,
    PayoutCalculator,
    PayoutProcessor,
    PayoutValidator,
    PerkRedemptionEngine,
    UnifiedBankingService,
)

logger = logging.getLogger(__name__)


def error_response(exc: BaseApplicationError) -> Response:
    return Response(exc.to_dict(), status=exc.status_code)


def actor(request) -> str:
    """Identifier recorded as created_by for admin actions."""
    user = request.user
    return getattr(user, "email", "") or user.get_username()


class BalanceView(APIView):
    """GET /api/v1/banking/balances/{identifier}/"""

    permission_classes = [IsCollectorOrStaff]

    @extend_schema(
        operation_id="get_unified_balance",
        summary="Unified balance",
        description="CREDITS and USD balances derived from the ledger.",
        responses={200: UnifiedBalanceSerializer},
        tags=["Banking - Balances"],
    )
    def get(self, request, identifier: str):
        self.check_object_permissions(request, identifier)
        balance = UnifiedBankingService.get_balance(identifier)
        return Response(UnifiedBalanceSerializer(balance).data)


class VendorBalancesView(APIView):
    """GET /api/v1/banking/vendors/balances/?include_inactive=true"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_vendor_balances",
        summary="All vendor balances",
        description="Vendors sorted by withdrawable USD balance, highest first.",
        responses={200: VendorBalanceSerializer(many=True)},
        tags=["Banking - Payouts"],
    )
    def get(self, request):
        include_inactive = request.query_params.get("include_inactive", "").lower() == "true"
        balances = UnifiedBankingService.get_all_vendor_balances(include_inactive=include_inactive)
        return Response(VendorBalanceSerializer(balances, many=True).data)


class ProcessPayoutsView(APIView):
    """
    Admin payout console.

    POST /api/v1/banking/payouts/process/

    Request body:
        {
            "candidates": [{"vendor_name": "...", "amount": "103.00", "line_item_ids": ["li_1"]}],
            "payment_method": "paypal",
            "generate_invoices": true,
            "notes": "June payouts"
        }
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="process_vendor_payouts",
        summary="Process a vendor payout batch",
        request=PayoutBatchRequestSerializer,
        responses={
            200: OpenApiResponse(
                response=PayoutItemResultSerializer(many=True),
                description="Per-vendor results; failed vendors have success=false",
            ),
            400: OpenApiResponse(description="Malformed request"),
        },
        tags=["Banking - Payouts"],
    )
    def post(self, request):
        serializer = PayoutBatchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            results = PayoutProcessor.submit_batch(
                candidates=serializer.to_candidates(),
                options=serializer.to_options(),
                processed_by=actor(request),
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            {
                "results": PayoutItemResultSerializer(results, many=True).data,
                "succeeded": sum(1 for result in results if result.success),
                "failed": sum(1 for result in results if not result.success),
            }
        )


class ValidatePayoutView(APIView):
    """POST /api/v1/banking/payouts/validate/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="validate_vendor_payout",
        summary="Pre-flight checks for a payout",
        request=PayoutValidationRequestSerializer,
        responses={200: ValidationResultSerializer},
        tags=["Banking - Payouts"],
    )
    def post(self, request):
        serializer = PayoutValidationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PayoutValidator.validate_payout(
            line_item_ids=data["line_item_ids"],
            order_ids=data["order_ids"],
            vendor_name=data["vendor_name"] or None,
            check_duplicates=data["check_duplicates"],
            check_fulfillment_status=data["check_fulfillment_status"],
        )
        return Response(result.to_dict())


class PendingPayoutView(APIView):
    """
    What a vendor is owed for fulfilled line items, by order.

    GET /api/v1/banking/vendors/{vendor_name}/payouts/pending/
        ?order_id=...      restrict to one order
        ?include_paid=true list paid line items too
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="calculate_vendor_payout",
        summary="Pending payout for a vendor",
        responses={
            200: OpenApiResponse(description="Payout summary by order"),
            404: OpenApiResponse(description="Vendor not found"),
        },
        tags=["Banking - Payouts"],
    )
    def get(self, request, vendor_name: str):
        include_paid = request.query_params.get("include_paid", "").lower() in ("1", "true", "yes")
        try:
            summary = PayoutCalculator.calculate_vendor_payout(
                vendor_name,
                order_id=request.query_params.get("order_id") or None,
                include_paid=include_paid,
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(summary.to_dict())


class PendingLineItemsView(APIView):
    """GET /api/v1/banking/vendors/{vendor_name}/line-items/pending/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_pending_line_items",
        summary="Fulfilled line items not yet paid",
        tags=["Banking - Payouts"],
    )
    def get(self, request, vendor_name: str):
        try:
            items = PayoutCalculator.get_pending_line_items(vendor_name)
        except BaseApplicationError as e:
            return error_response(e)
        return Response([item.to_dict() for item in items])


class MarkPaidView(APIView):
    """
    Mark line items as paid outside the payout rails.

    POST /api/v1/banking/payouts/mark-paid/
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="mark_line_items_paid",
        summary="Mark line items as paid",
        request=MarkPaidRequestSerializer,
        responses={
            200: OpenApiResponse(description="Line items marked paid"),
            400: OpenApiResponse(description="Validation failed or items already paid"),
        },
        tags=["Banking - Payouts"],
    )
    def post(self, request):
        serializer = MarkPaidRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = PayoutProcessor.mark_line_items_paid(
                line_item_ids=data["line_item_ids"],
                order_ids=data["order_ids"],
                vendor_name=data["vendor_name"] or None,
                marked_by=actor(request),
                payout_reference=data["payout_reference"],
                create_payout_record=data["create_payout_record"],
                skip_validation=data["skip_validation"],
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(result.to_dict())


class MarkMonthPaidView(APIView):
    """POST /api/v1/banking/payouts/mark-month-paid/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="mark_month_paid",
        summary="Mark a vendor's month as paid",
        request=MarkMonthPaidRequestSerializer,
        responses={
            200: OpenApiResponse(description="Line items marked paid"),
            400: OpenApiResponse(description="Nothing left to pay for the month"),
            404: OpenApiResponse(description="Vendor not found"),
        },
        tags=["Banking - Payouts"],
    )
    def post(self, request):
        serializer = MarkMonthPaidRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = PayoutProcessor.mark_month_paid(
                vendor_name=data["vendor_name"],
                year=data["year"],
                month=data["month"],
                marked_by=actor(request),
                payout_reference=data["payout_reference"],
                create_payout_record=data["create_payout_record"],
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(result.to_dict())


class IntegrityView(APIView):
    """GET /api/v1/banking/integrity/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="verify_platform_integrity",
        summary="Platform integrity report",
        description=(
            "Reconciles completed payouts against payout_withdrawal ledger entries. "
            "Read-only."
        ),
        tags=["Banking - Integrity"],
    )
    def get(self, request):
        report = UnifiedBankingService.verify_platform_integrity()
        return Response(report.to_dict())


class AdjustmentView(APIView):
    """POST /api/v1/banking/adjustments/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="record_adjustment",
        summary="Manual ledger adjustment",
        request=AdjustmentRequestSerializer,
        responses={
            201: OpenApiResponse(description="Adjustment recorded"),
            400: OpenApiResponse(description="Invalid adjustment"),
            404: OpenApiResponse(description="Reversed entry not found"),
        },
        tags=["Banking - Balances"],
    )
    def post(self, request):
        serializer = AdjustmentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = UnifiedBankingService.record_adjustment(
                collector_identifier=data["collector_identifier"],
                amount=data["amount"],
                currency=data["currency"],
                reason=data["reason"],
                created_by=actor(request),
                account_type=data["account_type"],
                reverses_entry_id=data.get("reverses_entry_id"),
                order_id=data.get("order_id"),
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            {
                "entry_id": result.entry_id,
                "amount_adjusted": str(result.amount_adjusted),
                "new_balance": str(result.new_balance),
                "currency": result.currency,
            },
            status=status.HTTP_201_CREATED,
        )


class FulfillmentView(APIView):
    """
    Fulfillment event intake.

    POST /api/v1/banking/fulfillment/

    Replays are safe; both earnings are idempotent on the line item.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="record_fulfillment",
        summary="Record earnings for a fulfilled line item",
        request=FulfillmentEventSerializer,
        tags=["Banking - Fulfillment"],
    )
    def post(self, request):
        serializer = FulfillmentEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = FulfillmentHandler.handle_line_item_fulfilled(serializer.to_event())
        except BaseApplicationError as e:
            return error_response(e)

        return Response(result.to_dict())


class PerkStatusView(APIView):
    """GET /api/v1/banking/perks/{identifier}/"""

    permission_classes = [IsCollectorOrStaff]

    @extend_schema(
        operation_id="get_perk_status",
        summary="Perk unlock progress",
        tags=["Banking - Perks"],
    )
    def get(self, request, identifier: str):
        self.check_object_permissions(request, identifier)
        status_by_perk = PerkRedemptionEngine.check_perk_unlock_status(identifier)
        return Response({perk: progress.to_dict() for perk, progress in status_by_perk.items()})


class RedeemPerkView(APIView):
    """POST /api/v1/banking/perks/redeem/"""

    permission_classes = [IsCollectorOrStaff]

    @extend_schema(
        operation_id="redeem_perk",
        summary="Redeem an unlocked perk",
        request=PerkRedeemRequestSerializer,
        responses={
            201: PerkRedemptionSerializer,
            403: OpenApiResponse(description="Perk not unlocked"),
            409: OpenApiResponse(description="Perk already has a pending redemption"),
        },
        tags=["Banking - Perks"],
    )
    def post(self, request):
        serializer = PerkRedeemRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.check_object_permissions(request, serializer.validated_data["collector_identifier"])

        try:
            redemption = PerkRedemptionEngine.redeem_perk(**serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PerkRedemptionSerializer(redemption).data, status=status.HTTP_201_CREATED)
