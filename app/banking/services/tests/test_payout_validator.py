"""
Tests for PayoutValidator.
"""

import pytest

from banking.models import FulfillmentStatus, LineItemStatus
from banking.services import PayoutValidator, ValidationResult
from banking.tests.factories import OrderLineItemFactory, VendorPayoutItemFactory


class TestValidationResult:
    def test_merge_collects_messages(self):
        first = ValidationResult.from_messages(["bad"], ["careful"])
        second = ValidationResult.from_messages([], ["also careful"])

        merged = first.merge(second)

        assert merged.valid is False
        assert merged.errors == ["bad"]
        assert merged.warnings == ["careful", "also careful"]

    def test_warnings_alone_are_valid(self):
        assert ValidationResult.from_messages([], ["careful"]).valid is True


class TestValidateFulfillmentStatus:
    def test_fulfilled_items_pass(self, db):
        OrderLineItemFactory(line_item_id="li_1")

        assert PayoutValidator.validate_fulfillment_status(["li_1"]).valid is True

    def test_unfulfilled_and_missing_items(self, db):
        OrderLineItemFactory(line_item_id="li_1", fulfillment_status=FulfillmentStatus.PARTIAL)

        result = PayoutValidator.validate_fulfillment_status(["li_1", "li_2"])

        assert result.valid is False
        assert result.errors == [
            "The following line items are not fulfilled: li_1",
            "The following line items were not found: li_2",
        ]

    def test_nothing_found(self, db):
        result = PayoutValidator.validate_fulfillment_status(["li_404"])

        assert result.errors == ["No line items found"]


class TestCheckDuplicatePayments:
    def test_unpaid_items_pass(self, db):
        assert PayoutValidator.check_duplicate_payments(["li_1"]).valid is True

    def test_paid_items_fail(self, db):
        VendorPayoutItemFactory(line_item_id="li_1")
        VendorPayoutItemFactory(line_item_id="li_2", manually_marked_paid=True)

        result = PayoutValidator.check_duplicate_payments(["li_1", "li_2", "li_3"])

        assert result.valid is False
        assert result.errors == ["The following line items have already been paid: li_1, li_2"]
        assert result.warnings == ["1 of these items were manually marked as paid previously"]


class TestValidatePayoutAmounts:
    @pytest.mark.parametrize(
        "item,errors,warnings",
        [
            ({"price": "40.00", "payout_amount": "10.00"}, 0, 0),
            ({"price": "40.00", "payout_amount": "-1.00"}, 1, 0),
            ({"price": "40.00", "payout_amount": "50.00"}, 0, 1),
            ({"price": "0", "payout_amount": "0"}, 0, 1),
        ],
    )
    def test_amount_checks(self, item, errors, warnings):
        result = PayoutValidator.validate_payout_amounts([item])

        assert len(result.errors) == errors
        assert len(result.warnings) == warnings


class TestEnsureDataIntegrity:
    def test_single_vendor_active_items_pass(self, db):
        OrderLineItemFactory(line_item_id="li_1", vendor_name="Street Collector")
        OrderLineItemFactory(line_item_id="li_2", vendor_name="Street Collector")

        assert PayoutValidator.ensure_data_integrity(["li_1", "li_2"]).valid is True

    def test_reports_every_problem(self, db):
        OrderLineItemFactory(line_item_id="li_1", vendor_name="Street Collector")
        OrderLineItemFactory(
            line_item_id="li_2", vendor_name="Stripe Studio", status=LineItemStatus.REMOVED
        )

        result = PayoutValidator.ensure_data_integrity(["li_1", "li_2", "li_3"])

        assert result.errors == [
            "Missing line items: li_3",
            "Inactive line items found: li_2",
            "Line items belong to different vendors: Street Collector, Stripe Studio",
        ]


class TestValidatePayout:
    """Tests for PayoutValidator.validate_payout()."""

    def test_explicit_line_items(self, db):
        OrderLineItemFactory(line_item_id="li_1")

        result = PayoutValidator.validate_payout(line_item_ids=["li_1"])

        assert result.valid is True

    def test_vendor_orders(self, db):
        OrderLineItemFactory(
            line_item_id="li_1", order_id="ord_1", vendor_name="Street Collector"
        )
        OrderLineItemFactory(
            line_item_id="li_2",
            order_id="ord_1",
            vendor_name="Street Collector",
            fulfillment_status=FulfillmentStatus.UNFULFILLED,
        )
        OrderLineItemFactory(line_item_id="li_3", order_id="ord_1", vendor_name="Someone Else")

        result = PayoutValidator.validate_payout(order_ids=["ord_1"], vendor_name="Street Collector")

        assert result.errors == ["The following line items are not fulfilled: li_2"]

    def test_checks_can_be_skipped(self, db):
        OrderLineItemFactory(line_item_id="li_1", fulfillment_status=FulfillmentStatus.UNFULFILLED)
        VendorPayoutItemFactory(line_item_id="li_1")

        result = PayoutValidator.validate_payout(
            line_item_ids=["li_1"],
            check_duplicates=False,
            check_fulfillment_status=False,
        )

        assert result.valid is True

    def test_duplicates_fail(self, db):
        OrderLineItemFactory(line_item_id="li_1")
        VendorPayoutItemFactory(line_item_id="li_1")

        result = PayoutValidator.validate_payout(line_item_ids=["li_1"])

        assert result.valid is False
        assert "already been paid" in result.errors[0]
