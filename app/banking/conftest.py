"""
Pytest fixtures shared by all banking tests.

Sections:
    - Client Fixtures: authenticated API clients
    - Directory Fixtures: vendors and line items
    - Ledger Fixtures: collectors with recorded history
    - Payout Fixtures: payouts in each state
"""

import logging
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from banking.recorders import CreditRecorder, PayoutLedgerRecorder
from banking.state_machines import PayoutStatus
from banking.tests.factories import (
    OrderLineItemFactory,
    UserFactory,
    VendorFactory,
    VendorPayoutFactory,
)

CUSTOMER = "collector@example.com"


@pytest.fixture(autouse=True)
def propagate_banking_logs(monkeypatch):
    """The banking logger does not propagate; caplog listens on the root logger."""
    monkeypatch.setattr(logging.getLogger("banking"), "propagate", True)


@pytest.fixture(autouse=True)
def real_rails(settings):
    """Tests opt into simulated rails explicitly."""
    settings.BANKING_SIMULATE_PAYOUT_RAILS = False


@pytest.fixture
def simulated_rails(settings):
    settings.BANKING_SIMULATE_PAYOUT_RAILS = True


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user(db):
    """Collector account login of the default buying customer."""
    return UserFactory(email=CUSTOMER)


@pytest.fixture
def admin_user(db):
    return UserFactory(is_staff=True, email="admin@example.com")


@pytest.fixture
def user_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def admin_client(api_client, admin_user):
    api_client.force_authenticate(user=admin_user)
    return api_client


# =============================================================================
# Directory Fixtures
# =============================================================================


@pytest.fixture
def customer():
    """Collector identifier of the default buying customer."""
    return CUSTOMER


@pytest.fixture
def vendor(db):
    """PayPal vendor on the platform default 25% payout."""
    return VendorFactory(
        vendor_name="Street Collector",
        paypal_email="artist@example.com",
    )


@pytest.fixture
def stripe_vendor(db):
    return VendorFactory(
        vendor_name="Stripe Studio",
        stripe_account_id="acct_test123",
        stripe_onboarding_complete=True,
    )


@pytest.fixture
def line_item(db, vendor):
    """Fulfilled $412 line item; the vendor's 25% share is $103."""
    return OrderLineItemFactory(
        line_item_id="li_412",
        order_id="ord_412",
        vendor_name=vendor.vendor_name,
        price=Decimal("412.00"),
    )


# =============================================================================
# Ledger Fixtures
# =============================================================================


@pytest.fixture
def vendor_with_earnings(db, vendor, line_item):
    """Vendor with $103 of withdrawable USD."""
    PayoutLedgerRecorder.deposit_payout_earnings(
        line_item_id=line_item.line_item_id,
        order_id=line_item.order_id,
        vendor_name=vendor.vendor_name,
        line_item_price=line_item.price,
    )
    return vendor


@pytest.fixture
def customer_with_credits(db, customer):
    """Customer holding 400 credits from a $40 purchase."""
    CreditRecorder.deposit_purchase_credits(
        collector_identifier=customer,
        line_item_id="li_40",
        order_id="ord_40",
        price=Decimal("40.00"),
    )
    return customer


# =============================================================================
# Payout Fixtures
# =============================================================================


@pytest.fixture
def pending_payout(db, vendor_with_earnings):
    return VendorPayoutFactory(vendor=vendor_with_earnings)


@pytest.fixture
def processing_payout(db, vendor_with_earnings):
    return VendorPayoutFactory(
        vendor=vendor_with_earnings,
        status=PayoutStatus.PROCESSING,
        rail_batch_id="PB-123",
    )


@pytest.fixture
def completed_payout(db, vendor_with_earnings):
    return VendorPayoutFactory(
        vendor=vendor_with_earnings,
        status=PayoutStatus.COMPLETED,
        payment_method="manual",
    )


@pytest.fixture
def failed_payout(db, vendor_with_earnings):
    return VendorPayoutFactory(
        vendor=vendor_with_earnings,
        status=PayoutStatus.FAILED,
        failure_reason="Receiver unregistered",
    )
