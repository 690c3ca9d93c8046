"""
Factory Boy factories for banking test data.

This module provides factories for creating test instances of banking models.
Ledger entries are normally written through the recorders; LedgerEntryFactory
exists for model-level tests only.

Usage:
    from banking.tests.factories import (
        VendorFactory,
        OrderLineItemFactory,
        VendorPayoutFactory,
    )

    # Vendor paid through PayPal
    vendor = VendorFactory(vendor_name="Street Collector")

    # Payout already accepted by an asynchronous rail
    payout = VendorPayoutFactory(vendor=vendor, status=PayoutStatus.PROCESSING)
"""

from decimal import Decimal

import factory
from django.utils import timezone

from banking.ledger import Currency, LedgerEntry, TransactionType
from banking.models import (
    CreditSubscription,
    ExchangeRate,
    FulfillmentStatus,
    OrderLineItem,
    PaymentMethod,
    PerkRedemption,
    PerkType,
    ProductPayoutRule,
    Vendor,
    VendorPayout,
    VendorPayoutItem,
)


class UserFactory(factory.django.DjangoModelFactory):
    """
    Factory for Django auth users.

    Pass is_staff=True for an admin allowed on the payout console.
    """

    class Meta:
        model = "auth.User"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    is_active = True


class VendorFactory(factory.django.DjangoModelFactory):
    """
    Factory for Vendor instances.

    Default vendor has a PayPal email and no Stripe account.

    Example:
        # Stripe-ready vendor
        vendor = VendorFactory(
            stripe_account_id="acct_123",
            stripe_onboarding_complete=True,
        )
    """

    class Meta:
        model = Vendor
        skip_postgeneration_save = True

    vendor_name = factory.Sequence(lambda n: f"Vendor {n}")
    contact_email = factory.Sequence(lambda n: f"vendor{n}@example.com")
    paypal_email = factory.Sequence(lambda n: f"paypal{n}@example.com")
    is_active = True


class ProductPayoutRuleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ProductPayoutRule
        skip_postgeneration_save = True

    vendor = factory.SubFactory(VendorFactory)
    product_id = factory.Sequence(lambda n: f"prod_{n}")
    payout_amount = Decimal("50.00")
    is_percentage = True


class ExchangeRateFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ExchangeRate
        skip_postgeneration_save = True

    from_currency = "GBP"
    to_currency = "USD"
    rate = Decimal("1.250000")


class OrderLineItemFactory(factory.django.DjangoModelFactory):
    """
    Factory for OrderLineItem instances.

    Default line item is fulfilled, active and priced at $40.
    """

    class Meta:
        model = OrderLineItem
        skip_postgeneration_save = True

    line_item_id = factory.Sequence(lambda n: f"li_{n}")
    order_id = factory.Sequence(lambda n: f"ord_{n}")
    order_name = factory.Sequence(lambda n: f"#{1000 + n}")
    vendor_name = factory.Sequence(lambda n: f"Vendor {n}")
    product_id = factory.Sequence(lambda n: f"prod_{n}")
    customer_identifier = "collector@example.com"
    price = Decimal("40.00")
    currency = "USD"
    fulfillment_status = FulfillmentStatus.FULFILLED


class CreditSubscriptionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CreditSubscription
        skip_postgeneration_save = True

    subscription_id = factory.Sequence(lambda n: f"sub_{n}")
    collector_identifier = "collector@example.com"
    monthly_credits = 100


class LedgerEntryFactory(factory.django.DjangoModelFactory):
    """Factory for LedgerEntry instances (creation only; entries are immutable)."""

    class Meta:
        model = LedgerEntry
        skip_postgeneration_save = True

    collector_identifier = "collector@example.com"
    transaction_type = TransactionType.CREDIT_EARNED
    amount = Decimal("400.00")
    currency = Currency.CREDITS
    description = factory.Faker("sentence")
    metadata = factory.LazyFunction(dict)


class VendorPayoutFactory(factory.django.DjangoModelFactory):
    """
    Factory for VendorPayout instances.

    Default creates a PENDING PayPal payout for $103. Status is FSM-protected,
    so it can only be chosen at creation time.
    """

    class Meta:
        model = VendorPayout
        skip_postgeneration_save = True

    vendor = factory.SubFactory(VendorFactory)
    vendor_name = factory.LazyAttribute(lambda o: o.vendor.vendor_name)
    amount = Decimal("103.00")
    payment_method = PaymentMethod.PAYPAL
    reference = factory.Sequence(lambda n: f"PAYOUT-TEST-{n:06d}")
    invoice_number = factory.Sequence(lambda n: f"INV-TEST-{n:06d}")
    metadata = factory.LazyFunction(dict)


class VendorPayoutItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = VendorPayoutItem
        skip_postgeneration_save = True

    payout = factory.SubFactory(VendorPayoutFactory)
    line_item_id = factory.Sequence(lambda n: f"li_paid_{n}")
    order_id = factory.Sequence(lambda n: f"ord_paid_{n}")
    amount = Decimal("10.00")


class PerkRedemptionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PerkRedemption
        skip_postgeneration_save = True

    collector_identifier = "collector@example.com"
    perk_type = PerkType.PROOF_PRINT
    product_key = ""
    unlocked_at = factory.LazyFunction(timezone.now)
    credits_earned_at_unlock = Decimal("240.00")
    metadata = factory.LazyFunction(dict)
