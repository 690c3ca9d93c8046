"""
Banking domain models.

- CollectorAccount, LedgerEntry: ledger tables (defined in banking.ledger.models)
- Vendor, ProductPayoutRule, ExchangeRate: vendor directory and payout rules
- OrderLineItem, CreditSubscription: storefront mirror data
- VendorPayout, VendorPayoutItem: payout workflow
- PerkRedemption: unlocked perks
"""

from banking.ledger.models import (
    AccountStatus,
    AccountType,
    CollectorAccount,
    Currency,
    LedgerEntry,
    TransactionType,
)
from banking.models.order import (
    CreditSubscription,
    FulfillmentStatus,
    LineItemStatus,
    OrderLineItem,
)
from banking.models.payout import PaymentMethod, VendorPayout, VendorPayoutItem
from banking.models.perk import PerkRedemption, PerkType
from banking.models.vendor import ExchangeRate, ProductPayoutRule, Vendor

__all__ = [
    "AccountStatus",
    "AccountType",
    "CollectorAccount",
    "CreditSubscription",
    "Currency",
    "ExchangeRate",
    "FulfillmentStatus",
    "LedgerEntry",
    "LineItemStatus",
    "OrderLineItem",
    "PaymentMethod",
    "PerkRedemption",
    "PerkType",
    "ProductPayoutRule",
    "TransactionType",
    "Vendor",
    "VendorPayout",
    "VendorPayoutItem",
]
