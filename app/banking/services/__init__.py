"""
Banking services.

- UnifiedBankingService: balances, vendor overview, integrity check
- PayoutProcessor: vendor payout batches through external rails
- PayoutValidator: admin pre-flight checks
- PayoutCalculator: pending line items and what a vendor is owed
- PerkRedemptionEngine: perk unlocks and redemptions
- FulfillmentHandler: fulfillment events into ledger earnings
"""

from .banking_service import (
    IntegrityDrift,
    IntegrityReport,
    RepairReport,
    UnifiedBankingService,
    VendorBalance,
)
from .fulfillment import FulfillmentEvent, FulfillmentHandler, FulfillmentResult
from .payout_calculator import LineItemPayout, OrderPayout, PayoutCalculator, VendorPayoutSummary
from .payout_processor import (
    MarkPaidResult,
    PayoutBatch,
    PayoutCandidate,
    PayoutItemResult,
    PayoutOptions,
    PayoutProcessor,
    SyncReport,
)
from .payout_validator import PayoutValidator, ValidationResult
from .perks import PerkProgress, PerkRedemptionEngine, perk_threshold

__all__ = [
    "FulfillmentEvent",
    "FulfillmentHandler",
    "FulfillmentResult",
    "IntegrityDrift",
    "IntegrityReport",
    "LineItemPayout",
    "MarkPaidResult",
    "OrderPayout",
    "PayoutBatch",
    "PayoutCalculator",
    "PayoutCandidate",
    "PayoutItemResult",
    "PayoutOptions",
    "PayoutProcessor",
    "PayoutValidator",
    "PerkProgress",
    "PerkRedemptionEngine",
    "RepairReport",
    "SyncReport",
    "UnifiedBankingService",
    "ValidationResult",
    "VendorBalance",
    "VendorPayoutSummary",
    "perk_threshold",
]
