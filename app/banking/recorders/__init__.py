"""
Transaction recorders.

Each recorder writes one kind of economic event to the ledger and is
idempotent against that event's natural key.
"""

from .adjustments import AdjustmentRecorder, AdjustmentResult
from .base import RecordResult
from .credits import CreditDepositResult, CreditRecorder, CreditSpendResult
from .payouts import (
    PayoutDepositResult,
    PayoutLedgerRecorder,
    RefundDeductionResult,
    WithdrawalResult,
)

__all__ = [
    "AdjustmentRecorder",
    "AdjustmentResult",
    "CreditDepositResult",
    "CreditRecorder",
    "CreditSpendResult",
    "PayoutDepositResult",
    "PayoutLedgerRecorder",
    "RecordResult",
    "RefundDeductionResult",
    "WithdrawalResult",
]
