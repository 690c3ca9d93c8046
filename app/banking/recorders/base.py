"""
Shared shape of the transaction recorders.

Every recorder validates its inputs, ensures the collector account exists,
appends one entry keyed by a natural dedup key and returns the new balance.
A dedup collision is not an error: the recorder returns a result with a
zero recorded amount and already_recorded=True.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from core.services import BaseService

from banking.exceptions import DuplicateTransaction
from banking.ledger import Currency, balance_calculator, ledger_store

if TYPE_CHECKING:
    import uuid

    from banking.ledger import LedgerEntry, RecordEntryParams
    from banking.models import Vendor


@dataclass(frozen=True)
class RecordResult:
    """
    Outcome of one recorder call.

    Attributes:
        entry_id: Entry recorded by this call, or the earlier entry on a duplicate
        amount_recorded: Magnitude recorded by this call (0 on a duplicate)
        new_balance: Balance in currency after the call
        currency: CREDITS or USD
        already_recorded: Whether the dedup key had been recorded before
    """

    entry_id: uuid.UUID | None
    amount_recorded: Decimal
    new_balance: Decimal
    currency: str
    already_recorded: bool = False


class BaseRecorder(BaseService):
    """Idempotent insert and balance read-back shared by all recorders."""

    @classmethod
    def _record_once(
        cls,
        params: RecordEntryParams,
        account_type: str,
        vendor: Vendor | None = None,
    ) -> tuple[LedgerEntry, bool]:
        """
        Ensure the account, then append the entry unless its dedup key exists.

        Returns:
            (entry, created) where entry is the earlier one when created is False
        """
        ledger_store.ensure_account(params.collector_identifier, account_type, vendor=vendor)
        try:
            return ledger_store.record_entry(params), True
        except DuplicateTransaction as e:
            cls.get_logger().warning(
                "Duplicate transaction skipped",
                extra={
                    "collector_identifier": params.collector_identifier,
                    "transaction_type": params.transaction_type,
                    "dedup_key": e.dedup_key,
                },
            )
            return e.existing_entry, False

    @staticmethod
    def _balance_for(collector_identifier: str, currency: str) -> Decimal:
        if currency == Currency.CREDITS:
            return balance_calculator.calculate_balance(collector_identifier).balance
        return balance_calculator.calculate_unified_balance(collector_identifier).usd_balance

    @classmethod
    def _result(
        cls,
        result_class: type[RecordResult],
        params: RecordEntryParams,
        entry: LedgerEntry | None,
        created: bool,
    ) -> RecordResult:
        return result_class(
            entry_id=entry.id if entry is not None else None,
            amount_recorded=abs(params.amount) if created else Decimal("0"),
            new_balance=cls._balance_for(params.collector_identifier, params.currency),
            currency=params.currency,
            already_recorded=not created,
        )
