"""
Manual adjustments by platform staff.

An adjustment is the only way to correct the ledger: entries are never
edited, so a mistake is offset by a new signed entry that names who made
it and why.

Usage:
    from banking.recorders.adjustments import AdjustmentRecorder

    AdjustmentRecorder.record_adjustment(
        collector_identifier="cust_123",
        amount=-50,
        currency=Currency.CREDITS,
        reason="Duplicate goodwill credit",
        created_by="admin@example.com",
        reverses_entry_id=entry.id,
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError

from banking.ledger import AccountType, LedgerEntry, RecordEntryParams, TransactionType

from .base import BaseRecorder, RecordResult

if TYPE_CHECKING:
    import uuid


@dataclass(frozen=True)
class AdjustmentResult(RecordResult):
    @property
    def amount_adjusted(self) -> Decimal:
        return self.amount_recorded


class AdjustmentRecorder(BaseRecorder):
    """Records admin corrections in either currency."""

    @classmethod
    def record_adjustment(
        cls,
        collector_identifier: str,
        amount: Any,
        currency: str,
        reason: str,
        created_by: str,
        account_type: str = AccountType.CUSTOMER,
        reverses_entry_id: uuid.UUID | str | None = None,
        order_id: str | None = None,
    ) -> AdjustmentResult:
        """
        Record a signed correction.

        Args:
            amount: Signed amount; negative removes value from the collector
            reason: Why the correction was made (stored as the description)
            created_by: Admin responsible for the correction
            account_type: Used only when the collector has no account yet
            reverses_entry_id: Entry this adjustment offsets, kept in metadata

        Raises:
            ValidationError: If created_by or reason is empty, or amount/currency is malformed
            NotFoundError: If reverses_entry_id does not name an entry of this collector
        """
        if not created_by or not str(created_by).strip():
            raise ValidationError(
                "Adjustments must be attributed to an admin",
                error_code="MISSING_CREATED_BY",
            )
        if not reason or not reason.strip():
            raise ValidationError(
                "Adjustments require a reason",
                error_code="MISSING_REASON",
            )

        metadata: dict[str, Any] = {"reason": reason}
        if reverses_entry_id:
            reversed_entry = LedgerEntry.objects.filter(
                id=reverses_entry_id,
                collector_identifier=collector_identifier,
            ).first()
            if reversed_entry is None:
                raise NotFoundError(
                    f"Entry {reverses_entry_id} not found for {collector_identifier}",
                    error_code="ENTRY_NOT_FOUND",
                    details={"entry_id": str(reverses_entry_id)},
                )
            metadata["reverses_entry_id"] = str(reversed_entry.id)
            metadata["reverses_transaction_type"] = reversed_entry.transaction_type

        params = RecordEntryParams(
            collector_identifier=collector_identifier,
            transaction_type=TransactionType.ADJUSTMENT,
            amount=amount,
            currency=currency,
            order_id=order_id,
            description=reason,
            metadata=metadata,
            tax_year=timezone.now().year,
            created_by=created_by,
        )
        entry, created = cls._record_once(params, account_type)
        cls.get_logger().info(
            "Recorded manual adjustment",
            extra={
                "collector_identifier": collector_identifier,
                "amount": str(params.amount),
                "currency": params.currency,
                "created_by": created_by,
            },
        )
        return cls._result(AdjustmentResult, params, entry, created)
