"""
Ledger store: the only code that writes collector accounts and ledger entries.

Usage:
    from banking.ledger.store import ledger_store
    from banking.ledger.types import RecordEntryParams

    account = ledger_store.ensure_account("cust_123", AccountType.CUSTOMER)

    entry = ledger_store.record_entry(RecordEntryParams(
        collector_identifier="cust_123",
        transaction_type=TransactionType.CREDIT_EARNED,
        amount=400,
        currency=Currency.CREDITS,
        dedup_key="cust_123:credit_earned:li_1:CREDITS",
    ))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import DatabaseError, IntegrityError, transaction

from core.exceptions import NotFoundError

from banking.exceptions import (
    DuplicateTransaction,
    InactiveAccountError,
    LedgerWriteError,
)

from .models import AccountStatus, AccountType, CollectorAccount, LedgerEntry

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from banking.models import Vendor

    from .types import RecordEntryParams

logger = logging.getLogger(__name__)


class LedgerStore:
    """
    Persistence operations for the ledger.

    Entries are append-only: the store creates rows and never updates or
    deletes them. A dedup key is enforced by a unique index, so two
    concurrent deliveries of the same event record one entry between them.

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def ensure_account(
        collector_identifier: str,
        account_type: AccountType | str,
        vendor: Vendor | None = None,
    ) -> CollectorAccount:
        """
        Get the collector account, creating it on first use.

        Safe under concurrent first events for the same identifier: a lost
        insert race falls back to reading the winner's row.

        Args:
            collector_identifier: Stable key of the customer or vendor
            account_type: customer or vendor
            vendor: Vendor directory entry for vendor accounts

        Returns:
            The existing or newly created CollectorAccount
        """
        defaults = {"account_type": account_type, "vendor": vendor}
        try:
            with transaction.atomic():
                account, created = CollectorAccount.objects.get_or_create(
                    collector_identifier=collector_identifier,
                    defaults=defaults,
                )
        except IntegrityError:
            account = CollectorAccount.objects.get(collector_identifier=collector_identifier)
            created = False

        if created:
            logger.info(
                "Created collector account",
                extra={
                    "collector_identifier": collector_identifier,
                    "account_type": str(account_type),
                },
            )
        elif vendor is not None and account.vendor_id is None:
            account.vendor = vendor
            account.save(update_fields=["vendor", "updated_at"])
        return account

    @staticmethod
    def get_account(collector_identifier: str) -> CollectorAccount:
        """
        Get a collector account by identifier.

        Raises:
            NotFoundError: If no account exists for the identifier
        """
        try:
            return CollectorAccount.objects.get(collector_identifier=collector_identifier)
        except CollectorAccount.DoesNotExist:
            raise NotFoundError(
                f"Collector account {collector_identifier} not found",
                error_code="ACCOUNT_NOT_FOUND",
                details={"collector_identifier": collector_identifier},
            )

    @staticmethod
    def deactivate_account(collector_identifier: str) -> CollectorAccount:
        """Stop new entries for the collector. History is kept."""
        account = LedgerStore.get_account(collector_identifier)
        if account.account_status != AccountStatus.INACTIVE:
            account.deactivate()
            logger.info(
                "Deactivated collector account",
                extra={"collector_identifier": collector_identifier},
            )
        return account

    @staticmethod
    def reactivate_account(collector_identifier: str) -> CollectorAccount:
        account = LedgerStore.get_account(collector_identifier)
        if account.account_status != AccountStatus.ACTIVE:
            account.reactivate()
            logger.info(
                "Reactivated collector account",
                extra={"collector_identifier": collector_identifier},
            )
        return account

    @staticmethod
    def record_entry(params: RecordEntryParams) -> LedgerEntry:
        """
        Append one entry to the ledger.

        The insert runs in a savepoint so a dedup collision leaves the
        caller's surrounding transaction usable.

        Args:
            params: Validated entry parameters

        Returns:
            The newly created LedgerEntry

        Raises:
            InactiveAccountError: If the collector account is deactivated
            DuplicateTransaction: If params.dedup_key was already recorded
            LedgerWriteError: If the database rejects the write
        """
        status = (
            CollectorAccount.objects.filter(collector_identifier=params.collector_identifier)
            .values_list("account_status", flat=True)
            .first()
        )
        if status == AccountStatus.INACTIVE:
            raise InactiveAccountError(
                f"Collector account {params.collector_identifier} is inactive",
                details={"collector_identifier": params.collector_identifier},
            )

        try:
            with transaction.atomic():
                entry = LedgerEntry.objects.create(
                    collector_identifier=params.collector_identifier,
                    transaction_type=params.transaction_type,
                    amount=params.amount,
                    currency=params.currency,
                    order_id=params.order_id,
                    line_item_id=params.line_item_id,
                    subscription_id=params.subscription_id,
                    purchase_id=params.purchase_id,
                    payout_id=params.payout_id,
                    description=params.description,
                    metadata=params.metadata or {},
                    tax_year=params.tax_year,
                    created_by=params.created_by,
                    dedup_key=params.dedup_key,
                )
        except IntegrityError as e:
            existing = None
            if params.dedup_key:
                existing = LedgerEntry.objects.filter(dedup_key=params.dedup_key).first()
            if existing is not None:
                raise DuplicateTransaction(params.dedup_key, existing)
            raise LedgerWriteError(
                f"Failed to record {params.transaction_type} for {params.collector_identifier}",
                details={
                    "collector_identifier": params.collector_identifier,
                    "amount": str(params.amount),
                    "currency": params.currency,
                    "cause": str(e),
                },
            ) from e
        except DatabaseError as e:
            logger.error(
                "Ledger write failed",
                extra={
                    "collector_identifier": params.collector_identifier,
                    "transaction_type": params.transaction_type,
                    "amount": str(params.amount),
                    "currency": params.currency,
                },
                exc_info=True,
            )
            raise LedgerWriteError(
                f"Failed to record {params.transaction_type} for {params.collector_identifier}",
                details={
                    "collector_identifier": params.collector_identifier,
                    "amount": str(params.amount),
                    "currency": params.currency,
                },
            ) from e

        logger.info(
            "Recorded ledger entry",
            extra={
                "entry_id": str(entry.id),
                "collector_identifier": entry.collector_identifier,
                "transaction_type": entry.transaction_type,
                "amount": str(entry.amount),
                "currency": entry.currency,
            },
        )
        return entry

    @staticmethod
    def find_entry(dedup_key: str) -> LedgerEntry | None:
        return LedgerEntry.objects.filter(dedup_key=dedup_key).first()

    @staticmethod
    def entries_for(
        collector_identifier: str,
        currency: str | None = None,
        transaction_type: str | None = None,
    ) -> QuerySet[LedgerEntry]:
        """Entries of a collector, newest first, optionally narrowed."""
        entries = LedgerEntry.objects.filter(collector_identifier=collector_identifier)
        if currency:
            entries = entries.filter(currency=currency)
        if transaction_type:
            entries = entries.filter(transaction_type=transaction_type)
        return entries.order_by("-created_at")


# Singleton instance for convenience
ledger_store = LedgerStore()
