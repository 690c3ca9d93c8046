"""
Ledger - append-only record of collector balances.

Every balance in the system is derived from LedgerEntry rows; nothing
stores a running total.

Public API:
    Models:
        CollectorAccount - Registry row per customer or vendor
        LedgerEntry - Immutable, signed amount in CREDITS or USD
        TransactionType, Currency, AccountType, AccountStatus - Enums

    Store:
        ledger_store - Singleton instance of LedgerStore

    Balances:
        balance_calculator - Singleton instance of BalanceCalculator

    Types:
        RecordEntryParams, CreditBalance, UnifiedBalance, build_dedup_key

Usage:
    from banking.ledger import ledger_store, balance_calculator, RecordEntryParams

    ledger_store.ensure_account("cust_123", AccountType.CUSTOMER)
    balance_calculator.calculate_balance("cust_123").balance
"""

from .balance import BalanceCalculator, balance_calculator
from .models import (
    AccountStatus,
    AccountType,
    CollectorAccount,
    Currency,
    LedgerEntry,
    TransactionType,
)
from .store import LedgerStore, ledger_store
from .types import (
    CreditBalance,
    RecordEntryParams,
    UnifiedBalance,
    build_dedup_key,
    to_decimal,
)

__all__ = [
    "AccountStatus",
    "AccountType",
    "BalanceCalculator",
    "CollectorAccount",
    "CreditBalance",
    "Currency",
    "LedgerEntry",
    "LedgerStore",
    "RecordEntryParams",
    "TransactionType",
    "UnifiedBalance",
    "balance_calculator",
    "build_dedup_key",
    "ledger_store",
    "to_decimal",
]
