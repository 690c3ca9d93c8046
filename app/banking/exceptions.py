"""
Banking exceptions for ledger, payout and perk operations.

All banking errors inherit from the core exception classes so API views can
render them with ``to_dict()`` and ``status_code``.

Exception Hierarchy:
    BankingError (base)
    ├── InsufficientBalance - Spend exceeds the computed balance
    ├── InactiveAccountError - Write against a deactivated collector account
    ├── ImmutableEntryError - Attempt to update or delete a ledger entry
    └── LedgerWriteError - Storage failure while recording an entry
    DuplicateTransaction (ConflictError) - Dedup key already recorded
    InvalidStateTransitionError (ConflictError) - FSM transition not allowed
    NotUnlocked (PermissionDeniedError) - Perk threshold not reached
    AlreadyRedeemed (ConflictError) - Pending redemption already exists
    PaymentMethodNotConfigured (ValidationError) - Vendor payee details missing
    ExternalRailError (ExternalServiceError) - Payment rail failure
    ├── RailTimeoutError - Rail did not answer within the bounded timeout
    ├── RailRejectedError - Rail refused the instruction
    └── RailUnavailableError - Rail unreachable or returned a server error

Malformed amounts and currencies raise core.exceptions.ValidationError.

Integrity drift is never raised; see banking.services.banking_service.IntegrityDrift.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any

    from banking.ledger.models import LedgerEntry


# =============================================================================
# Ledger Exceptions
# =============================================================================


class BankingError(BaseApplicationError):
    """Base exception for all banking operations."""

    default_error_code: str = "BANKING_ERROR"


class InsufficientBalance(BankingError):
    """
    Raised when a collector's balance cannot cover a spend.

    Attributes:
        collector_identifier: Collector whose balance was checked
        required: Amount the spend needed
        available: Balance at the moment of the check

    Example:
        if balance.balance < amount:
            raise InsufficientBalance(
                identifier, required=amount, available=balance.balance
            )
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"
    status_code: int = 409

    def __init__(
        self,
        collector_identifier: str,
        required: Decimal,
        available: Decimal,
        currency: str = "CREDITS",
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.collector_identifier = collector_identifier
        self.required = required
        self.available = available
        self.currency = currency

        message = (
            f"Collector {collector_identifier} has insufficient balance: "
            f"required {required} {currency}, available {available} {currency}"
        )

        full_details = {
            "collector_identifier": collector_identifier,
            "required": str(required),
            "available": str(available),
            "currency": currency,
        }
        if details:
            full_details.update(details)

        super().__init__(message=message, error_code=error_code, details=full_details)


class InactiveAccountError(BankingError):
    """Raised when recording against a deactivated collector account."""

    default_error_code: str = "INACTIVE_ACCOUNT"
    status_code: int = 409


class ImmutableEntryError(BankingError):
    """
    Raised when code tries to change or delete a recorded ledger entry.

    Corrections are new offsetting entries (see AdjustmentRecorder).
    """

    default_error_code: str = "LEDGER_ENTRY_IMMUTABLE"


class LedgerWriteError(BankingError):
    """
    Raised when the storage layer fails while recording an entry.

    Carries the collector identifier and attempted amount so the failed
    financial event can be traced and replayed.
    """

    default_error_code: str = "LEDGER_WRITE_FAILED"
    status_code: int = 500


class DuplicateTransaction(ConflictError):
    """
    Raised by the ledger store when a dedup key is already recorded.

    Recorders catch this and return a zero-delta result; it only reaches
    callers that use the store directly.

    Attributes:
        dedup_key: The natural key that collided
        existing_entry: The entry recorded first
    """

    default_error_code: str = "DUPLICATE_TRANSACTION"

    def __init__(self, dedup_key: str, existing_entry: LedgerEntry | None = None):
        self.dedup_key = dedup_key
        self.existing_entry = existing_entry
        details: dict[str, Any] = {"dedup_key": dedup_key}
        if existing_entry is not None:
            details["existing_entry_id"] = str(existing_entry.id)
        super().__init__(
            f"Transaction {dedup_key} has already been recorded",
            details=details,
        )


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a payout or redemption transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed with our error format.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Perk Exceptions
# =============================================================================


class NotUnlocked(PermissionDeniedError):
    """Raised when lifetime credits earned are below a perk's threshold."""

    default_error_code: str = "PERK_NOT_UNLOCKED"


class AlreadyRedeemed(ConflictError):
    """Raised when a pending redemption already exists for the perk and product."""

    default_error_code: str = "PERK_ALREADY_REDEEMED"


# =============================================================================
# Payout Rail Exceptions
# =============================================================================


class PaymentMethodNotConfigured(ValidationError):
    """
    Raised when a vendor lacks usable payee details for the chosen method.

    Example:
        raise PaymentMethodNotConfigured(
            "Vendor has no PayPal email configured",
            details={"vendor_name": vendor.vendor_name, "payment_method": "paypal"},
        )
    """

    default_error_code: str = "PAYMENT_METHOD_NOT_CONFIGURED"


class ExternalRailError(ExternalServiceError):
    """
    Base exception for external payment rail failures.

    The payout that triggered it is marked failed and the ledger is left
    untouched. is_retryable is informational only; payouts are never
    resubmitted automatically because a retry could pay the vendor twice.
    """

    default_error_code: str = "EXTERNAL_RAIL_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        rail: str | None = None,
        rail_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if rail:
            details["rail"] = rail
        if rail_code:
            details["rail_code"] = rail_code
        super().__init__(message, error_code=error_code, details=details)
        self.rail = rail
        self.rail_code = rail_code


class RailTimeoutError(ExternalRailError):
    """Rail did not respond within PAYOUT_RAIL_TIMEOUT_SECONDS."""

    default_error_code: str = "RAIL_TIMEOUT"
    is_retryable: bool = True


class RailRejectedError(ExternalRailError):
    """Rail refused the instruction (invalid payee, insufficient platform funds)."""

    default_error_code: str = "RAIL_REJECTED"


class RailUnavailableError(ExternalRailError):
    """Rail unreachable, rate limited or returned a server error."""

    default_error_code: str = "RAIL_UNAVAILABLE"
    is_retryable: bool = True
