"""
Permission classes for banking API.

- IsCollectorOrStaff: non-staff users may only read or act on their own
  collector identifiers

A user's collector identifiers are their email and username, plus the
ledger identifier of any vendor whose auth_id is one of those.

Design Decisions:
    - Views pass the requested collector identifier to
      check_object_permissions(); the identifier is the "object"
    - Staff can act for any collector (support and back office)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from banking.models import Vendor

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


def collector_identifiers_for(user) -> set[str]:
    """Collector identifiers that belong to an authenticated user."""
    identities = {value for value in (getattr(user, "email", ""), user.get_username()) if value}
    vendor_identifiers = Vendor.objects.filter(auth_id__in=identities).values_list(
        "ledger_identifier", flat=True
    )
    return identities | set(vendor_identifiers)


class IsCollectorOrStaff(permissions.BasePermission):
    """
    Allows access to a collector's ledger only to that collector or staff.

    Used for balances, perk status and perk redemption.
    """

    message = "You can only access your own balances and perks."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request: Request, view: APIView, obj: str) -> bool:
        if request.user.is_staff:
            return True
        return obj in collector_identifiers_for(request.user)
