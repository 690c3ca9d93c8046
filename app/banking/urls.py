"""
URL configuration for the banking app.

All routes are prefixed with /api/v1/banking/ when included in the main URLconf.
"""

from django.urls import path

from banking import views

app_name = "banking"

urlpatterns = [
    # Balances
    path("balances/<str:identifier>/", views.BalanceView.as_view(), name="balance"),
    path("vendors/balances/", views.VendorBalancesView.as_view(), name="vendor_balances"),
    # Payouts
    path("payouts/process/", views.ProcessPayoutsView.as_view(), name="process_payouts"),
    path("payouts/validate/", views.ValidatePayoutView.as_view(), name="validate_payout"),
    path("payouts/mark-paid/", views.MarkPaidView.as_view(), name="mark_paid"),
    path("payouts/mark-month-paid/", views.MarkMonthPaidView.as_view(), name="mark_month_paid"),
    path(
        "vendors/<str:vendor_name>/payouts/pending/",
        views.PendingPayoutView.as_view(),
        name="pending_payout",
    ),
    path(
        "vendors/<str:vendor_name>/line-items/pending/",
        views.PendingLineItemsView.as_view(),
        name="pending_line_items",
    ),
    # Integrity
    path("integrity/", views.IntegrityView.as_view(), name="integrity"),
    # Ledger
    path("adjustments/", views.AdjustmentView.as_view(), name="adjustments"),
    path("fulfillment/", views.FulfillmentView.as_view(), name="fulfillment"),
    # Perks
    path("perks/redeem/", views.RedeemPerkView.as_view(), name="redeem_perk"),
    path("perks/<str:identifier>/", views.PerkStatusView.as_view(), name="perk_status"),
]
