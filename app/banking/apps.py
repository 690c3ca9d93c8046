"""
Banking app configuration.

This app owns the marketplace's money:
- Append-only collector ledger (CREDITS and USD)
- Vendor payouts through external rails
- Collector perk redemptions
"""

from django.apps import AppConfig


class BankingConfig(AppConfig):
    """Configuration for the banking application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "banking"
    verbose_name = "Banking"

    def ready(self):
        from banking import signals  # noqa: F401
