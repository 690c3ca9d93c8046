"""
Banking - ledger-based balances, vendor payouts and collector perks.

Subpackages:
    ledger: Append-only ledger store, account registry, balance calculator
    recorders: One idempotent write operation per economic event
    services: Banking facade, payout processor, perk engine, fulfillment intake
    rails: External payment rail clients (PayPal, Stripe, bank transfer, manual)
"""
