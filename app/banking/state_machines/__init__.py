"""
State enums for banking models.

See states.py for the individual state machines.
"""

from banking.state_machines.states import PayoutStatus, RedemptionStatus

__all__ = [
    "PayoutStatus",
    "RedemptionStatus",
]
