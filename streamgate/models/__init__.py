"""
Database models for accounts and the payment ledger.
"""

from streamgate.models.base import TimestampMixin
from streamgate.models.account import Account, AccountStatus
from streamgate.models.payment_transaction import PaymentState, PaymentTransaction

__all__ = [
    "TimestampMixin",
    "Account",
    "AccountStatus",
    "PaymentState",
    "PaymentTransaction",
]
