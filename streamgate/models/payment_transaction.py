"""
PaymentTransaction model - one purchase attempt and its outcome.

State machine: pending -> completed | failed. Both targets are terminal.
Transitions are applied with a conditional UPDATE on state = 'pending'
(see streamgate.payments.ledger), never by assigning .state on a loaded row.
"""

import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from streamgate.db_base import Base
from streamgate.models.base import TimestampMixin


class PaymentState(str, enum.Enum):
    """Ledger row state."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentState.COMPLETED, PaymentState.FAILED)


class PaymentTransaction(Base, TimestampMixin):
    """Durable ledger row keyed by the engine-generated transaction_id."""

    __tablename__ = "payment_transactions"
    __table_args__ = (
        Index("ix_payment_transactions_account_state", "account_id", "state"),
    )

    id = Column(
        String(255),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Primary key (UUID)",
    )
    transaction_id = Column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
        comment="Idempotency key shared with the gateway",
    )
    account_id = Column(String(255), ForeignKey("accounts.id"), nullable=False, index=True)

    plan_kind = Column(String(50), nullable=False)
    amount = Column(Integer, nullable=False, comment="Price captured at initiation")
    currency = Column(String(8), nullable=False)
    duration_days = Column(Integer, nullable=False, comment="Duration captured at initiation")
    payment_method = Column(String(50), nullable=False, default="apaym")

    state = Column(
        Enum(PaymentState, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentState.PENDING,
    )

    gateway_reference = Column(String(255), nullable=True)
    payment_url = Column(String(2048), nullable=True)
    verification_payload = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Append-only list of gateway verification responses",
    )

    subscription_ends_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Set only on the transition to completed",
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    account = relationship("Account", back_populates="payments")

    @property
    def is_terminal(self) -> bool:
        return PaymentState(self.state).is_terminal

    def __repr__(self) -> str:
        return f"<PaymentTransaction {self.transaction_id} state={self.state}>"
