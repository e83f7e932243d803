"""
Account model.

connected_device_count is only ever changed through conditional UPDATE
statements issued by the device session limiter; never assign it directly.
"""

import enum
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from streamgate.db_base import Base
from streamgate.models.base import TimestampMixin


class AccountStatus(str, enum.Enum):
    """Account status. Only ACTIVE accounts may authenticate."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Account(Base, TimestampMixin):
    """A registered streaming customer."""

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "connected_device_count >= 0",
            name="ck_accounts_device_count_non_negative",
        ),
    )

    id = Column(
        String(255),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Primary key (UUID)",
    )
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    status = Column(
        Enum(AccountStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )
    trial_expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Set once at registration; cleared forever on first paid activation",
    )
    has_standing_subscription = Column(Boolean, nullable=False, default=False)
    connected_device_count = Column(Integer, nullable=False, default=0)

    payments = relationship(
        "PaymentTransaction",
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.id} status={self.status}>"
