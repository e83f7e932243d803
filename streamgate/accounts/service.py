"""
Account registration and lookup.

Registration starts the one-time trial window immediately. The trial is
never extended or re-opened here; only the payment reconciler clears it.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streamgate.accounts.errors import AccountNotFoundError
from streamgate.config import settings
from streamgate.models.account import Account, AccountStatus
from streamgate.platform.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class AccountService:
    """Creates accounts and loads them by id."""

    def __init__(
        self,
        db_session: Session,
        *,
        clock: Optional[Clock] = None,
        trial_period_hours: Optional[int] = None,
    ):
        self.db = db_session
        self._clock = clock or utc_now
        self._trial_period_hours = (
            settings.TRIAL_PERIOD_HOURS if trial_period_hours is None else trial_period_hours
        )

    def register(self, email: str, name: Optional[str] = None) -> Account:
        """Create an active account whose trial starts now."""
        if not email or not email.strip():
            raise ValueError("email is required")

        now = self._clock()
        account = Account(
            email=email.strip().lower(),
            name=name,
            status=AccountStatus.ACTIVE,
            trial_expires_at=now + timedelta(hours=self._trial_period_hours),
            has_standing_subscription=False,
            connected_device_count=0,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(account)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Account registered", extra={
            "account_id": account.id,
            "trial_expires_at": account.trial_expires_at.isoformat(),
        })
        return account

    def get(self, account_id: str) -> Account:
        """Load an account with a fresh read, bypassing stale identity-map state."""
        account = (
            self.db.query(Account)
            .filter(Account.id == account_id)
            .populate_existing()
            .one_or_none()
        )
        if account is None:
            raise AccountNotFoundError(account_id)
        return account
