"""
Device session limiter.

Bounds how many devices an account may have logged in at once. Every
change to accounts.connected_device_count is a single conditional UPDATE
scoped to one row, so concurrent logins for the same account serialize on
that row and different accounts never contend.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streamgate.accounts.errors import AccountNotFoundError
from streamgate.config import settings
from streamgate.models.account import Account, AccountStatus
from streamgate.sessions.errors import AccountInactiveError, AtCapacityError

logger = logging.getLogger(__name__)


class DeviceSessionLimiter:
    """Acquire and release device slots for an account."""

    def __init__(self, db_session: Session, max_devices: Optional[int] = None):
        self.db = db_session
        self.max_devices = settings.MAX_DEVICES_PER_ACCOUNT if max_devices is None else max_devices
        if self.max_devices < 1:
            raise ValueError("max_devices must be at least 1")

    def try_acquire(self, account_id: str) -> int:
        """
        Take one device slot.

        Returns:
            The account's device count after the increment.

        Raises:
            AccountNotFoundError: no such account
            AccountInactiveError: account is not active
            AtCapacityError: all slots are taken
        """
        try:
            result = self.db.execute(
                update(Account)
                .where(
                    Account.id == account_id,
                    Account.status == AccountStatus.ACTIVE,
                    Account.connected_device_count < self.max_devices,
                )
                .values(connected_device_count=Account.connected_device_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                self.db.commit()
            else:
                self.db.rollback()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        account = self._reload(account_id)
        if result.rowcount == 1:
            logger.info("Device slot acquired", extra={
                "account_id": account_id,
                "connected_device_count": account.connected_device_count,
            })
            return account.connected_device_count

        if AccountStatus(account.status) != AccountStatus.ACTIVE:
            raise AccountInactiveError(account_id, AccountStatus(account.status).value)

        logger.info("Device limit reached", extra={
            "account_id": account_id,
            "max_devices": self.max_devices,
        })
        raise AtCapacityError(account_id, self.max_devices)

    def release(self, account_id: str) -> int:
        """Give back one device slot. Releasing at zero is a no-op."""
        try:
            result = self.db.execute(
                update(Account)
                .where(
                    Account.id == account_id,
                    Account.connected_device_count > 0,
                )
                .values(connected_device_count=Account.connected_device_count - 1)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        account = self._reload(account_id)
        if result.rowcount == 1:
            logger.info("Device slot released", extra={
                "account_id": account_id,
                "connected_device_count": account.connected_device_count,
            })
        return account.connected_device_count

    def _reload(self, account_id: str) -> Account:
        account = self.db.execute(
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        ).scalars().one_or_none()
        if account is None:
            raise AccountNotFoundError(account_id)
        return account
