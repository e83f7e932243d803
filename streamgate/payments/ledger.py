"""
Payment transaction ledger.

The ledger is the only writer of payment_transactions rows. State
transitions are conditional updates guarded by `state = 'pending'`, so
two concurrent resolvers of the same transaction cannot both win: the
loser's UPDATE matches zero rows.

Transition methods do NOT commit. The reconciler commits the transition
together with the entitlement activation as one database transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streamgate.config import settings
from streamgate.models.payment_transaction import PaymentState, PaymentTransaction
from streamgate.platform.clock import ensure_utc

logger = logging.getLogger(__name__)


@dataclass
class PaymentPage:
    """One page of an account's payment history."""
    items: List[PaymentTransaction]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        if self.total == 0:
            return 1
        return (self.total + self.per_page - 1) // self.per_page


class PaymentLedger:
    """Reads and conditional writes over PaymentTransaction rows."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def record_pending(
        self,
        *,
        transaction_id: str,
        account_id: str,
        plan_kind: str,
        amount: int,
        currency: str,
        duration_days: int,
        gateway_reference: Optional[str],
        payment_url: Optional[str],
        created_at: datetime,
        payment_method: str = settings.PAYMENT_METHOD,
    ) -> PaymentTransaction:
        """Persist a new pending row. Commits."""
        row = PaymentTransaction(
            transaction_id=transaction_id,
            account_id=account_id,
            plan_kind=plan_kind,
            amount=amount,
            currency=currency,
            duration_days=duration_days,
            payment_method=payment_method,
            state=PaymentState.PENDING,
            gateway_reference=gateway_reference,
            payment_url=payment_url,
            verification_payload=[],
            created_at=created_at,
            updated_at=created_at,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Pending payment recorded", extra={
            "transaction_id": transaction_id,
            "account_id": account_id,
            "plan_kind": plan_kind,
            "amount": amount,
        })
        return row

    def get(self, transaction_id: str) -> Optional[PaymentTransaction]:
        """Fresh read of a ledger row (overwrites any stale identity-map copy)."""
        stmt = (
            select(PaymentTransaction)
            .where(PaymentTransaction.transaction_id == transaction_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().one_or_none()

    def transition(
        self,
        transaction_id: str,
        to_state: PaymentState,
        *,
        gateway_response: Any,
        previous_payload: Optional[list],
        resolved_at: datetime,
        subscription_ends_at: Optional[datetime] = None,
    ) -> bool:
        """
        Move a pending row to a terminal state.

        Returns True if this call performed the transition, False if the row
        was no longer pending. Does not commit.
        """
        if not PaymentState(to_state).is_terminal:
            raise ValueError(f"cannot transition to non-terminal state {to_state}")
        if to_state == PaymentState.COMPLETED and subscription_ends_at is None:
            raise ValueError("subscription_ends_at is required to complete a payment")

        values = {
            "state": PaymentState(to_state),
            "verification_payload": list(previous_payload or []) + [gateway_response],
            "resolved_at": resolved_at,
            "updated_at": resolved_at,
        }
        if to_state == PaymentState.COMPLETED:
            values["subscription_ends_at"] = subscription_ends_at

        result = self.db.execute(
            update(PaymentTransaction)
            .where(
                PaymentTransaction.transaction_id == transaction_id,
                PaymentTransaction.state == PaymentState.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1

        logger.info("Payment transition attempted", extra={
            "transaction_id": transaction_id,
            "to_state": PaymentState(to_state).value,
            "applied": won,
        })
        return won

    def active_completed_for_account(self, account_id: str, now: datetime) -> List[PaymentTransaction]:
        """Completed rows whose paid window has not ended, latest end first."""
        stmt = (
            select(PaymentTransaction)
            .where(
                PaymentTransaction.account_id == account_id,
                PaymentTransaction.state == PaymentState.COMPLETED,
                PaymentTransaction.subscription_ends_at.isnot(None),
                PaymentTransaction.subscription_ends_at > now,
            )
            .order_by(PaymentTransaction.subscription_ends_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def latest_completed_for_account(self, account_id: str) -> Optional[PaymentTransaction]:
        """Most recently created completed row, expired or not."""
        stmt = (
            select(PaymentTransaction)
            .where(
                PaymentTransaction.account_id == account_id,
                PaymentTransaction.state == PaymentState.COMPLETED,
                PaymentTransaction.subscription_ends_at.isnot(None),
            )
            .order_by(PaymentTransaction.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def stale_pending(self, created_before: datetime, limit: int) -> List[PaymentTransaction]:
        """Pending rows older than the cutoff, oldest first."""
        stmt = (
            select(PaymentTransaction)
            .where(
                PaymentTransaction.state == PaymentState.PENDING,
                PaymentTransaction.created_at < created_before,
            )
            .order_by(PaymentTransaction.created_at.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def history(self, account_id: str, page: int = 1, per_page: Optional[int] = None) -> PaymentPage:
        """Paginated history for an account, newest first."""
        per_page = per_page or settings.PAYMENT_HISTORY_PER_PAGE
        per_page = max(1, min(int(per_page), settings.PAYMENT_HISTORY_MAX_PER_PAGE))
        page = max(1, int(page))

        total = self.db.execute(
            select(func.count()).select_from(PaymentTransaction)
            .where(PaymentTransaction.account_id == account_id)
        ).scalar_one()

        items = self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.account_id == account_id)
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        ).scalars().all()

        return PaymentPage(items=list(items), total=total, page=page, per_page=per_page)

    def statistics(self, now: datetime) -> dict:
        """Revenue and outcome counts across all accounts."""
        now = ensure_utc(now)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        counts = dict(
            self.db.execute(
                select(PaymentTransaction.state, func.count())
                .group_by(PaymentTransaction.state)
            ).all()
        )
        completed = counts.get(PaymentState.COMPLETED, 0)
        failed = counts.get(PaymentState.FAILED, 0)
        pending = counts.get(PaymentState.PENDING, 0)
        total = completed + failed + pending

        total_revenue = self.db.execute(
            select(func.coalesce(func.sum(PaymentTransaction.amount), 0))
            .where(PaymentTransaction.state == PaymentState.COMPLETED)
        ).scalar_one()
        monthly_revenue = self.db.execute(
            select(func.coalesce(func.sum(PaymentTransaction.amount), 0))
            .where(
                PaymentTransaction.state == PaymentState.COMPLETED,
                PaymentTransaction.created_at >= month_start,
            )
        ).scalar_one()

        success_rate = round(completed / total * 100, 2) if total else 0

        return {
            "total_revenue": int(total_revenue),
            "monthly_revenue": int(monthly_revenue),
            "success_rate": success_rate,
            "total_transactions": total,
            "completed_transactions": completed,
            "failed_transactions": failed,
            "pending_transactions": pending,
        }
