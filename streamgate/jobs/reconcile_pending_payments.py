"""
Pending payment reconciliation job.

Runs periodically to resolve payments whose callback never arrived and
whose customer never came back to trigger a verify.

Handles:
- Stale pending transactions (re-verified against the gateway)
- Lapsed standing subscriptions (flag cleared once every paid window ended)

Usage:
    python -m streamgate.jobs.reconcile_pending_payments          # one sweep
    python -m streamgate.jobs.reconcile_pending_payments --loop   # run forever
"""

import asyncio
import logging
import signal
import sys
from datetime import timedelta
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streamgate.config import settings
from streamgate.models.account import Account
from streamgate.models.payment_transaction import PaymentState, PaymentTransaction
from streamgate.payments.errors import GatewayError
from streamgate.payments.ledger import PaymentLedger
from streamgate.payments.reconciler import PaymentReconciler
from streamgate.platform.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class PendingPaymentReconciliationJob:
    """
    Re-verifies stale pending payments and retires lapsed standing flags.

    A gateway outage on one transaction is counted and skipped; the row
    stays pending for the next sweep.
    """

    def __init__(
        self,
        db_session: Session,
        reconciler: PaymentReconciler,
        *,
        clock: Optional[Clock] = None,
        stale_after_minutes: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        self.db_session = db_session
        self.reconciler = reconciler
        self.ledger = PaymentLedger(db_session)
        self._clock = clock or utc_now
        self.stale_after = timedelta(
            minutes=settings.PENDING_RECONCILE_AFTER_MINUTES
            if stale_after_minutes is None else stale_after_minutes
        )
        self.batch_size = batch_size or settings.RECONCILE_BATCH_SIZE

    async def run(self) -> dict:
        """
        Execute one sweep.

        Returns:
            Summary of reconciliation results
        """
        now = self._clock()
        logger.info("Starting pending payment reconciliation")

        results = {
            "started_at": now.isoformat(),
            "transactions_checked": 0,
            "transactions_completed": 0,
            "transactions_failed": 0,
            "already_resolved": 0,
            "gateway_errors": 0,
            "standing_subscriptions_cleared": 0,
            "errors": [],
        }

        stale_ids = [
            row.transaction_id
            for row in self.ledger.stale_pending(now - self.stale_after, self.batch_size)
        ]
        results["transactions_checked"] = len(stale_ids)

        for transaction_id in stale_ids:
            try:
                outcome = await self.reconciler.verify(transaction_id)
            except GatewayError:
                results["gateway_errors"] += 1
                continue
            except Exception as e:
                self.db_session.rollback()
                error_msg = f"Failed to reconcile transaction {transaction_id}: {str(e)}"
                logger.exception(error_msg, extra={"transaction_id": transaction_id})
                results["errors"].append(error_msg)
                continue

            if outcome.already_terminal:
                results["already_resolved"] += 1
            elif outcome.state == PaymentState.COMPLETED:
                results["transactions_completed"] += 1
            else:
                results["transactions_failed"] += 1

        try:
            results["standing_subscriptions_cleared"] = self._expire_standing_subscriptions()
        except SQLAlchemyError as e:
            logger.exception("Failed to clear lapsed standing subscriptions")
            results["errors"].append(str(e))

        results["completed_at"] = self._clock().isoformat()
        logger.info("Pending payment reconciliation completed", extra={
            k: v for k, v in results.items() if k != "errors"
        })
        return results

    def _expire_standing_subscriptions(self) -> int:
        """Clear has_standing_subscription where no completed payment is still running."""
        now = self._clock()
        still_running = (
            select(PaymentTransaction.id)
            .where(
                PaymentTransaction.account_id == Account.id,
                PaymentTransaction.state == PaymentState.COMPLETED,
                PaymentTransaction.subscription_ends_at > now,
            )
            .exists()
        )
        lapsed = and_(Account.has_standing_subscription.is_(True), ~still_running)

        account_ids = self.db_session.execute(select(Account.id).where(lapsed)).scalars().all()
        if not account_ids:
            return 0

        try:
            result = self.db_session.execute(
                update(Account)
                .where(Account.id.in_(account_ids), lapsed)
                .values(has_standing_subscription=False, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            self.db_session.commit()
        except SQLAlchemyError:
            self.db_session.rollback()
            raise

        for account_id in account_ids:
            logger.info("Standing subscription lapsed", extra={"account_id": account_id})
        return result.rowcount


async def run_reconciliation(db_session: Session, gateway) -> dict:
    """
    Convenience function to run one sweep.

    Args:
        db_session: Database session
        gateway: Gateway client used to re-query transaction status

    Returns:
        Job results summary
    """
    reconciler = PaymentReconciler(db_session, gateway)
    job = PendingPaymentReconciliationJob(db_session, reconciler)
    return await job.run()


async def run_forever(interval_seconds: Optional[int] = None) -> None:
    """Sweep on a fixed interval until SIGTERM/SIGINT. Fresh session per sweep."""
    from streamgate.database.session import get_session_factory
    from streamgate.integrations.apaym.gateway_client import ApaymGatewayClient

    interval = interval_seconds or settings.RECONCILE_INTERVAL_SECONDS
    shutdown_event = asyncio.Event()

    def _handle_signal(sig, _frame):
        logger.info("Received signal %s, shutting down gracefully", sig)
        shutdown_event.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    logger.info("Payment reconciliation worker starting", extra={"interval_seconds": interval})

    async with ApaymGatewayClient() as gateway:
        while not shutdown_event.is_set():
            session = get_session_factory()()
            try:
                await run_reconciliation(session, gateway)
            except Exception:
                session.rollback()
                logger.exception("Reconciliation sweep failed")
            finally:
                session.close()

            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    logger.info("Payment reconciliation worker stopped")


async def _run_once() -> dict:
    from streamgate.database.session import get_session_factory
    from streamgate.integrations.apaym.gateway_client import ApaymGatewayClient

    session = get_session_factory()()
    try:
        async with ApaymGatewayClient() as gateway:
            return await run_reconciliation(session, gateway)
    finally:
        session.close()


def main(argv=None):
    """Entry point for cron/scheduler."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    argv = sys.argv[1:] if argv is None else argv
    try:
        if "--loop" in argv:
            asyncio.run(run_forever())
        else:
            results = asyncio.run(_run_once())
            logger.info("Reconciliation completed", extra={
                k: v for k, v in results.items() if k != "errors"
            })
        sys.exit(0)
    except Exception as e:
        logger.error("Reconciliation crashed", extra={"error": str(e)})
        sys.exit(1)


if __name__ == "__main__":
    main()
