from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from streamgate.accounts.service import AccountService
from streamgate.payments.ledger import PaymentLedger
from streamgate.platform.clock import Clock, ensure_utc, utc_now

from .cache import EntitlementCache
from .evaluator import evaluate, next_change_at
from .models import Entitlement

logger = logging.getLogger(__name__)


class EntitlementService:
    """Lazy per-request evaluation with cache and explicit invalidation."""

    def __init__(
        self,
        db_session: Session,
        *,
        cache: Optional[EntitlementCache] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.db = db_session
        self.cache = cache or EntitlementCache()
        self._clock = clock or utc_now
        self._accounts = AccountService(db_session, clock=self._clock)
        self._ledger = PaymentLedger(db_session)

    def evaluate(self, account_id: str) -> Entitlement:
        """Cache hit, or load the account and its running payments and evaluate."""
        if not str(account_id).strip():
            raise ValueError("account_id is required")

        now = self._clock()
        cached = self.cache.get(account_id, now=now)
        if cached is not None:
            return cached

        return self._compute_and_cache(account_id, now)

    def invalidate(self, account_id: str) -> None:
        self.cache.invalidate(account_id)

    def subscription_details(self, account_id: str) -> dict:
        """
        Subscription summary for the account's own view. Always computed fresh.

        subscription_type and subscription_ends_at describe the running
        payment that ends last. With nothing running they fall back to the
        most recently created completed payment, so a lapsed plan still shows.
        """
        now = self._clock()
        account = self._accounts.get(account_id)
        running = self._ledger.active_completed_for_account(account.id, now)
        entitlement = evaluate(account, running, now)
        # running is ordered by subscription_ends_at, latest first
        current = running[0] if running else self._ledger.latest_completed_for_account(account.id)

        trial_ends_at = ensure_utc(account.trial_expires_at)
        current_ends_at = ensure_utc(current.subscription_ends_at) if current else None

        return {
            "has_active_subscription": bool(running),
            "is_premium": entitlement.is_premium,
            "shows_ads": entitlement.shows_ads,
            "subscription_type": current.plan_kind if current else None,
            "subscription_ends_at": current_ends_at.isoformat() if current_ends_at else None,
            "trial_ends_at": trial_ends_at.isoformat() if trial_ends_at else None,
            "is_in_trial": entitlement.is_in_trial,
            "active_until": entitlement.active_until.isoformat() if entitlement.active_until else None,
        }

    def _compute_and_cache(self, account_id: str, now: datetime) -> Entitlement:
        account = self._accounts.get(account_id)
        payments = self._ledger.active_completed_for_account(account.id, now)
        entitlement = evaluate(account, payments, now)

        # Never cache past the first window end; the result flips there.
        ttl = self.cache.ttl_seconds
        changes_at = next_change_at(account, payments, now)
        if changes_at is not None:
            ttl = min(ttl, int((changes_at - now).total_seconds()))
        self.cache.set(entitlement, ttl_seconds=ttl)

        logger.debug("Entitlement evaluated", extra={
            "account_id": account_id,
            "can_stream": entitlement.can_stream,
            "is_premium": entitlement.is_premium,
            "shows_ads": entitlement.shows_ads,
        })
        return entitlement
