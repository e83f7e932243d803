"""
Entitlement evaluation over an account's trial window and paid windows.

Pure functions: no I/O, no clock reads. The caller passes `now`.

Rules, per output field:
- can_stream: any completed payment still running, or a live trial.
- is_premium: a completed premium payment still running.
- shows_ads: False when premium, or when a completed ad-free payment is
  still running. Trials and the ad-bearing yearly plan still show ads.
- active_until: latest subscription_ends_at among running payments,
  else the live trial expiry, else None.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Protocol

from streamgate.config.plans import AD_FREE_PLAN_KINDS, PREMIUM_PLAN_KINDS, PlanKind
from streamgate.entitlements.models import Entitlement
from streamgate.models.payment_transaction import PaymentState
from streamgate.platform.clock import ensure_utc


class AccountLike(Protocol):
    id: str
    trial_expires_at: Optional[datetime]


class PaymentLike(Protocol):
    plan_kind: str
    state: str
    subscription_ends_at: Optional[datetime]


def _plan_kind(payment: PaymentLike) -> Optional[PlanKind]:
    try:
        return PlanKind(payment.plan_kind)
    except ValueError:
        return None


def active_payments(payments: Iterable[PaymentLike], now: datetime) -> List[PaymentLike]:
    """Completed payments whose window ends strictly after now."""
    running = []
    for payment in payments:
        if PaymentState(payment.state) != PaymentState.COMPLETED:
            continue
        ends_at = ensure_utc(payment.subscription_ends_at)
        if ends_at is not None and ends_at > now:
            running.append(payment)
    return running


def trial_is_live(account: AccountLike, now: datetime) -> bool:
    expires_at = ensure_utc(account.trial_expires_at)
    return expires_at is not None and expires_at > now


def next_change_at(account: AccountLike, payments: Iterable[PaymentLike], now: datetime) -> Optional[datetime]:
    """
    Earliest instant after `now` at which evaluate() could return something else.

    Any running window or a live trial ending flips at least one field, so
    this is the soonest of those ends. None when nothing is running.
    """
    now = ensure_utc(now)
    ends = [ensure_utc(p.subscription_ends_at) for p in active_payments(payments, now)]
    if trial_is_live(account, now):
        ends.append(ensure_utc(account.trial_expires_at))
    return min(ends) if ends else None


def evaluate(account: AccountLike, payments: Iterable[PaymentLike], now: datetime) -> Entitlement:
    """Compute the entitlement for `account` at `now`."""
    now = ensure_utc(now)
    running = active_payments(payments, now)
    in_trial = trial_is_live(account, now)

    kinds = {_plan_kind(p) for p in running}
    is_premium = bool(kinds & PREMIUM_PLAN_KINDS)
    ad_free = is_premium or bool(kinds & AD_FREE_PLAN_KINDS)

    if running:
        active_until = max(ensure_utc(p.subscription_ends_at) for p in running)
    elif in_trial:
        active_until = ensure_utc(account.trial_expires_at)
    else:
        active_until = None

    return Entitlement(
        account_id=account.id,
        can_stream=bool(running) or in_trial,
        is_premium=is_premium,
        shows_ads=not ad_free,
        active_until=active_until,
        is_in_trial=in_trial,
        evaluated_at=now,
    )
