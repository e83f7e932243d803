"""
Ad-exposure policy.

Ads are suppressed only by a running premium payment or a running ad-free
daily payment. Trials and the yearly plan keep ads on.
"""

from datetime import datetime
from typing import Iterable

from streamgate.entitlements.evaluator import AccountLike, PaymentLike, evaluate
from streamgate.entitlements.service import EntitlementService


def should_show_ads(account: AccountLike, payments: Iterable[PaymentLike], now: datetime) -> bool:
    return evaluate(account, payments, now).shows_ads


class AdExposurePolicy:
    """Ad eligibility for the ad-selection collaborator, backed by the entitlement service."""

    def __init__(self, entitlement_service: EntitlementService):
        self.entitlements = entitlement_service

    def should_show_ads(self, account_id: str) -> bool:
        return self.entitlements.evaluate(account_id).shows_ads
