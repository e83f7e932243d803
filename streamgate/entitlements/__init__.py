"""Entitlement evaluation, caching and the per-account service."""

from streamgate.entitlements.cache import EntitlementCache
from streamgate.entitlements.evaluator import active_payments, evaluate, next_change_at, trial_is_live
from streamgate.entitlements.models import Entitlement
from streamgate.entitlements.service import EntitlementService

__all__ = [
    "Entitlement",
    "EntitlementCache",
    "EntitlementService",
    "active_payments",
    "evaluate",
    "next_change_at",
    "trial_is_live",
]
