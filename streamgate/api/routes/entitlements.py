"""
Read-only entitlement and ad-eligibility endpoints for the current account.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from streamgate.ads.policy import AdExposurePolicy
from streamgate.api.dependencies import get_current_account_id, get_entitlement_service
from streamgate.entitlements.service import EntitlementService

router = APIRouter(tags=["entitlements"])


class EntitlementResponse(BaseModel):
    account_id: str
    can_stream: bool
    is_premium: bool
    shows_ads: bool
    active_until: Optional[datetime]
    is_in_trial: bool
    evaluated_at: datetime


class AdEligibilityResponse(BaseModel):
    account_id: str
    show_ads: bool


@router.get("/api/entitlements", response_model=EntitlementResponse)
def get_entitlement(
    account_id: str = Depends(get_current_account_id),
    service: EntitlementService = Depends(get_entitlement_service),
):
    """Resolved streaming entitlement. Backend enforcement is authoritative."""
    entitlement = service.evaluate(account_id)
    return EntitlementResponse(
        account_id=entitlement.account_id,
        can_stream=entitlement.can_stream,
        is_premium=entitlement.is_premium,
        shows_ads=entitlement.shows_ads,
        active_until=entitlement.active_until,
        is_in_trial=entitlement.is_in_trial,
        evaluated_at=entitlement.evaluated_at,
    )


@router.get("/api/ads/eligibility", response_model=AdEligibilityResponse)
def ad_eligibility(
    account_id: str = Depends(get_current_account_id),
    service: EntitlementService = Depends(get_entitlement_service),
):
    """Whether the ad server should insert ads for this account."""
    policy = AdExposurePolicy(service)
    return AdEligibilityResponse(account_id=account_id, show_ads=policy.should_show_ads(account_id))
