"""
Subscription plan and status routes.

/plans is public. /details requires account context.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from streamgate.api.dependencies import (
    get_current_account_id,
    get_entitlement_service,
    get_plan_catalog,
)
from streamgate.config.plans import PlanCatalog
from streamgate.entitlements.service import EntitlementService

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


class PlanResponse(BaseModel):
    """Plan details response."""
    plan_kind: str
    price: int
    duration_days: int
    description: str


class SubscriptionDetailsResponse(BaseModel):
    has_active_subscription: bool
    is_premium: bool
    shows_ads: bool
    subscription_type: Optional[str]
    subscription_ends_at: Optional[datetime]
    trial_ends_at: Optional[datetime]
    is_in_trial: bool
    active_until: Optional[datetime]


@router.get("/plans", response_model=List[PlanResponse])
def list_plans(catalog: PlanCatalog = Depends(get_plan_catalog)):
    """List the plans a customer can purchase."""
    return [PlanResponse(**plan.to_dict()) for plan in catalog.all()]


@router.get("/details", response_model=SubscriptionDetailsResponse)
def subscription_details(
    account_id: str = Depends(get_current_account_id),
    service: EntitlementService = Depends(get_entitlement_service),
):
    return SubscriptionDetailsResponse(**service.subscription_details(account_id))
