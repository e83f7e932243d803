"""
Payment API routes.

All routes require account context from the auth layer.
account_id is NEVER accepted from request body.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from streamgate.accounts.service import AccountService
from streamgate.api.dependencies import (
    get_current_account_id,
    get_db_session,
    get_reconciler,
    require_admin,
)
from streamgate.models.payment_transaction import PaymentState
from streamgate.payments.ledger import PaymentLedger
from streamgate.payments.reconciler import PaymentReconciler, VerificationResult
from streamgate.platform.clock import ensure_utc, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


# Request/Response Models

class InitializePaymentRequest(BaseModel):
    """Request to start a plan purchase."""
    subscription_type: str = Field(..., min_length=1, description="Plan key to purchase")


class InitializePaymentResponse(BaseModel):
    transaction_id: str
    payment_url: str
    amount: int
    currency: str


class TransactionRequest(BaseModel):
    """Request naming an existing transaction."""
    transaction_id: str = Field(..., min_length=1)


class VerificationResponse(BaseModel):
    """Resolved (or still pending) transaction state."""
    transaction_id: str
    status: str
    amount: int
    currency: str
    plan_kind: str
    subscription_ends_at: Optional[datetime]
    already_terminal: bool
    details: Dict[str, Any]


class PaymentHistoryItem(BaseModel):
    transaction_id: str
    plan_kind: str
    amount: int
    currency: str
    status: str
    payment_method: str
    subscription_ends_at: Optional[datetime]
    created_at: datetime


class PaymentHistoryResponse(BaseModel):
    items: List[PaymentHistoryItem]
    total: int
    page: int
    per_page: int
    last_page: int


class PaymentStatisticsResponse(BaseModel):
    total_revenue: int
    monthly_revenue: int
    success_rate: float
    total_transactions: int
    completed_transactions: int
    failed_transactions: int
    pending_transactions: int


def verification_response(result: VerificationResult) -> VerificationResponse:
    return VerificationResponse(
        transaction_id=result.transaction_id,
        status=result.state.value,
        amount=result.amount,
        currency=result.currency,
        plan_kind=result.plan_kind,
        subscription_ends_at=result.subscription_ends_at,
        already_terminal=result.already_terminal,
        details=result.details,
    )


@router.post("/initialize", response_model=InitializePaymentResponse)
async def initialize_payment(
    body: InitializePaymentRequest,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db_session),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """
    Start a purchase and return the gateway's hosted payment URL.

    The client redirects the customer to payment_url; the outcome arrives
    later through the callback webhook or a verify call.
    """
    account = AccountService(db).get(account_id)

    logger.info("Initializing payment", extra={
        "account_id": account_id,
        "plan_kind": body.subscription_type,
    })
    initialization = await reconciler.initialize(account, body.subscription_type)
    return InitializePaymentResponse(**initialization.to_dict())


@router.post(
    "/verify",
    response_model=VerificationResponse,
    dependencies=[Depends(get_current_account_id)],
)
async def verify_payment(
    body: TransactionRequest,
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Resolve a transaction against the gateway. Safe to call repeatedly."""
    result = await reconciler.verify(body.transaction_id)
    return verification_response(result)


@router.post(
    "/cancel",
    response_model=VerificationResponse,
    dependencies=[Depends(get_current_account_id)],
)
async def cancel_payment(
    body: TransactionRequest,
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Customer came back through the cancel URL; the gateway status decides."""
    result = await reconciler.cancel(body.transaction_id)
    return verification_response(result)


@router.get("/history", response_model=PaymentHistoryResponse)
def payment_history(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db_session),
):
    """The current account's payments, newest first."""
    result = PaymentLedger(db).history(account_id, page=page, per_page=per_page)
    return PaymentHistoryResponse(
        items=[
            PaymentHistoryItem(
                transaction_id=row.transaction_id,
                plan_kind=row.plan_kind,
                amount=row.amount,
                currency=row.currency,
                status=PaymentState(row.state).value,
                payment_method=row.payment_method,
                subscription_ends_at=ensure_utc(row.subscription_ends_at),
                created_at=ensure_utc(row.created_at),
            )
            for row in result.items
        ],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        last_page=result.last_page,
    )


@router.get(
    "/statistics",
    response_model=PaymentStatisticsResponse,
    dependencies=[Depends(get_current_account_id), Depends(require_admin)],
)
def payment_statistics(db: Session = Depends(get_db_session)):
    """Revenue and outcome counts. Admin only."""
    return PaymentStatisticsResponse(**PaymentLedger(db).statistics(utc_now()))
