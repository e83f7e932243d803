"""
Payment gateway callback webhook.

SECURITY:
- Every callback MUST carry a valid HMAC signature over its transaction_id
- No account authentication (callbacks come from the gateway, not customers)
- The status in the body is ignored; the gateway is re-queried
"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from streamgate.api.dependencies import get_reconciler
from streamgate.api.routes.payments import VerificationResponse, verification_response
from streamgate.payments.reconciler import PaymentReconciler
from streamgate.platform.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/payments", tags=["webhooks"])


@router.post("/callback", response_model=VerificationResponse)
async def handle_payment_callback(
    request: Request,
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """
    Handle a gateway payment callback.

    Returns 401 on a bad signature and 503 when the gateway cannot be
    re-queried, so the gateway retries the callback later.
    """
    body = await request.body()
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        logger.error("Invalid callback JSON payload")
        raise ValidationError("Invalid JSON payload")

    if not isinstance(payload, dict):
        raise ValidationError("Callback payload must be a JSON object")

    logger.info("Received payment callback", extra={
        "transaction_id": payload.get("transaction_id"),
    })
    result = await reconciler.handle_callback(payload)
    return verification_response(result)
