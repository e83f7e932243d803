"""
Payment reconciliation error hierarchy.

Provides:
- InvalidPlanError: plan key not in the catalog (permanent)
- TransactionNotFoundError: no ledger row for the transaction id (permanent)
- InvalidSignatureError: callback HMAC mismatch (permanent)
- GatewayError: gateway unreachable or errored (transient, safe to retry)

A verify/callback on an already-terminal transaction is not an error; see
VerificationResult.already_terminal.
"""

from typing import Any, Optional

from fastapi import status

from streamgate.platform.errors import AppError, NotFoundError


class InvalidPlanError(AppError):
    """Requested plan key is not recognized (400)."""

    def __init__(self, plan_kind: str):
        self.plan_kind = plan_kind
        super().__init__(
            code="INVALID_PLAN",
            message=f"Invalid subscription type '{plan_kind}'",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"plan_kind": plan_kind},
        )


class TransactionNotFoundError(NotFoundError):
    """No ledger row exists for the transaction id (404)."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__("Payment transaction", transaction_id)


class InvalidSignatureError(AppError):
    """Inbound callback failed HMAC verification (401)."""

    def __init__(self, message: str = "Invalid callback signature"):
        super().__init__(
            code="INVALID_SIGNATURE",
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class GatewayError(AppError):
    """Payment gateway call failed; the caller may retry (503)."""

    def __init__(
        self,
        message: str = "Payment gateway unavailable",
        transaction_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.transaction_id = transaction_id
        payload = {"retryable": True}
        if transaction_id:
            payload["transaction_id"] = transaction_id
        payload.update(details or {})
        super().__init__(
            code="GATEWAY_ERROR",
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=payload,
        )
