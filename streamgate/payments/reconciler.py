"""
Payment reconciler.

Turns gateway confirmations into subscription activations exactly once.

Flow:
1. initialize(): ask the gateway for a payment page, then record a pending
   ledger row. Nothing is written if the gateway call fails.
2. verify() / handle_callback() / cancel(): re-query the gateway for the
   authoritative status and resolve the pending row. The conditional
   ledger transition and the account activation commit together; only the
   caller whose UPDATE matched the pending row runs the activation.

A callback body is only a trigger. Its status field is never trusted.
"""

import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streamgate.config import settings
from streamgate.config.plans import DEFAULT_PLAN_CATALOG, PlanCatalog
from streamgate.entitlements.cache import EntitlementCache
from streamgate.integrations.apaym.gateway_client import ApaymGatewayError
from streamgate.models.account import Account
from streamgate.models.payment_transaction import PaymentState, PaymentTransaction
from streamgate.payments.errors import (
    GatewayError,
    InvalidPlanError,
    InvalidSignatureError,
    TransactionNotFoundError,
)
from streamgate.payments.ledger import PaymentLedger
from streamgate.payments.signatures import verify_callback_signature
from streamgate.platform.clock import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

_TRANSACTION_ID_ALPHABET = string.ascii_letters + string.digits


def generate_transaction_id(
    prefix: str = settings.TRANSACTION_ID_PREFIX,
    length: int = settings.TRANSACTION_ID_RANDOM_LENGTH,
) -> str:
    return prefix + "".join(secrets.choice(_TRANSACTION_ID_ALPHABET) for _ in range(length))


@dataclass
class PaymentInitialization:
    """What the client needs to send the customer to the gateway."""
    transaction_id: str
    payment_url: str
    amount: int
    currency: str

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "payment_url": self.payment_url,
            "amount": self.amount,
            "currency": self.currency,
        }


@dataclass
class VerificationResult:
    """Outcome of a verify call. already_terminal marks an idempotent short-circuit."""
    transaction_id: str
    state: PaymentState
    amount: int
    currency: str
    plan_kind: str
    subscription_ends_at: Optional[datetime] = None
    details: Dict[str, Any] = field(default_factory=dict)
    already_terminal: bool = False

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "status": PaymentState(self.state).value,
            "amount": self.amount,
            "currency": self.currency,
            "plan_kind": self.plan_kind,
            "subscription_ends_at": (
                self.subscription_ends_at.isoformat() if self.subscription_ends_at else None
            ),
            "details": self.details,
            "already_terminal": self.already_terminal,
        }


class PaymentReconciler:
    """Orchestrates gateway calls, ledger transitions and entitlement activation."""

    def __init__(
        self,
        db_session: Session,
        gateway,
        *,
        plan_catalog: Optional[PlanCatalog] = None,
        callback_secret: Optional[str] = None,
        cache: Optional[EntitlementCache] = None,
        clock: Optional[Clock] = None,
        callback_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        currency: Optional[str] = None,
    ):
        self.db = db_session
        self.gateway = gateway
        self.ledger = PaymentLedger(db_session)
        self.plan_catalog = plan_catalog or DEFAULT_PLAN_CATALOG
        self.callback_secret = (
            settings.APAYM_API_SECRET if callback_secret is None else callback_secret
        )
        self.cache = cache or EntitlementCache()
        self._clock = clock or utc_now
        self.callback_url = callback_url or settings.PAYMENT_CALLBACK_URL
        self.cancel_url = cancel_url or settings.PAYMENT_CANCEL_URL
        self.currency = currency or settings.PAYMENT_CURRENCY

    async def initialize(self, account: Account, plan_kind: str) -> PaymentInitialization:
        """
        Start a purchase of `plan_kind` for `account`.

        Raises:
            InvalidPlanError: plan not in the catalog
            GatewayError: gateway unreachable or rejected the request
        """
        plan = self.plan_catalog.lookup(plan_kind)
        if plan is None:
            raise InvalidPlanError(plan_kind)

        transaction_id = generate_transaction_id()
        try:
            initiation = await self.gateway.initiate_transaction(
                amount=plan.price,
                currency=self.currency,
                transaction_id=transaction_id,
                callback_url=self.callback_url,
                cancel_url=self.cancel_url,
                customer={"email": account.email, "name": account.name},
                metadata={"account_id": account.id, "plan_kind": plan.plan_kind.value},
            )
        except ApaymGatewayError as e:
            logger.warning("Payment initialization failed at gateway", extra={
                "transaction_id": transaction_id,
                "account_id": account.id,
                "gateway_code": e.code,
            })
            raise GatewayError(
                f"Payment initialization failed: {e}",
                transaction_id=transaction_id,
                details={"gateway_code": e.code},
            ) from e

        self.ledger.record_pending(
            transaction_id=transaction_id,
            account_id=account.id,
            plan_kind=plan.plan_kind.value,
            amount=plan.price,
            currency=self.currency,
            duration_days=plan.duration_days,
            gateway_reference=initiation.gateway_reference,
            payment_url=initiation.payment_url,
            created_at=self._clock(),
        )

        return PaymentInitialization(
            transaction_id=transaction_id,
            payment_url=initiation.payment_url,
            amount=plan.price,
            currency=self.currency,
        )

    async def verify(self, transaction_id: str) -> VerificationResult:
        """
        Resolve a transaction against the gateway's authoritative status.

        Terminal rows short-circuit without calling the gateway.

        Raises:
            TransactionNotFoundError: no ledger row for transaction_id
            GatewayError: gateway unreachable; the row stays pending
        """
        row = self.ledger.get(transaction_id)
        if row is None:
            raise TransactionNotFoundError(transaction_id)
        if row.is_terminal:
            return self._result(row, already_terminal=True)

        account_id = row.account_id
        duration_days = row.duration_days
        previous_payload = list(row.verification_payload or [])

        try:
            gateway_status = await self.gateway.query_status(transaction_id)
        except ApaymGatewayError as e:
            logger.warning("Payment verification failed at gateway", extra={
                "transaction_id": transaction_id,
                "gateway_code": e.code,
            })
            raise GatewayError(
                f"Payment verification failed: {e}",
                transaction_id=transaction_id,
                details={"gateway_code": e.code},
            ) from e

        now = self._clock()
        completed = gateway_status.is_success
        try:
            if completed:
                won = self.ledger.transition(
                    transaction_id,
                    PaymentState.COMPLETED,
                    gateway_response=gateway_status.raw,
                    previous_payload=previous_payload,
                    resolved_at=now,
                    subscription_ends_at=now + timedelta(days=duration_days),
                )
                if won:
                    self._activate(account_id, now)
            else:
                won = self.ledger.transition(
                    transaction_id,
                    PaymentState.FAILED,
                    gateway_response=gateway_status.raw,
                    previous_payload=previous_payload,
                    resolved_at=now,
                )

            if won:
                self.db.commit()
            else:
                self.db.rollback()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        row = self.ledger.get(transaction_id)
        if not won:
            logger.info("Payment already resolved by a concurrent caller", extra={
                "transaction_id": transaction_id,
                "state": PaymentState(row.state).value,
            })
            return self._result(row, already_terminal=True)

        if completed:
            self.cache.invalidate(account_id)

        logger.info("Payment resolved", extra={
            "transaction_id": transaction_id,
            "account_id": account_id,
            "plan_kind": row.plan_kind,
            "state": PaymentState(row.state).value,
        })
        return self._result(row, already_terminal=False)

    async def handle_callback(self, raw_payload: Mapping[str, Any]) -> VerificationResult:
        """
        Verify the callback signature, then resolve via verify().

        Raises:
            InvalidSignatureError: missing secret, id or signature, or mismatch
        """
        if not verify_callback_signature(raw_payload, self.callback_secret):
            logger.warning("Rejected payment callback with invalid signature", extra={
                "has_transaction_id": bool(raw_payload.get("transaction_id")),
                "has_signature": bool(raw_payload.get("signature")),
            })
            raise InvalidSignatureError()

        return await self.verify(raw_payload["transaction_id"])

    async def cancel(self, transaction_id: str) -> VerificationResult:
        """A cancel redirect is only a hint; the gateway status decides."""
        logger.info("Payment cancel redirect received", extra={"transaction_id": transaction_id})
        return await self.verify(transaction_id)

    def _activate(self, account_id: str, now: datetime) -> None:
        self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(
                has_standing_subscription=True,
                trial_expires_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _result(row: PaymentTransaction, *, already_terminal: bool) -> VerificationResult:
        return VerificationResult(
            transaction_id=row.transaction_id,
            state=PaymentState(row.state),
            amount=row.amount,
            currency=row.currency,
            plan_kind=row.plan_kind,
            subscription_ends_at=ensure_utc(row.subscription_ends_at),
            details={
                "gateway_reference": row.gateway_reference,
                "payment_url": row.payment_url,
                "verification_payload": list(row.verification_payload or []),
            },
            already_terminal=already_terminal,
        )
