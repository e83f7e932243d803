"""Payment ledger, callback signatures and the reconciler."""

from streamgate.payments.errors import (
    GatewayError,
    InvalidPlanError,
    InvalidSignatureError,
    TransactionNotFoundError,
)
from streamgate.payments.ledger import PaymentLedger, PaymentPage
from streamgate.payments.reconciler import (
    PaymentInitialization,
    PaymentReconciler,
    VerificationResult,
    generate_transaction_id,
)
from streamgate.payments.signatures import compute_callback_signature, verify_callback_signature

__all__ = [
    "GatewayError",
    "InvalidPlanError",
    "InvalidSignatureError",
    "PaymentInitialization",
    "PaymentLedger",
    "PaymentPage",
    "PaymentReconciler",
    "TransactionNotFoundError",
    "VerificationResult",
    "compute_callback_signature",
    "generate_transaction_id",
    "verify_callback_signature",
]
