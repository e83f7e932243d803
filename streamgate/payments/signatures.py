"""
Gateway callback signatures.

The gateway signs the JSON encoding of the transaction id with the shared
API secret: hex(HMAC-SHA256(secret, json.dumps(transaction_id))).
"""

import hashlib
import hmac
import json
from typing import Any, Mapping, Optional


def compute_callback_signature(transaction_id: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        json.dumps(transaction_id).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_callback_signature(payload: Mapping[str, Any], secret: Optional[str]) -> bool:
    """True only when secret, transaction_id and signature are all present and match."""
    if not secret:
        return False

    transaction_id = payload.get("transaction_id")
    signature = payload.get("signature")
    if not isinstance(transaction_id, str) or not transaction_id:
        return False
    if not isinstance(signature, str) or not signature:
        return False

    computed = compute_callback_signature(transaction_id, secret)
    return hmac.compare_digest(computed, signature)
