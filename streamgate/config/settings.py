"""
Runtime configuration for the entitlement and payment engine.

All values are read from the environment once at import time.
"""

import os

# Storage
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./streamgate.db")
REDIS_URL = os.getenv("REDIS_URL")

# Account policy
MAX_DEVICES_PER_ACCOUNT = int(os.getenv("MAX_DEVICES_PER_ACCOUNT", "2"))
TRIAL_PERIOD_HOURS = int(os.getenv("TRIAL_PERIOD_HOURS", "24"))

# Payment gateway (Apaym)
APAYM_BASE_URL = os.getenv("APAYM_BASE_URL", "https://api.apaym.com/v1")
APAYM_API_KEY = os.getenv("APAYM_API_KEY", "")
APAYM_API_SECRET = os.getenv("APAYM_API_SECRET", "")
APAYM_TIMEOUT_SECONDS = float(os.getenv("APAYM_TIMEOUT_SECONDS", "10"))

PAYMENT_METHOD = "apaym"
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "XOF")
PAYMENT_CALLBACK_URL = os.getenv(
    "PAYMENT_CALLBACK_URL", "http://localhost:8000/webhooks/payments/callback"
)
PAYMENT_CANCEL_URL = os.getenv(
    "PAYMENT_CANCEL_URL", "http://localhost:8000/api/payments/cancel"
)
TRANSACTION_ID_PREFIX = os.getenv("TRANSACTION_ID_PREFIX", "GFLIX-")
TRANSACTION_ID_RANDOM_LENGTH = 20

# Entitlement cache. Must stay well under the shortest plan (1 day).
ENTITLEMENT_CACHE_TTL_SECONDS = int(os.getenv("ENTITLEMENT_CACHE_TTL_SECONDS", "60"))

# Reconciliation worker
PENDING_RECONCILE_AFTER_MINUTES = int(os.getenv("PENDING_RECONCILE_AFTER_MINUTES", "15"))
RECONCILE_INTERVAL_SECONDS = int(os.getenv("RECONCILE_INTERVAL_SECONDS", "300"))
RECONCILE_BATCH_SIZE = int(os.getenv("RECONCILE_BATCH_SIZE", "100"))

# Payment history pagination
PAYMENT_HISTORY_PER_PAGE = int(os.getenv("PAYMENT_HISTORY_PER_PAGE", "15"))
PAYMENT_HISTORY_MAX_PER_PAGE = int(os.getenv("PAYMENT_HISTORY_MAX_PER_PAGE", "100"))
