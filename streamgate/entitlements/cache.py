from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from streamgate.config import settings
from streamgate.entitlements.models import Entitlement
from streamgate.platform.clock import utc_now

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 2


class EntitlementCache:
    """Redis-backed per-account entitlement cache with in-memory fallback.

    An entry expires at its evaluated_at + ttl, compared against the `now`
    the caller passes to get(), so an injected clock governs expiry. The
    reconciler invalidates an account's entry as soon as a paid activation
    commits.
    """

    def __init__(self, redis_url: Optional[str] = None, ttl_seconds: Optional[int] = None) -> None:
        self._ttl_seconds = ttl_seconds or settings.ENTITLEMENT_CACHE_TTL_SECONDS
        self._redis = None
        self._mem: Dict[str, tuple[datetime, dict]] = {}
        redis_url = settings.REDIS_URL if redis_url is None else redis_url

        if redis_url:
            try:
                import redis

                self._redis = redis.from_url(redis_url, decode_responses=True)
                self._redis.ping()
            except Exception:
                logger.warning("Redis unavailable, using in-memory entitlement cache", exc_info=True)
                self._redis = None

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @staticmethod
    def _require_account_id(account_id: str) -> str:
        normalized = str(account_id).strip()
        if not normalized:
            raise ValueError("account_id is required")
        return normalized

    @staticmethod
    def _key(account_id: str) -> str:
        return f"entitlements:v{CACHE_SCHEMA_VERSION}:{account_id}"

    def get(self, account_id: str, *, now: Optional[datetime] = None) -> Optional[Entitlement]:
        """Return the cached entitlement unless it has expired as of `now`."""
        key = self._key(self._require_account_id(account_id))
        now = utc_now() if now is None else now

        if self._redis is not None:
            try:
                raw = self._redis.get(key)
            except Exception:
                logger.warning("Entitlement cache get failed", extra={"account_id": account_id}, exc_info=True)
                return None
            if not raw:
                return None
            payload = json.loads(raw)
            if now >= datetime.fromisoformat(payload["expires_at"]):
                return None
            return _decode_entitlement(payload)

        data = self._mem.get(key)
        if not data:
            return None

        expires_at, payload = data
        if now >= expires_at:
            self._mem.pop(key, None)
            return None
        return _decode_entitlement(payload)

    def set(self, entitlement: Entitlement, *, ttl_seconds: Optional[int] = None) -> None:
        """Cache until evaluated_at + ttl. The ttl is capped at the configured default."""
        key = self._key(self._require_account_id(entitlement.account_id))
        ttl = self._ttl_seconds if ttl_seconds is None else min(ttl_seconds, self._ttl_seconds)
        if ttl <= 0:
            return
        expires_at = entitlement.evaluated_at + timedelta(seconds=ttl)
        payload = _encode_entitlement(entitlement, expires_at)

        if self._redis is not None:
            try:
                self._redis.setex(key, ttl, json.dumps(payload))
            except Exception:
                logger.warning("Entitlement cache set failed", extra={"account_id": entitlement.account_id}, exc_info=True)
            return

        self._mem[key] = (expires_at, payload)

    def invalidate(self, account_id: str) -> None:
        key = self._key(self._require_account_id(account_id))
        if self._redis is not None:
            try:
                self._redis.delete(key)
            except Exception:
                logger.warning("Entitlement cache delete failed", extra={"account_id": account_id}, exc_info=True)
        self._mem.pop(key, None)


def _encode_entitlement(entitlement: Entitlement, expires_at: datetime) -> dict:
    return {
        "schema_version": CACHE_SCHEMA_VERSION,
        "account_id": entitlement.account_id,
        "can_stream": entitlement.can_stream,
        "is_premium": entitlement.is_premium,
        "shows_ads": entitlement.shows_ads,
        "active_until": entitlement.active_until.isoformat() if entitlement.active_until else None,
        "is_in_trial": entitlement.is_in_trial,
        "evaluated_at": entitlement.evaluated_at.isoformat(),
        "expires_at": expires_at.isoformat(),
    }


def _decode_entitlement(raw: dict) -> Entitlement:
    if int(raw.get("schema_version", CACHE_SCHEMA_VERSION)) != CACHE_SCHEMA_VERSION:
        raise ValueError("Unsupported entitlement cache schema version")

    active_until = raw.get("active_until")
    return Entitlement(
        account_id=raw["account_id"],
        can_stream=bool(raw["can_stream"]),
        is_premium=bool(raw["is_premium"]),
        shows_ads=bool(raw["shows_ads"]),
        active_until=datetime.fromisoformat(active_until) if active_until else None,
        is_in_trial=bool(raw.get("is_in_trial", False)),
        evaluated_at=datetime.fromisoformat(raw["evaluated_at"]),
    )
