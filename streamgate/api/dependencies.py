"""
FastAPI dependencies shared by the route modules.

account_id is NEVER accepted from the request body. An upstream auth layer
places the authenticated account on request.state.
"""

from typing import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from streamgate.config.plans import DEFAULT_PLAN_CATALOG, PlanCatalog
from streamgate.database.session import get_db_session_sync
from streamgate.entitlements.cache import EntitlementCache
from streamgate.entitlements.service import EntitlementService
from streamgate.integrations.apaym.gateway_client import ApaymGatewayClient
from streamgate.payments.reconciler import PaymentReconciler
from streamgate.platform.errors import AuthenticationError, PermissionDeniedError
from streamgate.sessions.limiter import DeviceSessionLimiter


def get_db_session(request: Request) -> Iterator[Session]:
    """Session from request state, or a fresh one closed after the request."""
    db = getattr(request.state, "db", None)
    if db is not None:
        yield db
        return
    yield from get_db_session_sync()


def get_current_account_id(request: Request) -> str:
    account_id = getattr(request.state, "account_id", None)
    if not account_id:
        raise AuthenticationError("Missing account context")
    return account_id


def require_admin(request: Request) -> None:
    if not getattr(request.state, "is_admin", False):
        raise PermissionDeniedError("Access denied")


def get_plan_catalog() -> PlanCatalog:
    return DEFAULT_PLAN_CATALOG


def get_entitlement_cache(request: Request) -> EntitlementCache:
    cache = getattr(request.app.state, "entitlement_cache", None)
    if cache is None:
        cache = EntitlementCache()
        request.app.state.entitlement_cache = cache
    return cache


def get_gateway_client(request: Request) -> ApaymGatewayClient:
    gateway = getattr(request.app.state, "gateway_client", None)
    if gateway is None:
        gateway = ApaymGatewayClient()
        request.app.state.gateway_client = gateway
    return gateway


def get_entitlement_service(
    db: Session = Depends(get_db_session),
    cache: EntitlementCache = Depends(get_entitlement_cache),
) -> EntitlementService:
    return EntitlementService(db, cache=cache)


def get_reconciler(
    db: Session = Depends(get_db_session),
    gateway: ApaymGatewayClient = Depends(get_gateway_client),
    cache: EntitlementCache = Depends(get_entitlement_cache),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> PaymentReconciler:
    return PaymentReconciler(db, gateway, plan_catalog=catalog, cache=cache)


def get_session_limiter(db: Session = Depends(get_db_session)) -> DeviceSessionLimiter:
    return DeviceSessionLimiter(db)
