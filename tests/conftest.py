"""
Shared fixtures.

Every test gets its own in-memory SQLite database. The engine uses a
StaticPool, so several sessions can share the one database; race tests
open a second session to play the concurrent caller.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.orm import sessionmaker

import streamgate.models  # noqa: F401  (registers tables on Base.metadata)
from streamgate.config.plans import PlanCatalog, PlanDefinition, PlanKind
from streamgate.database.session import build_engine
from streamgate.db_base import Base
from streamgate.entitlements.cache import EntitlementCache
from streamgate.integrations.apaym.gateway_client import GatewayInitiation
from streamgate.models.account import Account, AccountStatus
from streamgate.models.payment_transaction import PaymentState, PaymentTransaction

NOW = datetime(2025, 3, 20, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
def engine():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================================
# COLLABORATORS
# ============================================================================

@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def plan_catalog():
    return PlanCatalog([
        PlanDefinition(PlanKind.YEARLY, price=10000, duration_days=365, description="yearly"),
        PlanDefinition(PlanKind.DAILY, price=200, duration_days=1, description="daily"),
        PlanDefinition(PlanKind.PREMIUM_YEARLY, price=15000, duration_days=365, description="premium"),
    ])


@pytest.fixture
def callback_secret():
    return "test-callback-secret"


@pytest.fixture
def cache():
    """In-memory cache (empty redis_url disables Redis)."""
    return EntitlementCache(redis_url="")


@pytest.fixture
def gateway():
    """Gateway double. initiate succeeds; query_status must be set per test."""
    gateway = AsyncMock()
    gateway.initiate_transaction.return_value = GatewayInitiation(
        payment_url="https://pay.example.test/checkout/abc",
        gateway_reference="APM-REF-1",
        raw={"payment_url": "https://pay.example.test/checkout/abc", "reference": "APM-REF-1"},
    )
    return gateway


# ============================================================================
# ROW FACTORIES
# ============================================================================

@pytest.fixture
def make_account(db_session, clock):
    """Insert an account directly. Trial defaults to 24h from the fixed clock."""

    def _make(
        *,
        email=None,
        status=AccountStatus.ACTIVE,
        trial_expires_at="default",
        has_standing_subscription=False,
        connected_device_count=0,
    ) -> Account:
        if trial_expires_at == "default":
            trial_expires_at = clock() + timedelta(hours=24)
        account = Account(
            id=str(uuid.uuid4()),
            email=email or f"{uuid.uuid4().hex[:8]}@example.test",
            name="Test Customer",
            status=status,
            trial_expires_at=trial_expires_at,
            has_standing_subscription=has_standing_subscription,
            connected_device_count=connected_device_count,
            created_at=clock(),
            updated_at=clock(),
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture
def add_payment(db_session, clock):
    """Insert a ledger row directly, bypassing the reconciler."""

    def _add(
        account,
        *,
        plan_kind=PlanKind.YEARLY,
        state=PaymentState.COMPLETED,
        amount=10000,
        duration_days=365,
        subscription_ends_at=None,
        created_at=None,
        transaction_id=None,
    ) -> PaymentTransaction:
        row = PaymentTransaction(
            transaction_id=transaction_id or f"GFLIX-{uuid.uuid4().hex[:20]}",
            account_id=account.id,
            plan_kind=PlanKind(plan_kind).value,
            amount=amount,
            currency="XOF",
            duration_days=duration_days,
            payment_method="apaym",
            state=state,
            verification_payload=[],
            subscription_ends_at=subscription_ends_at,
            created_at=created_at or clock(),
            updated_at=created_at or clock(),
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _add
