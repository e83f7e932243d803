"""
HTTP surface tests.

The app is built with create_app(); dependencies are overridden to use the
test database, a gateway double and the fixed clock. A small test
middleware stands in for the upstream auth layer and puts the account id
on request.state.
"""

from datetime import timedelta

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from streamgate.api.dependencies import (
    get_db_session,
    get_entitlement_service,
    get_gateway_client,
    get_plan_catalog,
    get_reconciler,
)
from streamgate.config.plans import PlanKind
from streamgate.entitlements.service import EntitlementService
from streamgate.integrations.apaym.gateway_client import ApaymGatewayError, GatewayStatus
from streamgate.main import create_app
from streamgate.models.account import Account
from streamgate.models.payment_transaction import PaymentState
from streamgate.payments.reconciler import PaymentReconciler
from streamgate.payments.signatures import compute_callback_signature


@pytest.fixture
def app(db_session, gateway, plan_catalog, callback_secret, cache, clock):
    app = create_app()

    @app.middleware("http")
    async def fake_auth(request: Request, call_next):
        account_id = request.headers.get("X-Test-Account-ID")
        if account_id:
            request.state.account_id = account_id
        request.state.is_admin = request.headers.get("X-Test-Admin") == "1"
        return await call_next(request)

    app.dependency_overrides[get_db_session] = lambda: db_session
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    app.dependency_overrides[get_plan_catalog] = lambda: plan_catalog
    app.dependency_overrides[get_entitlement_service] = lambda: EntitlementService(
        db_session, cache=cache, clock=clock,
    )
    app.dependency_overrides[get_reconciler] = lambda: PaymentReconciler(
        db_session,
        gateway,
        plan_catalog=plan_catalog,
        callback_secret=callback_secret,
        cache=cache,
        clock=clock,
    )
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _as(account):
    return {"X-Test-Account-ID": account.id}


# ============================================================================
# TEST SUITE: PUBLIC ROUTES
# ============================================================================

class TestPublicRoutes:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert "X-Correlation-ID" in response.headers

    def test_list_plans(self, client):
        response = client.get("/api/subscriptions/plans")

        assert response.status_code == 200
        plans = {p["plan_kind"]: p for p in response.json()}
        assert plans["yearly"]["price"] == 10000
        assert plans["daily"]["duration_days"] == 1
        assert plans["premium_yearly"]["price"] == 15000

    def test_missing_account_context_is_401(self, client):
        response = client.get("/api/entitlements")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"


# ============================================================================
# TEST SUITE: ENTITLEMENTS & ADS
# ============================================================================

class TestEntitlementRoutes:

    def test_trial_account_entitlement(self, client, make_account):
        account = make_account()

        response = client.get("/api/entitlements", headers=_as(account))

        assert response.status_code == 200
        data = response.json()
        assert data["can_stream"] is True
        assert data["shows_ads"] is True
        assert data["is_in_trial"] is True

    def test_unknown_account_is_404(self, client):
        response = client.get("/api/entitlements", headers={"X-Test-Account-ID": "ghost"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_ad_eligibility_for_premium(self, client, make_account, add_payment, clock):
        account = make_account()
        add_payment(account, plan_kind=PlanKind.PREMIUM_YEARLY, subscription_ends_at=clock() + timedelta(days=10))

        response = client.get("/api/ads/eligibility", headers=_as(account))

        assert response.status_code == 200
        assert response.json() == {"account_id": account.id, "show_ads": False}

    def test_subscription_details(self, client, make_account, add_payment, clock):
        account = make_account(trial_expires_at=None)
        add_payment(account, plan_kind=PlanKind.YEARLY, subscription_ends_at=clock() + timedelta(days=200))

        response = client.get("/api/subscriptions/details", headers=_as(account))

        assert response.status_code == 200
        data = response.json()
        assert data["has_active_subscription"] is True
        assert data["subscription_type"] == "yearly"
        assert data["shows_ads"] is True


# ============================================================================
# TEST SUITE: PAYMENTS
# ============================================================================

class TestPaymentRoutes:

    def test_initialize_returns_payment_url(self, client, make_account):
        account = make_account()

        response = client.post(
            "/api/payments/initialize", json={"subscription_type": "daily"}, headers=_as(account),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_url"] == "https://pay.example.test/checkout/abc"
        assert data["amount"] == 200
        assert data["currency"] == "XOF"
        assert data["transaction_id"].startswith("GFLIX-")

    def test_initialize_unknown_plan_is_400(self, client, make_account):
        response = client.post(
            "/api/payments/initialize", json={"subscription_type": "weekly"}, headers=_as(make_account()),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PLAN"

    def test_initialize_gateway_down_is_503_retryable(self, client, gateway, make_account):
        gateway.initiate_transaction.side_effect = ApaymGatewayError("Request failed: refused")

        response = client.post(
            "/api/payments/initialize", json={"subscription_type": "yearly"}, headers=_as(make_account()),
        )

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "GATEWAY_ERROR"
        assert error["details"]["retryable"] is True

    def test_verify_completes_payment(self, client, gateway, make_account, add_payment):
        account = make_account()
        row = add_payment(account, state=PaymentState.PENDING)
        gateway.query_status.return_value = GatewayStatus(status="success", raw={"status": "success"})

        response = client.post(
            "/api/payments/verify", json={"transaction_id": row.transaction_id}, headers=_as(account),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["already_terminal"] is False

    def test_verify_unknown_transaction_is_404(self, client, make_account):
        response = client.post(
            "/api/payments/verify", json={"transaction_id": "GFLIX-none"}, headers=_as(make_account()),
        )

        assert response.status_code == 404

    def test_cancel_uses_gateway_status(self, client, gateway, make_account, add_payment):
        account = make_account()
        row = add_payment(account, state=PaymentState.PENDING)
        gateway.query_status.return_value = GatewayStatus(status="cancelled", raw={"status": "cancelled"})

        response = client.post(
            "/api/payments/cancel", json={"transaction_id": row.transaction_id}, headers=_as(account),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "failed"

    def test_history_is_scoped_to_account(self, client, make_account, add_payment, clock):
        account = make_account()
        other = make_account()
        mine = add_payment(account, state=PaymentState.FAILED)
        add_payment(other, state=PaymentState.FAILED)

        response = client.get("/api/payments/history?per_page=5", headers=_as(account))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["per_page"] == 5
        assert [item["transaction_id"] for item in data["items"]] == [mine.transaction_id]

    def test_statistics_requires_admin(self, client, make_account):
        response = client.get("/api/payments/statistics", headers=_as(make_account()))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"

    def test_statistics_for_admin(self, client, make_account, add_payment, clock):
        account = make_account()
        add_payment(account, amount=10000, subscription_ends_at=clock() + timedelta(days=365))

        response = client.get(
            "/api/payments/statistics", headers={**_as(account), "X-Test-Admin": "1"},
        )

        assert response.status_code == 200
        assert response.json()["completed_transactions"] == 1


# ============================================================================
# TEST SUITE: GATEWAY CALLBACK
# ============================================================================

class TestCallbackWebhook:

    def test_valid_callback_resolves_transaction(
        self, client, gateway, make_account, add_payment, callback_secret, session_factory
    ):
        account = make_account()
        row = add_payment(account, state=PaymentState.PENDING)
        gateway.query_status.return_value = GatewayStatus(status="success", raw={"status": "success"})

        response = client.post("/webhooks/payments/callback", json={
            "transaction_id": row.transaction_id,
            "signature": compute_callback_signature(row.transaction_id, callback_secret),
        })

        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        session = session_factory()
        try:
            assert session.get(Account, account.id).has_standing_subscription is True
        finally:
            session.close()

    def test_bad_signature_is_401(self, client, gateway, make_account, add_payment):
        row = add_payment(make_account(), state=PaymentState.PENDING)

        response = client.post("/webhooks/payments/callback", json={
            "transaction_id": row.transaction_id,
            "signature": "deadbeef",
        })

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
        gateway.query_status.assert_not_awaited()

    def test_invalid_json_is_400(self, client):
        response = client.post(
            "/webhooks/payments/callback",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# ============================================================================
# TEST SUITE: DEVICE SESSIONS
# ============================================================================

class TestSessionRoutes:

    def test_third_device_is_rejected(self, client, make_account):
        account = make_account()

        first = client.post("/api/sessions/acquire", headers=_as(account))
        second = client.post("/api/sessions/acquire", headers=_as(account))
        third = client.post("/api/sessions/acquire", headers=_as(account))

        assert first.json()["connected_device_count"] == 1
        assert second.json()["connected_device_count"] == 2
        assert third.status_code == 403
        assert third.json()["error"]["code"] == "DEVICE_LIMIT_REACHED"

    def test_release_frees_a_slot(self, client, make_account):
        account = make_account(connected_device_count=2)

        released = client.post("/api/sessions/release", headers=_as(account))
        acquired = client.post("/api/sessions/acquire", headers=_as(account))

        assert released.json()["connected_device_count"] == 1
        assert acquired.status_code == 200
        assert acquired.json()["connected_device_count"] == 2
