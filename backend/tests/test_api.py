"""
HTTP-level tests against the FastAPI app with an in-memory database.
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select

from realaist.api.v1 import admin as admin_api
from realaist.api.v1 import analytics as analytics_api
from realaist.api.v1 import payments as payments_api
from realaist.config import settings
from realaist.core.database import get_db
from realaist.core.security import compute_paystack_signature, create_session_token
from realaist.main import app
from realaist.middleware.security import limiter
from realaist.models import Payment


def bearer(profile):
    token = create_session_token(profile.id, email=profile.email, role=profile.user_type)
    return {"Authorization": f"Bearer {token}"}


def as_json(submission):
    return json.loads(json.dumps(submission, default=str))


@pytest.fixture
def gateway():
    client = MagicMock()
    client.initialize_transaction = AsyncMock(
        side_effect=lambda **kwargs: {
            "reference": kwargs["reference"],
            "access_code": "ac_abc",
            "authorization_url": "https://checkout.paystack.com/ac_abc",
        }
    )
    client.refund_transaction = AsyncMock(return_value={"status": "pending"})
    return client


@pytest_asyncio.fixture
async def client(session_factory, ads_adapter, gateway, paystack_secret, monkeypatch):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[admin_api.get_ads_adapter] = lambda: ads_adapter
    app.dependency_overrides[admin_api.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[payments_api.get_payment_gateway] = lambda: gateway
    monkeypatch.setattr(settings, "paystack_secret_key", paystack_secret)
    limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


async def submit(client, owner, submission):
    response = await client.post("/api/v1/campaigns", json=as_json(submission), headers=bearer(owner))
    assert response.status_code == 201, response.text
    return response.json()


async def send_webhook(client, payload, secret):
    body = json.dumps(payload).encode()
    return await client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={
            "Content-Type": "application/json",
            "x-paystack-signature": compute_paystack_signature(body, secret),
        },
    )


class TestHealth:

    async def test_liveness(self, client):
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}
        assert response.headers["X-Frame-Options"] == "DENY"

    async def test_request_id_echoed(self, client):
        response = await client.get("/health/live", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    async def test_request_id_generated(self, client):
        response = await client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 32


class TestCampaignEndpoints:
    """Submission and listing."""

    async def test_submit_applies_fee_split(self, client, owner, submission):
        body = await submit(client, owner, submission)

        assert body["status"] == "pending"
        assert body["payment_status"] == "pending"
        assert body["payment_required"] is True
        assert Decimal(str(body["platform_fee"])) == Decimal("4000")
        assert Decimal(str(body["ad_spend"])) == Decimal("6000")
        assert body["campaign_name"].startswith("Property Campaign - ")

    async def test_missing_field_named(self, client, owner, submission):
        del submission["platforms"]

        response = await client.post("/api/v1/campaigns", json=as_json(submission), headers=bearer(owner))

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert response.json()["field"] == "platforms"

    async def test_requires_authentication(self, client, submission):
        response = await client.post("/api/v1/campaigns", json=as_json(submission))
        assert response.status_code == 401
        assert response.json() == {"error": "unauthenticated", "message": "Not authenticated"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_invalid_token(self, client, submission):
        response = await client.get("/api/v1/campaigns", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    async def test_list_only_own(self, client, owner, other_user, submission):
        await submit(client, owner, submission)

        mine = await client.get("/api/v1/campaigns", headers=bearer(owner))
        theirs = await client.get("/api/v1/campaigns", headers=bearer(other_user))

        assert mine.json()["total"] == 1
        assert theirs.json()["total"] == 0

    async def test_foreign_campaign_not_found(self, client, owner, other_user, submission):
        created = await submit(client, owner, submission)

        response = await client.get(f"/api/v1/campaigns/{created['id']}", headers=bearer(other_user))

        assert response.status_code == 404


class TestPaymentFlow:
    """Initialize, webhook, approve over HTTP."""

    async def test_paid_campaign_goes_live(
        self, client, owner, admin, submission, ads_adapter, paystack_secret
    ):
        created = await submit(client, owner, submission)

        init = await client.post(
            "/api/v1/payments/initialize",
            json={"campaign_id": created["id"]},
            headers=bearer(owner),
        )
        assert init.status_code == 200, init.text
        assert init.json()["amount"] == 1_000_000

        webhook = await send_webhook(
            client,
            {
                "event": "charge.success",
                "data": {
                    "reference": init.json()["reference"],
                    "amount": 1_000_000,
                    "currency": "KES",
                    "channel": "card",
                    "paid_at": "2026-10-19T09:30:00.000Z",
                },
            },
            paystack_secret,
        )
        assert webhook.json() == {"status": "received"}

        approved = await client.post(
            f"/api/v1/admin/campaigns/{created['id']}/approve", headers=bearer(admin)
        )

        assert approved.status_code == 200, approved.text
        assert approved.json()["status"] == "active"
        assert approved.json()["google_ads_campaign_id"] == "9876543210"
        ads_adapter.create_campaign.assert_awaited_once()

    async def test_webhook_with_bad_signature_acknowledged(
        self, client, owner, submission, session_factory
    ):
        created = await submit(client, owner, submission)
        init = await client.post(
            "/api/v1/payments/initialize", json={"campaign_id": created["id"]}, headers=bearer(owner)
        )

        response = await send_webhook(
            client,
            {"event": "charge.success", "data": {"reference": init.json()["reference"], "amount": 1}},
            "wrong-secret",
        )

        assert response.status_code == 200
        assert response.json() == {"status": "received"}
        async with session_factory() as session:
            payment = (await session.execute(select(Payment))).scalar_one()
        assert payment.status == "pending"

    async def test_webhook_failure_still_acknowledged(self, client, monkeypatch, paystack_secret):
        async def explode(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(payments_api.payment_service, "handle_webhook", explode)

        response = await send_webhook(client, {"event": "charge.success", "data": {}}, paystack_secret)

        assert response.status_code == 200
        assert response.json() == {"status": "received"}

    async def test_approve_unpaid_refused(self, client, owner, admin, submission, ads_adapter):
        created = await submit(client, owner, submission)

        response = await client.post(
            f"/api/v1/admin/campaigns/{created['id']}/approve", headers=bearer(admin)
        )

        assert response.status_code == 409
        assert response.json()["error"] == "payment_not_confirmed"
        ads_adapter.create_campaign.assert_not_called()


class TestAdminEndpoints:

    async def test_non_admin_forbidden(self, client, owner, submission):
        created = await submit(client, owner, submission)

        response = await client.post(
            f"/api/v1/admin/campaigns/{created['id']}/approve", headers=bearer(owner)
        )

        assert response.status_code == 403
        assert response.json() == {"error": "forbidden", "message": "Admin access required"}

    async def test_mock_admin_cannot_approve(self, client, owner, submission, monkeypatch):
        created = await submit(client, owner, submission)
        monkeypatch.setattr(settings, "allow_mock_sessions", True)

        response = await client.post(f"/api/v1/admin/campaigns/{created['id']}/approve")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    async def test_reject_unpaid(self, client, owner, admin, submission, gateway):
        created = await submit(client, owner, submission)

        response = await client.post(
            f"/api/v1/admin/campaigns/{created['id']}/reject",
            json={"reason": "Listing photos missing"},
            headers=bearer(admin),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert response.json()["rejection_reason"] == "Listing photos missing"
        gateway.refund_transaction.assert_not_called()

    async def test_review_queue_filters(self, client, owner, admin, submission):
        await submit(client, owner, submission)

        pending = await client.get(
            "/api/v1/admin/campaigns", params={"status": "pending"}, headers=bearer(admin)
        )
        active = await client.get(
            "/api/v1/admin/campaigns", params={"status": "active"}, headers=bearer(admin)
        )

        assert pending.json()["total"] == 1
        assert active.json()["total"] == 0


class TestAnalyticsEndpoint:

    async def test_unknown_ads_campaign_not_found(self, client, owner, submission):
        analytics_adapter = MagicMock()
        app.dependency_overrides[analytics_api.get_ads_adapter] = lambda: analytics_adapter
        await submit(client, owner, submission)

        response = await client.post(
            "/api/v1/analytics/campaign",
            json={"google_ads_campaign_id": "9876543210"},
            headers=bearer(owner),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestRoiEndpoints:

    async def test_preview(self, client):
        response = await client.post("/api/v1/roi/preview", json={"budget": 100_000, "platforms": ["google"]})

        body = response.json()
        assert response.status_code == 200
        assert body["platform_fee"] == 30_000
        assert body["ad_spend"] == 70_000
        assert body["impressions"] > 0

    async def test_projection_without_platforms(self, client):
        response = await client.post(
            "/api/v1/roi/projection", json={"min_budget": 1000, "max_budget": 2000, "platforms": []}
        )

        assert response.json() == {"points": []}

    async def test_selector_freezes_range_during_drag(self, client):
        response = await client.post(
            "/api/v1/roi/selector",
            json={"budget": 200_000, "drag_start_budget": 50_000, "platforms": ["google"]},
        )

        slider = response.json()["slider"]
        assert slider["frozen"] is True
        assert slider["min"] == 1_000
        assert slider["max"] == 100_000
