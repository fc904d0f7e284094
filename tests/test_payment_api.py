"""Payment HTTP endpoints"""

from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.core.database import get_session_factory
from app.api.v1.payments.router import get_payment_service
from app.api.v1.payments.services import PaymentService
from app.models import OrderPaymentStatus as S
from tests.factories import (
    captured_body,
    order_status,
    seed_order,
    sign_checkout,
    sign_webhook,
    webhook_body,
)

WEBHOOK_URL = "/api/v1/payments/webhooks/razorpay"


@pytest.fixture
def razorpay():
    client = MagicMock()
    client.create_order.return_value = {"id": "order_NEW1", "amount": 5000, "currency": "INR", "status": "created"}
    client.fetch_payment.return_value = {"id": "pay_1", "amount": 5000}
    client.create_refund.return_value = {"id": "rfnd_1", "amount": 2000, "status": "processed"}
    return client


@pytest.fixture
def enqueue(monkeypatch):
    task = MagicMock()
    monkeypatch.setattr("app.tasks.payment_tasks.process_webhook_event", task)
    return task.delay


@pytest_asyncio.fixture
async def client(session_factory, razorpay):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(
        session_factory, client_factory=lambda: razorpay
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def signed(body: bytes):
    return {"X-Razorpay-Signature": sign_webhook(body), "Content-Type": "application/json"}


class TestWebhookEndpoint:

    async def test_valid_webhook_is_acknowledged_and_queued(self, client, enqueue):
        body = captured_body("pay_1", "order_abc")

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 200
        assert response.content == b""
        enqueue.assert_called_once_with("razorpay", body.decode("utf-8"))

    async def test_unknown_provider(self, client, enqueue):
        body = captured_body("pay_1", "order_abc")

        response = await client.post("/api/v1/payments/webhooks/paypal", content=body, headers=signed(body))

        assert response.status_code == 404
        enqueue.assert_not_called()

    async def test_bad_signature(self, client, enqueue):
        body = captured_body("pay_1", "order_abc")
        headers = signed(captured_body("pay_2", "order_abc"))

        response = await client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_SIGNATURE"
        enqueue.assert_not_called()

    async def test_missing_signature(self, client, enqueue):
        response = await client.post(WEBHOOK_URL, content=captured_body("pay_1", "order_abc"))

        assert response.status_code == 400
        enqueue.assert_not_called()

    async def test_malformed_payload(self, client, enqueue, store):
        body = b'{"event": "payment.captured", "payload": '

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert 400 <= response.status_code < 500
        assert response.json()["error_code"] == "MALFORMED_PAYLOAD"
        enqueue.assert_not_called()
        assert store.data == {}

    async def test_unsupported_event_is_acknowledged_only(self, client, enqueue):
        body = webhook_body("refund.created", refund={"id": "rfnd_1", "payment_id": "pay_1"})

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 200
        enqueue.assert_not_called()

    async def test_missing_webhook_secret(self, client, enqueue, razorpay_settings, monkeypatch):
        monkeypatch.setattr(razorpay_settings, "RAZORPAY_WEBHOOK_SECRET", None)
        body = captured_body("pay_1", "order_abc")

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 503
        assert response.json()["error_code"] == "CONFIGURATION_ERROR"
        enqueue.assert_not_called()

    async def test_queue_unavailable(self, client, enqueue):
        enqueue.side_effect = ConnectionError("broker down")
        body = captured_body("pay_1", "order_abc")

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 503


class TestCheckoutEndpoints:

    async def test_create_provider_order(self, client, session_factory, razorpay):
        await seed_order(session_factory, short_id="ORD1001", provider_order_id=None)

        response = await client.post("/api/v1/payments/orders/ORD1001/razorpay/order")

        assert response.status_code == 201
        assert response.json() == {
            "provider_order_id": "order_NEW1",
            "order_short_id": "ORD1001",
            "amount": 5000,
            "currency": "INR",
            "key_id": "rzp_test_key",
        }
        razorpay.create_order.assert_called_once_with(
            amount=5000,
            currency="INR",
            receipt="order_ORD1001",
            notes={"order_id": "1", "short_id": "ORD1001"},
        )

        # A second checkout reuses the provider order
        again = await client.post("/api/v1/payments/orders/ORD1001/razorpay/order")
        assert again.json()["provider_order_id"] == "order_NEW1"
        assert razorpay.create_order.call_count == 1

    async def test_create_provider_order_for_paid_order(self, client, session_factory):
        await seed_order(session_factory, status=S.PAYMENT_RECEIVED, provider_order_id=None)

        response = await client.post("/api/v1/payments/orders/ORD1001/razorpay/order")

        assert response.status_code == 409
        assert response.json()["error_code"] == "ORDER_NOT_PAYABLE"

    async def test_verify_success(self, client, session_factory):
        order_id, _ = await seed_order(session_factory, provider_order_id="order_abc")

        response = await client.post(
            "/api/v1/payments/orders/ORD1001/razorpay/verify",
            json={
                "payment_id": "pay_1",
                "provider_order_id": "order_abc",
                "signature": sign_checkout("order_abc", "pay_1"),
            },
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Payment verified successfully"}
        assert await order_status(session_factory, order_id) == S.PAYMENT_RECEIVED

    async def test_verify_bad_signature(self, client, session_factory):
        await seed_order(session_factory, provider_order_id="order_abc")

        response = await client.post(
            "/api/v1/payments/orders/ORD1001/razorpay/verify",
            json={"payment_id": "pay_1", "provider_order_id": "order_abc", "signature": "deadbeef"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is False

    async def test_verify_unknown_order(self, client):
        response = await client.post(
            "/api/v1/payments/orders/MISSING/razorpay/verify",
            json={"payment_id": "pay_1", "provider_order_id": "order_abc", "signature": "deadbeef"},
        )

        assert response.status_code == 422
        assert response.json() == {"success": False, "message": "Order not found"}

    async def test_refund(self, client, session_factory):
        order_id, _ = await seed_order(
            session_factory,
            status=S.PAYMENT_RECEIVED,
            provider_order_id="order_abc",
            provider_payment_id="pay_1",
            amount_received=5000,
        )

        response = await client.post(
            f"/api/v1/payments/orders/{order_id}/razorpay/refund",
            json={"amount": 2000, "currency": "INR"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "refund_id": "rfnd_1",
            "payment_id": "pay_1",
            "amount": 2000,
            "currency": "INR",
            "status": "processed",
        }
        assert await order_status(session_factory, order_id) == S.PARTIALLY_REFUNDED

    async def test_refund_not_eligible(self, client, session_factory):
        order_id, _ = await seed_order(session_factory, provider_order_id="order_abc")

        response = await client.post(
            f"/api/v1/payments/orders/{order_id}/razorpay/refund",
            json={"amount": 2000, "currency": "INR"},
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "REFUND_NOT_ELIGIBLE"


class TestProvidersEndpoint:

    async def test_configured(self, client):
        response = await client.get("/api/v1/payments/providers")

        assert response.status_code == 200
        assert response.json() == {"providers": [{
            "name": "razorpay",
            "enabled": True,
            "credentials": {
                "key_id_configured": True,
                "key_secret_configured": True,
                "webhook_secret_configured": True,
            },
        }]}

    async def test_missing_secret_disables_provider(self, client, razorpay_settings, monkeypatch):
        monkeypatch.setattr(razorpay_settings, "RAZORPAY_WEBHOOK_SECRET", None)

        response = await client.get("/api/v1/payments/providers")

        provider = response.json()["providers"][0]
        assert provider["enabled"] is False
        assert provider["credentials"]["webhook_secret_configured"] is False


async def test_health_reports_redis(client, monkeypatch):
    from unittest.mock import AsyncMock
    from app.core.cache import cache

    monkeypatch.setattr(cache, "ping", AsyncMock(side_effect=ConnectionError("refused")))

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["payments"] == {"razorpay": True}
