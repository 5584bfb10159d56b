import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from storefront.domain.models import Order
from storefront.main import create_app
from conftest import sign_payment, sign_webhook, webhook_body


def load_order(database, order_id):
    with database.SessionLocal() as db:
        return db.get(Order, order_id)


def post_webhook(client, body, signature=None):
    headers = {"Content-Type": "application/json"}
    headers["X-Razorpay-Signature"] = sign_webhook(body) if signature is None else signature
    return client.post("/payments/webhook", content=body, headers=headers)


def payment_emails(mailer):
    return [m for m in mailer.sent if m.subject.startswith("Payment received")]


class TestWebhook:
    def test_captured_payment_marks_order_paid(self, client, placed_order, database, mailer):
        order_id = placed_order["order"]["id"]
        resp = post_webhook(client, webhook_body("order_gw_1"))

        assert resp.status_code == 200
        assert resp.json() == {
            "status": "success",
            "message": "Webhook processed successfully",
            "orderId": order_id,
            "paymentStatus": "Captured",
            "alreadyApplied": False,
        }
        order = load_order(database, order_id)
        assert order.is_paid is True
        assert order.order_status == "PROCESSING"
        assert order.payment_method == "upi"
        assert order.payment_source == "webhook"
        assert order.paid_at is not None
        emails = payment_emails(mailer)
        assert len(emails) == 1
        assert emails[0].to == "asha@example.com"

    def test_redelivery_is_idempotent(self, client, placed_order, database, mailer):
        body = webhook_body("order_gw_1")
        first = post_webhook(client, body)
        second = post_webhook(client, body)

        assert first.json()["alreadyApplied"] is False
        assert second.status_code == 200
        assert second.json()["alreadyApplied"] is True
        order = load_order(database, placed_order["order"]["id"])
        assert order.is_paid is True
        assert order.order_status == "PROCESSING"
        assert len(payment_emails(mailer)) == 1

    def test_confirmation_work_runs_in_a_worker_thread(self, client, placed_order, mailer, monkeypatch):
        seen = []
        send = mailer.send

        def tracking_send(*args, **kwargs):
            try:
                asyncio.get_running_loop()
                seen.append("event-loop")
            except RuntimeError:
                seen.append("worker-thread")
            return send(*args, **kwargs)

        monkeypatch.setattr(mailer, "send", tracking_send)
        resp = post_webhook(client, webhook_body("order_gw_1"))

        assert resp.status_code == 200
        assert seen == ["worker-thread"]

    def test_failed_payment_records_method_only(self, client, placed_order, database, mailer):
        resp = post_webhook(client, webhook_body("order_gw_1", status="failed", method="card"))

        assert resp.status_code == 200
        assert resp.json()["paymentStatus"] == "Failed"
        order = load_order(database, placed_order["order"]["id"])
        assert order.is_paid is False
        assert order.order_status == "PENDING"
        assert order.payment_method == "card"
        assert payment_emails(mailer) == []

    def test_failure_after_capture_leaves_paid_order_alone(self, client, placed_order, database):
        post_webhook(client, webhook_body("order_gw_1", method="upi"))
        post_webhook(client, webhook_body("order_gw_1", status="failed", method="card"))

        order = load_order(database, placed_order["order"]["id"])
        assert order.is_paid is True
        assert order.order_status == "PROCESSING"
        assert order.payment_method == "upi"

    def test_tampered_body_is_rejected(self, client, placed_order, database):
        body = webhook_body("order_gw_1")
        signature = sign_webhook(body)
        tampered = body.replace(b"pay_123", b"pay_124")

        resp = post_webhook(client, tampered, signature=signature)

        assert resp.status_code == 403
        assert resp.json()["code"] == "SignatureInvalid"
        assert signature not in resp.text
        assert load_order(database, placed_order["order"]["id"]).is_paid is False

    def test_missing_signature_header(self, client, placed_order):
        resp = client.post("/payments/webhook", content=webhook_body("order_gw_1"))

        assert resp.status_code == 400
        assert resp.json()["code"] == "MissingParameters"

    def test_unknown_gateway_order(self, client, placed_order, database):
        resp = post_webhook(client, webhook_body("order_unknown"))

        assert resp.status_code == 404
        assert resp.json()["code"] == "OrderNotFound"
        assert load_order(database, placed_order["order"]["id"]).is_paid is False

    def test_signed_but_malformed_payload(self, client):
        body = json.dumps({"event": "payment.captured", "payload": {}}).encode()
        resp = post_webhook(client, body)

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid webhook payload"

    def test_signed_but_not_json(self, client):
        resp = post_webhook(client, b"not json")
        assert resp.status_code == 400


class TestClientVerification:
    def test_verify_with_gateway_reference(self, client, placed_order, database, mailer):
        payload = {
            "orderRef": "order_gw_1",
            "paymentRef": "pay_1",
            "signature": sign_payment("order_gw_1", "pay_1"),
        }
        resp = client.post("/payments/verify", json=payload)

        order_id = placed_order["order"]["id"]
        assert resp.status_code == 200
        assert resp.json() == {"status": "success", "orderId": order_id}
        order = load_order(database, order_id)
        assert order.is_paid is True
        assert order.order_status == "PROCESSING"
        assert order.payment_method == "Razorpay"
        assert order.payment_source == "client"
        assert len(payment_emails(mailer)) == 1

    def test_verify_accepts_gateway_field_names(self, client, placed_order):
        payload = {
            "razorpay_order_id": "order_gw_1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": sign_payment("order_gw_1", "pay_1"),
        }
        assert client.post("/payments/verify", json=payload).status_code == 200

    def test_verify_falls_back_to_local_order_id(self, client, placed_order, database):
        order_id = placed_order["order"]["id"]
        payload = {"orderId": order_id, "paymentId": "pay_1", "signature": sign_payment(order_id, "pay_1")}
        resp = client.post("/payments/verify", json=payload)

        assert resp.status_code == 200
        assert load_order(database, order_id).is_paid is True

    def test_swapped_references_are_rejected(self, client, placed_order, database):
        payload = {
            "orderRef": "pay_1",
            "paymentRef": "order_gw_1",
            "signature": sign_payment("order_gw_1", "pay_1"),
        }
        resp = client.post("/payments/verify", json=payload)

        assert resp.status_code == 403
        assert load_order(database, placed_order["order"]["id"]).is_paid is False

    def test_missing_parameters_are_listed(self, client):
        resp = client.post("/payments/verify", json={"orderRef": "order_gw_1"})

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "MissingParameters"
        assert body["details"] == ["paymentRef is required", "signature is required"]

    def test_unknown_order_with_valid_signature(self, client):
        payload = {"orderRef": "order_nope", "paymentRef": "pay_1", "signature": sign_payment("order_nope", "pay_1")}
        resp = client.post("/payments/verify", json=payload)
        assert resp.status_code == 404


class TestConvergence:
    def verify(self, client):
        return client.post("/payments/verify", json={
            "orderRef": "order_gw_1",
            "paymentRef": "pay_123",
            "signature": sign_payment("order_gw_1", "pay_123"),
        })

    def test_webhook_then_client(self, client, placed_order, database, mailer):
        assert post_webhook(client, webhook_body("order_gw_1")).status_code == 200
        assert self.verify(client).status_code == 200

        order = load_order(database, placed_order["order"]["id"])
        assert order.is_paid is True
        assert order.order_status == "PROCESSING"
        assert order.payment_source == "webhook"
        assert len(payment_emails(mailer)) == 1

    def test_client_then_webhook(self, client, placed_order, database, mailer):
        assert self.verify(client).status_code == 200
        resp = post_webhook(client, webhook_body("order_gw_1"))

        assert resp.json()["alreadyApplied"] is True
        order = load_order(database, placed_order["order"]["id"])
        assert order.is_paid is True
        assert order.order_status == "PROCESSING"
        assert order.payment_source == "client"
        assert order.payment_method == "Razorpay"
        assert len(payment_emails(mailer)) == 1


@pytest.mark.parametrize("path", ["/payments/webhook", "/payments/verify"])
def test_missing_secret_is_a_configuration_error(settings, database, gateway, mailer, path):
    settings.RAZORPAY_WEBHOOK_SECRET = ""
    app = create_app(settings=settings, database=database, gateway=gateway, mailer=mailer)
    with TestClient(app) as client:
        resp = client.post(path, content=b"{}", headers={"X-Razorpay-Signature": "abc", "Content-Type": "application/json"})

    assert resp.status_code == 500
    assert resp.json()["code"] == "UpstreamConfigurationError"
