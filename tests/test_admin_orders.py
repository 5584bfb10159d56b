from datetime import datetime, timedelta, timezone

import jwt

from storefront.domain.models import Order
from conftest import JWT_SECRET, gateway_failure, sign_webhook, webhook_body


def pay(client):
    body = webhook_body("order_gw_1")
    resp = client.post("/payments/webhook", content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
    assert resp.status_code == 200


def test_update_requires_a_token(client, placed_order, seed):
    order_id = placed_order["order"]["id"]
    resp = client.patch(f"/stores/{seed.store_id}/orders/{order_id}", json={"orderStatus": "SHIPPED"})

    assert resp.status_code == 401
    assert resp.json()["code"] == "AuthenticationError"


def test_update_rejects_expired_token(client, placed_order, seed):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode({"sub": seed.owner_id, "iat": past, "exp": past + timedelta(minutes=5)}, JWT_SECRET, algorithm="HS256")
    resp = client.patch(
        f"/stores/{seed.store_id}/orders/{placed_order['order']['id']}",
        json={"orderStatus": "SHIPPED"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401


def test_update_by_another_store_owner_is_forbidden(client, placed_order, seed, stranger_headers, database):
    order_id = placed_order["order"]["id"]
    resp = client.patch(
        f"/stores/{seed.store_id}/orders/{order_id}",
        json={"orderStatus": "SHIPPED"},
        headers=stranger_headers,
    )

    assert resp.status_code == 403
    with database.SessionLocal() as db:
        assert db.get(Order, order_id).order_status == "PENDING"


def test_owner_updates_status_and_tracking(client, placed_order, seed, owner_headers, mailer):
    order_id = placed_order["order"]["id"]
    resp = client.patch(
        f"/stores/{seed.store_id}/orders/{order_id}",
        json={"orderStatus": "SHIPPED", "trackingId": "TRK-42", "customerPhone": "8888888888"},
        headers=owner_headers,
    )

    assert resp.status_code == 200
    order = resp.json()["order"]
    assert order["orderStatus"] == "SHIPPED"
    assert order["trackingId"] == "TRK-42"
    assert order["phone"] == "8888888888"
    # Manual status changes never mark an order paid
    assert order["isPaid"] is False

    status_mails = [m for m in mailer.sent if "Status Update" in m.subject]
    assert len(status_mails) == 1
    assert "TRK-42" in status_mails[0].html
    assert status_mails[0].from_name == "Acme Apparel"


def test_update_rejects_unknown_status(client, placed_order, seed, owner_headers):
    resp = client.patch(
        f"/stores/{seed.store_id}/orders/{placed_order['order']['id']}",
        json={"orderStatus": "TELEPORTED"},
        headers=owner_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["details"][0].startswith("orderStatus")


def test_update_unknown_order(client, seed, owner_headers):
    resp = client.patch(f"/stores/{seed.store_id}/orders/nope", json={"trackingId": "T"}, headers=owner_headers)
    assert resp.status_code == 404


def test_invoice_requires_paid_order(client, placed_order, seed, owner_headers, gateway):
    resp = client.post(f"/stores/{seed.store_id}/orders/{placed_order['order']['id']}/invoice", headers=owner_headers)

    assert resp.status_code == 400
    assert gateway.invoices == []


def test_invoice_for_paid_order(client, placed_order, seed, owner_headers, gateway, database, mailer):
    order_id = placed_order["order"]["id"]
    pay(client)

    resp = client.post(f"/stores/{seed.store_id}/orders/{order_id}/invoice", headers=owner_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["orderId"] == order_id
    assert body["invoiceId"] == "inv_1"
    assert body["invoiceLink"] == "https://rzp.io/i/inv_1"
    assert body["amount"] == 250000

    sent = gateway.invoices[0]
    assert [item["amount"] for item in sent["line_items"]] == [50000, 150000]
    assert sent["customer"]["billing_address"]["city"] == "Pune"
    assert sent["notes"]["payment_method"] == "upi"

    with database.SessionLocal() as db:
        order = db.get(Order, order_id)
        assert order.invoice_link == "https://rzp.io/i/inv_1"
        assert order.invoice_generated_at is not None
    assert any("rzp.io/i/inv_1" in m.html for m in mailer.sent)


def test_invoice_gateway_failure(client, placed_order, seed, owner_headers, gateway):
    pay(client)
    gateway.fail_with = gateway_failure("Invoice service down", 503)

    resp = client.post(f"/stores/{seed.store_id}/orders/{placed_order['order']['id']}/invoice", headers=owner_headers)

    assert resp.status_code == 502
    assert resp.json()["details"] == ["Invoice service down"]


def test_invoice_without_gateway_id(client, placed_order, seed, owner_headers, gateway, database, monkeypatch):
    pay(client)
    monkeypatch.setattr(gateway, "create_invoice", lambda **kwargs: {"short_url": "https://rzp.io/i/x", "amount": 250000})
    order_id = placed_order["order"]["id"]

    resp = client.post(f"/stores/{seed.store_id}/orders/{order_id}/invoice", headers=owner_headers)

    assert resp.status_code == 502
    assert resp.json()["error"] == "Invoice Generation Failed"
    with database.SessionLocal() as db:
        order = db.get(Order, order_id)
        assert order.gateway_invoice_id is None
        assert order.invoice_link is None
