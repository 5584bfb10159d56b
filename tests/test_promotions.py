from datetime import datetime, timedelta, timezone

import pytest


def window(days_from_now_start, days_from_now_end):
    now = datetime.now(timezone.utc)
    return (
        (now + timedelta(days=days_from_now_start)).isoformat(),
        (now + timedelta(days=days_from_now_end)).isoformat(),
    )


def promo_payload(code="SAVE10", start=-1, end=30, **overrides):
    start_date, end_date = window(start, end)
    payload = {"code": code, "discount": 10, "type": "PERCENTAGE", "startDate": start_date, "endDate": end_date}
    payload.update(overrides)
    return payload


@pytest.fixture
def create_promo(client, seed, owner_headers):
    def _create(**kwargs):
        resp = client.post(f"/stores/{seed.store_id}/promotions", json=promo_payload(**kwargs), headers=owner_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _create


def test_owner_creates_promotion(create_promo, seed):
    promo = create_promo()
    assert promo["code"] == "SAVE10"
    assert promo["storeId"] == seed.store_id
    assert promo["usesCount"] == 0
    assert promo["isActive"] is True


def test_create_requires_store_owner(client, seed, stranger_headers):
    resp = client.post(f"/stores/{seed.store_id}/promotions", json=promo_payload(), headers=stranger_headers)
    assert resp.status_code == 403


def test_duplicate_code_is_rejected(client, create_promo, seed, owner_headers):
    create_promo(code="SAVE10")
    resp = client.post(f"/stores/{seed.store_id}/promotions", json=promo_payload(code="save10"), headers=owner_headers)
    assert resp.status_code == 400


@pytest.mark.parametrize("overrides", [
    {"start": 5, "end": 1},
    {"discount": 150},
    {"discount": 0},
    {"type": "BOGO"},
])
def test_invalid_promotions(client, seed, owner_headers, overrides):
    resp = client.post(f"/stores/{seed.store_id}/promotions", json=promo_payload(**overrides), headers=owner_headers)
    assert resp.status_code == 400


def test_public_list_only_shows_live_promotions(client, create_promo, seed):
    create_promo(code="LIVE")
    create_promo(code="EXPIRED", start=-30, end=-1)
    create_promo(code="FUTURE", start=2, end=10)
    create_promo(code="PAUSED", isActive=False)

    resp = client.get(f"/stores/{seed.store_id}/promotions")

    assert resp.status_code == 200
    assert [p["code"] for p in resp.json()] == ["LIVE"]


def test_public_list_filters_by_code_case_insensitively(client, create_promo, seed):
    create_promo(code="LIVE")
    create_promo(code="OTHER")

    resp = client.get(f"/stores/{seed.store_id}/promotions", params={"code": "live"})
    assert [p["code"] for p in resp.json()] == ["LIVE"]


def test_get_update_delete(client, create_promo, seed, owner_headers):
    promo = create_promo()
    url = f"/stores/{seed.store_id}/promotions/{promo['id']}"

    assert client.get(url).json()["code"] == "SAVE10"

    resp = client.patch(url, json=promo_payload(code="SAVE20", discount=20), headers=owner_headers)
    assert resp.status_code == 200
    assert resp.json()["code"] == "SAVE20"

    assert client.delete(url, headers=owner_headers).status_code == 200
    assert client.get(url).status_code == 404


def test_promotion_is_redeemed_at_checkout(client, create_promo, order_payload, seed):
    promo = create_promo(maxUses=1)
    order_payload["promoCode"] = "save10"

    assert client.post("/orders", json=order_payload).status_code == 201
    assert client.get(f"/stores/{seed.store_id}/promotions/{promo['id']}").json()["usesCount"] == 1

    resp = client.post("/orders", json=order_payload)
    assert resp.status_code == 400
    assert "usage limit" in resp.json()["details"][0]
    assert client.get(f"/stores/{seed.store_id}/orders").json()["pagination"]["totalOrders"] == 1


def test_per_customer_cap(client, create_promo, order_payload):
    create_promo(maxUsesPerUser=1)
    order_payload["promoCode"] = "SAVE10"

    assert client.post("/orders", json=order_payload).status_code == 201
    resp = client.post("/orders", json=order_payload)
    assert resp.status_code == 400
    assert "maximum number of times" in resp.json()["details"][0]


def test_expired_code_cannot_be_used(client, create_promo, order_payload, gateway):
    create_promo(code="OLD", start=-30, end=-1)
    order_payload["promoCode"] = "OLD"

    resp = client.post("/orders", json=order_payload)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid promo code"
    assert gateway.orders == []


def test_partial_update_keeps_unsent_fields(client, create_promo, seed, owner_headers):
    promo = create_promo(maxUses=5)
    url = f"/stores/{seed.store_id}/promotions/{promo['id']}"

    resp = client.patch(url, json={"isActive": False}, headers=owner_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["isActive"] is False
    assert body["code"] == "SAVE10"
    assert body["maxUses"] == 5
    assert body["startDate"] == promo["startDate"]


def test_partial_update_checks_merged_window(client, create_promo, seed, owner_headers):
    promo = create_promo()
    url = f"/stores/{seed.store_id}/promotions/{promo['id']}"
    before_start, _ = window(-10, 0)

    resp = client.patch(url, json={"endDate": before_start}, headers=owner_headers)
    assert resp.status_code == 400
    assert resp.json()["details"] == ["endDate must not be before startDate"]

    resp = client.patch(url, json={"discount": 150}, headers=owner_headers)
    assert resp.status_code == 400
    assert client.get(url).json()["discount"] == promo["discount"]


def test_partial_update_rejects_null_code(client, create_promo, seed, owner_headers):
    promo = create_promo()
    resp = client.patch(
        f"/stores/{seed.store_id}/promotions/{promo['id']}", json={"code": None}, headers=owner_headers
    )
    assert resp.status_code == 400
    assert resp.json()["details"] == ["code cannot be null"]


def test_redeemed_promotion_cannot_be_deleted(client, create_promo, order_payload, seed, owner_headers):
    promo = create_promo()
    order_payload["promoCode"] = "SAVE10"
    assert client.post("/orders", json=order_payload).status_code == 201
    url = f"/stores/{seed.store_id}/promotions/{promo['id']}"

    resp = client.delete(url, headers=owner_headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Promo code has been used"
    assert client.get(url).status_code == 200

    assert client.patch(url, json={"isActive": False}, headers=owner_headers).json()["isActive"] is False
    assert client.get(f"/stores/{seed.store_id}/promotions").json() == []
