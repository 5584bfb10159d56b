def subscribe(client, store_id, email):
    return client.post(f"/stores/{store_id}/subscribers", json={"email": email})


def test_new_subscriber_gets_welcome_email(client, seed, mailer):
    resp = subscribe(client, seed.store_id, "  Fan@Example.com ")

    assert resp.status_code == 201
    body = resp.json()
    assert body["isNewSubscription"] is True
    assert body["subscriptionId"]
    welcome = [m for m in mailer.sent if m.subject == "Welcome to Acme Apparel!"]
    assert len(welcome) == 1
    assert welcome[0].to == "fan@example.com"


def test_existing_subscriber(client, seed, mailer):
    subscribe(client, seed.store_id, "fan@example.com")
    resp = subscribe(client, seed.store_id, "FAN@example.com")

    assert resp.status_code == 200
    assert resp.json() == {"message": "Email already subscribed", "alreadySubscribed": True}
    assert len(mailer.sent) == 1


def test_same_email_in_another_store_is_separate(client, seed):
    subscribe(client, seed.store_id, "fan@example.com")
    assert subscribe(client, seed.other_store_id, "fan@example.com").status_code == 201


def test_failed_welcome_email_keeps_subscription(client, seed, mailer, monkeypatch):
    monkeypatch.setattr(mailer, "send_welcome", lambda email, store_name: False)

    assert subscribe(client, seed.store_id, "fan@example.com").status_code == 201
    assert subscribe(client, seed.store_id, "fan@example.com").status_code == 200


def test_invalid_email(client, seed):
    resp = subscribe(client, seed.store_id, "not-an-email")
    assert resp.status_code == 400
    assert resp.json()["details"][0].startswith("email")


def test_unknown_store(client):
    assert subscribe(client, "missing", "fan@example.com").status_code == 404


def test_listing_requires_owner(client, seed, stranger_headers):
    assert client.get(f"/stores/{seed.store_id}/subscribers").status_code == 401
    assert client.get(f"/stores/{seed.store_id}/subscribers", headers=stranger_headers).status_code == 403


def test_listing_pagination_search_and_sort(client, seed, owner_headers):
    for email in ["carol@example.com", "alice@example.com", "bob@shop.io"]:
        subscribe(client, seed.store_id, email)
    url = f"/stores/{seed.store_id}/subscribers"

    resp = client.get(url, params={"limit": 2, "sortBy": "email", "sortOrder": "asc"}, headers=owner_headers)
    assert resp.status_code == 200
    assert resp.headers["X-Total-Count"] == "3"
    body = resp.json()
    assert [s["email"] for s in body["data"]] == ["alice@example.com", "bob@shop.io"]
    assert body["meta"] == {
        "page": 1, "limit": 2, "total": 3, "totalPages": 2, "hasNextPage": True, "hasPrevPage": False,
    }

    second = client.get(url, params={"limit": 2, "page": 2, "sortBy": "email", "sortOrder": "asc"}, headers=owner_headers)
    assert [s["email"] for s in second.json()["data"]] == ["carol@example.com"]
    assert second.json()["meta"]["hasPrevPage"] is True

    searched = client.get(url, params={"search": "example"}, headers=owner_headers).json()
    assert searched["meta"]["total"] == 2


def test_listing_rejects_unknown_sort_field(client, seed, owner_headers):
    resp = client.get(f"/stores/{seed.store_id}/subscribers", params={"sortBy": "password"}, headers=owner_headers)
    assert resp.status_code == 400
