import json
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from storefront.api.auth import create_access_token
from storefront.application.signatures import compute_signature, payment_signature_message
from storefront.core_settings import Settings
from storefront.domain.models import Color, Customer, Product, ProductVariant, Size, Store
from storefront.infrastructure.db import Database
from storefront.infrastructure.email import Mailer
from storefront.infrastructure.payment_gateway import PaymentGatewayError
from storefront.main import create_app

WEBHOOK_SECRET = "whsec_test_secret"
JWT_SECRET = "test-jwt-secret"


class FakeGateway:
    """Stands in for RazorpayClient; hands out sequential gateway order ids."""

    def __init__(self):
        self.orders = []
        self.invoices = []
        self.fail_with = None
        self.closed = False

    def create_order(self, amount, currency, receipt, notes=None):
        if self.fail_with:
            raise self.fail_with
        gateway_id = f"order_gw_{len(self.orders) + 1}"
        self.orders.append({"id": gateway_id, "amount": amount, "currency": currency, "receipt": receipt, "notes": notes})
        return {"id": gateway_id, "amount": amount, "currency": currency, "status": "created"}

    def create_invoice(self, customer, line_items, description, notes=None, currency="INR"):
        if self.fail_with:
            raise self.fail_with
        invoice_id = f"inv_{len(self.invoices) + 1}"
        amount = sum(item["amount"] * item["quantity"] for item in line_items)
        self.invoices.append({"id": invoice_id, "customer": customer, "line_items": line_items, "notes": notes})
        return {"id": invoice_id, "short_url": f"https://rzp.io/i/{invoice_id}", "amount": amount}

    def close(self):
        self.closed = True


class RecordingMailer(Mailer):
    def __init__(self):
        super().__init__(host="smtp.test")
        self.sent = []

    def send(self, to_email, subject, html, from_name=None):
        self.sent.append(SimpleNamespace(to=to_email, subject=subject, html=html, from_name=from_name))
        return True


def sign_webhook(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return compute_signature(secret, body)


def sign_payment(order_ref: str, payment_ref: str, secret: str = WEBHOOK_SECRET) -> str:
    return compute_signature(secret, payment_signature_message(order_ref, payment_ref))


def webhook_body(gateway_order_id: str, status: str = "captured", method: str = "upi") -> bytes:
    return json.dumps({
        "event": "payment.captured" if status == "captured" else "payment.failed",
        "payload": {
            "payment": {
                "entity": {
                    "id": "pay_123",
                    "order_id": gateway_order_id,
                    "status": status,
                    "method": method,
                    "amount": 250000,
                    "currency": "INR",
                }
            }
        },
    }).encode()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        RAZORPAY_KEY_ID="rzp_test_key",
        RAZORPAY_KEY_SECRET="rzp_test_secret",
        RAZORPAY_WEBHOOK_SECRET=WEBHOOK_SECRET,
        JWT_SECRET=JWT_SECRET,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def database():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enforce_foreign_keys(dbapi_connection, _record):
        # Match Postgres: SQLite ignores foreign keys unless asked
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    db = Database(engine=engine)
    db.init_models()
    yield db
    db.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(settings, database, gateway, mailer):
    return create_app(settings=settings, database=database, gateway=gateway, mailer=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session(database):
    db = database.SessionLocal()
    yield db
    db.close()


@pytest.fixture
def seed(database):
    """One store with a two-variant product, its owner, a customer and a second store."""
    with database.SessionLocal() as db:
        store = Store(name="Acme Apparel", user_id="owner-1")
        other_store = Store(name="Other Shop", user_id="owner-2")
        db.add_all([store, other_store])
        db.flush()

        size_m = Size(store_id=store.id, name="Medium", value="M")
        color = Color(store_id=store.id, name="Black", value="#000000")
        db.add_all([size_m, color])
        db.flush()

        shirt = Product(store_id=store.id, name="Logo Tee", price=Decimal("500.00"))
        jacket = Product(store_id=store.id, name="Rain Jacket", price=Decimal("1500.00"))
        foreign = Product(store_id=other_store.id, name="Foreign Mug", price=Decimal("200.00"))
        db.add_all([shirt, jacket, foreign])
        db.flush()

        shirt_m = ProductVariant(product_id=shirt.id, size_id=size_m.id, color_id=color.id, price=Decimal("500.00"), stock=10)
        jacket_m = ProductVariant(product_id=jacket.id, size_id=size_m.id, price=Decimal("1500.00"), stock=5)
        foreign_v = ProductVariant(product_id=foreign.id, price=Decimal("200.00"), stock=5)
        db.add_all([shirt_m, jacket_m, foreign_v])

        customer = Customer(
            user_id="user-1",
            first_name="Asha",
            last_name="Rao",
            email="asha@example.com",
            phone="9999999999",
            city="Pune",
            state="MH",
            postal_code="411001",
            country="IN",
        )
        db.add(customer)
        db.commit()

        return SimpleNamespace(
            store_id=store.id,
            other_store_id=other_store.id,
            owner_id="owner-1",
            customer_id=customer.id,
            customer_user_id=customer.user_id,
            shirt_id=shirt.id,
            shirt_variant_id=shirt_m.id,
            jacket_id=jacket.id,
            jacket_variant_id=jacket_m.id,
            foreign_product_id=foreign.id,
            foreign_variant_id=foreign_v.id,
        )


@pytest.fixture
def owner_headers(seed):
    return {"Authorization": f"Bearer {create_access_token(seed.owner_id, JWT_SECRET)}"}


@pytest.fixture
def stranger_headers():
    return {"Authorization": f"Bearer {create_access_token('owner-2', JWT_SECRET)}"}


@pytest.fixture
def order_payload(seed):
    return {
        "storeId": seed.store_id,
        "customerId": seed.customer_user_id,
        "totalAmount": 2500,
        "phone": "9999999999",
        "address": "12 MG Road, Pune",
        "orderItems": [
            {"productId": seed.shirt_id, "variantId": seed.shirt_variant_id, "quantity": 2, "unitPrice": 500},
            {"productId": seed.jacket_id, "variantId": seed.jacket_variant_id, "quantity": 1, "unitPrice": 1500},
        ],
    }


@pytest.fixture
def placed_order(client, order_payload):
    """An order that went through checkout and holds a gateway reference."""
    resp = client.post("/orders", json=order_payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def gateway_failure(message="Authentication failed", status_code=401):
    return PaymentGatewayError(message, status_code)
