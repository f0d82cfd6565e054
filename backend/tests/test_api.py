import json

from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from schema.order_db import OrderORM
from schema.payment_db import PaymentORM
from services.signature import compute_signature
from tests.conftest import ADMIN_KEY, KEY_SECRET, WEBHOOK_SECRET


def _rows(database):
    session = database.session()
    try:
        orders = [(o.order_id, o.amount, o.status) for o in session.query(OrderORM).all()]
        payments = [(p.payment_id, p.order_id, p.status) for p in session.query(PaymentORM).all()]
        return orders, payments
    finally:
        session.close()


def _post_webhook(client, payload, secret=WEBHOOK_SECRET):
    body = json.dumps(payload).encode("utf-8")
    return client.post(
        "/api/webhook",
        content=body,
        headers={"content-type": "application/json", "x-razorpay-signature": compute_signature(body, secret)},
    )


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_end_to_end_create_then_verify(client, database):
    response = client.post("/api/create-order", json={"amount": 49900, "currency": "INR"})
    assert response.status_code == 200
    assert response.json()["order"]["id"] == "order_abc"
    assert _rows(database) == ([("order_abc", 49900, "created")], [])

    response = client.post("/api/verify-payment", json={
        "razorpay_order_id": "order_abc",
        "razorpay_payment_id": "pay_xyz",
        "razorpay_signature": compute_signature("order_abc|pay_xyz", KEY_SECRET),
    })
    assert response.status_code == 200
    assert response.json() == {
        "verified": True,
        "payment": {"razorpay_order_id": "order_abc", "razorpay_payment_id": "pay_xyz"},
    }
    assert _rows(database) == ([("order_abc", 49900, "paid")], [("pay_xyz", "order_abc", "paid")])


def test_create_order_validation_errors(client, gateway):
    for body in ({"amount": 0}, {"currency": "INR"}, {"amount": 100, "customer_email": "not-an-email"}):
        response = client.post("/api/create-order", json=body)
        assert response.status_code == 400
        assert response.json()["errors"]
    assert gateway.calls == []


def test_create_order_gateway_failure(client, gateway, database):
    gateway.fail_with("gateway request failed")

    response = client.post("/api/create-order", json={"amount": 100})

    assert response.status_code == 500
    assert response.json()["error"] == "Could not create order"
    assert "gateway request failed" in response.json()["details"]
    assert _rows(database) == ([], [])


def test_verify_payment_signature_mismatch(client, database):
    client.post("/api/create-order", json={"amount": 100})

    response = client.post("/api/verify-payment", json={
        "razorpay_order_id": "order_abc",
        "razorpay_payment_id": "pay_xyz",
        "razorpay_signature": "deadbeef",
    })

    assert response.status_code == 400
    assert response.json() == {"verified": False, "message": "Signature mismatch"}
    assert _rows(database) == ([("order_abc", 100, "created")], [("pay_xyz", "order_abc", "failed")])


def test_verify_payment_missing_fields(client):
    response = client.post("/api/verify-payment", json={"razorpay_order_id": "order_abc"})
    assert response.status_code == 400


def test_webhook_captured_and_replay(client, database):
    client.post("/api/create-order", json={"amount": 49900})
    event = {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_xyz", "order_id": "order_abc", "method": "card"}}},
    }

    assert _post_webhook(client, event).json() == {"ok": True}
    assert _post_webhook(client, event).json() == {"ok": True}

    assert _rows(database) == ([("order_abc", 49900, "paid")], [("pay_xyz", "order_abc", "paid")])


def test_webhook_unknown_event_acknowledged(client, database):
    client.post("/api/create-order", json={"amount": 49900})
    before = _rows(database)

    response = _post_webhook(client, {"event": "refund.created", "payload": {}})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert _rows(database) == before


def test_webhook_invalid_signature(client, database):
    client.post("/api/create-order", json={"amount": 49900})
    before = _rows(database)
    event = {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_xyz", "order_id": "order_abc"}}},
    }

    response = _post_webhook(client, event, secret="wrong")

    assert response.status_code == 400
    assert response.json() == {"ok": False, "message": "Invalid signature"}
    assert _rows(database) == before


def test_webhook_missing_signature_header(client):
    response = client.post("/api/webhook", json={"event": "payment.captured"})
    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_admin_orders_requires_key(client):
    client.post("/api/create-order", json={"amount": 49900})

    for headers in ({}, {"x-admin-key": "wrong"}):
        response = client.get("/api/admin/orders", headers=headers)
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}


def test_admin_orders_lists_orders(client):
    client.post("/api/create-order", json={"amount": 49900, "customer_name": "Asha"})

    response = client.get("/api/admin/orders", headers={"x-admin-key": ADMIN_KEY})

    assert response.status_code == 200
    orders = response.json()["orders"]
    assert len(orders) == 1
    assert orders[0]["order_id"] == "order_abc"
    assert orders[0]["status"] == "created"
    assert orders[0]["customer_name"] == "Asha"


def test_admin_order_detail_and_payments(client):
    client.post("/api/create-order", json={"amount": 49900})
    client.post("/api/verify-payment", json={
        "razorpay_order_id": "order_abc",
        "razorpay_payment_id": "pay_xyz",
        "razorpay_signature": compute_signature("order_abc|pay_xyz", KEY_SECRET),
    })
    headers = {"x-admin-key": ADMIN_KEY}

    detail = client.get("/api/admin/orders/order_abc", headers=headers).json()
    assert detail["order"]["status"] == "paid"
    assert [p["payment_id"] for p in detail["payments"]] == ["pay_xyz"]

    payments = client.get("/api/admin/payments", headers=headers).json()["payments"]
    assert payments[0]["method"] == "unknown"
    assert json.loads(payments[0]["raw_payload"])["razorpay_payment_id"] == "pay_xyz"

    assert client.get("/api/admin/orders/order_missing", headers=headers).status_code == 404
    assert client.get("/api/admin/payments").status_code == 401


def test_admin_disabled_without_configured_key(settings, database, gateway):
    from fastapi.testclient import TestClient
    from main import create_app

    app = create_app(settings=settings.model_copy(update={"admin_api_key": None}), database=database, gateway=gateway)
    with TestClient(app) as client:
        response = client.get("/api/admin/orders", headers={"x-admin-key": ""})
    assert response.status_code == 401


def test_verify_payment_database_read_failure_returns_json(client):
    client.post("/api/create-order", json={"amount": 100})
    error = OperationalError("SELECT", {}, Exception("database is locked"))

    with patch("sqlalchemy.orm.Query.first", side_effect=error):
        response = client.post("/api/verify-payment", json={
            "razorpay_order_id": "order_abc",
            "razorpay_payment_id": "pay_xyz",
            "razorpay_signature": compute_signature("order_abc|pay_xyz", KEY_SECRET),
        })

    assert response.status_code == 500
    assert response.json()["verified"] is False
    assert "database is locked" in response.json()["message"]


def test_admin_listing_database_read_failure_returns_json(client):
    error = OperationalError("SELECT", {}, Exception("database is locked"))

    with patch("sqlalchemy.orm.Query.all", side_effect=error):
        response = client.get("/api/admin/orders", headers={"x-admin-key": ADMIN_KEY})

    assert response.status_code == 500
    assert response.json()["error"] == "could not list orders"


def test_webhook_with_non_string_ids_is_acknowledged_and_ignored(client, database):
    client.post("/api/create-order", json={"amount": 49900})
    before = _rows(database)
    event = {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": 123, "order_id": ["order_abc"]}}},
    }

    response = _post_webhook(client, event)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert _rows(database) == before


def test_verify_payment_keeps_full_request_body(client, database):
    client.post("/api/create-order", json={"amount": 100})
    body = {
        "razorpay_order_id": "order_abc",
        "razorpay_payment_id": "pay_xyz",
        "razorpay_signature": compute_signature("order_abc|pay_xyz", KEY_SECRET),
        "cart": ["ebook-42"],
    }

    client.post("/api/verify-payment", json=body)

    session = database.session()
    try:
        payment = session.query(PaymentORM).one()
        assert json.loads(payment.raw_payload) == body
    finally:
        session.close()
