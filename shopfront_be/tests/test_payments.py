import hashlib
import hmac

from app.models.order import Order
from app.models.payment import Payment
from app.utils.razorpay_client import to_smallest_unit, verify_signature


def sign(order_id, payment_id, secret="rzp_test_secret"):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def make_order(db, user, total=1299.99):
    order = Order(user_id=user.id, total=total, shipping_address={"city": "Pune"})
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def test_signature_helpers():
    good = sign("order_1", "pay_1")
    assert verify_signature("order_1", "pay_1", good, "rzp_test_secret")
    assert not verify_signature("order_1", "pay_2", good, "rzp_test_secret")
    assert not verify_signature("order_1", "pay_1", "", "rzp_test_secret")
    assert to_smallest_unit(1299.99) == 129999


def test_create_payment_order_in_smallest_unit(client, db, customer, customer_headers, gateway):
    order = make_order(db, customer)

    resp = client.post(f"/api/payment/orders/{order.id}", headers=customer_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["key_id"] == "rzp_test_key"
    assert body["payment"]["status"] == "created"
    assert body["payment"]["razorpay_order_id"] == "order_rzp_1"
    assert gateway.created[0]["amount"] == 129999
    assert gateway.created[0]["receipt"] == f"order_{order.id}"

    # a pending payment order is reused
    again = client.post(f"/api/payment/orders/{order.id}", headers=customer_headers)
    assert again.json()["payment"]["id"] == body["payment"]["id"]
    assert len(gateway.created) == 1


def test_create_payment_order_for_unknown_order(client, customer_headers, gateway):
    assert client.post("/api/payment/orders/999", headers=customer_headers).status_code == 404


def test_verify_payment_marks_order_paid(client, db, customer, customer_headers, gateway):
    order = make_order(db, customer)
    client.post(f"/api/payment/orders/{order.id}", headers=customer_headers)

    payload = {
        "razorpay_order_id": "order_rzp_1",
        "razorpay_payment_id": "pay_123",
        "razorpay_signature": sign("order_rzp_1", "pay_123"),
    }
    resp = client.post("/api/payment/verify", json=payload, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["payment"]["status"] == "captured"
    assert resp.json()["payment"]["payment_method"] == "card"

    db.expire_all()
    stored = db.get(Order, order.id)
    assert stored.payment_status == "paid"
    assert stored.razorpay_payment_id == "pay_123"


def test_verify_rejects_bad_signature(client, db, customer, customer_headers, gateway):
    order = make_order(db, customer)
    client.post(f"/api/payment/orders/{order.id}", headers=customer_headers)
    payload = {"razorpay_order_id": "order_rzp_1", "razorpay_payment_id": "pay_123", "razorpay_signature": "bogus"}
    assert client.post("/api/payment/verify", json=payload, headers=customer_headers).status_code == 400

    unknown = {
        "razorpay_order_id": "order_missing",
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": sign("order_missing", "pay_1"),
    }
    assert client.post("/api/payment/verify", json=unknown, headers=customer_headers).status_code == 404


def test_webhook_records_failure(client, db, customer, customer_headers, gateway):
    order = make_order(db, customer)
    client.post(f"/api/payment/orders/{order.id}", headers=customer_headers)

    resp = client.post(
        "/api/payment/webhook",
        json={"razorpay_order_id": "order_rzp_1", "error_code": "BAD_REQUEST_ERROR", "error_description": "Declined"},
    )
    assert resp.status_code == 200
    db.expire_all()
    payment = db.query(Payment).one()
    assert payment.status == "failed"
    assert payment.error_code == "BAD_REQUEST_ERROR"
    assert db.get(Order, order.id).payment_status == "failed"


def test_order_payment_listing(client, db, customer, customer_headers, admin_headers, gateway):
    order = make_order(db, customer)
    assert client.get(f"/api/payment/orders/{order.id}", headers=customer_headers).status_code == 404

    client.post(f"/api/payment/orders/{order.id}", headers=customer_headers)
    listed = client.get(f"/api/payment/orders/{order.id}", headers=customer_headers).json()
    assert len(listed["payments"]) == 1

    assert client.get("/api/payment/admin/all", headers=customer_headers).status_code == 403
    admin_view = client.get("/api/payment/admin/all", headers=admin_headers).json()
    assert admin_view["pagination"]["total"] == 1
    assert admin_view["payments"][0]["user_email"] == customer.email


def test_log_payment_defaults(client, db, customer, customer_headers, admin_headers):
    order = make_order(db, customer, total=50)
    resp = client.post("/api/payments/log", json={"order_id": order.id, "amount": 50, "upi_ref": "abc"})
    assert resp.status_code == 201
    payment = resp.json()["payment"]
    assert payment["currency"] == "INR"
    assert payment["status"] == "created"
    assert payment["payment_method"] == "razorpay"
    assert payment["payment_data"]["upi_ref"] == "abc"

    listing = client.get("/api/payments/admin/all", headers=admin_headers).json()
    assert listing["count"] == 1
    mine = client.get(f"/api/payments/orders/{order.id}", headers=customer_headers).json()
    assert mine["count"] == 1
