from datetime import datetime

from fastapi.testclient import TestClient

from app.main import app as fastapi_app
from app.models.collection import Collection
from app.models.order import Order
from app.models.payment import Payment
from app.models.product import ProductImage
from app.routers.analytics import _month_starts, trend_percentage
from app.utils.storage import UPLOAD_ROOT

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_unhandled_errors_return_json_500():
    @fastapi_app.get("/__boom")
    def boom():
        raise RuntimeError("kaboom")

    resp = TestClient(fastapi_app, raise_server_exceptions=False).get("/__boom")
    assert resp.status_code == 500
    assert resp.json() == {"message": "Internal Server Error", "error": "kaboom"}


# ===== Currencies =====
def test_currency_defaults_when_table_empty(client):
    codes = [c["currency"] for c in client.get("/api/currencies/").json()]
    assert codes == ["USD", "EUR", "GBP"]


def test_currency_crud(client, admin_headers, customer_headers):
    assert client.post("/api/currencies/", json={"currency": "inr", "symbol": "₹", "value": 83}, headers=customer_headers).status_code == 403

    created = client.post("/api/currencies/", json={"currency": "inr", "symbol": "₹", "value": 83}, headers=admin_headers)
    assert created.status_code == 201
    currency = created.json()
    assert currency["currency"] == "INR"
    assert client.get("/api/currencies/").json() == [currency]

    assert client.post("/api/currencies/", json={"currency": "INR", "symbol": "R", "value": 1}, headers=admin_headers).status_code == 409
    assert client.post("/api/currencies/", json={"currency": "JPY"}, headers=admin_headers).status_code == 400

    updated = client.put(f"/api/currencies/{currency['id']}", json={"value": 84.5}, headers=admin_headers)
    assert updated.json()["value"] == 84.5

    assert client.delete(f"/api/currencies/{currency['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/currencies/{currency['id']}", headers=admin_headers).status_code == 404


# ===== Analytics =====
def test_trend_and_month_helpers():
    assert trend_percentage(5, 0) == 100.0
    assert trend_percentage(0, 0) == 0.0
    assert trend_percentage(15, 10) == 50.0
    starts = _month_starts(datetime(2024, 2, 15), 3)
    assert [s.strftime("%Y-%m") for s in starts] == ["2023-12", "2024-01", "2024-02"]


def test_dashboard(client, db, customer, admin_headers, customer_headers, make_product, make_collection):
    make_product("Boot", brand="Acme", category="Shoes")
    make_collection("Shoes", collection_type="category")
    order = Order(user_id=customer.id, total=100, status="completed", payment_method="razorpay")
    db.add(order)
    db.flush()
    db.add(Payment(order_id=order.id, amount=100, status="captured"))
    db.add(Payment(order_id=order.id, amount=40, status="failed"))
    db.commit()

    assert client.get("/api/analytics/dashboard", headers=customer_headers).status_code == 403
    body = client.get("/api/analytics/dashboard", headers=admin_headers).json()
    assert body["orders"]["total"] == 1
    assert body["orders"]["byStatus"] == {"completed": 1}
    assert body["orders"]["recentOrders"][0]["user_email"] == customer.email
    assert body["payments"]["byStatus"] == {"captured": 1, "failed": 1}
    assert body["products"]["topBrands"] == [{"brand": "Acme", "count": 1}]
    assert body["collections"]["byType"] == {"category": 1}
    assert body["revenue"]["total"] == 100.0
    assert body["revenue"]["avgOrderValue"] == 100.0
    assert len(body["revenue"]["byMonth"]) == 6
    assert body["revenue"]["byMonth"][-1]["total"] == 100.0


# ===== Uploads =====
def test_product_image_upload_and_delete(client, db, admin_headers, make_product):
    product = make_product("Boot")
    resp = client.post(
        f"/api/uploads/products/{product.id}/images",
        files={"file": ("boot.png", PNG, "image/png")},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    image = resp.json()["image"]
    assert image["src"].startswith("/product-images/")
    assert image["src"].endswith(".png")
    assert image["alt"] == "Image for Boot"
    assert image["is_primary"] is True
    stored = UPLOAD_ROOT / image["src"].lstrip("/")
    assert stored.is_file()
    served = client.get(image["src"])
    assert served.status_code == 200
    assert served.content == PNG

    assert client.delete(f"/api/uploads/products/images/{image['id']}", headers=admin_headers).status_code == 200
    assert not stored.exists()
    db.expire_all()
    assert db.query(ProductImage).count() == 0


def test_upload_rejects_non_images(client, admin_headers, make_product):
    product = make_product()
    resp = client.post(
        f"/api/uploads/products/{product.id}/images",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    missing = client.post(
        "/api/uploads/products/999/images", files={"file": ("a.png", PNG, "image/png")}, headers=admin_headers
    )
    assert missing.status_code == 404


def test_collection_image_replace_and_delete(client, db, admin_headers, make_collection):
    shoes = make_collection("Shoes")
    first = client.post(
        f"/api/uploads/collections/{shoes.id}/images", files={"file": ("a.png", PNG, "image/png")}, headers=admin_headers
    ).json()["collection"]["image_url"]
    second = client.post(
        f"/api/uploads/collections/{shoes.id}/images", files={"file": ("b.png", PNG, "image/png")}, headers=admin_headers
    ).json()["collection"]["image_url"]
    assert first.startswith("/collection-images/")
    assert client.get(second).status_code == 200
    assert not (UPLOAD_ROOT / first.lstrip("/")).exists()
    assert (UPLOAD_ROOT / second.lstrip("/")).is_file()

    assert client.delete(f"/api/uploads/collections/images/{shoes.id}", headers=admin_headers).status_code == 200
    db.expire_all()
    assert db.get(Collection, shoes.id).image_url is None
    assert client.delete(f"/api/uploads/collections/images/{shoes.id}", headers=admin_headers).status_code == 404
