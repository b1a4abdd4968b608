import os
import tempfile

# Configure the app for an in-memory database before anything imports it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALGORITHM"] = "HS256"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_CURRENCY"] = "INR"
os.environ["FIREBASE_CREDENTIALS"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="shopfront-uploads-")

import pytest
from fastapi.testclient import TestClient

from app.main import app as fastapi_app
from app.models.user import Base, SessionLocal, User, engine
from app.models.product import Product, ProductVariant, ProductImage
from app.models.collection import Collection
from app.models.mega_menu import MegaMenuCollection
from app.models.order import Order, OrderItem  # noqa: F401
from app.models.payment import Payment  # noqa: F401
from app.models.currency import Currency  # noqa: F401
from app.utils.razorpay_client import RazorpayGateway, get_payment_gateway, to_smallest_unit
from app.utils.security import create_access_token, hash_password


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(fastapi_app)


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
def make_user(db):
    def _make(email="customer@example.com", role="customer", password="secret123"):
        user = User(
            email=email,
            first_name="Test",
            last_name="User",
            name="Test User",
            password=hash_password(password),
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", role="admin")


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def customer(make_user):
    return make_user("customer@example.com")


@pytest.fixture
def customer_headers(customer):
    return headers_for(customer)


@pytest.fixture
def make_collection(db):
    def _make(name, parent=None, collection_type="custom", is_active=True, is_featured=False, slug=None):
        collection = Collection(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            parent_id=parent.id if parent else None,
            level=(parent.level + 1) if parent else 0,
            collection_type=collection_type,
            is_active=is_active,
            is_featured=is_featured,
        )
        db.add(collection)
        db.commit()
        db.refresh(collection)
        return collection
    return _make


@pytest.fixture
def make_product(db):
    def _make(title="Product", price=10, id=None, variants=(), images=(), **fields):
        product = Product(title=title, price=price, slug=title.lower().replace(" ", "-"), **fields)
        if id is not None:
            product.id = id
        for v in variants:
            product.variants.append(ProductVariant(**v))
        for src in images:
            product.images.append(ProductImage(src=src, alt=title))
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def make_menu_item(db):
    def _make(collection, parent=None, position=0, is_active=True, is_featured=False):
        item = MegaMenuCollection(
            collection_id=collection.id,
            parent_menu_item_id=parent.id if parent else None,
            level=(parent.level + 1) if parent else 0,
            position=position,
            is_active=is_active,
            is_featured=is_featured,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    return _make


class FakeGateway(RazorpayGateway):
    """Records calls instead of reaching the Razorpay API."""

    def __init__(self):
        super().__init__("rzp_test_key", "rzp_test_secret", "INR")
        self.created = []
        self.payment_status = "captured"

    def create_order(self, amount, receipt, notes=None):
        order = {
            "id": f"order_rzp_{len(self.created) + 1}",
            "amount": to_smallest_unit(amount),
            "currency": self.currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }
        self.created.append(order)
        return order

    def fetch_payment(self, payment_id):
        return {"id": payment_id, "status": self.payment_status, "method": "card"}


@pytest.fixture
def gateway():
    fake = FakeGateway()
    fastapi_app.dependency_overrides[get_payment_gateway] = lambda: fake
    yield fake
    fastapi_app.dependency_overrides.pop(get_payment_gateway, None)
