import os

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["KAFKA_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from storefront.api.deps import get_db
from storefront.db import models
from storefront.db.session import Base, make_engine
from storefront.main import app
from storefront.security.utils import create_access_token, hash_password
from storefront.store import cart_store

SHIPPING = {
    "full_name": "Ada Lovelace",
    "email": "ada@example.com",
    "phone": "555-0100",
    "address": "12 Analytical St",
    "city": "London",
    "state": "LDN",
    "zip_code": "N1 9GU",
    "country": "UK",
}
GOOD_CARD = {"number": "4242 4242 4242 4242", "expiry": "12/99", "cvc": "123", "holder_name": "Ada Lovelace"}


@pytest.fixture
def engine():
    eng = make_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def redis(monkeypatch):
    r = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(cart_store, "get_client", lambda: r)
    return r


@pytest.fixture
def client(db):
    def override_get_db():
        yield db
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _make_user(db, email, is_admin=False, full_name="Test User"):
    user = models.User(email=email, password_hash=hash_password("password123"), full_name=full_name, is_admin=is_admin)
    db.add(user); db.commit(); db.refresh(user)
    return user


def _headers(user):
    token, _ = create_access_token(user.id, user.email, user.is_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(db):
    return _make_user(db, "ada@example.com", full_name="Ada Lovelace")


@pytest.fixture
def other_user(db):
    return _make_user(db, "grace@example.com", full_name="Grace Hopper")


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@example.com", is_admin=True, full_name="Shop Admin")


@pytest.fixture
def auth_headers(user):
    return _headers(user)


@pytest.fixture
def other_headers(other_user):
    return _headers(other_user)


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture
def make_product(db):
    def _make(name="Cold Brew", price_cents=1000, stock=10, status="active", **kw):
        kw.setdefault("sizes", ["12oz", "16oz"])
        kw.setdefault("available_sizes", ["12oz", "16oz"])
        p = models.Product(name=name, price_cents=price_cents, stock=stock, status=status,
                           category=kw.pop("category", "Coffee"), brand=kw.pop("brand", "Roastery"), **kw)
        db.add(p); db.commit(); db.refresh(p)
        return p
    return _make


@pytest.fixture
def add_to_cart(client, auth_headers):
    def _add(product, quantity=1, size="12oz", headers=None):
        resp = client.post("/v1/cart/items", json={"product_id": product.id, "size": size, "quantity": quantity},
                           headers=headers or auth_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _add


@pytest.fixture
def shipping():
    return dict(SHIPPING)


@pytest.fixture
def good_card():
    return dict(GOOD_CARD)


@pytest.fixture
def reload(db):
    def _reload(obj):
        db.expire_all()
        return db.get(type(obj), obj.id)
    return _reload
