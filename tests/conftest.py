from decimal import Decimal
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

from app.fms import auth, create_app
from app.fms.db import session_scope
from app.fms.models import Base, User
from app.fms.modules.facilities.models import Facility, StorageUnit

PASSWORD = "pw-secret-1"
# Cheap hash so fixtures stay fast; production uses Werkzeug's default.
_HASH = generate_password_hash(PASSWORD, method="pbkdf2:sha256:1000")


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    auth._login_attempts.clear()
    yield
    auth._login_attempts.clear()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def make_user(s, name: str, email: str) -> User:
    u = User(name=name, email=email, password_hash=_HASH, is_active=True)
    s.add(u)
    s.flush()
    return u


@pytest.fixture()
def world(app):
    """
    owner O owns facility F (unit U01 vacant, U02 vacant) and facility G (unit U01 vacant).
    alice, bob and mallory own nothing.
    """
    with session_scope(app) as s:
        owner = make_user(s, "Olivia Owner", "owner@example.com")
        alice = make_user(s, "Alice", "alice@example.com")
        bob = make_user(s, "Bob", "bob@example.com")
        mallory = make_user(s, "Mallory", "mallory@example.com")

        f = Facility(name="Downtown Storage", address="1 Main St", city="Springfield", owner_id=owner.id)
        g = Facility(name="Harbor Storage", address="9 Dock Rd", owner_id=owner.id)
        s.add_all([f, g])
        s.flush()

        u1 = StorageUnit(
            facility_id=f.id, unit_number="U01", description="Small", size_square_meters=5.0,
            monthly_price=Decimal("49.99"),
        )
        u2 = StorageUnit(
            facility_id=f.id, unit_number="U02", description="Medium", size_square_meters=10.0,
            monthly_price=Decimal("89.00"),
        )
        g1 = StorageUnit(
            facility_id=g.id, unit_number="U01", description="Dockside", size_square_meters=20.0,
            monthly_price=Decimal("150.00"),
        )
        s.add_all([u1, u2, g1])
        s.flush()

        return SimpleNamespace(
            owner=owner.id,
            alice=alice.id,
            bob=bob.id,
            mallory=mallory.id,
            facility=f.id,
            other_facility=g.id,
            unit=u1.id,
            unit2=u2.id,
            other_unit=g1.id,
        )


def login(client, email: str, password: str = PASSWORD):
    return client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=False)


def csrf_token(client) -> str:
    with client.session_transaction() as sess:
        if not sess.get("csrf_token"):
            sess["csrf_token"] = "test-csrf-token"
        return sess["csrf_token"]


def post(client, url: str, data: dict | None = None, **kwargs):
    payload = dict(data or {})
    payload["csrf_token"] = csrf_token(client)
    return client.post(url, data=payload, **kwargs)


def load_unit(app, unit_id: int) -> StorageUnit | None:
    with session_scope(app) as s:
        return s.get(StorageUnit, unit_id)
