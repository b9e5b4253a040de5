import pytest

from app.fms.db import session_scope
from app.fms.errors import NotFoundError, ValidationError
from app.fms.models import User
from app.fms.modules.accounts.service import authenticate, delete_user, register_user
from app.fms.modules.occupancy.service import occupy

from conftest import PASSWORD, load_unit, login, post


def test_register_normalizes_email_and_hashes_password(app):
    with session_scope(app) as s:
        user = register_user(s, " Nina ", " Nina@Example.COM ", "long-enough")
        uid = user.id

    with session_scope(app) as s:
        user = s.get(User, uid)
        assert user.name == "Nina"
        assert user.email == "nina@example.com"
        assert user.password_hash != "long-enough"
        assert authenticate(s, "NINA@example.com", "long-enough").id == uid
        assert authenticate(s, "nina@example.com", "wrong-password") is None


def test_register_duplicate_email(app, world):
    with session_scope(app) as s:
        with pytest.raises(ValidationError, match="already exists"):
            register_user(s, "Alice Again", "ALICE@example.com", "long-enough")


def test_register_collects_all_errors(app):
    with session_scope(app) as s:
        with pytest.raises(ValidationError) as exc:
            register_user(s, "", "not-an-email", "")
    assert exc.value.errors == ["Name is required.", "Email address is invalid.", "Password is required."]


def test_inactive_user_cannot_authenticate(app, world):
    with session_scope(app) as s:
        s.get(User, world.bob).is_active = False
    with session_scope(app) as s:
        assert authenticate(s, "bob@example.com", PASSWORD) is None


def test_delete_user_refused_while_owning_facilities(app, world):
    with session_scope(app) as s:
        with pytest.raises(ValidationError, match="You still own 2 facilities"):
            delete_user(s, world.owner)
    with session_scope(app) as s:
        assert s.get(User, world.owner) is not None


def test_delete_user_releases_occupied_units(app, world):
    with session_scope(app) as s:
        occupy(s, world.unit, world.alice, world.alice)
        occupy(s, world.other_unit, world.alice, world.alice)

    with session_scope(app) as s:
        assert delete_user(s, world.alice) == 2

    with session_scope(app) as s:
        assert s.get(User, world.alice) is None
    for unit_id in (world.unit, world.other_unit):
        unit = load_unit(app, unit_id)
        assert unit.is_occupied is False
        assert unit.occupant_id is None
        assert unit.occupied_at is None


def test_delete_missing_user(app):
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            delete_user(s, 9999)


# ---------- HTTP ----------

def test_account_page(client, world):
    login(client, "owner@example.com")
    r = client.get("/account/")
    assert r.status_code == 200
    assert b"My Account" in r.data
    assert b"owner@example.com" in r.data


def test_account_delete_over_http(app, client, world):
    with session_scope(app) as s:
        occupy(s, world.unit, world.bob, world.bob)

    login(client, "bob@example.com")
    r = post(client, "/account/delete", follow_redirects=True)
    assert r.status_code == 200
    assert b"Account deleted. 1 unit(s) released." in r.data

    assert load_unit(app, world.unit).is_occupied is False
    assert client.get("/account/").status_code == 302
    assert login(client, "bob@example.com").headers["Location"].endswith("/auth/login")


def test_owner_account_delete_is_refused_over_http(app, client, world):
    login(client, "owner@example.com")
    r = post(client, "/account/delete", follow_redirects=True)
    assert r.status_code == 200
    assert b"You still own 2 facilities" in r.data
    with session_scope(app) as s:
        assert s.get(User, world.owner) is not None
