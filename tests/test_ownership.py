import pytest

from app.fms.db import session_scope
from app.fms.errors import NotFoundError
from app.fms.modules.facilities.models import Facility
from app.fms.modules.facilities.service import (
    create_unit,
    delete_facility,
    delete_unit,
    facility_detail,
    owner_units,
    unit_detail,
    update_facility,
    update_unit,
)
from app.fms.modules.occupancy.service import occupy
from app.fms.ownership import can_occupy, can_vacate, get_owned_facility, get_owned_unit

from conftest import load_unit, login, post

UNIT = {"unit_number": "U50", "size_square_meters": "5", "monthly_price": "10"}


def test_get_owned_facility(app, world):
    with session_scope(app) as s:
        assert get_owned_facility(s, world.facility, world.owner).id == world.facility
        with pytest.raises(NotFoundError):
            get_owned_facility(s, world.facility, world.alice)
        with pytest.raises(NotFoundError):
            get_owned_facility(s, world.facility, None)
        with pytest.raises(NotFoundError):
            get_owned_facility(s, 9999, world.owner)


def test_get_owned_unit(app, world):
    with session_scope(app) as s:
        assert get_owned_unit(s, world.unit, world.owner).id == world.unit
        with pytest.raises(NotFoundError):
            get_owned_unit(s, world.unit, world.alice)
        with pytest.raises(NotFoundError):
            get_owned_unit(s, world.unit, None)


def test_occupant_cannot_see_owner_only_unit_view(app, world):
    with session_scope(app) as s:
        occupy(s, world.unit, world.alice, world.alice)

    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            unit_detail(s, world.unit, world.alice)


def test_non_owner_mutations_leave_records_untouched(app, world):
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            update_facility(s, world.facility, {"name": "Hijacked", "address": "x"}, world.mallory)
        with pytest.raises(NotFoundError):
            delete_facility(s, world.facility, world.mallory)
        with pytest.raises(NotFoundError):
            create_unit(s, world.facility, UNIT, world.mallory)
        with pytest.raises(NotFoundError):
            update_unit(s, world.unit, UNIT, world.mallory)
        with pytest.raises(NotFoundError):
            delete_unit(s, world.unit, world.mallory)
        with pytest.raises(NotFoundError):
            facility_detail(s, world.facility, world.mallory)
        with pytest.raises(NotFoundError):
            owner_units(s, world.mallory, world.facility)

    with session_scope(app) as s:
        assert s.get(Facility, world.facility).name == "Downtown Storage"
    assert load_unit(app, world.unit).unit_number == "U01"


def test_owner_units_scoped_to_caller(app, world):
    with session_scope(app) as s:
        facility, units = owner_units(s, world.owner)
        assert facility is None
        assert sorted(u.id for u in units) == sorted([world.unit, world.unit2, world.other_unit])

        facility, units = owner_units(s, world.owner, world.facility)
        assert facility.id == world.facility
        assert sorted(u.id for u in units) == sorted([world.unit, world.unit2])

        _, units = owner_units(s, world.alice)
        assert units == []


def test_facility_detail_includes_occupant(app, world):
    with session_scope(app) as s:
        occupy(s, world.unit2, world.bob, world.bob)

    with session_scope(app) as s:
        facility, units = facility_detail(s, world.facility, world.owner)
        assert facility.name == "Downtown Storage"
        assert [u.id for u in units] == [world.unit, world.unit2]
        assert units[1].occupant.name == "Bob"


def test_permission_checks():
    assert can_occupy(caller_id=1, requested_occupant_id=1)
    assert not can_occupy(caller_id=1, requested_occupant_id=2)
    assert not can_occupy(caller_id=None, requested_occupant_id=None)

    assert can_vacate(caller_id=1, occupant_id=1, owner_id=2)
    assert can_vacate(caller_id=2, occupant_id=1, owner_id=2)
    assert not can_vacate(caller_id=3, occupant_id=1, owner_id=2)
    assert not can_vacate(caller_id=None, occupant_id=None, owner_id=None)


# ---------- HTTP ----------

@pytest.mark.parametrize(
    "path",
    [
        "/facilities/{facility}",
        "/facilities/{facility}/edit",
        "/facilities/{facility}/units/new",
        "/facilities/units/{unit}",
        "/facilities/units/{unit}/edit",
        "/facilities/units?facility_id={facility}",
    ],
)
def test_owner_only_pages(client, world, path):
    url = path.format(facility=world.facility, unit=world.unit)

    login(client, "mallory@example.com")
    r = client.get(url)
    assert r.status_code == 404

    client.get("/auth/logout")
    login(client, "owner@example.com")
    r = client.get(url)
    assert r.status_code == 200


@pytest.mark.parametrize(
    "path",
    [
        "/facilities/{facility}/edit",
        "/facilities/{facility}/delete",
        "/facilities/{facility}/units/new",
        "/facilities/units/{unit}/edit",
        "/facilities/units/{unit}/delete",
    ],
)
def test_non_owner_posts_are_not_found(app, client, world, path):
    url = path.format(facility=world.facility, unit=world.unit)
    login(client, "mallory@example.com")
    r = post(client, url, {"name": "Hijacked", "address": "x", **UNIT})
    assert r.status_code == 404

    with session_scope(app) as s:
        assert s.get(Facility, world.facility).name == "Downtown Storage"
    assert load_unit(app, world.unit) is not None


def test_owner_detail_shows_occupant_name(app, client, world):
    with session_scope(app) as s:
        occupy(s, world.unit, world.alice, world.alice)

    login(client, "owner@example.com")
    r = client.get(f"/facilities/{world.facility}")
    assert r.status_code == 200
    assert b"Alice" in r.data
    assert b"Occupied" in r.data

    r = client.get(f"/facilities/units/{world.unit}")
    assert b'id="occupancy-state">Occupied<' in r.data
    assert b"alice@example.com" in r.data


def test_dashboard_lists_only_own_facilities(client, world):
    login(client, "alice@example.com")
    r = client.get("/facilities/")
    assert r.status_code == 200
    assert b"Downtown Storage" not in r.data
    assert b"You do not own any facilities yet." in r.data
