from __future__ import annotations

import uuid

import pytest
from conftest import ADMIN, db_session, seed_establishment

from nightlife.legacy_ids import find_uuid_by_number, is_uuid, uuid_to_number
from nightlife.models import Establishment


@pytest.mark.parametrize(
    "value,expected",
    [
        ("", 0),
        ("a", 97),
        ("ab", 3105),
        ("hello", 99162322),
        # 32-bit wraparound lands exactly on the minimum int; abs() keeps it positive
        ("polygenelubricants", 2147483648),
    ],
)
def test_uuid_to_number_matches_client_hash(value, expected):
    assert uuid_to_number(value) == expected


def test_uuid_to_number_is_stable_and_non_negative():
    u = str(uuid.uuid4())
    assert uuid_to_number(u) == uuid_to_number(u)
    assert uuid_to_number(u) >= 0


def test_is_uuid():
    assert is_uuid(str(uuid.uuid4()))
    assert is_uuid(str(uuid.uuid4()).upper())
    assert not is_uuid("12345")
    assert not is_uuid("")


def test_find_uuid_by_number(app):
    est_id = seed_establishment(app)
    with db_session(app) as db:
        assert find_uuid_by_number(db, Establishment, est_id) == est_id
        assert find_uuid_by_number(db, Establishment, str(uuid_to_number(est_id))) == est_id
        assert find_uuid_by_number(db, Establishment, "not-a-number") is None


def test_public_detail_accepts_legacy_number(app):
    est_id = seed_establishment(app, name="Legacy Lounge")
    r = app.test_client().get(f"/api/establishments/{uuid_to_number(est_id)}")
    assert r.status_code == 200
    assert r.get_json()["establishment"]["id"] == est_id


def test_unknown_legacy_number_returns_suggestions(client):
    r = client.post("/api/admin/establishments/12345/approve", headers=ADMIN)
    assert r.status_code == 404
    body = r.get_json()
    assert body["code"] == "ESTABLISHMENT_NOT_FOUND"
    assert "12345" in body["error"]
    assert len(body["suggestions"]) == 3


def test_non_ascii_digits_are_not_legacy_numbers(app, client):
    seed_establishment(app)
    with db_session(app) as db:
        assert find_uuid_by_number(db, Establishment, "²") is None
        assert find_uuid_by_number(db, Establishment, "١٢٣") is None
    r = client.put("/api/admin/establishments/%C2%B2", json={"name": "X"}, headers=ADMIN)
    assert r.status_code == 404
    assert r.get_json()["code"] == "ESTABLISHMENT_NOT_FOUND"
    assert len(r.get_json()["suggestions"]) == 3
