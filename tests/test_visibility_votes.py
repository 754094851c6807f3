from __future__ import annotations

from conftest import ADMIN, OTHER, OWNER, OWNER_ID, USER, USER_ID, db_session, seed_employee, seed_establishment, seed_owner_link

from nightlife.gamification_service import XP_VALIDATION_VOTE, get_points
from nightlife.models import Employee, ExistenceVote
from nightlife.validation_service import vote_stats


def _hidden_setup(app):
    est = seed_establishment(app)
    emp_id = seed_employee(app, current_establishment_id=est)
    seed_owner_link(app, OWNER_ID, est)
    return est, emp_id


def test_visibility_requires_boolean(app, client):
    _, emp_id = _hidden_setup(app)
    r = client.patch(f"/api/employees/{emp_id}/visibility", json={"isHidden": "yes"}, headers=ADMIN)
    assert r.status_code == 400


def test_visibility_forbidden_for_unrelated_user(app, client):
    _, emp_id = _hidden_setup(app)
    r = client.patch(f"/api/employees/{emp_id}/visibility", json={"isHidden": True}, headers=USER)
    assert r.status_code == 403


def test_owner_hides_and_admin_unhides(app, client):
    est, emp_id = _hidden_setup(app)
    r = client.patch(
        f"/api/employees/{emp_id}/visibility",
        json={"isHidden": True, "reason": "  left the bar  "},
        headers=OWNER,
    )
    assert r.status_code == 200
    body = r.get_json()["employee"]
    assert body["is_hidden"] is True
    assert body["hidden_by"] == OWNER_ID
    assert body["hide_reason"] == "left the bar"

    anon = app.test_client()
    assert anon.get(f"/api/employees/{emp_id}").status_code == 404
    listing = anon.get(f"/api/employees?establishment_id={est}").get_json()
    assert listing["employees"] == []

    r = client.patch(f"/api/employees/{emp_id}/visibility", json={"isHidden": False}, headers=ADMIN)
    assert r.status_code == 200
    with db_session(app) as db:
        emp = db.get(Employee, emp_id)
        assert emp.is_hidden is False
        assert emp.hidden_by is None
        assert emp.hide_reason is None
    assert app.test_client().get(f"/api/employees/{emp_id}").status_code == 200


def test_cast_vote(app, client):
    emp_id = seed_employee(app)
    r = client.post(f"/api/employees/{emp_id}/votes", json={"vote_type": "maybe"}, headers=USER)
    assert r.get_json()["code"] == "INVALID_VOTE_TYPE"

    r = client.post(f"/api/employees/{emp_id}/votes", json={"vote_type": "exists"}, headers=USER)
    assert r.status_code == 201
    stats = r.get_json()["stats"]
    assert stats["totalVotes"] == 1
    assert stats["userVote"] == "exists"
    assert stats["badgeType"] == "?"
    assert get_points(USER_ID)["total_xp"] == XP_VALIDATION_VOTE

    r = client.post(f"/api/employees/{emp_id}/votes", json={"vote_type": "not_exists"}, headers=USER)
    assert r.status_code == 409
    assert r.get_json()["code"] == "ALREADY_VOTED"

    r = app.test_client().get(f"/api/employees/{emp_id}/votes/stats")
    assert r.get_json()["stats"]["userVote"] is None


def test_votes_on_hidden_profile_are_not_found(app, client):
    emp_id = seed_employee(app, is_hidden=True)
    r = client.post(f"/api/employees/{emp_id}/votes", json={"vote_type": "exists"}, headers=OTHER)
    assert r.status_code == 404


def _seed_votes(app, emp_id, exists, not_exists):
    with db_session(app) as db:
        n = 0
        for vote_type, count in (("exists", exists), ("not_exists", not_exists)):
            for _ in range(count):
                n += 1
                db.add(ExistenceVote(employee_id=emp_id, user_id=f"voter-{n}", vote_type=vote_type))
        db.commit()


def test_badge_thresholds(app):
    trusted = seed_employee(app, name="Trusted")
    _seed_votes(app, trusted, 15, 5)
    doubtful = seed_employee(app, name="Doubtful")
    _seed_votes(app, doubtful, 10, 10)
    with db_session(app) as db:
        t = vote_stats(db, trusted)
        d = vote_stats(db, doubtful)
    assert t["badgeType"] == "neutral"
    assert t["validationPercentage"] == 75.0
    assert d["badgeType"] == "warning"
    assert d["notExistsVotes"] == 10
