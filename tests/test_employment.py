from __future__ import annotations

from datetime import date

from conftest import ADMIN, ADMIN_ID, OTHER, USER, USER_ID, db_session, notifications_for, seed_employee, seed_establishment

from nightlife import employment_service
from nightlife.models import Employee, EmploymentHistory, ModerationQueueItem


def _rows(app, emp_id):
    with db_session(app) as db:
        rows = db.query(EmploymentHistory).filter(EmploymentHistory.employee_id == emp_id).all()
        return sorted(((r.establishment_id, r.is_current, r.end_date) for r in rows), key=lambda t: (not t[1], t[0]))


def _current_field(app, emp_id):
    with db_session(app) as db:
        return db.get(Employee, emp_id).current_establishment_id


def _create(client, **payload):
    body = {"name": "Fah", "sex": "female", **payload}
    return client.post("/api/employees", json=body, headers=USER)


def test_create_opens_current_employment_and_queue_item(app, client):
    est = seed_establishment(app)
    r = _create(client, current_establishment_id=est, nationality="Thai", age=24)
    assert r.status_code == 201
    emp = r.get_json()["employee"]
    assert emp["status"] == "pending"
    assert emp["nationality"] == ["Thai"]
    assert emp["current_establishment_id"] == est
    assert _rows(app, emp["id"]) == [(est, True, None)]
    with db_session(app) as db:
        items = db.query(ModerationQueueItem).filter(ModerationQueueItem.item_id == emp["id"]).all()
        assert [(i.item_type, i.status) for i in items] == [("employee", "pending")]
    assert notifications_for(app, ADMIN_ID, "new_content_pending")
    assert notifications_for(app, USER_ID, "content_pending_review")


def test_profile_validation(client):
    assert _create(client, sex="robot").get_json()["code"] == "INVALID_SEX"
    assert _create(client, age=17).get_json()["code"] == "INVALID_AGE"
    assert _create(client, nationality=["A", "B", "C"]).get_json()["code"] == "INVALID_NATIONALITY"
    assert _create(client, photos=["not-a-url"]).get_json()["code"] == "INVALID_PHOTOS"
    r = client.post("/api/employees", json={"sex": "female"}, headers=USER)
    assert r.status_code == 400


def test_reassignment_ends_previous_employment(app, client):
    first = seed_establishment(app, name="First")
    second = seed_establishment(app, name="Second")
    emp_id = _create(client, current_establishment_id=first).get_json()["employee"]["id"]

    r = client.put(f"/api/employees/{emp_id}", json={"current_establishment_id": second}, headers=USER)
    assert r.status_code == 200
    assert r.get_json()["employee"]["current_establishment_id"] == second
    assert _rows(app, emp_id) == [(second, True, None), (first, False, date.today())]


def test_multiple_current_requires_freelance(app, client):
    a = seed_establishment(app, name="A")
    b = seed_establishment(app, name="B")
    emp_id = _create(client, current_establishment_id=a).get_json()["employee"]["id"]

    r = client.put(f"/api/employees/{emp_id}", json={"current_establishment_ids": [a, b]}, headers=USER)
    assert r.status_code == 400
    assert r.get_json()["code"] == "FREELANCE_REQUIRED"
    assert _rows(app, emp_id) == [(a, True, None)]

    r = client.put(
        f"/api/employees/{emp_id}",
        json={"is_freelance": True, "current_establishment_ids": [b, a]},
        headers=USER,
    )
    assert r.status_code == 200
    current = [row for row in _rows(app, emp_id) if row[1]]
    assert {row[0] for row in current} == {a, b}
    assert _current_field(app, emp_id) == b


def test_clearing_employment(app, client):
    est = seed_establishment(app)
    emp_id = _create(client, current_establishment_id=est).get_json()["employee"]["id"]
    r = client.put(f"/api/employees/{emp_id}", json={"current_establishment_ids": []}, headers=USER)
    assert r.status_code == 200
    assert _current_field(app, emp_id) is None
    assert all(not row[1] for row in _rows(app, emp_id))


def test_unknown_establishment_changes_nothing(app, client):
    est = seed_establishment(app)
    emp_id = _create(client, current_establishment_id=est).get_json()["employee"]["id"]
    r = client.put(f"/api/employees/{emp_id}", json={"current_establishment_id": "missing", "name": "Changed"}, headers=USER)
    assert r.status_code == 404
    assert _rows(app, emp_id) == [(est, True, None)]
    with db_session(app) as db:
        assert db.get(Employee, emp_id).name == "Fah"


def test_non_staff_edit_resets_status(app, client):
    emp_id = seed_employee(app, status="approved", created_by=USER_ID)
    r = client.put(f"/api/employees/{emp_id}", json={"description": "Updated"}, headers=USER)
    assert r.status_code == 200
    assert r.get_json()["employee"]["status"] == "pending"
    r = client.put(f"/api/employees/{emp_id}", json={"description": "Fixed"}, headers=OTHER)
    assert r.status_code == 403


def test_admin_update_keeps_status_and_validates(app, client):
    emp_id = seed_employee(app, status="approved", created_by=USER_ID)
    r = client.put(f"/api/admin/employees/{emp_id}", json={"is_verified": True}, headers=ADMIN)
    body = r.get_json()["employee"]
    assert body["status"] == "approved"
    assert body["is_verified"] is True
    r = client.put(f"/api/admin/employees/{emp_id}", json={"status": "archived"}, headers=ADMIN)
    assert r.get_json()["code"] == "INVALID_STATUS"


def test_add_employment_history(app, client):
    old = seed_establishment(app, name="Old")
    new = seed_establishment(app, name="New")
    emp_id = seed_employee(app, created_by=USER_ID)
    r = client.post(
        f"/api/employees/{emp_id}/employment",
        json={"establishment_id": old, "start_date": "2023-01-01", "end_date": "2023-06-30", "position": "Dancer"},
        headers=USER,
    )
    assert r.status_code == 201
    assert r.get_json()["employment"]["is_current"] is False
    r = client.post(
        f"/api/employees/{emp_id}/employment",
        json={"establishment_id": new, "start_date": "2024-01-01"},
        headers=USER,
    )
    assert r.get_json()["employment"]["is_current"] is True
    assert _current_field(app, emp_id) == new
    r = client.post(
        f"/api/employees/{emp_id}/employment",
        json={"establishment_id": new, "start_date": "2024-01-01", "end_date": "2023-01-01"},
        headers=USER,
    )
    assert r.status_code == 400


def test_self_removal_only_for_linked_account(app, client):
    emp_id = seed_employee(app, user_id=USER_ID)
    r = client.post(f"/api/employees/{emp_id}/request-removal", json={"verification_info": "selfie"}, headers=OTHER)
    assert r.status_code == 403
    r = client.post(f"/api/employees/{emp_id}/request-removal", json={"verification_info": "selfie"}, headers=USER)
    assert r.status_code == 200
    with db_session(app) as db:
        emp = db.get(Employee, emp_id)
        assert emp.self_removal_requested is True
        assert emp.self_removal_info == "selfie"
    assert notifications_for(app, ADMIN_ID, "self_removal_request")


def test_public_detail_hides_pending(app):
    emp_id = seed_employee(app, status="pending")
    r = app.test_client().get(f"/api/employees/{emp_id}")
    assert r.status_code == 404
    r = app.test_client().get(f"/api/employees/{emp_id}", headers=ADMIN)
    assert r.status_code == 200
    assert r.get_json()["employee"]["is_hidden"] is False


def test_delete_employee_removes_dependents(app, client):
    est = seed_establishment(app)
    emp_id = _create(client, current_establishment_id=est).get_json()["employee"]["id"]
    r = client.delete(f"/api/employees/{emp_id}", headers=OTHER)
    assert r.status_code == 403
    r = client.delete(f"/api/employees/{emp_id}", headers=USER)
    assert r.status_code == 200
    with db_session(app) as db:
        assert db.get(Employee, emp_id) is None
        assert db.query(EmploymentHistory).filter(EmploymentHistory.employee_id == emp_id).count() == 0
        assert db.query(ModerationQueueItem).filter(ModerationQueueItem.item_id == emp_id).count() == 0


def test_reassignment_failure_rolls_back_every_step(app, client, monkeypatch):
    a = seed_establishment(app, name="A")
    b = seed_establishment(app, name="B")
    emp_id = _create(client, current_establishment_id=a).get_json()["employee"]["id"]
    original = employment_service.end_current_employment

    def _end_then_fail(db, employee_id, today=None):
        original(db, employee_id, today)
        db.flush()
        raise RuntimeError("disk full")

    monkeypatch.setattr(employment_service, "end_current_employment", _end_then_fail)
    r = client.put(f"/api/employees/{emp_id}", json={"current_establishment_id": b}, headers=USER)
    assert r.status_code == 500
    assert _rows(app, emp_id) == [(a, True, None)]
    assert _current_field(app, emp_id) == a


def test_ending_freelance_needs_single_establishment(app, client):
    a = seed_establishment(app, name="A")
    b = seed_establishment(app, name="B")
    emp_id = _create(client, is_freelance=True, current_establishment_ids=[a, b]).get_json()["employee"]["id"]

    r = client.put(f"/api/employees/{emp_id}", json={"is_freelance": False}, headers=USER)
    assert r.status_code == 400
    assert r.get_json()["code"] == "FREELANCE_REQUIRED"
    r = client.put(f"/api/admin/employees/{emp_id}", json={"is_freelance": False}, headers=ADMIN)
    assert r.get_json()["code"] == "FREELANCE_REQUIRED"
    with db_session(app) as db:
        assert db.get(Employee, emp_id).is_freelance is True
    assert {row[0] for row in _rows(app, emp_id) if row[1]} == {a, b}

    r = client.put(f"/api/employees/{emp_id}", json={"is_freelance": False, "current_establishment_id": b}, headers=USER)
    assert r.status_code == 200
    assert [row[0] for row in _rows(app, emp_id) if row[1]] == [b]
    assert _current_field(app, emp_id) == b


def test_add_current_employment_ends_other_rows_for_freelancers(app, client):
    a = seed_establishment(app, name="A")
    b = seed_establishment(app, name="B")
    emp_id = seed_employee(app, created_by=USER_ID, is_freelance=True)
    for est in (a, b):
        r = client.post(
            f"/api/employees/{emp_id}/employment",
            json={"establishment_id": est, "start_date": "2024-01-01"},
            headers=USER,
        )
        assert r.status_code == 201
    assert [row[0] for row in _rows(app, emp_id) if row[1]] == [b]
    assert _current_field(app, emp_id) == b


def test_freelancer_listed_at_every_current_establishment(app, client):
    a = seed_establishment(app, name="A")
    b = seed_establishment(app, name="B")
    emp_id = _create(client, is_freelance=True, current_establishment_ids=[a, b]).get_json()["employee"]["id"]
    with db_session(app) as db:
        db.get(Employee, emp_id).status = "approved"
        db.commit()
    anon = app.test_client()
    for est in (a, b):
        body = anon.get(f"/api/employees?establishment_id={est}").get_json()
        assert body["meta"]["total"] == 1
        assert body["employees"][0]["id"] == emp_id
        assert anon.get(f"/api/establishments/{est}").get_json()["establishment"]["employee_count"] == 1
