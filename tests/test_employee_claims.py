from __future__ import annotations

from conftest import ADMIN, ADMIN_ID, MOD, OTHER, OTHER_ID, USER, USER_ID, db_session, notifications_for, seed_employee

from nightlife.models import Employee, ModerationQueueItem, User

MESSAGE = "I work there every night, ask the manager"


def _claim(client, emp_id, headers=USER, **extra):
    return client.post(f"/api/employees/{emp_id}/claim", json={"message": MESSAGE, **extra}, headers=headers)


def _claims(client, status="pending"):
    return client.get(f"/api/admin/employee-claims?status={status}", headers=ADMIN).get_json()["claims"]


def test_create_own_profile_links_account(app, client):
    r = client.get("/api/employees/my-linked-profile", headers=USER)
    assert r.status_code == 404
    assert r.get_json()["code"] == "NO_LINKED_PROFILE"

    r = client.post("/api/employees/my-profile", json={"name": "Ploy", "sex": "female"}, headers=USER)
    assert r.status_code == 201
    body = r.get_json()
    assert body["linked"] is True
    assert body["employee"]["status"] == "pending"
    assert body["employee"]["is_self_profile"] is True
    emp_id = body["employee"]["id"]
    with db_session(app) as db:
        assert db.get(Employee, emp_id).user_id == USER_ID
        assert db.get(User, USER_ID).account_type == "employee"
        item = db.query(ModerationQueueItem).filter(ModerationQueueItem.item_id == emp_id).one()
        assert item.item_type == "employee_claim"
        assert item.request_metadata["claim_type"] == "self_profile"
    assert notifications_for(app, ADMIN_ID, "new_employee_claim")

    mine = client.get("/api/employees/my-linked-profile", headers=USER).get_json()["employee"]
    assert mine["id"] == emp_id
    assert mine["current_employment"] == []
    assert mine["comment_count"] == 0

    r = client.post("/api/employees/my-profile", json={"name": "Ploy 2", "sex": "female"}, headers=USER)
    assert r.status_code == 409
    assert r.get_json()["code"] == "ALREADY_LINKED"


def test_own_profile_validates_fields(client):
    r = client.post("/api/employees/my-profile", json={"name": "Ploy", "sex": "robot"}, headers=USER)
    assert r.status_code == 400
    assert r.get_json()["code"] == "INVALID_SEX"
    assert client.post("/api/employees/my-profile", json={"name": "Ploy", "sex": "female"}).status_code == 401


def test_claim_validation(app, client):
    emp_id = seed_employee(app)
    r = client.post(f"/api/employees/{emp_id}/claim", json={"message": "mine"}, headers=USER)
    assert r.get_json()["code"] == "MESSAGE_REQUIRED"
    r = _claim(client, emp_id, verification_proof=["ftp://example.com/x"])
    assert r.get_json()["code"] == "INVALID_PROOF"
    r = _claim(client, emp_id, verification_proof=[f"https://example.com/{i}" for i in range(6)])
    assert r.get_json()["code"] == "INVALID_PROOF"
    r = _claim(client, "00000000-0000-4000-8000-0000000000ff")
    assert r.status_code == 404

    r = _claim(client, emp_id, verification_proof=["https://example.com/badge.jpg"])
    assert r.status_code == 201
    claim_id = r.get_json()["claim_id"]
    r = _claim(client, emp_id)
    assert r.status_code == 409
    assert r.get_json()["code"] == "CLAIM_PENDING"

    linked = seed_employee(app, name="Fon", user_id=OTHER_ID)
    r = _claim(client, linked)
    assert r.status_code == 409
    assert r.get_json()["code"] == "EMPLOYEE_ALREADY_LINKED"

    [claim] = _claims(client)
    assert claim["id"] == claim_id
    assert claim["employee"]["id"] == emp_id
    assert claim["submitter"]["pseudonym"] == "user"
    assert claim["verification_proof"] == ["https://example.com/badge.jpg"]
    assert claim["request_metadata"]["message"] == MESSAGE


def test_claim_listing_and_review_roles(app, client):
    emp_id = seed_employee(app)
    claim_id = _claim(client, emp_id).get_json()["claim_id"]
    r = client.get("/api/admin/employee-claims", headers=MOD)
    assert r.status_code == 200
    assert r.get_json()["total"] == 1
    assert client.get("/api/admin/employee-claims?status=bogus", headers=ADMIN).get_json()["code"] == "INVALID_STATUS"
    assert client.get("/api/admin/employee-claims", headers=USER).status_code == 403
    assert client.post(f"/api/admin/employee-claims/{claim_id}/approve", json={}, headers=MOD).status_code == 403
    assert client.post(f"/api/admin/employee-claims/{claim_id}/reject", json={}, headers=OTHER).status_code == 403


def test_approve_claim_links_profile(app, client):
    emp_id = seed_employee(app)
    claim_id = _claim(client, emp_id).get_json()["claim_id"]
    r = client.post(f"/api/employees/{emp_id}/request-removal", json={}, headers=USER)
    assert r.status_code == 403

    r = client.post(f"/api/admin/employee-claims/{claim_id}/approve", json={}, headers=ADMIN)
    assert r.status_code == 200
    claim = r.get_json()["claim"]
    assert claim["status"] == "approved"
    assert claim["moderator_notes"] == "Claim approved"
    with db_session(app) as db:
        emp = db.get(Employee, emp_id)
        assert emp.user_id == USER_ID
        assert emp.is_self_profile is True
        assert db.get(User, USER_ID).account_type == "employee"
    assert notifications_for(app, USER_ID, "employee_claim_approved")
    assert client.get("/api/employees/my-linked-profile", headers=USER).get_json()["employee"]["id"] == emp_id

    r = client.post(f"/api/employees/{emp_id}/request-removal", json={}, headers=USER)
    assert r.status_code == 200

    r = client.post(f"/api/admin/employee-claims/{claim_id}/reject", json={"moderator_notes": "Changed my mind here"}, headers=ADMIN)
    assert r.status_code == 400
    assert r.get_json()["code"] == "ALREADY_REVIEWED"
    assert r.get_json()["current_status"] == "approved"


def test_second_claim_loses_once_profile_is_linked(app, client):
    emp_id = seed_employee(app)
    first = _claim(client, emp_id).get_json()["claim_id"]
    second = _claim(client, emp_id, headers=OTHER).get_json()["claim_id"]
    assert client.post(f"/api/admin/employee-claims/{first}/approve", json={}, headers=ADMIN).status_code == 200
    r = client.post(f"/api/admin/employee-claims/{second}/approve", json={}, headers=ADMIN)
    assert r.status_code == 409
    assert r.get_json()["code"] == "EMPLOYEE_ALREADY_LINKED"
    with db_session(app) as db:
        assert db.get(Employee, emp_id).user_id == USER_ID
        assert db.get(ModerationQueueItem, second).status == "pending"


def test_reject_claim_requires_notes(app, client):
    emp_id = seed_employee(app)
    claim_id = _claim(client, emp_id).get_json()["claim_id"]
    r = client.post(f"/api/admin/employee-claims/{claim_id}/reject", json={"moderator_notes": "no"}, headers=ADMIN)
    assert r.status_code == 400
    assert r.get_json()["code"] == "NOTES_REQUIRED"

    r = client.post(
        f"/api/admin/employee-claims/{claim_id}/reject",
        json={"moderator_notes": "Photos do not match the profile"},
        headers=ADMIN,
    )
    assert r.status_code == 200
    assert r.get_json()["claim"]["status"] == "rejected"
    assert notifications_for(app, USER_ID, "employee_claim_rejected")
    with db_session(app) as db:
        emp = db.get(Employee, emp_id)
        assert emp.user_id is None
        assert emp.status == "approved"
    assert _claims(client, "rejected")[0]["id"] == claim_id


def test_self_profile_review(app, client):
    body = client.post("/api/employees/my-profile", json={"name": "Ploy", "sex": "female"}, headers=USER).get_json()
    emp_id = body["employee"]["id"]
    assert app.test_client().get(f"/api/employees/{emp_id}").status_code == 404
    [claim] = _claims(client)
    r = client.post(f"/api/admin/employee-claims/{claim['id']}/approve", json={}, headers=ADMIN)
    assert r.get_json()["claim"]["moderator_notes"] == "Self-profile approved"
    assert app.test_client().get(f"/api/employees/{emp_id}").status_code == 200

    body = client.post("/api/employees/my-profile", json={"name": "Fon", "sex": "female"}, headers=OTHER).get_json()
    other_emp = body["employee"]["id"]
    [claim] = _claims(client)
    r = client.post(
        f"/api/admin/employee-claims/{claim['id']}/reject",
        json={"moderator_notes": "Duplicate of an existing profile"},
        headers=ADMIN,
    )
    assert r.status_code == 200
    with db_session(app) as db:
        assert db.get(Employee, other_emp).status == "rejected"


def test_generic_queue_refuses_claims(app, client):
    emp_id = seed_employee(app)
    claim_id = _claim(client, emp_id).get_json()["claim_id"]
    r = client.get("/api/moderation/queue?item_type=employee_claim", headers=MOD)
    assert r.status_code == 200
    r = client.put(f"/api/moderation/{claim_id}/approve", json={}, headers=MOD)
    assert r.status_code == 400
    assert r.get_json()["code"] == "CLAIM_REVIEW_REQUIRED"
    with db_session(app) as db:
        assert db.get(Employee, emp_id).user_id is None
