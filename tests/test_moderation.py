from __future__ import annotations

from conftest import ADMIN, MOD, OTHER, OTHER_ID, USER, USER_ID, db_session, notifications_for, seed_employee, seed_establishment

from nightlife import gamification_service
from nightlife.audit_events import list_audit_events
from nightlife.gamification_service import get_points
from nightlife.models import Comment, Employee, Establishment, ModerationQueueItem, Report


def _seed_queue_item(app, item_type, item_id, submitted_by):
    with db_session(app) as db:
        item = ModerationQueueItem(item_type=item_type, item_id=item_id, submitted_by=submitted_by, status="pending")
        db.add(item)
        db.commit()
        return item.id


def test_approve_establishment_closes_queue_and_notifies_creator(app, client):
    est_id = seed_establishment(app, status="pending", created_by=USER_ID)
    qid = _seed_queue_item(app, "establishment", est_id, USER_ID)

    r = client.post(f"/api/admin/establishments/{est_id}/approve", headers=MOD)
    assert r.status_code == 200
    assert r.get_json()["establishment"]["status"] == "approved"

    with db_session(app) as db:
        assert db.get(Establishment, est_id).status == "approved"
        item = db.get(ModerationQueueItem, qid)
        assert item.status == "approved"
        assert item.reviewed_at is not None
    notes = notifications_for(app, USER_ID, "establishment_approved")
    assert notes and notes[0][2] == f"/bar/{est_id}"


def test_reject_requires_reason_before_lookup(client):
    r = client.post("/api/admin/establishments/does-not-exist/reject", json={}, headers=ADMIN)
    assert r.status_code == 400
    assert r.get_json()["code"] == "REASON_REQUIRED"
    r = client.post("/api/admin/establishments/does-not-exist/reject", json={"reason": "   "}, headers=ADMIN)
    assert r.get_json()["code"] == "REASON_REQUIRED"


def test_reject_establishment(app, client):
    est_id = seed_establishment(app, status="pending", created_by=USER_ID)
    r = client.post(f"/api/admin/establishments/{est_id}/reject", json={"reason": "Duplicate listing"}, headers=ADMIN)
    assert r.status_code == 200
    assert r.get_json()["establishment"]["status"] == "rejected"
    notes = notifications_for(app, USER_ID, "establishment_rejected")
    assert len(notes) == 1


def test_re_approval_allowed_by_default(app, client):
    est_id = seed_establishment(app, status="approved")
    r = client.post(f"/api/admin/establishments/{est_id}/approve", headers=ADMIN)
    assert r.status_code == 200


def test_strict_transitions_reject_re_moderation(make_app):
    app = make_app(STRICT_MODERATION_TRANSITIONS=True)
    est_id = seed_establishment(app, status="approved")
    c = app.test_client()
    r = c.post(f"/api/admin/establishments/{est_id}/approve", headers=ADMIN)
    assert r.status_code == 409
    body = r.get_json()
    assert body["code"] == "INVALID_TRANSITION"
    assert body["current_status"] == "approved"
    r = c.post(f"/api/admin/establishments/{est_id}/reject", json={"reason": "x"}, headers=ADMIN)
    assert r.status_code == 409


def test_moderation_requires_staff(app, client):
    est_id = seed_establishment(app, status="pending")
    r = client.post(f"/api/admin/establishments/{est_id}/approve", headers=USER)
    assert r.status_code == 403
    r = app.test_client().post(f"/api/admin/establishments/{est_id}/approve")
    assert r.status_code == 401


def test_employee_approval_awards_creator_xp(app, client):
    emp_id = seed_employee(app, status="pending", created_by=USER_ID)
    r = client.post(f"/api/admin/employees/{emp_id}/approve", headers=MOD)
    assert r.status_code == 200
    assert get_points(USER_ID)["total_xp"] == gamification_service.XP_EMPLOYEE_APPROVED
    assert notifications_for(app, USER_ID, "employee_approved")


def test_xp_failure_does_not_fail_approval(app, client, monkeypatch):
    emp_id = seed_employee(app, status="pending", created_by=USER_ID)

    def _boom(*args, **kwargs):
        raise RuntimeError("points store down")

    monkeypatch.setattr(gamification_service, "award_xp", _boom)
    r = client.post(f"/api/admin/employees/{emp_id}/approve", headers=ADMIN)
    assert r.status_code == 200
    with db_session(app) as db:
        assert db.get(Employee, emp_id).status == "approved"
    assert get_points(USER_ID)["total_xp"] == 0


def test_comment_moderation_notifies_author(app, client):
    emp_id = seed_employee(app)
    with db_session(app) as db:
        c = Comment(employee_id=emp_id, user_id=OTHER_ID, content="Friendly", status="pending")
        db.add(c)
        db.commit()
        cid = c.id
    r = client.post(f"/api/admin/comments/{cid}/reject", json={"reason": "Off topic"}, headers=MOD)
    assert r.status_code == 200
    assert r.get_json()["comment"]["status"] == "rejected"
    assert notifications_for(app, OTHER_ID, "comment_rejected")


def test_queue_review_flow(app, client):
    r = client.post("/api/employees", json={"name": "Ploy", "sex": "female"}, headers=USER)
    assert r.status_code == 201
    emp_id = r.get_json()["employee"]["id"]

    r = client.get("/api/moderation/queue", headers=MOD)
    items = r.get_json()["items"]
    assert [i["item_id"] for i in items] == [emp_id]
    assert items[0]["item_data"]["name"] == "Ploy"
    assert items[0]["submitter"]["pseudonym"] == "user"
    qid = items[0]["id"]

    r = client.put(f"/api/moderation/{qid}/reject", json={}, headers=MOD)
    assert r.status_code == 400
    assert r.get_json()["code"] == "NOTES_REQUIRED"

    r = client.put(f"/api/moderation/{qid}/approve", json={"moderator_notes": "looks real"}, headers=MOD)
    assert r.status_code == 200
    assert r.get_json()["item"]["status"] == "approved"
    with db_session(app) as db:
        assert db.get(Employee, emp_id).status == "approved"
    points = get_points(USER_ID)
    assert points["total_xp"] == gamification_service.XP_EMPLOYEE_CREATED + gamification_service.XP_QUEUE_ITEM_APPROVED

    r = client.put(f"/api/moderation/{qid}/approve", json={}, headers=MOD)
    assert r.status_code == 400
    assert r.get_json()["code"] == "ALREADY_REVIEWED"

    stats = client.get("/api/moderation/stats", headers=MOD).get_json()["stats"]
    assert stats["total_pending"] == 0
    assert stats["total_approved"] == 1


def test_queue_rejects_unknown_filters(client):
    r = client.get("/api/moderation/queue?status=bogus", headers=MOD)
    assert r.status_code == 400
    r = client.get("/api/moderation/queue?item_type=bogus", headers=MOD)
    assert r.get_json()["code"] == "INVALID_ITEM_TYPE"


def test_report_and_resolve(app, client):
    emp_id = seed_employee(app)
    with db_session(app) as db:
        c = Comment(employee_id=emp_id, user_id=OTHER_ID, content="Spam link", status="approved")
        db.add(c)
        db.commit()
        cid = c.id

    r = client.post(f"/api/comments/{cid}/report", json={}, headers=USER)
    assert r.get_json()["code"] == "REASON_REQUIRED"
    r = client.post(f"/api/comments/{cid}/report", json={"reason": "spam"}, headers=USER)
    assert r.status_code == 201
    rid = r.get_json()["report"]["id"]
    r = client.post(f"/api/comments/{cid}/report", json={"reason": "spam again"}, headers=USER)
    assert r.status_code == 409
    assert r.get_json()["code"] == "ALREADY_REPORTED"

    listed = client.get("/api/moderation/reports", headers=MOD).get_json()
    assert listed["total"] == 1
    assert listed["reports"][0]["comment"]["id"] == cid

    r = client.put(f"/api/moderation/reports/{rid}/resolve", json={"action": "ban"}, headers=MOD)
    assert r.get_json()["code"] == "INVALID_ACTION"
    r = client.put(f"/api/moderation/reports/{rid}/resolve", json={"action": "remove_comment"}, headers=MOD)
    assert r.status_code == 200
    assert r.get_json()["report"]["status"] == "resolved"
    with db_session(app) as db:
        assert db.get(Comment, cid).status == "rejected"
        assert db.get(Report, rid).reviewed_by is not None
    assert notifications_for(app, OTHER_ID, "comment_rejected")
    events = list_audit_events("report_resolved")
    assert [e["meta"]["resolution"] for e in events] == ["remove_comment"]

    r = client.put(f"/api/moderation/reports/{rid}/resolve", json={"action": "dismiss"}, headers=MOD)
    assert r.get_json()["code"] == "ALREADY_REVIEWED"


def test_dismiss_report_keeps_comment(app, client):
    emp_id = seed_employee(app)
    with db_session(app) as db:
        c = Comment(employee_id=emp_id, user_id=OTHER_ID, content="Fine review", status="approved")
        db.add(c)
        db.commit()
        cid = c.id
    rid = client.post(f"/api/comments/{cid}/report", json={"reason": "rude"}, headers=USER).get_json()["report"]["id"]
    r = client.put(f"/api/moderation/reports/{rid}/resolve", json={"action": "dismiss"}, headers=MOD)
    assert r.status_code == 200
    assert r.get_json()["report"]["status"] == "dismissed"
    with db_session(app) as db:
        assert db.get(Comment, cid).status == "approved"
    assert not notifications_for(app, OTHER_ID, "comment_rejected")


def test_report_missing_comment(client):
    r = client.post("/api/comments/nope/report", json={"reason": "spam"}, headers=OTHER)
    assert r.status_code == 404
    assert r.get_json()["code"] == "COMMENT_NOT_FOUND"


def test_dashboard_stats(app, client):
    seed_establishment(app, status="pending")
    seed_employee(app, status="pending")
    r = client.get("/api/admin/dashboard-stats", headers=ADMIN)
    stats = r.get_json()["stats"]
    assert stats["pendingEstablishments"] == 1
    assert stats["pendingEmployees"] == 1
    assert stats["totalUsers"] == 5
