from __future__ import annotations

import pytest
from conftest import OTHER, USER, USER_ID, db_session

from nightlife.gamification_service import award_xp, award_xp_safely, calculate_level, get_points
from nightlife.models import Notification, XPTransaction
from nightlife.notification_service import create_notification, sanitize_link


def test_sanitize_link():
    assert sanitize_link("/bar/1") == "/bar/1"
    assert sanitize_link("https://evil.example.com") is None
    assert sanitize_link("//evil.example.com") is None
    assert sanitize_link(None) is None


def test_create_notification_validates(app):
    with pytest.raises(ValueError):
        create_notification(USER_ID, "not_a_type", "t", "m")
    with pytest.raises(ValueError):
        create_notification("", "level_up", "t", "m")
    n = create_notification(USER_ID, "level_up", "t", "m", link="https://x")
    assert n.link is None


def test_notification_endpoints(app, client):
    first = create_notification(USER_ID, "level_up", "One", "first")
    create_notification(USER_ID, "level_up", "Two", "second")

    r = client.get("/api/notifications", headers=USER)
    body = r.get_json()
    assert body["meta"]["total"] == 2
    assert len(body["notifications"]) == 2
    assert client.get("/api/notifications/unread-count", headers=USER).get_json()["count"] == 2

    r = client.patch(f"/api/notifications/{first.id}/read", headers=OTHER)
    assert r.status_code == 404
    r = client.patch(f"/api/notifications/{first.id}/read", headers=USER)
    assert r.get_json()["notification"]["is_read"] is True
    unread = client.get("/api/notifications?unread=1", headers=USER).get_json()
    assert [n["title"] for n in unread["items"]] == ["Two"]

    assert client.patch("/api/notifications/read-all", headers=USER).get_json()["updated"] == 1
    assert client.get("/api/notifications/unread-count", headers=USER).get_json()["count"] == 0


@pytest.mark.parametrize("total,level", [(0, 1), (99, 1), (100, 2), (250, 3)])
def test_calculate_level(total, level):
    assert calculate_level(total) == level


@pytest.mark.parametrize("amount", [0, -5, True, "5", 1.5])
def test_award_xp_rejects_bad_amount(app, amount):
    with pytest.raises(ValueError):
        award_xp(USER_ID, amount, "admin_manual")


def test_award_xp_rejects_unknown_reason(app):
    with pytest.raises(ValueError):
        award_xp(USER_ID, 5, "because")
    assert award_xp_safely(USER_ID, 5, "because") is False
    assert award_xp_safely(None, 5, "admin_manual") is False


def test_level_up_notifies(app):
    award_xp(USER_ID, 60, "admin_manual")
    points = award_xp(USER_ID, 60, "admin_manual", description="bonus")
    assert points.total_xp == 120
    assert points.current_level == 2
    with db_session(app) as db:
        assert db.query(XPTransaction).filter(XPTransaction.user_id == USER_ID).count() == 2
        kinds = [n.type for n in db.query(Notification).filter(Notification.user_id == USER_ID)]
    assert kinds == ["level_up"]


def test_gamification_me(app, client):
    award_xp(USER_ID, 30, "comment_posted")
    body = client.get("/api/gamification/me", headers=USER).get_json()
    assert body["points"]["total_xp"] == 30
    assert body["recent_transactions"][0]["reason"] == "comment_posted"
    assert get_points("nobody")["current_level"] == 1
