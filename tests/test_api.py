from __future__ import annotations

from datetime import timedelta

import pytest

from pluvia_academy.core.enums import Role
from pluvia_academy.core.exceptions import ConflictError, DependencyError
from pluvia_academy.main import create_app

COURSE_ID = 1


@pytest.fixture
def app(world):
    return create_app(container=world.container, settings_module="pluvia_academy.config.testing")


@pytest.fixture
def client(app):
    return app.test_client()


def login_as(client, actor):
    with client.session_transaction() as sess:
        sess["user_id"] = actor.user_id
        sess["name"] = actor.full_name
        sess["role"] = actor.role.value


def test_requires_login(client):
    resp = client.get("/api/attendance/punishment/1/1")

    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_members_cannot_mark_attendance(client, world):
    member = world.add_member("Ayu")
    login_as(client, member)

    resp = client.post("/api/attendance/attendance/mark", json={"meeting_id": 1, "user_id": 1, "status": "present"})

    assert resp.status_code == 403


def test_invalid_mark_payload_is_rejected(client, world):
    login_as(client, world.lecturer)

    resp = client.post("/api/attendance/attendance/mark", json={"meeting_id": 1, "user_id": 2, "status": "late"})

    assert resp.status_code == 400
    assert "status" in resp.get_json()["message"]


def test_mark_attendance_returns_record_and_punishment(client, world):
    member = world.add_member("Bayu")
    meeting = world.hold_meeting()
    login_as(client, world.lecturer)

    resp = client.post(
        "/api/attendance/attendance/mark",
        json={"meeting_id": meeting.meeting_id, "user_id": member.user_id, "status": "absent"},
    )

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["attendance"]["status"] == "absent"
    assert body["punishment"]["consecutive_absence"] == 1
    assert body["punishment"]["punishment_status"] == "warning_1"


def test_login_and_me(client, world):
    world.add_user("Cahya", Role.MEMBER, password="rahasia")

    bad = client.post("/api/auth/login", json={"email": "cahya@pluvia.test", "password": "nope"})
    assert bad.status_code == 401

    good = client.post("/api/auth/login", json={"email": "cahya@pluvia.test", "password": "rahasia"})
    assert good.status_code == 200
    assert good.get_json()["user"]["role"] == "member"

    me = client.get("/api/auth/me")
    assert me.get_json()["user"]["full_name"] == "Cahya"


def test_material_access_fails_closed(client, world, monkeypatch):
    member = world.add_member("Dimas")
    material = world.materials.add(COURSE_ID, "Slides")
    login_as(client, member)

    def broken(user_id, material_id):
        raise DependencyError("Datastore unavailable")

    monkeypatch.setattr(world.guard, "check_access", broken)
    resp = client.get(f"/api/attendance/material-access/{member.user_id}/{material.material_id}")

    assert resp.status_code == 200
    assert resp.get_json() == {
        "success": True,
        "can_access": False,
        "reason": "access_check_failed",
        "restriction": None,
    }


def test_banner_fails_open(client, world, monkeypatch):
    member = world.add_member("Eko")
    login_as(client, member)

    def broken(user_id, course_id, *, triggered_by=None):
        raise DependencyError("Datastore unavailable")

    monkeypatch.setattr(world.engine, "recompute", broken)
    resp = client.get(f"/api/attendance/punishment/banner/{COURSE_ID}")

    banner = resp.get_json()["banner"]
    assert resp.status_code == 200
    assert banner["status"] == "none"
    assert banner["can_access"] is True


def test_members_only_see_their_own_status(client, world):
    me = world.add_member("Fani")
    other = world.add_member("Gilang")
    login_as(client, me)

    assert client.get(f"/api/attendance/punishment/{other.user_id}/{COURSE_ID}").status_code == 403

    own = client.get(f"/api/attendance/punishment/{me.user_id}/{COURSE_ID}")
    assert own.status_code == 200
    assert own.get_json()["punishment_status"] == "none"


def test_conflicts_are_retryable(client, world, monkeypatch):
    login_as(client, world.lecturer)

    def collide(req, actor):
        raise ConflictError("Concurrent update collided, please retry")

    monkeypatch.setattr(world.recorder, "mark_attendance", collide)
    resp = client.post("/api/attendance/attendance/mark", json={"meeting_id": 1, "user_id": 2, "status": "present"})

    assert resp.status_code == 409
    assert resp.get_json()["retryable"] is True


def test_dependency_failures_hide_details(client, world, monkeypatch):
    login_as(client, world.lecturer)

    def down(meeting_id):
        raise DependencyError("Datastore unavailable during attendance.list_for_meeting")

    monkeypatch.setattr(world.recorder, "list_for_meeting", down)
    resp = client.get("/api/attendance/attendance/meeting/1")

    assert resp.status_code == 500
    assert "attendance" not in resp.get_json()["message"]


def test_auto_join_reports_expired_window(client, world):
    member = world.add_member("Hana")
    meeting = world.hold_meeting()
    world.clock.now = meeting.created_at + timedelta(hours=3)
    login_as(client, member)

    resp = client.post(f"/api/attendance/attendance/auto-join/{COURSE_ID}")

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["status"] == "time_expired"
    assert body["meeting_id"] == meeting.meeting_id


def test_reset_endpoint(client, world):
    member = world.add_member("Irfan")
    login_as(client, world.admin)

    resp = client.post("/api/attendance/punishment/reset", json={"user_id": member.user_id, "course_id": COURSE_ID})

    assert resp.status_code == 200
    assert resp.get_json()["punishment"]["punishment_status"] == "none"
    assert world.logs.entries[-1].action.value == "manual_reset"
