"""
Admin moderation endpoints: authorization, idempotent transitions and owner
notifications.

Run: pytest tests/test_moderation_api.py -v
"""
from unittest.mock import patch

from bson import ObjectId

from notifications import NotificationDispatcher


def test_admin_approves_pending_project(client, db, make_member, make_project):
    owner = make_member(full_name="Owner")
    admin = make_member(role="admin")
    pid = make_project(owner["id"], status="pending", title="Rover telemetry")

    res = client.patch(f"/admin/projects/{pid}/approve", headers=admin["headers"])
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "approved"
    assert [p["id"] for p in client.get("/projects").json()["data"]] == [pid]

    note = db["notification"].find_one({"member_id": owner["id"]})
    assert note["kind"] == "project_approved"
    assert "Rover telemetry" in note["message"]


def test_reject_sends_reason(client, db, make_member, make_project):
    owner = make_member()
    admin = make_member(role="admin")
    pid = make_project(owner["id"], status="pending")

    res = client.patch(f"/admin/projects/{pid}/reject", json={"reason": "Missing demo"}, headers=admin["headers"])
    assert res.status_code == 200
    assert db["project"].find_one({"_id": ObjectId(pid)})["status"] == "rejected"
    note = db["notification"].find_one({"member_id": owner["id"]})
    assert "Missing demo" in note["message"]


def test_reject_without_body_uses_default_reason(client, db, make_member, make_project):
    owner = make_member()
    admin = make_member(role="admin")
    pid = make_project(owner["id"], status="pending")

    assert client.patch(f"/admin/projects/{pid}/reject", headers=admin["headers"]).status_code == 200
    note = db["notification"].find_one({"member_id": owner["id"]})
    assert "Did not meet community guidelines" in note["message"]


def test_non_admin_is_forbidden_and_status_unchanged(client, db, make_member, make_project):
    owner = make_member()
    moderator = make_member(role="moderator")
    pid = make_project(owner["id"], status="pending")

    for who in (owner, moderator):
        for action in ("approve", "reject"):
            res = client.patch(f"/admin/projects/{pid}/{action}", headers=who["headers"])
            assert res.status_code == 403
            assert res.json()["success"] is False
    assert db["project"].find_one({"_id": ObjectId(pid)})["status"] == "pending"


def test_forbidden_before_lookup(client, make_member):
    member = make_member()
    res = client.patch(f"/admin/projects/{ObjectId()}/approve", headers=member["headers"])
    assert res.status_code == 403


def test_approve_missing_project(client, make_member):
    admin = make_member(role="admin")
    assert client.patch(f"/admin/projects/{ObjectId()}/approve", headers=admin["headers"]).status_code == 404
    assert client.patch("/admin/projects/bogus/approve", headers=admin["headers"]).status_code == 400


def test_repeated_approval_is_idempotent_but_notifies_each_time(client, db, make_member, make_project):
    owner = make_member()
    admin = make_member(role="admin")
    pid = make_project(owner["id"], status="pending")

    for _ in range(2):
        assert client.patch(f"/admin/projects/{pid}/approve", headers=admin["headers"]).status_code == 200
    assert db["project"].find_one({"_id": ObjectId(pid)})["status"] == "approved"
    assert db["notification"].count_documents({"member_id": owner["id"], "kind": "project_approved"}) == 2


def test_notification_failure_does_not_fail_transition(client, db, make_member, make_project):
    owner = make_member()
    admin = make_member(role="admin")
    pid = make_project(owner["id"], status="pending")

    with patch("notifications.create_document", side_effect=RuntimeError("mail server down")):
        res = client.patch(f"/admin/projects/{pid}/approve", headers=admin["headers"])
    assert res.status_code == 200
    assert db["project"].find_one({"_id": ObjectId(pid)})["status"] == "approved"
    assert db["notification"].count_documents({}) == 0


def test_status_listings(client, make_member, make_project):
    owner = make_member()
    admin = make_member(role="admin")
    pending = make_project(owner["id"], status="pending")
    make_project(owner["id"], status="approved")
    rejected = make_project(owner["id"], status="rejected")

    assert [p["id"] for p in client.get("/admin/pending-projects", headers=admin["headers"]).json()["data"]] == [pending]
    res = client.get("/admin/projects", params={"status": "rejected"}, headers=admin["headers"])
    assert [p["id"] for p in res.json()["data"]] == [rejected]
    assert client.get("/admin/projects", params={"status": "archived"}, headers=admin["headers"]).status_code == 400
    assert client.get("/admin/pending-projects", headers=owner["headers"]).status_code == 403


def test_admin_stats(client, make_member, make_project):
    owner = make_member()
    admin = make_member(role="admin")
    make_project(owner["id"], status="pending", views=4)
    make_project(owner["id"], status="approved", views=6)

    data = client.get("/admin/stats", headers=admin["headers"]).json()["data"]
    assert data["total"] == 2
    assert data["by_status"] == {"pending": 1, "approved": 1}
    assert data["total_views"] == 10


def test_dispatcher_swallows_errors():
    class BrokenDb:
        def __getitem__(self, name):
            raise RuntimeError("boom")

    assert NotificationDispatcher(BrokenDb()).dispatch("x@example.com", "X", "welcome") is False
