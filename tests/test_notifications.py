import pytest

from notifications import NotificationDispatcher, render


def test_render_rejection_includes_reason():
    level, title, message = render("project_rejected", "Ada", {"title": "Robot Arm", "reason": "Too short"})
    assert level == "warning"
    assert title == "Project Submission Update"
    assert '"Robot Arm"' in message
    assert "Reason: Too short." in message


def test_render_unknown_kind():
    with pytest.raises(ValueError):
        render("birthday", "Ada")


def test_dispatch_stores_notification(db, make_member):
    member = make_member(full_name="Ada", email="ada@example.com")
    assert NotificationDispatcher(db).dispatch("ada@example.com", "Ada", "project_approved", {"title": "Robot Arm"})
    note = db["notification"].find_one({"member_id": member["id"]})
    assert note["kind"] == "project_approved"
    assert note["type"] == "success"
    assert note["read"] is False


def test_dispatch_failure_is_reported_not_raised(db):
    dispatcher = NotificationDispatcher(db)
    assert dispatcher.dispatch("ghost@example.com", "Ghost", "welcome") is False
    assert dispatcher.dispatch("ghost@example.com", "Ghost", "no-such-kind") is False
    assert db["notification"].count_documents({}) == 0
