from datetime import datetime, timedelta, timezone

from bson import ObjectId

from leaderboard import achievement_points, build_leaderboard, member_metrics, project_score, project_stats

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _member(name):
    return {"_id": ObjectId(), "full_name": name, "avatar": None, "join_date": NOW - timedelta(days=30)}


def test_leaderboard_example():
    ada, bob = _member("Ada"), _member("Bob")
    projects = [{
        "owner_id": str(ada["_id"]),
        "status": "approved",
        "featured": True,
        "likes": ["x", "y", "z"],
        "views": 25,
    }]
    board = build_leaderboard([bob, ada], projects)
    assert [e["full_name"] for e in board] == ["Ada", "Bob"]
    assert board[0]["score"] == 23
    assert board[0]["total_likes"] == 3
    assert board[1] == {
        "id": str(bob["_id"]),
        "full_name": "Bob",
        "avatar": None,
        "score": 0,
        "project_count": 0,
        "total_likes": 0,
        "total_views": 0,
    }


def test_ties_keep_input_order():
    members = [_member("First"), _member("Second"), _member("Third")]
    board = build_leaderboard(members, [])
    assert [e["full_name"] for e in board] == ["First", "Second", "Third"]


def test_projects_of_unknown_owners_ignored():
    board = build_leaderboard([_member("Solo")], [{"owner_id": str(ObjectId()), "views": 500, "likes": []}])
    assert board[0]["score"] == 0


def test_project_score_components():
    assert project_score({"likes": ["a"], "views": 99, "status": "pending"}) == 2 + 9
    assert project_score({"likes": [], "views": 0, "status": "rejected", "featured": True}) == 10


def test_member_metrics():
    member = _member("Ada")
    projects = [
        {"status": "approved", "views": 30, "likes": ["a", "b"]},
        {"status": "pending", "views": 10, "likes": []},
        {"status": "rejected", "views": 5, "likes": ["c"]},
        {"status": "approved", "views": 15, "likes": []},
    ]
    metrics = member_metrics(member, projects, now=NOW)
    assert metrics["total_projects"] == 4
    assert metrics["approved_projects"] == 2
    assert metrics["pending_projects"] == 1
    assert metrics["rejected_projects"] == 1
    assert metrics["total_project_views"] == 60
    assert metrics["total_project_likes"] == 3
    assert metrics["avg_project_engagement"] == 15
    assert metrics["days_since_join"] == 30


def test_member_metrics_without_projects():
    metrics = member_metrics(_member("New"), [], now=NOW)
    assert metrics["total_projects"] == 0
    assert metrics["avg_project_engagement"] == 0


def test_project_stats():
    stats = project_stats([
        {"category": "IoT", "status": "approved", "views": 10, "likes": ["a"]},
        {"category": "IoT", "status": "pending", "views": 0, "likes": []},
        {"status": "approved", "views": 20, "likes": []},
    ])
    assert stats["total"] == 3
    assert stats["by_category"] == {"IoT": 2, "Uncategorized": 1}
    assert stats["by_status"] == {"approved": 2, "pending": 1}
    assert stats["total_views"] == 30
    assert stats["total_likes"] == 1
    assert stats["average_engagement"] == 10


def test_achievement_points():
    assert achievement_points([{"points": 100}, {"points": 50}, {}]) == 150
