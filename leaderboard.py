"""
Member metrics and the club leaderboard, computed from plain project
documents (likes as a list of member ids, views as a counter).
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from scoring import to_utc


def _likes(project: Dict[str, Any]) -> int:
    likes = project.get("likes")
    if isinstance(likes, (list, tuple, set)):
        return len(likes)
    return likes if isinstance(likes, int) and likes > 0 else 0


def _views(project: Dict[str, Any]) -> int:
    views = project.get("views")
    return views if isinstance(views, int) and views > 0 else 0


def member_metrics(member: Dict[str, Any], projects: List[Dict[str, Any]],
                   now: Optional[datetime] = None) -> Dict[str, Any]:
    metrics = {
        "total_projects": len(projects),
        "approved_projects": 0,
        "pending_projects": 0,
        "rejected_projects": 0,
        "total_project_views": 0,
        "total_project_likes": 0,
        "avg_project_engagement": 0,
        "join_date": None,
        "days_since_join": 0,
    }
    for project in projects:
        key = f"{project.get('status')}_projects"
        if key in metrics and key != "total_projects":
            metrics[key] += 1
        metrics["total_project_views"] += _views(project)
        metrics["total_project_likes"] += _likes(project)

    if projects:
        metrics["avg_project_engagement"] = metrics["total_project_views"] / len(projects)

    joined = to_utc(member.get("join_date"))
    if joined is not None:
        now = to_utc(now) or datetime.now(timezone.utc)
        metrics["join_date"] = joined.isoformat()
        metrics["days_since_join"] = max(0, (now - joined).days)
    return metrics


def project_score(project: Dict[str, Any]) -> int:
    score = _likes(project) * 2 + _views(project) // 10
    if project.get("featured"):
        score += 10
    if project.get("status") == "approved":
        score += 5
    return score


def build_leaderboard(members: Iterable[Dict[str, Any]], projects: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    members = list(members)
    by_owner: Dict[str, List[Dict[str, Any]]] = {str(m["_id"]): [] for m in members}
    for project in projects:
        owner = str(project.get("owner_id"))
        if owner in by_owner:
            by_owner[owner].append(project)

    board = []
    for member in members:
        owned = by_owner[str(member["_id"])]
        board.append({
            "id": str(member["_id"]),
            "full_name": member.get("full_name"),
            "avatar": member.get("avatar"),
            "score": sum(project_score(p) for p in owned),
            "project_count": len(owned),
            "total_likes": sum(_likes(p) for p in owned),
            "total_views": sum(_views(p) for p in owned),
        })
    # sorted() is stable, ties keep member order
    return sorted(board, key=lambda entry: entry["score"], reverse=True)


def project_stats(projects: List[Dict[str, Any]]) -> Dict[str, Any]:
    stats = {
        "total": len(projects),
        "by_category": {},
        "by_status": {},
        "total_views": 0,
        "total_likes": 0,
        "average_engagement": 0,
    }
    for project in projects:
        category = project.get("category") or "Uncategorized"
        stats["by_category"][category] = stats["by_category"].get(category, 0) + 1
        status = project.get("status") or "unknown"
        stats["by_status"][status] = stats["by_status"].get(status, 0) + 1
        stats["total_views"] += _views(project)
        stats["total_likes"] += _likes(project)
    if projects:
        stats["average_engagement"] = stats["total_views"] / len(projects)
    return stats


def achievement_points(achievements: Iterable[Dict[str, Any]]) -> int:
    return sum(a.get("points") or 0 for a in achievements)
