"""
Engagement score for a project.

    likes     2 points each, at most 40
    views     1 point per 10 views, at most 20
    featured  20 points
    recency   20 points on the creation day, losing 1 point per week

The total is clamped to [0, 100]. Bad or missing inputs count as zero, so the
score can always be rendered.
"""
import math
from datetime import datetime, timezone
from typing import Any, Optional

MAX_SCORE = 100.0


def to_utc(value: Any) -> Optional[datetime]:
    """Datetime or ISO string -> aware UTC datetime. Naive values are UTC."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _count(value: Any) -> float:
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value)
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)) and math.isfinite(value) and value > 0:
        return value
    return 0


def recency_bonus(created_at: Any, now: Optional[datetime] = None) -> float:
    created = to_utc(created_at)
    if created is None:
        return 0.0
    now = to_utc(now) or datetime.now(timezone.utc)
    # future timestamps count as brand new
    days = max(0.0, (now - created).total_seconds() / 86400)
    return max(0.0, 20 - days / 7)


def engagement_score(likes: Any = 0, views: Any = 0, featured: Any = False,
                     created_at: Any = None, now: Optional[datetime] = None) -> float:
    score = min(_count(likes) * 2, 40)
    score += min(math.floor(_count(views) / 10), 20)
    if featured is True:
        score += 20
    score += recency_bonus(created_at, now)
    return round(min(max(score, 0.0), MAX_SCORE), 2)


def score_project(project: dict, now: Optional[datetime] = None) -> float:
    return engagement_score(
        likes=project.get("likes"),
        views=project.get("views"),
        featured=project.get("featured", False),
        created_at=project.get("created_at"),
        now=now,
    )
