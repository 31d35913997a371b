"""
Filters for project listings.

Public listings are always pinned to approved projects; moderation listings
pin the one status being reviewed.
"""
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Union

from errors import InvalidArgument
from database import parse_object_id
from schemas import STATUSES, Identity


def _parse_date(value: Union[str, datetime, date], label: str, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
        if end_of_day:
            parsed += timedelta(days=1, microseconds=-1000)
    else:
        text = str(value).strip()
        try:
            if len(text) == 10:
                parsed = datetime.combine(date.fromisoformat(text), time.min)
                if end_of_day:
                    # a bare end date includes the whole day
                    parsed += timedelta(days=1, microseconds=-1000)
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidArgument(f"Invalid {label}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _split_tags(tags: Union[str, Iterable[str], None]) -> list:
    if not tags:
        return []
    if isinstance(tags, str):
        tags = [tags]
    result = []
    for raw in tags:
        for tag in str(raw).split(","):
            tag = tag.strip().lower()
            if tag and tag not in result:
                result.append(tag)
    return result


def build_project_query(category: Optional[str] = None, search: Optional[str] = None,
                        tags: Union[str, Iterable[str], None] = None, technology: Optional[str] = None,
                        start_date: Any = None, end_date: Any = None) -> Dict[str, Any]:
    """Mongo filter for the public project listing."""
    query: Dict[str, Any] = {}

    if category:
        query["category"] = category

    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"description": pattern}, {"tags": pattern}]

    tag_list = _split_tags(tags)
    if tag_list:
        query["tags"] = {"$in": tag_list}

    if technology and technology.strip():
        query["technologies"] = {"$regex": re.escape(technology.strip()), "$options": "i"}

    if start_date or end_date:
        created: Dict[str, Any] = {}
        if start_date:
            created["$gte"] = _parse_date(start_date, "startDate")
        if end_date:
            created["$lte"] = _parse_date(end_date, "endDate", end_of_day=True)
        if "$gte" in created and "$lte" in created and created["$gte"] > created["$lte"]:
            raise InvalidArgument("startDate must not be after endDate")
        query["created_at"] = created

    # set last so nothing above can widen visibility
    query["status"] = "approved"
    return query


def build_moderation_query(status: str) -> Dict[str, Any]:
    if status not in STATUSES:
        raise InvalidArgument("Status must be either pending, approved, or rejected")
    return {"status": status}


def visibility_filter(project_id: Any, identity: Optional[Identity] = None) -> Dict[str, Any]:
    """Filter for fetching one project as the given caller."""
    query: Dict[str, Any] = {"_id": parse_object_id(project_id, "project ID")}
    if identity is not None and identity.is_staff:
        return query
    if identity is not None:
        query["$or"] = [{"status": "approved"}, {"owner_id": identity.member_id}]
    else:
        query["status"] = "approved"
    return query
