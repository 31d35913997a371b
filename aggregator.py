"""
Shapes project documents for API responses: owner summaries, like counts,
engagement score and related projects.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

import config
from database import serialize
from errors import NotFound
from queries import visibility_filter
from schemas import Identity
from scoring import score_project

logger = logging.getLogger(__name__)

OWNER_FIELDS = {"full_name": 1, "email": 1, "avatar": 1}


def owner_summaries(db: Database, member_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Public summaries of the given members, keyed by id."""
    oids = []
    for mid in set(m for m in member_ids if m):
        if ObjectId.is_valid(str(mid)):
            oids.append(ObjectId(str(mid)))
    if not oids:
        return {}
    summaries = {}
    for member in db["member"].find({"_id": {"$in": oids}}, OWNER_FIELDS):
        mid = str(member["_id"])
        summaries[mid] = {
            "id": mid,
            "full_name": member.get("full_name"),
            "email": member.get("email"),
            "avatar": member.get("avatar"),
        }
    return summaries


def format_project(doc: Dict[str, Any], owners: Dict[str, Dict[str, Any]], list_view: bool = True) -> Dict[str, Any]:
    likes = doc.get("likes") or []
    data = serialize(doc)
    data["likes"] = len(likes)
    data["views"] = doc.get("views") or 0
    data["featured"] = bool(doc.get("featured"))
    data["owner"] = owners.get(str(doc.get("owner_id")))
    if list_view:
        data.pop("collaborators", None)
        data.pop("attachments", None)
    else:
        data["collaborators"] = [owners[c] for c in doc.get("collaborators") or [] if c in owners]
    return data


def list_projects(db: Database, query: Dict[str, Any], page: int = 1,
                  limit: int = config.DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
    skip = (page - 1) * limit
    docs = list(db["project"].find(query).sort("created_at", DESCENDING).skip(skip).limit(limit))
    total = db["project"].count_documents(query)
    owners = owner_summaries(db, (d.get("owner_id") for d in docs))
    return {
        "items": [format_project(d, owners) for d in docs],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def related_projects(db: Database, project: Dict[str, Any], limit: int = config.RELATED_LIMIT) -> List[Dict[str, Any]]:
    if limit <= 0:
        return []
    query = {"_id": {"$ne": project["_id"]}, "category": project.get("category"), "status": "approved"}
    docs = list(db["project"].find(query).limit(limit))
    owners = owner_summaries(db, (d.get("owner_id") for d in docs))
    return [format_project(d, owners) for d in docs]


def get_project(db: Database, project_id: Any, identity: Optional[Identity] = None,
                related_limit: int = config.RELATED_LIMIT, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Fetch one project as `identity`, counting the view. Raises NotFound."""
    doc = db["project"].find_one_and_update(
        visibility_filter(project_id, identity),
        {"$inc": {"views": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Project not found")
    people = [doc.get("owner_id")] + list(doc.get("collaborators") or [])
    data = format_project(doc, owner_summaries(db, people), list_view=False)
    data["engagement_score"] = score_project(doc, now=now)
    data["liked"] = identity is not None and identity.member_id in (doc.get("likes") or [])
    return {"project": data, "related": related_projects(db, doc, related_limit)}


def member_projects(db: Database, member_id: str, include_hidden: bool = False) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {"owner_id": member_id}
    if not include_hidden:
        query["status"] = "approved"
    docs = list(db["project"].find(query).sort("created_at", DESCENDING))
    owners = owner_summaries(db, [member_id])
    return [format_project(d, owners) for d in docs]
