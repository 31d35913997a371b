"""
Project lifecycle: submission, owner edits, likes and moderation.

    pending -> approved
    pending -> rejected

Projects are created pending and only approve/reject may change status.
Re-applying the current status is allowed and still notifies the owner.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pymongo import ReturnDocument
from pymongo.database import Database

import config
from aggregator import list_projects, owner_summaries
from database import create_document, parse_object_id
from errors import Forbidden, NotFound
from notifications import Notify
from queries import build_moderation_query
from schemas import Identity, Project, ProjectCreate, ProjectUpdate, STATUSES

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    "pending": ["approved", "rejected"],
    "approved": [],
    "rejected": [],
}

CLEARABLE_FIELDS = ("github_url", "demo_url", "challenges", "achievements")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: str, new_status: str) -> Tuple[bool, str]:
    if new_status not in STATUSES:
        return False, f"Invalid status: {new_status}"
    if new_status == current:
        return True, "Same status"
    if new_status not in VALID_TRANSITIONS.get(current, []):
        return False, f"Cannot transition from '{current}' to '{new_status}'"
    return True, ""


def require_admin(identity: Identity, action: str) -> None:
    if not identity.is_admin:
        raise Forbidden(f"User role '{identity.role}' is not authorized to {action}")


def _load(db: Database, project_id: Any) -> Dict[str, Any]:
    project = db["project"].find_one({"_id": parse_object_id(project_id, "project ID")})
    if not project:
        raise NotFound("Project not found")
    return project


def _require_owner_or_admin(project: Dict[str, Any], identity: Identity, action: str) -> None:
    if project.get("owner_id") != identity.member_id and not identity.is_admin:
        raise Forbidden(f"Not authorized to {action} this project")


def _notify_owner(db: Database, notify: Optional[Notify], project: Dict[str, Any], kind: str,
                  **context: Any) -> None:
    if notify is None:
        return
    owner = owner_summaries(db, [project.get("owner_id")]).get(project.get("owner_id"))
    if not owner or not owner.get("email"):
        logger.warning("Project %s has no reachable owner; %s not sent", project["_id"], kind)
        return
    context.setdefault("title", project.get("title"))
    context.setdefault("project_id", str(project["_id"]))
    try:
        notify(owner["email"], owner.get("full_name") or "", kind, context)
    except Exception:
        logger.exception("Could not schedule %s notification for project %s", kind, project["_id"])


def create_project(db: Database, identity: Identity, body: ProjectCreate) -> Dict[str, Any]:
    project = Project(**body.model_dump(), owner_id=identity.member_id)
    doc = project.model_dump()
    # whatever the body says, submissions start pending and untouched
    doc.update(status="pending", likes=[], views=0, featured=False)
    project_id = create_document(db, "project", doc)
    logger.info("Project %s submitted by %s", project_id, identity.member_id)
    return _load(db, project_id)


def update_project(db: Database, identity: Identity, project_id: Any, body: ProjectUpdate) -> Dict[str, Any]:
    project = _load(db, project_id)
    _require_owner_or_admin(project, identity, "update")
    changes = body.model_dump(exclude_unset=True)
    # null only clears the optional fields; elsewhere it means "leave as is"
    changes = {k: v for k, v in changes.items() if v is not None or k in CLEARABLE_FIELDS}
    changes["updated_at"] = _now()
    updated = db["project"].find_one_and_update(
        {"_id": project["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("Project not found")
    return updated


def delete_project(db: Database, identity: Identity, project_id: Any) -> None:
    project = _load(db, project_id)
    _require_owner_or_admin(project, identity, "delete")
    db["project"].delete_one({"_id": project["_id"]})
    logger.info("Project %s deleted by %s", project["_id"], identity.member_id)


def toggle_like(db: Database, project_id: Any, member_id: str, notify: Optional[Notify] = None,
                liker_name: str = "") -> Tuple[Dict[str, Any], bool]:
    """Add or remove member_id from the likes set. Returns (project, liked)."""
    oid = parse_object_id(project_id, "project ID")
    doc = db["project"].find_one_and_update(
        {"_id": oid, "likes": member_id},
        {"$pull": {"likes": member_id}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is not None:
        return doc, False

    doc = db["project"].find_one_and_update(
        {"_id": oid},
        {"$addToSet": {"likes": member_id}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFound("Project not found")
    if doc.get("owner_id") != member_id:
        _notify_owner(db, notify, doc, "project_liked", liker=liker_name or "A club member")
    return doc, True


def _set_status(db: Database, identity: Identity, project_id: Any, status: str) -> Dict[str, Any]:
    require_admin(identity, f"mark projects {status}")
    project = _load(db, project_id)
    previous = project.get("status", "pending")
    ok, reason = can_transition(previous, status)
    if not ok:
        logger.info("Re-deciding project %s by %s: %s", project["_id"], identity.member_id, reason)
    updated = db["project"].find_one_and_update(
        {"_id": project["_id"]},
        {"$set": {"status": status, "updated_at": _now()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("Project not found")
    logger.info("Project %s: %s -> %s by %s", project["_id"], previous, status, identity.member_id)
    return updated


def approve_project(db: Database, identity: Identity, project_id: Any,
                    notify: Optional[Notify] = None) -> Dict[str, Any]:
    project = _set_status(db, identity, project_id, "approved")
    _notify_owner(db, notify, project, "project_approved")
    return project


def reject_project(db: Database, identity: Identity, project_id: Any, notify: Optional[Notify] = None,
                   reason: Optional[str] = None) -> Dict[str, Any]:
    project = _set_status(db, identity, project_id, "rejected")
    _notify_owner(db, notify, project, "project_rejected", reason=reason or config.REJECTION_REASON)
    return project


def list_by_status(db: Database, identity: Identity, status: str, page: int = 1,
                   limit: int = config.DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
    require_admin(identity, "review projects")
    return list_projects(db, build_moderation_query(status), page, limit)
