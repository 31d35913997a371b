import hashlib
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional, List, Dict, Any

from fastapi import FastAPI, Depends, Header, BackgroundTasks, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

import config
import database
from aggregator import get_project, list_projects, member_projects, owner_summaries, format_project
from database import get_db, create_document, get_documents, parse_object_id, serialize
from errors import Conflict, Forbidden, InvalidArgument, NotFound, Unauthenticated, install_handlers
from leaderboard import achievement_points, build_leaderboard, member_metrics, project_stats
from moderation import (
    approve_project,
    create_project,
    delete_project,
    list_by_status,
    reject_project,
    toggle_like,
    update_project,
)
from notifications import NotificationDispatcher
from queries import build_project_query
from schemas import ROLES, Achievement, AchievementBody, Identity, Member, ProjectCreate, ProjectUpdate, Session

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
    yield


app = FastAPI(title="Tech Club Projects API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_handlers(app)

PUBLIC_MEMBER_FIELDS = ("full_name", "email", "avatar", "bio", "location", "education", "occupation",
                        "skills", "role", "join_date", "last_login", "is_active")

# Utilities

def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _profile(member: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize({k: member.get(k) for k in PUBLIC_MEMBER_FIELDS})
    data["id"] = str(member["_id"])
    return data


def _notifier(background_tasks: BackgroundTasks, db: Database):
    return partial(background_tasks.add_task, NotificationDispatcher(db).dispatch)


# Models
class RegisterBody(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: str = "member"  # only admin can create moderator/admin


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class RejectBody(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# Auth helpers
def _resolve_identity(db: Database, authorization: Optional[str]) -> Identity:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthenticated("Not authorized, no token")
    token = authorization.split(" ", 1)[1].strip()
    session = db["session"].find_one({"token": token})
    if not session:
        raise Unauthenticated("Invalid token")
    expires_at = session.get("expires_at")
    if expires_at:
        try:
            expires = datetime.fromisoformat(expires_at)
        except (TypeError, ValueError):
            raise Unauthenticated("Invalid session")
        if expires < _now():
            raise Unauthenticated("Token expired")
    try:
        member_oid = parse_object_id(session.get("member_id"), "session")
    except InvalidArgument:
        raise Unauthenticated("Invalid session")
    member = db["member"].find_one({"_id": member_oid})
    if not member:
        raise Unauthenticated("User not found")
    if not member.get("is_active", True):
        raise Unauthenticated("Account is deactivated")
    return Identity(
        member_id=str(member["_id"]),
        role=member.get("role", "member"),
        is_active=member.get("is_active", True),
        full_name=member.get("full_name", ""),
        email=member.get("email", ""),
    )


def get_current_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> Identity:
    return _resolve_identity(db, authorization)


def get_optional_user(authorization: Optional[str] = Header(None),
                      db: Database = Depends(get_db)) -> Optional[Identity]:
    # anonymous callers and stale tokens both browse as the public
    if not authorization:
        return None
    try:
        return _resolve_identity(db, authorization)
    except Unauthenticated:
        return None


def require_role(user: Identity, allowed: List[str]):
    if user.role not in allowed:
        raise Forbidden(f"User role '{user.role}' is not authorized to access this route")


@app.get("/")
def root():
    return {"success": True, "message": "Tech Club Projects API is running", "timestamp": _now().isoformat()}


# Demo bootstrap for quick testing
@app.post("/demo/bootstrap")
def bootstrap_demo(db: Database = Depends(get_db)):
    created: List[str] = []
    users = [
        {"full_name": "Club Admin", "email": "admin@techclub.dev", "password": "admin12345", "role": "admin"},
        {"full_name": "Club Moderator", "email": "moderator@techclub.dev", "password": "moderator123", "role": "moderator"},
        {"full_name": "Club Member", "email": "member@techclub.dev", "password": "member12345", "role": "member"},
    ]
    for u in users:
        if not db["member"].find_one({"email": u["email"]}):
            member = Member(
                full_name=u["full_name"],
                email=u["email"],
                password_hash=_hash_password(u["password"]),
                role=u["role"],
                join_date=_now(),
            )
            created.append(create_document(db, "member", member))
    if db["project"].count_documents({}) == 0:
        owner = db["member"].find_one({"email": "member@techclub.dev"})
        create_document(db, "project", {
            "title": "Campus Event Finder",
            "description": "A web app that aggregates campus events and lets members RSVP, share and get reminders.",
            "category": "Web Development",
            "tags": ["events", "react"],
            "technologies": "React, FastAPI, MongoDB",
            "team_members": ["Club Member"],
            "owner_id": str(owner["_id"]),
            "collaborators": [],
            "status": "approved",
            "likes": [],
            "views": 0,
            "featured": True,
            "is_public": True,
            "attachments": [],
        })
    return {"success": True, "created_users": created, "message": "Demo accounts ready", "credentials": users}


# Auth routes
@app.post("/auth/register", status_code=201)
def register(body: RegisterBody, background_tasks: BackgroundTasks, authorization: Optional[str] = Header(None),
             db: Database = Depends(get_db)):
    # Only members can self-register. Admin token required for moderator/admin
    requested_role = body.role.lower()
    if requested_role in ("moderator", "admin"):
        if not authorization:
            raise Forbidden("Admin token required to create moderator/admin accounts")
        current_user = get_optional_user(authorization, db)
        if not current_user or not current_user.is_admin:
            raise Forbidden("Only admin can create moderator/admin accounts")
    email = str(body.email).lower()
    if db["member"].find_one({"email": email}):
        raise Conflict("Email already registered")
    member = Member(
        full_name=body.full_name.strip(),
        email=email,
        password_hash=_hash_password(body.password),
        role=requested_role if requested_role in ROLES else "member",
        join_date=_now(),
    )
    uid = create_document(db, "member", member)
    background_tasks.add_task(NotificationDispatcher(db).dispatch, email, member.full_name, "welcome", {})
    return {"success": True, "data": {"id": uid, "email": email, "role": member.role}}


@app.post("/auth/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    user = db["member"].find_one({"email": str(body.email).lower()})
    if not user:
        raise Unauthenticated("Invalid credentials")
    if user.get("password_hash") != _hash_password(body.password):
        raise Unauthenticated("Invalid credentials")
    if not user.get("is_active", True):
        raise Unauthenticated("Account is deactivated")
    token = secrets.token_urlsafe(32)
    expires = (_now() + timedelta(days=config.SESSION_DAYS)).isoformat()
    create_document(db, "session", Session(member_id=str(user["_id"]), token=token, expires_at=expires))
    db["member"].update_one({"_id": user["_id"]}, {"$set": {"last_login": _now()}})
    u = serialize(user)
    return {
        "success": True,
        "token": token,
        "user": {"id": u.get("id"), "full_name": u.get("full_name"), "email": u.get("email"), "role": u.get("role")},
    }


@app.get("/auth/me")
def me(current: Identity = Depends(get_current_user)):
    return {"success": True, "user": current.model_dump()}


# Projects
@app.get("/projects")
def list_public_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    category: Optional[str] = None,
    search: Optional[str] = None,
    tag: Optional[List[str]] = Query(None),
    technology: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    db: Database = Depends(get_db),
):
    query = build_project_query(category=category, search=search, tags=tag, technology=technology,
                                start_date=startDate, end_date=endDate)
    result = list_projects(db, query, page, limit)
    return {
        "success": True,
        "count": len(result["items"]),
        "total": result["total"],
        "page": result["page"],
        "total_pages": result["total_pages"],
        "data": result["items"],
    }


@app.get("/projects/{project_id}")
def read_project(project_id: str, current: Optional[Identity] = Depends(get_optional_user),
                 db: Database = Depends(get_db)):
    result = get_project(db, project_id, identity=current, related_limit=config.RELATED_LIMIT)
    return {"success": True, "data": result["project"], "related": result["related"]}


def _project_response(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    people = [doc.get("owner_id")] + list(doc.get("collaborators") or [])
    return format_project(doc, owner_summaries(db, people), list_view=False)


@app.post("/projects", status_code=201)
def submit_project(body: ProjectCreate, current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    doc = create_project(db, current, body)
    return {"success": True, "data": _project_response(db, doc)}


@app.put("/projects/{project_id}")
def edit_project(project_id: str, body: ProjectUpdate, current: Identity = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    doc = update_project(db, current, project_id, body)
    return {"success": True, "data": _project_response(db, doc)}


@app.delete("/projects/{project_id}")
def remove_project(project_id: str, current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    delete_project(db, current, project_id)
    return {"success": True, "message": "Project removed"}


@app.patch("/projects/{project_id}/like")
def like_project(project_id: str, background_tasks: BackgroundTasks, current: Identity = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    doc, liked = toggle_like(db, project_id, current.member_id, notify=_notifier(background_tasks, db),
                             liker_name=current.full_name)
    data = _project_response(db, doc)
    data["liked"] = liked
    return {"success": True, "data": data}


# Admin
def _status_listing(status: str, page: int, limit: int, current: Identity, db: Database) -> Dict[str, Any]:
    result = list_by_status(db, current, status, page, limit)
    return {
        "success": True,
        "count": len(result["items"]),
        "total": result["total"],
        "page": result["page"],
        "total_pages": result["total_pages"],
        "data": result["items"],
    }


@app.get("/admin/projects")
def admin_projects(status: str = "pending", page: int = Query(1, ge=1),
                   limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
                   current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    return _status_listing(status, page, limit, current, db)


@app.get("/admin/pending-projects")
def pending_projects(page: int = Query(1, ge=1),
                     limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
                     current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    return _status_listing("pending", page, limit, current, db)


@app.get("/admin/approved-projects")
def approved_projects(page: int = Query(1, ge=1),
                      limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
                      current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    return _status_listing("approved", page, limit, current, db)


@app.get("/admin/rejected-projects")
def rejected_projects(page: int = Query(1, ge=1),
                      limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
                      current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    return _status_listing("rejected", page, limit, current, db)


@app.patch("/admin/projects/{project_id}/approve")
def approve(project_id: str, background_tasks: BackgroundTasks, current: Identity = Depends(get_current_user),
            db: Database = Depends(get_db)):
    doc = approve_project(db, current, project_id, notify=_notifier(background_tasks, db))
    return {"success": True, "data": _project_response(db, doc)}


@app.patch("/admin/projects/{project_id}/reject")
def reject(project_id: str, background_tasks: BackgroundTasks, body: Optional[RejectBody] = None,
           current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    reason = body.reason if body else None
    doc = reject_project(db, current, project_id, notify=_notifier(background_tasks, db), reason=reason)
    return {"success": True, "data": _project_response(db, doc)}


@app.get("/admin/stats")
def admin_stats(current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    require_role(current, ["admin"])
    return {"success": True, "data": project_stats(get_documents(db, "project"))}


# Members
def _load_member(db: Database, member_id: str) -> Dict[str, Any]:
    member = db["member"].find_one({"_id": parse_object_id(member_id, "user ID")}, {"password_hash": 0})
    if not member:
        raise NotFound("User not found")
    return member


@app.get("/users")
def list_members(current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    require_role(current, ["admin"])
    members = list(db["member"].find({}, {"password_hash": 0}).sort("created_at", -1))
    projects = list(db["project"].find({}, {"owner_id": 1, "likes": 1, "views": 1, "featured": 1, "status": 1}))
    return {
        "success": True,
        "count": len(members),
        "data": [_profile(m) for m in members],
        "leaderboard": build_leaderboard(members, projects),
    }


@app.get("/leaderboard")
def leaderboard(limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
                current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    members = list(db["member"].find({"is_active": True}, {"full_name": 1, "avatar": 1}).sort("created_at", 1))
    projects = list(db["project"].find({}, {"owner_id": 1, "likes": 1, "views": 1, "featured": 1, "status": 1}))
    board = build_leaderboard(members, projects)[:limit]
    return {"success": True, "count": len(board), "data": board}


@app.get("/users/{member_id}")
def read_member(member_id: str, current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    member = _load_member(db, member_id)
    mid = str(member["_id"])
    projects = list(db["project"].find({"owner_id": mid}, {"status": 1, "views": 1, "likes": 1}))
    achievements = list(db["achievement"].find({"member_id": mid}, {"points": 1}))
    data = _profile(member)
    data["metrics"] = member_metrics(member, projects)
    data["achievement_points"] = achievement_points(achievements)
    return {"success": True, "data": data}


@app.get("/users/{member_id}/projects")
def read_member_projects(member_id: str, current: Identity = Depends(get_current_user),
                         db: Database = Depends(get_db)):
    member = _load_member(db, member_id)
    mid = str(member["_id"])
    items = member_projects(db, mid, include_hidden=current.member_id == mid or current.is_staff)
    return {"success": True, "count": len(items), "data": items}


@app.get("/users/{member_id}/achievements")
def read_member_achievements(member_id: str, current: Identity = Depends(get_current_user),
                             db: Database = Depends(get_db)):
    member = _load_member(db, member_id)
    items = [serialize(a) for a in db["achievement"].find({"member_id": str(member["_id"])}).sort("awarded_at", -1)]
    return {"success": True, "count": len(items), "data": items}


@app.post("/users/{member_id}/achievements", status_code=201)
def award_achievement(member_id: str, body: AchievementBody, current: Identity = Depends(get_current_user),
                      db: Database = Depends(get_db)):
    require_role(current, ["admin", "moderator"])
    member = _load_member(db, member_id)
    achievement = Achievement(
        member_id=str(member["_id"]),
        awarded_by=current.member_id,
        awarded_at=_now(),
        **body.model_dump(),
    )
    aid = create_document(db, "achievement", achievement)
    logger.info("Achievement %s awarded to %s by %s", aid, achievement.member_id, current.member_id)
    return {"success": True, "data": serialize(db["achievement"].find_one({"_id": parse_object_id(aid)}))}


# Notifications
@app.get("/notifications")
def get_notifications(current: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    filt = {"member_id": current.member_id}
    items = [serialize(x) for x in db["notification"].find(filt).sort("created_at", -1)]
    return {"success": True, "count": len(items), "data": items}


@app.patch("/notifications/{notification_id}/read")
def mark_notification_read(notification_id: str, current: Identity = Depends(get_current_user),
                           db: Database = Depends(get_db)):
    _id = parse_object_id(notification_id)
    notif = db["notification"].find_one({"_id": _id})
    if not notif:
        raise NotFound("Notification not found")
    # Only the recipient (or an admin) can mark as read
    if notif.get("member_id") != current.member_id and not current.is_admin:
        raise Forbidden("Cannot modify this notification")
    db["notification"].update_one({"_id": _id}, {"$set": {"read": True, "updated_at": _now()}})
    return {"success": True, "status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
