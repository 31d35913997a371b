"""
Database Schemas for the Tech Club platform

Each Pydantic model represents a MongoDB collection.
The collection name is the lowercase class name.

Collections:
- Member (roles: member, moderator, admin)
- Session (login sessions)
- Project (submitted work, moderated before it is public)
- Achievement (points awarded to members)
- Notification (in-app notifications)

Request bodies and the Identity capability object live here too.
"""
from datetime import datetime
from typing import Optional, List, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, EmailStr, field_validator

ROLES = ("member", "moderator", "admin")
STATUSES = ("pending", "approved", "rejected")

Role = Literal["member", "moderator", "admin"]
Status = Literal["pending", "approved", "rejected"]
Category = Literal[
    "Web Development",
    "Mobile App",
    "Machine Learning",
    "Blockchain",
    "Cybersecurity",
    "IoT",
    "Game Development",
    "Data Science",
    "DevOps",
    "Other",
]
AchievementCategory = Literal["participation", "excellence", "innovation", "leadership", "community", "milestone"]


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc or "." not in parsed.netloc:
        raise ValueError("Please provide a valid URL")
    return value


def _normalize_tags(values: List[str]) -> List[str]:
    tags = []
    for tag in values:
        tag = tag.strip().lower()
        if not tag:
            continue
        if len(tag) > 30:
            raise ValueError("Each tag cannot exceed 30 characters")
        if tag not in tags:
            tags.append(tag)
    return tags


def _clean_names(values: List[str], limit: int, label: str) -> List[str]:
    names = [n.strip() for n in values if n and n.strip()]
    if any(len(n) > limit for n in names):
        raise ValueError(f"Each {label} cannot exceed {limit} characters")
    return names


class Member(BaseModel):
    """
    Members collection schema
    Roles:
    - admin: Full control, moderates projects
    - moderator: Awards achievements, sees unpublished projects
    - member: Regular club member
    """
    full_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password_hash: str = Field(..., description="SHA256 password hash")
    role: Role = Field("member")
    avatar: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=100)
    education: Optional[str] = Field(None, max_length=200)
    occupation: Optional[str] = Field(None, max_length=100)
    skills: List[str] = []
    is_active: bool = True
    join_date: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("skills")
    @classmethod
    def skill_length(cls, v: List[str]) -> List[str]:
        return _clean_names(v, 50, "skill")


class Session(BaseModel):
    """Login sessions bound to a member"""
    member_id: str
    token: str
    expires_at: Optional[str] = None  # ISO datetime string


class Attachment(BaseModel):
    """File metadata handed over by the upload service; stored as-is"""
    original_name: str
    stored_name: str
    size: int = Field(0, ge=0)
    mime_type: Optional[str] = None
    upload_date: Optional[datetime] = None


class ProjectFields(BaseModel):
    """Fields a member may set on a project"""
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=50, max_length=2000)
    category: Category
    tags: List[str] = []
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    team_members: List[str] = []
    technologies: str = Field(..., min_length=1, max_length=500)
    challenges: Optional[str] = Field(None, max_length=1000)
    achievements: Optional[str] = Field(None, max_length=1000)
    collaborators: List[str] = []
    is_public: bool = True
    attachments: List[Attachment] = []

    @field_validator("title", "description", "technologies", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _normalize_tags(v)

    @field_validator("team_members")
    @classmethod
    def team_member_length(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _clean_names(v, 50, "team member name")

    @field_validator("github_url", "demo_url")
    @classmethod
    def valid_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_url(v)


class ProjectCreate(ProjectFields):
    pass


class ProjectUpdate(ProjectFields):
    """Partial update; status, owner, likes, views and featured are not accepted"""
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, min_length=50, max_length=2000)
    category: Optional[Category] = None
    tags: Optional[List[str]] = None
    team_members: Optional[List[str]] = None
    technologies: Optional[str] = Field(None, min_length=1, max_length=500)
    collaborators: Optional[List[str]] = None
    is_public: Optional[bool] = None
    attachments: Optional[List[Attachment]] = None


class Project(ProjectFields):
    """Projects collection schema"""
    owner_id: str
    status: Status = "pending"
    likes: List[str] = []
    views: int = Field(0, ge=0)
    featured: bool = False


class Achievement(BaseModel):
    """Achievements awarded to members; never updated after creation"""
    member_id: str
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    category: AchievementCategory = "participation"
    points: int = Field(0, ge=0, le=1000)
    badge: Optional[str] = None
    awarded_by: Optional[str] = None
    awarded_at: Optional[datetime] = None


class AchievementBody(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    category: AchievementCategory = "participation"
    points: int = Field(0, ge=0, le=1000)
    badge: Optional[str] = None

    @field_validator("badge")
    @classmethod
    def valid_badge(cls, v: Optional[str]) -> Optional[str]:
        return _check_url(v)


class Notification(BaseModel):
    """Member notifications"""
    member_id: str
    kind: str = "general"
    title: str
    message: str
    type: Literal["info", "success", "warning", "error"] = "info"
    read: bool = False
    link: Optional[str] = None


class Identity(BaseModel):
    """Who is calling; resolved from the session token before any handler runs"""
    member_id: str
    role: Role
    is_active: bool
    full_name: str = ""
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_staff(self) -> bool:
        return self.role in ("admin", "moderator")
