"""
Shared fixtures: an in-memory MongoDB (mongomock) wired into the app through
the get_db dependency, plus helpers to create members, sessions and projects.
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app

DESCRIPTION = "A long enough description of a club project that easily passes the fifty character minimum."


@pytest.fixture
def db():
    database = mongomock.MongoClient().tech_club_test
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_member(db):
    def _make(full_name="Test Member", email=None, role="member", is_active=True, joined_days_ago=0):
        email = email or f"{secrets.token_hex(4)}@example.com"
        member_id = db["member"].insert_one({
            "full_name": full_name,
            "email": email,
            "password_hash": hashlib.sha256(b"password12345").hexdigest(),
            "role": role,
            "is_active": is_active,
            "join_date": datetime.now(timezone.utc) - timedelta(days=joined_days_ago),
            "created_at": datetime.now(timezone.utc),
        }).inserted_id
        token = secrets.token_urlsafe(16)
        db["session"].insert_one({
            "member_id": str(member_id),
            "token": token,
            "expires_at": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        })
        return {"id": str(member_id), "email": email, "headers": {"Authorization": f"Bearer {token}"}}
    return _make


@pytest.fixture
def make_project(db):
    counter = {"n": 0}

    def _make(owner_id, status="approved", title=None, category="Web Development", tags=None,
              technologies="Python, FastAPI", likes=None, views=0, featured=False, created_at=None):
        counter["n"] += 1
        created = created_at or datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(hours=counter["n"])
        return str(db["project"].insert_one({
            "title": title or f"Project number {counter['n']}",
            "description": DESCRIPTION,
            "category": category,
            "tags": tags or [],
            "technologies": technologies,
            "team_members": [],
            "owner_id": owner_id,
            "collaborators": [],
            "status": status,
            "likes": likes or [],
            "views": views,
            "featured": featured,
            "is_public": True,
            "attachments": [],
            "created_at": created,
            "updated_at": created,
        }).inserted_id)
    return _make
