"""
MongoDB access for the Tech Club API

The client is built from DATABASE_URL / DATABASE_NAME. When DATABASE_URL is not
set, `db` stays None and request handlers fail with a 500 until it is.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config
from errors import Internal, InvalidArgument

logger = logging.getLogger(__name__)

db: Optional[Database] = None

if config.DATABASE_URL:
    _client = MongoClient(config.DATABASE_URL, tz_aware=True)
    db = _client[config.DATABASE_NAME]
    logger.info("Using MongoDB database %s", config.DATABASE_NAME)
else:
    logger.warning("DATABASE_URL is not set; database unavailable")


def get_db() -> Database:
    if db is None:
        raise Internal("Database not configured")
    return db


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document, stamping created_at/updated_at. Returns the new id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = _now()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def parse_object_id(value: Any, label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except Exception:
        raise InvalidArgument(f"Invalid {label}")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    if doc.get("_id") is not None:
        doc["id"] = str(doc.pop("_id"))
    # convert datetimes to iso
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def ensure_indexes(database: Database) -> None:
    database["member"].create_index("email", unique=True)
    database["member"].create_index("role")
    database["session"].create_index("token")
    database["project"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    database["project"].create_index([("category", ASCENDING), ("status", ASCENDING)])
    database["project"].create_index("owner_id")
    database["project"].create_index([("featured", ASCENDING), ("created_at", DESCENDING)])
    database["project"].create_index([("views", DESCENDING)])
    database["achievement"].create_index([("member_id", ASCENDING), ("awarded_at", DESCENDING)])
    database["notification"].create_index([("member_id", ASCENDING), ("created_at", DESCENDING)])
