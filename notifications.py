"""
Notification dispatch.

Handlers schedule `NotificationDispatcher.dispatch` as a background task. A
delivery is an in-app notification row for the recipient plus a log line;
failures are logged and reported as False, never raised to the caller.
"""
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from pymongo.database import Database

from database import create_document
from schemas import Notification

logger = logging.getLogger(__name__)

Notify = Callable[[str, str, str, Dict[str, Any]], Any]

TEMPLATES = {
    "welcome": (
        "success",
        "Welcome to Tech Innovators Club!",
        "Welcome, {name}! Complete your profile, explore projects shared by other members "
        "and submit your own.",
    ),
    "project_approved": (
        "success",
        "Your Project Has Been Approved!",
        "Congratulations, {name}! Your project \"{title}\" has been approved and is now visible "
        "to the whole club.",
    ),
    "project_rejected": (
        "warning",
        "Project Submission Update",
        "Hello, {name}. Your project \"{title}\" was not approved at this time.{reason_line} "
        "Feel free to revise it and resubmit.",
    ),
    "project_liked": (
        "info",
        "Someone Liked Your Project!",
        "Great news, {name}! {liker} liked your project \"{title}\".",
    ),
}


def render(kind: str, recipient_name: str, context: Optional[Dict[str, Any]] = None) -> Tuple[str, str, str]:
    """Return (type, title, message) for a notification kind."""
    if kind not in TEMPLATES:
        raise ValueError(f"Unknown notification kind: {kind}")
    context = dict(context or {})
    reason = context.get("reason")
    values = {
        "name": recipient_name,
        "title": context.get("title", ""),
        "liker": context.get("liker", "Someone"),
        "reason_line": f" Reason: {reason}." if reason else "",
    }
    level, title, message = TEMPLATES[kind]
    return level, title, message.format(**values)


class NotificationDispatcher:
    def __init__(self, db: Database):
        self.db = db

    def dispatch(self, recipient_email: str, recipient_name: str, kind: str,
                 context: Optional[Dict[str, Any]] = None) -> bool:
        context = context or {}
        try:
            level, title, message = render(kind, recipient_name, context)
            member = self.db["member"].find_one({"email": recipient_email}, {"_id": 1})
            if member is None:
                logger.warning("No member for %s; %s notification not stored", recipient_email, kind)
                return False
            note = Notification(
                member_id=str(member["_id"]),
                kind=kind,
                title=title,
                message=message,
                type=level,
                link=context.get("link"),
            )
            create_document(self.db, "notification", note)
        except Exception:
            logger.exception("Error sending %s notification to %s", kind, recipient_email)
            return False
        logger.info("%s notification sent to %s", kind, recipient_email)
        return True
