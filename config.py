# config.py
# Environment-driven settings for the Tech Club API

import os

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
DATABASE_NAME = os.getenv("DATABASE_NAME", "tech_club")

# Server
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Sessions
SESSION_DAYS = int(os.getenv("SESSION_DAYS", "7"))

# Listings
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
RELATED_LIMIT = int(os.getenv("RELATED_LIMIT", "3"))

# Moderation
REJECTION_REASON = os.getenv("REJECTION_REASON", "Did not meet community guidelines")
