"""
Settings for the room allocation service
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    if os.getenv("DB_HOST"):
        # psycopg 3 driver
        return (
            f"postgresql+psycopg://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
            f"@{os.getenv('DB_HOST')}:{os.getenv('DB_PORT', '5432')}/{os.getenv('DB_NAME')}"
        )
    return "sqlite:///./room_allocation.db"


# Database
DATABASE_URL = _database_url()
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Site clock
SITE_TIMEZONE = os.getenv("SITE_TIMEZONE", "Asia/Jakarta")

# Guest rules
# Guests without a checkout date count as "past" once the visit is older than this
PAST_GUEST_STALE_DAYS = int(os.getenv("PAST_GUEST_STALE_DAYS", "7"))
GUEST_MAX_STAY_DAYS = int(os.getenv("GUEST_MAX_STAY_DAYS", "30"))

# Free text
NOTES_MAX_LENGTH = 1000

# Logging
LOG_FILE = os.getenv("LOG_FILE", "room_allocation_logs.txt")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Rate limiting
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
RATE_LIMIT_MUTATIONS = os.getenv("RATE_LIMIT_MUTATIONS", "30/minute")
RATE_LIMIT_STORAGE = os.getenv("REDIS_URL", "memory://")

# CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]
