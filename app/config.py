import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./discussion.db")
DB_ECHO = os.getenv("DB_ECHO", "false").strip().lower() in ("1", "true", "yes")

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "*").split(",")
    if o.strip()
]

FORUM_DEFAULT_PAGE_SIZE = int(os.getenv("FORUM_DEFAULT_PAGE_SIZE", "20"))
FORUM_MAX_PAGE_SIZE = int(os.getenv("FORUM_MAX_PAGE_SIZE", "100"))

FORUM_DEFAULT_AVATAR_URL = os.getenv("FORUM_DEFAULT_AVATAR_URL", "/default-avatar.png")

FORUM_THREAD_RATE   = os.getenv("FORUM_THREAD_RATE", "3/minute;20/hour;60/day")
FORUM_POST_RATE     = os.getenv("FORUM_POST_RATE", "6/minute;40/hour;150/day")
FORUM_REACTION_RATE = os.getenv("FORUM_REACTION_RATE", "30/minute;1000/day")
