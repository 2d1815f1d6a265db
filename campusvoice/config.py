"""
Runtime configuration for CampusVoice.
Everything is read from environment variables once, at import time.
"""

import logging
import os
import secrets
import warnings
from pathlib import Path

PACKAGE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("CAMPUSVOICE_DATA_DIR", str(PACKAGE_DIR.parent / "data")))

SITE_NAME = os.getenv("CAMPUSVOICE_SITE_NAME", "CampusVoice Diaries")
SITE_URL = os.getenv("CAMPUSVOICE_SITE_URL", "http://localhost:8000").rstrip("/")
IS_PRODUCTION = os.getenv("CAMPUSVOICE_ENV") == "production"

# Database
DB_PATH = os.getenv("CAMPUSVOICE_DB_PATH", str(DATA_DIR / "campusvoice.db"))

# Sessions and signed tokens
SECRET_KEY = os.getenv("CAMPUSVOICE_SECRET_KEY")
if not SECRET_KEY:
    if IS_PRODUCTION:
        raise RuntimeError("CAMPUSVOICE_SECRET_KEY must be set in production environment")
    warnings.warn("CAMPUSVOICE_SECRET_KEY not set - using random key (sessions won't persist across restarts)")
    SECRET_KEY = secrets.token_hex(32)

# Images
IMAGE_STORAGE = os.getenv("CAMPUSVOICE_IMAGE_STORAGE", "inline").lower()
UPLOAD_DIR = Path(os.getenv("CAMPUSVOICE_UPLOAD_DIR", str(PACKAGE_DIR / "static" / "uploads")))
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_BUCKET = os.getenv("SUPABASE_IMAGES_BUCKET", "article-images")

# Contact intake
ADMIN_EMAIL = os.getenv("CAMPUSVOICE_ADMIN_EMAIL", "admin@example.com")
MAIL_FROM = os.getenv("CAMPUSVOICE_MAIL_FROM", "CampusVoice <noreply@campusvoice.com>")
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
CONTACT_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CAMPUSVOICE_ALLOWED_ORIGINS",
        "http://localhost:5173,http://localhost:8080,http://localhost:3000",
    ).split(",")
    if origin.strip()
]

# Rate limits (slowapi syntax)
LOGIN_RATE_LIMIT = os.getenv("CAMPUSVOICE_LOGIN_RATE_LIMIT", "5/minute")
DEFAULT_CONTACT_RATE_LIMIT = "10/minute"
CONTACT_RATE_LIMIT = os.getenv("CAMPUSVOICE_CONTACT_RATE_LIMIT", DEFAULT_CONTACT_RATE_LIMIT)

LOG_LEVEL = os.getenv("CAMPUSVOICE_LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install a basic stream handler for the campusvoice loggers."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
