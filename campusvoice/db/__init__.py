"""Database package for CampusVoice."""

from campusvoice.db.database import get_db, init_db, Base
from campusvoice.db.models import AdminUser, ContactMessage, Post

__all__ = ["get_db", "init_db", "Base", "AdminUser", "ContactMessage", "Post"]
