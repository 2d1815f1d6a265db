"""
SQLAlchemy models for CampusVoice.
"""

import re
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text,
)
from sqlalchemy.orm import relationship

from campusvoice.db.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite stores datetimes without a zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AdminUser(Base):
    """A principal allowed into the admin area."""
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    password_hash = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    posts = relationship("Post", back_populates="author")

    def __repr__(self):
        return f"<AdminUser {self.email}>"


class Post(Base):
    """
    Newsletter article.
    content holds sanitized HTML serialized from the rich-text editor.
    published_at is set exactly when published is true.
    """
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    excerpt = Column(Text)
    cover_image = Column(Text)
    content = Column(Text, nullable=False, default="")
    published = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    author_id = Column(Integer, ForeignKey("admin_users.id", ondelete="SET NULL"))

    author = relationship("AdminUser", back_populates="posts")

    __table_args__ = (
        CheckConstraint(
            "(published = 1 AND published_at IS NOT NULL) OR "
            "(published = 0 AND published_at IS NULL)",
            name="check_post_published_at",
        ),
        Index("idx_posts_published_at", "published", "published_at"),
        Index("idx_posts_created_at", "created_at"),
    )

    @property
    def reading_time(self) -> int:
        """Reading time in minutes (~200 words/min), ignoring markup."""
        words = re.sub(r"<[^>]+>", " ", self.content or "").split()
        return max(1, round(len(words) / 200))

    def __repr__(self):
        return f"<Post {self.slug}>"


class ContactMessage(Base):
    """Message left through the public contact form."""
    __tablename__ = "contact_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(320), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_contact_messages_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<ContactMessage {self.id} from {self.email}>"
