"""
Posts service for CampusVoice.
Persistence (PostStore) and the draft/publish workflow on top of it.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campusvoice.content.richtext import RichTextModel
from campusvoice.content.sanitizer import is_safe_url
from campusvoice.content.slugs import MAX_SLUG_LENGTH
from campusvoice.db.models import AdminUser, Post, utcnow
from campusvoice.errors import ConflictError, NotFoundError, ValidationError
from campusvoice.security.confirmation import issue_confirmation, verify_confirmation

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SLUG_CONFLICT_MESSAGE = "An article with this URL already exists"


@dataclass
class PostFields:
    """Field set written by one save or publish."""
    title: str
    slug: str
    content: str = ""
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    id: Optional[int] = None


# =============================================================================
# PERSISTENCE
# =============================================================================

class PostStore:
    """CRUD over the posts table. Slug uniqueness is a table constraint."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, post_id: int) -> Post:
        post = self.db.query(Post).filter(Post.id == post_id).first()
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def find_by_slug(self, slug: str) -> Optional[Post]:
        return self.db.query(Post).filter(Post.slug == slug).first()

    def get_by_slug(self, slug: str, published_only: bool = True) -> Post:
        query = self.db.query(Post).filter(Post.slug == slug)
        if published_only:
            query = query.filter(Post.published.is_(True))
        post = query.first()
        if post is None:
            raise NotFoundError("Article not found")
        return post

    def list(self, published_only: bool = False) -> list[Post]:
        """Newest first: by publication date for the public list, else by creation."""
        query = self.db.query(Post)
        if published_only:
            return (
                query.filter(Post.published.is_(True))
                .order_by(Post.published_at.desc(), Post.id.desc())
                .all()
            )
        return query.order_by(Post.created_at.desc(), Post.id.desc()).all()

    def create(self, values: dict) -> Post:
        post = Post(**values)
        self.db.add(post)
        self._commit()
        self.db.refresh(post)
        return post

    def update(self, post_id: int, values: dict) -> Post:
        post = self.get(post_id)
        for key, value in values.items():
            setattr(post, key, value)
        self._commit()
        self.db.refresh(post)
        return post

    def delete(self, post_id: int) -> None:
        post = self.get(post_id)
        self.db.delete(post)
        self.db.commit()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if "slug" in str(e.orig):
                raise ConflictError(SLUG_CONFLICT_MESSAGE) from e
            raise


# =============================================================================
# WORKFLOW
# =============================================================================

class PostPublicationWorkflow:
    """Draft <-> Published state machine, with Deleted as the end state.

    save() keeps the published flag as it is; publish() sets it and stamps
    published_at; unpublish() clears both. A slug that belongs to another
    post is a ConflictError and nothing is written.
    """

    def __init__(self, store: PostStore, clock: Callable = utcnow):
        self.store = store
        self.clock = clock

    def _validated(self, fields: PostFields) -> dict:
        title = (fields.title or "").strip()
        slug = (fields.slug or "").strip()
        if not title:
            raise ValidationError("Please enter a title", code="title_required")
        if not slug:
            raise ValidationError("Please enter a URL slug", code="slug_required")
        if len(slug) > MAX_SLUG_LENGTH or not SLUG_PATTERN.match(slug):
            raise ValidationError(
                "URL may only contain lowercase letters, numbers and single hyphens",
                code="slug_invalid",
            )

        cover_image = (fields.cover_image or "").strip() or None
        if cover_image and not is_safe_url(cover_image, image=True):
            raise ValidationError("Cover image must be an image URL", code="cover_image_invalid")

        return {
            "title": title,
            "slug": slug,
            "excerpt": (fields.excerpt or "").strip() or None,
            "cover_image": cover_image,
            "content": RichTextModel.from_html(fields.content or "").to_html(),
        }

    def _check_slug(self, slug: str, post_id: Optional[int]) -> None:
        existing = self.store.find_by_slug(slug)
        if existing is not None and existing.id != post_id:
            raise ConflictError(SLUG_CONFLICT_MESSAGE)

    def _write(self, fields: PostFields, author: Optional[AdminUser], extra: dict) -> Post:
        values = self._validated(fields)
        values.update(extra)
        values["author_id"] = author.id if author is not None else None
        self._check_slug(values["slug"], fields.id)

        if fields.id is None:
            values.setdefault("published", False)
            values.setdefault("published_at", None)
            post = self.store.create(values)
            logger.info("Created post %s (%s)", post.id, post.slug)
        else:
            post = self.store.update(fields.id, values)
            logger.info("Saved post %s (%s)", post.id, post.slug)
        return post

    def save(self, fields: PostFields, author: Optional[AdminUser] = None) -> Post:
        return self._write(fields, author, {})

    def publish(self, fields: PostFields, author: Optional[AdminUser] = None) -> Post:
        post = self._write(fields, author, {"published": True, "published_at": self.clock()})
        logger.info("Published post %s", post.id)
        return post

    def unpublish(self, post_id: int) -> Post:
        post = self.store.update(post_id, {"published": False, "published_at": None})
        logger.info("Unpublished post %s", post_id)
        return post

    def request_deletion(self, post_id: int) -> str:
        """Issue the confirmation token a later delete() must present."""
        self.store.get(post_id)
        return issue_confirmation("post", post_id)

    def delete(self, post_id: int, confirmation: str) -> None:
        verify_confirmation(confirmation, "post", post_id)
        self.store.delete(post_id)
        logger.info("Deleted post %s", post_id)

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, post_id: int) -> Post:
        return self.store.get(post_id)

    def list_all(self) -> list[Post]:
        return self.store.list(published_only=False)

    def list_published(self) -> list[Post]:
        # Filter again here so a store bug can never leak a draft
        return [post for post in self.store.list(published_only=True) if post.published]

    def get_published(self, slug: str) -> Post:
        post = self.store.get_by_slug(slug, published_only=True)
        if not post.published:
            raise NotFoundError("Article not found")
        return post
