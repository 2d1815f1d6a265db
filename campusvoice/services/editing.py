"""
Server-side editing sessions for the admin editor.

An EditingSession owns one RichTextModel plus the post's form fields for
one admin's editor tab. Sessions live in memory, keyed by (user id,
session id), and are never visible to another user.
"""

import logging
import secrets
import threading
from collections import OrderedDict
from typing import Optional

from campusvoice.content.images import ImageIngestor, ImageReference, UploadedImage
from campusvoice.content.richtext import RichTextModel
from campusvoice.content.slugs import SlugField
from campusvoice.db.models import AdminUser, Post
from campusvoice.errors import NotFoundError, ValidationError
from campusvoice.services.posts import PostFields, PostPublicationWorkflow

logger = logging.getLogger(__name__)

# Commands a client may run by name
COMMANDS = frozenset({
    "insert_text",
    "delete_selection",
    "split_block",
    "toggle_mark",
    "set_block_type",
    "toggle_list",
    "toggle_blockquote",
    "insert_link",
    "remove_link",
    "insert_image",
    "insert_horizontal_rule",
    "undo",
    "redo",
    "select",
    "select_text",
    "move_to_end",
})

EDITABLE_FIELDS = ("title", "slug", "excerpt", "cover_image")


class EditingSession:
    def __init__(self, session_id: str, user_id: int, post: Optional[Post] = None):
        self.id = session_id
        self.user_id = user_id
        self.post_id = post.id if post else None
        self.title = post.title if post else ""
        self.slug = SlugField(post.slug if post else "", editing_existing=post is not None)
        self.excerpt = (post.excerpt or "") if post else ""
        self.cover_image = (post.cover_image or "") if post else ""
        self.published = bool(post.published) if post else False

        self.document = RichTextModel.from_html(post.content) if post else RichTextModel()
        self.content = self.document.to_html()
        self._unsubscribe = self.document.subscribe(self._on_content_change)

    def _on_content_change(self, html: str) -> None:
        self.content = html

    # =========================================================================
    # FIELDS
    # =========================================================================

    def set_title(self, title: str) -> None:
        self.title = title or ""
        self.slug.on_title_change(self.title)

    def set_slug(self, value: str) -> None:
        self.slug.set_manually(value or "")

    def update(self, values: dict) -> None:
        unknown = set(values) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown field: {sorted(unknown)[0]}")
        # Title before slug so an explicit slug in the same update wins
        if "title" in values:
            self.set_title(values["title"])
        if "slug" in values:
            self.set_slug(values["slug"])
        if "excerpt" in values:
            self.excerpt = values["excerpt"] or ""
        if "cover_image" in values:
            self.cover_image = values["cover_image"] or ""

    def fields(self) -> PostFields:
        return PostFields(
            id=self.post_id,
            title=self.title,
            slug=self.slug.value,
            excerpt=self.excerpt,
            cover_image=self.cover_image,
            content=self.content,
        )

    # =========================================================================
    # DOCUMENT
    # =========================================================================

    def apply(self, name: str, args: Optional[dict] = None) -> bool:
        """Run a named editor command; True if it changed anything."""
        if name not in COMMANDS:
            raise ValidationError(f"Unknown command: {name}", code="unknown_command")
        try:
            result = getattr(self.document, name)(**(args or {}))
        except (TypeError, AttributeError) as e:
            # Wrong argument names or types
            raise ValidationError(f"Invalid arguments for {name}", code="invalid_arguments") from e
        return bool(result)

    async def insert_uploaded_image(
        self, ingestor: ImageIngestor, upload: UploadedImage, alt: str = ""
    ) -> ImageReference:
        """Ingest first, then insert the resulting reference at the cursor."""
        reference = await ingestor.ingest(upload)
        self.document.insert_image(reference.src, alt)
        return reference

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def save(self, workflow: PostPublicationWorkflow, author: Optional[AdminUser]) -> Post:
        return self._saved(workflow.save(self.fields(), author))

    def publish(self, workflow: PostPublicationWorkflow, author: Optional[AdminUser]) -> Post:
        return self._saved(workflow.publish(self.fields(), author))

    def _saved(self, post: Post) -> Post:
        # From now on this is an existing post: the slug stops following the title
        self.post_id = post.id
        self.slug.editing_existing = True
        self.published = bool(post.published)
        return post

    def state(self) -> dict:
        return {
            "session_id": self.id,
            "post_id": self.post_id,
            "title": self.title,
            "slug": self.slug.value,
            "slug_follows_title": self.slug.follows_title,
            "excerpt": self.excerpt,
            "cover_image": self.cover_image,
            "published": self.published,
            "content": self.content,
            "editor": self.document.state(),
        }

    def close(self) -> None:
        self._unsubscribe()


class EditingSessionRegistry:
    """In-process store of open editing sessions.

    Each user keeps at most max_per_user sessions; opening one more
    closes that user's oldest.
    """

    def __init__(self, max_per_user: int = 20):
        self.max_per_user = max_per_user
        self._sessions: "OrderedDict[tuple[int, str], EditingSession]" = OrderedDict()
        self._lock = threading.Lock()

    def open(self, user_id: int, post: Optional[Post] = None) -> EditingSession:
        session = EditingSession(secrets.token_urlsafe(12), user_id, post)
        with self._lock:
            self._sessions[(user_id, session.id)] = session
            owned = [key for key in self._sessions if key[0] == user_id]
            for key in owned[:-self.max_per_user]:
                self._sessions.pop(key).close()
        logger.debug("Opened editing session %s for user %s", session.id, user_id)
        return session

    def get(self, user_id: int, session_id: str) -> EditingSession:
        with self._lock:
            session = self._sessions.get((user_id, session_id))
        if session is None:
            raise NotFoundError("Editing session not found")
        return session

    def close(self, user_id: int, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop((user_id, session_id), None)
        if session is not None:
            session.close()

    def __len__(self) -> int:
        return len(self._sessions)
