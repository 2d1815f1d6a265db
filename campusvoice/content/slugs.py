"""URL slug generation for posts."""

import re

MAX_SLUG_LENGTH = 100

_NON_SLUG_RUN = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Turn a title into a URL-safe slug.

    "Hello, World!" -> "hello-world". Never fails; an empty title gives
    an empty slug.
    """
    slug = _NON_SLUG_RUN.sub("-", (title or "").lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH].rstrip("-")


class SlugField:
    """Slug value of a post being edited.

    While creating a new post the slug follows the title until the author
    types into the slug field. Existing posts keep their slug.
    """

    def __init__(self, value: str = "", editing_existing: bool = False):
        self.value = value
        self.editing_existing = editing_existing
        self.touched = False

    @property
    def follows_title(self) -> bool:
        return not self.editing_existing and not self.touched

    def on_title_change(self, title: str) -> str:
        if self.follows_title:
            self.value = slugify(title)
        return self.value

    def set_manually(self, value: str) -> str:
        self.touched = True
        self.value = value
        return self.value
