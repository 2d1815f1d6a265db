"""
HTML sanitizer shared by the editor and every public render path.

Stored post content is never trusted: the database can be written to
directly, so the public views call sanitize() immediately before the
HTML reaches a template.
"""

import re

import bleach
from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

# Elements removed together with everything inside them
DROP_WITH_CONTENT = [
    "script", "style", "iframe", "object", "embed",
    "form", "noscript", "template", "frame", "frameset",
]

ALLOWED_TAGS = frozenset({
    "p", "br", "h1", "h2", "h3", "h4",
    "strong", "b", "em", "i", "s", "code", "pre",
    "ul", "ol", "li", "blockquote", "hr",
    "a", "img",
})

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "data"})

MARKUP_NOISE = (Comment, Declaration, Doctype, ProcessingInstruction)

MAX_PASSES = 3

_URI_NOISE = re.compile(r"[`\x00-\x20\x7f-\xa0\s]+")


def _normalize_uri(value: str) -> str:
    return _URI_NOISE.sub("", value).lower()


def _allow_link_attribute(tag: str, name: str, value: str) -> bool:
    if name in ("title", "rel", "target"):
        return True
    if name == "href":
        return is_safe_url(value)
    return False


def _allow_image_attribute(tag: str, name: str, value: str) -> bool:
    if name in ("alt", "title"):
        return True
    if name == "src":
        return is_safe_url(value, image=True)
    return False


ALLOWED_ATTRIBUTES = {
    "a": _allow_link_attribute,
    "img": _allow_image_attribute,
}


def is_safe_url(url: str, *, image: bool = False) -> bool:
    """Check a link or image target against the same rules sanitize() applies."""
    if not url or not url.strip():
        return False
    uri = _normalize_uri(url)
    if ":" in uri.split("/", 1)[0]:
        scheme = uri.split(":", 1)[0]
        if scheme not in ALLOWED_PROTOCOLS:
            return False
        if scheme == "data":
            return image and uri.startswith("data:image/")
        if scheme == "mailto":
            return not image
    return True


def sanitize(html: str) -> str:
    """Return a copy of html that is safe to inject into a page.

    Script-executing constructs (script elements, on* handlers,
    javascript: URIs) are removed; the formatting tags produced by the
    rich-text editor survive. sanitize(sanitize(x)) == sanitize(x).
    """
    if not html:
        return ""

    cleaned = _clean(html)
    # Malformed markup can parse differently once cleaned; repeat until stable
    for _ in range(MAX_PASSES):
        again = _clean(cleaned)
        if again == cleaned:
            break
        cleaned = again
    return cleaned


def _clean(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(DROP_WITH_CONTENT):
        element.decompose()
    for node in soup.find_all(string=lambda s: isinstance(s, MARKUP_NOISE)):
        node.extract()
    # bleach would pad stripped block elements with newlines
    for element in soup.find_all(True):
        if element.name not in ALLOWED_TAGS:
            element.unwrap()

    return bleach.clean(
        str(soup),
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )
