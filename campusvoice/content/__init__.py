"""Authoring pipeline: sanitizer, slugs, image ingestion and the rich-text model."""

from campusvoice.content.images import ImageIngestor, ImageReference, UploadedImage
from campusvoice.content.richtext import RichTextModel
from campusvoice.content.sanitizer import sanitize
from campusvoice.content.slugs import SlugField, slugify

__all__ = [
    "ImageIngestor",
    "ImageReference",
    "UploadedImage",
    "RichTextModel",
    "sanitize",
    "SlugField",
    "slugify",
]
