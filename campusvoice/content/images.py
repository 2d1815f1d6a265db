"""
Image ingestion: validate an upload, then store it or encode it inline.

Two strategies produce an image reference:
- a storage backend (local static directory or a Supabase storage bucket)
  that returns a durable URL;
- the inline encoder, which turns the bytes into a data: URL.

The inline encoder is always available. When a backend is configured but
fails, the upload falls back to the inline encoder so that every accepted
image still renders. Only raster types in STORED_EXTENSIONS are written to a
backend, under an extension taken from the content type; anything else
(SVG included) stays inline, where an <img> cannot run its scripts.
"""

import asyncio
import base64
import binascii
import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import httpx

from campusvoice import config
from campusvoice.errors import EncodingFailed, TooLarge, UnsupportedType

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MiB

STORED_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/avif": "avif",
}


@dataclass
class UploadedImage:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> Optional[str]:
        """File extension for storage, or None if the type is kept inline."""
        return STORED_EXTENSIONS.get((self.content_type or "").lower())


@dataclass
class ImageReference:
    src: str
    stored: bool = False


class StorageBackend(Protocol):
    name: str

    async def store(self, filename: str, content_type: str, data: bytes) -> str:
        ...


def unique_filename(extension: str) -> str:
    """Generate a collision-resistant name like 1718031234567-a1b2c3.jpg"""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}.{extension}"


def encode_data_url(content_type: str, data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


class LocalDirectoryBackend:
    """Write uploads into a directory served under a static URL prefix."""

    name = "local"

    def __init__(self, directory: Path, url_prefix: str = "/static/uploads"):
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")

    async def store(self, filename: str, content_type: str, data: bytes) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread((self.directory / filename).write_bytes, data)
        return f"{self.url_prefix}/{filename}"


class SupabaseStorageBackend:
    """Upload to a public Supabase storage bucket over its REST API."""

    name = "supabase"

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str = "article-images",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self._client = client

    def public_url(self, filename: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{filename}"

    async def store(self, filename: str, content_type: str, data: bytes) -> str:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": content_type,
            "Cache-Control": "3600",
            "x-upsert": "false",
        }
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{filename}"

        if self._client is not None:
            response = await self._client.post(url, headers=headers, content=data)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=headers, content=data)
        response.raise_for_status()
        return self.public_url(filename)


class ImageIngestor:
    """Validate uploads and turn them into <img src> references."""

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        max_bytes: int = MAX_IMAGE_BYTES,
    ):
        self.backend = backend
        self.max_bytes = max_bytes

    def validate(self, upload: UploadedImage) -> None:
        if not (upload.content_type or "").lower().startswith("image/"):
            raise UnsupportedType("Please upload an image file")
        if upload.size > self.max_bytes:
            raise TooLarge("Image must be less than 5MB")

    async def ingest(self, upload: UploadedImage) -> ImageReference:
        self.validate(upload)

        if self.backend is not None and upload.extension is not None:
            filename = unique_filename(upload.extension)
            try:
                url = await self.backend.store(filename, upload.content_type, upload.data)
                logger.info("Stored image %s via %s backend", filename, self.backend.name)
                return ImageReference(src=url, stored=True)
            except Exception:
                logger.warning(
                    "Image backend %s failed, falling back to inline encoding",
                    self.backend.name,
                    exc_info=True,
                )

        try:
            src = encode_data_url(upload.content_type.lower(), upload.data)
        except (TypeError, ValueError, binascii.Error) as e:
            raise EncodingFailed("Failed to process image") from e
        return ImageReference(src=src, stored=False)


def build_ingestor(storage: str = config.IMAGE_STORAGE) -> ImageIngestor:
    """Pick the storage strategy named by configuration."""
    if storage == "local":
        return ImageIngestor(LocalDirectoryBackend(config.UPLOAD_DIR))
    if storage == "supabase":
        if config.SUPABASE_URL and config.SUPABASE_SERVICE_KEY:
            return ImageIngestor(SupabaseStorageBackend(
                config.SUPABASE_URL,
                config.SUPABASE_SERVICE_KEY,
                bucket=config.SUPABASE_BUCKET,
            ))
        logger.warning("Supabase storage selected but not configured; using inline images")
    return ImageIngestor()
