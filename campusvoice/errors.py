"""
Error taxonomy for CampusVoice.

Validation and conflict errors are always surfaced to the caller.
Infrastructure errors raised inside best-effort side channels (contact
persistence, outbound mail) are logged and swallowed by the caller.
"""

from typing import Optional


class CampusVoiceError(Exception):
    """Root of every error the application raises on purpose."""

    code = "error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(CampusVoiceError):
    """Bad input shape or length. The user can correct and resubmit."""

    code = "validation_error"
    status_code = 400


class ConflictError(CampusVoiceError):
    """A unique value (the post slug) is already taken."""

    code = "conflict"
    status_code = 409


class NotFoundError(CampusVoiceError):
    code = "not_found"
    status_code = 404


class AuthError(CampusVoiceError):
    """Invalid credentials or unauthenticated access to the admin area."""

    code = "unauthenticated"
    status_code = 401


class IngestError(CampusVoiceError):
    """Image ingestion failed; nothing was stored."""

    code = "ingest_failed"
    status_code = 400


class UnsupportedType(IngestError):
    code = "unsupported_type"
    status_code = 415


class TooLarge(IngestError):
    code = "too_large"
    status_code = 413


class EncodingFailed(IngestError):
    code = "encoding_failed"
    status_code = 500


class InfrastructureError(CampusVoiceError):
    """Persistence, storage or mail delivery failed."""

    code = "infrastructure_error"
    status_code = 502
