"""
Signed confirmation tokens for destructive admin actions.

A delete is a two-step action: the confirmation page issues a token bound
to the object, and only a request carrying that token performs the delete.
"""

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from campusvoice import config
from campusvoice.errors import ValidationError

CONFIRMATION_MAX_AGE = 10 * 60  # 10 minutes

_serializer = URLSafeTimedSerializer(config.SECRET_KEY, salt="campusvoice-confirm")


def issue_confirmation(kind: str, object_id: int) -> str:
    return _serializer.dumps({"kind": kind, "id": object_id})


def verify_confirmation(token: str, kind: str, object_id: int, max_age: int = CONFIRMATION_MAX_AGE) -> None:
    """Raise ValidationError unless token confirms deleting this object."""
    if not token:
        raise ValidationError("Please confirm the deletion", code="confirmation_required")
    try:
        data = _serializer.loads(token, max_age=max_age)
    except SignatureExpired:
        raise ValidationError("Confirmation expired, please try again", code="confirmation_expired")
    except BadSignature:
        raise ValidationError("Invalid confirmation", code="confirmation_invalid")
    if data.get("kind") != kind or data.get("id") != object_id:
        raise ValidationError("Invalid confirmation", code="confirmation_invalid")
