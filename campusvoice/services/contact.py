"""
Contact intake for CampusVoice.

The public form (/contact) and the JSON boundary (/contact-intake) share
validate_submission(). Once a submission is valid the boundary always
answers with the thank-you message: saving the message and notifying the
admin are both best effort and only logged when they fail.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campusvoice import config
from campusvoice.db.models import ContactMessage
from campusvoice.errors import InfrastructureError, NotFoundError, ValidationError
from campusvoice.security.confirmation import issue_confirmation, verify_confirmation
from campusvoice.services.mailer import Notifier

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_LENGTH = (2, 100)
MESSAGE_LENGTH = (10, 5000)
THANK_YOU_MESSAGE = "Thank you! We've received your message and will get back to you soon."


@dataclass
class ContactSubmission:
    name: str
    email: str
    message: str
    subject: Optional[str] = None


def validate_submission(data, require_subject: bool = False) -> ContactSubmission:
    """Validate a raw mapping of form/JSON fields.

    Values are stripped first; anything that is not a string counts as
    missing. The form requires a subject, the boundary does not.
    """
    if not isinstance(data, dict):
        raise ValidationError("Missing required fields", code="missing_fields")

    def field(name: str) -> str:
        value = data.get(name)
        return value.strip() if isinstance(value, str) else ""

    name, email, message, subject = field("name"), field("email"), field("message"), field("subject")

    if not name or not email or not message or (require_subject and not subject):
        raise ValidationError("Missing required fields", code="missing_fields")
    if not NAME_LENGTH[0] <= len(name) <= NAME_LENGTH[1]:
        raise ValidationError("Name must be between 2-100 characters", code="invalid_name")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format", code="invalid_email")
    if not MESSAGE_LENGTH[0] <= len(message) <= MESSAGE_LENGTH[1]:
        raise ValidationError("Message must be between 10-5000 characters", code="invalid_message")

    return ContactSubmission(name=name, email=email, message=message, subject=subject or None)


def cors_headers(origin: Optional[str], allowed: Optional[list] = None) -> dict:
    """CORS headers for /contact-intake.

    An origin outside the allow-list gets the first allowed origin back,
    which the browser then rejects.
    """
    allowed = config.CONTACT_ALLOWED_ORIGINS if allowed is None else allowed
    cors_origin = origin if origin and origin in allowed else (allowed[0] if allowed else "null")
    return {
        "Access-Control-Allow-Origin": cors_origin,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
        "Access-Control-Max-Age": "86400",
        "Vary": "Origin",
    }


# =============================================================================
# STORE
# =============================================================================

class ContactMessageStore:
    def __init__(self, db: Session):
        self.db = db

    def create(self, submission: ContactSubmission) -> ContactMessage:
        message = ContactMessage(
            name=submission.name,
            email=submission.email,
            message=submission.message,
        )
        try:
            self.db.add(message)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise InfrastructureError("Could not save contact message") from e
        self.db.refresh(message)
        return message

    def get(self, message_id: int) -> ContactMessage:
        message = self.db.get(ContactMessage, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def update(self, message_id: int, read: bool) -> ContactMessage:
        message = self.get(message_id)
        message.read = read
        self.db.commit()
        return message

    def toggle_read(self, message_id: int) -> ContactMessage:
        message = self.get(message_id)
        return self.update(message_id, not message.read)

    def request_deletion(self, message_id: int) -> str:
        self.get(message_id)
        return issue_confirmation("message", message_id)

    def delete(self, message_id: int, confirmation: str) -> None:
        verify_confirmation(confirmation, "message", message_id)
        message = self.get(message_id)
        self.db.delete(message)
        self.db.commit()
        logger.info("Deleted contact message %s", message_id)

    def list(self) -> list[ContactMessage]:
        return (
            self.db.query(ContactMessage)
            .order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
            .all()
        )


# =============================================================================
# WORKFLOW
# =============================================================================

class ContactIntakeWorkflow:
    def __init__(self, store: Optional[ContactMessageStore], notifier: Notifier):
        self.store = store
        self.notifier = notifier

    async def receive(self, submission: ContactSubmission) -> str:
        """Save and forward a validated submission; always returns the thank-you text."""
        if self.store is not None:
            try:
                saved = self.store.create(submission)
                logger.info("Contact message saved: %s", saved.id)
            except Exception:
                logger.exception("Failed to save contact message from %s", submission.email)

        try:
            await self.notifier.notify(submission)
        except Exception:
            logger.exception("Failed to send contact notification for %s", submission.email)

        return THANK_YOU_MESSAGE
