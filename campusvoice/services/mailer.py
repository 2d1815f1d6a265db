"""
Outbound notification for contact messages.

ResendNotifier posts to the Resend HTTP API. Without an API key the
LoggingNotifier writes the message to the log instead, so a fresh
checkout still shows what would have been sent.
"""

import logging
from typing import Optional, Protocol

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from campusvoice import config
from campusvoice.errors import InfrastructureError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

_email_templates = Environment(
    loader=FileSystemLoader(str(config.PACKAGE_DIR / "templates" / "email")),
    autoescape=select_autoescape(["html"]),
)


class Notifier(Protocol):
    async def notify(self, submission) -> None:
        ...


def render_contact_email(submission) -> str:
    """HTML body for the admin notification; every field is escaped."""
    template = _email_templates.get_template("contact_notification.html")
    return template.render(submission=submission, site_name=config.SITE_NAME)


class ResendNotifier:
    def __init__(
        self,
        api_key: str,
        to: str = config.ADMIN_EMAIL,
        sender: str = config.MAIL_FROM,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.to = to
        self.sender = sender
        self.timeout = timeout
        self._client = client

    def payload(self, submission) -> dict:
        return {
            "from": self.sender,
            "to": self.to,
            "reply_to": submission.email,
            "subject": f"New Contact Message from {submission.name}",
            "html": render_contact_email(submission),
        }

    async def notify(self, submission) -> None:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            if self._client is not None:
                response = await self._client.post(RESEND_API_URL, headers=headers, json=self.payload(submission))
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(RESEND_API_URL, headers=headers, json=self.payload(submission))
        except httpx.HTTPError as e:
            raise InfrastructureError("Failed to reach Resend") from e

        if response.status_code >= 400:
            logger.error("Resend API error %s: %s", response.status_code, response.text[:500])
            raise InfrastructureError("Failed to send email via Resend")
        logger.info("Contact notification sent to %s", self.to)


class LoggingNotifier:
    """Used when RESEND_API_KEY is not configured."""

    async def notify(self, submission) -> None:
        logger.info(
            "Resend API key not configured; contact message from %s <%s>: %s",
            submission.name,
            submission.email,
            submission.message,
        )


def build_notifier(api_key: str = config.RESEND_API_KEY) -> Notifier:
    if api_key:
        return ResendNotifier(api_key)
    return LoggingNotifier()
