"""Security modules for CampusVoice."""

from campusvoice.security.confirmation import issue_confirmation, verify_confirmation
from campusvoice.security.headers import SecurityHeadersMiddleware
from campusvoice.security.logging import RequestLogMiddleware
from campusvoice.security.rate_limit import get_client_ip, limiter

__all__ = [
    "SecurityHeadersMiddleware",
    "RequestLogMiddleware",
    "issue_confirmation",
    "verify_confirmation",
    "get_client_ip",
    "limiter",
]
