"""
Rate limiting for CampusVoice.
One slowapi Limiter shared by the routes that take untrusted writes
(admin login, contact intake), keyed by client IP.
"""

from fastapi import Request
from slowapi import Limiter


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, honouring a proxy's X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=get_client_ip)
