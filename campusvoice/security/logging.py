"""Request logging middleware"""

import logging
import re
import time
from urllib.parse import unquote_plus
from typing import Pattern

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from campusvoice.security.rate_limit import get_client_ip

logger = logging.getLogger("campusvoice.requests")


THREAT_PATTERNS: dict[str, Pattern] = {
    # Script injection aimed at the article pages and the contact form
    "xss": re.compile(r"<script|<(?:img|svg)[^>]+on\w+|\bon(?:error|load|click|focus)\s*=|javascript\s*:", re.I),
    "path_traversal": re.compile(r"\.\./|%2e%2e(?:%2f|/)|etc/passwd", re.I),
    # Scanners looking for software this site does not run
    "probe": re.compile(r"/(?:wp-admin|wp-login\.php|xmlrpc\.php|phpmyadmin|\.env|\.git)\b", re.I),
}


def detect_threat(path: str, query: str) -> tuple[str | None, str | None]:
    target = unquote_plus(f"{path}?{query}" if query else path)
    for threat_type, pattern in THREAT_PATTERNS.items():
        match = pattern.search(target)
        if match:
            return threat_type, match.group(0)
    return None, None


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request; warn on errors, rate limits and probes."""

    def __init__(self, app, skip_prefixes: tuple[str, ...] = ("/static/",)):
        super().__init__(app)
        self.skip_prefixes = skip_prefixes

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path.startswith(self.skip_prefixes):
            return await call_next(request)

        start_time = time.perf_counter()
        query = str(request.query_params)
        threat_type, threat_details = detect_threat(path, query)

        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        if threat_type is not None:
            logger.warning(
                "Suspicious request threat=%s match=%r ip=%s %s %s -> %s",
                threat_type, threat_details, get_client_ip(request),
                request.method, path, response.status_code,
            )
        elif response.status_code == 429 or response.status_code >= 500:
            logger.warning(
                "%s %s -> %s (%.1fms) ip=%s",
                request.method, path, response.status_code, duration_ms, get_client_ip(request),
            )
        else:
            logger.info("%s %s -> %s (%.1fms)", request.method, path, response.status_code, duration_ms)
        return response
