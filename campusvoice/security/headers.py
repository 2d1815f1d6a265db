"""
Security headers for every CampusVoice response.

Article images may be inline data: URLs or come from a storage host, so
img-src allows data: and any https origin. Everything else is same-origin.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from campusvoice import config


class SecurityHeadersMiddleware(BaseHTTPMiddleware):

    PERMISSIONS_POLICY = ", ".join([
        "camera=()",
        "geolocation=()",
        "microphone=()",
        "payment=()",
        "usb=()",
        "xr-spatial-tracking=()",
    ])

    CSP_DIRECTIVES = {
        "default-src": "'self'",
        "script-src": "'self'",
        "style-src": "'self' 'unsafe-inline'",
        "img-src": "'self' data: https:",
        "connect-src": "'self'",
        "object-src": "'none'",
        "frame-ancestors": "'none'",
        "base-uri": "'self'",
        "form-action": "'self'",
    }

    def __init__(self, app, csp_overrides: dict | None = None, hsts: bool = config.IS_PRODUCTION):
        super().__init__(app)
        self.hsts = hsts
        self.csp_directives = {**self.CSP_DIRECTIVES}
        if csp_overrides:
            self.csp_directives.update(csp_overrides)

        self.csp = "; ".join(
            f"{key} {value}".strip() if value else key
            for key, value in self.csp_directives.items()
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
        response.headers["Content-Security-Policy"] = self.csp
        response.headers["Permissions-Policy"] = self.PERMISSIONS_POLICY

        # Plain-http development servers must not pin HTTPS
        if self.hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        if request.url.path.startswith("/admin"):
            response.headers.setdefault("Cache-Control", "no-store")

        return response
