"""
Shared Jinja2 templates for the HTML routes.
"""

from fastapi import Request
from fastapi.templating import Jinja2Templates

from campusvoice import config
from campusvoice.content.sanitizer import sanitize

templates = Jinja2Templates(directory=config.PACKAGE_DIR / "templates")
templates.env.globals["site_name"] = config.SITE_NAME
templates.env.globals["site_url"] = config.SITE_URL
# Stored post HTML is re-sanitized at the point of output
templates.env.filters["sanitize"] = sanitize


def render(request: Request, name: str, context: dict | None = None, status_code: int = 200, **kwargs):
    return templates.TemplateResponse(request, name, context or {}, status_code=status_code, **kwargs)
