"""
Admin sign-in routes for CampusVoice.
Email/password against admin users, signed session cookie, CSRF
double-submit cookie on the login form.
"""

import secrets
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import RedirectResponse

from campusvoice import config
from campusvoice.errors import AuthError
from campusvoice.routes.deps import SESSION_COOKIE_NAME, get_auth_session
from campusvoice.routes.pages import render
from campusvoice.security.rate_limit import limiter
from campusvoice.services.auth import SESSION_MAX_AGE, AuthSession

router = APIRouter(prefix="/admin", tags=["auth"])

CSRF_COOKIE_NAME = "campusvoice_csrf"
DEFAULT_NEXT = "/admin"


def is_safe_redirect_url(url: str) -> bool:
    """Only same-origin relative paths; blocks //host and scheme URLs."""
    if not url:
        return False
    parsed = urlparse(url)
    return not parsed.scheme and not parsed.netloc and url.startswith("/") and not url.startswith("//")


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def verify_csrf_token(request: Request, submitted_token: str) -> bool:
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
    if not cookie_token or not submitted_token:
        return False
    return secrets.compare_digest(cookie_token, submitted_token)


def login_form(request: Request, next: str, error: str | None = None, email: str = "", status_code: int = 200):
    csrf_token = generate_csrf_token()
    response = render(
        request,
        "admin/login.html",
        {"error": error, "next": next, "email": email, "csrf_token": csrf_token},
        status_code=status_code,
    )
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=csrf_token,
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="strict",
        max_age=3600,
    )
    return response


def write_session_cookie(response, auth: AuthSession) -> None:
    if auth.token:
        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=auth.token,
            httponly=True,
            secure=config.IS_PRODUCTION,
            samesite="lax",
            max_age=SESSION_MAX_AGE,
        )
    else:
        response.delete_cookie(
            key=SESSION_COOKIE_NAME,
            httponly=True,
            secure=config.IS_PRODUCTION,
            samesite="lax",
        )


@router.get("/login")
async def login_page(request: Request, next: str = DEFAULT_NEXT, auth: AuthSession = Depends(get_auth_session)):
    if not is_safe_redirect_url(next):
        next = DEFAULT_NEXT
    if auth.is_authenticated:
        return RedirectResponse(url=next, status_code=302)
    return login_form(request, next)


@router.post("/login")
@limiter.limit(config.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    next: str = Form(DEFAULT_NEXT),
    csrf_token: str = Form(""),
    auth: AuthSession = Depends(get_auth_session),
):
    if not verify_csrf_token(request, csrf_token):
        raise HTTPException(status_code=403, detail="Invalid CSRF token")
    if not is_safe_redirect_url(next):
        next = DEFAULT_NEXT

    response = RedirectResponse(url=next, status_code=302)
    auth.subscribe(lambda event: write_session_cookie(response, auth))
    try:
        auth.sign_in(email, password)
    except AuthError as e:
        return login_form(request, next, error=e.message, email=email, status_code=401)

    response.delete_cookie(key=CSRF_COOKIE_NAME)
    return response


@router.get("/logout")
async def logout(auth: AuthSession = Depends(get_auth_session)):
    response = RedirectResponse(url="/", status_code=302)
    auth.subscribe(lambda event: write_session_cookie(response, auth))
    auth.sign_out()
    return response
