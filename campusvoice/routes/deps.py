"""
FastAPI dependencies shared by the routers.
Tests override the notifier, ingestor and registry through app.dependency_overrides.
"""

from urllib.parse import quote

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from campusvoice.content.images import ImageIngestor, build_ingestor
from campusvoice.db.database import get_db
from campusvoice.db.models import AdminUser
from campusvoice.errors import AuthError
from campusvoice.services.auth import AuthSession
from campusvoice.services.contact import ContactIntakeWorkflow, ContactMessageStore
from campusvoice.services.editing import EditingSessionRegistry
from campusvoice.services.mailer import Notifier, build_notifier
from campusvoice.services.posts import PostPublicationWorkflow, PostStore

SESSION_COOKIE_NAME = "campusvoice_session"

_registry = EditingSessionRegistry()
_ingestor = None
_notifier = None


def get_auth_session(request: Request, db: Session = Depends(get_db)) -> AuthSession:
    return AuthSession(db, request.cookies.get(SESSION_COOKIE_NAME))


def require_admin(request: Request, auth: AuthSession = Depends(get_auth_session)) -> AdminUser:
    """Admin pages: redirect to the login page when signed out."""
    user = auth.current_user
    if user is None:
        raise HTTPException(
            status_code=302,
            headers={"Location": f"/admin/login?next={quote(request.url.path)}"},
        )
    return user


def require_api_admin(auth: AuthSession = Depends(get_auth_session)) -> AdminUser:
    """Admin JSON API: 401 when signed out."""
    user = auth.current_user
    if user is None:
        raise AuthError("Sign in required")
    return user


def get_post_workflow(db: Session = Depends(get_db)) -> PostPublicationWorkflow:
    return PostPublicationWorkflow(PostStore(db))


def get_contact_store(db: Session = Depends(get_db)) -> ContactMessageStore:
    return ContactMessageStore(db)


def get_image_ingestor() -> ImageIngestor:
    global _ingestor
    if _ingestor is None:
        _ingestor = build_ingestor()
    return _ingestor


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


def get_registry() -> EditingSessionRegistry:
    return _registry


def get_contact_workflow(
    store: ContactMessageStore = Depends(get_contact_store),
    notifier: Notifier = Depends(get_notifier),
) -> ContactIntakeWorkflow:
    return ContactIntakeWorkflow(store, notifier)
