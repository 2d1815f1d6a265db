"""
Pytest configuration and shared fixtures.

Environment variables are set before any campusvoice module is imported:
configuration is read once, at import time.
"""

import os
import tempfile
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

_TMP_DIR = tempfile.mkdtemp(prefix="campusvoice-tests-")

os.environ.update(
    {
        "CAMPUSVOICE_ENV": "test",
        "CAMPUSVOICE_DB_PATH": os.path.join(_TMP_DIR, "campusvoice.db"),
        "CAMPUSVOICE_SECRET_KEY": "test-secret-key",
        "CAMPUSVOICE_IMAGE_STORAGE": "inline",
        "CAMPUSVOICE_UPLOAD_DIR": os.path.join(_TMP_DIR, "uploads"),
        "CAMPUSVOICE_ALLOWED_ORIGINS": "https://campusvoice.example,http://localhost:5173",
        "CAMPUSVOICE_LOGIN_RATE_LIMIT": "1000/minute",
        "CAMPUSVOICE_CONTACT_RATE_LIMIT": "1000/minute",
        "RESEND_API_KEY": "",
    }
)

from campusvoice.content.images import ImageIngestor
from campusvoice.db.database import SessionLocal, drop_db, init_db
from campusvoice.db.models import AdminUser
from campusvoice.main import app
from campusvoice.routes.deps import (
    SESSION_COOKIE_NAME,
    get_image_ingestor,
    get_notifier,
    get_registry,
)
from campusvoice.services.auth import create_session_token, hash_password, pwd_context
from campusvoice.services.editing import EditingSessionRegistry

ADMIN_EMAIL = "editor@campusvoice.test"
ADMIN_PASSWORD = "correct horse battery"

# Few rounds keep the suite fast; verification reads the rounds from each hash
FAST_PASSWORDS = pwd_context.copy(pbkdf2_sha256__rounds=1_000)


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture(autouse=True)
def fresh_db():
    """Every test starts from empty tables."""
    drop_db()
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_admin(db, email: str) -> AdminUser:
    user = AdminUser(email=email, password_hash=hash_password(ADMIN_PASSWORD, FAST_PASSWORDS))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    return make_admin(db, ADMIN_EMAIL)


# ============================================================================
# APPLICATION
# ============================================================================

@pytest.fixture
def notifier():
    return AsyncMock()


@pytest.fixture
def registry():
    return EditingSessionRegistry()


@pytest.fixture
def client(notifier, registry):
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_image_ingestor] = lambda: ImageIngestor()
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides = {}


@pytest.fixture
def admin_client(client, admin_user):
    client.cookies.set(SESSION_COOKIE_NAME, create_session_token(admin_user))
    return client
