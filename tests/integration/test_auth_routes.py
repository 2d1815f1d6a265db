"""Admin sign-in, sessions and access control."""

import pytest

from campusvoice.errors import AuthError, ConflictError, ValidationError
from campusvoice.routes.auth import CSRF_COOKIE_NAME, is_safe_redirect_url
from campusvoice.routes.deps import SESSION_COOKIE_NAME
from campusvoice.services.auth import (
    AuthSession,
    create_admin_user,
    create_session_token,
    hash_password,
    verify_password,
)
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, FAST_PASSWORDS


def login(client, password=ADMIN_PASSWORD, next="/admin", csrf=None):
    client.get("/admin/login")
    token = csrf if csrf is not None else client.cookies.get(CSRF_COOKIE_NAME)
    return client.post(
        "/admin/login",
        data={"email": ADMIN_EMAIL, "password": password, "next": next, "csrf_token": token},
        follow_redirects=False,
    )


def test_password_hashing():
    encoded = hash_password("s3cret-pass", FAST_PASSWORDS)
    assert encoded.startswith("$pbkdf2-sha256$1000$")
    assert "s3cret-pass" not in encoded
    assert hash_password("s3cret-pass", FAST_PASSWORDS) != encoded
    assert verify_password("s3cret-pass", encoded)
    assert not verify_password("wrong", encoded)
    assert not verify_password("s3cret-pass", "garbage")
    assert not verify_password("s3cret-pass", None)


def test_default_hash_uses_full_rounds():
    assert hash_password("s3cret-pass").startswith("$pbkdf2-sha256$390000$")


def test_create_admin_user_rejects_duplicates_and_short_passwords(db):
    create_admin_user(db, "Chief@Campus.example", "long enough")
    with pytest.raises(ConflictError):
        create_admin_user(db, "chief@campus.example", "long enough")
    with pytest.raises(ValidationError):
        create_admin_user(db, "new@campus.example", "short")


def test_auth_session_sign_in_and_out(db, admin_user):
    events = []
    auth = AuthSession(db)
    auth.subscribe(events.append)

    assert auth.current_user is None
    with pytest.raises(AuthError):
        auth.sign_in(ADMIN_EMAIL, "wrong password")

    user = auth.sign_in(ADMIN_EMAIL.upper(), ADMIN_PASSWORD)
    assert user.id == admin_user.id
    assert auth.token
    assert AuthSession(db, auth.token).current_user.id == admin_user.id

    auth.sign_out()
    assert auth.current_user is None
    assert auth.token is None
    assert events == ["signed_in", "signed_out"]


def test_tampered_token_is_anonymous(db, admin_user):
    token = create_session_token(admin_user)
    assert AuthSession(db, token + "x").current_user is None
    assert AuthSession(db, "").current_user is None


def test_admin_redirects_to_login_when_signed_out(client):
    response = client.get("/admin", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/admin/login?next=/admin"

    response = client.get("/admin/posts/new", follow_redirects=False)
    assert response.headers["location"] == "/admin/login?next=/admin/posts/new"


def test_admin_api_answers_401_when_signed_out(client):
    response = client.post("/admin/api/drafts", json={})
    assert response.status_code == 401
    assert response.json() == {"error": "Sign in required", "code": "unauthenticated"}


def test_login_flow(client, admin_user):
    response = login(client)
    assert response.status_code == 302
    assert response.headers["location"] == "/admin"
    assert client.cookies.get(SESSION_COOKIE_NAME)

    dashboard = client.get("/admin")
    assert dashboard.status_code == 200
    assert ADMIN_EMAIL in dashboard.text


def test_login_with_wrong_password(client, admin_user):
    response = login(client, password="nope")
    assert response.status_code == 401
    assert "Invalid email or password" in response.text
    assert not client.cookies.get(SESSION_COOKIE_NAME)


def test_login_requires_csrf_token(client, admin_user):
    response = login(client, csrf="forged")
    assert response.status_code == 403


def test_login_refuses_open_redirect(client, admin_user):
    response = login(client, next="https://evil.example/phish")
    assert response.headers["location"] == "/admin"


@pytest.mark.parametrize(
    "url, safe",
    [("/admin", True), ("/admin/posts/1/edit", True), ("//evil.example", False),
     ("https://evil.example", False), ("", False), ("admin", False)],
)
def test_is_safe_redirect_url(url, safe):
    assert is_safe_redirect_url(url) is safe


def test_logout_clears_session(client, admin_user):
    login(client)
    assert client.get("/admin", follow_redirects=False).status_code == 200

    response = client.get("/admin/logout", follow_redirects=False)
    assert response.status_code == 302
    assert not client.cookies.get(SESSION_COOKIE_NAME)
    assert client.get("/admin", follow_redirects=False).status_code == 302
