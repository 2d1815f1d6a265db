"""Tests for confirmation tokens, threat detection and security headers."""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from campusvoice.errors import ValidationError
from campusvoice.security import (
    SecurityHeadersMiddleware,
    get_client_ip,
    issue_confirmation,
    verify_confirmation,
)
from campusvoice.security.logging import detect_threat


class TestConfirmation:
    def test_token_confirms_its_own_object(self):
        token = issue_confirmation("article", 7)
        verify_confirmation(token, "article", 7)

    @pytest.mark.parametrize("kind, object_id", [("article", 8), ("message", 7)])
    def test_token_is_bound_to_kind_and_id(self, kind, object_id):
        token = issue_confirmation("article", 7)
        with pytest.raises(ValidationError) as excinfo:
            verify_confirmation(token, kind, object_id)
        assert excinfo.value.code == "confirmation_invalid"

    def test_missing_token(self):
        with pytest.raises(ValidationError) as excinfo:
            verify_confirmation("", "article", 7)
        assert excinfo.value.code == "confirmation_required"

    def test_tampered_token(self):
        token = issue_confirmation("article", 7)
        with pytest.raises(ValidationError):
            verify_confirmation(token[:-2] + "xx", "article", 7)

    def test_expired_token(self):
        token = issue_confirmation("article", 7)
        with pytest.raises(ValidationError) as excinfo:
            verify_confirmation(token, "article", 7, max_age=-1)
        assert excinfo.value.code == "confirmation_expired"


class TestThreatDetection:
    @pytest.mark.parametrize(
        "path, query, expected",
        [
            ("/posts/hello", "q=%3Cscript%3Ealert(1)%3C%2Fscript%3E", "xss"),
            ("/static/../../etc/passwd", "", "path_traversal"),
            ("/wp-login.php", "", "probe"),
            ("/.env", "", "probe"),
        ],
    )
    def test_flags_known_shapes(self, path, query, expected):
        threat_type, _ = detect_threat(path, query)
        assert threat_type == expected

    def test_ordinary_requests_pass(self):
        assert detect_threat("/posts/campus-garden-opens", "page=2") == (None, None)
        assert detect_threat("/admin/posts/3/edit", "saved=1") == (None, None)


def make_app(**options):
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware, **options)

    @app.get("/")
    async def index():
        return {"ok": True}

    @app.get("/admin")
    async def admin():
        return {"ok": True}

    @app.get("/ip")
    async def ip(request: Request):
        return {"ip": get_client_ip(request)}

    return app


class TestSecurityHeaders:
    def test_csp_allows_inline_and_https_images(self):
        response = TestClient(make_app(hsts=False)).get("/")
        csp = response.headers["content-security-policy"]
        assert "img-src 'self' data: https:" in csp
        assert "object-src 'none'" in csp
        assert "strict-transport-security" not in response.headers
        assert "cache-control" not in response.headers

    def test_hsts_in_production(self):
        response = TestClient(make_app(hsts=True)).get("/")
        assert response.headers["strict-transport-security"].startswith("max-age=31536000")

    def test_csp_overrides(self):
        response = TestClient(make_app(csp_overrides={"script-src": "'self' https://cdn.example"})).get("/")
        assert "script-src 'self' https://cdn.example" in response.headers["content-security-policy"]

    def test_admin_responses_are_not_cached(self):
        response = TestClient(make_app()).get("/admin")
        assert response.headers["cache-control"] == "no-store"

    def test_client_ip_prefers_forwarded_header(self):
        client = TestClient(make_app())
        assert client.get("/ip", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}).json() == {
            "ip": "203.0.113.9"
        }
        assert client.get("/ip").json() == {"ip": "testclient"}
