"""HTTP tests for /contact-intake and the /contact form."""

from campusvoice import config
from campusvoice.db.models import ContactMessage
from campusvoice.errors import InfrastructureError
from campusvoice.services.contact import THANK_YOU_MESSAGE

VALID = {"name": "Ada Lovelace", "email": "ada@example.com", "message": "Hello from the campus!"}


def test_valid_submission_returns_success(client, notifier, db):
    response = client.post("/contact-intake", json=VALID, headers={"Origin": "http://localhost:5173"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"success": True, "message": THANK_YOU_MESSAGE}
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    saved = db.query(ContactMessage).all()
    assert [(m.name, m.email, m.read) for m in saved] == [("Ada Lovelace", "ada@example.com", False)]
    notifier.notify.assert_awaited_once()


def test_valid_submissions_beyond_the_form_rate_limit_still_succeed(client, db):
    # More submissions than the HTML form allows per minute by default
    burst = int(config.DEFAULT_CONTACT_RATE_LIMIT.split("/")[0]) + 1
    headers = {"Origin": "http://localhost:5173"}

    responses = [client.post("/contact-intake", json=VALID, headers=headers) for _ in range(burst)]

    assert [r.status_code for r in responses] == [200] * burst
    assert responses[-1].headers["access-control-allow-origin"] == "http://localhost:5173"
    assert db.query(ContactMessage).count() == burst


def test_success_even_when_mail_delivery_fails(client, notifier):
    notifier.notify.side_effect = InfrastructureError("Failed to send email via Resend")
    response = client.post("/contact-intake", json=VALID)
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_short_message_is_rejected(client, notifier, db):
    response = client.post("/contact-intake", json={**VALID, "message": "short"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {
        "error": "Message must be between 10-5000 characters",
        "code": "invalid_message",
    }
    assert db.query(ContactMessage).count() == 0
    notifier.notify.assert_not_awaited()


def test_missing_fields(client):
    response = client.post("/contact-intake", json={"name": "Ada"})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields"


def test_unparseable_body_is_a_validation_error(client):
    response = client.post(
        "/contact-intake",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "missing_fields"


def test_unknown_origin_gets_first_allowed_origin(client):
    response = client.post("/contact-intake", json=VALID, headers={"Origin": "https://evil.example"})
    assert response.headers["access-control-allow-origin"] == "https://campusvoice.example"


def test_validation_errors_carry_cors_headers(client):
    response = client.post(
        "/contact-intake", json={}, headers={"Origin": "http://localhost:5173"}
    )
    assert response.status_code == 400
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_preflight_returns_cors_headers(client, notifier):
    response = client.options(
        "/contact-intake",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == (
        "authorization, x-client-info, apikey, content-type"
    )
    assert response.headers["access-control-max-age"] == "86400"
    notifier.notify.assert_not_awaited()


def test_contact_form_page(client):
    response = client.get("/contact")
    assert response.status_code == 200
    assert 'name="subject"' in response.text


def test_contact_form_requires_subject(client, db):
    response = client.post("/contact", data=VALID)
    assert response.status_code == 400
    assert "Missing required fields" in response.text
    assert db.query(ContactMessage).count() == 0


def test_contact_form_success(client, notifier, db):
    response = client.post("/contact", data={**VALID, "subject": "Question"})
    assert response.status_code == 200
    assert "Thank you!" in response.text
    assert db.query(ContactMessage).count() == 1
    submission = notifier.notify.await_args.args[0]
    assert submission.subject == "Question"
