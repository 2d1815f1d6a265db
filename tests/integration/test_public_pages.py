"""Public newsletter pages."""

from datetime import datetime, timedelta

from campusvoice.db.models import Post

NOW = datetime(2026, 3, 1, 9, 0, 0)


def add_post(db, slug, published=True, content="<p>Body</p>", age_days=0):
    post = Post(
        title=slug.replace("-", " ").title(),
        slug=slug,
        content=content,
        published=published,
        published_at=NOW - timedelta(days=age_days) if published else None,
    )
    db.add(post)
    db.commit()
    return post


def test_index_lists_only_published_posts_newest_first(client, db):
    add_post(db, "older-news", age_days=3)
    add_post(db, "fresh-news")
    add_post(db, "secret-draft", published=False)

    page = client.get("/")

    assert page.status_code == 200
    assert "secret-draft" not in page.text
    assert page.text.index("/posts/fresh-news") < page.text.index("/posts/older-news")


def test_draft_is_not_public(client, db):
    add_post(db, "secret-draft", published=False)

    response = client.get("/posts/secret-draft")

    assert response.status_code == 404
    assert "Article not found" in response.text


def test_stored_markup_is_sanitized_on_render(client, db):
    add_post(
        db,
        "tricky",
        content='<p>Hi <a href="javascript:alert(1)">there</a></p>'
        '<script>alert(1)</script><img src="x.png" onerror="alert(2)">',
    )

    page = client.get("/posts/tricky")

    assert page.status_code == 200
    assert "<script" not in page.text
    assert "onerror" not in page.text
    assert "javascript:" not in page.text
    assert "Hi " in page.text


def test_feed(client, db):
    add_post(db, "fresh-news")
    add_post(db, "secret-draft", published=False)

    response = client.get("/feed.xml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/rss+xml")
    assert "/posts/fresh-news" in response.text
    assert "secret-draft" not in response.text


def test_security_headers(client):
    response = client.get("/")
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert "img-src 'self' data: https:" in response.headers["content-security-policy"]
    assert "strict-transport-security" not in response.headers
