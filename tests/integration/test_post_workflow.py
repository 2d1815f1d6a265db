"""PostPublicationWorkflow and PostStore against the SQLite database."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from campusvoice.content.slugs import SlugField
from campusvoice.db.models import Post, utcnow
from campusvoice.errors import ConflictError, NotFoundError, ValidationError
from campusvoice.services.posts import PostFields, PostPublicationWorkflow, PostStore


@pytest.fixture
def store(db):
    return PostStore(db)


@pytest.fixture
def workflow(store):
    return PostPublicationWorkflow(store)


def test_save_creates_a_draft_with_sanitized_content(workflow, admin_user):
    post = workflow.save(
        PostFields(
            title="  Hello World  ",
            slug="hello-world",
            content="<p>Hi</p><script>alert(1)</script><img src=x onerror=alert(1)>",
        ),
        admin_user,
    )
    assert post.id is not None
    assert post.title == "Hello World"
    assert post.published is False
    assert post.published_at is None
    assert post.author_id == admin_user.id
    assert "script" not in post.content
    assert "onerror" not in post.content
    assert post.content.startswith("<p>Hi")


@pytest.mark.parametrize(
    "title, slug",
    [("", "valid-slug"), ("   ", "valid-slug"), ("Title", ""), ("Title", "Not A Slug"), ("Title", "-edge-")],
)
def test_save_validates_title_and_slug(workflow, store, title, slug):
    with pytest.raises(ValidationError):
        workflow.save(PostFields(title=title, slug=slug))
    assert store.list() == []


def test_cover_image_must_be_an_image_reference(workflow):
    with pytest.raises(ValidationError):
        workflow.save(PostFields(title="T", slug="t", cover_image="javascript:alert(1)"))
    post = workflow.save(PostFields(title="T", slug="t", cover_image="data:image/png;base64,AAAA"))
    assert post.cover_image == "data:image/png;base64,AAAA"


def test_duplicate_slug_is_a_conflict_and_writes_nothing(workflow, store):
    first = workflow.save(PostFields(title="First", slug="same-slug", content="<p>one</p>"))

    with pytest.raises(ConflictError):
        workflow.save(PostFields(title="Second", slug="same-slug", content="<p>two</p>"))

    posts = store.list()
    assert len(posts) == 1
    assert posts[0].id == first.id
    assert posts[0].title == "First"


def test_store_create_conflict_from_unique_constraint(store):
    store.create({"title": "A", "slug": "taken", "content": ""})
    with pytest.raises(ConflictError):
        store.create({"title": "B", "slug": "taken", "content": ""})
    assert [post.title for post in store.list()] == ["A"]


def test_renaming_onto_another_posts_slug_conflicts(workflow, store):
    workflow.save(PostFields(title="A", slug="a"))
    b = workflow.save(PostFields(title="B", slug="b"))
    with pytest.raises(ConflictError):
        workflow.save(PostFields(id=b.id, title="B", slug="a"))
    assert store.get(b.id).slug == "b"


def test_publish_then_unpublish(workflow):
    draft = workflow.save(PostFields(title="News", slug="news", content="<p>Body</p>"))
    published = workflow.publish(PostFields(id=draft.id, title="News", slug="news", content="<p>Body</p>"))

    assert published.published is True
    assert published.published_at is not None
    assert abs(utcnow() - published.published_at) < timedelta(seconds=10)

    unpublished = workflow.unpublish(draft.id)
    assert unpublished.published is False
    assert unpublished.published_at is None
    assert unpublished.title == "News"
    assert unpublished.content == "<p>Body</p>"


def test_save_does_not_change_published_flag(workflow):
    post = workflow.publish(PostFields(title="Live", slug="live"))
    saved = workflow.save(PostFields(id=post.id, title="Live, edited", slug="live"))
    assert saved.published is True
    assert saved.published_at is not None
    assert saved.title == "Live, edited"


def test_republish_resets_published_at(store):
    times = iter([datetime(2025, 1, 1, 9, 0), datetime(2025, 3, 1, 9, 0)])
    workflow = PostPublicationWorkflow(store, clock=lambda: next(times))
    post = workflow.publish(PostFields(title="T", slug="t"))
    assert post.published_at == datetime(2025, 1, 1, 9, 0)
    post = workflow.publish(PostFields(id=post.id, title="T", slug="t"))
    assert post.published_at == datetime(2025, 3, 1, 9, 0)


def test_list_published_excludes_drafts_and_orders_by_publication(store):
    times = iter([datetime(2025, 1, 1), datetime(2025, 2, 1), datetime(2025, 3, 1)])
    workflow = PostPublicationWorkflow(store, clock=lambda: next(times))

    workflow.publish(PostFields(title="January", slug="january"))
    workflow.save(PostFields(title="Draft", slug="draft"))
    workflow.publish(PostFields(title="February", slug="february"))
    march = workflow.publish(PostFields(title="March", slug="march"))
    workflow.unpublish(march.id)

    published = workflow.list_published()
    assert [post.slug for post in published] == ["february", "january"]
    assert all(post.published for post in published)


def test_list_all_includes_drafts_newest_created_first(workflow):
    workflow.save(PostFields(title="Older", slug="older"))
    workflow.publish(PostFields(title="Newer", slug="newer"))
    assert [post.slug for post in workflow.list_all()] == ["newer", "older"]


def test_get_published_hides_drafts(workflow):
    workflow.save(PostFields(title="Secret", slug="secret"))
    with pytest.raises(NotFoundError):
        workflow.get_published("secret")
    with pytest.raises(NotFoundError):
        workflow.get_published("missing")


def test_delete_requires_confirmation(workflow, store):
    post = workflow.save(PostFields(title="Doomed", slug="doomed"))
    other = workflow.save(PostFields(title="Other", slug="other"))

    with pytest.raises(ValidationError):
        workflow.delete(post.id, "")
    with pytest.raises(ValidationError):
        workflow.delete(post.id, "forged-token")
    with pytest.raises(ValidationError):
        workflow.delete(post.id, workflow.request_deletion(other.id))
    assert store.get(post.id).title == "Doomed"

    workflow.delete(post.id, workflow.request_deletion(post.id))
    with pytest.raises(NotFoundError):
        store.get(post.id)
    assert store.get(other.id).title == "Other"


def test_request_deletion_of_missing_post(workflow):
    with pytest.raises(NotFoundError):
        workflow.request_deletion(404)


def test_hello_world_scenario(workflow, store, admin_user):
    slug = SlugField()
    slug.on_title_change("Hello World")
    assert slug.value == "hello-world"

    post = workflow.publish(PostFields(title="Hello World", slug=slug.value), admin_user)

    stored = store.get_by_slug("hello-world", published_only=True)
    assert stored.id == post.id
    assert stored.published is True
    assert abs(utcnow() - stored.published_at) < timedelta(seconds=10)


def test_published_at_must_match_published_flag_in_the_database(db):
    db.add(Post(title="Broken", slug="broken", content="", published=True, published_at=None))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
