"""
Admin routes for CampusVoice newsletter management.
Every route here requires a signed-in admin; signed-out requests are
redirected to the login page.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import RedirectResponse

from campusvoice.content.images import ImageIngestor, UploadedImage
from campusvoice.content.slugs import SlugField
from campusvoice.db.models import AdminUser, Post
from campusvoice.errors import ConflictError, IngestError, NotFoundError, ValidationError
from campusvoice.routes.deps import (
    get_contact_store,
    get_image_ingestor,
    get_post_workflow,
    get_registry,
    require_admin,
)
from campusvoice.routes.pages import render
from campusvoice.services.contact import ContactMessageStore
from campusvoice.services.editing import EditingSessionRegistry
from campusvoice.services.posts import PostFields, PostPublicationWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def read_upload(upload: Optional[UploadFile]) -> Optional[UploadedImage]:
    if upload is None or not upload.filename:
        return None
    return UploadedImage(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=await upload.read(),
    )


def form_slug(title: str, slug: str, stored_slug: Optional[str] = None) -> str:
    """Slug for a submitted form.

    New posts derive it from the title unless the author typed one;
    existing posts keep stored_slug when the field is left blank.
    """
    field = SlugField(stored_slug or "", editing_existing=stored_slug is not None)
    field.on_title_change(title)
    if slug.strip():
        field.set_manually(slug.strip())
    return field.value


# =============================================================================
# DASHBOARD
# =============================================================================

@router.get("")
async def admin_dashboard(
    request: Request,
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
    messages: ContactMessageStore = Depends(get_contact_store),
):
    """All posts (drafts included) and contact messages."""
    return render(
        request,
        "admin/dashboard.html",
        {"user": user, "posts": workflow.list_all(), "messages": messages.list()},
    )


# =============================================================================
# POSTS
# =============================================================================

async def save_post_form(
    request: Request,
    workflow: PostPublicationWorkflow,
    ingestor: ImageIngestor,
    user: AdminUser,
    stored: Optional[Post],
    form: dict,
    cover_file: Optional[UploadFile],
):
    post_id = stored.id if stored is not None else None
    fields = PostFields(
        id=post_id,
        title=form["title"],
        slug=form_slug(form["title"], form["slug"], stored.slug if stored is not None else None),
        excerpt=form["excerpt"],
        cover_image=form["cover_image"],
        content=form["content"],
    )
    try:
        upload = await read_upload(cover_file)
        if upload is not None:
            fields.cover_image = (await ingestor.ingest(upload)).src
        if form["action"] == "publish":
            post = workflow.publish(fields, user)
        else:
            post = workflow.save(fields, user)
    except (ValidationError, ConflictError, IngestError) as e:
        post = workflow.get(post_id) if post_id is not None else None
        return render(
            request,
            "admin/edit.html",
            {"post": post, "form": {**form, "slug": fields.slug}, "error": e.message},
            status_code=e.status_code,
        )
    return RedirectResponse(url=f"/admin/posts/{post.id}/edit?saved=1", status_code=303)


@router.get("/posts/new")
async def admin_new_post(
    request: Request,
    user: AdminUser = Depends(require_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
):
    editor = registry.open(user.id)
    return render(request, "admin/edit.html", {"post": None, "form": None, "editor": editor})


@router.post("/posts/new")
async def admin_create_post(
    request: Request,
    title: str = Form(""),
    slug: str = Form(""),
    excerpt: str = Form(""),
    cover_image: str = Form(""),
    content: str = Form(""),
    action: str = Form("save"),
    cover_file: Optional[UploadFile] = File(None),
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
    ingestor: ImageIngestor = Depends(get_image_ingestor),
):
    form = {
        "title": title, "slug": slug, "excerpt": excerpt,
        "cover_image": cover_image, "content": content, "action": action,
    }
    return await save_post_form(request, workflow, ingestor, user, None, form, cover_file)


@router.get("/posts/{post_id}/edit")
async def admin_edit_post(
    request: Request,
    post_id: int,
    saved: bool = False,
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
    registry: EditingSessionRegistry = Depends(get_registry),
):
    try:
        post = workflow.get(post_id)
    except NotFoundError:
        return render(request, "admin/not_found.html", {}, status_code=404)
    return render(
        request,
        "admin/edit.html",
        {
            "post": post,
            "form": None,
            "editor": registry.open(user.id, post),
            "success": "Post saved" if saved else None,
        },
    )


@router.post("/posts/{post_id}/edit")
async def admin_update_post(
    request: Request,
    post_id: int,
    title: str = Form(""),
    slug: str = Form(""),
    excerpt: str = Form(""),
    cover_image: str = Form(""),
    content: str = Form(""),
    action: str = Form("save"),
    cover_file: Optional[UploadFile] = File(None),
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
    ingestor: ImageIngestor = Depends(get_image_ingestor),
):
    try:
        stored = workflow.get(post_id)
    except NotFoundError:
        return render(request, "admin/not_found.html", {}, status_code=404)
    form = {
        "title": title, "slug": slug, "excerpt": excerpt,
        "cover_image": cover_image, "content": content, "action": action,
    }
    return await save_post_form(request, workflow, ingestor, user, stored, form, cover_file)


@router.post("/posts/{post_id}/publish")
async def admin_publish_post(
    post_id: int,
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
):
    """Publish the post as currently stored."""
    post = workflow.get(post_id)
    workflow.publish(
        PostFields(
            id=post.id,
            title=post.title,
            slug=post.slug,
            excerpt=post.excerpt,
            cover_image=post.cover_image,
            content=post.content,
        ),
        user,
    )
    return RedirectResponse(url=f"/admin/posts/{post_id}/edit", status_code=303)


@router.post("/posts/{post_id}/unpublish")
async def admin_unpublish_post(
    post_id: int,
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
):
    workflow.unpublish(post_id)
    return RedirectResponse(url=f"/admin/posts/{post_id}/edit", status_code=303)


@router.get("/posts/{post_id}/delete")
async def admin_confirm_delete_post(
    request: Request,
    post_id: int,
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
):
    post = workflow.get(post_id)
    return render(
        request,
        "admin/confirm_delete.html",
        {
            "kind": "article",
            "label": post.title,
            "action": f"/admin/posts/{post_id}/delete",
            "token": workflow.request_deletion(post_id),
        },
    )


@router.post("/posts/{post_id}/delete")
async def admin_delete_post(
    request: Request,
    post_id: int,
    confirmation: str = Form(""),
    user: AdminUser = Depends(require_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
):
    try:
        workflow.delete(post_id, confirmation)
    except ValidationError as e:
        post = workflow.get(post_id)
        return render(
            request,
            "admin/confirm_delete.html",
            {
                "kind": "article",
                "label": post.title,
                "action": f"/admin/posts/{post_id}/delete",
                "token": workflow.request_deletion(post_id),
                "error": e.message,
            },
            status_code=400,
        )
    return RedirectResponse(url="/admin", status_code=303)


# =============================================================================
# CONTACT MESSAGES
# =============================================================================

@router.post("/messages/{message_id}/read")
async def admin_toggle_message_read(
    message_id: int,
    user: AdminUser = Depends(require_admin),
    messages: ContactMessageStore = Depends(get_contact_store),
):
    messages.toggle_read(message_id)
    return RedirectResponse(url="/admin", status_code=303)


@router.get("/messages/{message_id}/delete")
async def admin_confirm_delete_message(
    request: Request,
    message_id: int,
    user: AdminUser = Depends(require_admin),
    messages: ContactMessageStore = Depends(get_contact_store),
):
    message = messages.get(message_id)
    return render(
        request,
        "admin/confirm_delete.html",
        {
            "kind": "message",
            "label": f"{message.name} <{message.email}>",
            "action": f"/admin/messages/{message_id}/delete",
            "token": messages.request_deletion(message_id),
        },
    )


@router.post("/messages/{message_id}/delete")
async def admin_delete_message(
    request: Request,
    message_id: int,
    confirmation: str = Form(""),
    user: AdminUser = Depends(require_admin),
    messages: ContactMessageStore = Depends(get_contact_store),
):
    try:
        messages.delete(message_id, confirmation)
    except ValidationError as e:
        message = messages.get(message_id)
        return render(
            request,
            "admin/confirm_delete.html",
            {
                "kind": "message",
                "label": f"{message.name} <{message.email}>",
                "action": f"/admin/messages/{message_id}/delete",
                "token": messages.request_deletion(message_id),
                "error": e.message,
            },
            status_code=400,
        )
    return RedirectResponse(url="/admin", status_code=303)
