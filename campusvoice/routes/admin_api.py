"""
JSON API behind the admin editor.

The editor works on a server-side EditingSession: open a draft, patch
its fields, run editor commands, upload images into it, then save or
publish. Errors come back as {"error": ..., "code": ...}.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from campusvoice.content.images import ImageIngestor, UploadedImage
from campusvoice.db.models import AdminUser, Post
from campusvoice.routes.deps import (
    get_image_ingestor,
    get_post_workflow,
    get_registry,
    require_api_admin,
)
from campusvoice.services.editing import EditingSessionRegistry
from campusvoice.services.posts import PostPublicationWorkflow

router = APIRouter(prefix="/admin/api", tags=["admin-api"])


class DraftOpen(BaseModel):
    post_id: Optional[int] = None


class DraftFields(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None


class EditorCommand(BaseModel):
    command: str
    args: dict[str, Any] = {}


def post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "cover_image": post.cover_image,
        "content": post.content,
        "published": post.published,
        "published_at": post.published_at.isoformat() if post.published_at else None,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
        "author_id": post.author_id,
    }


async def to_uploaded_image(file: UploadFile) -> UploadedImage:
    return UploadedImage(
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=await file.read(),
    )


@router.post("/images")
async def upload_image(
    file: UploadFile = File(...),
    user: AdminUser = Depends(require_api_admin),
    ingestor: ImageIngestor = Depends(get_image_ingestor),
):
    """Ingest an image and return a reference usable as <img src>."""
    reference = await ingestor.ingest(await to_uploaded_image(file))
    return {"src": reference.src, "stored": reference.stored}


# =============================================================================
# EDITING SESSIONS
# =============================================================================

@router.post("/drafts", status_code=201)
async def open_draft(
    body: Optional[DraftOpen] = None,
    user: AdminUser = Depends(require_api_admin),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
    registry: EditingSessionRegistry = Depends(get_registry),
):
    post = workflow.get(body.post_id) if body and body.post_id is not None else None
    return registry.open(user.id, post).state()


@router.get("/drafts/{session_id}")
async def get_draft(
    session_id: str,
    user: AdminUser = Depends(require_api_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
):
    return registry.get(user.id, session_id).state()


@router.patch("/drafts/{session_id}")
async def update_draft(
    session_id: str,
    body: DraftFields,
    user: AdminUser = Depends(require_api_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
):
    session = registry.get(user.id, session_id)
    session.update(body.model_dump(exclude_unset=True))
    return session.state()


@router.delete("/drafts/{session_id}", status_code=204)
async def close_draft(
    session_id: str,
    user: AdminUser = Depends(require_api_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
):
    registry.close(user.id, session_id)


@router.post("/drafts/{session_id}/commands")
async def run_command(
    session_id: str,
    body: EditorCommand,
    user: AdminUser = Depends(require_api_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
):
    session = registry.get(user.id, session_id)
    applied = session.apply(body.command, body.args)
    return {"applied": applied, "state": session.state()}


@router.post("/drafts/{session_id}/images")
async def insert_image(
    session_id: str,
    file: UploadFile = File(...),
    alt: str = Form(""),
    user: AdminUser = Depends(require_api_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
    ingestor: ImageIngestor = Depends(get_image_ingestor),
):
    session = registry.get(user.id, session_id)
    reference = await session.insert_uploaded_image(ingestor, await to_uploaded_image(file), alt)
    return {"src": reference.src, "stored": reference.stored, "state": session.state()}


@router.post("/drafts/{session_id}/save")
async def save_draft(
    session_id: str,
    user: AdminUser = Depends(require_api_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
):
    session = registry.get(user.id, session_id)
    post = session.save(workflow, user)
    return {"post": post_to_dict(post), "state": session.state()}


@router.post("/drafts/{session_id}/publish")
async def publish_draft(
    session_id: str,
    user: AdminUser = Depends(require_api_admin),
    registry: EditingSessionRegistry = Depends(get_registry),
    workflow: PostPublicationWorkflow = Depends(get_post_workflow),
):
    session = registry.get(user.id, session_id)
    post = session.publish(workflow, user)
    return {"post": post_to_dict(post), "state": session.state()}
