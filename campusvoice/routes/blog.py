"""
Public newsletter routes for CampusVoice.
"""

from fastapi import APIRouter, Depends, Request

from campusvoice.errors import NotFoundError
from campusvoice.routes.deps import get_post_workflow
from campusvoice.routes.pages import render
from campusvoice.services.posts import PostPublicationWorkflow

router = APIRouter(tags=["blog"])

FEED_SIZE = 20


@router.get("/")
async def blog_index(request: Request, workflow: PostPublicationWorkflow = Depends(get_post_workflow)):
    """Published articles, newest first."""
    response = render(request, "blog/list.html", {"posts": workflow.list_published()})
    response.headers["Cache-Control"] = "public, max-age=300"
    return response


@router.get("/feed.xml")
async def blog_rss_feed(request: Request, workflow: PostPublicationWorkflow = Depends(get_post_workflow)):
    """RSS 2.0 feed of published articles."""
    posts = workflow.list_published()[:FEED_SIZE]
    response = render(request, "blog/feed.xml", {"posts": posts}, media_type="application/rss+xml")
    response.headers["Cache-Control"] = "public, max-age=3600"
    return response


@router.get("/posts/{slug}")
async def blog_post(request: Request, slug: str, workflow: PostPublicationWorkflow = Depends(get_post_workflow)):
    try:
        post = workflow.get_published(slug)
    except NotFoundError:
        return render(request, "blog/not_found.html", {"slug": slug}, status_code=404)

    response = render(request, "blog/post.html", {"post": post})
    response.headers["Cache-Control"] = "public, max-age=300"
    return response
