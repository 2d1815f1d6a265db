"""
Contact routes for CampusVoice.

/contact is the public HTML form, rate limited per client. /contact-intake
is the JSON boundary for the allowed cross-origin clients: once a
submission validates it always answers 200, so it carries no rate limit.
"""

import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse

from campusvoice import config
from campusvoice.errors import ValidationError
from campusvoice.routes.deps import get_contact_workflow
from campusvoice.routes.pages import render
from campusvoice.security.rate_limit import limiter
from campusvoice.services.contact import ContactIntakeWorkflow, cors_headers, validate_submission

logger = logging.getLogger(__name__)

router = APIRouter(tags=["contact"])


@router.get("/contact")
async def contact_page(request: Request):
    return render(request, "contact.html", {"values": {}})


@router.post("/contact")
@limiter.limit(config.CONTACT_RATE_LIMIT)
async def contact_submit(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    subject: str = Form(""),
    message: str = Form(""),
    workflow: ContactIntakeWorkflow = Depends(get_contact_workflow),
):
    values = {"name": name, "email": email, "subject": subject, "message": message}
    try:
        submission = validate_submission(values, require_subject=True)
    except ValidationError as e:
        return render(request, "contact.html", {"values": values, "error": e.message}, status_code=400)

    thanks = await workflow.receive(submission)
    return render(request, "contact.html", {"values": {}, "success": thanks})


@router.options("/contact-intake")
async def contact_intake_preflight(request: Request):
    return JSONResponse("ok", headers=cors_headers(request.headers.get("origin")))


@router.post("/contact-intake")
async def contact_intake(request: Request, workflow: ContactIntakeWorkflow = Depends(get_contact_workflow)):
    headers = cors_headers(request.headers.get("origin"))

    try:
        data = await request.json()
    except ValueError:
        logger.info("Unparseable contact-intake body")
        data = None

    try:
        submission = validate_submission(data)
    except ValidationError as e:
        return JSONResponse(e.to_dict(), status_code=400, headers=headers)

    thanks = await workflow.receive(submission)
    return JSONResponse({"success": True, "message": thanks}, headers=headers)
