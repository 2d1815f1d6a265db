"""
CampusVoice application: FastAPI app, middleware and routers.

Run with: uvicorn campusvoice.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from campusvoice import __version__, config
from campusvoice.db.database import init_db
from campusvoice.errors import CampusVoiceError
from campusvoice.routes import admin, admin_api, auth, blog, contact
from campusvoice.security import RequestLogMiddleware, SecurityHeadersMiddleware, limiter

config.configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("CampusVoice %s started (image storage: %s)", __version__, config.IMAGE_STORAGE)
    yield


app = FastAPI(
    title=config.SITE_NAME,
    description="Campus newsletter with an admin editor and contact intake",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(CampusVoiceError)
async def campusvoice_error_handler(request: Request, exc: CampusVoiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


# Added last runs first: request logging wraps the security headers
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLogMiddleware)

config.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount(
    "/static",
    StaticFiles(directory=config.PACKAGE_DIR / "static"),
    name="static",
)

app.include_router(blog.router)
app.include_router(contact.router)
app.include_router(auth.router)
app.include_router(admin_api.router)
app.include_router(admin.router)
