import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import LOG_LEVEL
from app.core.errors import CloneLabError
from app.core.logging_middleware import LoggingMiddleware
from app.db.init_db import init_db

from app.routers.admin import router as admin_router
from app.routers.auth import router as auth_router
from app.routers.clones import router as clones_router
from app.routers.discussions import router as discussions_router
from app.routers.instructor_dashboard import router as instructor_dashboard_router
from app.routers.statuses import router as statuses_router

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Clone Lab")

# Middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(CloneLabError)
async def clone_lab_error_handler(request: Request, exc: CloneLabError):
    logger.info(
        "%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])
app.include_router(statuses_router, tags=["statuses"])
app.include_router(clones_router, prefix="/clones", tags=["clones"])
app.include_router(discussions_router, prefix="/discussions", tags=["discussions"])

# Instructor dashboard (no prefix — route already defines full path)
app.include_router(instructor_dashboard_router)
