"""
FastAPI main application entry point.

Architecture (production, single port):
  Browser → http://localhost:8000/        → serves built browsing UI + editor
  Browser → http://localhost:8000/api/... → JSON API (folders, notes, tags, images)

Architecture (development, two ports):
  Frontend dev server on :5173 proxies /api → http://localhost:8000/api
  Backend on :8000 serves API only (no static files needed)

Error model:
  Routers raise NotekeeperError subclasses; the handlers below turn them
  into {"error": message} with the matching status. Engine failures are
  logged with full detail and answered with a generic 500.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from config import Settings, get_settings
from database import close_db, connect_db, get_database
from exceptions import NotekeeperError, StoreError
from services.image_reaper import ImageReaper
from sqlite_db import NotesDatabase

from routers import folders, notes, tags, images

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

# Path to pre-built frontend static files
STATIC_DIR = Path(__file__).parent / "static"


# ============================================================
# Application Lifespan (startup/shutdown)
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store and start the image reaper; tear both down on exit."""
    settings: Settings = app.state.settings
    logger.info("Starting up notes application...")

    db = await connect_db(settings)
    app.state.db = db
    app.state.reaper = ImageReaper(db, settings.image_grace_period_seconds)

    if STATIC_DIR.is_dir() and (STATIC_DIR / "index.html").is_file():
        logger.info(f"Serving frontend from {STATIC_DIR}")
    else:
        logger.info("No frontend build found, API-only mode")

    yield  # Application runs here

    logger.info("Shutting down notes application...")
    app.state.reaper.shutdown()
    await close_db(db)


# ============================================================
# Middleware
# ============================================================
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response.

    API responses default to no-store; responses that set their own
    Cache-Control (stored images) keep it.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/assets/"):
            response.headers["Cache-Control"] = "public, max-age=31536000, immutable"
        else:
            response.headers.setdefault("Cache-Control", "no-store")
        return response


# ============================================================
# Exception handlers
# ============================================================
async def _app_error_handler(request: Request, exc: NotekeeperError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error(
            f"Store failure on {request.method} {request.url.path}: {exc.detail or exc.message}",
            exc_info=exc,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Wrongly typed or unparsable input is a client error like a missing field
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid {field}: {first.get('msg', 'bad value')}" if field else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ============================================================
# Create FastAPI Application
# ============================================================
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around an explicit settings object.

    Args:
        settings: Configuration to use; defaults to the environment.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Notekeeper API",
        description="Personal notes with folders, tags and embedded images",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.settings = settings

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(NotekeeperError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    # ============================================================
    # API Routes (all mounted under /api prefix)
    # ============================================================
    app.include_router(folders.router, prefix="/api/folders", tags=["Folders"])
    app.include_router(notes.router, prefix="/api/notes", tags=["Notes"])
    app.include_router(tags.router, prefix="/api/tags", tags=["Tags"])
    app.include_router(images.router, prefix="/api/images", tags=["Images"])

    @app.get("/api/health")
    async def health_check() -> dict:
        """Liveness probe: confirms the process is running."""
        return {"status": "healthy", "version": APP_VERSION}

    @app.get("/api/health/ready")
    async def readiness_check(db: NotesDatabase = Depends(get_database)):
        """Readiness probe: verifies the store answers queries."""
        try:
            await db.ping()
        except (StoreError, RuntimeError) as e:
            logger.warning(f"Readiness check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "not ready"})
        return {"status": "ready", "database": db.path}

    @app.post("/api/init-db")
    async def init_db(db: NotesDatabase = Depends(get_database)) -> dict:
        """Re-run the idempotent schema setup (tables, migrations, tag backfill)."""
        await db.init_schema()
        return {"message": "Database initialized successfully"}

    # ============================================================
    # Static Frontend Serving (production mode)
    # ============================================================
    if STATIC_DIR.is_dir() and (STATIC_DIR / "index.html").is_file():
        if (STATIC_DIR / "assets").is_dir():
            app.mount("/assets", StaticFiles(directory=str(STATIC_DIR / "assets")), name="static-assets")

        @app.get("/{full_path:path}", include_in_schema=False)
        async def serve_spa(full_path: str):
            """Serve the SPA for any non-API route."""
            file_path = STATIC_DIR / full_path
            if full_path and ".." not in full_path and file_path.is_file():
                return FileResponse(str(file_path))
            return FileResponse(str(STATIC_DIR / "index.html"))

    return app


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


configure_logging(get_settings())
app = create_app()


# ============================================================
# Run with Uvicorn (for development)
# ============================================================
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
