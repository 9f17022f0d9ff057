"""Content Archive application.

Main entry point for the archive web service: logged-in users upload files
into a chunked blob store, browse them, view images and read files back.

Modules:
    - auth: Session login and the access gate
    - blobstore: DuckDB-backed chunked blob storage
    - files: Upload pipeline, listings, retrieval and streaming
    - posts: Posts and comments by logged-in users
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from archive.auth.gate import SESSION_USER_LOGIN
from archive.auth.router import router as auth_router
from archive.blobstore import BlobStore
from archive.config import AppConfig, get_config
from archive.exceptions import ArchiveError, SessionRequired
from archive.files.router import router as files_router
from archive.middleware import MethodOverrideMiddleware
from archive.posts.router import router as posts_router
from archive.posts.service import PostService
from archive.views import templates

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Multipart parsing logs every part boundary at DEBUG.
for _noisy in ("multipart", "python_multipart", "httpx", "httpcore"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def _render_error(request: Request, status_code: int, message: str, detail: dict):
    """Render error.html; the detail is only shown outside production."""
    production = request.app.state.config.server.production
    return templates.TemplateResponse(
        request,
        "error.html",
        {"message": message, "error": {} if production else detail},
        status_code=status_code,
    )


def _install_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(SessionRequired)
    async def session_required(request: Request, exc: SessionRequired) -> RedirectResponse:
        return RedirectResponse("/", status_code=302)

    @app.exception_handler(ArchiveError)
    async def archive_error(request: Request, exc: ArchiveError) -> JSONResponse:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"err": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _render_error(
            request,
            exc.status_code,
            str(exc.detail),
            {"status": exc.status_code, "detail": str(exc.detail)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        status_code = getattr(exc, "status_code", None) or 500
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _render_error(
            request,
            status_code,
            str(exc),
            {"status": status_code, "type": type(exc).__name__, "detail": str(exc)},
        )


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    The blob store is created here in its UNINITIALIZED state and opened by
    the lifespan handler; requests that arrive before it is READY fail fast
    with a 404 ``{"err": ...}`` instead of waiting.

    Args:
        config: Configuration to use. Defaults to ``get_config()``.
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the blob store and the document database on startup, close both on shutdown."""
        configured_level = getattr(logging, config.server.log_level.upper(), None)
        if configured_level is not None:
            logging.getLogger().setLevel(configured_level)
            logger.info("Root logger level set to %s", config.server.log_level.upper())

        store: BlobStore = app.state.blob_store
        await store.open()
        app.state.post_service = PostService(config.storage.documents_path)

        yield  # Application runs here

        app.state.post_service.close()
        app.state.post_service = None
        await store.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Content Archive",
        description="Session-gated file archive backed by a chunked blob store",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.blob_store = BlobStore(
        db_path=config.storage.db_path,
        chunk_size=config.storage.chunk_size,
    )
    # Opened by the lifespan.
    app.state.post_service = None

    app.add_middleware(
        SessionMiddleware,
        secret_key=config.secrets.session_secret,
        session_cookie=config.security.session_cookie,
        max_age=config.security.session_max_age,
        https_only=config.server.production,
    )
    app.add_middleware(MethodOverrideMiddleware)

    app.include_router(auth_router)
    app.include_router(files_router)
    app.include_router(posts_router)
    _install_error_handlers(app)

    @app.get("/")
    async def index(request: Request):
        """Landing page: login form, or a link to the files when logged in."""
        return templates.TemplateResponse(
            request,
            "index.html",
            {"user_login": request.session.get(SESSION_USER_LOGIN)},
        )

    @app.get("/health")
    async def health(request: Request) -> dict:
        """Health check endpoint.

        Returns:
            dict: Server status and the blob store state.
        """
        return {"status": "ok", "store": request.app.state.blob_store.state.value}

    return app


app = create_app()


def main() -> None:
    config = get_config()
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
