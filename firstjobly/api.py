"""
HTTP surface.

Thin FastAPI layer over the store: handlers normalize input, call the store
and shape the JSON. Endpoints are plain ``def`` so store I/O runs on the
server's worker threads instead of the event loop.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .errors import FirstJoblyError, NotFound, PersistenceError
from .logger import get_logger
from .normalize import normalize_posting
from .pagination import PAGE_SIZE, assemble, parse_page
from .selector import select_store
from .store import PostingStore

# User-facing error messages per operation
FAILURE_MESSAGES = {
    "create": "Failed to save job",
    "list": "Failed to load jobs",
    "detail": "Server error",
}


def get_store(request: Request) -> PostingStore:
    return request.app.state.store


def _persistence_failure(operation: str, exc: PersistenceError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": FAILURE_MESSAGES[operation], "details": exc.message},
    )


def create_app(settings: Optional[Settings] = None, store: Optional[PostingStore] = None) -> FastAPI:
    """
    Build the application.

    When ``store`` is given it is used as-is and left open on shutdown;
    otherwise the backend is selected during startup and closed on shutdown.
    """
    settings = settings or Settings.from_env()
    logger = get_logger()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = store is None
        app.state.store = store if store is not None else select_store(settings, logger)
        logger.record_backend(app.state.store.backend)
        logger.info(
            f"firstjobly v{__version__} serving",
            backend=app.state.store.backend,
            jobs_per_page=PAGE_SIZE,
        )
        yield
        logger.log_metrics_summary()
        if owned:
            app.state.store.close()

    app = FastAPI(title="firstjobly", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(FirstJoblyError)
    async def app_error_handler(request: Request, exc: FirstJoblyError):
        content = {"error": exc.message}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("Rejected malformed request", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "request body must be a JSON object"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.critical("Unhandled server error", path=request.url.path, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Server error"},
        )

    @app.get("/")
    def root(store: PostingStore = Depends(get_store)):
        return {
            "status": "ok",
            "service": "firstjobly",
            "version": __version__,
            "database": store.backend,
            "database_description": store.description,
            "time": datetime.now(timezone.utc).isoformat(),
            "jobs_per_page": PAGE_SIZE,
            "endpoints": {
                "GET /posts?page=1": f"{PAGE_SIZE} latest jobs",
                "GET /posts/123": "Single job",
                "POST /posts": "Add or update a job",
            },
            "metrics": logger.get_metrics(),
        }

    @app.post("/posts", status_code=status.HTTP_201_CREATED)
    def create_post(payload: Any = Body(None), store: PostingStore = Depends(get_store)):
        candidate = normalize_posting(payload)
        try:
            saved = store.upsert(candidate)
        except PersistenceError as e:
            return _persistence_failure("create", e)
        return {"success": True, "message": "Job saved successfully!", "id": saved.id}

    @app.get("/posts")
    def list_posts(page: Optional[str] = None, store: PostingStore = Depends(get_store)):
        page_number = parse_page(page)
        try:
            jobs, total = store.list(page_number)
        except PersistenceError as e:
            return _persistence_failure("list", e)
        result = assemble([job.to_dict() for job in jobs], page_number, total)
        return {"jobs": result.items, "pagination": result.meta()}

    @app.get("/posts/{post_id}")
    def get_post(post_id: str, store: PostingStore = Depends(get_store)):
        try:
            key = int(post_id)
        except ValueError:
            raise NotFound()
        try:
            job = store.get_by_id(key)
        except PersistenceError as e:
            return _persistence_failure("detail", e)
        if job is None:
            raise NotFound()
        return job.to_dict()

    return app
