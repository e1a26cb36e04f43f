import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cargo_tracker.auth.google import GoogleTokenVerifier
from cargo_tracker.core.config import Settings
from cargo_tracker.core.errors import ApiError
from cargo_tracker.middleware.identity import STORE_UNAVAILABLE, register_identity_middleware
from cargo_tracker.routes.boats import router as boats_router
from cargo_tracker.routes.loads import router as loads_router
from cargo_tracker.routes.root import router as root_router
from cargo_tracker.routes.users import router as users_router
from cargo_tracker.store import DocumentStore, DocumentStoreError, build_store

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"Error": message}, headers=headers or None)


def api_error_handler(request: Request, exc: ApiError):  # noqa: ARG001
    return _error(exc.status_code, exc.message, exc.headers)


def http_exception_handler(request: Request, exc: StarletteHTTPException):  # noqa: ARG001
    detail = exc.detail
    message = detail if isinstance(detail, str) and detail else "Request failed"
    return _error(exc.status_code, message, getattr(exc, "headers", None))


def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    errors = exc.errors()
    message = "The request is invalid."
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"The request is invalid: {location} {errors[0].get('msg', '')}".strip()
    return _error(400, message)


def store_error_handler(request: Request, exc: DocumentStoreError):  # noqa: ARG001
    logger.error("Document store failure on %s %s: %s", request.method, request.url.path, exc)
    return _error(503, STORE_UNAVAILABLE)


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    token_verifier: GoogleTokenVerifier | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.LOG_LEVEL)

    app = FastAPI(title="Boat & Cargo Tracker")
    app.state.settings = settings
    app.state.store = store if store is not None else build_store(settings)
    app.state.token_verifier = token_verifier or GoogleTokenVerifier.from_settings(settings)

    logger.info(
        "Startup config: ENV=%s DOCUMENT_STORE=%s BOATS_PAGE_SIZE=%s LOADS_PAGE_SIZE=%s JWKS_CACHE_SECONDS=%s",
        settings.ENV,
        settings.DOCUMENT_STORE,
        settings.BOATS_PAGE_SIZE,
        settings.LOADS_PAGE_SIZE,
        settings.JWKS_CACHE_SECONDS,
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DocumentStoreError, store_error_handler)

    register_identity_middleware(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(root_router)
    app.include_router(boats_router)
    app.include_router(loads_router)
    app.include_router(users_router)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app
