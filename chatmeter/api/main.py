"""FastAPI application factory."""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatmeter.api import schemas
from chatmeter.api.routers import admin, chat
from chatmeter.core.errors import GatewayError, ValidationError
from chatmeter.core.logging import get_logger, setup_logging
from chatmeter.core.observability import configure_observability
from chatmeter.core.rate_limiter import setup_rate_limiting
from chatmeter.core.settings import Settings, get_settings
from chatmeter.services.admin import AdminController
from chatmeter.services.gateway import ChatGateway
from chatmeter.services.registry import RegistryService
from chatmeter.services.snapshot import JsonFileSnapshotStore, SnapshotStore
from chatmeter.services.upstream import CompletionBackend, CompletionClient

logger = get_logger(__name__)


def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        problems.append(f"{location}: {message}" if location else message)
    return _gateway_error_handler(request, ValidationError("; ".join(problems) or "Invalid request"))


def create_app(
    settings: Settings | None = None,
    store: SnapshotStore | None = None,
    upstream: CompletionBackend | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(json_logs=settings.environment != "development")

    store = store or JsonFileSnapshotStore(settings.resolved_snapshot_path)
    registry = RegistryService.load_or_default(
        store,
        default_plans=settings.default_plans,
        default_users=settings.default_users,
    )
    if not settings.admin_enabled:
        logger.warning("admin_disabled", reason="admin_secret_not_configured")

    app = FastAPI(title=settings.app_name, version="1.0.0")
    app.state.settings = settings
    app.state.registry = registry
    app.state.admin = AdminController(registry, store, settings.admin_secret)
    app.state.gateway = ChatGateway(registry, upstream or CompletionClient(settings))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    setup_rate_limiting(app, settings)
    configure_observability(app, settings)

    app.include_router(chat.router)
    app.include_router(admin.router)

    @app.get("/", response_model=schemas.RootResponse, tags=["monitoring"])
    def root() -> schemas.RootResponse:
        return schemas.RootResponse(ok=True, app=settings.app_name, now=datetime.now(timezone.utc))

    @app.get("/healthz", response_model=schemas.HealthResponse, tags=["monitoring"])
    def healthcheck() -> schemas.HealthResponse:
        durability = "ok" if app.state.admin.durability_ok else "degraded"
        return schemas.HealthResponse(status="ok", durability=durability)

    logger.info("app_created", environment=settings.environment, snapshot=str(settings.resolved_snapshot_path))
    return app


__all__ = ["create_app"]
