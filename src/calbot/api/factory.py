"""FastAPI application factory."""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from calbot.errors.normalizer import normalize_error
from calbot.errors.taxonomy import NormalizedError, internal_error
from calbot.infra.settings import ConfigurationError, load_settings
from calbot.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context
from calbot.services.container import ServicesFactory, build_services

from .routers import public
from .routes import files, rpc, webhooks_line

logger = get_logger(__name__)

# Served without loading configuration
UNCONFIGURED_PATHS = frozenset({"/health"})


def _envelope_response(error: BaseException, context: dict) -> JSONResponse:
    normalized = normalize_error(error, context=context)
    return JSONResponse(normalized.to_envelope(), status_code=normalized.status)


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    error = context.get("exception")
    if error is not None:
        normalize_error(error, context={"source": "event_loop"})
        return
    logger.error(
        "unhandled event loop error",
        extra={"extra_fields": safe_log_context(message=context.get("message"))},
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    asyncio.get_running_loop().set_exception_handler(_loop_exception_handler)
    logger.info("calbot api started")
    yield


def create_app(services_factory: ServicesFactory = build_services) -> FastAPI:
    """Create the FastAPI app.

    Args:
        services_factory: Builds per-request Services from Settings. Tests
            pass a factory returning in-memory fakes.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Calbot",
        docs_url=None,
        redoc_url=None,
        lifespan=_lifespan,
    )

    # Registered first so it runs inside the correlation middleware
    @app.middleware("http")
    async def configuration_middleware(request: Request, call_next) -> Response:
        if request.url.path in UNCONFIGURED_PATHS:
            return await call_next(request)
        try:
            settings = load_settings()
        except ConfigurationError as exc:
            error = internal_error(str(exc), code="CONFIGURATION_ERROR")
            return _envelope_response(error, {"missing": list(exc.missing)})
        request.state.services = services_factory(settings)
        return await call_next(request)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.exception_handler(NormalizedError)
    async def normalized_error_handler(request: Request, exc: NormalizedError) -> JSONResponse:
        return _envelope_response(exc, {"path": request.url.path})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _envelope_response(exc, {"path": request.url.path})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return _envelope_response(exc, {"path": request.url.path})

    app.include_router(public.router)
    app.include_router(webhooks_line.router)
    app.include_router(rpc.router)
    app.include_router(files.router)

    return app
