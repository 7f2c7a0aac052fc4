"""FastAPI application entrypoint."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from trials_api.api.router import api_router
from trials_api.api.search import paging_type_failure
from trials_api.config import get_settings
from trials_api.logging_config import configure_logging

settings = get_settings()

configure_logging("trials-api", settings.log_level, settings.log_format)
logger = structlog.get_logger("trials_api")

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list)


@app.on_event("startup")
def on_startup() -> None:
    logger.info("app.startup", env=settings.env, index=settings.elasticsearch_index)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    failure = paging_type_failure(exc.errors())
    if failure is None:
        return await request_validation_exception_handler(request, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=failure.model_dump())


@app.get("/healthz", tags=["health"])
def healthcheck() -> dict[str, str]:
    """Simple health endpoint for probes."""
    return {"status": "ok"}


app.include_router(api_router, prefix=settings.api_v1_prefix)
