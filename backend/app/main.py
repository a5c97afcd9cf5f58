from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import AuthServiceException, InternalError, ValidationError
from app.core.logging import setup_logging
from app.core.rate_limit import FixedWindowRateLimiter, InMemoryCounterStore
from app.core.security_headers import install_security_headers_middleware
from app.routers import auth
from app.services.email import EmailSender, build_email_sender

logger = logging.getLogger(__name__)


def _invalid_fields(exc: RequestValidationError) -> list[str]:
    fields: list[str] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        name = ".".join(location) or "body"
        if name not in fields:
            fields.append(name)
    return fields


def create_app(
    *,
    email_sender: EmailSender | None = None,
    rate_limiter: FixedWindowRateLimiter | None = None,
) -> FastAPI:
    setup_logging(settings.LOG_LEVEL)
    settings.validate_runtime_security()

    app = FastAPI(title=settings.APP_NAME)
    app.state.email_sender = email_sender or build_email_sender(settings)
    app.state.rate_limiter = rate_limiter or FixedWindowRateLimiter(InMemoryCounterStore())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_security_headers_middleware(app, settings)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.exception_handler(AuthServiceException)
    async def handle_service_exception(_: Request, exc: AuthServiceException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError("invalid_input", details={"fields": _invalid_fields(exc)})
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    return app


app = create_app()
