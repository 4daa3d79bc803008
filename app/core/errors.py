import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings

logger = logging.getLogger("app.errors")


class AppError(Exception):
    """Base for errors that map onto a client-facing HTTP response."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(AppError, ValueError):
    pass


class InvalidAmount(InvalidInput):
    pass


class WebhookError(AppError):
    pass


class MissingSignature(WebhookError):
    pass


class InvalidSignature(WebhookError):
    pass


class InvalidPayload(WebhookError):
    pass


class WebhookHandlerError(WebhookError):
    def __init__(self, event_id: str, message: str):
        super().__init__(message)
        self.event_id = event_id


class LedgerError(AppError):
    status_code = 409


def app_error_handler(request: Request, exc: AppError):
    logger.info(
        "%s %s path=%s: %s",
        type(exc).__name__,
        exc.status_code,
        request.url.path,
        exc.message,
    )
    detail = exc.message
    if isinstance(exc, WebhookError):
        detail = f"Webhook Error: {exc.message}"
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Safe to return exc.detail (it’s intended for clients), but don’t log secrets.
    logger.info("HTTPException %s path=%s", exc.status_code, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("ValidationError path=%s", request.url.path)
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ())),
            "message": err.get("msg"),
            "code": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422, content={"detail": "Invalid request", "errors": errors}
    )


def unhandled_exception_handler(request: Request, exc: Exception):
    # Log stack trace server-side; only production hides the message.
    logger.exception("UnhandledException path=%s", request.url.path)
    detail = "Internal Server Error" if settings.is_prod else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})
