import logging
import sys
import uuid
from contextvars import ContextVar

from fastapi import Request

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")

security_logger = logging.getLogger("app.security")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s request_id=%(request_id)s %(name)s: %(message)s"
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())

    root.handlers.clear()
    root.addHandler(handler)


def new_request_id() -> str:
    return uuid.uuid4().hex[:16]


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def log_security_event(event: str, request: Request, **details) -> None:
    """Write one line per security-relevant action (logins, password changes...)."""
    extra = " ".join(f"{k}={v}" for k, v in details.items())
    security_logger.info(
        "security_event=%s ip=%s ua=%s %s",
        event,
        client_ip(request),
        request.headers.get("user-agent", "-"),
        extra,
    )
