import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.routers.auth import router as auth_router
from app.routers.campaigns import router as campaigns_router
from app.routers.donations import router as donations_router
from app.routers.payments import router as payments_router
from app.routers.webhooks import router as webhooks_router

from app.core.config import settings
from app.core.logging import configure_logging, new_request_id, request_id_ctx
from app.core.errors import (
    AppError,
    app_error_handler,
    http_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)
from app.db.base import Base
from app.db.seed import seed_demo_data
from app.models import campaign, donation, user, webhook_event  # noqa: F401
from app.db.session import SessionLocal, engine
from app.services.ledger import FundraisingLedger
from app.services.payments import PaymentGateway
from app.services.webhooks import (
    SqlWebhookEventStore,
    WebhookEventStore,
    WebhookProcessor,
    ledger_handlers,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("app")

STARTED_AT = time.monotonic()


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("x-request-id") or new_request_id()
        token = request_id_ctx.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["x-request-id"] = rid
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.log(
                logging.INFO if settings.is_dev else logging.DEBUG,
                "%s %s - %s - %.0fms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
            return response
        finally:
            request_id_ctx.reset(token)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    if settings.SEED_DEMO_DATA:
        with SessionLocal() as db:
            seed_demo_data(db)


def create_app(
    gateway: PaymentGateway | None = None,
    event_store: WebhookEventStore | None = None,
) -> FastAPI:
    ledger = FundraisingLedger(SessionLocal)
    processor = WebhookProcessor(
        store=event_store or SqlWebhookEventStore(SessionLocal),
        handlers=ledger_handlers(ledger),
        signing_secret=settings.STRIPE_WEBHOOK_SECRET,
    )
    gateway = gateway or PaymentGateway.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db()
        logger.info(
            "Server started env=%s version=%s payments_enabled=%s",
            settings.ENV,
            settings.APP_VERSION,
            gateway.is_enabled(),
        )
        yield
        logger.info("Server shutting down")

    app = FastAPI(title=f"{settings.APP_NAME} API", version=settings.APP_VERSION, lifespan=lifespan)
    app.state.payment_gateway = gateway
    app.state.webhook_processor = processor
    app.state.ledger = ledger

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(campaigns_router, prefix=settings.API_PREFIX)
    app.include_router(donations_router, prefix=settings.API_PREFIX)
    app.include_router(payments_router, prefix=settings.API_PREFIX)
    app.include_router(webhooks_router, prefix=settings.API_PREFIX)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENV,
            "version": settings.APP_VERSION,
            "uptime": round(time.monotonic() - STARTED_AT, 3),
        }

    @app.get("/")
    def root():
        return {"status": "ok", "docs": "/docs"}

    return app


app = create_app()
