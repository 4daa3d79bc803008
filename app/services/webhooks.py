import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Protocol

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    InvalidPayload,
    InvalidSignature,
    MissingSignature,
    WebhookHandlerError,
)
from app.core.locks import KeyedLock
from app.models.webhook_event import WebhookEventRecord
from app.schemas.webhook import WebhookAck, WebhookEvent, WebhookStatus

logger = logging.getLogger("app.webhooks")

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
DISPUTE_CREATED = "charge.dispute.created"

Handler = Callable[[WebhookEvent], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WebhookEventStore(Protocol):
    def get(self, event_id: str) -> WebhookEvent | None: ...

    def add(self, event: WebhookEvent) -> bool:
        """Insert if absent. False when an event with this id already exists."""
        ...

    def save(self, event: WebhookEvent) -> None: ...

    def list(self, event_type: str | None = None) -> list[WebhookEvent]: ...


class InMemoryWebhookEventStore:
    def __init__(self) -> None:
        self._events: dict[str, WebhookEvent] = {}
        self._lock = threading.Lock()

    def get(self, event_id: str) -> WebhookEvent | None:
        with self._lock:
            event = self._events.get(event_id)
            return event.model_copy() if event else None

    def add(self, event: WebhookEvent) -> bool:
        with self._lock:
            if event.id in self._events:
                return False
            self._events[event.id] = event.model_copy()
            return True

    def save(self, event: WebhookEvent) -> None:
        with self._lock:
            self._events[event.id] = event.model_copy()

    def list(self, event_type: str | None = None) -> list[WebhookEvent]:
        with self._lock:
            events = list(self._events.values())
        if event_type:
            events = [e for e in events if e.type == event_type]
        return [e.model_copy() for e in events]


class SqlWebhookEventStore:
    """Events in the `webhook_events` table; the primary key makes `add` atomic."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, event_id: str) -> WebhookEvent | None:
        with self._session_factory() as db:
            rec = db.get(WebhookEventRecord, event_id)
            return _to_event(rec) if rec else None

    def add(self, event: WebhookEvent) -> bool:
        with self._session_factory() as db:
            db.add(_to_record(event))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return False
            return True

    def save(self, event: WebhookEvent) -> None:
        with self._session_factory() as db:
            db.merge(_to_record(event))
            db.commit()

    def list(self, event_type: str | None = None) -> list[WebhookEvent]:
        with self._session_factory() as db:
            q = db.query(WebhookEventRecord)
            if event_type:
                q = q.filter(WebhookEventRecord.event_type == event_type)
            rows = q.order_by(WebhookEventRecord.received_at.asc()).all()
            return [_to_event(r) for r in rows]


def _to_record(event: WebhookEvent) -> WebhookEventRecord:
    return WebhookEventRecord(
        event_id=event.id,
        event_type=event.type,
        payload=event.payload,
        received_at=event.received_at,
        created_at=event.created_at,
        processed_at=event.processed_at,
        status=event.status.value,
        error=event.error,
    )


def _to_event(rec: WebhookEventRecord) -> WebhookEvent:
    return WebhookEvent(
        id=rec.event_id,
        type=rec.event_type,
        payload=rec.payload or {},
        received_at=rec.received_at,
        created_at=rec.created_at,
        processed_at=rec.processed_at,
        status=WebhookStatus(rec.status),
        error=rec.error,
    )


class WebhookProcessor:
    """
    Records incoming provider events and dispatches them by type.

    Per event id: received -> processed, or received -> failed. A failed
    event stays unprocessed so the provider's redelivery runs it again; an
    already processed id is acknowledged without running the handler twice.
    """

    def __init__(
        self,
        store: WebhookEventStore,
        handlers: dict[str, Handler] | None = None,
        signing_secret: str | None = None,
    ):
        self.store = store
        self.handlers: dict[str, Handler] = dict(handlers or {})
        self.signing_secret = signing_secret
        self._locks = KeyedLock()

    def register(self, event_type: str, handler: Handler) -> None:
        self.handlers[event_type] = handler

    def handle_incoming(self, payload: bytes, signature: str | None) -> WebhookAck:
        if not signature:
            raise MissingSignature("Missing stripe-signature header")

        if self.signing_secret:
            try:
                stripe.WebhookSignature.verify_header(
                    payload.decode("utf-8"),
                    signature,
                    self.signing_secret,
                    tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
                )
            except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
                logger.warning("Webhook signature rejected: %s", e)
                raise InvalidSignature("Invalid signature") from e
        else:
            logger.warning("Webhook signing secret not set; signature not verified")

        event = self.parse_event(payload)
        return self.process(event)

    @staticmethod
    def parse_event(payload: bytes) -> WebhookEvent:
        try:
            body = json.loads(payload)
        except ValueError as e:
            raise InvalidPayload("Body is not valid JSON") from e
        if not isinstance(body, dict):
            raise InvalidPayload("Body must be a JSON object")

        event_type = body.get("type")
        if not isinstance(event_type, str) or not event_type:
            raise InvalidPayload("Event type is required")

        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise InvalidPayload("Event data must be an object")

        created = body.get("created")
        created_at = None
        if isinstance(created, (int, float)) and not isinstance(created, bool):
            created_at = datetime.fromtimestamp(created, tz=timezone.utc)

        return WebhookEvent(
            id=str(body.get("id") or f"evt_sim_{uuid.uuid4().hex}"),
            type=event_type,
            payload=data,
            received_at=_utcnow(),
            created_at=created_at,
        )

    def process(self, event: WebhookEvent) -> WebhookAck:
        logger.info("Processing webhook event: %s (%s)", event.type, event.id)

        with self._locks.hold(event.id):
            if not self.store.add(event):
                existing = self.store.get(event.id)
                if existing is not None and existing.processed:
                    logger.info("Webhook event %s already processed, skipping", event.id)
                    return WebhookAck(event_id=event.id, duplicate=True)
                logger.info(
                    "Reprocessing webhook event %s (status=%s)",
                    event.id,
                    existing.status.value if existing else "missing",
                )
                event = event.model_copy(
                    update={"status": WebhookStatus.RECEIVED, "error": None}
                )
                self.store.save(event)

            handler = self.handlers.get(event.type)
            if handler is None:
                logger.info("Unhandled event type: %s", event.type)
            else:
                try:
                    handler(event)
                except Exception as e:
                    failed = event.model_copy(
                        update={"status": WebhookStatus.FAILED, "error": str(e)[:400]}
                    )
                    self.store.save(failed)
                    logger.exception("Failed to process webhook event %s", event.id)
                    raise WebhookHandlerError(event.id, str(e) or type(e).__name__) from e

            done = event.model_copy(
                update={
                    "status": WebhookStatus.PROCESSED,
                    "processed_at": _utcnow(),
                    "error": None,
                }
            )
            self.store.save(done)

        return WebhookAck(event_id=event.id)

    def get_event(self, event_id: str) -> WebhookEvent | None:
        return self.store.get(event_id)

    def list_events(self, event_type: str | None = None) -> list[WebhookEvent]:
        return self.store.list(event_type)


def ledger_handlers(ledger) -> dict[str, Handler]:
    return {
        PAYMENT_SUCCEEDED: ledger.record_payment_succeeded,
        PAYMENT_FAILED: ledger.record_payment_failed,
        DISPUTE_CREATED: ledger.flag_dispute,
    }
