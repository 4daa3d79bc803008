from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.core.deps import get_webhook_processor, require_admin
from app.models.user import User
from app.schemas.webhook import WebhookAck, WebhookEvent
from app.services.webhooks import WebhookProcessor

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request, processor: WebhookProcessor = Depends(get_webhook_processor)
):
    # raw payload for signature verification
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    # handlers hit the database; keep them off the event loop
    return await run_in_threadpool(processor.handle_incoming, payload, sig_header)


@router.get("/events", response_model=list[WebhookEvent])
def list_events(
    type: str | None = None,
    processor: WebhookProcessor = Depends(get_webhook_processor),
    user: User = Depends(require_admin),
):
    return processor.list_events(type)


@router.get("/events/{event_id}", response_model=WebhookEvent)
def get_event(
    event_id: str,
    processor: WebhookProcessor = Depends(get_webhook_processor),
    user: User = Depends(require_admin),
):
    event = processor.get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event
