from pydantic import BaseModel, Field, StrictInt

from app.core.fees import FeeBreakdown


class PaymentIntentRequest(BaseModel):
    amount: StrictInt  # cents, range checked by the gateway
    currency: str = "usd"
    description: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    idempotency_key: str | None = None


class PaymentResult(BaseModel):
    success: bool
    payment_intent_id: str | None = None
    client_secret: str | None = None
    status: str | None = None
    refund_id: str | None = None
    fees: FeeBreakdown | None = None
    error: str | None = None


class PaymentStatusOut(BaseModel):
    enabled: bool
    currency: str
    publishable_key: str | None


class FeePreviewOut(BaseModel):
    fees: FeeBreakdown
    formatted: dict[str, str]
