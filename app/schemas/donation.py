from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from app.core.fees import FeeBreakdown

DonationStatus = Literal["pending", "completed", "failed", "refunded", "disputed"]


class DonationCreate(BaseModel):
    amount: StrictInt = Field(gt=0)  # cents
    campaign_id: str = Field(min_length=1)
    anonymous: bool = False
    message: str | None = Field(default=None, max_length=500)


class DonationUpdate(BaseModel):
    # status moves only through the ledger (confirm, refund, webhooks)
    model_config = ConfigDict(extra="forbid")

    message: str | None = Field(default=None, max_length=500)
    flagged_for_review: bool | None = None


class DonationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    campaign_id: str
    donor_id: str | None
    donor_name: str
    anonymous: bool
    message: str
    amount: int
    currency: str
    processor_fee: int
    platform_fee: int
    status: str
    payment_intent_id: str | None
    failure_reason: str | None
    flagged_for_review: bool
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PaymentOut(BaseModel):
    payment_intent_id: str
    client_secret: str | None
    fees: FeeBreakdown


class DonationCreatedOut(BaseModel):
    donation: DonationOut
    payments_enabled: bool
    payment: PaymentOut | None = None


class DonationList(BaseModel):
    data: list[DonationOut]
    total: int


class PublicDonationOut(BaseModel):
    id: str
    amount: int
    donor_name: str
    anonymous: bool
    message: str
    created_at: datetime | None


class CampaignDonationList(BaseModel):
    campaign_id: str
    data: list[PublicDonationOut]
    total: int
