from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


class WebhookStatus(str, Enum):
    RECEIVED = "received"
    PROCESSED = "processed"
    FAILED = "failed"


class WebhookEvent(BaseModel):
    id: str
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime
    created_at: datetime | None = None
    status: WebhookStatus = WebhookStatus.RECEIVED
    processed_at: datetime | None = None
    error: str | None = None

    @computed_field
    @property
    def processed(self) -> bool:
        return self.status == WebhookStatus.PROCESSED

    @property
    def data_object(self) -> dict[str, Any]:
        obj = self.payload.get("object")
        return obj if isinstance(obj, dict) else {}


class WebhookAck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    received: bool = True
    event_id: str = Field(alias="eventId")
    duplicate: bool = False
