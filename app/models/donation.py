import uuid
from datetime import datetime
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

DONATION_STATUSES = ("pending", "completed", "failed", "refunded", "disputed")


class Donation(Base):
    """
    One donation = one payment intent.
    PENDING -> COMPLETED (webhook or confirm) -> REFUNDED | DISPUTED
    PENDING -> FAILED
    """
    __tablename__ = "donations"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: f"donation-{uuid.uuid4().hex[:12]}",
    )

    campaign_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("campaigns.id", ondelete="CASCADE"), index=True
    )
    donor_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    donor_name: Mapped[str] = mapped_column(String(120), nullable=False)
    anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    # gross donation in cents; fees are charged on top
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="usd")
    processor_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # pending | completed | failed | refunded | disputed
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending", index=True
    )
    payment_intent_id: Mapped[str | None] = mapped_column(
        String(120), unique=True, index=True, nullable=True
    )
    failure_reason: Mapped[str | None] = mapped_column(String(400), nullable=True)
    flagged_for_review: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def is_credited(self) -> bool:
        # a dispute keeps the campaign credit until the donation is refunded
        if self.status == "completed":
            return True
        return self.status == "disputed" and self.completed_at is not None
