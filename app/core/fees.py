"""
Fee calculation for donations, in integer minor units (cents).

Default schedule:
  processor (Stripe) = 2.9% + 30c
  platform           = 5%

The combined variable fee is floored once and then split between processor
and platform in proportion to their rates, so each fee and the net payout
only ever grow with the gross amount. The flat processor fee is capped at
what is left after the variable fees; net never goes negative.
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from app.core.config import settings
from app.core.errors import InvalidAmount

BPS = 10_000


class FeeSchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    processor_bps: int = Field(default=290, ge=0)
    processor_flat: int = Field(default=30, ge=0)
    platform_bps: int = Field(default=500, ge=0)

    @model_validator(mode="after")
    def _check_combined_rate(self):
        if self.processor_bps + self.platform_bps > BPS:
            raise ValueError("Combined processor and platform rate cannot exceed 100%")
        return self


class FeeBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency: str
    gross_amount: int
    processor_fee: int
    platform_fee: int
    net_amount: int

    @computed_field
    @property
    def total_fees(self) -> int:
        return self.processor_fee + self.platform_fee

    @computed_field
    @property
    def total_charge(self) -> int:
        # fees are passed through to the payer
        return self.gross_amount + self.total_fees


def default_schedule() -> FeeSchedule:
    return FeeSchedule(
        processor_bps=settings.STRIPE_FEE_BPS,
        processor_flat=settings.STRIPE_FEE_FLAT_CENTS,
        platform_bps=settings.PLATFORM_FEE_BPS,
    )


def validate_amount(amount) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer number of cents, got {amount!r}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    return amount


def calculate_fees(
    amount: int, currency: str = "usd", schedule: FeeSchedule | None = None
) -> FeeBreakdown:
    gross = validate_amount(amount)
    schedule = schedule or default_schedule()

    rate_bps = schedule.processor_bps + schedule.platform_bps
    variable = gross * rate_bps // BPS
    processor_variable = variable * schedule.processor_bps // rate_bps if rate_bps else 0
    platform_fee = variable - processor_variable

    flat = min(schedule.processor_flat, gross - variable)
    processor_fee = processor_variable + flat

    return FeeBreakdown(
        currency=currency.lower(),
        gross_amount=gross,
        processor_fee=processor_fee,
        platform_fee=platform_fee,
        net_amount=gross - processor_fee - platform_fee,
    )


def format_amount(amount_cents: int) -> str:
    sign = "-" if amount_cents < 0 else ""
    units, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{units}.{cents:02d}"
