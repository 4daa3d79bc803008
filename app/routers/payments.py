from fastapi import APIRouter, Depends, Query

from app.core.config import settings
from app.core.deps import get_payment_gateway
from app.core.fees import format_amount
from app.schemas.payment import FeePreviewOut, PaymentStatusOut
from app.services.payments import PaymentGateway

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/status", response_model=PaymentStatusOut)
def payment_status(gateway: PaymentGateway = Depends(get_payment_gateway)):
    enabled = gateway.is_enabled()
    return PaymentStatusOut(
        enabled=enabled,
        currency=gateway.currency,
        publishable_key=settings.STRIPE_PUBLISHABLE_KEY if enabled else None,
    )


@router.get("/fees", response_model=FeePreviewOut)
def fee_preview(
    amount: int = Query(..., gt=0, description="Donation amount in cents"),
    currency: str | None = Query(None, min_length=3, max_length=3),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    fees = gateway.calculate_fees(amount, currency)
    return FeePreviewOut(
        fees=fees,
        formatted={
            "gross_amount": format_amount(fees.gross_amount),
            "processor_fee": format_amount(fees.processor_fee),
            "platform_fee": format_amount(fees.platform_fee),
            "net_amount": format_amount(fees.net_amount),
            "total_charge": format_amount(fees.total_charge),
        },
    )
