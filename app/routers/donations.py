import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_user, get_ledger, get_payment_gateway, require_admin
from app.db.session import get_db
from app.models.campaign import Campaign
from app.models.donation import Donation
from app.models.user import User
from app.schemas.donation import (
    CampaignDonationList,
    DonationCreate,
    DonationCreatedOut,
    DonationList,
    DonationOut,
    DonationStatus,
    DonationUpdate,
    PaymentOut,
    PublicDonationOut,
)
from app.schemas.payment import PaymentIntentRequest
from app.services.ledger import FundraisingLedger
from app.services.payments import PaymentGateway

logger = logging.getLogger("app.donations")

router = APIRouter(prefix="/donations", tags=["donations"])


def _require_donation(db: Session, donation_id: str) -> Donation:
    donation = db.get(Donation, donation_id)
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    return donation


def _gateway_error(message: str | None, fallback: str) -> HTTPException:
    # provider text is only shown outside production
    detail = fallback if settings.is_prod else (message or fallback)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


@router.get("", response_model=DonationList)
def list_donations(
    status: DonationStatus | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    q = db.query(Donation)
    if status:
        q = q.filter(Donation.status == status)
    rows = q.order_by(Donation.created_at.desc(), Donation.id.asc()).all()
    return DonationList(data=[DonationOut.model_validate(d) for d in rows], total=len(rows))


@router.get("/campaign/{campaign_id}", response_model=CampaignDonationList)
def campaign_donations(campaign_id: str, db: Session = Depends(get_db)):
    if db.get(Campaign, campaign_id) is None:
        raise HTTPException(status_code=404, detail="Campaign not found")

    rows = (
        db.query(Donation)
        .filter(Donation.campaign_id == campaign_id, Donation.status == "completed")
        .order_by(Donation.created_at.desc(), Donation.id.asc())
        .all()
    )
    data = [
        PublicDonationOut(
            id=d.id,
            amount=d.amount,
            donor_name="Anonymous" if d.anonymous else d.donor_name,
            anonymous=d.anonymous,
            message=d.message,
            created_at=d.created_at,
        )
        for d in rows
    ]
    return CampaignDonationList(campaign_id=campaign_id, data=data, total=len(data))


@router.get("/my-donations", response_model=DonationList)
def my_donations(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = (
        db.query(Donation)
        .filter(Donation.donor_id == user.id)
        .order_by(Donation.created_at.desc(), Donation.id.asc())
        .all()
    )
    return DonationList(data=[DonationOut.model_validate(d) for d in rows], total=len(rows))


@router.post("", response_model=DonationCreatedOut, status_code=201)
def create_donation(
    payload: DonationCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    campaign = db.get(Campaign, payload.campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    if campaign.status != "active":
        raise HTTPException(
            status_code=409,
            detail=f"Campaign not accepting donations (status={campaign.status})",
        )

    fees = gateway.calculate_fees(payload.amount)
    donation = Donation(
        campaign_id=campaign.id,
        donor_id=user.id,
        donor_name="Anonymous" if payload.anonymous else user.name,
        anonymous=payload.anonymous,
        message=payload.message or "",
        amount=payload.amount,
        currency=fees.currency,
        processor_fee=fees.processor_fee,
        platform_fee=fees.platform_fee,
        status="pending",
    )
    db.add(donation)
    db.commit()
    db.refresh(donation)

    if not gateway.is_enabled():
        logger.info("Payments disabled; donation %s left pending", donation.id)
        return DonationCreatedOut(
            donation=DonationOut.model_validate(donation), payments_enabled=False
        )

    result = gateway.create_payment_intent(
        PaymentIntentRequest(
            amount=donation.amount,
            currency=donation.currency,
            description=f"Donation to {campaign.title}",
            metadata={
                "donation_id": donation.id,
                "campaign_id": campaign.id,
                "donor_id": user.id,
            },
            idempotency_key=f"donation-{donation.id}",
        )
    )
    if not result.success:
        donation.status = "failed"
        donation.failure_reason = (result.error or "")[:400]
        db.commit()
        raise _gateway_error(result.error, "Payment processing failed")

    donation.payment_intent_id = result.payment_intent_id
    db.commit()
    db.refresh(donation)

    return DonationCreatedOut(
        donation=DonationOut.model_validate(donation),
        payments_enabled=True,
        payment=PaymentOut(
            payment_intent_id=result.payment_intent_id,
            client_secret=result.client_secret,
            fees=result.fees,
        ),
    )


@router.post("/{donation_id}/confirm", response_model=DonationOut)
def confirm_donation(
    donation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    ledger: FundraisingLedger = Depends(get_ledger),
):
    donation = _require_donation(db, donation_id)
    if user.role != "admin" and donation.donor_id != user.id:
        raise HTTPException(status_code=404, detail="Donation not found")
    if not donation.payment_intent_id:
        raise HTTPException(status_code=409, detail="Donation has no payment to confirm")

    result = gateway.confirm_payment(donation.payment_intent_id)
    if not result.success:
        if result.status:
            # provider answered; the payment simply isn't done yet
            raise HTTPException(status_code=409, detail=result.error)
        raise _gateway_error(result.error, "Payment confirmation failed")

    ledger.complete_donation(donation.id, payment_intent_id=result.payment_intent_id)
    db.refresh(donation)
    return DonationOut.model_validate(donation)


@router.put("/{donation_id}", response_model=DonationOut)
def update_donation(
    donation_id: str,
    payload: DonationUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    donation = _require_donation(db, donation_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(donation, field, value)
    db.add(donation)
    db.commit()
    db.refresh(donation)
    return DonationOut.model_validate(donation)


@router.delete("/{donation_id}", response_model=DonationOut)
def refund_donation(
    donation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    ledger: FundraisingLedger = Depends(get_ledger),
):
    donation = _require_donation(db, donation_id)
    if donation.status == "refunded":
        return DonationOut.model_validate(donation)

    if donation.payment_intent_id and donation.is_credited:
        result = gateway.refund_payment(donation.payment_intent_id)
        if not result.success:
            raise _gateway_error(result.error, "Refund failed")

    ledger.refund_donation(donation.id)
    db.refresh(donation)
    return DonationOut.model_validate(donation)
