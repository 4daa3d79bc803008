import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, require_admin, require_roles
from app.db.session import get_db
from app.models.campaign import Campaign
from app.models.donation import Donation
from app.models.user import User
from app.schemas.campaign import (
    CampaignCreate,
    CampaignDetailOut,
    CampaignOut,
    CampaignPage,
    CampaignStatsOut,
    CampaignStatus,
    CampaignUpdate,
    CategoryStat,
    Pagination,
    RecentDonationOut,
)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])

MAX_LIMIT = 100
RECENT_DONATIONS = 5


def _page(q, page: int, limit: int) -> tuple[list[Campaign], Pagination]:
    total = q.count()
    rows = (
        q.order_by(Campaign.created_at.desc(), Campaign.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pagination = Pagination(
        page=page, limit=limit, total=total, pages=math.ceil(total / limit)
    )
    return rows, pagination


def _require_campaign(db: Session, campaign_id: str) -> Campaign:
    campaign = db.get(Campaign, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


@router.get("", response_model=CampaignPage)
def list_campaigns(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    status: CampaignStatus | None = None,
    category: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
):
    q = db.query(Campaign)
    if status:
        q = q.filter(Campaign.status == status)
    if category:
        q = q.filter(Campaign.category == category)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(
            or_(
                func.lower(Campaign.title).like(like),
                func.lower(Campaign.description).like(like),
            )
        )

    rows, pagination = _page(q, page, limit)
    return CampaignPage(
        data=[CampaignOut.model_validate(c) for c in rows], pagination=pagination
    )


@router.get("/stats/overview", response_model=CampaignStatsOut)
def campaign_stats(
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("coach", "admin")),
):
    by_status = dict(
        db.query(Campaign.status, func.count(Campaign.id))
        .group_by(Campaign.status)
        .all()
    )
    total = sum(by_status.values())
    total_raised = db.query(func.coalesce(func.sum(Campaign.current_amount), 0)).scalar()
    average_goal = db.query(func.avg(Campaign.goal_amount)).scalar() or 0

    # a finished campaign is a success if it met its goal
    finished = (
        db.query(Campaign)
        .filter(Campaign.status.in_(("completed", "cancelled")))
        .all()
    )
    successes = sum(1 for c in finished if c.current_amount >= c.goal_amount)

    categories = (
        db.query(
            Campaign.category,
            func.count(Campaign.id),
            func.coalesce(func.sum(Campaign.current_amount), 0),
        )
        .group_by(Campaign.category)
        .order_by(func.sum(Campaign.current_amount).desc())
        .limit(5)
        .all()
    )

    return CampaignStatsOut(
        total_campaigns=total,
        active_campaigns=by_status.get("active", 0),
        completed_campaigns=by_status.get("completed", 0),
        paused_campaigns=by_status.get("paused", 0),
        cancelled_campaigns=by_status.get("cancelled", 0),
        total_raised=int(total_raised),
        average_goal=int(round(average_goal)),
        success_rate=round(successes / len(finished), 4) if finished else None,
        top_categories=[
            CategoryStat(category=cat, count=count, amount=int(amount))
            for cat, count, amount in categories
        ],
    )


@router.get("/category/{category}", response_model=CampaignPage)
def campaigns_by_category(
    category: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    q = db.query(Campaign).filter(Campaign.category == category)
    rows, pagination = _page(q, page, limit)
    return CampaignPage(
        data=[CampaignOut.model_validate(c) for c in rows],
        pagination=pagination,
        category=category,
    )


@router.get("/{campaign_id}", response_model=CampaignDetailOut)
def get_campaign(campaign_id: str, db: Session = Depends(get_db)):
    campaign = _require_campaign(db, campaign_id)

    recent = (
        db.query(Donation)
        .filter(Donation.campaign_id == campaign.id, Donation.status == "completed")
        .order_by(Donation.created_at.desc(), Donation.id.desc())
        .limit(RECENT_DONATIONS)
        .all()
    )

    out = CampaignDetailOut.model_validate(campaign)
    out.recent_donations = [
        RecentDonationOut(
            id=d.id,
            amount=d.amount,
            donor_name="Anonymous" if d.anonymous else d.donor_name,
            message=d.message,
            created_at=d.created_at,
        )
        for d in recent
    ]
    return out


@router.post("", response_model=CampaignOut, status_code=201)
def create_campaign(
    payload: CampaignCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("coach", "admin")),
):
    campaign = Campaign(
        title=payload.title.strip(),
        description=payload.description.strip(),
        goal_amount=payload.goal_amount,
        current_amount=0,
        donor_count=0,
        status="active",
        category=payload.category,
        team_id=payload.team_id,
        image=payload.image,
        created_by=user.id,
        end_date=payload.end_date,
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return CampaignOut.model_validate(campaign)


@router.put("/{campaign_id}", response_model=CampaignOut)
def update_campaign(
    campaign_id: str,
    payload: CampaignUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    campaign = _require_campaign(db, campaign_id)
    if user.role != "admin" and campaign.created_by != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the campaign creator or an admin can update it",
        )

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(campaign, field, value)
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return CampaignOut.model_validate(campaign)


@router.delete("/{campaign_id}")
def delete_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    campaign = _require_campaign(db, campaign_id)
    db.query(Donation).filter(Donation.campaign_id == campaign.id).delete()
    db.delete(campaign)
    db.commit()
    return {"ok": True, "campaign_id": campaign_id}
