import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.campaign import Campaign
from app.models.donation import Donation
from app.models.user import User

logger = logging.getLogger("app.db")

DEMO_PASSWORD = "password123"


def seed_demo_data(db: Session) -> bool:
    """Populate an empty database with the demo accounts and campaigns."""
    if db.query(User).first() is not None:
        return False

    now = datetime.now(timezone.utc)
    password_hash = hash_password(DEMO_PASSWORD)

    db.add_all(
        [
            User(
                id="admin-1",
                name="Admin User",
                email="admin@believefundraising.com",
                password_hash=password_hash,
                role="admin",
                verified=True,
            ),
            User(
                id="coach-1",
                name="Coach Johnson",
                email="coach.johnson@lincolnhigh.edu",
                password_hash=password_hash,
                role="coach",
                team="Lincoln High Basketball",
                verified=True,
            ),
            User(
                id="student-1",
                name="Alex Thompson",
                email="alex.thompson@student.lincolnhigh.edu",
                password_hash=password_hash,
                role="student",
                team="Lincoln High Basketball",
                verified=True,
            ),
        ]
    )
    db.flush()

    db.add_all(
        [
            Campaign(
                id="campaign-1",
                title="Lincoln High Basketball Team",
                description="Help our basketball team get new uniforms and equipment for the upcoming season.",
                goal_amount=500000,
                current_amount=275000,
                status="active",
                category="sports",
                created_by="coach-1",
                end_date=now + timedelta(days=30),
                donor_count=15,
                image="https://picsum.photos/id/403/400/300",
            ),
            Campaign(
                id="campaign-2",
                title="Science Club Equipment",
                description="Support our science club in purchasing new laboratory equipment for experiments.",
                goal_amount=300000,
                current_amount=125000,
                status="active",
                category="education",
                created_by="coach-1",
                end_date=now + timedelta(days=45),
                donor_count=8,
                image="https://picsum.photos/id/60/400/300",
            ),
            Campaign(
                id="campaign-3",
                title="Drama Club Costumes",
                description="Help our drama club purchase costumes and props for the upcoming school play.",
                goal_amount=200000,
                current_amount=85000,
                status="paused",
                category="arts",
                created_by="coach-1",
                end_date=now + timedelta(days=60),
                donor_count=5,
                image="https://picsum.photos/id/180/400/300",
            ),
        ]
    )
    db.flush()

    db.add_all(
        [
            Donation(
                id="donation-1",
                campaign_id="campaign-1",
                donor_id="student-1",
                donor_name="John Smith",
                anonymous=False,
                message="Great cause! Go team!",
                amount=5000,
                status="completed",
                completed_at=now,
            ),
            Donation(
                id="donation-2",
                campaign_id="campaign-1",
                donor_id="student-1",
                donor_name="Anonymous",
                anonymous=True,
                message="",
                amount=2500,
                status="completed",
                completed_at=now,
            ),
        ]
    )
    db.commit()
    logger.info("Seeded demo users, campaigns and donations")
    return True
