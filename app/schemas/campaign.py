from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

CampaignStatus = Literal["active", "paused", "completed", "cancelled"]


class CampaignCreate(BaseModel):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=20)
    goal_amount: int = Field(gt=0)  # cents
    end_date: datetime
    category: str = Field(min_length=1, max_length=60)
    team_id: str | None = None
    image: str | None = None


class CampaignUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=5, max_length=200)
    description: str | None = Field(default=None, min_length=20)
    goal_amount: int | None = Field(default=None, gt=0)
    end_date: datetime | None = None
    status: CampaignStatus | None = None
    image: str | None = None


class CampaignOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    goal_amount: int
    current_amount: int
    status: str
    category: str
    team_id: str | None
    created_by: str | None
    image: str | None
    donor_count: int
    end_date: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RecentDonationOut(BaseModel):
    id: str
    amount: int
    donor_name: str
    message: str
    created_at: datetime | None


class CampaignDetailOut(CampaignOut):
    recent_donations: list[RecentDonationOut] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CampaignPage(BaseModel):
    data: list[CampaignOut]
    pagination: Pagination
    category: str | None = None


class CategoryStat(BaseModel):
    category: str
    count: int
    amount: int


class CampaignStatsOut(BaseModel):
    total_campaigns: int
    active_campaigns: int
    completed_campaigns: int
    paused_campaigns: int
    cancelled_campaigns: int
    total_raised: int
    average_goal: int
    success_rate: float | None  # None when nothing has finished yet
    top_categories: list[CategoryStat]
