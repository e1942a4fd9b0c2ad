from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class MilestoneSpec(BaseModel):
    description: str = ""
    amount: int
    deadline: datetime


class CampaignCreate(BaseModel):
    title: str
    description: str = ""
    target_amount: int
    funding_deadline: datetime
    milestones: list[MilestoneSpec] = Field(default_factory=list)


class ContributionCreate(BaseModel):
    amount: int


class VoteCreate(BaseModel):
    support: bool


class MilestoneResponse(BaseModel):
    index: int
    description: str
    amount: int
    deadline: datetime
    status: str
    votes_for: int
    votes_against: int
    completed_at: datetime | None = None


class CampaignResponse(BaseModel):
    id: int
    creator: str
    title: str
    description: str
    target_amount: int
    raised_amount: int
    released_amount: int
    refunded_amount: int
    funding_deadline: datetime
    status: str
    contributor_count: int
    milestones: list[MilestoneResponse] = []
    created_at: datetime | None = None


class ContributionResponse(BaseModel):
    campaign_id: int
    contributor: str
    amount: int


class RefundResponse(BaseModel):
    campaign_id: int
    contributor: str
    amount: int


class EventResponse(BaseModel):
    id: int
    type: str
    campaign_id: int
    caller: str | None = None
    payload: dict
    created_at: datetime | None = None
