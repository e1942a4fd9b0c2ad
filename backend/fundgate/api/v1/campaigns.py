"""Campaigns API: creation, funding, milestone release, voting and refunds."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.api.deps import get_caller, get_clock, get_transfer_port
from fundgate.core.clock import Clock
from fundgate.core.transfer import TransferPort
from fundgate.database import get_db
from fundgate.models.campaign import Campaign, CampaignStatus
from fundgate.models.event import EventType
from fundgate.models.milestone import Milestone
from fundgate.schemas.campaign import (
    CampaignCreate,
    CampaignResponse,
    ContributionCreate,
    ContributionResponse,
    EventResponse,
    MilestoneResponse,
    RefundResponse,
    VoteCreate,
)
from fundgate.services import campaign_store
from fundgate.services.contribution_service import contribute
from fundgate.services.refund_service import cancel_campaign, claim_refund
from fundgate.services.release_service import release_milestone
from fundgate.services.voting_service import vote_milestone

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


def _ms_to_response(ms: Milestone) -> MilestoneResponse:
    return MilestoneResponse(
        index=ms.index,
        description=ms.description,
        amount=ms.amount,
        deadline=ms.deadline,
        status=ms.status.value,
        votes_for=ms.votes_for,
        votes_against=ms.votes_against,
        completed_at=ms.completed_at,
    )


def _campaign_to_response(c: Campaign) -> CampaignResponse:
    return CampaignResponse(
        id=c.id,
        creator=c.creator,
        title=c.title,
        description=c.description,
        target_amount=c.target_amount,
        raised_amount=c.raised_amount,
        released_amount=c.released_amount,
        refunded_amount=c.refunded_amount,
        funding_deadline=c.funding_deadline,
        status=c.status.value,
        contributor_count=sum(1 for entry in c.contributions if entry.amount > 0),
        milestones=[_ms_to_response(ms) for ms in c.milestones],
        created_at=c.created_at,
    )


@router.post("", response_model=CampaignResponse, status_code=201)
async def create_campaign(
    body: CampaignCreate,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(get_caller),
    clock: Clock = Depends(get_clock),
):
    """Create a campaign owned by the caller."""
    campaign = await campaign_store.create_campaign(
        db,
        creator=caller,
        title=body.title,
        description=body.description,
        target_amount=body.target_amount,
        funding_deadline=body.funding_deadline,
        milestone_descriptions=[m.description for m in body.milestones],
        milestone_amounts=[m.amount for m in body.milestones],
        milestone_deadlines=[m.deadline for m in body.milestones],
        clock=clock,
    )
    return _campaign_to_response(campaign)


@router.get("", response_model=list[CampaignResponse])
async def list_campaigns(
    db: AsyncSession = Depends(get_db),
    status: CampaignStatus | None = Query(None),
    creator: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    campaigns = await campaign_store.list_campaigns(
        db,
        status=status,
        creator=creator,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return [_campaign_to_response(c) for c in campaigns]


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return _campaign_to_response(await campaign_store.get_campaign(db, campaign_id))


@router.get("/{campaign_id}/milestones", response_model=list[MilestoneResponse])
async def list_milestones(campaign_id: int, db: AsyncSession = Depends(get_db)):
    campaign = await campaign_store.get_campaign(db, campaign_id)
    return [_ms_to_response(ms) for ms in campaign.milestones]


@router.get("/{campaign_id}/milestones/{index}", response_model=MilestoneResponse)
async def get_milestone(campaign_id: int, index: int, db: AsyncSession = Depends(get_db)):
    return _ms_to_response(await campaign_store.get_milestone(db, campaign_id, index))


@router.post("/{campaign_id}/contributions", response_model=ContributionResponse)
async def post_contribution(
    campaign_id: int,
    body: ContributionCreate,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(get_caller),
    clock: Clock = Depends(get_clock),
):
    entry = await contribute(db, campaign_id, caller, body.amount, clock=clock)
    return ContributionResponse(
        campaign_id=campaign_id, contributor=entry.contributor, amount=entry.amount
    )


@router.get("/{campaign_id}/contributors", response_model=list[ContributionResponse])
async def list_contributors(campaign_id: int, db: AsyncSession = Depends(get_db)):
    """Contributors in first-contribution order, refunded ones included."""
    entries = await campaign_store.list_contributors(db, campaign_id)
    return [
        ContributionResponse(campaign_id=campaign_id, contributor=e.contributor, amount=e.amount)
        for e in entries
    ]


@router.get(
    "/{campaign_id}/contributions/{contributor}", response_model=ContributionResponse
)
async def get_contribution(
    campaign_id: int, contributor: str, db: AsyncSession = Depends(get_db)
):
    amount = await campaign_store.get_contribution(db, campaign_id, contributor)
    return ContributionResponse(campaign_id=campaign_id, contributor=contributor, amount=amount)


@router.post("/{campaign_id}/milestones/{index}/release", response_model=MilestoneResponse)
async def post_release(
    campaign_id: int,
    index: int,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(get_caller),
    clock: Clock = Depends(get_clock),
    transfer: TransferPort = Depends(get_transfer_port),
):
    milestone = await release_milestone(
        db, campaign_id, index, caller, transfer=transfer, clock=clock
    )
    return _ms_to_response(milestone)


@router.post("/{campaign_id}/milestones/{index}/votes", response_model=MilestoneResponse)
async def post_vote(
    campaign_id: int,
    index: int,
    body: VoteCreate,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(get_caller),
):
    milestone = await vote_milestone(db, campaign_id, index, caller, body.support)
    return _ms_to_response(milestone)


@router.post("/{campaign_id}/cancel", response_model=CampaignResponse)
async def post_cancel(
    campaign_id: int,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(get_caller),
):
    campaign = await cancel_campaign(db, campaign_id, caller)
    return _campaign_to_response(campaign)


@router.post("/{campaign_id}/refund", response_model=RefundResponse)
async def post_refund(
    campaign_id: int,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(get_caller),
    clock: Clock = Depends(get_clock),
    transfer: TransferPort = Depends(get_transfer_port),
):
    amount = await claim_refund(db, campaign_id, caller, transfer=transfer, clock=clock)
    return RefundResponse(campaign_id=campaign_id, contributor=caller, amount=amount)


@router.get("/{campaign_id}/events", response_model=list[EventResponse])
async def list_campaign_events(
    campaign_id: int,
    db: AsyncSession = Depends(get_db),
    event_type: EventType | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    """Notification history of a campaign, oldest first."""
    events = await campaign_store.get_campaign_events(
        db,
        campaign_id,
        event_type=event_type,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return [
        EventResponse(
            id=e.id,
            type=e.type.value,
            campaign_id=e.campaign_id,
            caller=e.caller,
            payload=e.payload,
            created_at=e.created_at,
        )
        for e in events
    ]
