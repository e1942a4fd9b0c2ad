"""Campaign store: creation, identity and read access for campaigns.

Campaign ids are dense and 0-based: the n-th campaign ever created gets id
``n - 1`` and ids are never reused.  Milestones are created together with
their campaign and their count, order and amounts never change afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.config import settings
from fundgate.core.clock import Clock, system_clock
from fundgate.core.metrics import campaigns_created_total
from fundgate.models.base import MAX_AMOUNT, MAX_ID
from fundgate.models.campaign import Campaign, CampaignStatus
from fundgate.models.contribution import Contribution
from fundgate.models.event import Event, EventType
from fundgate.models.milestone import Milestone, MilestoneStatus
from fundgate.services.errors import CampaignNotFound, InvalidMilestone, InvalidParameters
from fundgate.services.event_service import get_events
from fundgate.services.transaction import campaign_transaction

logger = logging.getLogger(__name__)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _is_amount(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_AMOUNT


def _validate_creation(
    creator: str,
    title: str,
    target_amount: int,
    funding_deadline: datetime,
    descriptions: Sequence[str],
    amounts: Sequence[int],
    deadlines: Sequence[datetime],
    now: datetime,
) -> None:
    if not creator:
        raise InvalidParameters("Creator identity is required")
    if len(title) > settings.MAX_TITLE_LENGTH:
        raise InvalidParameters(f"Title longer than {settings.MAX_TITLE_LENGTH} characters")
    if not _is_amount(target_amount):
        raise InvalidParameters(f"Target amount must be between 1 and {MAX_AMOUNT}")
    if funding_deadline <= now:
        raise InvalidParameters("Funding deadline must be in the future")
    if not amounts:
        raise InvalidParameters("At least one milestone is required")
    if not (len(descriptions) == len(amounts) == len(deadlines)):
        raise InvalidParameters("Milestone descriptions, amounts and deadlines differ in length")
    if len(amounts) > settings.MAX_MILESTONES_PER_CAMPAIGN:
        raise InvalidParameters(
            f"At most {settings.MAX_MILESTONES_PER_CAMPAIGN} milestones per campaign"
        )
    for index, (amount, deadline) in enumerate(zip(amounts, deadlines)):
        if not _is_amount(amount):
            raise InvalidParameters(f"Milestone {index} amount must be between 1 and {MAX_AMOUNT}")
        if deadline <= now:
            raise InvalidParameters(f"Milestone {index} deadline must be in the future")
        if deadline > funding_deadline:
            raise InvalidParameters(f"Milestone {index} deadline is after the funding deadline")
    if sum(amounts) != target_amount:
        raise InvalidParameters("Milestone amounts must add up to the target amount")


async def create_campaign(
    db: AsyncSession,
    *,
    creator: str,
    title: str,
    description: str,
    target_amount: int,
    funding_deadline: datetime,
    milestone_descriptions: Sequence[str],
    milestone_amounts: Sequence[int],
    milestone_deadlines: Sequence[datetime],
    clock: Clock = system_clock,
) -> Campaign:
    """Create an Active campaign with all of its milestones Pending.

    Milestone specs are given as parallel sequences.  Raises
    ``InvalidParameters`` when any creation rule is violated.
    """
    async with campaign_transaction(db, "create_campaign", caller=creator) as tx:
        now = clock.now()
        funding_deadline = as_utc(funding_deadline)
        deadlines = [as_utc(d) for d in milestone_deadlines]
        _validate_creation(
            creator,
            title,
            target_amount,
            funding_deadline,
            milestone_descriptions,
            milestone_amounts,
            deadlines,
            now,
        )

        last_id = (await db.execute(select(func.max(Campaign.id)))).scalar_one_or_none()
        campaign = Campaign(
            id=0 if last_id is None else last_id + 1,
            creator=creator,
            title=title,
            description=description,
            target_amount=target_amount,
            raised_amount=0,
            released_amount=0,
            refunded_amount=0,
            funding_deadline=funding_deadline,
            status=CampaignStatus.ACTIVE,
            milestones=[
                Milestone(
                    index=index,
                    description=desc,
                    amount=amount,
                    deadline=deadline,
                    status=MilestoneStatus.PENDING,
                    votes_for=0,
                    votes_against=0,
                )
                for index, (desc, amount, deadline) in enumerate(
                    zip(milestone_descriptions, milestone_amounts, deadlines)
                )
            ],
            contributions=[],
        )
        db.add(campaign)
        await db.flush()

        await tx.emit(
            EventType.CAMPAIGN_CREATED,
            campaign.id,
            {
                "campaign_id": campaign.id,
                "creator": creator,
                "title": title,
                "target_amount": target_amount,
            },
        )

    campaigns_created_total.inc()
    logger.info(
        "Campaign %d created with %d milestones, target %d",
        campaign.id,
        len(campaign.milestones),
        target_amount,
        extra={"campaign_id": campaign.id, "caller": creator},
    )
    return campaign


async def load_campaign(
    db: AsyncSession, campaign_id: int, *, for_update: bool = False
) -> Campaign:
    """Load a campaign with its milestones and contributions, fresh from the database."""
    if not 0 <= campaign_id <= MAX_ID:
        raise CampaignNotFound(f"Campaign {campaign_id} not found")
    query = (
        select(Campaign)
        .where(Campaign.id == campaign_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    campaign = (await db.execute(query)).scalar_one_or_none()
    if campaign is None:
        raise CampaignNotFound(f"Campaign {campaign_id} not found")
    return campaign


def milestone_at(campaign: Campaign, index: int) -> Milestone:
    if index < 0 or index >= len(campaign.milestones):
        raise InvalidMilestone(f"Campaign {campaign.id} has no milestone {index}")
    return campaign.milestones[index]


async def get_campaign(db: AsyncSession, campaign_id: int) -> Campaign:
    return await load_campaign(db, campaign_id)


async def get_milestone(db: AsyncSession, campaign_id: int, index: int) -> Milestone:
    campaign = await load_campaign(db, campaign_id)
    return milestone_at(campaign, index)


async def get_contribution(db: AsyncSession, campaign_id: int, contributor: str) -> int:
    """Cumulative amount currently recorded for a contributor (0 if none)."""
    campaign = await load_campaign(db, campaign_id)
    entry = campaign.contribution_of(contributor)
    return entry.amount if entry else 0


async def list_contributors(db: AsyncSession, campaign_id: int) -> list[Contribution]:
    """Contributors in first-contribution order, including refunded ones."""
    campaign = await load_campaign(db, campaign_id)
    return list(campaign.contributions)


async def list_campaigns(
    db: AsyncSession,
    *,
    status: CampaignStatus | None = None,
    creator: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[Campaign]:
    query = select(Campaign).execution_options(populate_existing=True)
    if status:
        query = query.where(Campaign.status == status)
    if creator:
        query = query.where(Campaign.creator == creator)
    query = query.order_by(Campaign.id).offset(offset).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_campaign_events(
    db: AsyncSession,
    campaign_id: int,
    event_type: EventType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[Event]:
    """Persisted notification history of one campaign, oldest first."""
    await load_campaign(db, campaign_id)
    return await get_events(
        db, campaign_id=campaign_id, event_type=event_type, offset=offset, limit=limit
    )
