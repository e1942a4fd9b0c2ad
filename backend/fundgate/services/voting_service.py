"""Voting subsystem: per-milestone support/opposition tallies.

One vote per contributor per milestone, unweighted: a contributor of 1 and a
contributor of 10,000 each move a tally by exactly one.  Tallies are
recorded only; no status changes follow from them.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.core.metrics import votes_total
from fundgate.models.milestone import Milestone, MilestoneVote
from fundgate.services.campaign_store import load_campaign, milestone_at
from fundgate.services.errors import AlreadyVoted, Unauthorized
from fundgate.services.transaction import campaign_transaction

logger = logging.getLogger(__name__)


async def has_voted(db: AsyncSession, milestone: Milestone, voter: str) -> bool:
    result = await db.execute(
        select(MilestoneVote.id).where(
            MilestoneVote.milestone_id == milestone.id,
            MilestoneVote.voter == voter,
        )
    )
    return result.first() is not None


async def list_voters(db: AsyncSession, milestone: Milestone) -> list[MilestoneVote]:
    result = await db.execute(
        select(MilestoneVote)
        .where(MilestoneVote.milestone_id == milestone.id)
        .order_by(MilestoneVote.id)
    )
    return list(result.scalars().all())


async def vote_milestone(
    db: AsyncSession,
    campaign_id: int,
    milestone_index: int,
    voter: str,
    support: bool,
) -> Milestone:
    async with campaign_transaction(db, "vote_milestone", campaign_id, caller=voter):
        campaign = await load_campaign(db, campaign_id, for_update=True)
        entry = campaign.contribution_of(voter)
        if entry is None or entry.amount <= 0:
            raise Unauthorized("Only current contributors can vote")
        milestone = milestone_at(campaign, milestone_index)
        if await has_voted(db, milestone, voter):
            raise AlreadyVoted(f"Already voted on milestone {milestone_index}")

        db.add(MilestoneVote(milestone_id=milestone.id, voter=voter, support=bool(support)))
        if support:
            milestone.votes_for += 1
        else:
            milestone.votes_against += 1
        await db.flush()

    votes_total.labels(support="for" if support else "against").inc()
    logger.info(
        "Vote %s milestone %d of campaign %d (%d for, %d against)",
        "for" if support else "against",
        milestone_index,
        campaign_id,
        milestone.votes_for,
        milestone.votes_against,
        extra={"campaign_id": campaign_id, "milestone_index": milestone_index, "caller": voter},
    )
    return milestone
