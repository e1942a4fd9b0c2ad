"""Milestone release engine.

Releases pay a milestone's amount to the campaign creator.  The rules, each
with its own error:

* only the creator may release;
* the campaign must be Active and fully funded;
* the milestone must exist, be Pending and still be within its deadline;
* milestone ``i`` needs milestone ``i - 1`` Completed first, so tranches are
  paid strictly in order.

The settlement transfer runs first and the milestone is only marked
Completed once it has succeeded; a failed transfer rolls the whole operation
back.  Vote tallies are not consulted here.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.core.clock import Clock, system_clock
from fundgate.core.metrics import (
    milestone_releases_total,
    released_amount_total,
    transfer_failures_total,
)
from fundgate.core.transfer import TransferPort
from fundgate.models.campaign import Campaign, CampaignStatus
from fundgate.models.event import EventType
from fundgate.models.milestone import Milestone, MilestoneStatus
from fundgate.services.campaign_store import load_campaign, milestone_at
from fundgate.services.errors import (
    CampaignNotActive,
    MilestoneDeadlinePassed,
    MilestoneNotPending,
    NotFullyFunded,
    PriorMilestoneIncomplete,
    TransferFailed,
    Unauthorized,
)
from fundgate.services.transaction import campaign_transaction

logger = logging.getLogger(__name__)


def _check_releasable(campaign: Campaign, index: int, caller: str, clock: Clock) -> Milestone:
    if caller != campaign.creator:
        raise Unauthorized("Only the campaign creator can release milestones")
    if not campaign.is_active:
        raise CampaignNotActive(f"Campaign {campaign.id} is {campaign.status.value}")
    milestone = milestone_at(campaign, index)
    if not campaign.is_fully_funded:
        raise NotFullyFunded(
            f"Campaign {campaign.id} raised {campaign.raised_amount} of {campaign.target_amount}"
        )
    if milestone.status != MilestoneStatus.PENDING:
        raise MilestoneNotPending(f"Milestone {index} is {milestone.status.value}")
    if clock.now() > milestone.deadline:
        raise MilestoneDeadlinePassed(f"Milestone {index} deadline has passed")
    if index > 0 and campaign.milestones[index - 1].status != MilestoneStatus.COMPLETED:
        raise PriorMilestoneIncomplete(f"Milestone {index - 1} must be completed first")
    return milestone


async def release_milestone(
    db: AsyncSession,
    campaign_id: int,
    milestone_index: int,
    caller: str,
    *,
    transfer: TransferPort,
    clock: Clock = system_clock,
) -> Milestone:
    async with campaign_transaction(db, "release_milestone", campaign_id, caller=caller) as tx:
        campaign = await load_campaign(db, campaign_id, for_update=True)
        milestone = _check_releasable(campaign, milestone_index, caller, clock)

        try:
            await transfer.transfer(campaign.creator, milestone.amount)
        except TransferFailed:
            transfer_failures_total.labels(operation="release_milestone").inc()
            logger.warning(
                "Transfer of milestone %d failed, release rolled back",
                milestone_index,
                extra={"campaign_id": campaign_id, "milestone_index": milestone_index},
            )
            raise

        milestone.status = MilestoneStatus.COMPLETED
        milestone.completed_at = clock.now()
        campaign.released_amount += milestone.amount
        if all(m.status == MilestoneStatus.COMPLETED for m in campaign.milestones):
            campaign.status = CampaignStatus.COMPLETED
        await db.flush()

        await tx.emit(
            EventType.MILESTONE_COMPLETED,
            campaign_id,
            {"campaign_id": campaign_id, "milestone_index": milestone_index},
        )
        await tx.emit(
            EventType.FUNDS_RELEASED,
            campaign_id,
            {
                "campaign_id": campaign_id,
                "milestone_index": milestone_index,
                "amount": milestone.amount,
                "recipient": campaign.creator,
            },
        )

    milestone_releases_total.inc()
    released_amount_total.inc(milestone.amount)
    logger.info(
        "Released milestone %d of campaign %d (%d)",
        milestone_index,
        campaign_id,
        milestone.amount,
        extra={"campaign_id": campaign_id, "milestone_index": milestone_index, "caller": caller},
    )
    if campaign.status == CampaignStatus.COMPLETED:
        logger.info("Campaign %d completed", campaign_id, extra={"campaign_id": campaign_id})
    return milestone
