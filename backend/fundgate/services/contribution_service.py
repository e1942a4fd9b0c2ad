"""Contribution engine: accepts funds into an Active campaign."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.core.clock import Clock, system_clock
from fundgate.core.metrics import contributed_amount_total, contributions_total
from fundgate.models.contribution import Contribution
from fundgate.models.event import EventType
from fundgate.services.campaign_store import load_campaign
from fundgate.services.errors import CampaignNotActive, DeadlinePassed, ExceedsTarget, ZeroAmount
from fundgate.services.transaction import campaign_transaction

logger = logging.getLogger(__name__)


async def contribute(
    db: AsyncSession,
    campaign_id: int,
    contributor: str,
    amount: int,
    *,
    clock: Clock = system_clock,
) -> Contribution:
    """Record ``amount`` from ``contributor`` and return their ledger entry.

    A contribution that would take the campaign past its target is refused
    outright; nothing is partially accepted.
    """
    async with campaign_transaction(db, "contribute", campaign_id, caller=contributor) as tx:
        campaign = await load_campaign(db, campaign_id, for_update=True)
        if not campaign.is_active:
            raise CampaignNotActive(f"Campaign {campaign_id} is {campaign.status.value}")
        if amount <= 0:
            raise ZeroAmount("Contribution amount must be positive")
        if clock.now() > campaign.funding_deadline:
            raise DeadlinePassed(f"Funding deadline of campaign {campaign_id} has passed")
        if campaign.raised_amount + amount > campaign.target_amount:
            raise ExceedsTarget(
                f"Contribution of {amount} exceeds the remaining "
                f"{campaign.target_amount - campaign.raised_amount}"
            )

        entry = campaign.contribution_of(contributor)
        if entry is None:
            entry = Contribution(contributor=contributor, amount=0)
            campaign.contributions.append(entry)
        entry.amount += amount
        campaign.raised_amount += amount
        await db.flush()

        await tx.emit(
            EventType.CONTRIBUTION_MADE,
            campaign_id,
            {
                "campaign_id": campaign_id,
                "contributor": contributor,
                "amount": amount,
                "raised_amount": campaign.raised_amount,
            },
        )

    contributions_total.inc()
    contributed_amount_total.inc(amount)
    logger.info(
        "Contribution of %d to campaign %d (raised %d/%d)",
        amount,
        campaign_id,
        campaign.raised_amount,
        campaign.target_amount,
        extra={"campaign_id": campaign_id, "caller": contributor},
    )
    return entry
