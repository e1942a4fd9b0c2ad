"""Cancellation and refund engine.

A campaign is refundable when its creator cancelled it, or when its funding
deadline passed without reaching the target.  Each contributor claims their
own refund, once; the claim zeroes their recorded contribution only after
the settlement transfer back to them has succeeded.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.core.clock import Clock, system_clock
from fundgate.core.metrics import (
    campaigns_cancelled_total,
    refunded_amount_total,
    refunds_total,
    transfer_failures_total,
)
from fundgate.core.transfer import TransferPort
from fundgate.models.campaign import Campaign, CampaignStatus
from fundgate.models.event import EventType
from fundgate.services.campaign_store import load_campaign
from fundgate.services.errors import (
    CampaignNotActive,
    NoContribution,
    RefundNotAvailable,
    TransferFailed,
    Unauthorized,
)
from fundgate.services.transaction import campaign_transaction

logger = logging.getLogger(__name__)


def is_refundable(campaign: Campaign, clock: Clock) -> bool:
    if campaign.status == CampaignStatus.CANCELLED:
        return True
    return (
        clock.now() > campaign.funding_deadline
        and campaign.raised_amount < campaign.target_amount
    )


async def cancel_campaign(db: AsyncSession, campaign_id: int, caller: str) -> Campaign:
    """Move an Active campaign to Cancelled. No funds move here."""
    async with campaign_transaction(db, "cancel_campaign", campaign_id, caller=caller) as tx:
        campaign = await load_campaign(db, campaign_id, for_update=True)
        if caller != campaign.creator:
            raise Unauthorized("Only the campaign creator can cancel")
        if not campaign.is_active:
            raise CampaignNotActive(f"Campaign {campaign_id} is {campaign.status.value}")

        campaign.status = CampaignStatus.CANCELLED
        await db.flush()
        await tx.emit(
            EventType.CAMPAIGN_CANCELLED,
            campaign_id,
            {"campaign_id": campaign_id, "creator": campaign.creator},
        )

    campaigns_cancelled_total.inc()
    logger.info(
        "Campaign %d cancelled with %d raised",
        campaign_id,
        campaign.raised_amount,
        extra={"campaign_id": campaign_id, "caller": caller},
    )
    return campaign


async def claim_refund(
    db: AsyncSession,
    campaign_id: int,
    caller: str,
    *,
    transfer: TransferPort,
    clock: Clock = system_clock,
) -> int:
    """Pay ``caller`` back their full recorded contribution and return the amount."""
    async with campaign_transaction(db, "claim_refund", campaign_id, caller=caller) as tx:
        campaign = await load_campaign(db, campaign_id, for_update=True)
        entry = campaign.contribution_of(caller)
        if entry is None or entry.amount <= 0:
            raise NoContribution("Nothing to refund")
        if not is_refundable(campaign, clock):
            raise RefundNotAvailable(f"Campaign {campaign_id} is not refundable")

        amount = entry.amount
        try:
            await transfer.transfer(caller, amount)
        except TransferFailed:
            transfer_failures_total.labels(operation="claim_refund").inc()
            logger.warning(
                "Refund transfer of %d failed, claim rolled back",
                amount,
                extra={"campaign_id": campaign_id, "caller": caller},
            )
            raise

        entry.amount = 0
        campaign.raised_amount -= amount
        campaign.refunded_amount += amount
        await db.flush()
        await tx.emit(
            EventType.REFUND_ISSUED,
            campaign_id,
            {"campaign_id": campaign_id, "contributor": caller, "amount": amount},
        )

    refunds_total.inc()
    refunded_amount_total.inc(amount)
    logger.info(
        "Refunded %d from campaign %d",
        amount,
        campaign_id,
        extra={"campaign_id": campaign_id, "caller": caller},
    )
    return amount
