"""Tests for the milestone release state machine.

Covers the release preconditions one by one, strict index ordering, the
transition to Completed, and rollback when the settlement transfer fails.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from fundgate.models.campaign import CampaignStatus
from fundgate.models.event import EventType
from fundgate.models.milestone import MilestoneStatus
from fundgate.services.campaign_store import get_campaign, get_campaign_events
from fundgate.services.errors import (
    CampaignNotActive,
    CampaignNotFound,
    InvalidMilestone,
    MilestoneDeadlinePassed,
    MilestoneNotPending,
    NotFullyFunded,
    PriorMilestoneIncomplete,
    TransferFailed,
    Unauthorized,
)
from fundgate.services.refund_service import cancel_campaign
from fundgate.services.release_service import release_milestone
from fundgate.services.voting_service import vote_milestone
from tests.conftest import CREATOR, create_campaign, fund, snapshot


@pytest.fixture
async def funded_id(db, clock):
    """Fully funded campaign: 3 x 100 with deadlines at day 10, 20 and 30."""
    now = clock.now()
    campaign = await create_campaign(
        db,
        clock,
        amounts=(100, 100, 100),
        deadlines=[now + timedelta(days=d) for d in (10, 20, 30)],
    )
    cid = campaign.id
    await fund(db, clock, cid, {"alice": 200, "bob": 100})
    return cid


async def _release(db, ledger, clock, cid, index, caller=CREATOR):
    return await release_milestone(db, cid, index, caller, transfer=ledger, clock=clock)


class TestRelease:
    async def test_pays_creator_and_completes_milestone(self, db, clock, ledger, funded_id):
        milestone = await _release(db, ledger, clock, funded_id, 0)

        assert milestone.status == MilestoneStatus.COMPLETED
        assert milestone.completed_at == clock.now()
        assert ledger.total_paid_to(CREATOR) == 100
        campaign = await get_campaign(db, funded_id)
        assert campaign.status == CampaignStatus.ACTIVE
        assert campaign.released_amount == 100

    async def test_sequential_release_completes_campaign(self, db, clock, ledger, funded_id):
        for index in range(3):
            await _release(db, ledger, clock, funded_id, index)

        campaign = await get_campaign(db, funded_id)
        assert campaign.status == CampaignStatus.COMPLETED
        assert campaign.released_amount == campaign.target_amount
        assert ledger.total_paid_to(CREATOR) == 300
        assert [p.amount for p in ledger.payouts] == [100, 100, 100]

    async def test_emits_completed_and_released(self, db, clock, ledger, funded_id):
        await _release(db, ledger, clock, funded_id, 0)

        events = await get_campaign_events(db, funded_id)
        release_events = [e for e in events if e.type in (
            EventType.MILESTONE_COMPLETED, EventType.FUNDS_RELEASED
        )]
        assert [e.type for e in release_events] == [
            EventType.MILESTONE_COMPLETED,
            EventType.FUNDS_RELEASED,
        ]
        assert release_events[1].payload == {
            "campaign_id": funded_id,
            "milestone_index": 0,
            "amount": 100,
            "recipient": CREATOR,
        }

    async def test_votes_do_not_gate_release(self, db, clock, ledger, funded_id):
        await vote_milestone(db, funded_id, 0, "alice", False)
        await vote_milestone(db, funded_id, 0, "bob", False)

        milestone = await _release(db, ledger, clock, funded_id, 0)
        assert milestone.status == MilestoneStatus.COMPLETED
        assert milestone.votes_against == 2

    async def test_release_at_milestone_deadline(self, db, clock, ledger, funded_id):
        clock.advance(days=10)
        milestone = await _release(db, ledger, clock, funded_id, 0)
        assert milestone.status == MilestoneStatus.COMPLETED


class TestReleaseRejections:
    async def test_unknown_campaign(self, db, clock, ledger, funded_id):
        with pytest.raises(CampaignNotFound):
            await _release(db, ledger, clock, funded_id + 1, 0)

    async def test_only_creator(self, db, clock, ledger, funded_id):
        with pytest.raises(Unauthorized):
            await _release(db, ledger, clock, funded_id, 0, caller="alice")

    async def test_invalid_index(self, db, clock, ledger, funded_id):
        with pytest.raises(InvalidMilestone):
            await _release(db, ledger, clock, funded_id, 3)

    async def test_not_fully_funded(self, db, clock, ledger):
        campaign = await create_campaign(db, clock, amounts=(50, 50))
        cid = campaign.id
        await fund(db, clock, cid, {"alice": 99})

        with pytest.raises(NotFullyFunded):
            await _release(db, ledger, clock, cid, 0)
        assert ledger.attempts == 0

    async def test_already_released(self, db, clock, ledger, funded_id):
        await _release(db, ledger, clock, funded_id, 0)
        with pytest.raises(MilestoneNotPending):
            await _release(db, ledger, clock, funded_id, 0)
        assert ledger.total_paid_to(CREATOR) == 100

    async def test_milestone_deadline_passed(self, db, clock, ledger, funded_id):
        clock.advance(days=10, seconds=1)
        with pytest.raises(MilestoneDeadlinePassed):
            await _release(db, ledger, clock, funded_id, 0)

    async def test_prior_milestone_incomplete(self, db, clock, ledger, funded_id):
        with pytest.raises(PriorMilestoneIncomplete):
            await _release(db, ledger, clock, funded_id, 1)

    async def test_cancelled_campaign(self, db, clock, ledger, funded_id):
        await cancel_campaign(db, funded_id, CREATOR)
        with pytest.raises(CampaignNotActive):
            await _release(db, ledger, clock, funded_id, 0)

    async def test_rejections_leave_state_unchanged(self, db, clock, ledger, funded_id):
        before = await snapshot(db, funded_id)
        for index, caller, exc in [
            (0, "mallory", Unauthorized),
            (7, CREATOR, InvalidMilestone),
            (2, CREATOR, PriorMilestoneIncomplete),
        ]:
            with pytest.raises(exc):
                await _release(db, ledger, clock, funded_id, index, caller=caller)
        assert await snapshot(db, funded_id) == before
        assert ledger.payouts == []


class TestReleaseTransferFailure:
    async def test_failed_transfer_rolls_back(self, db, clock, ledger, funded_id):
        before = await snapshot(db, funded_id)
        ledger.fail = True

        with pytest.raises(TransferFailed):
            await _release(db, ledger, clock, funded_id, 0)

        assert await snapshot(db, funded_id) == before
        assert ledger.payouts == []
        events = await get_campaign_events(db, funded_id, event_type=EventType.FUNDS_RELEASED)
        assert events == []

    async def test_release_succeeds_once_settlement_recovers(self, db, clock, ledger, funded_id):
        ledger.fail = True
        with pytest.raises(TransferFailed):
            await _release(db, ledger, clock, funded_id, 0)

        ledger.fail = False
        milestone = await _release(db, ledger, clock, funded_id, 0)
        assert milestone.status == MilestoneStatus.COMPLETED
        assert ledger.attempts == 2
        assert ledger.total_paid_to(CREATOR) == 100

    async def test_failed_final_release_keeps_campaign_active(self, db, clock, ledger, funded_id):
        await _release(db, ledger, clock, funded_id, 0)
        await _release(db, ledger, clock, funded_id, 1)
        ledger.fail = True

        with pytest.raises(TransferFailed):
            await _release(db, ledger, clock, funded_id, 2)

        campaign = await get_campaign(db, funded_id)
        assert campaign.status == CampaignStatus.ACTIVE
        assert campaign.milestones[2].status == MilestoneStatus.PENDING
        assert campaign.released_amount == 200
