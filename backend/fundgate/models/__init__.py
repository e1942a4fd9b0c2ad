from fundgate.models.base import MAX_AMOUNT, MAX_ID, Base
from fundgate.models.campaign import Campaign, CampaignStatus
from fundgate.models.contribution import Contribution
from fundgate.models.event import Event, EventType
from fundgate.models.milestone import Milestone, MilestoneStatus, MilestoneVote

__all__ = [
    "MAX_AMOUNT",
    "MAX_ID",
    "Base",
    "Campaign",
    "CampaignStatus",
    "Contribution",
    "Event",
    "EventType",
    "Milestone",
    "MilestoneStatus",
    "MilestoneVote",
]
