import enum
from datetime import datetime

from sqlalchemy import JSON, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fundgate.models.base import Base, UTCDateTime, utcnow


class EventType(str, enum.Enum):
    CAMPAIGN_CREATED = "CampaignCreated"
    CONTRIBUTION_MADE = "ContributionMade"
    MILESTONE_COMPLETED = "MilestoneCompleted"
    FUNDS_RELEASED = "FundsReleased"
    CAMPAIGN_CANCELLED = "CampaignCancelled"
    REFUND_ISSUED = "RefundIssued"


class Event(Base):
    """Append-only notification history, written in the same transaction as
    the state change it describes."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[EventType] = mapped_column(Enum(EventType), nullable=False, index=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )

    # Who triggered the event
    caller: Mapped[str | None] = mapped_column(String(255))

    # Fields carried by the notification
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
