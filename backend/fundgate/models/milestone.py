from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundgate.models.base import Base, TimestampMixin, UTCDateTime, utcnow

if TYPE_CHECKING:
    from fundgate.models.campaign import Campaign


class MilestoneStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    # Reserved for a dispute path; nothing in the release flow sets it
    DISPUTED = "Disputed"


class Milestone(Base, TimestampMixin):
    """A tranche of a campaign's target, released strictly in index order."""

    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("campaign_id", "index", name="uq_milestone_index"),
        CheckConstraint("amount > 0", name="ck_milestone_positive_amount"),
        CheckConstraint("votes_for >= 0 AND votes_against >= 0", name="ck_milestone_votes"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )
    index: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[MilestoneStatus] = mapped_column(
        Enum(MilestoneStatus), default=MilestoneStatus.PENDING, nullable=False
    )
    votes_for: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    votes_against: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    campaign: Mapped[Campaign] = relationship(back_populates="milestones", lazy="raise")


class MilestoneVote(Base):
    """One contributor's vote on one milestone; a voter appears at most once."""

    __tablename__ = "milestone_votes"
    __table_args__ = (UniqueConstraint("milestone_id", "voter", name="uq_milestone_voter"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    milestone_id: Mapped[int] = mapped_column(
        ForeignKey("milestones.id"), nullable=False, index=True
    )
    voter: Mapped[str] = mapped_column(String(255), nullable=False)
    support: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
