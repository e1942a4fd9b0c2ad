from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, CheckConstraint, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundgate.models.base import Base, TimestampMixin, UTCDateTime

if TYPE_CHECKING:
    from fundgate.models.contribution import Contribution
    from fundgate.models.milestone import Milestone


class CampaignStatus(str, enum.Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Campaign(Base, TimestampMixin):
    """A funding drive whose capital is released to its creator in milestones."""

    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("target_amount > 0", name="ck_campaign_positive_target"),
        CheckConstraint(
            "raised_amount >= 0 AND raised_amount <= target_amount",
            name="ck_campaign_raised_within_target",
        ),
    )

    # Dense, 0-based ids assigned by the campaign store, never reused
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    creator: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    raised_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    released_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    refunded_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    funding_deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[CampaignStatus] = mapped_column(
        Enum(CampaignStatus), default=CampaignStatus.ACTIVE, nullable=False, index=True
    )

    milestones: Mapped[list[Milestone]] = relationship(
        back_populates="campaign",
        order_by="Milestone.index",
        lazy="selectin",
    )
    # Ordered by first contribution
    contributions: Mapped[list[Contribution]] = relationship(
        back_populates="campaign",
        order_by="Contribution.id",
        lazy="selectin",
    )

    @property
    def is_active(self) -> bool:
        return self.status == CampaignStatus.ACTIVE

    @property
    def is_fully_funded(self) -> bool:
        return self.raised_amount == self.target_amount

    def contribution_of(self, contributor: str) -> Contribution | None:
        for entry in self.contributions:
            if entry.contributor == contributor:
                return entry
        return None
