from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundgate.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fundgate.models.campaign import Campaign


class Contribution(Base, TimestampMixin):
    """A contributor's cumulative balance in one campaign.

    The row is created on the first contribution and never deleted; a refund
    sets ``amount`` back to zero.  ``created_at`` is the first-contribution
    time and ``id`` order is enumeration order.
    """

    __tablename__ = "contributions"
    __table_args__ = (
        UniqueConstraint("campaign_id", "contributor", name="uq_contribution_contributor"),
        CheckConstraint("amount >= 0", name="ck_contribution_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )
    contributor: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    campaign: Mapped[Campaign] = relationship(back_populates="contributions", lazy="raise")
