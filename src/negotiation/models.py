from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import Enum, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.base.models import BaseDbModel


class Party(enum.Enum):
    ADMIN = "admin"
    INSPECTOR = "inspector"


class OfferType(enum.Enum):
    INITIAL = "initial"
    COUNTER_ADMIN = "counter_admin"
    COUNTER_USER = "counter_user"


class OfferStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    SUPERSEDED = "superseded"


class NegotiationStatus(enum.Enum):
    NOT_STARTED = "not_started"
    PENDING_ADMIN = "pending_admin"
    PENDING_USER = "pending_user"
    AGREED = "agreed"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self in (NegotiationStatus.AGREED, NegotiationStatus.DECLINED)


class NegotiationOffer(BaseDbModel):
    """One price proposal. Append-only: only `status` changes after insert."""

    __tablename__ = "negotiation_offers"
    __table_args__ = (
        UniqueConstraint("job_id", "sequence", name="uq_offer_job_sequence"),
    )

    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("inspection_jobs.id"), nullable=False
    )
    business_id: Mapped[UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    # Position in the job's history, 1-based.
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    offered_by: Mapped[Party] = mapped_column(Enum(Party), nullable=False)
    offered_by_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )
    offer_type: Mapped[OfferType] = mapped_column(Enum(OfferType), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[OfferStatus] = mapped_column(
        Enum(OfferStatus), nullable=False, default=OfferStatus.PENDING
    )
