from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel, UTCDateTime
from src.base.schemas import PydanticJSON
from src.negotiation.models import NegotiationStatus


class JobStatus(enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class ReviewStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Priority(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MediaType(enum.Enum):
    PHOTO = "photo"
    VIDEO = "video"


DEFAULT_SECTIONS: tuple[str, ...] = (
    "exterior",
    "interior",
    "engine",
    "tyres_and_brakes",
    "electrics",
    "road_test",
)


class ChecklistItem(BaseModel):
    """One line of a step checklist, stored inside the step row."""

    name: str
    is_checked: bool = False
    condition_rating: int | None = Field(default=None, ge=1, le=5)
    notes: str | None = None
    requires_photo: bool = False
    photo_url: str | None = None


class InspectionJob(BaseDbModel):
    __tablename__ = "inspection_jobs"

    business_id: Mapped[UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    assigned_to: Mapped[UUID] = mapped_column(
        ForeignKey("inspectors.id"), nullable=False
    )

    # ── Vehicle ──
    reg: Mapped[str] = mapped_column(String, nullable=False)
    make: Mapped[str] = mapped_column(String, nullable=False)
    model: Mapped[str] = mapped_column(String, nullable=False)
    vin: Mapped[str | None] = mapped_column(String, nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mileage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    color: Mapped[str | None] = mapped_column(String, nullable=True)
    fuel_type: Mapped[str | None] = mapped_column(String, nullable=True)
    transmission: Mapped[str | None] = mapped_column(String, nullable=True)
    purchase_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    seller_address: Mapped[str | None] = mapped_column(String, nullable=True)

    # ── Workflow ──
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority), nullable=False, default=Priority.MEDIUM
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    deadline: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus), nullable=False, default=JobStatus.NOT_STARTED
    )
    review_status: Mapped[ReviewStatus | None] = mapped_column(
        Enum(ReviewStatus), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("inspectors.id"), nullable=True
    )

    # ── Negotiation (mirrors the latest offer) ──
    negotiation_status: Mapped[NegotiationStatus] = mapped_column(
        Enum(NegotiationStatus),
        nullable=False,
        default=NegotiationStatus.NOT_STARTED,
    )
    final_agreed_price: Mapped[float | None] = mapped_column(Float, nullable=True)

    steps: Mapped[list[InspectionStep]] = relationship(
        back_populates="job", order_by="InspectionStep.section_order"
    )
    faults: Mapped[list[InspectionFault]] = relationship(back_populates="job")
    media: Mapped[list[InspectionMedia]] = relationship(back_populates="job")


class InspectionStep(BaseDbModel):
    __tablename__ = "inspection_steps"

    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("inspection_jobs.id"), nullable=False
    )
    business_id: Mapped[UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    section: Mapped[str] = mapped_column(String, nullable=False)
    section_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    items: Mapped[list[ChecklistItem] | None] = mapped_column(
        PydanticJSON(list[ChecklistItem]), nullable=True
    )

    job: Mapped[InspectionJob] = relationship(back_populates="steps")


class InspectionFault(BaseDbModel):
    __tablename__ = "inspection_faults"

    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("inspection_jobs.id"), nullable=False
    )
    business_id: Mapped[UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    media_url: Mapped[str | None] = mapped_column(String, nullable=True)
    flagged_for_repair: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    job: Mapped[InspectionJob] = relationship(back_populates="faults")


class InspectionMedia(BaseDbModel):
    __tablename__ = "inspection_media"

    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("inspection_jobs.id"), nullable=False
    )
    business_id: Mapped[UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    step_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inspection_steps.id"), nullable=True
    )
    section: Mapped[str] = mapped_column(String, nullable=False)
    media_type: Mapped[MediaType] = mapped_column(
        Enum(MediaType), nullable=False, default=MediaType.PHOTO
    )
    url: Mapped[str] = mapped_column(String, nullable=False)
    caption: Mapped[str | None] = mapped_column(String, nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    job: Mapped[InspectionJob] = relationship(back_populates="media")
