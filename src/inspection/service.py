from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal
from src.base.models import utcnow
from src.inspection.models import (
    DEFAULT_SECTIONS,
    InspectionFault,
    InspectionJob,
    InspectionMedia,
    InspectionStep,
    JobStatus,
    MediaType,
    ReviewStatus,
)
from src.realtime.feed import ChangeFeed, ChangeKind, row_snapshot
from src.storage.interface import MEDIA_BUCKET, MediaStorage
from src.user.models import Inspector, InspectorStatus

logger = logging.getLogger(__name__)


class InspectionError(Exception):
    """Base class for refused inspection operations."""


class NotFound(InspectionError):
    pass


class ValidationFailed(InspectionError):
    pass


class InvalidState(InspectionError):
    pass


class IncompleteInspection(InvalidState):
    def __init__(self, remaining: int) -> None:
        super().__init__(
            f"Please complete all sections before submitting. "
            f"{remaining} sections remaining."
        )
        self.remaining = remaining


_STEP_FIELDS = frozenset({"is_complete", "rating", "notes", "items"})


def _require_text(fields: dict[str, Any], *names: str) -> None:
    missing = [n for n in names if not str(fields.get(n) or "").strip()]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")


def _mark_started(job: InspectionJob) -> None:
    if job.status is JobStatus.NOT_STARTED:
        job.status = JobStatus.IN_PROGRESS


async def get_visible_job(
    session: AsyncSession, job_id: UUID, principal: Principal
) -> InspectionJob:
    """Admins see every job of their business, staff only their own."""
    stmt = select(InspectionJob).where(
        InspectionJob.id == job_id,
        InspectionJob.business_id == principal.business_id,
    )
    if not principal.is_admin:
        stmt = stmt.where(InspectionJob.assigned_to == principal.inspector_id)
    job = (await session.execute(stmt)).scalar_one_or_none()
    if job is None:
        raise NotFound("Job not found")
    return job


async def list_jobs(session: AsyncSession, principal: Principal) -> list[InspectionJob]:
    stmt = select(InspectionJob).where(
        InspectionJob.business_id == principal.business_id
    )
    if not principal.is_admin:
        stmt = stmt.where(InspectionJob.assigned_to == principal.inspector_id)
    stmt = stmt.order_by(InspectionJob.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def list_steps(session: AsyncSession, job_id: UUID) -> list[InspectionStep]:
    stmt = (
        select(InspectionStep)
        .where(InspectionStep.job_id == job_id)
        .order_by(InspectionStep.section_order)
    )
    return list((await session.execute(stmt)).scalars().all())


async def list_faults(session: AsyncSession, job_id: UUID) -> list[InspectionFault]:
    stmt = (
        select(InspectionFault)
        .where(InspectionFault.job_id == job_id)
        .order_by(InspectionFault.created_at)
    )
    return list((await session.execute(stmt)).scalars().all())


async def create_job(
    session: AsyncSession,
    principal: Principal,
    fields: dict[str, Any],
    feed: ChangeFeed | None = None,
) -> InspectionJob:
    """Create a job and its default checklist. The caller commits."""
    _require_text(fields, "reg", "make", "model")

    assigned_to = fields.get("assigned_to")
    if assigned_to is None:
        raise ValidationFailed("Missing required fields: assigned_to")

    assignee = await session.get(Inspector, assigned_to)
    if assignee is None or assignee.business_id != principal.business_id:
        raise ValidationFailed("Assigned inspector not found")
    if assignee.status is InspectorStatus.INACTIVE:
        raise ValidationFailed("Assigned inspector is inactive")

    values = dict(fields)
    values["reg"] = values["reg"].strip().upper()
    values["make"] = values["make"].strip()
    values["model"] = values["model"].strip()
    for optional in ("vin", "color", "notes", "seller_address"):
        if isinstance(values.get(optional), str):
            values[optional] = values[optional].strip() or None

    job = InspectionJob(business_id=principal.business_id, **values)
    session.add(job)
    await session.flush()

    for order, section in enumerate(DEFAULT_SECTIONS, start=1):
        session.add(
            InspectionStep(
                job_id=job.id,
                business_id=job.business_id,
                section=section,
                section_order=order,
            )
        )
    await session.flush()

    logger.info("Job %s created for %s, assigned to %s", job.id, job.reg, assignee.id)
    if feed is not None:
        feed.publish_row(ChangeKind.INSERT, job)
    return job


async def update_step(
    session: AsyncSession,
    step_id: UUID,
    principal: Principal,
    updates: dict[str, Any],
    feed: ChangeFeed | None = None,
) -> InspectionStep:
    unknown = set(updates) - _STEP_FIELDS
    if unknown:
        raise ValidationFailed(f"Unknown step fields: {', '.join(sorted(unknown))}")
    rating = updates.get("rating")
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationFailed("Rating must be between 1 and 5")

    step = await session.get(InspectionStep, step_id)
    if step is None:
        raise NotFound("Step not found")
    job = await get_visible_job(session, step.job_id, principal)

    old_job = row_snapshot(job)
    for key, value in updates.items():
        setattr(step, key, value)
    _mark_started(job)
    await session.flush()

    if feed is not None and job.status.value != old_job["status"]:
        feed.publish_row(ChangeKind.UPDATE, job, old=old_job)
    return step


async def report_fault(
    session: AsyncSession,
    job: InspectionJob,
    fields: dict[str, Any],
    feed: ChangeFeed | None = None,
) -> InspectionFault:
    _require_text(fields, "type", "description")

    fault = InspectionFault(job_id=job.id, business_id=job.business_id, **fields)
    session.add(fault)
    _mark_started(job)
    await session.flush()

    if feed is not None:
        feed.publish_row(ChangeKind.INSERT, fault)
    return fault


async def toggle_fault_flag(
    session: AsyncSession,
    fault_id: UUID,
    principal: Principal,
    feed: ChangeFeed | None = None,
) -> InspectionFault:
    fault = await session.get(InspectionFault, fault_id)
    if fault is None or fault.business_id != principal.business_id:
        raise NotFound("Fault not found")

    old = row_snapshot(fault)
    fault.flagged_for_repair = not fault.flagged_for_repair
    await session.flush()

    if feed is not None:
        feed.publish_row(ChangeKind.UPDATE, fault, old=old)
    return fault


async def upload_media(
    session: AsyncSession,
    storage: MediaStorage,
    job: InspectionJob,
    *,
    path: str,
    content: bytes,
    section: str,
    step_id: UUID | None = None,
    caption: str | None = None,
    media_type: MediaType = MediaType.PHOTO,
    feed: ChangeFeed | None = None,
) -> InspectionMedia:
    """Store the bytes in the media bucket and record them against the job."""
    if not path.startswith(f"{job.id}/"):
        raise ValidationFailed("Media path must start with the job id")
    if not content:
        raise ValidationFailed("Media content is empty")

    step: InspectionStep | None = None
    if step_id is not None:
        step = await session.get(InspectionStep, step_id)
        if step is None or step.job_id != job.id:
            raise NotFound("Step not found")

    stored_path = await storage.upload(MEDIA_BUCKET, path, content)

    media = InspectionMedia(
        job_id=job.id,
        business_id=job.business_id,
        step_id=step_id,
        section=section,
        media_type=media_type,
        url=stored_path,
        caption=caption,
        file_size=len(content),
    )
    session.add(media)
    if step is not None:
        step.photo_url = stored_path
    _mark_started(job)
    await session.flush()

    if feed is not None:
        feed.publish_row(ChangeKind.INSERT, media)
    return media


async def submit_job(
    session: AsyncSession,
    job: InspectionJob,
    feed: ChangeFeed | None = None,
) -> InspectionJob:
    """Hand the inspection over for review. Re-submitting is a no-op."""
    if job.status is JobStatus.SUBMITTED:
        return job

    steps = await list_steps(session, job.id)
    remaining = sum(1 for step in steps if not step.is_complete)
    if remaining:
        raise IncompleteInspection(remaining)

    old = row_snapshot(job)
    job.status = JobStatus.SUBMITTED
    job.review_status = ReviewStatus.PENDING
    await session.flush()

    logger.info("Job %s submitted for review", job.id)
    if feed is not None:
        feed.publish_row(ChangeKind.UPDATE, job, old=old)
    return job


async def review_job(
    session: AsyncSession,
    job: InspectionJob,
    principal: Principal,
    decision: ReviewStatus,
    feed: ChangeFeed | None = None,
) -> InspectionJob:
    if decision is ReviewStatus.PENDING:
        raise ValidationFailed("Review decision must be approved or rejected")
    if job.status is not JobStatus.SUBMITTED:
        raise InvalidState("Only submitted inspections can be reviewed")

    old = row_snapshot(job)
    job.review_status = decision
    job.reviewed_at = utcnow()
    job.reviewed_by = principal.inspector_id
    await session.flush()

    if feed is not None:
        feed.publish_row(ChangeKind.UPDATE, job, old=old)
    return job
