from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal, get_current_user
from src.inspection.models import (
    DEFAULT_SECTIONS,
    ChecklistItem,
    InspectionJob,
    JobStatus,
    ReviewStatus,
)
from src.inspection.service import (
    IncompleteInspection,
    InvalidState,
    NotFound,
    ValidationFailed,
    create_job,
    get_visible_job,
    list_jobs,
    list_steps,
    report_fault,
    review_job,
    submit_job,
    toggle_fault_flag,
    update_step,
    upload_media,
)
from src.realtime.feed import ChangeFeed, ChangeKind
from src.storage.interface import MEDIA_BUCKET
from src.storage.local import LocalMediaStorage
from src.user.staff import create_business_admin


async def _complete_all_steps(
    session: AsyncSession, job: InspectionJob, principal: Principal
) -> None:
    for step in await list_steps(session, job.id):
        await update_step(session, step.id, principal, {"is_complete": True})


class TestCreateJob:
    async def test_creates_default_steps(
        self, db_session: AsyncSession, job: InspectionJob
    ) -> None:
        steps = await list_steps(db_session, job.id)

        assert job.reg == "AB12 CDE"
        assert job.status is JobStatus.NOT_STARTED
        assert [s.section for s in steps] == list(DEFAULT_SECTIONS)
        assert [s.section_order for s in steps] == list(
            range(1, len(DEFAULT_SECTIONS) + 1)
        )

    async def test_requires_vehicle_fields(
        self, db_session: AsyncSession, admin: Principal, staff_member: Principal
    ) -> None:
        with pytest.raises(ValidationFailed, match="make"):
            await create_job(
                db_session,
                admin,
                {
                    "reg": "X1",
                    "make": " ",
                    "model": "Golf",
                    "assigned_to": staff_member.inspector_id,
                },
            )

    async def test_rejects_unknown_assignee(
        self, db_session: AsyncSession, admin: Principal
    ) -> None:
        with pytest.raises(ValidationFailed):
            await create_job(
                db_session,
                admin,
                {"reg": "X1", "make": "VW", "model": "Golf", "assigned_to": uuid4()},
            )

    async def test_publishes_insert(
        self, db_session: AsyncSession, admin: Principal, staff_member: Principal
    ) -> None:
        feed = ChangeFeed()
        subscription = feed.subscribe("inspection_jobs", ChangeKind.INSERT)

        job = await create_job(
            db_session,
            admin,
            {
                "reg": "X1",
                "make": "VW",
                "model": "Golf",
                "assigned_to": staff_member.inspector_id,
            },
            feed=feed,
        )

        event = await subscription.__anext__()
        assert event.new["id"] == str(job.id)
        assert event.new["reg"] == "X1"


class TestVisibility:
    async def test_staff_sees_only_assigned_jobs(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
    ) -> None:
        assert [j.id for j in await list_jobs(db_session, staff_member)] == [job.id]
        assert [j.id for j in await list_jobs(db_session, admin)] == [job.id]

    async def test_other_business_cannot_see_job(
        self, db_session: AsyncSession, job: InspectionJob
    ) -> None:
        await create_business_admin(
            db_session,
            business_name="Rival Cars",
            name="Eve",
            email="eve@example.com",
            password="secret123",
        )
        rival = await get_current_user(x_user="Eve:eve@example.com", session=db_session)

        assert await list_jobs(db_session, rival) == []
        with pytest.raises(NotFound):
            await get_visible_job(db_session, job.id, rival)


class TestUpdateStep:
    async def test_marks_job_in_progress(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        step = (await list_steps(db_session, job.id))[0]
        items = [ChecklistItem(name="Paintwork", is_checked=True, condition_rating=4)]

        updated = await update_step(
            db_session, step.id, staff_member, {"rating": 4, "items": items}
        )

        assert updated.rating == 4
        assert updated.items == items
        assert job.status is JobStatus.IN_PROGRESS

    async def test_rejects_unknown_fields(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        step = (await list_steps(db_session, job.id))[0]

        with pytest.raises(ValidationFailed):
            await update_step(db_session, step.id, staff_member, {"section": "x"})

    async def test_rejects_out_of_range_rating(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        step = (await list_steps(db_session, job.id))[0]

        with pytest.raises(ValidationFailed):
            await update_step(db_session, step.id, staff_member, {"rating": 6})

    async def test_status_change_published_once(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        feed = ChangeFeed()
        subscription = feed.subscribe("inspection_jobs", ChangeKind.UPDATE)
        steps = await list_steps(db_session, job.id)

        await update_step(db_session, steps[0].id, staff_member, {"notes": "ok"}, feed)
        await update_step(db_session, steps[1].id, staff_member, {"notes": "ok"}, feed)
        subscription.close()

        events = [event async for event in subscription]
        assert len(events) == 1
        assert events[0].old is not None
        assert events[0].old["status"] == "not_started"
        assert events[0].new["status"] == "in_progress"


class TestFaults:
    async def test_report_and_flag(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
    ) -> None:
        fault = await report_fault(
            db_session, job, {"type": "engine", "description": "Oil leak"}
        )
        assert fault.flagged_for_repair is False

        flagged = await toggle_fault_flag(db_session, fault.id, admin)
        assert flagged.flagged_for_repair is True
        unflagged = await toggle_fault_flag(db_session, fault.id, admin)
        assert unflagged.flagged_for_repair is False

    async def test_requires_description(
        self, db_session: AsyncSession, job: InspectionJob
    ) -> None:
        with pytest.raises(ValidationFailed):
            await report_fault(db_session, job, {"type": "engine", "description": ""})


class TestUploadMedia:
    async def test_stores_file_and_sets_step_photo(
        self, db_session: AsyncSession, job: InspectionJob, tmp_path: Path
    ) -> None:
        storage = LocalMediaStorage(tmp_path)
        step = (await list_steps(db_session, job.id))[0]
        path = f"{job.id}/1700000000000_front.jpg"

        media = await upload_media(
            db_session,
            storage,
            job,
            path=path,
            content=b"jpeg-bytes",
            section="exterior",
            step_id=step.id,
        )

        assert media.url == path
        assert media.file_size == len(b"jpeg-bytes")
        assert step.photo_url == path
        assert await storage.download(MEDIA_BUCKET, path) == b"jpeg-bytes"

    async def test_path_must_be_under_job(
        self, db_session: AsyncSession, job: InspectionJob, tmp_path: Path
    ) -> None:
        with pytest.raises(ValidationFailed):
            await upload_media(
                db_session,
                LocalMediaStorage(tmp_path),
                job,
                path="elsewhere/front.jpg",
                content=b"x",
                section="exterior",
            )


class TestSubmitAndReview:
    async def test_incomplete_inspection_rejected(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        step = (await list_steps(db_session, job.id))[0]
        await update_step(db_session, step.id, staff_member, {"is_complete": True})

        with pytest.raises(IncompleteInspection) as exc_info:
            await submit_job(db_session, job)

        assert exc_info.value.remaining == len(DEFAULT_SECTIONS) - 1
        assert "5 sections remaining" in str(exc_info.value)
        assert job.status is JobStatus.IN_PROGRESS

    async def test_submit_then_review(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
    ) -> None:
        await _complete_all_steps(db_session, job, staff_member)

        await submit_job(db_session, job)
        assert job.status is JobStatus.SUBMITTED
        assert job.review_status is ReviewStatus.PENDING

        await review_job(db_session, job, admin, ReviewStatus.APPROVED)
        assert job.review_status is ReviewStatus.APPROVED
        assert job.reviewed_by == admin.inspector_id
        assert job.reviewed_at is not None

    async def test_resubmit_is_noop(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        await _complete_all_steps(db_session, job, staff_member)
        await submit_job(db_session, job)
        feed = ChangeFeed()
        subscription = feed.subscribe("inspection_jobs")

        await submit_job(db_session, job, feed=feed)

        subscription.close()
        assert [event async for event in subscription] == []

    async def test_review_requires_submission(
        self, db_session: AsyncSession, job: InspectionJob, admin: Principal
    ) -> None:
        with pytest.raises(InvalidState):
            await review_job(db_session, job, admin, ReviewStatus.REJECTED)
