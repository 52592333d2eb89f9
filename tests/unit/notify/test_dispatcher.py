from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.auth import Principal
from src.inspection.models import InspectionJob
from src.negotiation.service import submit_offer
from src.notify.dispatcher import NotificationDispatcher
from src.notify.models import Platform
from src.notify.push import PushMessage, PushSender
from src.notify.tokens import register_token
from src.realtime.feed import ChangeEvent, ChangeFeed, ChangeKind, row_snapshot


@pytest.fixture
async def devices(
    db_session: AsyncSession,
    job: InspectionJob,
    admin: Principal,
    staff_member: Principal,
) -> None:
    await register_token(db_session, admin.user_id, "admin-device", Platform.WEB)
    await register_token(db_session, staff_member.user_id, "staff-device", Platform.IOS)
    await db_session.commit()


def _sent(sender: AsyncMock) -> list[tuple[str, PushMessage]]:
    return [(c.args[0], c.args[1]) for c in sender.send.await_args_list]


class TestNotificationDispatcher:
    async def test_new_job_notifies_admins(
        self,
        job: InspectionJob,
        devices: None,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        feed = ChangeFeed()
        sender = AsyncMock(spec=PushSender)
        dispatcher = NotificationDispatcher(feed, sender, session_factory)
        dispatcher.start()

        feed.publish_row(ChangeKind.INSERT, job)
        await dispatcher.stop()

        [(token, message)] = _sent(sender)
        assert token == "admin-device"
        assert message.title == "New Vehicle Inspection Started"
        assert message.body == "Bob has started inspecting AB12 CDE"
        assert feed.subscriber_count == 0

    async def test_submission_notifies_admins_once(
        self,
        job: InspectionJob,
        devices: None,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        feed = ChangeFeed()
        sender = AsyncMock(spec=PushSender)
        dispatcher = NotificationDispatcher(feed, sender, session_factory)
        dispatcher.start()

        submitted = {**row_snapshot(job), "status": "submitted"}
        feed.publish(
            ChangeEvent(
                table="inspection_jobs",
                kind=ChangeKind.UPDATE,
                new=submitted,
                old={**submitted, "status": "in_progress"},
            )
        )
        # Later edits of an already submitted job stay quiet.
        feed.publish(
            ChangeEvent(
                table="inspection_jobs",
                kind=ChangeKind.UPDATE,
                new=submitted,
                old=submitted,
            )
        )
        await dispatcher.stop()

        [(token, message)] = _sent(sender)
        assert token == "admin-device"
        assert message.title == "Vehicle Submitted"

    async def test_offers_notify_the_other_party(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
        devices: None,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        feed = ChangeFeed()
        sender = AsyncMock(spec=PushSender)
        dispatcher = NotificationDispatcher(feed, sender, session_factory)
        dispatcher.start()

        await submit_offer(db_session, job, staff_member, 5000, feed=feed)
        await submit_offer(db_session, job, admin, 4500, feed=feed)
        await db_session.commit()
        await dispatcher.stop()

        sent = _sent(sender)
        assert [token for token, _ in sent] == ["admin-device", "staff-device"]
        assert sent[0][1].title == "New update from Bob on AB12 CDE"
        assert sent[1][1].title == "New update from Admin on AB12 CDE"
        assert sent[1][1].data is not None
        assert sent[1][1].data["job_id"] == str(job.id)

    async def test_handler_errors_do_not_stop_dispatch(
        self,
        job: InspectionJob,
        devices: None,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        feed = ChangeFeed()
        sender = AsyncMock(spec=PushSender)
        dispatcher = NotificationDispatcher(feed, sender, session_factory)
        dispatcher.start()

        feed.publish(
            ChangeEvent(table="inspection_jobs", kind=ChangeKind.INSERT, new={})
        )
        feed.publish_row(ChangeKind.INSERT, job)
        await dispatcher.stop()

        assert len(_sent(sender)) == 1
