"""Push notifications driven by the change feed."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.inspection.models import InspectionJob
from src.notify.push import PushMessage, PushSender, send_notification
from src.realtime.feed import ChangeEvent, ChangeFeed, ChangeKind, Subscription
from src.user.models import AppRole, Inspector, UserRole

logger = logging.getLogger(__name__)

_Handler = Callable[[ChangeEvent], Awaitable[None]]


class NotificationDispatcher:
    """Watch jobs and offers and notify the other party.

    * new job → admins of the business
    * job submitted → admins of the business
    * new offer by an admin → the assigned inspector
    * new offer by the inspector → admins of the business
    """

    def __init__(
        self,
        feed: ChangeFeed,
        sender: PushSender,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._feed = feed
        self._sender = sender
        self._session_factory = session_factory
        self._subscriptions: list[Subscription] = []
        self._tasks: list[asyncio.Task[None]] = []

    def start(self) -> None:
        if self._tasks:
            return
        routes: list[tuple[Subscription, _Handler]] = [
            (
                self._feed.subscribe("inspection_jobs", ChangeKind.INSERT),
                self._on_job_created,
            ),
            (
                self._feed.subscribe("inspection_jobs", ChangeKind.UPDATE),
                self._on_job_updated,
            ),
            (
                self._feed.subscribe("negotiation_offers", ChangeKind.INSERT),
                self._on_offer_created,
            ),
        ]
        for subscription, handler in routes:
            self._subscriptions.append(subscription)
            self._tasks.append(asyncio.create_task(self._consume(subscription, handler)))

    async def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        await asyncio.gather(*self._tasks)
        self._subscriptions.clear()
        self._tasks.clear()

    async def _consume(self, subscription: Subscription, handler: _Handler) -> None:
        async for event in subscription:
            try:
                await handler(event)
            except Exception:
                logger.exception("Notification for %s failed", event.table)

    async def _on_job_created(self, event: ChangeEvent) -> None:
        job = event.new
        async with self._session_factory() as session:
            inspector = await session.get(Inspector, UUID(job["assigned_to"]))
            if inspector is None:
                return
            await self._notify_admins(
                session,
                UUID(job["business_id"]),
                PushMessage(
                    title="New Vehicle Inspection Started",
                    body=f"{inspector.name} has started inspecting {job['reg']}",
                    data={"job_id": job["id"]},
                ),
            )

    async def _on_job_updated(self, event: ChangeEvent) -> None:
        job = event.new
        previous = (event.old or {}).get("status")
        if job.get("status") != "submitted" or previous == "submitted":
            return
        async with self._session_factory() as session:
            inspector = await session.get(Inspector, UUID(job["assigned_to"]))
            if inspector is None:
                return
            await self._notify_admins(
                session,
                UUID(job["business_id"]),
                PushMessage(
                    title="Vehicle Submitted",
                    body=f"{inspector.name} submitted {job['reg']} for review",
                    data={"job_id": job["id"]},
                ),
            )

    async def _on_offer_created(self, event: ChangeEvent) -> None:
        offer = event.new
        async with self._session_factory() as session:
            job = await session.get(InspectionJob, UUID(offer["job_id"]))
            if job is None:
                return
            staff = await session.get(Inspector, job.assigned_to)
            data = {"job_id": offer["job_id"], "offer_id": offer["id"]}

            if offer["offered_by"] == "admin":
                if staff is None:
                    return
                await send_notification(
                    session,
                    self._sender,
                    PushMessage(
                        title=f"New update from Admin on {job.reg}",
                        body=f"Admin sent you a new {offer['offer_type']} for {job.reg}",
                        data=data,
                    ),
                    user_id=staff.user_id,
                )
            else:
                staff_name = staff.name if staff is not None else "Inspector"
                await self._notify_admins(
                    session,
                    job.business_id,
                    PushMessage(
                        title=f"New update from {staff_name} on {job.reg}",
                        body=f"{staff_name} sent a new {offer['offer_type']} for {job.reg}",
                        data=data,
                    ),
                )

    async def _notify_admins(
        self, session: AsyncSession, business_id: UUID, message: PushMessage
    ) -> None:
        stmt = (
            select(Inspector.user_id)
            .join(UserRole, UserRole.user_id == Inspector.user_id)
            .where(
                Inspector.business_id == business_id,
                UserRole.role == AppRole.ADMIN,
            )
        )
        admin_ids = (await session.execute(stmt)).scalars().all()
        for user_id in admin_ids:
            await send_notification(session, self._sender, message, user_id=user_id)
