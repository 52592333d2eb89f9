"""Offline action queue.

Mutations that could not reach the service are kept under the
`offline_actions` key of the local store and replayed in enqueue order once
the network is back. Each action gets a bounded number of attempts; after
that it is dropped and logged. There is no idempotency key: a replayed
`fault_report` can create a duplicate if the connection drops mid-call.
"""

from __future__ import annotations

import base64
import enum
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import BaseModel, TypeAdapter, ValidationError

from src.base.models import utcnow
from src.client.network import NetworkMonitor
from src.client.remote import RemoteClient
from src.client.storage import LocalStore

logger = logging.getLogger(__name__)

OFFLINE_STORAGE_KEY = "offline_actions"
SYNC_INTERVAL_SECONDS = int(os.environ.get("AUTOINSPECT_SYNC_INTERVAL_SECONDS", "30"))


class ActionType(enum.Enum):
    INSPECTION_UPDATE = "inspection_update"
    FAULT_REPORT = "fault_report"
    MEDIA_UPLOAD = "media_upload"
    JOB_SUBMIT = "job_submit"


class PendingAction(BaseModel):
    id: str
    type: ActionType
    payload: dict[str, Any]
    enqueued_at: datetime
    retry_count: int = 0
    next_attempt_at: datetime | None = None


_QUEUE_ADAPTER = TypeAdapter(list[PendingAction])


def _no_delay(retry_count: int) -> float:
    return 0.0


@dataclass(frozen=True)
class RetryPolicy:
    """How often a failing action is replayed and how long to wait between tries."""

    max_attempts: int = 3
    delay: Callable[[int], float] = _no_delay

    @classmethod
    def exponential(
        cls, base: float = 5.0, cap: float = 300.0, max_attempts: int = 3
    ) -> RetryPolicy:
        return cls(
            max_attempts=max_attempts,
            delay=lambda retry_count: min(cap, base * 2 ** (retry_count - 1)),
        )


@dataclass(frozen=True)
class SyncReport:
    synced: int = 0
    failed: int = 0
    dropped: int = 0
    remaining: int = 0
    skipped: bool = False


class ActionExecutor(ABC):
    @abstractmethod
    async def execute(self, action: PendingAction) -> None:
        """Apply the action remotely. Raises on failure."""


class RemoteActionExecutor(ActionExecutor):
    def __init__(self, remote: RemoteClient) -> None:
        self._remote = remote

    async def execute(self, action: PendingAction) -> None:
        payload = action.payload
        if action.type is ActionType.INSPECTION_UPDATE:
            await self._remote.update_step(payload["step_id"], payload["updates"])
        elif action.type is ActionType.FAULT_REPORT:
            await self._remote.report_fault(payload["job_id"], payload["fault"])
        elif action.type is ActionType.MEDIA_UPLOAD:
            await self._remote.upload_media(
                payload["job_id"],
                payload["path"],
                base64.b64decode(payload["content"]),
                payload["section"],
                step_id=payload.get("step_id"),
                caption=payload.get("caption"),
            )
        elif action.type is ActionType.JOB_SUBMIT:
            await self._remote.submit_job(payload["job_id"])


@dataclass
class OfflineQueue:
    store: LocalStore
    monitor: NetworkMonitor
    executor: ActionExecutor
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    interval_seconds: float = SYNC_INTERVAL_SECONDS
    clock: Callable[[], datetime] = utcnow

    def __post_init__(self) -> None:
        self._actions: list[PendingAction] = self._load()
        self._syncing = False
        self._scheduler: AsyncIOScheduler | None = None
        self._remove_listener = self.monitor.add_listener(self._on_network_change)

    def _load(self) -> list[PendingAction]:
        raw = self.store.get(OFFLINE_STORAGE_KEY)
        if raw is None:
            return []
        try:
            return _QUEUE_ADAPTER.validate_json(raw)
        except ValidationError:
            logger.exception("Failed to parse offline actions, discarding them")
            self.store.remove(OFFLINE_STORAGE_KEY)
            return []

    def _save(self) -> None:
        self.store.set(
            OFFLINE_STORAGE_KEY, _QUEUE_ADAPTER.dump_json(self._actions).decode()
        )

    @property
    def pending(self) -> tuple[PendingAction, ...]:
        return tuple(self._actions)

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def __len__(self) -> int:
        return len(self._actions)

    def enqueue(self, action_type: ActionType, payload: dict[str, Any]) -> str:
        action = PendingAction(
            id=uuid4().hex,
            type=action_type,
            payload=payload,
            enqueued_at=self.clock(),
        )
        self._actions.append(action)
        self._save()
        logger.info("Queued %s action %s", action_type.value, action.id)
        return action.id

    async def sync(self) -> SyncReport:
        """Replay every due action once, oldest first.

        Does nothing while offline, while another pass is running, or when
        the queue is empty.
        """
        if not self.monitor.is_online or self._syncing or not self._actions:
            return SyncReport(remaining=len(self._actions), skipped=True)

        self._syncing = True
        try:
            batch = list(self._actions)
            kept: list[PendingAction] = []
            synced = failed = dropped = 0
            now = self.clock()

            for action in batch:
                if action.next_attempt_at is not None and action.next_attempt_at > now:
                    kept.append(action)
                    continue
                try:
                    await self.executor.execute(action)
                except Exception:
                    retry_count = action.retry_count + 1
                    if retry_count < self.policy.max_attempts:
                        delay = self.policy.delay(retry_count)
                        kept.append(
                            action.model_copy(
                                update={
                                    "retry_count": retry_count,
                                    "next_attempt_at": (
                                        now + timedelta(seconds=delay) if delay > 0 else None
                                    ),
                                }
                            )
                        )
                        failed += 1
                        logger.warning(
                            "Action %s (%s) failed, attempt %d of %d",
                            action.id,
                            action.type.value,
                            retry_count,
                            self.policy.max_attempts,
                            exc_info=True,
                        )
                    else:
                        dropped += 1
                        logger.error(
                            "Max retries reached for action %s (%s), dropping it",
                            action.id,
                            action.type.value,
                        )
                else:
                    synced += 1

            batch_ids = {action.id for action in batch}
            added_meanwhile = [a for a in self._actions if a.id not in batch_ids]
            self._actions = kept + added_meanwhile
            self._save()
        finally:
            self._syncing = False

        report = SyncReport(
            synced=synced, failed=failed, dropped=dropped, remaining=len(self._actions)
        )
        logger.info(
            "Sync finished: %d synced, %d failed, %d dropped, %d remaining",
            report.synced,
            report.failed,
            report.dropped,
            report.remaining,
        )
        return report

    async def _on_network_change(self, online: bool) -> None:
        if online:
            logger.info("Back online, syncing %d offline changes", len(self._actions))
            await self.sync()
        else:
            logger.info("Offline mode: changes are kept locally until reconnect")

    async def _scheduled_sync(self) -> None:
        if self.monitor.is_online and self._actions:
            await self.sync()

    def start(self) -> None:
        """Begin periodic syncing. Must be called from a running event loop."""
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._scheduled_sync,
            "interval",
            seconds=self.interval_seconds,
            id="offline_sync",
        )
        self._scheduler.start()

    def shutdown(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self._remove_listener()
