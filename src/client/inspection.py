from __future__ import annotations

import base64
import logging
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from src.base.models import utcnow
from src.client.network import NetworkMonitor
from src.client.queue import ActionType, OfflineQueue
from src.client.remote import RemoteClient, RemoteError
from src.client.storage import LocalStore

logger = logging.getLogger(__name__)

INSPECTION_STORAGE_PREFIX = "inspection_"


class CachedInspection(BaseModel):
    """Form state of one job as last edited on this device."""

    steps: dict[str, dict[str, Any]] = Field(default_factory=dict)
    faults: list[dict[str, Any]] = Field(default_factory=list)
    media: list[dict[str, Any]] = Field(default_factory=list)
    last_synced: datetime | None = None


def _temp_id() -> str:
    return f"temp_{uuid4().hex}"


class OfflineInspection:
    """Edits to one job that survive restarts and lost connectivity.

    Every edit lands in the local cache first. When online it is sent right
    away; when offline, or when the call fails for a transient reason, the
    matching pending action is queued instead. Rejections from the service
    (validation errors) are raised and never queued.
    """

    def __init__(
        self,
        job_id: str,
        store: LocalStore,
        queue: OfflineQueue,
        remote: RemoteClient,
        monitor: NetworkMonitor,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.job_id = str(job_id)
        self._store = store
        self._queue = queue
        self._remote = remote
        self._monitor = monitor
        self._clock = clock
        self._data = self._load()

    @property
    def storage_key(self) -> str:
        return f"{INSPECTION_STORAGE_PREFIX}{self.job_id}"

    @property
    def data(self) -> CachedInspection:
        return self._data.model_copy(deep=True)

    def _load(self) -> CachedInspection:
        raw = self._store.get(self.storage_key)
        if raw is None:
            return CachedInspection()
        try:
            return CachedInspection.model_validate_json(raw)
        except ValidationError:
            logger.exception("Failed to parse cached inspection %s", self.job_id)
            return CachedInspection()

    def _save(self) -> None:
        self._store.set(self.storage_key, self._data.model_dump_json())

    def _queue_or_raise(
        self, exc: RemoteError, action_type: ActionType, payload: dict[str, Any]
    ) -> None:
        if exc.is_rejection:
            raise exc
        logger.warning("Online %s failed, queueing it: %s", action_type.value, exc)
        self._queue.enqueue(action_type, payload)

    async def update_step(self, step_id: str, updates: dict[str, Any]) -> None:
        step_id = str(step_id)
        self._data.steps[step_id] = {**self._data.steps.get(step_id, {}), **updates}
        self._save()

        payload = {"step_id": step_id, "updates": updates}
        if not self._monitor.is_online:
            self._queue.enqueue(ActionType.INSPECTION_UPDATE, payload)
            return
        try:
            await self._remote.update_step(step_id, updates)
        except RemoteError as exc:
            self._queue_or_raise(exc, ActionType.INSPECTION_UPDATE, payload)

    async def add_fault(self, fault: dict[str, Any]) -> str:
        """Record a fault; returns the server id, or a `temp_` id until synced."""
        local = {**fault, "id": _temp_id(), "job_id": self.job_id}
        local["created_at"] = self._clock().isoformat()
        self._data.faults.append(local)
        self._save()

        payload = {"job_id": self.job_id, "fault": fault}
        if not self._monitor.is_online:
            self._queue.enqueue(ActionType.FAULT_REPORT, payload)
            return local["id"]
        try:
            created = await self._remote.report_fault(self.job_id, fault)
        except RemoteError as exc:
            self._queue_or_raise(exc, ActionType.FAULT_REPORT, payload)
            return local["id"]

        local["id"] = created["id"]
        self._save()
        return created["id"]

    async def upload_media(
        self,
        filename: str,
        content: bytes,
        section: str,
        step_id: str | None = None,
        caption: str | None = None,
    ) -> str:
        """Upload a photo/video; returns its storage path."""
        millis = int(self._clock().timestamp() * 1000)
        path = f"{self.job_id}/{millis}_{filename}"
        entry: dict[str, Any] = {
            "id": _temp_id(),
            "path": path,
            "section": section,
            "step_id": step_id,
            "uploaded": False,
            "created_at": self._clock().isoformat(),
        }
        self._data.media.append(entry)
        self._save()

        payload = {
            "job_id": self.job_id,
            "path": path,
            "content": base64.b64encode(content).decode("ascii"),
            "section": section,
            "step_id": step_id,
            "caption": caption,
        }
        if not self._monitor.is_online:
            self._queue.enqueue(ActionType.MEDIA_UPLOAD, payload)
            return path
        try:
            created = await self._remote.upload_media(
                self.job_id, path, content, section, step_id=step_id, caption=caption
            )
        except RemoteError as exc:
            self._queue_or_raise(exc, ActionType.MEDIA_UPLOAD, payload)
            return path

        entry.update(id=created["id"], uploaded=True)
        self._save()
        return path

    async def submit(self) -> bool:
        """Submit for review. False means the submission is queued."""
        payload = {"job_id": self.job_id}
        if not self._monitor.is_online:
            self._queue.enqueue(ActionType.JOB_SUBMIT, payload)
            return False
        try:
            await self._remote.submit_job(self.job_id)
        except RemoteError as exc:
            self._queue_or_raise(exc, ActionType.JOB_SUBMIT, payload)
            return False

        self._store.remove(self.storage_key)
        self._data = CachedInspection(last_synced=self._clock())
        return True
