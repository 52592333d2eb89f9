"""In-process change feed.

Services publish a `ChangeEvent` after every write to a watched table;
consumers hold a `Subscription`, an async iterator that ends as soon as it
is closed.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import inspect

from src.base.models import BaseDbModel, utcnow

logger = logging.getLogger(__name__)


class ChangeKind(enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    new: dict[str, Any]
    old: dict[str, Any] | None = None
    at: datetime = field(default_factory=utcnow)

    def as_json(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "event": self.kind.value,
            "new": self.new,
            "old": self.old,
            "at": self.at.isoformat(),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def row_snapshot(row: BaseDbModel) -> dict[str, Any]:
    """JSON-safe dict of a row's loaded column values."""
    state = inspect(row)
    snapshot: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        if attr.key in state.unloaded:
            continue
        value = getattr(row, attr.key)
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json")
        elif isinstance(value, list):
            value = [
                v.model_dump(mode="json") if hasattr(v, "model_dump") else v
                for v in value
            ]
        snapshot[attr.key] = _jsonable(value)
    return snapshot


_CLOSED = object()


class Subscription:
    """Cancellable stream of change events for one table."""

    def __init__(
        self,
        feed: ChangeFeed,
        table: str,
        kind: ChangeKind | None,
        where: Mapping[str, Any] | None,
    ) -> None:
        self.table = table
        self.kind = kind
        self.where = {k: _jsonable(v) for k, v in (where or {}).items()}
        self._feed = feed
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.kind is not None and event.kind is not self.kind:
            return False
        row = event.new if event.kind is not ChangeKind.DELETE else event.old or {}
        return all(row.get(column) == value for column, value in self.where.items())

    def _deliver(self, event: ChangeEvent) -> None:
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._detach(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class ChangeFeed:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        table: str,
        kind: ChangeKind | None = None,
        where: Mapping[str, Any] | None = None,
    ) -> Subscription:
        subscription = Subscription(self, table, kind, where)
        self._subscriptions.append(subscription)
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription._deliver(event)
                delivered += 1
        logger.debug(
            "%s on %s delivered to %d subscribers",
            event.kind.value,
            event.table,
            delivered,
        )
        return delivered

    def publish_row(
        self,
        kind: ChangeKind,
        row: BaseDbModel,
        old: dict[str, Any] | None = None,
    ) -> int:
        return self.publish(
            ChangeEvent(
                table=row.__tablename__,
                kind=kind,
                new=row_snapshot(row),
                old=old,
            )
        )

    def close_all(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()
