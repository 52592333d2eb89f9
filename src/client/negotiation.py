from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.client.remote import RemoteClient, RemoteError
from src.negotiation.models import NegotiationStatus, OfferStatus, OfferType, Party
from src.negotiation.rules import (
    can_make_offer,
    can_respond,
    check_offer,
    check_response,
)

logger = logging.getLogger(__name__)

POLL_SECONDS = int(os.environ.get("AUTOINSPECT_NEGOTIATION_POLL_SECONDS", "10"))


@dataclass(frozen=True)
class OfferSnapshot:
    id: str
    sequence: int
    offered_by: Party
    offer_type: OfferType
    amount: float
    notes: str | None
    status: OfferStatus

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> OfferSnapshot:
        return cls(
            id=data["id"],
            sequence=data["sequence"],
            offered_by=Party(data["offered_by"]),
            offer_type=OfferType(data["offer_type"]),
            amount=float(data["amount"]),
            notes=data.get("notes"),
            status=OfferStatus(data["status"]),
        )


@dataclass(frozen=True)
class NegotiationState:
    status: NegotiationStatus
    final_agreed_price: float | None
    offers: tuple[OfferSnapshot, ...]

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> NegotiationState:
        return cls(
            status=NegotiationStatus(data["negotiation_status"]),
            final_agreed_price=data.get("final_agreed_price"),
            offers=tuple(OfferSnapshot.from_json(o) for o in data["offers"]),
        )

    @property
    def latest(self) -> OfferSnapshot | None:
        return self.offers[-1] if self.offers else None


class NegotiationClient:
    """One party's view of a job's negotiation.

    Actions are checked against the turn rules before any request is made.
    While the negotiation is open, the state is refreshed every
    `poll_seconds`; the latest refresh always wins.
    """

    def __init__(
        self,
        remote: RemoteClient,
        job_id: str,
        party: Party,
        poll_seconds: float = POLL_SECONDS,
    ) -> None:
        self._remote = remote
        self.job_id = str(job_id)
        self.party = party
        self._poll_seconds = poll_seconds
        self._state: NegotiationState | None = None
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def state(self) -> NegotiationState | None:
        return self._state

    async def refresh(self) -> NegotiationState:
        self._state = NegotiationState.from_json(
            await self._remote.get_negotiation(self.job_id)
        )
        return self._state

    async def _current(self) -> NegotiationState:
        return self._state if self._state is not None else await self.refresh()

    def can_make_offer(self) -> bool:
        if self._state is None:
            return False
        return can_make_offer(self._state.status, self.party)

    def can_respond(self) -> bool:
        if self._state is None:
            return False
        return can_respond(self._state.offers, self._state.status, self.party)

    async def make_offer(
        self, amount: float, notes: str | None = None
    ) -> NegotiationState:
        state = await self._current()
        check_offer(state.status, self.party, amount)
        await self._remote.make_offer(self.job_id, amount, notes)
        return await self.refresh()

    async def accept(self) -> NegotiationState:
        state = await self._current()
        check_response(state.offers, state.status, self.party)
        await self._remote.accept_offer(self.job_id)
        return await self.refresh()

    async def decline(self) -> NegotiationState:
        state = await self._current()
        check_response(state.offers, state.status, self.party)
        await self._remote.decline_offer(self.job_id)
        return await self.refresh()

    async def _poll(self) -> None:
        try:
            state = await self.refresh()
        except RemoteError as exc:
            logger.warning("Negotiation refresh for %s failed: %s", self.job_id, exc)
            return
        if state.status.is_terminal:
            logger.info("Negotiation %s is %s", self.job_id, state.status.value)
            self.stop()

    def start_polling(self) -> None:
        """Must be called from a running event loop."""
        if self._scheduler is not None:
            return
        if self._state is not None and self._state.status.is_terminal:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._poll, "interval", seconds=self._poll_seconds, id="negotiation_poll"
        )
        self._scheduler.start()

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

    @property
    def is_polling(self) -> bool:
        return self._scheduler is not None
