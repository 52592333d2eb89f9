"""Offer/counter-offer exchange on a job.

Each operation writes the offer history and the job's mirrored
`negotiation_status` through the same session, so they commit or roll back
together.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal
from src.inspection.models import InspectionJob
from src.negotiation.models import (
    NegotiationOffer,
    NegotiationStatus,
    OfferStatus,
    Party,
)
from src.negotiation.rules import (
    check_offer,
    check_response,
    offer_type_for,
    status_after_offer,
)
from src.realtime.feed import ChangeFeed, ChangeKind, row_snapshot

logger = logging.getLogger(__name__)


def party_for(principal: Principal) -> Party:
    return Party.ADMIN if principal.is_admin else Party.INSPECTOR


async def list_offers(session: AsyncSession, job_id: UUID) -> list[NegotiationOffer]:
    """Offer history of a job, oldest first."""
    stmt = (
        select(NegotiationOffer)
        .where(NegotiationOffer.job_id == job_id)
        .order_by(NegotiationOffer.sequence)
    )
    return list((await session.execute(stmt)).scalars().all())


async def submit_offer(
    session: AsyncSession,
    job: InspectionJob,
    principal: Principal,
    amount: float,
    notes: str | None = None,
    feed: ChangeFeed | None = None,
) -> NegotiationOffer:
    party = party_for(principal)
    offers = await list_offers(session, job.id)
    check_offer(job.negotiation_status, party, amount)

    old_job = row_snapshot(job)
    superseded: list[tuple[NegotiationOffer, dict]] = []
    for previous in offers:
        if previous.status is OfferStatus.PENDING:
            superseded.append((previous, row_snapshot(previous)))
            previous.status = OfferStatus.SUPERSEDED

    offer = NegotiationOffer(
        job_id=job.id,
        business_id=job.business_id,
        sequence=len(offers) + 1,
        offered_by=party,
        offered_by_user_id=principal.user_id,
        offer_type=offer_type_for(offers, party),
        amount=amount,
        notes=notes or None,
        status=OfferStatus.PENDING,
    )
    session.add(offer)
    job.negotiation_status = status_after_offer(party)
    await session.flush()

    logger.info(
        "Job %s: %s offered %.2f (%s)",
        job.id,
        party.value,
        amount,
        offer.offer_type.value,
    )
    if feed is not None:
        for previous, old in superseded:
            feed.publish_row(ChangeKind.UPDATE, previous, old=old)
        feed.publish_row(ChangeKind.INSERT, offer)
        feed.publish_row(ChangeKind.UPDATE, job, old=old_job)
    return offer


async def _answer_latest(
    session: AsyncSession,
    job: InspectionJob,
    principal: Principal,
    outcome: OfferStatus,
    feed: ChangeFeed | None,
) -> NegotiationOffer:
    party = party_for(principal)
    offers = await list_offers(session, job.id)
    check_response(offers, job.negotiation_status, party)

    latest = offers[-1]
    old_offer = row_snapshot(latest)
    old_job = row_snapshot(job)

    latest.status = outcome
    if outcome is OfferStatus.ACCEPTED:
        job.final_agreed_price = latest.amount
        job.negotiation_status = NegotiationStatus.AGREED
    else:
        job.negotiation_status = NegotiationStatus.DECLINED
    await session.flush()

    logger.info("Job %s: %s %s offer %s", job.id, party.value, outcome.value, latest.id)
    if feed is not None:
        feed.publish_row(ChangeKind.UPDATE, latest, old=old_offer)
        feed.publish_row(ChangeKind.UPDATE, job, old=old_job)
    return latest


async def accept_offer(
    session: AsyncSession,
    job: InspectionJob,
    principal: Principal,
    feed: ChangeFeed | None = None,
) -> NegotiationOffer:
    return await _answer_latest(session, job, principal, OfferStatus.ACCEPTED, feed)


async def decline_offer(
    session: AsyncSession,
    job: InspectionJob,
    principal: Principal,
    feed: ChangeFeed | None = None,
) -> NegotiationOffer:
    return await _answer_latest(session, job, principal, OfferStatus.DECLINED, feed)
