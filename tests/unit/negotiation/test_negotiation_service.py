import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal
from src.inspection.models import InspectionJob
from src.negotiation.models import NegotiationStatus, OfferStatus, OfferType, Party
from src.negotiation.rules import NegotiationClosed, NotYourTurn
from src.negotiation.service import (
    accept_offer,
    decline_offer,
    list_offers,
    submit_offer,
)
from src.realtime.feed import ChangeFeed, ChangeKind


class TestSubmitOffer:
    async def test_initial_offer_by_inspector(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        offer = await submit_offer(db_session, job, staff_member, 5000)

        assert offer.offered_by is Party.INSPECTOR
        assert offer.offer_type is OfferType.INITIAL
        assert offer.status is OfferStatus.PENDING
        assert offer.sequence == 1
        assert job.negotiation_status is NegotiationStatus.PENDING_ADMIN

    async def test_admin_cannot_open(
        self, db_session: AsyncSession, job: InspectionJob, admin: Principal
    ) -> None:
        with pytest.raises(NotYourTurn):
            await submit_offer(db_session, job, admin, 5000)

        assert await list_offers(db_session, job.id) == []
        assert job.negotiation_status is NegotiationStatus.NOT_STARTED

    async def test_counter_supersedes_previous(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
    ) -> None:
        await submit_offer(db_session, job, staff_member, 5000)
        counter = await submit_offer(db_session, job, admin, 4500, notes="Worn tyres")

        offers = await list_offers(db_session, job.id)
        assert [o.status for o in offers] == [
            OfferStatus.SUPERSEDED,
            OfferStatus.PENDING,
        ]
        assert counter.offer_type is OfferType.COUNTER_ADMIN
        assert counter.notes == "Worn tyres"
        assert job.negotiation_status is NegotiationStatus.PENDING_USER

    async def test_exactly_one_pending_after_many_rounds(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
    ) -> None:
        rounds = [
            (staff_member, 5000),
            (admin, 4500),
            (staff_member, 4800),
            (admin, 4600),
            (staff_member, 4700),
        ]
        for party, amount in rounds:
            await submit_offer(db_session, job, party, amount)

        offers = await list_offers(db_session, job.id)
        pending = [o for o in offers if o.status is OfferStatus.PENDING]
        assert len(pending) == 1
        assert pending[0] is offers[-1]
        assert [o.sequence for o in offers] == [1, 2, 3, 4, 5]

    async def test_same_party_cannot_offer_twice(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        await submit_offer(db_session, job, staff_member, 5000)

        with pytest.raises(NotYourTurn):
            await submit_offer(db_session, job, staff_member, 5200)

    async def test_publishes_changes(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
    ) -> None:
        feed = ChangeFeed()
        offers_sub = feed.subscribe("negotiation_offers")
        jobs_sub = feed.subscribe("inspection_jobs", ChangeKind.UPDATE)

        await submit_offer(db_session, job, staff_member, 5000, feed=feed)
        await submit_offer(db_session, job, admin, 4500, feed=feed)

        first = await offers_sub.__anext__()
        assert first.kind is ChangeKind.INSERT
        superseded = await offers_sub.__anext__()
        assert superseded.kind is ChangeKind.UPDATE
        assert superseded.new["status"] == "superseded"
        assert superseded.old is not None
        assert superseded.old["status"] == "pending"
        job_event = await jobs_sub.__anext__()
        assert job_event.new["negotiation_status"] == "pending_admin"


class TestAnswerOffer:
    async def test_accept_sets_final_price(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
    ) -> None:
        await submit_offer(db_session, job, staff_member, 5000)
        await submit_offer(db_session, job, admin, 4500)

        accepted = await accept_offer(db_session, job, staff_member)

        assert accepted.status is OfferStatus.ACCEPTED
        assert job.final_agreed_price == 4500
        assert job.negotiation_status is NegotiationStatus.AGREED

    async def test_decline_closes_negotiation(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        admin: Principal,
        staff_member: Principal,
    ) -> None:
        await submit_offer(db_session, job, staff_member, 5000)

        declined = await decline_offer(db_session, job, admin)

        assert declined.status is OfferStatus.DECLINED
        assert job.negotiation_status is NegotiationStatus.DECLINED
        assert job.final_agreed_price is None
        with pytest.raises(NegotiationClosed):
            await submit_offer(db_session, job, staff_member, 5500)
        with pytest.raises(NegotiationClosed):
            await accept_offer(db_session, job, staff_member)

    async def test_offering_party_cannot_accept(
        self, db_session: AsyncSession, job: InspectionJob, staff_member: Principal
    ) -> None:
        await submit_offer(db_session, job, staff_member, 5000)

        with pytest.raises(NotYourTurn):
            await accept_offer(db_session, job, staff_member)

        offers = await list_offers(db_session, job.id)
        assert offers[0].status is OfferStatus.PENDING
        assert job.negotiation_status is NegotiationStatus.PENDING_ADMIN
