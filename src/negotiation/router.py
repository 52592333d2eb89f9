from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal, get_current_user
from src.base.context import AppContext, get_context
from src.base.dependencies import get_session
from src.base.schemas import BaseDTO
from src.inspection.models import InspectionJob
from src.inspection.service import InspectionError, get_visible_job
from src.negotiation import service
from src.negotiation.models import (
    NegotiationOffer,
    NegotiationStatus,
    OfferStatus,
    OfferType,
    Party,
)
from src.negotiation.rules import (
    InvalidAmount,
    NegotiationError,
    can_make_offer,
    can_respond,
)

router = APIRouter(prefix="/jobs/{job_id}/negotiation")


class OfferCreate(BaseModel):
    amount: float
    notes: str | None = None


class OfferResponse(BaseDTO):
    job_id: UUID
    sequence: int
    offered_by: Party
    offered_by_user_id: UUID
    offer_type: OfferType
    amount: float
    notes: str | None
    status: OfferStatus


class NegotiationView(BaseModel):
    job_id: UUID
    negotiation_status: NegotiationStatus
    final_agreed_price: float | None
    offers: list[OfferResponse]
    can_make_offer: bool
    can_respond: bool


def _http_error(exc: NegotiationError) -> HTTPException:
    if isinstance(exc, InvalidAmount):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=409, detail=str(exc))


async def _get_job(
    job_id: UUID, principal: Principal, session: AsyncSession
) -> InspectionJob:
    try:
        return await get_visible_job(session, job_id, principal)
    except InspectionError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("", response_model=NegotiationView)
async def get_negotiation(
    job_id: UUID,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> NegotiationView:
    job = await _get_job(job_id, principal, session)
    offers = await service.list_offers(session, job.id)
    party = service.party_for(principal)
    return NegotiationView(
        job_id=job.id,
        negotiation_status=job.negotiation_status,
        final_agreed_price=job.final_agreed_price,
        offers=[OfferResponse.model_validate(o) for o in offers],
        can_make_offer=can_make_offer(job.negotiation_status, party),
        can_respond=can_respond(offers, job.negotiation_status, party),
    )


@router.post("/offers", response_model=OfferResponse, status_code=201)
async def submit_offer(
    job_id: UUID,
    body: OfferCreate,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> NegotiationOffer:
    job = await _get_job(job_id, principal, session)
    try:
        return await service.submit_offer(
            session, job, principal, body.amount, body.notes, feed=ctx.feed
        )
    except NegotiationError as exc:
        raise _http_error(exc) from exc


@router.post("/accept", response_model=OfferResponse)
async def accept_offer(
    job_id: UUID,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> NegotiationOffer:
    job = await _get_job(job_id, principal, session)
    try:
        return await service.accept_offer(session, job, principal, feed=ctx.feed)
    except NegotiationError as exc:
        raise _http_error(exc) from exc


@router.post("/decline", response_model=OfferResponse)
async def decline_offer(
    job_id: UUID,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> NegotiationOffer:
    job = await _get_job(job_id, principal, session)
    try:
        return await service.decline_offer(session, job, principal, feed=ctx.feed)
    except NegotiationError as exc:
        raise _http_error(exc) from exc
