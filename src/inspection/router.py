from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import AwareDatetime, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal, get_current_user, require_admin
from src.base.context import AppContext, get_context
from src.base.dependencies import get_session
from src.base.schemas import BaseDTO
from src.inspection import service
from src.inspection.models import (
    ChecklistItem,
    InspectionFault,
    InspectionJob,
    InspectionMedia,
    InspectionStep,
    JobStatus,
    MediaType,
    Priority,
    ReviewStatus,
)
from src.inspection.service import (
    InspectionError,
    InvalidState,
    NotFound,
    ValidationFailed,
)
from src.negotiation.models import NegotiationStatus
from src.storage.interface import ObjectExistsError, StorageError

router = APIRouter()


class JobCreate(BaseModel):
    reg: str
    make: str
    model: str
    assigned_to: UUID
    vin: str | None = None
    year: int | None = None
    mileage: int | None = Field(default=None, ge=0)
    color: str | None = None
    fuel_type: str | None = None
    transmission: str | None = None
    purchase_price: float | None = None
    priority: Priority = Priority.MEDIUM
    notes: str | None = None
    seller_address: str | None = None
    deadline: AwareDatetime | None = None


class JobResponse(BaseDTO):
    business_id: UUID
    assigned_to: UUID
    reg: str
    make: str
    model: str
    vin: str | None
    year: int | None
    mileage: int | None
    color: str | None
    fuel_type: str | None
    transmission: str | None
    purchase_price: float | None
    seller_address: str | None
    priority: Priority
    notes: str | None
    deadline: datetime | None
    status: JobStatus
    review_status: ReviewStatus | None
    reviewed_at: datetime | None
    reviewed_by: UUID | None
    negotiation_status: NegotiationStatus
    final_agreed_price: float | None


class StepUpdate(BaseModel):
    is_complete: bool | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    notes: str | None = None
    items: list[ChecklistItem] | None = None


class StepResponse(BaseDTO):
    job_id: UUID
    section: str
    section_order: int
    is_complete: bool
    rating: int | None
    notes: str | None
    photo_url: str | None
    items: list[ChecklistItem] | None


class FaultCreate(BaseModel):
    type: str
    description: str
    location: str | None = None
    media_url: str | None = None
    flagged_for_repair: bool = False


class FaultResponse(BaseDTO):
    job_id: UUID
    type: str
    description: str
    location: str | None
    media_url: str | None
    flagged_for_repair: bool


class MediaResponse(BaseDTO):
    job_id: UUID
    step_id: UUID | None
    section: str
    media_type: MediaType
    url: str
    caption: str | None
    file_size: int | None


class JobDetail(BaseModel):
    job: JobResponse
    steps: list[StepResponse]
    faults: list[FaultResponse]


class ReviewRequest(BaseModel):
    decision: ReviewStatus


def _http_error(exc: InspectionError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationFailed):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, InvalidState):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


async def _get_job(
    job_id: UUID, principal: Principal, session: AsyncSession
) -> InspectionJob:
    try:
        return await service.get_visible_job(session, job_id, principal)
    except InspectionError as exc:
        raise _http_error(exc) from exc


@router.post("/jobs", response_model=JobResponse, status_code=201)
async def create_job(
    body: JobCreate,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> InspectionJob:
    try:
        return await service.create_job(
            session, principal, body.model_dump(), feed=ctx.feed
        )
    except InspectionError as exc:
        raise _http_error(exc) from exc


@router.get("/jobs", response_model=list[JobResponse])
async def list_jobs(
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[InspectionJob]:
    return await service.list_jobs(session, principal)


@router.get("/jobs/{job_id}", response_model=JobDetail)
async def get_job(
    job_id: UUID,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> JobDetail:
    job = await _get_job(job_id, principal, session)
    steps = await service.list_steps(session, job.id)
    faults = await service.list_faults(session, job.id)
    return JobDetail(
        job=JobResponse.model_validate(job),
        steps=[StepResponse.model_validate(s) for s in steps],
        faults=[FaultResponse.model_validate(f) for f in faults],
    )


@router.patch("/steps/{step_id}", response_model=StepResponse)
async def update_step(
    step_id: UUID,
    body: StepUpdate,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> InspectionStep:
    updates = body.model_dump(exclude_unset=True)
    try:
        return await service.update_step(
            session, step_id, principal, updates, feed=ctx.feed
        )
    except InspectionError as exc:
        raise _http_error(exc) from exc


@router.post("/jobs/{job_id}/faults", response_model=FaultResponse, status_code=201)
async def report_fault(
    job_id: UUID,
    body: FaultCreate,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> InspectionFault:
    job = await _get_job(job_id, principal, session)
    try:
        return await service.report_fault(
            session, job, body.model_dump(), feed=ctx.feed
        )
    except InspectionError as exc:
        raise _http_error(exc) from exc


@router.post("/faults/{fault_id}/flag", response_model=FaultResponse)
async def toggle_fault_flag(
    fault_id: UUID,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> InspectionFault:
    try:
        return await service.toggle_fault_flag(
            session, fault_id, principal, feed=ctx.feed
        )
    except InspectionError as exc:
        raise _http_error(exc) from exc


@router.put("/jobs/{job_id}/media", response_model=MediaResponse, status_code=201)
async def upload_media(
    job_id: UUID,
    request: Request,
    path: str = Query(),
    section: str = Query(),
    step_id: UUID | None = Query(default=None),
    caption: str | None = Query(default=None),
    media_type: MediaType = Query(default=MediaType.PHOTO),
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> InspectionMedia:
    job = await _get_job(job_id, principal, session)
    content = await request.body()
    try:
        return await service.upload_media(
            session,
            ctx.storage,
            job,
            path=path,
            content=content,
            section=section,
            step_id=step_id,
            caption=caption,
            media_type=media_type,
            feed=ctx.feed,
        )
    except InspectionError as exc:
        raise _http_error(exc) from exc
    except ObjectExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/jobs/{job_id}/submit", response_model=JobResponse)
async def submit_job(
    job_id: UUID,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> InspectionJob:
    job = await _get_job(job_id, principal, session)
    try:
        return await service.submit_job(session, job, feed=ctx.feed)
    except InspectionError as exc:
        raise _http_error(exc) from exc


@router.post("/jobs/{job_id}/review", response_model=JobResponse)
async def review_job(
    job_id: UUID,
    body: ReviewRequest,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> InspectionJob:
    job = await _get_job(job_id, principal, session)
    try:
        return await service.review_job(
            session, job, principal, body.decision, feed=ctx.feed
        )
    except InspectionError as exc:
        raise _http_error(exc) from exc
