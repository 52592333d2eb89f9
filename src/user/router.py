from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal, require_admin
from src.base.dependencies import get_session
from src.base.schemas import BaseDTO
from src.user import staff
from src.user.models import Inspector, InspectorStatus

router = APIRouter(prefix="/staff")


class StaffResponse(BaseDTO):
    user_id: UUID
    business_id: UUID
    name: str
    email: str
    status: InspectorStatus


@router.get("", response_model=list[StaffResponse])
async def list_staff(
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> list[Inspector]:
    return await staff.list_staff(session, principal.business_id)


@router.delete("/{inspector_id}", status_code=204)
async def deactivate_staff(
    inspector_id: UUID,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> None:
    if inspector_id == principal.inspector_id:
        raise HTTPException(status_code=400, detail="Cannot deactivate yourself")
    try:
        await staff.deactivate_staff(session, inspector_id, principal.business_id)
    except staff.StaffNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
