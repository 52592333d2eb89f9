"""Endpoints mirroring the hosted functions the field client calls.

Bodies and responses use camelCase keys; failures answer
`{"success": false, "error": {"message": ...}}`.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal, get_current_user, require_admin
from src.base.context import AppContext, get_context
from src.base.dependencies import get_session
from src.notify import push
from src.notify.email import EmailType, render_email
from src.notify.push import MissingRecipients, PushMessage, send_notification
from src.user import staff
from src.user.models import Business

router = APIRouter(prefix="/functions")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateStaffRequest(_CamelModel):
    name: str
    email: str
    business_id: UUID
    created_by: UUID
    password: str | None = None


class ResetPasswordRequest(_CamelModel):
    email: str
    new_password: str


class SendNotificationRequest(_CamelModel):
    title: str
    body: str
    data: dict[str, str] | None = None
    user_id: UUID | None = None
    tokens: list[str] | None = None


class SendEmailRequest(_CamelModel):
    to: str
    name: str
    type: EmailType
    business_name: str | None = None
    password: str | None = None
    reset_link: str | None = None


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"message": message}},
    )


@router.post("/create-staff", response_model=None)
async def create_staff(
    body: CreateStaffRequest,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    if body.business_id != principal.business_id:
        return _failure(403, "Cannot create staff for another business")
    try:
        account = await staff.create_staff(
            session,
            name=body.name,
            email=body.email,
            business_id=body.business_id,
            created_by=body.created_by,
            password=body.password,
        )
    except staff.StaffValidationError as exc:
        return _failure(400, str(exc))
    except staff.StaffNotFound as exc:
        return _failure(404, str(exc))

    business = await session.get(Business, body.business_id)
    await ctx.email.send(
        render_email(
            account.email,
            account.name,
            EmailType.STAFF_INVITATION,
            business_name=business.name if business else None,
            password=account.temporary_password,
        )
    )
    return {
        "success": True,
        "user": {
            "id": str(account.user_id),
            "email": account.email,
            "name": account.name,
        },
    }


@router.post("/reset-staff-password", response_model=None)
async def reset_staff_password(
    body: ResetPasswordRequest,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any] | JSONResponse:
    try:
        await staff.reset_staff_password(
            session, body.email, body.new_password, principal.business_id
        )
    except staff.StaffValidationError as exc:
        return _failure(400, str(exc))
    except staff.StaffNotFound as exc:
        return _failure(404, str(exc))
    return {"success": True}


@router.post("/send-fcm-notification", response_model=None)
async def send_fcm_notification(
    body: SendNotificationRequest,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        report = await send_notification(
            session,
            ctx.push,
            PushMessage(title=body.title, body=body.body, data=body.data),
            user_id=body.user_id,
            tokens=body.tokens,
        )
    except MissingRecipients as exc:
        return _failure(400, str(exc))
    return {"success": report.success, "sent": report.sent, "failed": report.failed}


@router.get("/get-vapid-key", response_model=None)
async def get_vapid_key() -> dict[str, Any] | JSONResponse:
    if not push.VAPID_PUBLIC_KEY:
        return _failure(500, "VAPID key not configured")
    return {"vapidKey": push.VAPID_PUBLIC_KEY}


@router.post("/send-email", response_model=None)
async def send_email(
    body: SendEmailRequest,
    principal: Principal = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    await ctx.email.send(
        render_email(
            body.to,
            body.name,
            body.type,
            business_name=body.business_name,
            password=body.password,
            reset_link=body.reset_link,
        )
    )
    return {"success": True}
