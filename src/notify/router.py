from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Principal, get_current_user
from src.base.dependencies import get_session
from src.notify.models import Platform
from src.notify.tokens import register_token

router = APIRouter(prefix="/push-tokens")


class TokenRegistration(BaseModel):
    token: str
    platform: Platform = Platform.WEB


@router.post("", status_code=204)
async def register_push_token(
    body: TokenRegistration,
    principal: Principal = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    await register_token(session, principal.user_id, body.token, body.platform)
