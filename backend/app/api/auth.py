"""Routes behind the access-token gate: greeting and the caller's live sessions."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.api.deps import CurrentUser, get_session_authority, require_access_token
from app.schemas.user import SessionOut
from app.services.session_authority import SessionAuthority

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(require_access_token)],
    responses={
        401: {"description": "No token"},
        403: {"description": "Invalid token"},
    },
)


@router.get("", response_class=PlainTextResponse, summary="Check authentication")
async def greet(user: Annotated[CurrentUser, Depends(require_access_token)]) -> str:
    return f"Hello {user.username}"


@router.get("/sessions", response_model=list[SessionOut], summary="List live refresh-token sessions")
async def list_sessions(
    user: Annotated[CurrentUser, Depends(require_access_token)],
    authority: Annotated[SessionAuthority, Depends(get_session_authority)],
) -> list[SessionOut]:
    records = await authority.list_sessions(user.username)
    return [
        SessionOut(
            token_id=r.token_id,
            device_info=r.device_info,
            created_at=r.created_at,
            last_used=r.last_used,
        )
        for r in records
    ]
