"""Public auth routes: register, login, refresh, logout, logout-all. No access token required."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import get_credentials, get_device_info, get_session_authority
from app.schemas.user import (
    AccessTokenResponse,
    MessageResponse,
    RefreshBody,
    TokenPairResponse,
    UserCredentialsLoose,
)
from app.services.session_authority import SessionAuthority

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/public", tags=["public"])

_REFRESH_ERRORS = {
    400: {"description": "refreshToken missing or empty"},
    401: {"description": "Invalid refresh token"},
}

# get_credentials reads the body itself; declare it for the OpenAPI document
_CREDENTIALS_BODY = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": UserCredentialsLoose.model_json_schema()}},
    }
}


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=201,
    summary="Register a new user",
    openapi_extra=_CREDENTIALS_BODY,
    responses={
        400: {"description": "Validation error"},
        409: {"description": "Username already exists"},
        500: {"description": "Registration failed"},
    },
)
async def register(
    authority: Annotated[SessionAuthority, Depends(get_session_authority)],
    body: Annotated[UserCredentialsLoose, Depends(get_credentials)],
) -> MessageResponse:
    await authority.register(body.username, body.password)
    return MessageResponse(message="User registered")


@router.post(
    "/login",
    response_model=TokenPairResponse,
    summary="Login and receive an access/refresh token pair",
    openapi_extra=_CREDENTIALS_BODY,
    responses={
        400: {"description": "Validation error"},
        401: {"description": "Invalid credentials"},
        500: {"description": "Login failed"},
    },
)
async def login(
    authority: Annotated[SessionAuthority, Depends(get_session_authority)],
    body: Annotated[UserCredentialsLoose, Depends(get_credentials)],
    device_info: Annotated[str, Depends(get_device_info)],
) -> TokenPairResponse:
    pair = await authority.login(body.username, body.password, device_info)
    return TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.post(
    "/refresh",
    response_model=AccessTokenResponse,
    summary="Exchange a refresh token for a new access token",
    responses=_REFRESH_ERRORS,
)
async def refresh(
    authority: Annotated[SessionAuthority, Depends(get_session_authority)],
    body: RefreshBody,
) -> AccessTokenResponse:
    access_token = await authority.refresh_access_token(body.refresh_token)
    return AccessTokenResponse(access_token=access_token)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Revoke one refresh token",
    responses=_REFRESH_ERRORS,
)
async def logout(
    authority: Annotated[SessionAuthority, Depends(get_session_authority)],
    body: RefreshBody,
) -> MessageResponse:
    await authority.logout(body.refresh_token)
    return MessageResponse(message="Logged out")


@router.post(
    "/logout-all",
    response_model=MessageResponse,
    summary="Revoke every refresh token of the token's owner",
    responses=_REFRESH_ERRORS,
)
async def logout_all(
    authority: Annotated[SessionAuthority, Depends(get_session_authority)],
    body: RefreshBody,
) -> MessageResponse:
    await authority.logout_all(body.refresh_token)
    return MessageResponse(message="Logged out from all devices")
