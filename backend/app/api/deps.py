"""FastAPI dependencies: configuration, token codec, session authority, access-token gate."""

import json
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.core.auth import PasswordHasher, TokenCodec
from app.core.errors import InvalidToken, NoToken, ValidationFailed
from app.db.session import get_db
from app.schemas.user import UserCredentialsLoose, get_user_schema
from app.services.credential_store import CredentialStore
from app.services.session_authority import UNKNOWN_DEVICE, SessionAuthority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    username: str


def get_token_codec(config: Annotated[Settings, Depends(get_settings)]) -> TokenCodec:
    return TokenCodec(config)


def get_session_authority(
    session: Annotated[AsyncSession, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    config: Annotated[Settings, Depends(get_settings)],
) -> SessionAuthority:
    return SessionAuthority(
        CredentialStore(session),
        codec,
        PasswordHasher(config),
        max_refresh_tokens=config.max_refresh_tokens,
    )


def get_device_info(request: Request) -> str:
    return request.headers.get("User-Agent") or UNKNOWN_DEVICE


def validation_details(exc: ValidationError) -> list[dict]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


async def get_credentials(
    request: Request,
    config: Annotated[Settings, Depends(get_settings)],
) -> UserCredentialsLoose:
    """Parse the register/login body with the password rules for the current environment."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationFailed("Invalid JSON body") from e
    schema = get_user_schema(config.strict_passwords)
    try:
        return schema.model_validate(body)
    except ValidationError as e:
        raise ValidationFailed(details=validation_details(e)) from e


async def require_access_token(
    request: Request,
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> CurrentUser:
    """Reject the request unless it carries a valid access token. No store lookup."""
    auth_header = request.headers.get("Authorization") or ""
    scheme, _, token = auth_header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise NoToken()
    result = codec.verify_access(token)
    if not result.ok:
        logger.info("Access token rejected on %s: %s", request.url.path, result.error.value)
        raise InvalidToken()
    user = CurrentUser(username=result.payload["username"])
    request.state.user = user
    return user
