"""Session authority: register, login, refresh, logout, logout-all.

Access tokens are stateless. Refresh tokens are only valid while a matching
record exists in the credential store, so the store is the revocation
authority for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from app.core.auth import PasswordHasher, TokenCodec, generate_token_id
from app.core.errors import (
    DuplicateUsername,
    InvalidCredentials,
    InvalidRefreshToken,
    StorageFailure,
)
from app.models.refresh_token import MAX_DEVICE_INFO_LENGTH, RefreshToken
from app.services.credential_store import (
    CredentialStore,
    DuplicateKeyError,
    NewRefreshToken,
    StoreError,
)

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE = "Unknown"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class SessionAuthority:
    def __init__(
        self,
        store: CredentialStore,
        codec: TokenCodec,
        hasher: PasswordHasher,
        max_refresh_tokens: int = 5,
    ):
        self._store = store
        self._codec = codec
        self._hasher = hasher
        self._max_refresh_tokens = max_refresh_tokens

    async def register(self, username: str, password: str) -> None:
        try:
            if await self._store.find_user(username) is not None:
                raise DuplicateUsername()
            password_hash = await self._hasher.hash_async(password)
            await self._store.create_user(username, password_hash)
        except DuplicateKeyError as e:
            # Lost the race between the pre-check and the insert
            raise DuplicateUsername() from e
        except StoreError as e:
            raise StorageFailure("Registration failed") from e
        logger.info("Registered user %s", username)

    async def login(self, username: str, password: str, device_info: str | None = None) -> TokenPair:
        try:
            user = await self._store.find_user(username)
        except StoreError as e:
            raise StorageFailure("Login failed") from e
        if user is None or not await self._hasher.verify_async(password, user.password_hash):
            raise InvalidCredentials()

        now = datetime.now(timezone.utc)
        token_id = generate_token_id()
        access_token = self._codec.mint_access(username, now=now)
        refresh_token = self._codec.mint_refresh(username, token_id, now=now)
        record = NewRefreshToken(
            token=refresh_token,
            token_id=token_id,
            device_info=(device_info or UNKNOWN_DEVICE)[:MAX_DEVICE_INFO_LENGTH],
            created_at=now,
            last_used=now,
        )
        try:
            await self._store.push_refresh_token(user, record, keep_last=self._max_refresh_tokens)
        except StoreError as e:
            raise StorageFailure("Login failed") from e
        logger.info("User %s logged in from %s", username, record.device_info)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def _resolve_refresh_token(self, refresh_token: str) -> tuple[str, RefreshToken]:
        result = self._codec.verify_refresh(refresh_token)
        if not result.ok:
            logger.info("Refresh token rejected: %s", result.error.value)
            raise InvalidRefreshToken()
        username = result.payload["username"]
        try:
            record = await self._store.find_refresh_token(username, refresh_token)
        except StoreError as e:
            raise StorageFailure() from e
        if record is None or record.token_id != result.payload["tokenId"]:
            logger.info("Refresh token for %s has no live record", username)
            raise InvalidRefreshToken()
        return username, record

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Mint a new access token. The refresh token itself is not rotated."""
        username, record = await self._resolve_refresh_token(refresh_token)
        try:
            await self._store.touch_refresh_token(record, datetime.now(timezone.utc))
        except StoreError as e:
            raise StorageFailure() from e
        return self._codec.mint_access(username)

    def _username_from(self, refresh_token: str) -> str:
        result = self._codec.verify_refresh(refresh_token)
        if not result.ok:
            logger.info("Refresh token rejected: %s", result.error.value)
            raise InvalidRefreshToken()
        return result.payload["username"]

    async def logout(self, refresh_token: str) -> None:
        """Revoke one session. Succeeds even if the record is already gone."""
        username = self._username_from(refresh_token)
        try:
            removed = await self._store.pull_refresh_token(username, refresh_token)
        except StoreError as e:
            raise StorageFailure("Logout failed") from e
        logger.info("User %s logged out (%d session(s) removed)", username, removed)

    async def logout_all(self, refresh_token: str) -> None:
        username = self._username_from(refresh_token)
        try:
            removed = await self._store.clear_refresh_tokens(username)
        except StoreError as e:
            raise StorageFailure("Logout failed") from e
        logger.info("User %s logged out everywhere (%d session(s) removed)", username, removed)

    async def list_sessions(self, username: str) -> list[RefreshToken]:
        try:
            return await self._store.list_refresh_tokens(username)
        except StoreError as e:
            raise StorageFailure() from e
