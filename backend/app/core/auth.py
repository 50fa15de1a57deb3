"""Password hashing and JWT creation/verification for access and refresh tokens."""

from __future__ import annotations

import enum
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from fastapi.concurrency import run_in_threadpool
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import Settings


class TokenError(str, enum.Enum):
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of verifying a token: either a payload or the reason it was rejected."""

    payload: dict[str, Any] | None = None
    error: TokenError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.payload is not None

    @classmethod
    def success(cls, payload: dict[str, Any]) -> TokenVerification:
        return cls(payload=payload)

    @classmethod
    def failure(cls, error: TokenError) -> TokenVerification:
        return cls(error=error)


def generate_token_id() -> str:
    """Random identifier tying a refresh token to its stored record."""
    return secrets.token_hex(32)


class TokenCodec:
    """Signs and verifies access and refresh tokens. No I/O, no state beyond configuration."""

    def __init__(self, config: Settings):
        self._access_secret = config.jwt_secret
        self._refresh_secret = config.jwt_refresh_secret
        self._algorithm = config.jwt_algorithm
        self._access_ttl = timedelta(minutes=config.access_token_expire_minutes)
        self._refresh_ttl = timedelta(days=config.refresh_token_expire_days)

    def _encode(self, claims: dict[str, Any], secret: str, ttl: timedelta, now: datetime | None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            **claims,
            "iat": int(issued.timestamp()),
            "exp": int((issued + ttl).timestamp()),
        }
        result = jwt.encode(payload, secret, algorithm=self._algorithm)
        return result if isinstance(result, str) else result.decode("utf-8")

    def _decode(self, token: str, secret: str) -> TokenVerification:
        try:
            payload = jwt.decode(token, secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            return TokenVerification.failure(TokenError.EXPIRED)
        except JWTError:
            return TokenVerification.failure(TokenError.INVALID)
        username = payload.get("username")
        if not isinstance(username, str) or not username:
            return TokenVerification.failure(TokenError.INVALID)
        return TokenVerification.success(payload)

    def mint_access(self, username: str, now: datetime | None = None) -> str:
        return self._encode({"username": username}, self._access_secret, self._access_ttl, now)

    def mint_refresh(self, username: str, token_id: str, now: datetime | None = None) -> str:
        return self._encode(
            {"username": username, "tokenId": token_id},
            self._refresh_secret,
            self._refresh_ttl,
            now,
        )

    def verify_access(self, token: str) -> TokenVerification:
        return self._decode(token, self._access_secret)

    def verify_refresh(self, token: str) -> TokenVerification:
        result = self._decode(token, self._refresh_secret)
        if result.ok and not isinstance(result.payload.get("tokenId"), str):
            return TokenVerification.failure(TokenError.INVALID)
        return result


class PasswordHasher:
    """bcrypt hash/compare with a configured work factor. Bytes truncated to 72 (bcrypt limit)."""

    def __init__(self, config: Settings):
        self._rounds = config.bcrypt_rounds

    def hash(self, password: str) -> str:
        pwd_bytes = password.encode("utf-8")[:72]
        hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=self._rounds))
        return hashed.decode("utf-8")

    def verify(self, plain_password: str, password_hash: str) -> bool:
        plain_bytes = plain_password.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(plain_bytes, password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False

    async def hash_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash, password)

    async def verify_async(self, plain_password: str, password_hash: str) -> bool:
        return await run_in_threadpool(self.verify, plain_password, password_hash)
