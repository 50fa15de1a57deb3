"""Credential store: users and their refresh-token records.

Every mutating call is its own transaction. Failures are classified here so
callers never inspect driver errors: a unique-constraint violation is a
DuplicateKeyError, anything else a StoreError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.refresh_token import RefreshToken
from app.models.user import User

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Persistence failed for a reason other than a uniqueness violation."""


class DuplicateKeyError(StoreError):
    """A write hit a unique constraint."""


@dataclass(frozen=True)
class NewRefreshToken:
    token: str
    token_id: str
    device_info: str
    created_at: datetime
    last_used: datetime


class CredentialStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def _commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise DuplicateKeyError(str(e.orig)) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(str(e)) from e

    async def find_user(self, username: str) -> User | None:
        try:
            r = await self._session.execute(select(User).where(User.username == username))
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e
        return r.scalar_one_or_none()

    async def create_user(self, username: str, password_hash: str) -> User:
        user = User(username=username, password_hash=password_hash)
        self._session.add(user)
        await self._commit()
        return user

    async def push_refresh_token(self, user: User, record: NewRefreshToken, keep_last: int) -> list[str]:
        """Append a record and evict the oldest beyond ``keep_last``, in one transaction.

        Returns the token ids that were evicted. The user's row is locked first so
        concurrent logins for the same user append and trim one at a time.
        """
        try:
            await self._session.execute(select(User.id).where(User.id == user.id).with_for_update())
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(str(e)) from e
        self._session.add(
            RefreshToken(
                user_id=user.id,
                token=record.token,
                token_id=record.token_id,
                device_info=record.device_info,
                created_at=record.created_at,
                last_used=record.last_used,
            )
        )
        try:
            await self._session.flush()
            r = await self._session.execute(
                select(RefreshToken.id, RefreshToken.token_id)
                .where(RefreshToken.user_id == user.id)
                .order_by(RefreshToken.id.desc())
                .offset(keep_last)
            )
            stale = r.all()
            if stale:
                await self._session.execute(
                    delete(RefreshToken).where(RefreshToken.id.in_([row.id for row in stale]))
                )
        except IntegrityError as e:
            await self._session.rollback()
            raise DuplicateKeyError(str(e.orig)) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(str(e)) from e
        await self._commit()
        evicted = [row.token_id for row in stale]
        if evicted:
            logger.debug("Evicted %d refresh token(s) for user %s", len(evicted), user.username)
        return evicted

    async def find_refresh_token(self, username: str, token: str) -> RefreshToken | None:
        try:
            r = await self._session.execute(
                select(RefreshToken)
                .join(User, RefreshToken.user_id == User.id)
                .where(User.username == username, RefreshToken.token == token)
            )
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e
        return r.scalars().first()

    async def touch_refresh_token(self, record: RefreshToken, now: datetime) -> None:
        try:
            await self._session.execute(
                update(RefreshToken).where(RefreshToken.id == record.id).values(last_used=now)
            )
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(str(e)) from e
        await self._commit()

    async def pull_refresh_token(self, username: str, token: str) -> int:
        """Remove records matching ``token`` for ``username``. Returns the number removed."""
        user_ids = select(User.id).where(User.username == username).scalar_subquery()
        try:
            r = await self._session.execute(
                delete(RefreshToken).where(RefreshToken.user_id == user_ids, RefreshToken.token == token)
            )
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(str(e)) from e
        await self._commit()
        return r.rowcount or 0

    async def clear_refresh_tokens(self, username: str) -> int:
        user_ids = select(User.id).where(User.username == username).scalar_subquery()
        try:
            r = await self._session.execute(delete(RefreshToken).where(RefreshToken.user_id == user_ids))
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(str(e)) from e
        await self._commit()
        return r.rowcount or 0

    async def list_refresh_tokens(self, username: str) -> list[RefreshToken]:
        try:
            r = await self._session.execute(
                select(RefreshToken)
                .join(User, RefreshToken.user_id == User.id)
                .where(User.username == username)
                .order_by(RefreshToken.id)
            )
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e
        return list(r.scalars().all())
