from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from authcore.database import session_scope
from authcore.errors import RepositoryError
from authcore.models.session import SessionEntry
from authcore.schemas.accounts import Account

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    token: str
    user: Account


class SessionStore:
    """Persisted logins keyed by token.

    The stored user snapshot is the outward projection of the account, so it
    never carries the password digest or salt.
    """

    def save(self, current: Session) -> None:
        now = datetime.now(timezone.utc)
        try:
            with session_scope() as session:
                session.add(
                    SessionEntry(
                        token=current.token,
                        account_id=current.user.id,
                        user_snapshot=current.user.model_dump(mode="json"),
                        created_at=now,
                    )
                )
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to persist session") from exc

    def load(self, token: str) -> Optional[Session]:
        if not token:
            return None
        try:
            with session_scope() as session:
                entry = session.execute(
                    select(SessionEntry).where(SessionEntry.token == token)
                ).scalar_one_or_none()
                if entry is None or not entry.user_snapshot:
                    return None
                snapshot = dict(entry.user_snapshot)
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to load session") from exc
        try:
            user = Account.model_validate(snapshot)
        except ValidationError:
            LOGGER.warning("Discarding unreadable session snapshot")
            return None
        return Session(token=token, user=user)

    def refresh_user(self, token: str, user: Account) -> bool:
        try:
            with session_scope() as session:
                result = session.execute(
                    update(SessionEntry)
                    .where(SessionEntry.token == token)
                    .values(user_snapshot=user.model_dump(mode="json"))
                )
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to update session") from exc

    def delete(self, token: str) -> bool:
        try:
            with session_scope() as session:
                result = session.execute(
                    delete(SessionEntry).where(SessionEntry.token == token)
                )
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to delete session") from exc


class SessionContext:
    """The login held by one caller.

    Login and registration establish it, logout clears it and restore fills it
    from the store once. Nothing about it is process-global.
    """

    def __init__(self, current: Optional[Session] = None) -> None:
        self._current = current

    @property
    def current(self) -> Optional[Session]:
        return self._current

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    @property
    def token(self) -> Optional[str]:
        return self._current.token if self._current else None

    @property
    def user(self) -> Optional[Account]:
        return self._current.user if self._current else None

    def establish(self, current: Session) -> None:
        self._current = current

    def clear(self) -> None:
        self._current = None

    def restore(self, store: SessionStore, token: Optional[str]) -> Optional[Session]:
        restored = store.load(token) if token else None
        self._current = restored
        return restored

