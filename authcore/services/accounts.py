from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from authcore.database import session_scope
from authcore.errors import DuplicateIdentity, DuplicateReason, RepositoryError
from authcore.models.account import AccountEntry
from authcore.schemas.accounts import Account, NewAccount


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRepository:
    """Account rows. Uniqueness of ``email`` and ``username`` is left to the
    table constraints so that a check-then-insert race still surfaces as
    ``DuplicateIdentity``."""

    def find_by_email_or_username(self, email: str, username: str) -> Optional[Account]:
        stmt = (
            select(AccountEntry)
            .where(or_(AccountEntry.email == email, AccountEntry.username == username))
            .order_by(AccountEntry.id)
            .limit(1)
        )
        return self._first(stmt)

    def find_by_email(self, email: str) -> Optional[Account]:
        return self._first(select(AccountEntry).where(AccountEntry.email == email))

    def find_by_email_and_digest(self, email: str, digest: str) -> Optional[Account]:
        return self._first(
            select(AccountEntry).where(
                AccountEntry.email == email,
                AccountEntry.password_digest == digest,
            )
        )

    def find_by_id(self, account_id: int) -> Optional[Account]:
        try:
            with session_scope() as session:
                entry = session.get(AccountEntry, account_id)
                return self._to_account(entry) if entry is not None else None
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to load account") from exc

    def find_salt_by_email(self, email: str) -> Optional[str]:
        try:
            with session_scope() as session:
                return session.execute(
                    select(AccountEntry.password_salt).where(AccountEntry.email == email)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to load account salt") from exc

    def insert(self, account: NewAccount) -> Account:
        now = _utcnow()
        try:
            with session_scope() as session:
                entry = AccountEntry(
                    username=account.username,
                    email=account.email,
                    password_salt=account.password_salt,
                    password_digest=account.password_digest,
                    full_name=account.full_name,
                    phone=account.phone,
                    role=account.role,
                    is_active=account.is_active,
                    created_at=now,
                    updated_at=now,
                )
                session.add(entry)
                session.flush()
                return self._to_account(entry)
        except IntegrityError as exc:
            raise DuplicateIdentity(self._duplicate_reason(account)) from exc
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to insert account") from exc

    def update_password_digest(
        self, account: Union[int, str], digest: str, salt: str = ""
    ) -> int:
        """Replace the stored digest for an account id or email; returns rows affected."""
        if isinstance(account, int):
            condition = AccountEntry.id == account
        else:
            condition = AccountEntry.email == account
        return self._update(
            condition,
            {"password_digest": digest, "password_salt": salt, "updated_at": _utcnow()},
        )

    def update_profile(
        self, account_id: int, full_name: Optional[str], phone: Optional[str]
    ) -> Optional[Account]:
        rows = self._update(
            AccountEntry.id == account_id,
            {"full_name": full_name, "phone": phone, "updated_at": _utcnow()},
        )
        if not rows:
            return None
        return self.find_by_id(account_id)

    def set_active(self, account_id: int, is_active: bool) -> int:
        return self._update(
            AccountEntry.id == account_id,
            {"is_active": is_active, "updated_at": _utcnow()},
        )

    def ensure_admin(self, email: str) -> bool:
        if not email:
            return False
        rows = self._update(
            (AccountEntry.email == email) & (AccountEntry.role != "admin"),
            {"role": "admin", "updated_at": _utcnow()},
        )
        return rows > 0

    def _first(self, stmt) -> Optional[Account]:
        try:
            with session_scope() as session:
                entry = session.execute(stmt).scalars().first()
                return self._to_account(entry) if entry is not None else None
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to query accounts") from exc

    def _update(self, condition, values: dict) -> int:
        try:
            with session_scope() as session:
                result = session.execute(update(AccountEntry).where(condition).values(**values))
                return result.rowcount
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to update account") from exc

    def _duplicate_reason(self, account: NewAccount) -> DuplicateReason:
        existing = self.find_by_email(account.email)
        if existing is not None:
            return DuplicateReason.EMAIL_TAKEN
        return DuplicateReason.USERNAME_TAKEN

    def _to_account(self, entry: AccountEntry) -> Account:
        return Account.model_validate(entry)
