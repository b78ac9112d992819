from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from authcore.database import session_scope
from authcore.errors import OtpExpired, OtpMismatch, OtpNotFound, RepositoryError
from authcore.models.otp import OtpEntry
from authcore.schemas.otp import OtpPurpose, PendingOtp

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SecretStore(Protocol):
    def get(self, identity: str, purpose: OtpPurpose) -> Optional[PendingOtp]: ...

    def set(self, identity: str, purpose: OtpPurpose, pending: PendingOtp) -> None: ...

    def add_if_absent(
        self, identity: str, purpose: OtpPurpose, pending: PendingOtp
    ) -> bool: ...

    def delete(
        self, identity: str, purpose: OtpPurpose, expected_code: Optional[str] = None
    ) -> bool: ...


class SqlSecretStore:
    """Pending codes in the ``otp_codes`` table, one row per identity and purpose."""

    def __init__(self, ttl_seconds: int, clock: Clock = _utcnow) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def get(self, identity: str, purpose: OtpPurpose) -> Optional[PendingOtp]:
        try:
            with session_scope() as session:
                entry = session.execute(
                    select(OtpEntry).where(
                        OtpEntry.identity == identity,
                        OtpEntry.purpose == purpose.value,
                    )
                ).scalar_one_or_none()
                if entry is None:
                    return None
                return PendingOtp(code=entry.code, issued_at=_as_utc(entry.issued_at))
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to read pending code") from exc

    def set(self, identity: str, purpose: OtpPurpose, pending: PendingOtp) -> None:
        cutoff = self._clock() - timedelta(seconds=self._ttl_seconds)
        try:
            with session_scope() as session:
                session.execute(delete(OtpEntry).where(OtpEntry.issued_at <= cutoff))
                session.execute(self._upsert(session, identity, purpose, pending))
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to store pending code") from exc

    def add_if_absent(
        self, identity: str, purpose: OtpPurpose, pending: PendingOtp
    ) -> bool:
        try:
            with session_scope() as session:
                result = session.execute(
                    self._insert(session, identity, purpose, pending).on_conflict_do_nothing(
                        index_elements=[OtpEntry.identity, OtpEntry.purpose]
                    )
                )
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to restore pending code") from exc

    def delete(
        self, identity: str, purpose: OtpPurpose, expected_code: Optional[str] = None
    ) -> bool:
        conditions = [OtpEntry.identity == identity, OtpEntry.purpose == purpose.value]
        if expected_code is not None:
            conditions.append(OtpEntry.code == expected_code)
        try:
            with session_scope() as session:
                result = session.execute(delete(OtpEntry).where(*conditions))
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to delete pending code") from exc

    def _insert(self, session, identity: str, purpose: OtpPurpose, pending: PendingOtp):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise RepositoryError(f"Unsupported database dialect: {dialect}")
        return insert(OtpEntry).values(
            identity=identity,
            purpose=purpose.value,
            code=pending.code,
            issued_at=pending.issued_at,
        )

    def _upsert(self, session, identity: str, purpose: OtpPurpose, pending: PendingOtp):
        stmt = self._insert(session, identity, purpose, pending)
        return stmt.on_conflict_do_update(
            index_elements=[OtpEntry.identity, OtpEntry.purpose],
            set_={"code": stmt.excluded.code, "issued_at": stmt.excluded.issued_at},
        )


class MemorySecretStore:
    """Process-local store guarded by a lock."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, OtpPurpose], PendingOtp] = {}
        self._lock = threading.Lock()

    def get(self, identity: str, purpose: OtpPurpose) -> Optional[PendingOtp]:
        with self._lock:
            return self._entries.get((identity, purpose))

    def set(self, identity: str, purpose: OtpPurpose, pending: PendingOtp) -> None:
        with self._lock:
            self._entries[(identity, purpose)] = pending

    def add_if_absent(
        self, identity: str, purpose: OtpPurpose, pending: PendingOtp
    ) -> bool:
        with self._lock:
            return self._entries.setdefault((identity, purpose), pending) is pending

    def delete(
        self, identity: str, purpose: OtpPurpose, expected_code: Optional[str] = None
    ) -> bool:
        with self._lock:
            current = self._entries.get((identity, purpose))
            if current is None:
                return False
            if expected_code is not None and current.code != expected_code:
                return False
            del self._entries[(identity, purpose)]
            return True


class OtpGenerator:
    def __init__(
        self,
        store: SecretStore,
        code_length: int = 6,
        clock: Clock = _utcnow,
        code_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._store = store
        self._code_length = code_length
        self._clock = clock
        self._code_factory = code_factory

    def generate(self) -> str:
        if self._code_factory is not None:
            return self._code_factory()
        value = secrets.randbelow(10**self._code_length)
        return str(value).zfill(self._code_length)

    def issue(
        self, identity: str, purpose: OtpPurpose, code: Optional[str] = None
    ) -> PendingOtp:
        pending = PendingOtp(code=code or self.generate(), issued_at=self._clock())
        self._store.set(identity, purpose, pending)
        LOGGER.info("Issued %s code for %s", purpose.value, identity)
        return pending


class OtpVerifier:
    def __init__(self, store: SecretStore, ttl_seconds: int, clock: Clock = _utcnow) -> None:
        self._store = store
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def verify(
        self,
        identity: str,
        purpose: OtpPurpose,
        submitted_code: str,
        consume: bool = False,
    ) -> PendingOtp:
        """Check ``submitted_code`` against the pending code for ``identity``.

        An expired entry is removed before failing. A mismatch leaves the entry
        in place so the caller may retry inside the validity window. With
        ``consume`` the entry is removed by a single compare-and-delete; losing
        that race to another caller reads as ``OtpNotFound``.
        """
        pending = self._store.get(identity, purpose)
        if pending is None:
            raise OtpNotFound(f"No pending {purpose.value} code for {identity}")

        age = self._clock() - pending.issued_at
        if age >= self._ttl:
            self._store.delete(identity, purpose, expected_code=pending.code)
            raise OtpExpired(f"{purpose.value} code for {identity} has expired")

        if submitted_code != pending.code:
            raise OtpMismatch(f"{purpose.value} code for {identity} does not match")

        if consume and not self._store.delete(identity, purpose, expected_code=pending.code):
            raise OtpNotFound(f"{purpose.value} code for {identity} was already used")
        return pending

    def restore(self, identity: str, purpose: OtpPurpose, pending: PendingOtp) -> bool:
        """Put a consumed code back, keeping its original issue time.

        A code issued since the consume wins; the old one stays gone.
        """
        return self._store.add_if_absent(identity, purpose, pending)
