from datetime import datetime, timedelta, timezone

import pytest

from authcore import database
from authcore.config import Settings
from authcore.services.accounts import AccountRepository
from authcore.services.credentials import CredentialManager
from authcore.services.delivery import ReturnedForTesting
from authcore.services.hashing import Sha256Hasher
from authcore.services.otp import OtpGenerator, OtpVerifier, SqlSecretStore
from authcore.services.sessions import SessionContext, SessionStore

TTL_SECONDS = 300


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class CodeQueue:
    """Hands out queued codes, then falls back to a fixed one."""

    def __init__(self, default: str = "123456") -> None:
        self.default = default
        self.queued: list[str] = []

    def push(self, *codes: str) -> None:
        self.queued.extend(codes)

    def __call__(self) -> str:
        if self.queued:
            return self.queued.pop(0)
        return self.default


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite://",
        "otp_length": 6,
        "otp_ttl_seconds": TTL_SECONDS,
        "otp_delivery": "returned",
        "password_hasher": "sha256",
        "disclose_unknown_email": True,
        "seed_admin_email": "",
    }
    values.update(overrides)
    return Settings(**values)


def build_manager(clock, codes, hasher=None, channel=None, **overrides) -> CredentialManager:
    config = make_settings(**overrides)
    store = SqlSecretStore(config.otp_ttl_seconds, clock=clock)
    return CredentialManager(
        accounts=AccountRepository(),
        generator=OtpGenerator(store, code_length=config.otp_length, clock=clock, code_factory=codes),
        verifier=OtpVerifier(store, ttl_seconds=config.otp_ttl_seconds, clock=clock),
        hasher=hasher or Sha256Hasher(),
        sessions=SessionStore(),
        channel=channel or ReturnedForTesting(),
        config=config,
    )


@pytest.fixture
def db():
    database.configure("sqlite://")
    database.init_db()
    yield
    database.drop_db()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codes():
    return CodeQueue()


@pytest.fixture
def manager(db, clock, codes):
    return build_manager(clock, codes)


@pytest.fixture
def context():
    return SessionContext()


@pytest.fixture
def register(manager, codes):
    def _register(username="alice", email="a@x.com", password="secret1", code="123456"):
        codes.push(code)
        manager.send_registration_otp(username, email)
        return manager.confirm_registration(
            SessionContext(), username, email, password, None, None, code
        )

    return _register
