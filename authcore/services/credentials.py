"""Registration, login and password recovery.

The manager composes the hasher, the OTP generator and verifier, the account
repository and the session store. It keeps no login state of its own: callers
pass a ``SessionContext`` into the operations that read or change the active
login.

Flows::

    registration:     send_registration_otp -> confirm_registration
    forgot password:  request_password_reset -> verify_reset_otp -> reset_password
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from authcore.config import Settings, settings
from authcore.errors import (
    AccountDeactivated,
    CredentialError,
    DuplicateIdentity,
    DuplicateReason,
    EmailNotFound,
    InvalidCredentials,
    NotAuthenticated,
    RepositoryError,
)
from authcore.schemas.accounts import Account, NewAccount
from authcore.schemas.otp import OtpDispatch, OtpPurpose, PendingOtp
from authcore.services.accounts import AccountRepository
from authcore.services.delivery import OtpChannel, build_channel
from authcore.services.hashing import Hasher, build_hasher
from authcore.services.otp import OtpGenerator, OtpVerifier, SecretStore, SqlSecretStore
from authcore.services.sessions import Session, SessionContext, SessionStore
from authcore.services.tokens import issue_token

LOGGER = logging.getLogger(__name__)


def _log_failure(operation: str, identity: str, exc: CredentialError) -> None:
    if exc.infrastructure:
        LOGGER.error("%s failed for %s: %s", operation, identity, exc.detail, exc_info=exc)
    else:
        LOGGER.info("%s rejected for %s: %s", operation, identity, exc.code)


class CredentialManager:
    def __init__(
        self,
        accounts: AccountRepository,
        generator: OtpGenerator,
        verifier: OtpVerifier,
        hasher: Hasher,
        sessions: SessionStore,
        channel: OtpChannel,
        config: Settings = settings,
    ) -> None:
        self._accounts = accounts
        self._generator = generator
        self._verifier = verifier
        self._hasher = hasher
        self._sessions = sessions
        self._channel = channel
        self._config = config

    @classmethod
    def from_settings(
        cls,
        config: Settings = settings,
        store: Optional[SecretStore] = None,
        sender=None,
    ) -> "CredentialManager":
        store = store or SqlSecretStore(config.otp_ttl_seconds)
        return cls(
            accounts=AccountRepository(),
            generator=OtpGenerator(store, code_length=config.otp_length),
            verifier=OtpVerifier(store, ttl_seconds=config.otp_ttl_seconds),
            hasher=build_hasher(config),
            sessions=SessionStore(),
            channel=build_channel(config, sender),
            config=config,
        )

    # Registration

    def send_registration_otp(self, username: str, email: str) -> OtpDispatch:
        existing = self._accounts.find_by_email_or_username(email, username)
        if existing is not None:
            reason = (
                DuplicateReason.EMAIL_TAKEN
                if existing.email == email
                else DuplicateReason.USERNAME_TAKEN
            )
            exc = DuplicateIdentity(reason)
            _log_failure("Registration OTP", email, exc)
            raise exc
        return self._dispatch(email, OtpPurpose.REGISTRATION)

    def resend_registration_otp(self, username: str, email: str) -> OtpDispatch:
        return self.send_registration_otp(username, email)

    def confirm_registration(
        self,
        context: SessionContext,
        username: str,
        email: str,
        password: str,
        full_name: Optional[str],
        phone: Optional[str],
        submitted_code: str,
    ) -> Session:
        try:
            pending = self._verifier.verify(
                email, OtpPurpose.REGISTRATION, submitted_code, consume=True
            )
        except CredentialError as exc:
            _log_failure("Registration confirm", email, exc)
            raise

        try:
            salt = self._hasher.new_salt()
            account = self._accounts.insert(
                NewAccount(
                    username=username,
                    email=email,
                    password_salt=salt,
                    password_digest=self._hasher.hash(password, salt),
                    full_name=full_name,
                    phone=phone,
                    role=self._role_for(email),
                    is_active=True,
                )
            )
        except DuplicateIdentity as exc:
            _log_failure("Registration confirm", email, exc)
            raise
        except CredentialError as exc:
            _log_failure("Registration confirm", email, exc)
            self._give_back(email, pending)
            raise

        LOGGER.info("Registered account %s for %s", account.id, email)
        return self._start_session(context, account)

    # Login and logout

    def login(self, context: SessionContext, email: str, password: str) -> Session:
        try:
            salt = self._accounts.find_salt_by_email(email)
            if salt is None:
                # Unknown email: still pay for a digest so both paths cost the same.
                salt = self._hasher.new_salt()
            digest = self._hasher.hash(password, salt)
            account = self._accounts.find_by_email_and_digest(email, digest)
            if account is None:
                raise InvalidCredentials(f"Login rejected for {email}")
            if not account.is_active:
                raise AccountDeactivated(f"Account {account.id} is deactivated")
        except CredentialError as exc:
            _log_failure("Login", email, exc)
            raise
        return self._start_session(context, account)

    def logout(self, context: SessionContext) -> None:
        token = context.token
        context.clear()
        if token is None:
            return
        try:
            self._sessions.delete(token)
        except RepositoryError as exc:
            _log_failure("Logout", "session", exc)

    def restore_session(
        self, context: SessionContext, token: Optional[str]
    ) -> Optional[Session]:
        return context.restore(self._sessions, token)

    # Forgot password

    def request_password_reset(self, email: str) -> OtpDispatch:
        if self._accounts.find_by_email(email) is None:
            if self._config.disclose_unknown_email:
                exc = EmailNotFound(f"No account for {email}")
                _log_failure("Password reset request", email, exc)
                raise exc
            LOGGER.info("Password reset requested for unknown email %s", email)
            return OtpDispatch(
                identity=email,
                purpose=OtpPurpose.FORGOT_PASSWORD,
                expires_in_seconds=self._config.otp_ttl_seconds,
            )
        return self._dispatch(email, OtpPurpose.FORGOT_PASSWORD)

    def verify_reset_otp(self, email: str, code: str) -> None:
        try:
            self._verifier.verify(email, OtpPurpose.FORGOT_PASSWORD, code, consume=False)
        except CredentialError as exc:
            _log_failure("Reset code check", email, exc)
            raise

    def reset_password(self, email: str, new_password: str, code: str) -> None:
        try:
            self._verifier.verify(email, OtpPurpose.FORGOT_PASSWORD, code, consume=True)
            salt = self._hasher.new_salt()
            rows = self._accounts.update_password_digest(
                email, self._hasher.hash(new_password, salt), salt
            )
            if not rows:
                raise RepositoryError(f"No account row updated for {email}")
        except CredentialError as exc:
            _log_failure("Password reset", email, exc)
            raise
        LOGGER.info("Password reset for %s", email)

    # Authenticated account operations

    def change_password(
        self, context: SessionContext, current_password: str, new_password: str
    ) -> None:
        user = self._require_user(context)
        identity = user.email
        try:
            account = self._accounts.find_by_id(user.id)
            if account is None:
                raise InvalidCredentials(f"Account {user.id} no longer exists")
            current_digest = self._hasher.hash(current_password, account.password_salt)
            if not hmac.compare_digest(current_digest, account.password_digest):
                raise InvalidCredentials(f"Current password rejected for {identity}")
            salt = self._hasher.new_salt()
            rows = self._accounts.update_password_digest(
                account.id, self._hasher.hash(new_password, salt), salt
            )
            if not rows:
                raise RepositoryError(f"No account row updated for {identity}")
        except CredentialError as exc:
            _log_failure("Change password", identity, exc)
            raise
        LOGGER.info("Password changed for account %s", user.id)

    def current_account(self, context: SessionContext) -> Account:
        user = self._require_user(context)
        account = self._accounts.find_by_id(user.id)
        if account is None:
            raise NotAuthenticated(f"Account {user.id} no longer exists")
        return account

    def update_profile(
        self, context: SessionContext, full_name: Optional[str], phone: Optional[str]
    ) -> Account:
        user = self._require_user(context)
        account = self._accounts.update_profile(user.id, full_name, phone)
        if account is None:
            exc = RepositoryError(f"No account row updated for {user.email}")
            _log_failure("Update profile", user.email, exc)
            raise exc
        self._sessions.refresh_user(context.token, account)
        context.establish(Session(token=context.token, user=account))
        return account

    def deactivate_account(self, account_id: int) -> None:
        if not self._accounts.set_active(account_id, False):
            raise RepositoryError(f"No account row updated for id {account_id}")
        LOGGER.warning("Deactivated account %s", account_id)

    def ensure_seed_admin(self) -> bool:
        return self._accounts.ensure_admin(self._config.seed_admin_email)

    def _require_user(self, context: SessionContext) -> Account:
        user = context.user
        if user is None:
            exc = NotAuthenticated("No active session")
            _log_failure("Session check", "anonymous", exc)
            raise exc
        return user

    def _dispatch(self, email: str, purpose: OtpPurpose) -> OtpDispatch:
        pending = self._generator.issue(email, purpose)
        code = self._channel.deliver(email, pending.code, purpose)
        return OtpDispatch(
            identity=email,
            purpose=purpose,
            expires_in_seconds=self._config.otp_ttl_seconds,
            code=code,
        )

    def _give_back(self, email: str, pending: PendingOtp) -> None:
        # The code was consumed but no account exists. Put it back so it can
        # confirm again inside its window, unless a newer code was issued since.
        try:
            restored = self._verifier.restore(email, OtpPurpose.REGISTRATION, pending)
        except CredentialError as exc:
            _log_failure("Registration code restore", email, exc)
            return
        if not restored:
            LOGGER.info("Kept newer registration code for %s", email)

    def _start_session(self, context: SessionContext, account: Account) -> Session:
        current = Session(token=issue_token(account.id), user=account)
        self._sessions.save(current)
        context.establish(current)
        return current

    def _role_for(self, email: str) -> str:
        seed = self._config.seed_admin_email
        return "admin" if seed and email == seed else "user"
