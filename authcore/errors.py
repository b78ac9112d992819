"""Typed failures raised by the credential core.

Every failure carries a stable ``code`` and a generic ``public_message`` that
is safe to show to an end user. Login and OTP failures share their public
messages so that callers cannot tell an unknown email from a wrong password,
or a wrong code from an expired one.
"""

from __future__ import annotations

from enum import Enum


class DuplicateReason(str, Enum):
    USERNAME_TAKEN = "username_taken"
    EMAIL_TAKEN = "email_taken"


class CredentialError(Exception):
    code = "credential_error"
    public_message = "Request could not be completed"
    infrastructure = False

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.public_message}


class DuplicateIdentity(CredentialError):
    code = "duplicate_identity"
    public_message = "Username or email is already in use"

    def __init__(self, reason: DuplicateReason, detail: str | None = None) -> None:
        super().__init__(detail or f"Account already exists ({reason.value})")
        self.reason = reason

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["reason"] = self.reason.value
        return payload


class InvalidCredentials(CredentialError):
    code = "invalid_credentials"
    public_message = "Invalid credentials"


class AccountDeactivated(CredentialError):
    code = "account_deactivated"
    public_message = "Account is deactivated"


class EmailNotFound(CredentialError):
    code = "email_not_found"
    public_message = "No account is registered with this email"


class NotAuthenticated(CredentialError):
    code = "not_authenticated"
    public_message = "Authentication required"


class OtpError(CredentialError):
    code = "otp_error"
    public_message = "Invalid or expired code"
    # The outward code is shared by every subclass; ``code`` stays in the logs.
    public_code = "invalid_code"

    def to_dict(self) -> dict:
        return {"error": self.public_code, "message": self.public_message}


class OtpNotFound(OtpError):
    code = "otp_not_found"


class OtpExpired(OtpError):
    code = "otp_expired"


class OtpMismatch(OtpError):
    code = "otp_mismatch"


class HashingFailure(CredentialError):
    code = "hashing_failure"
    public_message = "Internal error"
    infrastructure = True


class RepositoryError(CredentialError):
    code = "repository_error"
    public_message = "Internal error"
    infrastructure = True


class DeliveryError(CredentialError):
    code = "delivery_error"
    public_message = "Could not deliver the code"
    infrastructure = True
