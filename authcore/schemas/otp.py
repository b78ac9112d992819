from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class OtpPurpose(str, Enum):
    REGISTRATION = "registration"
    FORGOT_PASSWORD = "forgot-password"


@dataclass(frozen=True)
class PendingOtp:
    code: str
    issued_at: datetime


class OtpDispatch(BaseModel):
    identity: str
    purpose: OtpPurpose
    expires_in_seconds: int
    code: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class ResetOtpVerifyRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    code: str = Field(min_length=1, max_length=10)


class ResetPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    code: str = Field(min_length=1, max_length=10)
    new_password: str = Field(min_length=1, max_length=128, repr=False)
