from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["user", "admin"]


class Account(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Role = "user"
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    password_salt: str = Field(default="", exclude=True, repr=False)
    password_digest: str = Field(default="", exclude=True, repr=False)


class NewAccount(BaseModel):
    username: str
    email: str
    password_salt: str = Field(repr=False)
    password_digest: str = Field(repr=False)
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Role = "user"
    is_active: bool = True


def _strip_required(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("This field is required")
    return cleaned


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class RegistrationOtpRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=255)

    @field_validator("username", "email")
    @classmethod
    def normalize_required_text(cls, value: str) -> str:
        return _strip_required(value)


class RegistrationConfirmRequest(RegistrationOtpRequest):
    password: str = Field(min_length=1, max_length=128, repr=False)
    full_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    code: str = Field(min_length=1, max_length=10)

    @field_validator("full_name", "phone")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128, repr=False)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)

    @field_validator("full_name", "phone")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128, repr=False)
    new_password: str = Field(min_length=1, max_length=128, repr=False)


class SessionResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: Account
