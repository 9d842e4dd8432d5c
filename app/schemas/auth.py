from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from app.core.roles import UserRole
from app.core.security import password_problems
from app.schemas.common import CamelModel, normalize_email


def _check_password_strength(value: str) -> str:
    problems = password_problems(value)
    if problems:
        raise ValueError("; ".join(problems))
    return value


class _EmailModel(CamelModel):
    email: EmailStr

    @field_validator("email", mode="after")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return normalize_email(value)


class RegisterRequest(_EmailModel):
    password: str
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return _check_password_strength(value)

    @field_validator("first_name", "last_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name must not be blank")
        return cleaned


class LoginRequest(_EmailModel):
    password: str = Field(min_length=1)


class VerifyEmailRequest(_EmailModel):
    code: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")


class ResendOtpRequest(_EmailModel):
    type: Literal["email", "password_reset"] = "email"


class PasswordResetRequest(_EmailModel):
    pass


class PasswordResetConfirmRequest(_EmailModel):
    otp: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class UserOut(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    email_verified: bool
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    message: str
    user: UserOut
    token: str
