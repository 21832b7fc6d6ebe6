from datetime import datetime

from pydantic import AliasChoices, Field, field_validator

from posledger.models.user import UserRole
from posledger.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    name: str | None = Field(default=None, max_length=120)
    email: str = Field(min_length=5, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=8, max_length=128)
    role: UserRole = UserRole.CASHIER

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value: str | UserRole):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class LoginRequest(CamelModel):
    email: str = Field(min_length=1, max_length=320, validation_alias=AliasChoices("email", "identity"))
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("email must not be empty")
        return normalized


class UserOut(CamelModel):
    id: int
    email: str
    name: str | None
    role: UserRole
    created_at: datetime


class LoginResponse(CamelModel):
    token: str
    user: UserOut
