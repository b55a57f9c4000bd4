from datetime import datetime
from typing import Callable

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

MIN_PASSWORD_LENGTH = 12
_SPECIAL_CHARS = set("!@#$%^&*()_+-=[]{}|;':\",./<>?`~\\")

_PASSWORD_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda v: len(v) >= MIN_PASSWORD_LENGTH, f"at least {MIN_PASSWORD_LENGTH} characters"),
    (lambda v: any(c.isupper() for c in v), "one uppercase letter"),
    (lambda v: any(c.islower() for c in v), "one lowercase letter"),
    (lambda v: any(c.isdigit() for c in v), "one digit"),
    (lambda v: any(c in _SPECIAL_CHARS for c in v), "one special character"),
]

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


def check_password_strength(value: str) -> str:
    missing = [label for rule, label in _PASSWORD_RULES if not rule(value)]
    if missing:
        raise ValueError("Password must contain: " + ", ".join(missing))
    return value


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str
    phone: str | None = Field(default=None, max_length=20)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)


class UserLogin(BaseModel):
    username: str = Field(min_length=1, description="Username or email address")
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    phone: str | None = None
    avatar: str | None = None
    is_active: bool
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserProfileUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=20)
    avatar: str | None = Field(default=None, max_length=255)


class UserPasswordChange(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)
