import bleach
from pydantic import EmailStr, Field, field_validator

from generatorlog.api.models import ApiModel, UtcDateTime


def normalize_email(value: str) -> str:
    return value.strip().lower()


def clean_text(value: str | None) -> str | None:
    """Strip markup from free text; blank results become None."""
    if value is None:
        return None
    cleaned = bleach.clean(value, tags=[], strip=True).strip()
    return cleaned or None


class EnrollRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=256)
    name: str | None = Field(None, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v: str | None) -> str | None:
        return clean_text(v)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class PasswordChangeRequest(ApiModel):
    current_password: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=8, max_length=256)


class UserResponse(ApiModel):
    id: int
    email: str
    name: str | None = None
    created_at: UtcDateTime
