from pydantic import EmailStr, Field, field_validator, model_validator

from generatorlog.api.models import ApiModel, UtcDateTime
from generatorlog.api.v0.auth.models import clean_text, normalize_email


class ProfileUpdate(ApiModel):
    name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v: str | None) -> str | None:
        return clean_text(v)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return normalize_email(v) if v is not None else None

    @model_validator(mode="after")
    def require_a_field(self) -> "ProfileUpdate":
        if not self.model_fields_set & {"name", "email"}:
            raise ValueError("At least one field (name or email) must be provided")
        return self


class ProfileResponse(ApiModel):
    id: int
    email: str
    name: str | None = None
    created_at: UtcDateTime
    updated_at: UtcDateTime
