from pydantic import Field, field_validator

from generatorlog.api.models import ApiModel, UtcDateTime
from generatorlog.api.v0.auth.models import clean_text


class ApiKeyCreate(ApiModel):
    name: str | None = Field(None, max_length=255)

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v: str | None) -> str | None:
        return clean_text(v)


class ApiKeyListItem(ApiModel):
    """Listing entry; the raw key is never included"""
    id: int
    name: str | None = None
    hint: str  # formatted as "gl_...abcd"
    last_used_at: UtcDateTime | None = None
    created_at: UtcDateTime


class ApiKeySecretResponse(ApiModel):
    """Response when creating or resetting a key - includes the raw key (only shown once!)"""
    id: int
    name: str | None = None
    key: str
    hint: str
    created_at: UtcDateTime
