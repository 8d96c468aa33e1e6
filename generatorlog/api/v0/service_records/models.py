from datetime import datetime

from pydantic import Field, field_validator

from generatorlog.api.models import ApiModel, UtcDateTime
from generatorlog.api.v0.auth.models import clean_text
from generatorlog.core.clock import as_naive_utc


class ServiceRecordCreate(ApiModel):
    performed_at: datetime | None = None  # defaults to now
    notes: str | None = Field(None, max_length=500)

    @field_validator("performed_at")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)

    @field_validator("notes")
    @classmethod
    def sanitize_notes(cls, v: str | None) -> str | None:
        return clean_text(v)


class ServiceRecordResponse(ApiModel):
    id: int
    generator_id: int
    performed_at: UtcDateTime
    hours_at_service: float
    notes: str | None = None
    created_at: UtcDateTime
