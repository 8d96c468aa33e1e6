from datetime import datetime

from pydantic import field_validator, model_validator

from generatorlog.api.models import ApiModel, UtcDateTime
from generatorlog.core.clock import as_naive_utc


class UsageLogCreate(ApiModel):
    start_time: datetime
    end_time: datetime | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)

    @model_validator(mode="after")
    def check_order(self) -> "UsageLogCreate":
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class UsageLogUpdate(ApiModel):
    """Correction of a past entry; endTime may be set to null to reopen it"""
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)

    @model_validator(mode="after")
    def check_order(self) -> "UsageLogUpdate":
        if "start_time" in self.model_fields_set and self.start_time is None:
            raise ValueError("startTime cannot be null")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class UsageLogResponse(ApiModel):
    id: int
    generator_id: int
    start_time: UtcDateTime
    end_time: UtcDateTime | None = None
    duration_hours: float | None = None
    created_at: UtcDateTime
    updated_at: UtcDateTime
