from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator, model_validator

from generatorlog.api.models import ApiModel, UtcDateTime
from generatorlog.api.v0.auth.models import clean_text
from generatorlog.core.clock import as_naive_utc


class GeneratorCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    service_interval_months: int = Field(6, gt=0, le=120)
    service_interval_hours: float = Field(100.0, gt=0)
    installed_at: datetime | None = None

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        cleaned = clean_text(v)
        if not cleaned:
            raise ValueError("name must not be empty")
        return cleaned

    @field_validator("installed_at")
    @classmethod
    def normalize_installed_at(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)


class GeneratorUpdate(GeneratorCreate):
    """Partial update; run state and hours are not editable here"""
    name: str | None = Field(None, min_length=1, max_length=255)
    service_interval_months: int | None = Field(None, gt=0, le=120)
    service_interval_hours: float | None = Field(None, gt=0)

    @model_validator(mode="after")
    def require_a_field(self) -> "GeneratorUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        for field in ("name", "service_interval_months", "service_interval_hours"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class MaintenanceStatus(ApiModel):
    hours_since_service: float
    months_since_service: int
    due: bool


class GeneratorResponse(ApiModel):
    id: int
    name: str
    service_interval_months: int
    service_interval_hours: float
    total_hours: float
    last_service_date: UtcDateTime | None = None
    last_service_hours: float | None = None
    installed_at: UtcDateTime | None = None
    is_running: bool
    current_start_time: UtcDateTime | None = None
    created_at: UtcDateTime
    updated_at: UtcDateTime
    maintenance: MaintenanceStatus


class ToggleRequest(ApiModel):
    generator_id: int = Field(..., gt=0)


class ToggleResponse(ApiModel):
    """started carries startTime, stopped carries durationHours"""
    status: Literal["started", "stopped"]
    is_running: bool
    total_hours: float
    start_time: UtcDateTime | None = None
    duration_hours: float | None = None
