from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from generatorlog.core.clock import isoformat_utc


# Stored values are naive UTC; responses carry an explicit "Z"
UtcDateTime = Annotated[datetime, PlainSerializer(isoformat_utc, return_type=str, when_used="json")]


class ApiModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
