"""Shared pydantic building blocks for baseline and diff models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from aumai_driftwatch.hashing import format_timestamp

__all__ = [
    "SEVERITY_ORDER",
    "BehaviorAspect",
    "CamelModel",
    "ChangeSeverity",
    "Timestamp",
    "ensure_utc",
]

ChangeSeverity = Literal["none", "info", "warning", "breaking"]

# Lowest to highest.
SEVERITY_ORDER: tuple[ChangeSeverity, ...] = ("none", "info", "warning", "breaking")

BehaviorAspect = Literal[
    "tool",
    "schema",
    "description",
    "response_structure",
    "error_pattern",
    "security",
    "performance",
    "schema_evolution",
    "deprecation",
    "error_handling",
    "response_format",
]


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Serialises exactly as the canonical hasher normalises datetimes.
Timestamp = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    """Base model whose JSON field names are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        """Return the on-disk JSON representation of this model."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
