"""Outlet state change events.

The store emits one event per outlet whose confirmed value actually
changed. Repeated status lines with an unchanged value emit nothing.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OutletStateChange(BaseModel):
    """A confirmed change of one outlet's on/off value."""

    model_config = ConfigDict(frozen=True)

    outlet: int = Field(..., ge=1, description="1-based outlet number")
    on: bool
    previous: bool
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
