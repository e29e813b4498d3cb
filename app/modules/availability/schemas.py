"""Availability schemas."""

from __future__ import annotations

from datetime import datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import DayOfWeekEnum


class TimeSlotCreate(BaseModel):
    """Create time slot request."""

    day_of_week: DayOfWeekEnum
    start_time: time
    end_time: time
    max_students: int = Field(ge=1)


class TimeSlotUpdate(BaseModel):
    """Replace time slot request."""

    day_of_week: DayOfWeekEnum
    start_time: time
    end_time: time
    max_students: int = Field(ge=1)
    is_available: bool = True


class ToggleAvailabilityRequest(BaseModel):
    """Enable or disable a time slot."""

    is_available: bool


class TimeSlotRead(BaseModel):
    """Time slot response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    teacher_id: UUID
    day_of_week: DayOfWeekEnum
    start_time: time
    end_time: time
    max_students: int
    is_available: bool
    created_at: datetime
    updated_at: datetime
