"""Class scheduling schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.core.enums import ClassStatusEnum
from app.modules.identity.schemas import UserProfileRead
from app.modules.materials.schemas import MaterialRead


class ClassCreate(BaseModel):
    """Create class request."""

    teacher_id: UUID
    time_slot_id: UUID | None = None
    scheduled_date: date
    start_time: time
    end_time: time
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    student_ids: list[UUID] = Field(default_factory=list)


class ClassUpdate(BaseModel):
    """Partial update of descriptive class fields."""

    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    class_link: str | None = Field(default=None, max_length=512)
    material_id: UUID | None = None


class ClassStatusUpdate(BaseModel):
    status: ClassStatusEnum


class AddStudentRequest(BaseModel):
    student_id: UUID


class AttendanceRequest(BaseModel):
    attended: bool


class ClassRead(BaseModel):
    """Class response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    teacher_id: UUID
    time_slot_id: UUID | None
    scheduled_date: date
    start_time: time
    end_time: time
    status: ClassStatusEnum
    title: str | None
    description: str | None
    class_link: str | None
    material_id: UUID | None
    created_by: UUID
    created_at: datetime
    updated_at: datetime


class EnrollmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: UUID
    added_by: UUID
    attended: bool | None
    created_at: datetime


class ClassDetailsRead(BaseModel):
    """Class with teacher, roster and material."""

    model_config = ConfigDict(from_attributes=True)

    class_: ClassRead = Field(serialization_alias="class", validation_alias=AliasChoices("class_", "class"))
    teacher: UserProfileRead | None
    students: list[UserProfileRead]
    enrollments: list[EnrollmentRead]
    material: MaterialRead | None
