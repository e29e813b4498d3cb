"""Availability business logic layer."""

from __future__ import annotations

from datetime import time
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import DayOfWeekEnum, RoleEnum
from app.modules.availability.models import TimeSlot
from app.modules.availability.repository import AvailabilityRepository
from app.modules.availability.schemas import TimeSlotCreate, TimeSlotUpdate
from app.modules.identity.models import User
from app.shared.exceptions import UnauthorizedException, ValidationException


def validate_time_window(start_time: time, end_time: time) -> None:
    """Reject empty or inverted wall-clock windows."""
    if start_time >= end_time:
        raise ValidationException("Start time must be before end time")


class AvailabilityService:
    """Teacher availability service."""

    def __init__(self, repository: AvailabilityRepository) -> None:
        self.repository = repository

    async def _get_managed_slot(self, slot_id: UUID, actor: User) -> TimeSlot:
        slot = await self.repository.get_time_slot_by_id(slot_id)
        if actor.role != RoleEnum.ADMIN and slot.teacher_id != actor.id:
            raise UnauthorizedException("Teacher can manage only own time slots")
        return slot

    async def create_time_slot(self, payload: TimeSlotCreate, actor: User) -> TimeSlot:
        """Create a recurring slot for the acting teacher."""
        if actor.role != RoleEnum.TEACHER:
            raise UnauthorizedException("Only teachers can create time slots")
        validate_time_window(payload.start_time, payload.end_time)

        return await self.repository.create_time_slot(
            teacher_id=actor.id,
            day_of_week=int(payload.day_of_week),
            start_time=payload.start_time,
            end_time=payload.end_time,
            max_students=payload.max_students,
        )

    async def get_time_slot(self, slot_id: UUID) -> TimeSlot:
        return await self.repository.get_time_slot_by_id(slot_id)

    async def list_time_slots_for_teacher(self, teacher_id: UUID) -> list[TimeSlot]:
        return await self.repository.list_time_slots_for_teacher(teacher_id)

    async def list_available_slots(self, teacher_id: UUID, day_of_week: DayOfWeekEnum) -> list[TimeSlot]:
        """Enabled slots of a teacher on one weekday, earliest first."""
        return await self.repository.list_available_time_slots(teacher_id, int(day_of_week))

    async def update_time_slot(self, slot_id: UUID, payload: TimeSlotUpdate, actor: User) -> TimeSlot:
        """Replace window, capacity and enabled flag of a slot."""
        slot = await self._get_managed_slot(slot_id, actor)
        validate_time_window(payload.start_time, payload.end_time)

        return await self.repository.update_time_slot(
            slot,
            day_of_week=int(payload.day_of_week),
            start_time=payload.start_time,
            end_time=payload.end_time,
            max_students=payload.max_students,
            is_available=payload.is_available,
        )

    async def delete_time_slot(self, slot_id: UUID, actor: User) -> None:
        """Delete a slot; classes created from it keep their own times."""
        await self._get_managed_slot(slot_id, actor)
        await self.repository.delete_time_slot(slot_id)

    async def toggle_availability(self, slot_id: UUID, is_available: bool, actor: User) -> None:
        await self._get_managed_slot(slot_id, actor)
        await self.repository.set_time_slot_availability(slot_id, is_available)


async def get_availability_service(session: AsyncSession = Depends(get_db_session)) -> AvailabilityService:
    """Dependency provider for availability service."""
    return AvailabilityService(AvailabilityRepository(session))
