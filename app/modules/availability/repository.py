"""Availability repository layer."""

from __future__ import annotations

from datetime import time
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import storage_operation, utc_now
from app.modules.availability.models import TimeSlot
from app.shared.exceptions import NotFoundException


class AvailabilityRepository:
    """DB access for teacher time slots.

    Stores what it is given; time window and capacity rules are enforced by
    the calling service.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @storage_operation("create time slot")
    async def create_time_slot(
        self,
        teacher_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
        max_students: int,
    ) -> TimeSlot:
        slot = TimeSlot(
            teacher_id=teacher_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            max_students=max_students,
            is_available=True,
        )
        self.session.add(slot)
        await self.session.flush()
        return slot

    @storage_operation("load time slot")
    async def get_time_slot_by_id(self, slot_id: UUID) -> TimeSlot:
        stmt = select(TimeSlot).where(TimeSlot.id == slot_id)
        slot = await self.session.scalar(stmt)
        if slot is None:
            raise NotFoundException("Time slot not found")
        return slot

    @storage_operation("list time slots")
    async def list_time_slots_for_teacher(self, teacher_id: UUID) -> list[TimeSlot]:
        stmt = (
            select(TimeSlot)
            .where(TimeSlot.teacher_id == teacher_id)
            .order_by(TimeSlot.day_of_week.asc(), TimeSlot.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("list available time slots")
    async def list_available_time_slots(self, teacher_id: UUID, day_of_week: int) -> list[TimeSlot]:
        stmt = (
            select(TimeSlot)
            .where(
                TimeSlot.teacher_id == teacher_id,
                TimeSlot.day_of_week == day_of_week,
                TimeSlot.is_available.is_(True),
            )
            .order_by(TimeSlot.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("update time slot")
    async def update_time_slot(self, slot: TimeSlot, **changes) -> TimeSlot:
        for key, value in changes.items():
            setattr(slot, key, value)
        await self.session.flush()
        return slot

    @storage_operation("delete time slot")
    async def delete_time_slot(self, slot_id: UUID) -> None:
        result = await self.session.execute(delete(TimeSlot).where(TimeSlot.id == slot_id))
        if result.rowcount == 0:
            raise NotFoundException("Time slot not found")

    @storage_operation("toggle time slot")
    async def set_time_slot_availability(self, slot_id: UUID, is_available: bool) -> None:
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id)
            .values(is_available=is_available, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundException("Time slot not found")
