"""Availability API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.enums import DayOfWeekEnum, RoleEnum
from app.modules.availability.schemas import (
    TimeSlotCreate,
    TimeSlotRead,
    TimeSlotUpdate,
    ToggleAvailabilityRequest,
)
from app.modules.availability.service import AvailabilityService, get_availability_service
from app.modules.identity.service import get_current_user, require_roles

router = APIRouter(prefix="/time-slots", tags=["availability"])


@router.post("", response_model=TimeSlotRead, status_code=status.HTTP_201_CREATED)
async def create_time_slot(
    payload: TimeSlotCreate,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(require_roles(RoleEnum.TEACHER)),
) -> TimeSlotRead:
    """Create recurring availability for current teacher."""
    slot = await service.create_time_slot(payload, current_user)
    return TimeSlotRead.model_validate(slot)


@router.get("/me", response_model=list[TimeSlotRead])
async def list_my_time_slots(
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(require_roles(RoleEnum.TEACHER)),
) -> list[TimeSlotRead]:
    """List time slots of current teacher."""
    slots = await service.list_time_slots_for_teacher(current_user.id)
    return [TimeSlotRead.model_validate(slot) for slot in slots]


@router.get("/teacher/{teacher_id}", response_model=list[TimeSlotRead])
async def list_teacher_time_slots(
    teacher_id: UUID,
    service: AvailabilityService = Depends(get_availability_service),
    _=Depends(get_current_user),
) -> list[TimeSlotRead]:
    """List all time slots of a teacher."""
    slots = await service.list_time_slots_for_teacher(teacher_id)
    return [TimeSlotRead.model_validate(slot) for slot in slots]


@router.get("/teacher/{teacher_id}/available", response_model=list[TimeSlotRead])
async def list_available_slots(
    teacher_id: UUID,
    day_of_week: DayOfWeekEnum = Query(),
    service: AvailabilityService = Depends(get_availability_service),
    _=Depends(get_current_user),
) -> list[TimeSlotRead]:
    """List enabled time slots of a teacher on one weekday."""
    slots = await service.list_available_slots(teacher_id, day_of_week)
    return [TimeSlotRead.model_validate(slot) for slot in slots]


@router.get("/{slot_id}", response_model=TimeSlotRead)
async def get_time_slot(
    slot_id: UUID,
    service: AvailabilityService = Depends(get_availability_service),
    _=Depends(get_current_user),
) -> TimeSlotRead:
    """Get one time slot."""
    slot = await service.get_time_slot(slot_id)
    return TimeSlotRead.model_validate(slot)


@router.put("/{slot_id}", response_model=TimeSlotRead)
async def update_time_slot(
    slot_id: UUID,
    payload: TimeSlotUpdate,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> TimeSlotRead:
    """Replace time slot window and capacity."""
    slot = await service.update_time_slot(slot_id, payload, current_user)
    return TimeSlotRead.model_validate(slot)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_slot(
    slot_id: UUID,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> Response:
    """Delete time slot."""
    await service.delete_time_slot(slot_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{slot_id}/toggle", status_code=status.HTTP_204_NO_CONTENT)
async def toggle_time_slot(
    slot_id: UUID,
    payload: ToggleAvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> Response:
    """Enable or disable time slot."""
    await service.toggle_availability(slot_id, payload.is_available, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
