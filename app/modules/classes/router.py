"""Classes API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.enums import RoleEnum
from app.modules.classes.schemas import (
    AddStudentRequest,
    AttendanceRequest,
    ClassCreate,
    ClassDetailsRead,
    ClassRead,
    ClassStatusUpdate,
    ClassUpdate,
)
from app.modules.classes.service import SchedulingEngine, get_scheduling_engine
from app.modules.identity.service import get_current_user, require_roles
from app.shared.exceptions import UnauthorizedException

router = APIRouter(prefix="/classes", tags=["classes"])


@router.post("", response_model=ClassRead, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> ClassRead:
    """Create class and enroll the requested students."""
    if current_user.role == RoleEnum.TEACHER and payload.teacher_id != current_user.id:
        raise UnauthorizedException("Teacher can create classes only for themselves")
    class_ = await engine.create_class(payload, current_user.id)
    return ClassRead.model_validate(class_)


@router.get("/me", response_model=list[ClassRead])
async def list_my_classes(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(get_current_user),
) -> list[ClassRead]:
    """List classes of current user, taught or attended depending on role."""
    if current_user.role == RoleEnum.STUDENT:
        classes = await engine.list_student_classes(current_user.id, start_date, end_date)
    else:
        classes = await engine.list_teacher_classes(current_user.id, start_date, end_date)
    return [ClassRead.model_validate(class_) for class_ in classes]


@router.get("/{class_id}", response_model=ClassDetailsRead)
async def get_class(
    class_id: UUID,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    _=Depends(get_current_user),
) -> ClassDetailsRead:
    """Get class with teacher, students and material."""
    details = await engine.get_class_details(class_id)
    return ClassDetailsRead.model_validate(details)


@router.put("/{class_id}", response_model=ClassRead)
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> ClassRead:
    """Update title, description, link or material."""
    await engine.ensure_can_manage(class_id, current_user)
    class_ = await engine.update_class(class_id, payload)
    return ClassRead.model_validate(class_)


@router.patch("/{class_id}/status", response_model=ClassRead)
async def update_class_status(
    class_id: UUID,
    payload: ClassStatusUpdate,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> ClassRead:
    """Mark class as completed or no-show."""
    await engine.ensure_can_manage(class_id, current_user)
    class_ = await engine.update_class_status(class_id, payload.status)
    return ClassRead.model_validate(class_)


@router.patch("/{class_id}/cancel", response_model=ClassRead)
async def cancel_class(
    class_id: UUID,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> ClassRead:
    """Cancel class and notify participants."""
    await engine.ensure_can_manage(class_id, current_user)
    class_ = await engine.cancel_class(class_id, current_user.id)
    return ClassRead.model_validate(class_)


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class(
    class_id: UUID,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    _=Depends(require_roles(RoleEnum.ADMIN)),
) -> Response:
    """Delete class without enrollments."""
    await engine.delete_class(class_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{class_id}/students", status_code=status.HTTP_204_NO_CONTENT)
async def add_student(
    class_id: UUID,
    payload: AddStudentRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN, RoleEnum.STUDENT)),
) -> Response:
    """Enroll student; enrolling twice is a no-op."""
    if current_user.role == RoleEnum.STUDENT:
        if payload.student_id != current_user.id:
            raise UnauthorizedException("Students can enroll only themselves")
    else:
        await engine.ensure_can_manage(class_id, current_user)
    await engine.add_student_to_class(class_id, payload.student_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{class_id}/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_student(
    class_id: UUID,
    student_id: UUID,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)),
) -> Response:
    """Remove student from class."""
    await engine.ensure_can_manage(class_id, current_user)
    await engine.remove_student_from_class(class_id, student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{class_id}/students/{student_id}/attendance", status_code=status.HTTP_204_NO_CONTENT)
async def mark_attendance(
    class_id: UUID,
    student_id: UUID,
    payload: AttendanceRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    current_user=Depends(require_roles(RoleEnum.TEACHER)),
) -> Response:
    """Record whether student attended."""
    await engine.ensure_can_manage(class_id, current_user)
    await engine.mark_attendance(class_id, student_id, payload.attended)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
