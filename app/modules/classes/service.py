"""Class scheduling engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import TERMINAL_CLASS_STATUSES, ClassStatusEnum, RoleEnum
from app.core.metrics import CLASS_CONFLICTS_TOTAL, CLASSES_CREATED_TOTAL
from app.modules.availability.repository import AvailabilityRepository
from app.modules.availability.service import validate_time_window
from app.modules.classes.conflicts import ConflictChecker
from app.modules.classes.models import Class, ClassStudent
from app.modules.classes.repository import ClassesRepository, EnrollmentRepository
from app.modules.classes.schemas import ClassCreate, ClassUpdate
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.materials.models import Material
from app.modules.materials.repository import MaterialsRepository
from app.modules.notifications.service import NotificationFanout, get_notification_fanout
from app.modules.notifications.templates import ClassSnapshot
from app.shared.exceptions import (
    BusinessRuleException,
    ClassCapacityExceededException,
    ClassFullException,
    ConflictException,
    InfrastructureException,
    InvalidStatusTransitionException,
    NotFoundException,
    PastClassException,
    TeacherUnavailableException,
    UnauthorizedException,
    ValidationException,
)
from app.shared.utils import local_datetime, local_today, utc_now

logger = logging.getLogger(__name__)

SETTABLE_CLASS_STATUSES = frozenset({ClassStatusEnum.COMPLETED, ClassStatusEnum.NO_SHOW})


@dataclass(slots=True)
class ClassDetails:
    """Class with its teacher, roster and material resolved."""

    class_: Class
    teacher: User | None
    students: list[User] = field(default_factory=list)
    enrollments: list[ClassStudent] = field(default_factory=list)
    material: Material | None = None


class SchedulingEngine:
    """Create classes without double booking and keep enrollments within capacity."""

    def __init__(
        self,
        classes_repository: ClassesRepository,
        enrollment_repository: EnrollmentRepository,
        availability_repository: AvailabilityRepository,
        identity_repository: IdentityRepository,
        materials_repository: MaterialsRepository,
        notifications: NotificationFanout,
        *,
        school_timezone: str = "UTC",
        default_past_days: int = 30,
        default_future_days: int = 30,
    ) -> None:
        self.classes_repository = classes_repository
        self.enrollment_repository = enrollment_repository
        self.availability_repository = availability_repository
        self.identity_repository = identity_repository
        self.materials_repository = materials_repository
        self.notifications = notifications
        self.conflict_checker = ConflictChecker(classes_repository)
        self.school_timezone = school_timezone
        self.default_past_days = default_past_days
        self.default_future_days = default_future_days

    async def _get_class(self, class_id: UUID) -> Class:
        class_ = await self.classes_repository.get_class_by_id(class_id)
        if class_ is None:
            raise NotFoundException("Class not found")
        return class_

    async def ensure_can_manage(self, class_id: UUID, actor: User) -> Class:
        """Admins manage every class, teachers only their own."""
        class_ = await self._get_class(class_id)
        if actor.role != RoleEnum.ADMIN and class_.teacher_id != actor.id:
            raise UnauthorizedException("Teacher can manage only own classes")
        return class_

    async def create_class(self, payload: ClassCreate, created_by: UUID) -> Class:
        """Create a class for a free teacher window and enroll the requested students.

        Students that cannot be enrolled are logged and skipped; the class is
        still created. Notifications go out only after the transaction commits.
        """
        validate_time_window(payload.start_time, payload.end_time)

        teacher = await self.identity_repository.get_user_by_id(payload.teacher_id)
        if teacher is None or teacher.role != RoleEnum.TEACHER:
            raise NotFoundException("Teacher not found")

        student_ids = list(dict.fromkeys(payload.student_ids))
        known_users = await self.identity_repository.list_users_by_ids(student_ids)

        async with self.classes_repository.lock_teacher_schedule(payload.teacher_id):
            available = await self.conflict_checker.is_teacher_available(
                payload.teacher_id,
                payload.scheduled_date,
                payload.start_time,
                payload.end_time,
            )
            if not available:
                CLASS_CONFLICTS_TOTAL.inc()
                raise TeacherUnavailableException("Teacher not available at this time")

            if payload.time_slot_id is not None:
                slot = await self.availability_repository.get_time_slot_by_id(payload.time_slot_id)
                if slot.teacher_id != payload.teacher_id:
                    raise BusinessRuleException("Time slot belongs to another teacher")
                if len(student_ids) > slot.max_students:
                    raise ClassCapacityExceededException(
                        f"Time slot allows at most {slot.max_students} students",
                    )

            try:
                class_ = await self.classes_repository.create_class(
                    teacher_id=payload.teacher_id,
                    time_slot_id=payload.time_slot_id,
                    scheduled_date=payload.scheduled_date,
                    start_time=payload.start_time,
                    end_time=payload.end_time,
                    title=payload.title,
                    description=payload.description,
                    created_by=created_by,
                )
            except TeacherUnavailableException:
                CLASS_CONFLICTS_TOTAL.inc()
                raise

        enrolled: list[UUID] = []
        for student_id in student_ids:
            student = known_users.get(student_id)
            if student is None or student.role != RoleEnum.STUDENT:
                logger.warning("Student %s not found, not enrolled in class %s", student_id, class_.id)
                continue
            try:
                added = await self.enrollment_repository.add_student(class_.id, student_id, created_by)
            except InfrastructureException:
                logger.warning("Could not enroll student %s in class %s, skipping", student_id, class_.id)
                continue
            if added:
                enrolled.append(student_id)

        CLASSES_CREATED_TOTAL.inc()
        logger.info(
            "Class %s created for teacher %s on %s with %s students",
            class_.id,
            class_.teacher_id,
            class_.scheduled_date,
            len(enrolled),
        )
        await self.notifications.notify_class_created(
            ClassSnapshot.from_class(class_),
            enrolled,
            enrolled_count=len(enrolled),
        )
        return class_

    async def add_student_to_class(self, class_id: UUID, student_id: UUID, added_by: UUID) -> bool:
        """Enroll one student; returns False when the student was already enrolled."""
        async with self.classes_repository.lock_class(class_id) as class_:
            if class_ is None:
                raise NotFoundException("Class not found")
            if class_.status != ClassStatusEnum.SCHEDULED:
                raise BusinessRuleException("Students can only be added to scheduled classes")

            starts_at = local_datetime(class_.scheduled_date, class_.start_time, self.school_timezone)
            if starts_at <= utc_now():
                raise PastClassException("Cannot add students to a class that has already started")

            student = await self.identity_repository.get_user_by_id(student_id)
            if student is None or student.role != RoleEnum.STUDENT:
                raise NotFoundException("Student not found")

            if await self.enrollment_repository.is_student_enrolled(class_id, student_id):
                return False

            if class_.time_slot_id is not None:
                slot = await self.availability_repository.get_time_slot_by_id(class_.time_slot_id)
                enrolled_count = await self.enrollment_repository.count_students_in_class(class_id)
                if enrolled_count >= slot.max_students:
                    raise ClassFullException("Class is full")

            added = await self.enrollment_repository.add_student(class_id, student_id, added_by)

        if added:
            await self.notifications.notify_student_added(ClassSnapshot.from_class(class_), student_id)
        return added

    async def remove_student_from_class(self, class_id: UUID, student_id: UUID) -> None:
        await self.enrollment_repository.remove_student(class_id, student_id)

    async def get_class_details(self, class_id: UUID) -> ClassDetails:
        class_ = await self._get_class(class_id)
        enrollments = await self.enrollment_repository.list_enrollments(class_id)
        users = await self.identity_repository.list_users_by_ids(
            [class_.teacher_id, *(enrollment.student_id for enrollment in enrollments)],
        )
        material = None
        if class_.material_id is not None:
            material = await self.materials_repository.get_material_by_id(class_.material_id)

        return ClassDetails(
            class_=class_,
            teacher=users.get(class_.teacher_id),
            students=[users[e.student_id] for e in enrollments if e.student_id in users],
            enrollments=enrollments,
            material=material,
        )

    def _resolve_range(self, start_date: date | None, end_date: date | None) -> tuple[date, date]:
        today = local_today(utc_now(), self.school_timezone)
        start_date = start_date or today - timedelta(days=self.default_past_days)
        end_date = end_date or today + timedelta(days=self.default_future_days)
        if start_date > end_date:
            raise ValidationException("start_date must not be after end_date")
        return start_date, end_date

    async def list_teacher_classes(
        self,
        teacher_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Class]:
        start_date, end_date = self._resolve_range(start_date, end_date)
        return await self.classes_repository.list_classes_for_teacher(teacher_id, start_date, end_date)

    async def list_student_classes(
        self,
        student_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Class]:
        start_date, end_date = self._resolve_range(start_date, end_date)
        return await self.classes_repository.list_classes_for_student(student_id, start_date, end_date)

    async def update_class(self, class_id: UUID, payload: ClassUpdate) -> Class:
        """Overwrite only the descriptive fields present in the payload."""
        class_ = await self._get_class(class_id)
        changes = payload.model_dump(exclude_unset=True)
        material_id = changes.get("material_id")
        if material_id is not None and await self.materials_repository.get_material_by_id(material_id) is None:
            raise NotFoundException("Material not found")
        if not changes:
            return class_
        return await self.classes_repository.update_class(class_, **changes)

    async def update_class_status(self, class_id: UUID, status: ClassStatusEnum) -> Class:
        """Complete a class or mark it as no-show."""
        if status == ClassStatusEnum.CANCELLED:
            raise ValidationException("Use the cancel operation to cancel a class")
        if status not in SETTABLE_CLASS_STATUSES:
            raise ValidationException(f"Class status cannot be set to {status}")

        class_ = await self._get_class(class_id)
        await self._transition(class_, status)
        return class_

    async def cancel_class(self, class_id: UUID, cancelled_by: UUID) -> Class:
        """Cancel a class and notify its students and teacher.

        Enrollments are kept; delivery failures never change the outcome.
        """
        async with self.classes_repository.lock_class(class_id) as class_:
            if class_ is None:
                raise NotFoundException("Class not found")
            await self._transition(class_, ClassStatusEnum.CANCELLED)
            student_ids = await self.enrollment_repository.list_student_ids_for_class(class_id)

        logger.info("Class %s cancelled by %s", class_id, cancelled_by)
        await self.notifications.notify_class_cancelled(ClassSnapshot.from_class(class_), student_ids)
        return class_

    async def _transition(self, class_: Class, status: ClassStatusEnum) -> None:
        if class_.status in TERMINAL_CLASS_STATUSES:
            raise InvalidStatusTransitionException(f"Class is already {class_.status}")
        changed = await self.classes_repository.update_status(
            class_.id,
            status,
            expected_status=ClassStatusEnum.SCHEDULED,
        )
        if not changed:
            raise InvalidStatusTransitionException("Class status was changed concurrently")

    async def mark_attendance(self, class_id: UUID, student_id: UUID, attended: bool) -> None:
        await self.enrollment_repository.mark_attendance(class_id, student_id, attended)

    async def delete_class(self, class_id: UUID) -> None:
        """Delete a class that has no enrollments left."""
        async with self.classes_repository.lock_class(class_id) as class_:
            if class_ is None:
                raise NotFoundException("Class not found")
            if await self.enrollment_repository.count_students_in_class(class_id) > 0:
                raise ConflictException("Class has enrolled students; remove them before deleting")
            await self.classes_repository.delete_class(class_id)


async def get_scheduling_engine(
    session: AsyncSession = Depends(get_db_session),
    notifications: NotificationFanout = Depends(get_notification_fanout),
) -> SchedulingEngine:
    """Dependency provider for the scheduling engine."""
    settings = get_settings()
    return SchedulingEngine(
        classes_repository=ClassesRepository(session),
        enrollment_repository=EnrollmentRepository(session),
        availability_repository=AvailabilityRepository(session),
        identity_repository=IdentityRepository(session),
        materials_repository=MaterialsRepository(session),
        notifications=notifications,
        school_timezone=settings.school_timezone,
        default_past_days=settings.class_list_default_past_days,
        default_future_days=settings.class_list_default_future_days,
    )
