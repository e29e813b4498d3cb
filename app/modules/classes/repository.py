"""Class and enrollment repository layer."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, time
from uuid import UUID

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import storage_failure, storage_operation, utc_now
from app.core.enums import ClassStatusEnum
from app.modules.classes.models import CLASS_OVERLAP_CONSTRAINT, Class, ClassStudent
from app.shared.exceptions import NotFoundException, TeacherUnavailableException

UPDATABLE_CLASS_FIELDS = frozenset({"title", "description", "class_link", "material_id"})


class ClassesRepository:
    """DB operations for dated classes."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def lock_teacher_schedule(self, teacher_id: UUID) -> AsyncIterator[None]:
        """Serialize schedule writes of one teacher.

        The advisory lock is transaction scoped: it is released by the commit
        or rollback of the request session, not by leaving the block.
        """
        key = func.hashtextextended(f"class_schedule:{teacher_id}", 0)
        try:
            await self.session.execute(select(func.pg_advisory_xact_lock(key)))
        except SQLAlchemyError as exc:
            raise storage_failure("lock teacher schedule", exc) from exc
        yield

    @asynccontextmanager
    async def lock_class(self, class_id: UUID) -> AsyncIterator[Class | None]:
        """Row-lock a class until the transaction ends and yield it."""
        stmt = (
            select(Class)
            .where(Class.id == class_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        try:
            locked = await self.session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise storage_failure("lock class", exc) from exc
        yield locked

    @storage_operation("create class")
    async def create_class(
        self,
        teacher_id: UUID,
        time_slot_id: UUID | None,
        scheduled_date: date,
        start_time: time,
        end_time: time,
        title: str | None,
        description: str | None,
        created_by: UUID,
    ) -> Class:
        class_ = Class(
            teacher_id=teacher_id,
            time_slot_id=time_slot_id,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            status=ClassStatusEnum.SCHEDULED,
            title=title,
            description=description,
            created_by=created_by,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(class_)
        except IntegrityError as exc:
            if CLASS_OVERLAP_CONSTRAINT in str(exc.orig):
                raise TeacherUnavailableException("Teacher not available at this time") from exc
            raise
        return class_

    @storage_operation("load class")
    async def get_class_by_id(self, class_id: UUID) -> Class | None:
        stmt = select(Class).where(Class.id == class_id)
        return await self.session.scalar(stmt)

    @storage_operation("list teacher classes")
    async def list_classes_for_teacher(self, teacher_id: UUID, start_date: date, end_date: date) -> list[Class]:
        stmt = (
            select(Class)
            .where(
                Class.teacher_id == teacher_id,
                Class.scheduled_date >= start_date,
                Class.scheduled_date <= end_date,
            )
            .order_by(Class.scheduled_date.asc(), Class.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("list student classes")
    async def list_classes_for_student(self, student_id: UUID, start_date: date, end_date: date) -> list[Class]:
        stmt = (
            select(Class)
            .join(ClassStudent, ClassStudent.class_id == Class.id)
            .where(
                ClassStudent.student_id == student_id,
                Class.scheduled_date >= start_date,
                Class.scheduled_date <= end_date,
            )
            .order_by(Class.scheduled_date.asc(), Class.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("list active classes")
    async def list_active_classes_on_date(self, teacher_id: UUID, scheduled_date: date) -> list[Class]:
        stmt = (
            select(Class)
            .where(
                Class.teacher_id == teacher_id,
                Class.scheduled_date == scheduled_date,
                Class.status != ClassStatusEnum.CANCELLED,
            )
            .order_by(Class.start_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("update class")
    async def update_class(self, class_: Class, **changes) -> Class:
        unexpected = set(changes) - UPDATABLE_CLASS_FIELDS
        if unexpected:
            raise ValueError(f"Class fields are not updatable: {sorted(unexpected)}")
        for key, value in changes.items():
            setattr(class_, key, value)
        await self.session.flush()
        return class_

    @storage_operation("update class status")
    async def update_status(
        self,
        class_id: UUID,
        status: ClassStatusEnum,
        expected_status: ClassStatusEnum,
    ) -> bool:
        """Compare-and-set the status; False when the row was not in expected_status."""
        stmt = (
            update(Class)
            .where(Class.id == class_id, Class.status == expected_status)
            .values(status=status, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    @storage_operation("delete class")
    async def delete_class(self, class_id: UUID) -> None:
        result = await self.session.execute(delete(Class).where(Class.id == class_id))
        if result.rowcount == 0:
            raise NotFoundException("Class not found")


class EnrollmentRepository:
    """DB operations for class enrollments and attendance."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @storage_operation("add student to class")
    async def add_student(self, class_id: UUID, student_id: UUID, added_by: UUID) -> bool:
        """Insert the enrollment; returns False when it already existed."""
        stmt = (
            pg_insert(ClassStudent)
            .values(class_id=class_id, student_id=student_id, added_by=added_by)
            .on_conflict_do_nothing(constraint="uq_class_students_class_student")
            .returning(ClassStudent.id)
        )
        # A savepoint keeps one bad student row from aborting the whole transaction.
        async with self.session.begin_nested():
            inserted_id = await self.session.scalar(stmt)
        return inserted_id is not None

    @storage_operation("remove student from class")
    async def remove_student(self, class_id: UUID, student_id: UUID) -> None:
        stmt = delete(ClassStudent).where(
            ClassStudent.class_id == class_id,
            ClassStudent.student_id == student_id,
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundException("Student is not enrolled in this class")

    @storage_operation("list class students")
    async def list_student_ids_for_class(self, class_id: UUID) -> list[UUID]:
        stmt = (
            select(ClassStudent.student_id)
            .where(ClassStudent.class_id == class_id)
            .order_by(ClassStudent.created_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("list class enrollments")
    async def list_enrollments(self, class_id: UUID) -> list[ClassStudent]:
        stmt = (
            select(ClassStudent)
            .where(ClassStudent.class_id == class_id)
            .order_by(ClassStudent.created_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("list student enrollments")
    async def list_class_ids_for_student(self, student_id: UUID) -> list[UUID]:
        stmt = select(ClassStudent.class_id).where(ClassStudent.student_id == student_id)
        return list((await self.session.scalars(stmt)).all())

    @storage_operation("count class students")
    async def count_students_in_class(self, class_id: UUID) -> int:
        stmt = select(func.count()).select_from(ClassStudent).where(ClassStudent.class_id == class_id)
        return int((await self.session.scalar(stmt)) or 0)

    @storage_operation("mark attendance")
    async def mark_attendance(self, class_id: UUID, student_id: UUID, attended: bool) -> None:
        stmt = (
            update(ClassStudent)
            .where(
                ClassStudent.class_id == class_id,
                ClassStudent.student_id == student_id,
            )
            .values(attended=attended)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundException("Student is not enrolled in this class")

    @storage_operation("check enrollment")
    async def is_student_enrolled(self, class_id: UUID, student_id: UUID) -> bool:
        stmt = select(
            exists().where(
                ClassStudent.class_id == class_id,
                ClassStudent.student_id == student_id,
            ),
        )
        return bool(await self.session.scalar(stmt))
