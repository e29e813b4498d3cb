from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from uuid import UUID, uuid4

import pytest

import app.modules.classes.service as classes_service_module
from app.core.enums import ClassStatusEnum, RoleEnum
from app.core.tasks import BackgroundTaskRunner, PostCommitQueue
from app.modules.classes.service import SchedulingEngine
from app.modules.notifications.service import NotificationFanout
from app.shared.exceptions import InfrastructureException, NotFoundException

# Monday 09:00 UTC
FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@dataclass
class FakeUser:
    id: UUID
    email: str
    full_name: str
    role: RoleEnum
    is_active: bool = True


@dataclass
class FakeTimeSlot:
    id: UUID
    teacher_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    max_students: int
    is_available: bool = True
    created_at: datetime = FIXED_NOW
    updated_at: datetime = FIXED_NOW


@dataclass
class FakeClass:
    id: UUID
    teacher_id: UUID
    time_slot_id: UUID | None
    scheduled_date: date
    start_time: time
    end_time: time
    status: ClassStatusEnum
    title: str | None
    description: str | None
    created_by: UUID
    class_link: str | None = None
    material_id: UUID | None = None
    created_at: datetime = FIXED_NOW
    updated_at: datetime = FIXED_NOW


@dataclass
class FakeEnrollment:
    id: UUID
    class_id: UUID
    student_id: UUID
    added_by: UUID
    attended: bool | None = None
    created_at: datetime = FIXED_NOW


@dataclass
class FakeMaterial:
    id: UUID
    original_filename: str
    file_url: str
    mime_type: str


class FakeClassesRepository:
    def __init__(self, enrollments: FakeEnrollmentRepository) -> None:
        self.classes: dict[UUID, FakeClass] = {}
        self.enrollments = enrollments
        self._teacher_locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._class_locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def lock_teacher_schedule(self, teacher_id: UUID) -> AsyncIterator[None]:
        async with self._teacher_locks[teacher_id]:
            yield

    @asynccontextmanager
    async def lock_class(self, class_id: UUID) -> AsyncIterator[FakeClass | None]:
        async with self._class_locks[class_id]:
            yield self.classes.get(class_id)

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
    ) -> FakeClass:
        await asyncio.sleep(0)
        class_ = FakeClass(
            id=uuid4(),
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
        self.classes[class_.id] = class_
        return class_

    async def get_class_by_id(self, class_id: UUID) -> FakeClass | None:
        return self.classes.get(class_id)

    async def list_classes_for_teacher(self, teacher_id: UUID, start_date: date, end_date: date) -> list[FakeClass]:
        return sorted(
            (
                class_
                for class_ in self.classes.values()
                if class_.teacher_id == teacher_id and start_date <= class_.scheduled_date <= end_date
            ),
            key=lambda class_: (class_.scheduled_date, class_.start_time),
        )

    async def list_classes_for_student(self, student_id: UUID, start_date: date, end_date: date) -> list[FakeClass]:
        class_ids = set(await self.enrollments.list_class_ids_for_student(student_id))
        return sorted(
            (
                class_
                for class_ in self.classes.values()
                if class_.id in class_ids and start_date <= class_.scheduled_date <= end_date
            ),
            key=lambda class_: (class_.scheduled_date, class_.start_time),
        )

    async def list_active_classes_on_date(self, teacher_id: UUID, scheduled_date: date) -> list[FakeClass]:
        await asyncio.sleep(0)
        return [
            class_
            for class_ in self.classes.values()
            if class_.teacher_id == teacher_id
            and class_.scheduled_date == scheduled_date
            and class_.status != ClassStatusEnum.CANCELLED
        ]

    async def update_class(self, class_: FakeClass, **changes) -> FakeClass:
        for key, value in changes.items():
            setattr(class_, key, value)
        return class_

    async def update_status(
        self,
        class_id: UUID,
        status: ClassStatusEnum,
        expected_status: ClassStatusEnum,
    ) -> bool:
        class_ = self.classes.get(class_id)
        if class_ is None or class_.status != expected_status:
            return False
        class_.status = status
        return True

    async def delete_class(self, class_id: UUID) -> None:
        if self.classes.pop(class_id, None) is None:
            raise NotFoundException("Class not found")


class FakeEnrollmentRepository:
    def __init__(self) -> None:
        self.rows: list[FakeEnrollment] = []
        self.failing_student_ids: set[UUID] = set()

    def _find(self, class_id: UUID, student_id: UUID) -> FakeEnrollment | None:
        for row in self.rows:
            if row.class_id == class_id and row.student_id == student_id:
                return row
        return None

    async def add_student(self, class_id: UUID, student_id: UUID, added_by: UUID) -> bool:
        if student_id in self.failing_student_ids:
            raise InfrastructureException("Storage failure while trying to add student to class")
        if self._find(class_id, student_id) is not None:
            return False
        self.rows.append(FakeEnrollment(id=uuid4(), class_id=class_id, student_id=student_id, added_by=added_by))
        return True

    async def remove_student(self, class_id: UUID, student_id: UUID) -> None:
        row = self._find(class_id, student_id)
        if row is None:
            raise NotFoundException("Student is not enrolled in this class")
        self.rows.remove(row)

    async def list_student_ids_for_class(self, class_id: UUID) -> list[UUID]:
        return [row.student_id for row in self.rows if row.class_id == class_id]

    async def list_enrollments(self, class_id: UUID) -> list[FakeEnrollment]:
        return [row for row in self.rows if row.class_id == class_id]

    async def list_class_ids_for_student(self, student_id: UUID) -> list[UUID]:
        return [row.class_id for row in self.rows if row.student_id == student_id]

    async def count_students_in_class(self, class_id: UUID) -> int:
        await asyncio.sleep(0)
        return sum(1 for row in self.rows if row.class_id == class_id)

    async def mark_attendance(self, class_id: UUID, student_id: UUID, attended: bool) -> None:
        row = self._find(class_id, student_id)
        if row is None:
            raise NotFoundException("Student is not enrolled in this class")
        row.attended = attended

    async def is_student_enrolled(self, class_id: UUID, student_id: UUID) -> bool:
        return self._find(class_id, student_id) is not None


class FakeAvailabilityRepository:
    def __init__(self) -> None:
        self.slots: dict[UUID, FakeTimeSlot] = {}

    async def create_time_slot(
        self,
        teacher_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
        max_students: int,
    ) -> FakeTimeSlot:
        slot = FakeTimeSlot(
            id=uuid4(),
            teacher_id=teacher_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            max_students=max_students,
        )
        self.slots[slot.id] = slot
        return slot

    async def get_time_slot_by_id(self, slot_id: UUID) -> FakeTimeSlot:
        slot = self.slots.get(slot_id)
        if slot is None:
            raise NotFoundException("Time slot not found")
        return slot

    async def list_time_slots_for_teacher(self, teacher_id: UUID) -> list[FakeTimeSlot]:
        return sorted(
            (slot for slot in self.slots.values() if slot.teacher_id == teacher_id),
            key=lambda slot: (slot.day_of_week, slot.start_time),
        )

    async def list_available_time_slots(self, teacher_id: UUID, day_of_week: int) -> list[FakeTimeSlot]:
        return sorted(
            (
                slot
                for slot in self.slots.values()
                if slot.teacher_id == teacher_id and slot.day_of_week == day_of_week and slot.is_available
            ),
            key=lambda slot: slot.start_time,
        )

    async def update_time_slot(self, slot: FakeTimeSlot, **changes) -> FakeTimeSlot:
        for key, value in changes.items():
            setattr(slot, key, value)
        return slot

    async def delete_time_slot(self, slot_id: UUID) -> None:
        if self.slots.pop(slot_id, None) is None:
            raise NotFoundException("Time slot not found")

    async def set_time_slot_availability(self, slot_id: UUID, is_available: bool) -> None:
        slot = self.slots.get(slot_id)
        if slot is None:
            raise NotFoundException("Time slot not found")
        slot.is_available = is_available


class FakeIdentityRepository:
    def __init__(self) -> None:
        self.users: dict[UUID, FakeUser] = {}

    def add(self, role: RoleEnum, full_name: str) -> FakeUser:
        user = FakeUser(
            id=uuid4(),
            email=f"{full_name.lower().replace(' ', '.')}@potential.edu.br",
            full_name=full_name,
            role=role,
        )
        self.users[user.id] = user
        return user

    async def get_user_by_id(self, user_id: UUID) -> FakeUser | None:
        return self.users.get(user_id)

    async def list_users_by_ids(self, user_ids) -> dict[UUID, FakeUser]:
        return {user_id: self.users[user_id] for user_id in set(user_ids) if user_id in self.users}


class FakeMaterialsRepository:
    def __init__(self) -> None:
        self.materials: dict[UUID, FakeMaterial] = {}

    async def get_material_by_id(self, material_id: UUID) -> FakeMaterial | None:
        return self.materials.get(material_id)


@dataclass
class RecordingSink:
    fail: bool = False
    attempts: list[tuple[str, str]] = field(default_factory=list)

    async def send(self, address: str, subject: str, text: str, html: str | None = None) -> None:
        self.attempts.append((address, subject))
        if self.fail:
            raise ConnectionError("smtp relay unreachable")


@dataclass
class SchedulingWorld:
    engine: SchedulingEngine
    classes: FakeClassesRepository
    enrollments: FakeEnrollmentRepository
    availability: FakeAvailabilityRepository
    identity: FakeIdentityRepository
    materials: FakeMaterialsRepository
    post_commit: PostCommitQueue
    runner: BackgroundTaskRunner
    sink: RecordingSink

    async def commit(self) -> None:
        """Release queued side effects and wait for delivery."""
        self.post_commit.flush()
        await self.runner.drain(timeout=1)


def make_world(*, max_attempts: int = 1) -> SchedulingWorld:
    enrollments = FakeEnrollmentRepository()
    classes = FakeClassesRepository(enrollments)
    availability = FakeAvailabilityRepository()
    identity = FakeIdentityRepository()
    materials = FakeMaterialsRepository()
    runner = BackgroundTaskRunner()
    post_commit = PostCommitQueue(runner)
    sink = RecordingSink()
    fanout = NotificationFanout(
        identity_repository=identity,  # type: ignore[arg-type]
        post_commit=post_commit,
        sink=sink,
        max_attempts=max_attempts,
    )
    engine = SchedulingEngine(
        classes_repository=classes,  # type: ignore[arg-type]
        enrollment_repository=enrollments,  # type: ignore[arg-type]
        availability_repository=availability,  # type: ignore[arg-type]
        identity_repository=identity,  # type: ignore[arg-type]
        materials_repository=materials,  # type: ignore[arg-type]
        notifications=fanout,
    )
    return SchedulingWorld(
        engine=engine,
        classes=classes,
        enrollments=enrollments,
        availability=availability,
        identity=identity,
        materials=materials,
        post_commit=post_commit,
        runner=runner,
        sink=sink,
    )


@pytest.fixture()
def fixed_clock(monkeypatch: pytest.MonkeyPatch) -> datetime:
    monkeypatch.setattr(classes_service_module, "utc_now", lambda: FIXED_NOW)
    return FIXED_NOW


@pytest.fixture()
def world(fixed_clock: datetime) -> SchedulingWorld:
    return make_world()
