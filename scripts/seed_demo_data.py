"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.enums import DayOfWeekEnum, RoleEnum
from app.core.tasks import BackgroundTaskRunner, PostCommitQueue
from app.modules.availability.models import TimeSlot
from app.modules.availability.repository import AvailabilityRepository
from app.modules.availability.schemas import TimeSlotCreate
from app.modules.availability.service import AvailabilityService
from app.modules.classes.repository import ClassesRepository, EnrollmentRepository
from app.modules.classes.schemas import ClassCreate
from app.modules.classes.service import SchedulingEngine
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.materials.repository import MaterialsRepository
from app.modules.notifications.service import NotificationFanout
from app.modules.notifications.sinks import LoggingNotificationSink

DEMO_ADMIN_EMAIL = "demo-admin@potential.edu.br"
DEMO_TEACHER_EMAIL = "demo-teacher@potential.edu.br"
DEMO_STUDENT_EMAILS = ("demo-student-1@potential.edu.br", "demo-student-2@potential.edu.br")

DEMO_SLOT_DAYS = (DayOfWeekEnum.MONDAY, DayOfWeekEnum.WEDNESDAY, DayOfWeekEnum.FRIDAY)
DEMO_SLOT_START_HOURS = (14, 18)
DEMO_SLOT_DURATION_MINUTES = 60
DEMO_SLOT_MAX_STUDENTS = 4


@dataclass(slots=True)
class SeedStats:
    users_created: int = 0
    users_updated: int = 0
    slots_created: int = 0
    class_created: bool = False
    class_id: str | None = None


async def _ensure_user(
    session: AsyncSession,
    *,
    email: str,
    full_name: str,
    role: RoleEnum,
) -> tuple[User, bool]:
    user = await session.scalar(select(User).where(User.email == email))
    created = False
    if user is None:
        user = User(email=email, full_name=full_name, role=role, is_active=True)
        session.add(user)
        created = True
    else:
        user.full_name = full_name
        user.role = role
        user.is_active = True

    await session.flush()
    return user, created


def _slot_window(hour: int) -> tuple[time, time]:
    start_at = datetime.combine(date.min, time(hour=hour))
    end_at = start_at + timedelta(minutes=DEMO_SLOT_DURATION_MINUTES)
    return start_at.time(), end_at.time()


async def _ensure_demo_slots(session: AsyncSession, *, teacher_user: User) -> tuple[int, list[TimeSlot]]:
    availability_service = AvailabilityService(AvailabilityRepository(session))
    created = 0
    slots: list[TimeSlot] = []

    for day in DEMO_SLOT_DAYS:
        for hour in DEMO_SLOT_START_HOURS:
            start_time, end_time = _slot_window(hour)
            slot = await session.scalar(
                select(TimeSlot).where(
                    TimeSlot.teacher_id == teacher_user.id,
                    TimeSlot.day_of_week == int(day),
                    TimeSlot.start_time == start_time,
                ),
            )
            if slot is None:
                slot = await availability_service.create_time_slot(
                    TimeSlotCreate(
                        day_of_week=day,
                        start_time=start_time,
                        end_time=end_time,
                        max_students=DEMO_SLOT_MAX_STUDENTS,
                    ),
                    teacher_user,
                )
                created += 1
            slots.append(slot)

    await session.flush()
    return created, slots


def _next_date_for(slot: TimeSlot) -> date:
    today = datetime.now(UTC).date()
    # Sunday-first numbering; date.weekday() is Monday-first.
    days_ahead = (slot.day_of_week - (today.weekday() + 1) % 7) % 7 or 7
    return today + timedelta(days=days_ahead)


async def _ensure_demo_class(
    session: AsyncSession,
    post_commit: PostCommitQueue,
    *,
    teacher_user: User,
    students: list[User],
    slot: TimeSlot,
) -> tuple[str, bool]:
    settings = get_settings()
    identity_repository = IdentityRepository(session)
    classes_repository = ClassesRepository(session)
    scheduled_date = _next_date_for(slot)

    for existing in await classes_repository.list_active_classes_on_date(teacher_user.id, scheduled_date):
        if existing.start_time == slot.start_time:
            return str(existing.id), False

    engine = SchedulingEngine(
        classes_repository=classes_repository,
        enrollment_repository=EnrollmentRepository(session),
        availability_repository=AvailabilityRepository(session),
        identity_repository=identity_repository,
        materials_repository=MaterialsRepository(session),
        notifications=NotificationFanout(identity_repository, post_commit, LoggingNotificationSink()),
        school_timezone=settings.school_timezone,
    )
    class_ = await engine.create_class(
        ClassCreate(
            teacher_id=teacher_user.id,
            time_slot_id=slot.id,
            scheduled_date=scheduled_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            title="Demo conversation class",
            student_ids=[student.id for student in students],
        ),
        created_by=teacher_user.id,
    )
    return str(class_.id), True


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()
    runner = BackgroundTaskRunner()
    post_commit = PostCommitQueue(runner)

    async with SessionLocal() as session:
        try:
            _, admin_created = await _ensure_user(
                session,
                email=DEMO_ADMIN_EMAIL,
                full_name="Demo Admin",
                role=RoleEnum.ADMIN,
            )
            teacher_user, teacher_created = await _ensure_user(
                session,
                email=DEMO_TEACHER_EMAIL,
                full_name="Demo Teacher",
                role=RoleEnum.TEACHER,
            )
            students: list[User] = []
            students_created = 0
            for index, email in enumerate(DEMO_STUDENT_EMAILS, start=1):
                student, created = await _ensure_user(
                    session,
                    email=email,
                    full_name=f"Demo Student {index}",
                    role=RoleEnum.STUDENT,
                )
                students.append(student)
                students_created += created

            stats.users_created = admin_created + teacher_created + students_created
            stats.users_updated = 2 + len(DEMO_STUDENT_EMAILS) - stats.users_created

            stats.slots_created, slots = await _ensure_demo_slots(session, teacher_user=teacher_user)
            stats.class_id, stats.class_created = await _ensure_demo_class(
                session,
                post_commit,
                teacher_user=teacher_user,
                students=students,
                slot=slots[0],
            )

            await session.commit()
        except Exception:
            await session.rollback()
            post_commit.discard()
            raise

    post_commit.flush()
    await runner.drain(timeout=settings.notification_shutdown_grace_seconds)
    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for class scheduling (users, recurring "
            "time slots, one upcoming class with enrolled students)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Time slots created: {stats.slots_created}")
    print(f"- Demo class created: {stats.class_created}")
    print(f"- Demo class id: {stats.class_id}")
    print("")
    print("Demo accounts (non-production only):")
    print(f"- admin:    {DEMO_ADMIN_EMAIL}")
    print(f"- teacher:  {DEMO_TEACHER_EMAIL}")
    for email in DEMO_STUDENT_EMAILS:
        print(f"- student:  {email}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
