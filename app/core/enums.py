"""Core enums used across modules."""

from enum import IntEnum, StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class DayOfWeekEnum(IntEnum):
    """Day of week for recurring availability, Sunday first."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


class ClassStatusEnum(StrEnum):
    """Class lifecycle status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_CLASS_STATUSES = frozenset(
    {ClassStatusEnum.COMPLETED, ClassStatusEnum.CANCELLED, ClassStatusEnum.NO_SHOW},
)


class NotificationEventEnum(StrEnum):
    """Scheduling events that produce human-readable messages."""

    CLASS_CREATED = "class.created"
    CLASS_CANCELLED = "class.cancelled"
    STUDENT_ADDED = "class.student_added"
