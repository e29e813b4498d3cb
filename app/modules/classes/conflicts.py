"""Teacher double-booking detection."""

from __future__ import annotations

import logging
from datetime import date, time
from typing import Protocol, TypeVar
from uuid import UUID

from app.modules.classes.models import Class

logger = logging.getLogger(__name__)

T = TypeVar("T", time, float, int)


class ActiveClassSource(Protocol):
    """Read side of the class store used by the checker."""

    async def list_active_classes_on_date(self, teacher_id: UUID, scheduled_date: date) -> list[Class]:
        """Return non-cancelled classes of the teacher on that date."""


def intervals_overlap(start_a: T, end_a: T, start_b: T, end_b: T) -> bool:
    """Return True when half-open intervals [start_a, end_a) and [start_b, end_b) intersect.

    Intervals that only touch at a boundary do not overlap.
    """
    return start_a < end_b and start_b < end_a


class ConflictChecker:
    """Decide whether a teacher is free for a proposed window.

    Read-only; callers that insert afterwards must hold the teacher schedule
    lock for the check to stay valid.
    """

    def __init__(self, classes: ActiveClassSource) -> None:
        self.classes = classes

    async def find_conflicts(
        self,
        teacher_id: UUID,
        scheduled_date: date,
        start_time: time,
        end_time: time,
    ) -> list[Class]:
        active = await self.classes.list_active_classes_on_date(teacher_id, scheduled_date)
        return [
            existing
            for existing in active
            if intervals_overlap(start_time, end_time, existing.start_time, existing.end_time)
        ]

    async def is_teacher_available(
        self,
        teacher_id: UUID,
        scheduled_date: date,
        start_time: time,
        end_time: time,
    ) -> bool:
        conflicts = await self.find_conflicts(teacher_id, scheduled_date, start_time, end_time)
        if conflicts:
            logger.warning(
                "Teacher %s has %s conflicting classes on %s between %s-%s",
                teacher_id,
                len(conflicts),
                scheduled_date,
                start_time,
                end_time,
            )
        return not conflicts
