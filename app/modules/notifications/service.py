"""Best-effort fan-out of class notifications."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import partial
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import NotificationEventEnum, RoleEnum
from app.core.metrics import record_notification
from app.core.tasks import PostCommitQueue, get_post_commit_queue
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.notifications.sinks import NotificationSink, get_notification_sink
from app.modules.notifications.templates import ClassSnapshot, render_message
from app.shared.exceptions import InfrastructureException

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    event: NotificationEventEnum
    recipient_id: UUID
    address: str
    subject: str
    text: str
    html: str


async def deliver_message(sink: NotificationSink, message: OutboundMessage, *, max_attempts: int = 1) -> bool:
    """Send a message with a bounded number of attempts; never raises."""
    for attempt in range(1, max_attempts + 1):
        try:
            await sink.send(message.address, message.subject, message.text, message.html)
        except Exception:
            logger.exception(
                "Failed to deliver %s notification to user %s (attempt %s/%s)",
                message.event,
                message.recipient_id,
                attempt,
                max_attempts,
            )
            continue
        record_notification(message.event, "sent")
        return True
    record_notification(message.event, "failed")
    return False


class NotificationFanout:
    """Resolve recipients, render messages and queue their delivery.

    Delivery is queued on the post-commit queue, so nothing is sent unless
    the triggering transaction commits, and a failed delivery never reaches
    the caller.
    """

    def __init__(
        self,
        identity_repository: IdentityRepository,
        post_commit: PostCommitQueue,
        sink: NotificationSink,
        *,
        max_attempts: int = 1,
        school_name: str = "",
    ) -> None:
        self.identity_repository = identity_repository
        self.post_commit = post_commit
        self.sink = sink
        self.max_attempts = max_attempts
        self.school_name = school_name

    async def notify_class_created(
        self,
        snapshot: ClassSnapshot,
        student_ids: Iterable[UUID],
        *,
        enrolled_count: int,
    ) -> int:
        """Notify enrolled students and the teacher about a new class."""
        student_ids = list(student_ids)
        users = await self._resolve([snapshot.teacher_id, *student_ids])
        teacher = users.get(snapshot.teacher_id)
        teacher_name = teacher.full_name if teacher is not None else None

        queued = 0
        for student_id in student_ids:
            queued += self._queue(
                NotificationEventEnum.CLASS_CREATED,
                RoleEnum.STUDENT,
                student_id,
                users.get(student_id),
                snapshot,
                teacher_name=teacher_name,
            )
        queued += self._queue(
            NotificationEventEnum.CLASS_CREATED,
            RoleEnum.TEACHER,
            snapshot.teacher_id,
            teacher,
            snapshot,
            enrolled_count=enrolled_count,
        )
        return queued

    async def notify_student_added(self, snapshot: ClassSnapshot, student_id: UUID) -> int:
        users = await self._resolve([snapshot.teacher_id, student_id])
        teacher = users.get(snapshot.teacher_id)
        return self._queue(
            NotificationEventEnum.STUDENT_ADDED,
            RoleEnum.STUDENT,
            student_id,
            users.get(student_id),
            snapshot,
            teacher_name=teacher.full_name if teacher is not None else None,
        )

    async def notify_class_cancelled(self, snapshot: ClassSnapshot, student_ids: Iterable[UUID]) -> int:
        """Notify every enrolled student and the teacher about a cancellation."""
        student_ids = list(student_ids)
        users = await self._resolve([snapshot.teacher_id, *student_ids])
        teacher = users.get(snapshot.teacher_id)
        teacher_name = teacher.full_name if teacher is not None else None

        queued = 0
        for student_id in student_ids:
            queued += self._queue(
                NotificationEventEnum.CLASS_CANCELLED,
                RoleEnum.STUDENT,
                student_id,
                users.get(student_id),
                snapshot,
                teacher_name=teacher_name,
            )
        queued += self._queue(
            NotificationEventEnum.CLASS_CANCELLED,
            RoleEnum.TEACHER,
            snapshot.teacher_id,
            teacher,
            snapshot,
        )
        return queued

    async def _resolve(self, user_ids: list[UUID]) -> dict[UUID, User]:
        try:
            return await self.identity_repository.list_users_by_ids(user_ids)
        except InfrastructureException:
            logger.warning("Could not resolve notification recipients %s", user_ids)
            return {}

    def _queue(
        self,
        event: NotificationEventEnum,
        recipient_role: RoleEnum,
        recipient_id: UUID,
        recipient: User | None,
        snapshot: ClassSnapshot,
        *,
        teacher_name: str | None = None,
        enrolled_count: int | None = None,
    ) -> int:
        if recipient is None or not recipient.email:
            logger.warning("Skipping %s notification: no contact address for user %s", event, recipient_id)
            record_notification(event, "skipped")
            return 0

        rendered = render_message(
            event,
            recipient_role,
            recipient_name=recipient.full_name,
            snapshot=snapshot,
            teacher_name=teacher_name,
            enrolled_count=enrolled_count,
            school_name=self.school_name,
        )
        message = OutboundMessage(
            event=event,
            recipient_id=recipient_id,
            address=recipient.email,
            subject=rendered.subject,
            text=rendered.text,
            html=rendered.html,
        )
        self.post_commit.add(
            partial(deliver_message, self.sink, message, max_attempts=self.max_attempts),
            name=f"{event}:{recipient_id}",
        )
        record_notification(event, "queued")
        return 1


async def get_notification_fanout(
    session: AsyncSession = Depends(get_db_session),
    post_commit: PostCommitQueue = Depends(get_post_commit_queue),
    sink: NotificationSink = Depends(get_notification_sink),
) -> NotificationFanout:
    """Dependency provider for notification fan-out."""
    settings = get_settings()
    return NotificationFanout(
        identity_repository=IdentityRepository(session),
        post_commit=post_commit,
        sink=sink,
        max_attempts=settings.notification_max_attempts,
        school_name=settings.smtp_from_name,
    )
