"""Human-readable class notification templates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from html import escape
from typing import TYPE_CHECKING
from uuid import UUID

from app.core.enums import NotificationEventEnum, RoleEnum

if TYPE_CHECKING:
    from app.modules.classes.models import Class

DEFAULT_TEACHER_NAME = "your teacher"


@dataclass(frozen=True, slots=True)
class ClassSnapshot:
    """Immutable copy of the class fields a notification needs."""

    class_id: UUID
    teacher_id: UUID
    scheduled_date: date
    start_time: time
    end_time: time
    title: str | None = None
    class_link: str | None = None

    @classmethod
    def from_class(cls, class_: Class) -> ClassSnapshot:
        return cls(
            class_id=class_.id,
            teacher_id=class_.teacher_id,
            scheduled_date=class_.scheduled_date,
            start_time=class_.start_time,
            end_time=class_.end_time,
            title=class_.title,
            class_link=class_.class_link,
        )


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    subject: str
    text: str
    html: str


@dataclass(frozen=True, slots=True)
class _Template:
    subject: str
    heading: str
    intro: str
    closing: str = ""
    accent: str = "#3498db"
    show_teacher: bool = False
    show_enrolled_count: bool = False
    show_join_link: bool = False


_TEMPLATES: dict[tuple[NotificationEventEnum, RoleEnum], _Template] = {
    (NotificationEventEnum.CLASS_CREATED, RoleEnum.STUDENT): _Template(
        subject="New class scheduled",
        heading="New class scheduled!",
        intro="A new class has been scheduled for you.",
        closing="Don't forget to attend at the scheduled time!",
        show_teacher=True,
        show_join_link=True,
    ),
    (NotificationEventEnum.CLASS_CREATED, RoleEnum.TEACHER): _Template(
        subject="New class scheduled",
        heading="New class created!",
        intro="A new class has been added to your calendar.",
        closing="Open the platform to add the class link and materials.",
        show_enrolled_count=True,
    ),
    (NotificationEventEnum.STUDENT_ADDED, RoleEnum.STUDENT): _Template(
        subject="You were added to a class",
        heading="You are enrolled!",
        intro="You have been added to the class below.",
        closing="Don't forget to attend at the scheduled time!",
        show_teacher=True,
        show_join_link=True,
    ),
    (NotificationEventEnum.CLASS_CANCELLED, RoleEnum.STUDENT): _Template(
        subject="Class cancelled",
        heading="Class cancelled",
        intro="Unfortunately, the class below has been cancelled:",
        closing="Contact your teacher to reschedule. Sorry for the inconvenience.",
        accent="#e74c3c",
        show_teacher=True,
    ),
    (NotificationEventEnum.CLASS_CANCELLED, RoleEnum.TEACHER): _Template(
        subject="Class cancelled",
        heading="Class cancelled",
        intro="The class below has been cancelled:",
        accent="#e74c3c",
    ),
}


def format_class_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def format_class_time(value: time) -> str:
    return value.strftime("%H:%M")


def render_message(
    event: NotificationEventEnum,
    recipient_role: RoleEnum,
    *,
    recipient_name: str,
    snapshot: ClassSnapshot,
    teacher_name: str | None = None,
    enrolled_count: int | None = None,
    school_name: str = "",
) -> RenderedMessage:
    """Render subject, text and HTML bodies for one recipient.

    Raises KeyError for an (event, role) pair that has no template.
    """
    template = _TEMPLATES[(event, recipient_role)]

    details: list[tuple[str, str]] = [
        ("Date", format_class_date(snapshot.scheduled_date)),
        ("Time", f"{format_class_time(snapshot.start_time)} - {format_class_time(snapshot.end_time)}"),
    ]
    if template.show_teacher:
        details.append(("Teacher", teacher_name or DEFAULT_TEACHER_NAME))
    if template.show_enrolled_count and enrolled_count is not None:
        details.append(("Enrolled students", str(enrolled_count)))
    if snapshot.title:
        details.append(("Topic", snapshot.title))
    join_link = snapshot.class_link if template.show_join_link else None

    subject = f"{template.subject} - {school_name}" if school_name else template.subject

    text_lines = [f"Hello, {recipient_name}!", "", template.intro, ""]
    text_lines.extend(f"{label}: {value}" for label, value in details)
    if join_link:
        text_lines.extend(["", f"Join the class: {join_link}"])
    if template.closing:
        text_lines.extend(["", template.closing])

    detail_rows = "".join(
        f'<p style="margin: 5px 0;"><strong>{escape(label)}:</strong> {escape(value)}</p>'
        for label, value in details
    )
    link_block = (
        f'<p style="text-align: center; margin-top: 20px;">'
        f'<a href="{escape(join_link, quote=True)}">Join the class</a></p>'
        if join_link
        else ""
    )
    closing_block = f'<p style="color: #7f8c8d; font-size: 14px;">{escape(template.closing)}</p>' if template.closing else ""
    html = (
        "<!DOCTYPE html><html><head><meta charset=\"UTF-8\">"
        f"<title>{escape(template.heading)}</title></head>"
        '<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
        '<div style="max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h2 style="color: {template.accent};">{escape(template.heading)}</h2>'
        f"<p>Hello, {escape(recipient_name)}!</p>"
        f"<p>{escape(template.intro)}</p>"
        f'<div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px;">{detail_rows}</div>'
        f"{link_block}{closing_block}"
        "</div></body></html>"
    )

    return RenderedMessage(subject=subject, text="\n".join(text_lines), html=html)
