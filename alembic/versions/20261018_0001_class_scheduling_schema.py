"""Class scheduling schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 10:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


class_status_enum = sa.Enum(
    "scheduled",
    "completed",
    "cancelled",
    "no_show",
    name="class_status_enum",
    native_enum=False,
)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    # users and files are owned by the account and document services; the
    # minimal shape below keeps a standalone database usable in development.
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            email VARCHAR(255) NOT NULL CONSTRAINT uq_users_email UNIQUE,
            full_name VARCHAR(255) NOT NULL,
            role VARCHAR(7) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE
        )
        """,
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_role ON users (role)")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS files (
            id UUID PRIMARY KEY,
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            original_filename VARCHAR(255) NOT NULL,
            file_url VARCHAR(1024) NOT NULL,
            mime_type VARCHAR(128) NOT NULL,
            file_size BIGINT NOT NULL DEFAULT 0
        )
        """,
    )

    op.create_table(
        "time_slots",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("max_students", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.CheckConstraint("start_time < end_time", name="ck_time_slots_time_window"),
        sa.CheckConstraint("max_students >= 1", name="ck_time_slots_max_students_positive"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_time_slots_day_of_week_range"),
        sa.ForeignKeyConstraint(["teacher_id"], ["users.id"], name="fk_time_slots_teacher_id_users", ondelete="CASCADE"),
    )
    op.create_index("ix_time_slots_teacher_id", "time_slots", ["teacher_id"], unique=False)
    op.create_index("ix_time_slots_is_available", "time_slots", ["is_available"], unique=False)

    op.create_table(
        "classes",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("time_slot_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("status", class_status_enum, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("class_link", sa.String(length=512), nullable=True),
        sa.Column("material_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.CheckConstraint("start_time < end_time", name="ck_classes_time_window"),
        sa.ForeignKeyConstraint(["teacher_id"], ["users.id"], name="fk_classes_teacher_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["time_slot_id"],
            ["time_slots.id"],
            name="fk_classes_time_slot_id_time_slots",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(["material_id"], ["files.id"], name="fk_classes_material_id_files", ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], name="fk_classes_created_by_users", ondelete="RESTRICT"),
    )
    op.create_index("ix_classes_teacher_id", "classes", ["teacher_id"], unique=False)
    op.create_index("ix_classes_time_slot_id", "classes", ["time_slot_id"], unique=False)
    op.create_index("ix_classes_scheduled_date", "classes", ["scheduled_date"], unique=False)
    op.create_index("ix_classes_status", "classes", ["status"], unique=False)
    op.execute(
        """
        ALTER TABLE classes
        ADD CONSTRAINT ex_classes_teacher_time_overlap
        EXCLUDE USING gist (
            teacher_id WITH =,
            tsrange(scheduled_date + start_time, scheduled_date + end_time, '[)') WITH &&
        )
        WHERE (status <> 'cancelled')
        """,
    )

    op.create_table(
        "class_students",
        _id_col(),
        sa.Column("class_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("added_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("attended", sa.Boolean(), nullable=True),
        _created_col(),
        sa.ForeignKeyConstraint(["class_id"], ["classes.id"], name="fk_class_students_class_id_classes", ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], name="fk_class_students_student_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["added_by"], ["users.id"], name="fk_class_students_added_by_users", ondelete="RESTRICT"),
        sa.UniqueConstraint("class_id", "student_id", name="uq_class_students_class_student"),
    )
    op.create_index("ix_class_students_class_id", "class_students", ["class_id"], unique=False)
    op.create_index("ix_class_students_student_id", "class_students", ["student_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_class_students_student_id", table_name="class_students")
    op.drop_index("ix_class_students_class_id", table_name="class_students")
    op.drop_table("class_students")

    op.execute("ALTER TABLE classes DROP CONSTRAINT IF EXISTS ex_classes_teacher_time_overlap")
    op.drop_index("ix_classes_status", table_name="classes")
    op.drop_index("ix_classes_scheduled_date", table_name="classes")
    op.drop_index("ix_classes_time_slot_id", table_name="classes")
    op.drop_index("ix_classes_teacher_id", table_name="classes")
    op.drop_table("classes")

    op.drop_index("ix_time_slots_is_available", table_name="time_slots")
    op.drop_index("ix_time_slots_teacher_id", table_name="time_slots")
    op.drop_table("time_slots")
