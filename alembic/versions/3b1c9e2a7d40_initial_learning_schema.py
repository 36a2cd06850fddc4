"""initial learning schema

Revision ID: 3b1c9e2a7d40
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1c9e2a7d40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

UUID = postgresql.UUID(as_uuid=True)


def _id() -> sa.Column:
    return sa.Column("id", UUID, primary_key=True)


def upgrade() -> None:
    # --- course structure ---
    op.create_table(
        "courses",
        _id(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
    )
    op.create_table(
        "course_versions",
        _id(),
        sa.Column("course_id", UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("version", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="published"),
    )
    op.create_table(
        "course_modules",
        _id(),
        sa.Column(
            "course_version_id", UUID, sa.ForeignKey("course_versions.id"), nullable=False
        ),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
    )
    op.create_table(
        "lessons",
        _id(),
        sa.Column("module_id", UUID, sa.ForeignKey("course_modules.id"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("content_type", sa.String(32), nullable=False),
        sa.Column("duration_seconds", sa.Integer, nullable=True),
    )

    # --- enrollments ---
    op.create_table(
        "enrollments",
        _id(),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("course_id", UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column(
            "course_version_id", UUID, sa.ForeignKey("course_versions.id"), nullable=False
        ),
        sa.Column("status", sa.String(32), nullable=False, server_default="enrolled"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("enrolled_at", sa.BigInteger, nullable=False),
        sa.Column("started_at", sa.BigInteger, nullable=True),
        sa.Column("completed_at", sa.BigInteger, nullable=True),
        sa.UniqueConstraint(
            "user_id", "course_version_id", name="uq_enrollments_user_version"
        ),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"])
    op.create_table(
        "lesson_progress",
        _id(),
        sa.Column("enrollment_id", UUID, sa.ForeignKey("enrollments.id"), nullable=False),
        sa.Column("lesson_id", UUID, sa.ForeignKey("lessons.id"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="not_started"),
        sa.Column("progress_percentage", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_position", sa.Integer, nullable=True),
        sa.Column("time_spent_seconds", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completion_method", sa.String(16), nullable=True),
        sa.Column("completed_at", sa.BigInteger, nullable=True),
        sa.Column("updated_at", sa.BigInteger, nullable=True),
        sa.UniqueConstraint(
            "enrollment_id", "lesson_id", name="uq_lesson_progress_enrollment_lesson"
        ),
    )

    # --- quizzes ---
    op.create_table(
        "quizzes",
        _id(),
        sa.Column("lesson_id", UUID, sa.ForeignKey("lessons.id"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("passing_score", sa.Integer, nullable=False, server_default="70"),
        sa.Column("max_attempts", sa.Integer, nullable=True),
    )
    op.create_table(
        "quiz_questions",
        _id(),
        sa.Column("quiz_id", UUID, sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("correct_answer", postgresql.JSONB, nullable=False),
        sa.Column("option_count", sa.Integer, nullable=True),
    )
    op.create_table(
        "quiz_attempts",
        _id(),
        sa.Column("quiz_id", UUID, sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("enrollment_id", UUID, sa.ForeignKey("enrollments.id"), nullable=True),
        sa.Column("attempt_number", sa.Integer, nullable=False),
        sa.Column("started_at", sa.BigInteger, nullable=False),
        sa.Column("completed_at", sa.BigInteger, nullable=True),
        sa.Column("score", sa.Integer, nullable=True),
        sa.Column("passed", sa.Boolean, nullable=True),
        sa.Column(
            "answers", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column("time_spent_seconds", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "quiz_id", "user_id", "attempt_number", name="uq_quiz_attempts_quiz_user_number"
        ),
    )

    # --- learning paths (before certificates, which reference path enrollments) ---
    op.create_table(
        "learning_paths",
        _id(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("path_type", sa.String(32), nullable=False, server_default="linear"),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column(
            "issues_certificate", sa.Boolean, nullable=False, server_default=sa.true()
        ),
        sa.Column("created_by", UUID, nullable=True),
    )
    op.create_table(
        "learning_path_steps",
        _id(),
        sa.Column("path_id", UUID, sa.ForeignKey("learning_paths.id"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("step_type", sa.String(32), nullable=False),
        sa.Column("step_order", sa.Integer, nullable=False),
        sa.Column("is_optional", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("resource_id", UUID, nullable=True),
        sa.Column("passing_score", sa.Integer, nullable=True),
        sa.Column("deleted_at", sa.BigInteger, nullable=True),
    )
    op.create_index(
        "uq_learning_path_steps_active_order",
        "learning_path_steps",
        ["path_id", "step_order"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    op.create_table(
        "learning_path_enrollments",
        _id(),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("path_id", UUID, sa.ForeignKey("learning_paths.id"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("enrolled_at", sa.BigInteger, nullable=False),
        sa.Column("completion_date", sa.BigInteger, nullable=True),
        sa.Column("suspended_at", sa.BigInteger, nullable=True),
        sa.Column("suspension_reason", sa.Text, nullable=True),
    )
    op.create_index(
        "uq_learning_path_enrollments_open_user_path",
        "learning_path_enrollments",
        ["user_id", "path_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'completed'"),
    )
    op.create_table(
        "learning_path_step_progress",
        _id(),
        sa.Column(
            "path_enrollment_id",
            UUID,
            sa.ForeignKey("learning_path_enrollments.id"),
            nullable=False,
        ),
        sa.Column("step_id", UUID, sa.ForeignKey("learning_path_steps.id"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="not_started"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("score", sa.Integer, nullable=True),
        sa.Column("started_at", sa.BigInteger, nullable=True),
        sa.Column("completed_at", sa.BigInteger, nullable=True),
        sa.UniqueConstraint(
            "path_enrollment_id", "step_id", name="uq_step_progress_enrollment_step"
        ),
    )

    # --- credentials ---
    op.create_table(
        "training_records",
        _id(),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("course_id", UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column(
            "course_version_id", UUID, sa.ForeignKey("course_versions.id"), nullable=False
        ),
        sa.Column("enrollment_id", UUID, sa.ForeignKey("enrollments.id"), nullable=False),
        sa.Column("completed_at", sa.BigInteger, nullable=False),
        sa.Column("signed_by", UUID, nullable=True),
        sa.Column("locked_at", sa.BigInteger, nullable=False),
        sa.UniqueConstraint("user_id", "course_id", name="uq_training_records_user_course"),
    )
    op.create_table(
        "certificates",
        _id(),
        sa.Column("certificate_number", sa.String(128), nullable=False, unique=True),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("issued_at", sa.BigInteger, nullable=False),
        sa.Column(
            "training_record_id", UUID, sa.ForeignKey("training_records.id"), nullable=True
        ),
        sa.Column(
            "enrollment_id", UUID, sa.ForeignKey("enrollments.id"), nullable=True, unique=True
        ),
        sa.Column(
            "path_enrollment_id",
            UUID,
            sa.ForeignKey("learning_path_enrollments.id"),
            nullable=True,
            unique=True,
        ),
    )
    op.create_index("ix_certificates_user_id", "certificates", ["user_id"])
    op.create_table(
        "badges",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "required_course_ids",
            postgresql.ARRAY(UUID),
            nullable=False,
            server_default=sa.text("'{}'::uuid[]"),
        ),
    )
    op.create_table(
        "user_badges",
        _id(),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("badge_id", UUID, sa.ForeignKey("badges.id"), nullable=False),
        sa.Column("awarded_at", sa.BigInteger, nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column(
            "course_version_id", UUID, sa.ForeignKey("course_versions.id"), nullable=True
        ),
        sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )


def downgrade() -> None:
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_index("ix_certificates_user_id", table_name="certificates")
    op.drop_table("certificates")
    op.drop_table("training_records")
    op.drop_table("learning_path_step_progress")
    op.drop_index(
        "uq_learning_path_enrollments_open_user_path", table_name="learning_path_enrollments"
    )
    op.drop_table("learning_path_enrollments")
    op.drop_index("uq_learning_path_steps_active_order", table_name="learning_path_steps")
    op.drop_table("learning_path_steps")
    op.drop_table("learning_paths")
    op.drop_table("quiz_attempts")
    op.drop_table("quiz_questions")
    op.drop_table("quizzes")
    op.drop_table("lesson_progress")
    op.drop_index("ix_enrollments_user_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("lessons")
    op.drop_table("course_modules")
    op.drop_table("course_versions")
    op.drop_table("courses")
