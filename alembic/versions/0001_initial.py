"""users, sessions, schedules, candidates and availabilities

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(120), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "sessions",
        sa.Column("session_id", sa.String(128), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"], unique=False)
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"], unique=False)

    op.create_table(
        "schedules",
        sa.Column("schedule_id", sa.String(36), primary_key=True),
        sa.Column("schedule_name", sa.String(255), nullable=False),
        sa.Column("memo", sa.Text(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
    )
    op.create_index("ix_schedules_created_by", "schedules", ["created_by"], unique=False)
    op.create_index("ix_schedules_updated_at", "schedules", ["updated_at"], unique=False)

    op.create_table(
        "candidates",
        sa.Column("candidate_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("candidate_name", sa.Text(), nullable=False),
        sa.Column("schedule_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["schedule_id"], ["schedules.schedule_id"]),
    )
    op.create_index("ix_candidates_schedule_id", "candidates", ["schedule_id"], unique=False)

    op.create_table(
        "availabilities",
        sa.Column("candidate_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("availability", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("schedule_id", sa.String(36), nullable=False),
        sa.PrimaryKeyConstraint("candidate_id", "user_id"),
        sa.ForeignKeyConstraint(["candidate_id"], ["candidates.candidate_id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["schedule_id"], ["schedules.schedule_id"]),
    )
    op.create_index("ix_availabilities_schedule_id", "availabilities", ["schedule_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_availabilities_schedule_id", table_name="availabilities")
    op.drop_table("availabilities")
    op.drop_index("ix_candidates_schedule_id", table_name="candidates")
    op.drop_table("candidates")
    op.drop_index("ix_schedules_updated_at", table_name="schedules")
    op.drop_index("ix_schedules_created_by", table_name="schedules")
    op.drop_table("schedules")
    op.drop_index("ix_sessions_expires_at", table_name="sessions")
    op.drop_index("ix_sessions_user_id", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
