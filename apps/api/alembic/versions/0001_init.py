"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("username", sa.String(255), nullable=False),
    sa.Column("email", sa.String(255), nullable=True),
    sa.Column("password_hash", sa.String(255), nullable=False),
    sa.Column("first_name", sa.String(255), nullable=True),
    sa.Column("last_name", sa.String(255), nullable=True),
    sa.Column("profile_image_url", sa.String(500), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_username", "users", ["username"], unique=True)
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "sessions",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

  op.create_table(
    "boards",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("type", sa.String(16), nullable=False),
    sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_boards_owner_id", "boards", ["owner_id"])

  op.create_table(
    "board_members",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("board_id", sa.String(36), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("board_id", "user_id", name="ux_board_member_board_user"),
  )
  op.create_index("ix_board_members_board_id", "board_members", ["board_id"])
  op.create_index("ix_board_members_user_id", "board_members", ["user_id"])

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("title", sa.Text(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("board_id", sa.String(36), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("column_name", sa.String(16), nullable=False, server_default="todo"),  # todo|in_progress|done
    sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
    sa.Column("assignee_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("creator_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("status", sa.String(16), nullable=False, server_default="pending"),  # pending|accepted|declined
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("reminder_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_tasks_board_id", "tasks", ["board_id"])
  op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])
  op.create_index("ix_tasks_creator_id", "tasks", ["creator_id"])
  op.create_index("ix_tasks_due_date", "tasks", ["due_date"])

  op.create_table(
    "notifications",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=True),
    sa.Column("type", sa.String(32), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
  op.create_index("ix_notifications_task_id", "notifications", ["task_id"])
  op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

  op.create_table(
    "reminders",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("reminder_time", sa.DateTime(timezone=True), nullable=False),
    sa.Column("fired", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("dismissed", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_reminders_user_id", "reminders", ["user_id"])
  op.create_index("ix_reminders_task_id", "reminders", ["task_id"])
  op.create_index("ix_reminders_reminder_time", "reminders", ["reminder_time"])


def downgrade() -> None:
  op.drop_table("reminders")
  op.drop_table("notifications")
  op.drop_table("tasks")
  op.drop_table("board_members")
  op.drop_table("boards")
  op.drop_table("sessions")
  op.drop_table("users")
