from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

BOARD_TYPES = ("personal", "workplace")
TASK_COLUMNS = ("todo", "in_progress", "done")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TASK_STATUSES = ("pending", "accepted", "declined")
NOTIFICATION_TYPES = (
  "task_assigned",
  "task_accepted",
  "task_declined",
  "task_due_soon",
  "task_overdue",
  "reminder",
)


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def _new_id() -> str:
  return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
  """
  Timezone-aware UTC datetimes on every backend.

  Postgres keeps them in timestamptz; SQLite has no tz support, so values are
  stored as naive UTC and re-tagged on the way out.
  """

  impl = DateTime(timezone=True)
  cache_ok = True

  def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
    if value is None:
      return None
    if value.tzinfo is None:
      value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    if dialect.name == "sqlite":
      return value.replace(tzinfo=None)
    return value

  def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
    if value is None:
      return None
    if value.tzinfo is None:
      return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
  username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
  email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True, index=True)
  password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
  first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
  last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
  profile_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Session(Base):
  __tablename__ = "sessions"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  created_ip: Mapped[str | None] = mapped_column(String, nullable=True)
  user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
  expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class Board(Base):
  __tablename__ = "boards"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
  name: Mapped[str] = mapped_column(Text, nullable=False)
  type: Mapped[str] = mapped_column(String(16), nullable=False)  # personal | workplace
  owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class BoardMember(Base):
  __tablename__ = "board_members"
  __table_args__ = (UniqueConstraint("board_id", "user_id", name="ux_board_member_board_user"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  column: Mapped[str] = mapped_column("column_name", String(16), nullable=False, default="todo")
  priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
  assignee_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)
  creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
  due_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)
  reminder_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
  # Stored for clients; ordering is not derived from it.
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Notification(Base):
  __tablename__ = "notifications"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  task_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=True, index=True)
  type: Mapped[str] = mapped_column(String(32), nullable=False)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False, index=True)


class Reminder(Base):
  __tablename__ = "reminders"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  reminder_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
  # pending: fired=False, dismissed=False | fired: fired=True | dismissed: dismissed=True (terminal)
  fired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  dismissed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
