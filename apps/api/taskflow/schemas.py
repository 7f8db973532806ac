from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

BoardType = Literal["personal", "workplace"]
TaskColumn = Literal["todo", "in_progress", "done"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
TaskStatus = Literal["pending", "accepted", "declined"]
NotificationType = Literal["task_assigned", "task_accepted", "task_declined", "task_due_soon", "task_overdue", "reminder"]

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
      except ValueError as exc:
        raise ValueError("invalid datetime") from exc
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def _none_if_unassigned(value: object) -> object:
  # Clients send "none" from the assignee picker.
  if isinstance(value, str) and value.strip() in {"", "none"}:
    return None
  return value


class SuccessOut(BaseModel):
  success: bool = True


class RegisterIn(BaseModel):
  username: str = Field(min_length=1, max_length=255)
  password: str = Field(min_length=1, max_length=256)
  email: str | None = Field(default=None, max_length=255)
  firstName: str | None = Field(default=None, max_length=255)
  lastName: str | None = Field(default=None, max_length=255)

  @field_validator("email", mode="before")
  @classmethod
  def _blank_email(cls, v: object) -> object:
    if isinstance(v, str):
      v = v.strip().lower()
      return v or None
    return v


class LoginIn(BaseModel):
  username: str = Field(min_length=1)
  password: str = Field(min_length=1)


class UserOut(BaseModel):
  id: str
  username: str
  email: str | None = None
  firstName: str | None = None
  lastName: str | None = None
  profileImageUrl: str | None = None
  createdAt: datetime | None = None


class BoardCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  type: BoardType
  description: str | None = None


class BoardOut(BaseModel):
  id: str
  name: str
  type: BoardType
  ownerId: str
  description: str | None = None
  createdAt: datetime


class BoardMemberAddIn(BaseModel):
  email: str = Field(min_length=1, max_length=255)


class BoardMemberOut(BaseModel):
  id: str
  boardId: str
  userId: str


class TaskCreateIn(BaseModel):
  title: str = Field(min_length=1)
  boardId: str = Field(min_length=1)
  description: str | None = None
  column: TaskColumn = "todo"
  priority: TaskPriority = "medium"
  assigneeId: str | None = None
  dueDate: datetime | None = None
  reminderDate: datetime | None = None

  @field_validator("assigneeId", mode="before")
  @classmethod
  def _assignee(cls, v: object) -> object:
    return _none_if_unassigned(v)

  @field_validator("dueDate", "reminderDate", mode="before")
  @classmethod
  def _dates_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1)
  description: str | None = None
  column: TaskColumn | None = None
  priority: TaskPriority | None = None
  assigneeId: str | None = None
  status: TaskStatus | None = None
  dueDate: datetime | None = None
  reminderDate: datetime | None = None
  position: int | None = None

  @field_validator("assigneeId", mode="before")
  @classmethod
  def _assignee(cls, v: object) -> object:
    return _none_if_unassigned(v)

  @field_validator("dueDate", "reminderDate", mode="before")
  @classmethod
  def _dates_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskOut(BaseModel):
  id: str
  title: str
  description: str | None = None
  boardId: str
  column: TaskColumn
  priority: TaskPriority
  assigneeId: str | None = None
  creatorId: str
  status: TaskStatus
  dueDate: datetime | None = None
  reminderDate: datetime | None = None
  position: int = 0
  createdAt: datetime
  updatedAt: datetime


class NotificationOut(BaseModel):
  id: str
  userId: str
  taskId: str | None = None
  type: NotificationType
  message: str
  read: bool
  createdAt: datetime


class ReminderCreateIn(BaseModel):
  taskId: str = Field(min_length=1)
  reminderTime: datetime

  @field_validator("reminderTime", mode="before")
  @classmethod
  def _time_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class ReminderOut(BaseModel):
  id: str
  userId: str
  taskId: str
  reminderTime: datetime
  fired: bool
  dismissed: bool
  createdAt: datetime
  task: TaskOut | None = None
