from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.models import Notification, Task

logger = logging.getLogger(__name__)


def notification_target(task: Task) -> str:
  """Who hears about a task's deadline: the assignee, else whoever created it."""
  return task.assignee_id or task.creator_id


def assigned_message(title: str) -> str:
  return f'You\'ve been assigned a new task: "{title}"'


def status_message(title: str, new_status: str) -> str:
  return f'Your task "{title}" has been {new_status}'


def due_soon_message(title: str) -> str:
  return f'Task "{title}" is due soon'


def overdue_message(title: str) -> str:
  return f'Task "{title}" is overdue!'


async def notify_task_assigned(db: AsyncSession, *, task: Task, actor_id: str) -> Notification | None:
  if not task.assignee_id or task.assignee_id == actor_id:
    return None
  return await storage.create_notification(
    db,
    user_id=task.assignee_id,
    task_id=task.id,
    type="task_assigned",
    message=assigned_message(task.title),
  )


async def notify_task_status_changed(
  db: AsyncSession,
  *,
  task: Task,
  new_status: str,
  actor_id: str,
  title: str | None = None,
) -> Notification | None:
  """`title` is the task title as it was before the update that changed the status."""
  if new_status not in ("accepted", "declined"):
    return None
  if task.creator_id == actor_id:
    return None
  return await storage.create_notification(
    db,
    user_id=task.creator_id,
    task_id=task.id,
    type=f"task_{new_status}",
    message=status_message(title if title is not None else task.title, new_status),
  )


async def notify_task_deadline(
  db: AsyncSession,
  *,
  task_id: str,
  user_id: str,
  type: str,
  message: str,
  now: datetime,
) -> Notification | None:
  """
  Deadline notice (due soon / overdue), at most one per (user, task, type)
  inside the de-duplication window. Takes plain values so callers can keep
  going after a rollback has expired their loaded tasks.
  """
  if await storage.has_recent_notification(db, user_id=user_id, task_id=task_id, type=type, now=now):
    return None
  n = await storage.create_notification(db, user_id=user_id, task_id=task_id, type=type, message=message, created_at=now)
  logger.debug("%s notification for task=%s user=%s", type, task_id, user_id)
  return n
