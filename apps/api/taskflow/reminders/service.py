from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.metrics import runtime_metrics
from taskflow.models import Task, utcnow
from taskflow.notifications.events import due_soon_message, notification_target, notify_task_deadline, overdue_message

logger = logging.getLogger(__name__)


@dataclass
class DueCheckResult:
  now: datetime
  due_soon_notified: int = 0
  overdue_notified: int = 0
  reminders_fired: int = 0
  errors: list[str] = field(default_factory=list)

  @property
  def notifications_created(self) -> int:
    return self.due_soon_notified + self.overdue_notified

  @property
  def ok(self) -> bool:
    return not self.errors


async def _notify_deadlines(db: AsyncSession, now: datetime, tasks: list[Task], *, type: str, message_for: Callable[[str], str]) -> int:
  """
  One commit per task. A task that fails (e.g. deleted since the query) is
  rolled back and logged; notices already committed for other tasks stay.
  """
  # rollback expires every loaded Task, so read what we need up front
  pending = [(t.id, notification_target(t), message_for(t.title)) for t in tasks]
  created = 0
  for task_id, user_id, message in pending:
    try:
      n = await notify_task_deadline(db, task_id=task_id, user_id=user_id, type=type, message=message, now=now)
      await db.commit()
    except Exception:
      await db.rollback()
      logger.exception("%s notification for task=%s failed", type, task_id)
      continue
    if n is not None:
      created += 1
  return created


async def sweep_due_soon(db: AsyncSession, now: datetime) -> int:
  tasks = await storage.get_tasks_due_soon(db, now=now)
  return await _notify_deadlines(db, now, tasks, type="task_due_soon", message_for=due_soon_message)


async def sweep_overdue(db: AsyncSession, now: datetime) -> int:
  tasks = await storage.get_overdue_tasks(db, now=now)
  return await _notify_deadlines(db, now, tasks, type="task_overdue", message_for=overdue_message)


async def sweep_reminders(db: AsyncSession, now: datetime) -> int:
  """pending -> fired. No notification row; clients poll /api/reminders/due."""
  fired = 0
  for r in await storage.get_newly_due_reminders(db, now=now):
    await storage.mark_reminder_fired(db, r.id)
    fired += 1
  return fired


_SWEEPS: list[tuple[str, str, Callable[[AsyncSession, datetime], Awaitable[int]]]] = [
  ("due_soon", "due_soon_notified", sweep_due_soon),
  ("overdue", "overdue_notified", sweep_overdue),
  ("reminders", "reminders_fired", sweep_reminders),
]


async def run_due_check_once(db: AsyncSession, *, now: datetime | None = None) -> DueCheckResult:
  """
  One due-check tick.

  - Due-soon and overdue tasks notify the assignee (or creator), at most once
    per (user, task, type) per de-duplication window.
  - Reminders whose time has passed are flipped to fired.

  Sweeps are independent: each commits its own work, and a failing sweep is
  rolled back and logged without stopping the others. Nothing is retried here;
  the next tick simply tries again.
  """
  now = now or utcnow()
  result = DueCheckResult(now=now)

  for name, attr, sweep in _SWEEPS:
    try:
      count = await sweep(db, now)
      await db.commit()
    except Exception:
      await db.rollback()
      logger.exception("due-check sweep %r failed", name)
      result.errors.append(name)
      continue
    setattr(result, attr, count)

  runtime_metrics.observe_sweep(
    at=now,
    notifications_created=result.notifications_created,
    reminders_fired=result.reminders_fired,
    failures=len(result.errors),
  )
  if result.notifications_created or result.reminders_fired:
    logger.info(
      "due-check: due_soon=%d overdue=%d reminders_fired=%d",
      result.due_soon_notified,
      result.overdue_notified,
      result.reminders_fired,
    )
  else:
    logger.debug("due-check: nothing to do")
  return result
