from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.config import settings
from taskflow.models import Board, BoardMember, Notification, Reminder, Task, User, utcnow

TASK_UPDATABLE_FIELDS = frozenset(
  {"title", "description", "column", "priority", "assignee_id", "status", "due_date", "reminder_date", "position"}
)


# users


async def get_user(db: AsyncSession, user_id: str) -> User | None:
  res = await db.execute(select(User).where(User.id == user_id))
  return res.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
  res = await db.execute(select(User).where(User.username == username))
  return res.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
  res = await db.execute(select(User).where(User.email == email))
  return res.scalar_one_or_none()


async def create_user(
  db: AsyncSession,
  *,
  username: str,
  password_hash: str,
  email: str | None = None,
  first_name: str | None = None,
  last_name: str | None = None,
) -> User:
  u = User(username=username, password_hash=password_hash, email=email, first_name=first_name, last_name=last_name)
  db.add(u)
  await db.flush()
  return u


# access control


async def is_board_member(db: AsyncSession, board_id: str, user_id: str) -> bool:
  """Owner or explicit member. A missing board is simply not accessible."""
  board = await get_board(db, board_id)
  if board is None:
    return False
  if board.owner_id == user_id:
    return True
  res = await db.execute(
    select(BoardMember.id).where(BoardMember.board_id == board_id, BoardMember.user_id == user_id)
  )
  return res.scalar_one_or_none() is not None


# boards


async def get_boards_for_user(db: AsyncSession, user_id: str) -> list[Board]:
  owned = (await db.execute(select(Board).where(Board.owner_id == user_id).order_by(Board.created_at.asc()))).scalars().all()
  member = (
    await db.execute(
      select(Board)
      .join(BoardMember, BoardMember.board_id == Board.id)
      .where(BoardMember.user_id == user_id)
      .order_by(Board.created_at.asc())
    )
  ).scalars().all()
  out = list(owned)
  seen = {b.id for b in out}
  for b in member:
    if b.id not in seen:
      out.append(b)
      seen.add(b.id)
  return out


async def get_board(db: AsyncSession, board_id: str) -> Board | None:
  res = await db.execute(select(Board).where(Board.id == board_id))
  return res.scalar_one_or_none()


async def create_board(db: AsyncSession, *, name: str, type: str, owner_id: str, description: str | None = None) -> Board:
  b = Board(name=name, type=type, owner_id=owner_id, description=description)
  db.add(b)
  await db.flush()
  return b


async def delete_board(db: AsyncSession, board_id: str) -> None:
  task_ids = select(Task.id).where(Task.board_id == board_id)
  await db.execute(delete(Reminder).where(Reminder.task_id.in_(task_ids)))
  await db.execute(delete(Notification).where(Notification.task_id.in_(task_ids)))
  await db.execute(delete(Task).where(Task.board_id == board_id))
  await db.execute(delete(BoardMember).where(BoardMember.board_id == board_id))
  await db.execute(delete(Board).where(Board.id == board_id))


# members


async def get_board_members(db: AsyncSession, board_id: str) -> list[User]:
  board = await get_board(db, board_id)
  res = await db.execute(select(BoardMember.user_id).where(BoardMember.board_id == board_id))
  ids = [row.user_id for row in res.all()]
  if board is not None:
    ids.append(board.owner_id)
  unique_ids = list(dict.fromkeys(ids))
  if not unique_ids:
    return []
  ures = await db.execute(select(User).where(User.id.in_(unique_ids)).order_by(User.username.asc()))
  return list(ures.scalars().all())


async def add_board_member(db: AsyncSession, *, board_id: str, user_id: str) -> BoardMember:
  m = BoardMember(board_id=board_id, user_id=user_id)
  db.add(m)
  await db.flush()
  return m


# tasks


async def get_tasks(db: AsyncSession, board_id: str) -> list[Task]:
  res = await db.execute(select(Task).where(Task.board_id == board_id).order_by(Task.created_at.asc()))
  return list(res.scalars().all())


async def get_my_tasks(db: AsyncSession, user_id: str) -> list[Task]:
  res = await db.execute(
    select(Task).where(or_(Task.creator_id == user_id, Task.assignee_id == user_id)).order_by(Task.created_at.asc())
  )
  return list(res.scalars().all())


async def get_task(db: AsyncSession, task_id: str) -> Task | None:
  res = await db.execute(select(Task).where(Task.id == task_id))
  return res.scalar_one_or_none()


async def create_task(
  db: AsyncSession,
  *,
  title: str,
  board_id: str,
  creator_id: str,
  description: str | None = None,
  column: str = "todo",
  priority: str = "medium",
  assignee_id: str | None = None,
  due_date: datetime | None = None,
  reminder_date: datetime | None = None,
) -> Task:
  t = Task(
    title=title,
    description=description,
    board_id=board_id,
    column=column,
    priority=priority,
    creator_id=creator_id,
    assignee_id=assignee_id,
    status="pending",
    due_date=due_date,
    reminder_date=reminder_date,
    position=0,
  )
  db.add(t)
  await db.flush()
  return t


async def update_task(db: AsyncSession, task: Task, changes: dict[str, Any]) -> Task:
  for key, value in changes.items():
    if key in TASK_UPDATABLE_FIELDS:
      setattr(task, key, value)
  await db.flush()
  await db.refresh(task)
  return task


async def delete_task(db: AsyncSession, task_id: str) -> None:
  await db.execute(delete(Notification).where(Notification.task_id == task_id))
  await db.execute(delete(Reminder).where(Reminder.task_id == task_id))
  await db.execute(delete(Task).where(Task.id == task_id))


async def get_tasks_due_soon(db: AsyncSession, *, now: datetime | None = None, window: timedelta | None = None) -> list[Task]:
  now = now or utcnow()
  window = window or timedelta(hours=settings.due_soon_window_hours)
  res = await db.execute(
    select(Task).where(
      Task.due_date.is_not(None),
      Task.due_date > now,
      Task.due_date < now + window,
      Task.column != "done",
    )
  )
  return list(res.scalars().all())


async def get_overdue_tasks(db: AsyncSession, *, now: datetime | None = None) -> list[Task]:
  now = now or utcnow()
  res = await db.execute(
    select(Task).where(
      Task.due_date.is_not(None),
      Task.due_date < now,
      Task.column != "done",
    )
  )
  return list(res.scalars().all())


# notifications


async def get_notifications(db: AsyncSession, user_id: str, *, limit: int | None = None) -> list[Notification]:
  limit = int(limit or settings.notification_list_limit)
  res = await db.execute(
    select(Notification)
    .where(Notification.user_id == user_id)
    .order_by(Notification.created_at.desc())
    .limit(limit)
  )
  return list(res.scalars().all())


async def get_notification(db: AsyncSession, notification_id: str) -> Notification | None:
  res = await db.execute(select(Notification).where(Notification.id == notification_id))
  return res.scalar_one_or_none()


async def create_notification(
  db: AsyncSession,
  *,
  user_id: str,
  type: str,
  message: str,
  task_id: str | None = None,
  created_at: datetime | None = None,
) -> Notification:
  n = Notification(user_id=user_id, task_id=task_id, type=type, message=message, read=False)
  if created_at is not None:
    n.created_at = created_at
  db.add(n)
  await db.flush()
  return n


async def mark_notification_read(db: AsyncSession, notification_id: str) -> None:
  await db.execute(update(Notification).where(Notification.id == notification_id).values(read=True))


async def mark_all_notifications_read(db: AsyncSession, user_id: str) -> None:
  await db.execute(update(Notification).where(Notification.user_id == user_id, Notification.read.is_(False)).values(read=True))


async def has_recent_notification(
  db: AsyncSession,
  *,
  user_id: str,
  task_id: str,
  type: str,
  now: datetime | None = None,
  window: timedelta | None = None,
) -> bool:
  now = now or utcnow()
  window = window or timedelta(hours=settings.notification_dedupe_hours)
  res = await db.execute(
    select(Notification.id)
    .where(
      Notification.user_id == user_id,
      Notification.task_id == task_id,
      Notification.type == type,
      Notification.created_at > now - window,
    )
    .limit(1)
  )
  return res.scalar_one_or_none() is not None


# reminders


async def create_reminder(db: AsyncSession, *, user_id: str, task_id: str, reminder_time: datetime) -> Reminder:
  r = Reminder(user_id=user_id, task_id=task_id, reminder_time=reminder_time, fired=False, dismissed=False)
  db.add(r)
  await db.flush()
  return r


async def get_reminders(db: AsyncSession, user_id: str) -> list[Reminder]:
  res = await db.execute(
    select(Reminder)
    .where(Reminder.user_id == user_id, Reminder.dismissed.is_(False))
    .order_by(Reminder.reminder_time.asc())
  )
  return list(res.scalars().all())


async def get_due_reminders(db: AsyncSession, user_id: str) -> list[Reminder]:
  """Fired reminders still waiting for the user to dismiss them."""
  res = await db.execute(
    select(Reminder)
    .where(Reminder.user_id == user_id, Reminder.dismissed.is_(False), Reminder.fired.is_(True))
    .order_by(Reminder.reminder_time.asc())
  )
  return list(res.scalars().all())


async def get_reminder(db: AsyncSession, reminder_id: str) -> Reminder | None:
  res = await db.execute(select(Reminder).where(Reminder.id == reminder_id))
  return res.scalar_one_or_none()


async def dismiss_reminder(db: AsyncSession, reminder_id: str) -> None:
  await db.execute(update(Reminder).where(Reminder.id == reminder_id).values(dismissed=True))


async def delete_reminder(db: AsyncSession, reminder_id: str) -> None:
  await db.execute(delete(Reminder).where(Reminder.id == reminder_id))


async def mark_reminder_fired(db: AsyncSession, reminder_id: str) -> None:
  # Dismissed is terminal; never flip it back into the fired state.
  await db.execute(
    update(Reminder).where(Reminder.id == reminder_id, Reminder.dismissed.is_(False)).values(fired=True)
  )


async def get_newly_due_reminders(db: AsyncSession, *, now: datetime | None = None) -> list[Reminder]:
  """Reminders whose time has come but which the scheduler has not marked fired yet."""
  now = now or utcnow()
  res = await db.execute(
    select(Reminder)
    .where(Reminder.fired.is_(False), Reminder.dismissed.is_(False), Reminder.reminder_time <= now)
    .order_by(Reminder.reminder_time.asc())
  )
  return list(res.scalars().all())
