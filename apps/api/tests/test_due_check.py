from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from conftest import seeded_user_id
from taskflow import storage
from taskflow.db import SessionLocal
from taskflow.metrics import runtime_metrics
from taskflow.models import Notification
from taskflow.reminders import service
from taskflow.reminders.service import run_due_check_once

pytestmark = pytest.mark.anyio

T0 = datetime(2030, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _board_with_task(*, due: datetime | None, assignee: str | None = "bob", column: str = "todo") -> tuple[str, str]:
  alice_id = await seeded_user_id("alice")
  assignee_id = await seeded_user_id(assignee) if assignee else None
  async with SessionLocal() as db:
    b = await storage.create_board(db, name="Deadlines", type="workplace", owner_id=alice_id)
    if assignee_id and assignee_id != alice_id:
      await storage.add_board_member(db, board_id=b.id, user_id=assignee_id)
    t = await storage.create_task(
      db, title="Quarterly report", board_id=b.id, creator_id=alice_id, assignee_id=assignee_id, due_date=due, column=column
    )
    await db.commit()
    return b.id, t.id


async def _notifications(task_id: str, type: str) -> list[Notification]:
  async with SessionLocal() as db:
    res = await db.execute(select(Notification).where(Notification.task_id == task_id, Notification.type == type))
    return list(res.scalars().all())


async def _tick(now: datetime):
  async with SessionLocal() as db:
    return await run_due_check_once(db, now=now)


async def test_due_soon_notifies_assignee_once_per_window() -> None:
  _, task_id = await _board_with_task(due=T0 + timedelta(hours=10))
  bob_id = await seeded_user_id("bob")

  result = await _tick(T0)
  assert result.due_soon_notified == 1
  assert result.overdue_notified == 0
  assert result.ok

  for minutes in (1, 30, 120):
    result = await _tick(T0 + timedelta(minutes=minutes))
    assert result.due_soon_notified == 0

  notes = await _notifications(task_id, "task_due_soon")
  assert len(notes) == 1
  assert notes[0].user_id == bob_id
  assert notes[0].message == 'Task "Quarterly report" is due soon'


async def test_overdue_repeats_after_dedupe_window() -> None:
  _, task_id = await _board_with_task(due=T0 - timedelta(hours=1))

  assert (await _tick(T0)).overdue_notified == 1
  assert (await _tick(T0 + timedelta(minutes=10))).overdue_notified == 0
  assert (await _tick(T0 + timedelta(hours=23))).overdue_notified == 0
  assert (await _tick(T0 + timedelta(hours=25))).overdue_notified == 1

  notes = await _notifications(task_id, "task_overdue")
  assert len(notes) == 2
  assert {n.message for n in notes} == {'Task "Quarterly report" is overdue!'}


async def test_unassigned_task_notifies_creator() -> None:
  _, task_id = await _board_with_task(due=T0 - timedelta(hours=1), assignee=None)
  await _tick(T0)
  notes = await _notifications(task_id, "task_overdue")
  assert [n.user_id for n in notes] == [await seeded_user_id("alice")]


async def test_done_tasks_and_boundaries_are_ignored() -> None:
  _, done_id = await _board_with_task(due=T0 - timedelta(hours=1), column="done")
  _, far_id = await _board_with_task(due=T0 + timedelta(hours=48))
  _, edge_id = await _board_with_task(due=T0 + timedelta(hours=24))

  result = await _tick(T0)
  assert result.notifications_created == 0
  for task_id in (done_id, far_id, edge_id):
    assert await _notifications(task_id, "task_due_soon") == []
    assert await _notifications(task_id, "task_overdue") == []


async def test_reminders_fire_once() -> None:
  _, task_id = await _board_with_task(due=None)
  bob_id = await seeded_user_id("bob")
  async with SessionLocal() as db:
    r = await storage.create_reminder(db, user_id=bob_id, task_id=task_id, reminder_time=T0 - timedelta(minutes=1))
    later = await storage.create_reminder(db, user_id=bob_id, task_id=task_id, reminder_time=T0 + timedelta(hours=1))
    await db.commit()

  result = await _tick(T0)
  assert result.reminders_fired == 1

  async with SessionLocal() as db:
    assert await storage.get_newly_due_reminders(db, now=T0 + timedelta(minutes=1)) == []
    due = await storage.get_due_reminders(db, bob_id)
    assert [x.id for x in due] == [r.id]
    pending = await storage.get_reminders(db, bob_id)
    assert {x.id for x in pending} == {r.id, later.id}

  assert (await _tick(T0 + timedelta(minutes=5))).reminders_fired == 0
  # fired reminders never produce notification rows
  assert await _notifications(task_id, "reminder") == []


async def test_mark_fired_never_revives_dismissed() -> None:
  _, task_id = await _board_with_task(due=None)
  bob_id = await seeded_user_id("bob")
  async with SessionLocal() as db:
    r = await storage.create_reminder(db, user_id=bob_id, task_id=task_id, reminder_time=T0)
    await storage.dismiss_reminder(db, r.id)
    await storage.mark_reminder_fired(db, r.id)
    await db.commit()
    fresh = await storage.get_reminder(db, r.id)
    await db.refresh(fresh)
    assert fresh.dismissed is True
    assert fresh.fired is False
    assert await storage.get_due_reminders(db, bob_id) == []


async def test_failing_sweep_does_not_block_the_others(monkeypatch) -> None:
  _, task_id = await _board_with_task(due=T0 - timedelta(hours=1))
  bob_id = await seeded_user_id("bob")
  async with SessionLocal() as db:
    await storage.create_reminder(db, user_id=bob_id, task_id=task_id, reminder_time=T0 - timedelta(minutes=1))
    await db.commit()

  async def boom(db, now):
    raise RuntimeError("due-soon query exploded")

  monkeypatch.setattr(
    service,
    "_SWEEPS",
    [("due_soon", "due_soon_notified", boom)] + [s for s in service._SWEEPS if s[0] != "due_soon"],
  )
  before = runtime_metrics.snapshot()["dueCheck"]["failures"]

  result = await _tick(T0)
  assert result.errors == ["due_soon"]
  assert not result.ok
  assert result.overdue_notified == 1
  assert result.reminders_fired == 1
  assert runtime_metrics.snapshot()["dueCheck"]["failures"] == before + 1


async def test_failing_task_does_not_drop_other_notices(monkeypatch) -> None:
  _, doomed_id = await _board_with_task(due=T0 + timedelta(hours=2))
  _, kept_id = await _board_with_task(due=T0 + timedelta(hours=3))
  real_notify = service.notify_task_deadline

  async def notify(db, *, task_id, **kwargs):
    n = await real_notify(db, task_id=task_id, **kwargs)
    if task_id == doomed_id:
      # stands in for the FK violation when the task vanished mid-sweep
      raise RuntimeError("task disappeared")
    return n

  monkeypatch.setattr(service, "notify_task_deadline", notify)

  result = await _tick(T0)
  assert result.ok
  assert result.due_soon_notified == 1
  assert len(await _notifications(kept_id, "task_due_soon")) == 1
  assert await _notifications(doomed_id, "task_due_soon") == []
